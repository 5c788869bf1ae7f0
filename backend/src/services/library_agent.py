"""Library Agent - bounded tool-calling loop for the media library assistant.

One call to :meth:`LibraryAgent.run` handles one user turn::

    planning -> (tool_executing -> planning)* -> responding -> done
                         \\-> budget_exhausted -> done

Each planning step is one streamed model call. If the model requests tools,
they run concurrently and their results are appended to the working history
before the next planning step. Every tool round consumes one step of the
budget; when the budget is spent the loop stops without another model call
and answers with whatever text it already has.

Tool failures are data: they are fed back to the model and the loop keeps
going. Only :class:`ModelProviderError` escapes, ending the turn.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import aclosing
from dataclasses import replace
from typing import Any, AsyncGenerator, Dict, List, Optional, Protocol, Sequence

from ..models.agent import (
    AgentStreamChunk,
    StreamEventType,
    TerminationReason,
    ToolCallStatus,
    ToolInvocation,
)
from ..models.agent_state import LoopPhase, TurnState
from .config import AgentConfig, get_agent_config
from .conversation_service import ConversationService
from .model_client import ModelEvent, TextDelta, ToolCallRequest, TurnEnd
from .tool_executor import ToolExecutor
from .tools.registry import ToolGroup, ToolRegistry

logger = logging.getLogger(__name__)

STREAM_RESULT_CHARS = 2000

BUDGET_FALLBACK = (
    "I wasn't able to finish this request within the allowed number of steps. "
    "Please try a narrower request or continue in a new message."
)

GROUP_HEADINGS = {
    ToolGroup.LIBRARY: "Media Management",
    ToolGroup.ANALYTICS: "Analytics",
    ToolGroup.WEB_SEARCH: "Web Search",
    ToolGroup.COLLECTIONS: "Collections",
}

GUIDELINES = """**Guidelines**:
- Use tools proactively when the user's request requires data operations
- When the user asks about their library, USE the search_media tool
- To update or delete items named by the user, first call search_media to find their ids
- When adding items, confirm what was added
- After deleting, report how many items were deleted
- If a tool returns an error, explain it to the user
- For web searches, summarize the results clearly
- Format responses clearly with markdown; present media items as a readable list
- Be concise but informative"""


class ChatModel(Protocol):
    """What the loop needs from a model client."""

    def stream_turn(
        self,
        messages: List[Dict[str, Any]],
        tools: List[Dict[str, Any]],
    ) -> AsyncGenerator[ModelEvent, None]:
        ...


def build_system_prompt(registry: ToolRegistry) -> str:
    """Describe the assistant and list the registered tools by group."""
    sections = [
        "You are Libraria AI, an intelligent assistant for managing a personal media library.",
        "",
        "You have access to the following tools:",
    ]
    for group in ToolGroup:
        definitions = registry.in_group(group)
        if not definitions:
            continue
        sections.append("")
        sections.append(f"**{GROUP_HEADINGS[group]}**:")
        sections.extend(f"- {d.name.value}: {d.description}" for d in definitions)
    sections.append("")
    sections.append(GUIDELINES)
    return "\n".join(sections)


def _error_message(result: str) -> Optional[str]:
    try:
        parsed = json.loads(result)
    except json.JSONDecodeError:
        return None
    if isinstance(parsed, dict) and parsed.get("error"):
        return str(parsed["error"])
    return None


class LibraryAgent:
    """Runs the tool-calling loop for one user.

    Supports cancellation via :meth:`cancel`: no further planning step is
    started and the current model stream is abandoned, but tool executions
    already dispatched run to completion.
    """

    def __init__(
        self,
        model_client: ChatModel,
        tool_executor: ToolExecutor,
        conversations: ConversationService,
        user_id: str,
        model_name: str = "",
        config: Optional[AgentConfig] = None,
    ):
        self.model_client = model_client
        self.tool_executor = tool_executor
        self.conversations = conversations
        self.user_id = user_id
        self.model_name = model_name
        self.config = config or get_agent_config()

        self._cancelled = False
        self.invocations: List[ToolInvocation] = []

    def cancel(self) -> None:
        """Stop scheduling planning steps; dispatched tools still finish."""
        if not self._cancelled:
            logger.info(f"Cancelling library agent for user {self.user_id}")
        self._cancelled = True

    def is_cancelled(self) -> bool:
        return self._cancelled

    async def run(
        self,
        user_message: str,
        conversation_id: str,
        history: Sequence[Dict[str, str]] = (),
    ) -> AsyncGenerator[AgentStreamChunk, None]:
        """Run one user turn, yielding stream chunks.

        Args:
            user_message: The new user turn
            conversation_id: Conversation the turn is persisted to
            history: Prior ``{"role", "content"}`` turns, oldest first

        Raises:
            ModelProviderError: If the model provider fails; nothing further
                is persisted for the turn.
        """
        registry = self.tool_executor.registry
        tools = registry.openai_tools()
        messages: List[Dict[str, Any]] = [{"role": "system", "content": build_system_prompt(registry)}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history if m.get("content"))
        messages.append({"role": "user", "content": user_message})

        await asyncio.get_running_loop().run_in_executor(
            None,
            lambda: self.conversations.append_message(self.user_id, conversation_id, "user", user_message),
        )

        state = TurnState(user_id=self.user_id, config=self.config)
        transcript: List[str] = []
        tool_records: List[Dict[str, Any]] = []
        warned = False
        step_text = ""
        provider_failed = False
        saved = False

        try:
            while True:
                if self._cancelled:
                    state = replace(state, phase=LoopPhase.DONE, termination_reason=TerminationReason.CANCELLED)
                    logger.info(
                        f"[TERMINATION:cancelled] Agent cancelled by user after {state.steps_used} steps"
                    )
                    break

                state = replace(state, phase=LoopPhase.PLANNING, planning_calls=state.planning_calls + 1)
                logger.debug(
                    f"Planning step {state.planning_calls} "
                    f"(steps used: {state.steps_used}/{self.config.max_steps})"
                )

                step_text = ""
                turn_end: Optional[TurnEnd] = None
                try:
                    async with aclosing(self.model_client.stream_turn(messages, tools)) as events:
                        async for event in events:
                            if self._cancelled:
                                break
                            if isinstance(event, TextDelta):
                                step_text += event.text
                                yield AgentStreamChunk(type=StreamEventType.TEXT_DELTA, content=event.text)
                            elif isinstance(event, TurnEnd):
                                turn_end = event
                except Exception:
                    provider_failed = True
                    raise

                if step_text.strip():
                    transcript.append(step_text)
                step_text = ""

                if self._cancelled:
                    continue

                if turn_end is None or not turn_end.tool_calls:
                    state = replace(
                        state,
                        phase=LoopPhase.RESPONDING,
                        termination_reason=TerminationReason.ANSWERED,
                    )
                    break

                messages.append({
                    "role": "assistant",
                    "content": turn_end.content or None,
                    "tool_calls": [
                        {
                            "id": call.id,
                            "type": "function",
                            "function": {"name": call.name, "arguments": call.arguments or "{}"},
                        }
                        for call in turn_end.tool_calls
                    ],
                })

                state = replace(state, phase=LoopPhase.TOOL_EXECUTING)
                async for chunk in self._execute_tools(turn_end.tool_calls, messages, tool_records):
                    yield chunk
                state = replace(state, steps_used=state.steps_used + 1)

                if state.is_budget_exhausted:
                    state = replace(
                        state,
                        phase=LoopPhase.BUDGET_EXHAUSTED,
                        termination_reason=TerminationReason.BUDGET_EXHAUSTED,
                    )
                    logger.info(
                        f"[TERMINATION:budget_exhausted] Agent stopped after {state.steps_used} tool rounds "
                        f"(limit: {self.config.max_steps}, planning calls: {state.planning_calls})"
                    )
                    break

                if state.is_near_step_limit and not warned:
                    warned = True
                    remaining = state.steps_remaining
                    messages.append({
                        "role": "system",
                        "content": (
                            f"You have {remaining} tool round(s) left for this request. "
                            "Finish with a final answer as soon as possible."
                        ),
                    })
                    yield AgentStreamChunk(
                        type=StreamEventType.STATUS,
                        content=f"Approaching step limit: {state.steps_used}/{self.config.max_steps} used",
                    )

            if state.termination_reason == TerminationReason.BUDGET_EXHAUSTED:
                note = f"Stopped after reaching the limit of {self.config.max_steps} steps."
                if not transcript:
                    transcript.append(BUDGET_FALLBACK)
                    yield AgentStreamChunk(type=StreamEventType.TEXT_DELTA, content=BUDGET_FALLBACK)
                yield AgentStreamChunk(type=StreamEventType.STATUS, content=note)

            answer = "\n\n".join(transcript)
            await asyncio.get_running_loop().run_in_executor(
                None,
                lambda: self._save_answer(conversation_id, answer, state, tool_records),
            )
            saved = True

            state = replace(state, phase=LoopPhase.DONE)
            yield AgentStreamChunk(
                type=StreamEventType.DONE,
                conversation_id=conversation_id,
                model_used=self.model_name or None,
                steps_used=state.steps_used,
                termination_reason=state.termination_reason,
                metadata={
                    "max_steps": self.config.max_steps,
                    "planning_calls": state.planning_calls,
                    "elapsed_seconds": round(state.elapsed_seconds, 3),
                },
            )

        finally:
            # Client went away mid-turn: keep what was already streamed
            streamed = [*transcript, step_text] if step_text.strip() else transcript
            if not saved and not provider_failed and streamed:
                logger.info(
                    f"[FINALLY] Saving partial answer after early exit "
                    f"(content={sum(len(t) for t in streamed)}, tools={len(tool_records)})"
                )
                partial = replace(state, termination_reason=TerminationReason.CANCELLED)
                try:
                    self._save_answer(conversation_id, "\n\n".join(streamed), partial, tool_records)
                except Exception as e:
                    logger.error(f"[FINALLY] Failed to save partial answer: {e}", exc_info=True)

    def _save_answer(
        self,
        conversation_id: str,
        answer: str,
        state: TurnState,
        tool_records: List[Dict[str, Any]],
    ) -> None:
        if not answer:
            return
        self.conversations.append_message(
            self.user_id,
            conversation_id,
            "assistant",
            answer,
            metadata={
                "steps_used": state.steps_used,
                "termination_reason": state.termination_reason.value if state.termination_reason else None,
                "tool_calls": tool_records,
                "model": self.model_name or None,
            },
        )

    async def _execute_tools(
        self,
        tool_calls: List[ToolCallRequest],
        messages: List[Dict[str, Any]],
        tool_records: List[Dict[str, Any]],
    ) -> AsyncGenerator[AgentStreamChunk, None]:
        """Execute one step's tool calls and append their results to ``messages``.

        Each call is tracked as a :class:`ToolInvocation` moving from pending
        to running to succeeded or failed. Identical calls (same name and
        arguments) run once and share a result. Every call id gets a tool
        message, in the order requested.
        """
        max_calls = self.config.max_tool_calls_per_step
        logger.info(
            f"[TOOL_CALLS] Received {len(tool_calls)} tool calls "
            f"(limit: {max_calls}, parallel: {self.config.max_parallel_tools})"
        )

        results: Dict[str, str] = {}
        runnable: List[ToolInvocation] = []
        self.invocations = []
        for index, call in enumerate(tool_calls):
            try:
                arguments = json.loads(call.arguments) if call.arguments.strip() else {}
            except json.JSONDecodeError as e:
                logger.warning(f"Malformed JSON in tool call arguments for {call.name}: {call.arguments[:200]}")
                results[call.id] = json.dumps({
                    "error": f"Malformed JSON arguments: {e.msg}",
                    "category": "validation_error",
                    "tool": call.name,
                    "suggestion": "Send the arguments as a single valid JSON object.",
                })
                arguments = None

            if index >= max_calls and arguments is not None:
                results[call.id] = json.dumps({
                    "error": f"Too many tool calls in one step (limit {max_calls})",
                    "category": "validation_error",
                    "tool": call.name,
                    "suggestion": "Request fewer tool calls at once.",
                })
                arguments = None

            invocation = ToolInvocation(
                id=call.id,
                name=call.name,
                arguments=arguments if isinstance(arguments, dict) else {},
            )
            self.invocations.append(invocation)
            if arguments is not None:
                runnable.append(invocation)
            yield AgentStreamChunk(
                type=StreamEventType.TOOL_CALL,
                tool_call={
                    "id": call.id,
                    "name": call.name,
                    "arguments": arguments if arguments is not None else call.arguments,
                },
                tool_call_id=call.id,
                status=invocation.status,
            )

        # Within-step deduplication
        signature_owner: Dict[str, str] = {}
        duplicates: Dict[str, str] = {}
        unique: List[ToolInvocation] = []
        for invocation in runnable:
            signature = f"{invocation.name}:{json.dumps(invocation.arguments, sort_keys=True)}"
            if signature in signature_owner:
                duplicates[invocation.id] = signature_owner[signature]
                logger.warning(f"[TOOL_DEDUP] Skipping duplicate tool call: {invocation.name}")
            else:
                signature_owner[signature] = invocation.id
                unique.append(invocation)

        semaphore = asyncio.Semaphore(self.config.max_parallel_tools)

        async def execute_single_tool(invocation: ToolInvocation) -> str:
            async with semaphore:
                invocation.status = ToolCallStatus.RUNNING
                return await self.tool_executor.execute(invocation.name, invocation.arguments, self.user_id)

        if unique:
            batch = asyncio.gather(
                *(execute_single_tool(invocation) for invocation in unique),
                return_exceptions=True,
            )
            # Shielded so a disconnect cannot interrupt writes already dispatched
            outcomes = await asyncio.shield(batch)
            for invocation, outcome in zip(unique, outcomes):
                if isinstance(outcome, BaseException):
                    logger.error(f"Tool {invocation.name} raised outside the executor: {outcome!r}")
                    results[invocation.id] = json.dumps({
                        "error": f"Tool execution failed: {outcome}",
                        "category": "runtime_error",
                        "tool": invocation.name,
                    })
                else:
                    results[invocation.id] = outcome

        for call_id, owner_id in duplicates.items():
            results[call_id] = results[owner_id]

        for invocation in self.invocations:
            result = results[invocation.id]
            invocation.result = result
            invocation.error = _error_message(result)
            invocation.status = ToolCallStatus.FAILED if invocation.error else ToolCallStatus.SUCCEEDED

            messages.append({"role": "tool", "tool_call_id": invocation.id, "content": result})
            tool_records.append(
                invocation.model_dump(mode="json", include={"id", "name", "arguments", "status", "error"})
            )
            display = result if len(result) <= STREAM_RESULT_CHARS else result[:STREAM_RESULT_CHARS] + "..."
            yield AgentStreamChunk(
                type=StreamEventType.TOOL_RESULT,
                tool_call_id=invocation.id,
                tool_result=display,
                status=invocation.status,
            )


__all__ = ["LibraryAgent", "ChatModel", "build_system_prompt", "BUDGET_FALLBACK"]
