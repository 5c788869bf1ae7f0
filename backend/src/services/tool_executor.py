"""Tool Executor - Validates and dispatches tool calls from the library agent.

Every call is resolved through the :class:`ToolRegistry`, its arguments are
validated against the tool's input model, and the executor runs under a
timeout. ``execute`` never raises: the outcome is always a JSON string,
either the tool's payload or an error document the model can act on::

    {"error": "...", "category": "...", "tool": "...", "suggestion": "..."}

Error categories:
    validation_error   arguments did not match the tool's schema
    unknown_tool       the name is not registered
    not_authenticated  no caller identity was available
    timeout_error      a read tool exceeded its timeout (write tools are
                       waited on and report their real outcome)
    runtime_error      anything else raised by the tool (plus the finer
                       categories from ``_categorize_error``)
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Callable, Dict, Optional

from pydantic import ValidationError

from .config import AgentConfig, get_agent_config
from .credential_vault import CredentialVault
from .library_service import LibraryService
from .profile_service import ProfileService
from .tavily_service import TavilySearchService
from .tools.registry import NOT_AUTHENTICATED, ToolContext, ToolRegistry, get_tool_registry

logger = logging.getLogger(__name__)


class ToolExecutor:
    """
    Executes tool calls against the registry on behalf of one caller.

    Attributes:
        TOOL_TIMEOUTS: Per-tool timeout overrides for tools that call out to
            the network
    """

    TOOL_TIMEOUTS: Dict[str, float] = {
        "search_web": 45.0,
    }

    def __init__(
        self,
        registry: Optional[ToolRegistry] = None,
        library_service: Optional[LibraryService] = None,
        profile_service: Optional[ProfileService] = None,
        vault: Optional[CredentialVault] = None,
        agent_config: Optional[AgentConfig] = None,
        search_factory: Optional[Callable[[str], TavilySearchService]] = None,
        default_timeout: Optional[float] = None,
    ) -> None:
        """
        Initialize the tool executor with service dependencies.

        Args:
            registry: Tool registry (process-wide registry if None)
            library_service: Data access facade (created if None)
            profile_service: Profile/credential storage (created if None)
            vault: Credential vault for tools that need per-user keys
            agent_config: Agent limits (environment defaults if None)
            search_factory: Builds a web search client from an API key
            default_timeout: Override the default timeout for all tools (seconds)
        """
        self.registry = registry or get_tool_registry()
        self.library = library_service or LibraryService()
        self.profiles = profile_service or ProfileService(self.library.db)
        self.vault = vault
        self.config = agent_config or get_agent_config()
        self.search_factory = search_factory

        if default_timeout is not None:
            self._default_timeout = default_timeout
        else:
            self._default_timeout = self.config.tool_timeout_seconds

    def get_timeout(self, tool_name: str, override: Optional[float] = None) -> float:
        """
        Resolve the timeout for ``tool_name``.

        Resolution order: per-call override, TOOL_TIMEOUTS, instance default.
        """
        if override is not None:
            return override
        if tool_name in self.TOOL_TIMEOUTS:
            return max(self.TOOL_TIMEOUTS[tool_name], self._default_timeout)
        return self._default_timeout

    def context_for(self, user_id: Optional[str]) -> ToolContext:
        return ToolContext(
            user_id=user_id,
            library=self.library,
            profiles=self.profiles,
            vault=self.vault,
            config=self.config,
            search_factory=self.search_factory,
        )

    async def execute(
        self,
        name: str,
        arguments: Any,
        user_id: Optional[str],
        timeout: Optional[float] = None,
    ) -> str:
        """
        Execute a tool call and return the result as a JSON string.

        Args:
            name: Tool name requested by the model
            arguments: Parsed arguments (expected to be a JSON object)
            user_id: Authenticated caller, or None
            timeout: Optional timeout override in seconds

        Returns:
            JSON string containing the tool result or an error document.
        """
        definition = self.registry.get(name)
        if definition is None:
            logger.warning(f"Unknown tool requested: {name}")
            return json.dumps({
                "error": f"Unknown tool: {name}",
                "category": "unknown_tool",
                "tool": name,
                "suggestion": f"Use one of the available tools: {', '.join(self.registry.names())}.",
            })

        if not isinstance(arguments, dict):
            return json.dumps({
                "error": "Invalid arguments: expected a JSON object",
                "category": "validation_error",
                "tool": name,
                "suggestion": self._get_error_suggestion_for_agent("validation_error", name, ""),
            })

        try:
            args = definition.validate(arguments)
        except ValidationError as e:
            violations = [
                {"loc": ".".join(str(part) for part in err["loc"]) or "(root)", "msg": err["msg"]}
                for err in e.errors()
            ]
            logger.info(
                f"Tool {name} rejected arguments: {len(violations)} violation(s)",
                extra={"user_id": user_id, "tool": name},
            )
            return json.dumps({
                "error": "Invalid arguments",
                "category": "validation_error",
                "tool": name,
                "violations": violations,
                "suggestion": self._get_error_suggestion_for_agent("validation_error", name, str(e)),
            })

        actual_timeout = self.get_timeout(name, timeout)
        ctx = self.context_for(user_id)

        try:
            logger.info(
                f"Executing tool: {name}",
                extra={
                    "user_id": user_id,
                    "tool": name,
                    "args_keys": list(arguments.keys()),
                    "timeout": actual_timeout,
                },
            )

            task = asyncio.ensure_future(definition.executor(args, ctx))
            try:
                result = await asyncio.wait_for(asyncio.shield(task), timeout=actual_timeout)
            except asyncio.TimeoutError:
                if not definition.mutates:
                    task.cancel()
                    raise
                logger.warning(
                    f"Write tool {name} exceeded {actual_timeout}s; waiting for it to finish",
                    extra={"user_id": user_id, "tool": name, "timeout": actual_timeout},
                )
                result = await task

            if result.get("error") == NOT_AUTHENTICATED:
                result = {
                    **result,
                    "category": "not_authenticated",
                    "tool": name,
                    "suggestion": self._get_error_suggestion_for_agent("not_authenticated", name, ""),
                }
            return json.dumps(result, default=str)

        except asyncio.TimeoutError:
            logger.warning(
                f"Tool {name} timed out after {actual_timeout}s",
                extra={"user_id": user_id, "tool": name, "timeout": actual_timeout},
            )
            return json.dumps({
                "error": f"Tool '{name}' timed out after {actual_timeout} seconds.",
                "category": "timeout_error",
                "tool": name,
                "timed_out": True,
                "suggestion": self._get_error_suggestion_for_agent("timeout_error", name, ""),
            })
        except Exception as e:
            logger.exception(f"Tool {name} execution failed: {type(e).__name__}: {e}")
            error_category = self._categorize_error(e)
            return json.dumps({
                "error": f"Tool execution failed: {str(e)}",
                "category": error_category,
                "tool": name,
                "error_type": type(e).__name__,
                "suggestion": self._get_error_suggestion_for_agent(error_category, name, str(e)),
            })

    def _categorize_error(self, exception: BaseException) -> str:
        """
        Categorize an exception raised inside a tool.

        Returns:
            'timeout_error', 'network_error', 'database_error', 'api_error',
            'validation_error' or 'runtime_error'
        """
        error_str = str(exception).lower()
        error_type = type(exception).__name__

        if error_type == "TimeoutError" or "timeout" in error_str:
            return "timeout_error"

        if error_type in ("ConnectionError", "ConnectError"):
            return "network_error"
        if any(x in error_str for x in ["connection refused", "network unreachable", "host unreachable"]):
            return "network_error"

        if error_type in ("OperationalError", "IntegrityError", "DatabaseError"):
            return "database_error"

        if error_type in ("HTTPError", "HTTPStatusError", "InvalidURL"):
            return "api_error"

        if error_type == "ValueError":
            return "validation_error"

        return "runtime_error"

    def _get_error_suggestion_for_agent(self, category: str, tool_name: str, error_msg: str) -> str:
        """
        Generate a recovery hint for the model based on error category.
        """
        suggestions = {
            "validation_error": (
                f"Check the arguments for {tool_name}: required fields, allowed enum values "
                "and numeric ranges are listed in the tool schema. Retry with corrected arguments."
            ),
            "not_authenticated": (
                "The user is not signed in. Tell the user to sign in; do not retry this tool."
            ),
            "timeout_error": (
                "The operation took too long. Retry once with a narrower request (e.g., smaller limit)."
            ),
            "network_error": (
                "A network operation failed. This could be temporary; try again in a moment."
            ),
            "database_error": (
                "The library database rejected the operation. Explain the problem to the user."
            ),
            "api_error": (
                "An external API request failed. Explain the limitation to the user."
            ),
            "runtime_error": (
                f"The {tool_name} tool encountered an unexpected error. Check your input parameters "
                "and try again with adjusted arguments if needed."
            ),
        }
        return suggestions.get(category, suggestions["runtime_error"])


__all__ = ["ToolExecutor"]
