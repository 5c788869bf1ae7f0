"""Tool Registry - the closed set of tools the library assistant may call.

Each tool is a :class:`ToolDefinition` binding a name from :class:`ToolName`
to a pydantic input model and an async executor. The four capability groups
(library, analytics, web search, collections) each contribute a tuple of
definitions; :func:`build_tool_registry` merges them into one flat,
read-only namespace and refuses to start if any name is missing or
registered twice.
"""

from __future__ import annotations

import asyncio
import copy
import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from types import MappingProxyType
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Mapping,
    Optional,
    Type,
    TypeVar,
)

from pydantic import BaseModel

from ..config import AgentConfig, get_agent_config
from ..credential_vault import CredentialVault
from ..library_service import LibraryService
from ..profile_service import ProfileService
from ..tavily_service import TavilySearchService

logger = logging.getLogger(__name__)

NOT_AUTHENTICATED = "Not authenticated"

T = TypeVar("T")


class ToolName(str, Enum):
    """Every tool name the model may request."""
    # Library
    SEARCH_MEDIA = "search_media"
    CREATE_MEDIA = "create_media"
    UPDATE_MEDIA = "update_media"
    DELETE_MEDIA = "delete_media"
    # Analytics
    ANALYZE_DATA = "analyze_data"
    # Web search
    SEARCH_WEB = "search_web"
    # Collections
    SEARCH_COLLECTIONS = "search_collections"
    CREATE_COLLECTION = "create_collection"
    ADD_MEDIA_TO_COLLECTION = "add_media_to_collection"
    REMOVE_MEDIA_FROM_COLLECTION = "remove_media_from_collection"
    DELETE_COLLECTION = "delete_collection"


class ToolGroup(str, Enum):
    LIBRARY = "library"
    ANALYTICS = "analytics"
    WEB_SEARCH = "web_search"
    COLLECTIONS = "collections"


@dataclass
class ToolContext:
    """Per-request dependencies handed to every executor.

    ``user_id`` is None when the caller could not be identified; executors
    answer with a "not authenticated" result in that case.
    """
    user_id: Optional[str]
    library: LibraryService
    profiles: ProfileService
    vault: Optional[CredentialVault] = None
    config: AgentConfig = field(default_factory=get_agent_config)
    search_factory: Optional[Callable[[str], TavilySearchService]] = None

    async def run_sync(self, fn: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        """Run a blocking data-access call off the event loop."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(fn, *args, **kwargs))

    def search_service(self, api_key: str) -> TavilySearchService:
        if self.search_factory is not None:
            return self.search_factory(api_key)
        return TavilySearchService(
            api_key,
            content_chars=self.config.web_search_content_chars,
            max_results_cap=self.config.web_search_max_results,
        )


ToolExecutorFn = Callable[[Any, ToolContext], Awaitable[Dict[str, Any]]]


@dataclass(frozen=True)
class ToolDefinition:
    """An immutable, registered tool.

    ``mutates`` marks tools that write to the library; once dispatched they
    are never abandoned by a timeout.
    """
    name: ToolName
    description: str
    input_model: Type[BaseModel]
    executor: ToolExecutorFn
    group: ToolGroup
    mutates: bool = False

    def validate(self, arguments: Mapping[str, Any]) -> BaseModel:
        """Coerce raw model-supplied arguments into the typed input.

        Raises:
            pydantic.ValidationError: If the arguments do not conform.
        """
        return self.input_model.model_validate(dict(arguments))

    def parameters_schema(self) -> Dict[str, Any]:
        """JSON schema for the arguments with ``$ref`` entries inlined."""
        schema = self.input_model.model_json_schema()
        defs = schema.pop("$defs", {})
        schema.pop("title", None)
        schema.pop("description", None)
        return _inline_refs(schema, defs)

    def to_openai_tool(self) -> Dict[str, Any]:
        """Format as an OpenAI-style function tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name.value,
                "description": self.description,
                "parameters": self.parameters_schema(),
            },
        }


def _inline_refs(node: Any, defs: Dict[str, Any]) -> Any:
    if isinstance(node, dict):
        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/$defs/"):
            target = copy.deepcopy(defs[ref.split("/")[-1]])
            target.pop("title", None)
            extra = {k: v for k, v in node.items() if k != "$ref"}
            return _inline_refs({**target, **extra}, defs)
        # Optional[X] is rendered as X; omission already means "not given"
        variants = node.get("anyOf")
        if isinstance(variants, list):
            non_null = [v for v in variants if v != {"type": "null"}]
            if len(non_null) == 1 and len(non_null) < len(variants):
                rest = {k: v for k, v in node.items() if k != "anyOf"}
                return _inline_refs({**non_null[0], **rest}, defs)
        return {k: _inline_refs(v, defs) for k, v in node.items()}
    if isinstance(node, list):
        return [_inline_refs(v, defs) for v in node]
    return node


class ToolRegistry:
    """Read-only mapping from tool name to definition."""

    def __init__(self, definitions: Iterable[ToolDefinition]):
        tools: Dict[ToolName, ToolDefinition] = {}
        for definition in definitions:
            if definition.name in tools:
                raise ValueError(f"Tool registered twice: {definition.name.value}")
            tools[definition.name] = definition
        self._tools: Mapping[ToolName, ToolDefinition] = MappingProxyType(tools)

    def get(self, name: str) -> Optional[ToolDefinition]:
        """Resolve a model-supplied name; None if it is not a known tool."""
        try:
            return self._tools.get(ToolName(name))
        except ValueError:
            return None

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.get(name) is not None

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> List[str]:
        return [name.value for name in self._tools]

    def in_group(self, group: ToolGroup) -> List[ToolDefinition]:
        return [d for d in self._tools.values() if d.group == group]

    def openai_tools(self) -> List[Dict[str, Any]]:
        return [d.to_openai_tool() for d in self._tools.values()]


def build_tool_registry() -> ToolRegistry:
    """Merge the four tool groups into one registry.

    Raises:
        RuntimeError: If some :class:`ToolName` has no definition.
    """
    from .analytics_tools import ANALYTICS_TOOLS
    from .collection_tools import COLLECTION_TOOLS
    from .library_tools import LIBRARY_TOOLS
    from .web_tools import WEB_TOOLS

    registry = ToolRegistry([*LIBRARY_TOOLS, *ANALYTICS_TOOLS, *WEB_TOOLS, *COLLECTION_TOOLS])
    missing = [name.value for name in ToolName if name.value not in registry]
    if missing:
        raise RuntimeError(f"Tools without a definition: {missing}")

    logger.info(f"Tool registry built with {len(registry)} tools")
    return registry


@lru_cache(maxsize=1)
def get_tool_registry() -> ToolRegistry:
    """Process-wide registry, built once on first use."""
    return build_tool_registry()


__all__ = [
    "NOT_AUTHENTICATED",
    "ToolName",
    "ToolGroup",
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
    "build_tool_registry",
    "get_tool_registry",
]
