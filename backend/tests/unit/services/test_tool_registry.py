"""Tests for the tool registry and its OpenAI-format schemas."""

import pytest
from pydantic import ValidationError

from backend.src.services.tools import (
    ToolGroup,
    ToolName,
    ToolRegistry,
    build_tool_registry,
    get_tool_registry,
)
from backend.src.services.tools.library_tools import LIBRARY_TOOLS


@pytest.fixture(scope="module")
def registry() -> ToolRegistry:
    return build_tool_registry()


class TestRegistryContents:
    def test_every_tool_registered(self, registry: ToolRegistry):
        assert len(registry) == len(ToolName)
        assert set(registry.names()) == {name.value for name in ToolName}

    def test_groups(self, registry: ToolRegistry):
        def names(group):
            return {d.name.value for d in registry.in_group(group)}

        assert names(ToolGroup.LIBRARY) == {"search_media", "create_media", "update_media", "delete_media"}
        assert names(ToolGroup.ANALYTICS) == {"analyze_data"}
        assert names(ToolGroup.WEB_SEARCH) == {"search_web"}
        assert names(ToolGroup.COLLECTIONS) == {
            "search_collections",
            "create_collection",
            "add_media_to_collection",
            "remove_media_from_collection",
            "delete_collection",
        }

    def test_write_tools_are_marked(self, registry: ToolRegistry):
        writes = {name.value for name in ToolName if registry.get(name.value).mutates}
        assert writes == {
            "create_media",
            "update_media",
            "delete_media",
            "create_collection",
            "add_media_to_collection",
            "remove_media_from_collection",
            "delete_collection",
        }

    def test_unknown_name_resolves_to_none(self, registry: ToolRegistry):
        assert registry.get("drop_database") is None
        assert "drop_database" not in registry
        assert "search_media" in registry

    def test_duplicate_registration_rejected(self):
        with pytest.raises(ValueError, match="registered twice"):
            ToolRegistry([*LIBRARY_TOOLS, LIBRARY_TOOLS[0]])

    def test_definitions_are_frozen(self, registry: ToolRegistry):
        definition = registry.get("search_media")
        with pytest.raises(Exception):
            definition.description = "changed"

    def test_process_registry_is_cached(self):
        assert get_tool_registry() is get_tool_registry()


class TestSchemas:
    def test_openai_format(self, registry: ToolRegistry):
        tools = registry.openai_tools()
        assert len(tools) == len(ToolName)
        for tool in tools:
            assert tool["type"] == "function"
            assert tool["function"]["name"] in registry
            assert tool["function"]["description"]
            assert tool["function"]["parameters"]["type"] == "object"

    def test_enum_refs_are_inlined(self, registry: ToolRegistry):
        params = registry.get("create_media").parameters_schema()

        assert "$defs" not in params
        assert params["required"] == ["title", "type"]
        assert params["properties"]["type"]["enum"] == ["movie", "book", "comic", "game", "music"]
        # Optional enum collapses to the enum itself
        assert params["properties"]["origin"]["enum"][0] == "vn"

    def test_array_of_enums(self, registry: ToolRegistry):
        params = registry.get("search_media").parameters_schema()
        assert params["properties"]["type"]["type"] == "array"
        assert "enum" in params["properties"]["type"]["items"]
        assert params["properties"]["limit"]["maximum"] == 50

    def test_no_refs_anywhere(self, registry: ToolRegistry):
        assert "$ref" not in repr(registry.openai_tools())


class TestValidation:
    def test_valid_arguments(self, registry: ToolRegistry):
        args = registry.get("create_media").validate({"title": "Dune", "type": "book"})
        assert args.title == "Dune"

    @pytest.mark.parametrize(
        "name,arguments",
        [
            ("create_media", {"title": "Dune"}),
            ("create_media", {"title": "Dune", "type": "podcast"}),
            ("create_media", {"title": "Dune", "type": "book", "rating": 11}),
            ("update_media", {"id": "abc"}),
            ("delete_media", {"ids": []}),
            ("search_media", {"limit": 0}),
            ("create_collection", {"name": "Red", "color": "red"}),
            ("analyze_data", {"analysis_type": "forecast"}),
            ("search_web", {"query": ""}),
        ],
    )
    def test_invalid_arguments(self, registry: ToolRegistry, name, arguments):
        with pytest.raises(ValidationError):
            registry.get(name).validate(arguments)
