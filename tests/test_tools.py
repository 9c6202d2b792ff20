"""Tests for the tool registry and dispatcher."""

import pytest

from chatstream.errors import ToolExecutionError, ToolNotRegisteredError
from chatstream.tools.dispatcher import (
    DispatchStatus,
    ToolDispatcher,
    normalize_arguments,
    repair_json,
    stringify_result,
    validate_arguments,
)
from chatstream.tools.registry import ToolRegistration, ToolRegistry
from chatstream.types import ToolMode


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestToolRegistry:
    def test_register_and_get(self, registry):
        assert "add" in registry
        assert "missing" not in registry
        assert len(registry) == 4
        assert registry.get("add").mode == ToolMode.AUTO_EXECUTE
        assert registry.get("show_chart").mode == ToolMode.CLIENT_SIDE
        assert registry.get("nope") is None

    def test_names_keep_registration_order(self, registry):
        assert registry.names() == ["add", "lookup", "explode", "show_chart"]

    def test_auto_execute_requires_handler(self):
        reg = ToolRegistry()
        with pytest.raises(ValueError, match="needs a handler"):
            reg.register("broken")

    def test_replacement(self):
        reg = ToolRegistry()
        reg.register("t", lambda: 1)
        reg.register("t", lambda: 2, description="second")
        assert len(reg) == 1
        assert reg.get("t").description == "second"

    def test_add_prebuilt(self):
        reg = ToolRegistry()
        reg.add(ToolRegistration(name="ui", mode=ToolMode.CLIENT_SIDE))
        assert reg.get("ui").handler is None

    def test_openai_schema(self, registry):
        schemas = registry.schemas()
        assert len(schemas) == 4
        add = schemas[0]
        assert add["type"] == "function"
        assert add["function"]["name"] == "add"
        assert add["function"]["description"] == "Add two integers"
        assert add["function"]["parameters"]["required"] == ["a", "b"]

    def test_default_schema_is_empty_object(self, registry):
        params = registry.get("lookup").to_openai_schema()["function"]["parameters"]
        assert params == {"type": "object", "properties": {}}

    def test_empty_registry_has_no_schemas(self):
        assert ToolRegistry().schemas() == []


# ---------------------------------------------------------------------------
# Argument handling
# ---------------------------------------------------------------------------

class TestArguments:
    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_becomes_object(self, raw):
        assert normalize_arguments(raw) == "{}"

    def test_bare_pairs_are_wrapped(self):
        assert normalize_arguments('"a": 1') == '{"a": 1}'

    def test_arrays_left_alone(self):
        assert normalize_arguments(" [1, 2] ") == "[1, 2]"

    def test_repair_appends_braces(self):
        assert repair_json('{"a": {"b": 1') == '{"a": {"b": 1}}'
        assert repair_json('{"a": 1}') == '{"a": 1}'

    def test_validate_repairs_only_when_needed(self):
        assert validate_arguments('{"a": 1}') == '{"a": 1}'
        assert validate_arguments('{"a": 1') == '{"a": 1}'
        assert validate_arguments('"x": "y"') == '{"x": "y"}'

    def test_stringify(self):
        assert stringify_result("plain") == "plain"
        assert stringify_result({"a": 1}) == '{"a": 1}'
        assert stringify_result(3) == "3"
        assert stringify_result(None) == "null"


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

class TestToolDispatcher:
    @pytest.mark.asyncio
    async def test_sync_handler(self, registry, calls):
        outcome = await ToolDispatcher(registry).execute("add", '{"a": 2, "b": 3}')
        assert outcome.status == DispatchStatus.COMPLETED
        assert outcome.result == "5"
        assert outcome.to_message_content() == "5"
        assert outcome.duration_ms >= 0
        assert calls == [{"tool": "add", "a": 2, "b": 3}]

    @pytest.mark.asyncio
    async def test_async_handler(self, registry):
        outcome = await ToolDispatcher(registry).execute("lookup", '{"key": "k"}')
        assert outcome.status == DispatchStatus.COMPLETED
        assert outcome.result == '{"key": "k", "value": "K"}'

    @pytest.mark.asyncio
    async def test_unknown_tool(self, registry):
        outcome = await ToolDispatcher(registry).execute("unknown_tool", "{}")
        assert outcome.status == DispatchStatus.ERROR
        assert isinstance(outcome.error, ToolNotRegisteredError)
        assert outcome.error_text == "Tool 'unknown_tool' is not registered"
        assert outcome.to_message_content() == outcome.error_text

    def test_lookup_raises(self, registry):
        with pytest.raises(ToolNotRegisteredError):
            ToolDispatcher(registry).lookup("nope")

    @pytest.mark.asyncio
    async def test_client_side_is_deferred(self, registry):
        outcome = await ToolDispatcher(registry).execute("show_chart", '{"series": [1]}')
        assert outcome.status == DispatchStatus.DEFERRED
        assert outcome.arguments == '{"series": [1]}'

    @pytest.mark.asyncio
    async def test_handler_exception_becomes_error(self, registry):
        outcome = await ToolDispatcher(registry).execute("explode", "{}")
        assert outcome.status == DispatchStatus.ERROR
        assert isinstance(outcome.error, ToolExecutionError)
        assert outcome.error_text == "Error executing tool: kaboom"

    @pytest.mark.asyncio
    async def test_bad_keyword_arguments(self, registry, calls):
        outcome = await ToolDispatcher(registry).execute("add", '{"a": 1, "c": 2}')
        assert outcome.status == DispatchStatus.ERROR
        assert outcome.error_text.startswith("Error executing tool:")
        assert calls == []

    @pytest.mark.asyncio
    async def test_unparseable_arguments(self, registry):
        outcome = await ToolDispatcher(registry).execute("add", '{"a": 1,, }')
        assert outcome.status == DispatchStatus.ERROR
        assert "invalid arguments" in outcome.error_text

    @pytest.mark.asyncio
    async def test_truncated_arguments_are_repaired(self, registry, calls):
        outcome = await ToolDispatcher(registry).execute("add", '{"a": 1, "b": 2')
        assert outcome.status == DispatchStatus.COMPLETED
        assert outcome.arguments == '{"a": 1, "b": 2}'
        assert calls == [{"tool": "add", "a": 1, "b": 2}]

    @pytest.mark.asyncio
    async def test_raw_arguments(self):
        seen = []
        reg = ToolRegistry()
        reg.register("echo", lambda raw: seen.append(raw) or raw, raw_arguments=True)
        outcome = await ToolDispatcher(reg).execute("echo", "")
        assert outcome.result == "{}"
        assert seen == ["{}"]

    @pytest.mark.asyncio
    async def test_non_object_arguments_passed_positionally(self):
        reg = ToolRegistry()
        reg.register("total", lambda values: sum(values))
        outcome = await ToolDispatcher(reg).execute("total", "[1, 2, 3]")
        assert outcome.status == DispatchStatus.COMPLETED
        assert outcome.result == "6"

    @pytest.mark.asyncio
    async def test_error_outcome_never_raises_for_missing_handler(self):
        reg = ToolRegistry()
        reg.add(ToolRegistration(name="hollow"))
        outcome = await ToolDispatcher(reg).execute("hollow", "{}")
        assert outcome.status == DispatchStatus.ERROR
        assert "no handler" in outcome.error_text
