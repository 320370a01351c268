"""Tests for novaagent.tools.registry: registration and validation"""

import pytest

from novaagent.errors import InvalidParamsError, ToolRegistrationError, UnknownToolError
from novaagent.tools import ToolDefinition, ToolRegistry


async def _noop(params, context):
    return {"ok": True}


def _tool(name="lookup", auto=True, parameters=None, describe=None):
    return ToolDefinition(
        name=name,
        description=f"{name} tool",
        parameters=parameters if parameters is not None else {
            "type": "object",
            "properties": {
                "query": {"type": "string"},
                "limit": {"type": "integer", "minimum": 1, "maximum": 10},
            },
            "required": ["query"],
        },
        auto_executable=auto,
        handler=_noop,
        describe=describe,
    )


# =========================================================================
# Registration
# =========================================================================


class TestRegister:

    def test_register_and_get(self):
        registry = ToolRegistry()
        tool = _tool()
        registry.register(tool)
        assert registry.get("lookup") is tool
        assert "lookup" in registry
        assert len(registry) == 1

    def test_constructor_registers_all(self):
        registry = ToolRegistry([_tool("a"), _tool("b", auto=False)])
        assert registry.names() == ["a", "b"]

    def test_duplicate_name_rejected(self):
        registry = ToolRegistry([_tool()])
        with pytest.raises(ToolRegistrationError, match="already registered"):
            registry.register(_tool())

    def test_empty_name_rejected(self):
        with pytest.raises(ToolRegistrationError):
            ToolRegistry([_tool(name="")])

    def test_invalid_schema_rejected(self):
        with pytest.raises(ToolRegistrationError, match="invalid parameter schema"):
            ToolRegistry([_tool(parameters={"type": "not-a-type"})])

    def test_non_bool_auto_executable_rejected(self):
        tool = _tool()
        tool.auto_executable = None
        with pytest.raises(ToolRegistrationError, match="auto_executable"):
            ToolRegistry([tool])

    def test_non_callable_handler_rejected(self):
        tool = _tool()
        tool.handler = "not callable"
        with pytest.raises(ToolRegistrationError, match="handler"):
            ToolRegistry([tool])

    def test_auto_executable_has_no_default(self):
        with pytest.raises(TypeError):
            ToolDefinition(name="x", description="", parameters={}, handler=_noop)


# =========================================================================
# Lookup / schemas
# =========================================================================


class TestLookup:

    def test_unknown_tool_raises(self):
        with pytest.raises(UnknownToolError) as exc:
            ToolRegistry().get("missing")
        assert exc.value.tool_name == "missing"
        assert exc.value.code == "UNKNOWN_TOOL"

    def test_is_auto_executable(self):
        registry = ToolRegistry([_tool("read"), _tool("write", auto=False)])
        assert registry.is_auto_executable("read") is True
        assert registry.is_auto_executable("write") is False

    def test_schemas_openai_format(self):
        registry = ToolRegistry([_tool("a"), _tool("b")])
        schemas = registry.schemas()
        assert [s["function"]["name"] for s in schemas] == ["a", "b"]
        assert schemas[0]["type"] == "function"
        assert schemas[0]["function"]["parameters"]["required"] == ["query"]

    def test_schemas_subset(self):
        registry = ToolRegistry([_tool("a"), _tool("b")])
        assert [s["function"]["name"] for s in registry.schemas(["b"])] == ["b"]


# =========================================================================
# Validation
# =========================================================================


class TestValidate:

    def test_valid_params(self):
        registry = ToolRegistry([_tool()])
        registry.validate("lookup", {"query": "pto", "limit": 3})

    def test_missing_required(self):
        registry = ToolRegistry([_tool()])
        with pytest.raises(InvalidParamsError) as exc:
            registry.validate("lookup", {})
        assert exc.value.errors == ["root: 'query' is a required property"]

    def test_nested_path_reported(self):
        registry = ToolRegistry([_tool()])
        with pytest.raises(InvalidParamsError) as exc:
            registry.validate("lookup", {"query": "x", "limit": 50})
        assert exc.value.errors[0].startswith("limit: ")

    def test_non_dict_params(self):
        registry = ToolRegistry([_tool()])
        with pytest.raises(InvalidParamsError, match="expected an object"):
            registry.validate("lookup", ["query"])

    def test_at_most_five_errors(self):
        schema = {
            "type": "object",
            "properties": {f"f{i}": {"type": "string"} for i in range(8)},
        }
        registry = ToolRegistry([_tool(parameters=schema)])
        with pytest.raises(InvalidParamsError) as exc:
            registry.validate("lookup", {f"f{i}": i for i in range(8)})
        assert len(exc.value.errors) == 5

    def test_unknown_tool(self):
        with pytest.raises(UnknownToolError):
            ToolRegistry().validate("nope", {})


# =========================================================================
# describe
# =========================================================================


class TestDescribe:

    def test_uses_tool_describer(self):
        registry = ToolRegistry([_tool(describe=lambda p: f"Look up {p['query']}")])
        assert registry.describe("lookup", {"query": "holidays"}) == "Look up holidays"

    def test_default_description(self):
        registry = ToolRegistry([_tool()])
        assert registry.describe("lookup", {"query": "x"}) == "Execute lookup"

    def test_describer_key_error_falls_back(self):
        registry = ToolRegistry([_tool(describe=lambda p: p["missing"])])
        assert registry.describe("lookup", {}) == "Execute lookup"
