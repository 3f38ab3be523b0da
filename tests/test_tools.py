"""Tests for tool source loading and the tool registry client."""

import json
from types import SimpleNamespace

import pytest

from triage_bot.errors import ToolInvocationError, ToolSourceError, UnknownToolError
from triage_bot.tools import (
    LocalToolSource,
    RegisteredTool,
    RemoteToolSource,
    load_tool_sources,
    parse_tool_source,
)
from triage_bot.tools.client import ToolRegistryClient, ToolSourceConnection


class FakeConnection:
    """Stands in for an MCP session with one source."""

    def __init__(self, source, tools=(), fail_listing=False, fail_calls=False):
        self.source = source
        self.tools = list(tools)
        self.fail_listing = fail_listing
        self.fail_calls = fail_calls
        self.calls: list[tuple[str, dict]] = []
        self.closed = False

    @property
    def name(self) -> str:
        return self.source.name

    async def list_tools(self):
        if self.fail_listing:
            raise ToolSourceError(f"Tool source {self.name} is not connected")
        return [
            SimpleNamespace(name=name, description=f"{name} tool",
                            inputSchema={"type": "object", "properties": {"q": {"type": "string"}}})
            for name in self.tools
        ]

    async def call_tool(self, name, arguments):
        self.calls.append((name, arguments))
        if self.fail_calls:
            raise RuntimeError("server error")
        return {"content": [{"type": "text", "text": f"{name} ok"}], "isError": False}

    async def close(self):
        self.closed = True


def _factory(settings: dict[str, dict]):
    """Build connections from {source name: FakeConnection kwargs}."""
    connections = {}

    def factory(source):
        connection = FakeConnection(source, **settings.get(source.name, {}))
        connections[source.name] = connection
        return connection

    factory.connections = connections
    return factory


GITHUB = LocalToolSource(name="github", command="github-mcp-server")
DOCS = RemoteToolSource(name="docs", url="https://docs.example.com/mcp")


class TestLoadToolSources:
    """mcp.json parsing."""

    def test_missing_file_means_no_sources(self, tmp_path) -> None:
        """No config file, no tools."""
        assert load_tool_sources(tmp_path / "mcp.json") == []

    def test_merges_both_sections(self, tmp_path) -> None:
        """servers and mcpServers are merged; command is local, url is remote."""
        path = tmp_path / "mcp.json"
        path.write_text(json.dumps({
            "servers": {
                "github": {"command": "github-mcp-server", "args": ["stdio"], "env": {"TOKEN": "t"}},
            },
            "mcpServers": {
                "docs": {"url": "https://docs.example.com/mcp", "headers": {"Authorization": "Bearer x"}},
            },
        }))

        sources = {source.name: source for source in load_tool_sources(path)}

        assert sources["github"] == LocalToolSource("github", "github-mcp-server", ("stdio",), {"TOKEN": "t"})
        assert sources["docs"] == RemoteToolSource(
            "docs", "https://docs.example.com/mcp", {"Authorization": "Bearer x"}
        )

    @pytest.mark.parametrize("entry", [{}, {"command": "x", "url": "http://y"}, {"command": "x", "env": []}])
    def test_invalid_entries(self, entry) -> None:
        """An entry needs exactly one transport and string maps."""
        with pytest.raises(ValueError):
            parse_tool_source("bad", entry)

    def test_invalid_json(self, tmp_path) -> None:
        """A malformed file is a configuration error."""
        path = tmp_path / "mcp.json"
        path.write_text("{not json")

        with pytest.raises(ValueError):
            load_tool_sources(path)


class TestDiscovery:
    """Building the registry."""

    async def test_aggregates_all_sources(self) -> None:
        """Tools of every source end up in one registry."""
        registry = ToolRegistryClient(_factory({
            "github": {"tools": ["create_issue", "search_code"]},
            "docs": {"tools": ["search_docs"]},
        }))

        tools = await registry.discover([GITHUB, DOCS])

        assert {tool.name for tool in tools} == {"create_issue", "search_code", "search_docs"}
        assert sorted(registry.list_names()) == ["create_issue", "search_code", "search_docs"]

    async def test_source_failure_fails_discovery(self) -> None:
        """One unreachable source fails the whole step."""
        registry = ToolRegistryClient(_factory({
            "github": {"tools": ["create_issue"]},
            "docs": {"fail_listing": True},
        }))

        with pytest.raises(ToolSourceError):
            await registry.discover([GITHUB, DOCS])

        assert registry.list_names() == []

    async def test_name_collision_fails_discovery(self) -> None:
        """Two sources serving the same name is an error."""
        registry = ToolRegistryClient(_factory({
            "github": {"tools": ["search"]},
            "docs": {"tools": ["search"]},
        }))

        with pytest.raises(ToolSourceError, match="search"):
            await registry.discover([GITHUB, DOCS])

    @pytest.mark.parametrize("name", ["set_channel_directive", "update_channel_context"])
    async def test_builtin_name_fails_discovery(self, name) -> None:
        """A source may not serve a tool named like a built-in."""
        registry = ToolRegistryClient(_factory({"github": {"tools": ["create_issue", name]}}))

        with pytest.raises(ToolSourceError, match=name):
            await registry.discover([GITHUB])

        assert registry.list_names() == []
        assert registry.get_openai_tools() == []

    async def test_openai_tools(self) -> None:
        """Registered tools are offered as non-strict function tools."""
        registry = ToolRegistryClient(_factory({"github": {"tools": ["create_issue"]}}))
        await registry.discover([GITHUB])

        [tool] = registry.get_openai_tools()

        assert tool["type"] == "function"
        assert tool["name"] == "create_issue"
        assert tool["strict"] is False
        assert tool["parameters"]["properties"] == {"q": {"type": "string"}}

    def test_schema_defaults(self) -> None:
        """A tool without a schema still gets an object schema."""
        tool = RegisteredTool(name="ping", description=None, parameters={}, connection=None)

        assert tool.to_openai_tool()["parameters"] == {"type": "object", "properties": {}}


class TestInvocation:
    """Calling registered tools."""

    async def test_invoke_routes_to_owning_source(self) -> None:
        """The call goes to the source that serves the tool."""
        factory = _factory({
            "github": {"tools": ["create_issue"]},
            "docs": {"tools": ["search_docs"]},
        })
        registry = ToolRegistryClient(factory)
        await registry.discover([GITHUB, DOCS])

        result = await registry.invoke("search_docs", {"q": "deploy"})

        assert result["content"][0]["text"] == "search_docs ok"
        assert factory.connections["docs"].calls == [("search_docs", {"q": "deploy"})]
        assert factory.connections["github"].calls == []

    async def test_unknown_name(self) -> None:
        """Unknown names are rejected."""
        registry = ToolRegistryClient(_factory({}))

        with pytest.raises(UnknownToolError):
            await registry.invoke("nope", {})

    async def test_transport_failure(self) -> None:
        """Call failures surface as ToolInvocationError."""
        registry = ToolRegistryClient(_factory({"github": {"tools": ["create_issue"], "fail_calls": True}}))
        await registry.discover([GITHUB])

        with pytest.raises(ToolInvocationError):
            await registry.invoke("create_issue", {})

    async def test_close_closes_connections(self) -> None:
        """Every connection is closed on shutdown."""
        factory = _factory({"github": {"tools": ["create_issue"]}})
        registry = ToolRegistryClient(factory)
        await registry.discover([GITHUB])

        await registry.close()

        assert factory.connections["github"].closed


class BrokenSource:
    """A source whose process cannot be started."""

    name = "broken"

    async def open_transport(self, stack):
        raise OSError("command not found: broken-mcp-server")


class TestToolSourceConnection:
    """Connection lifecycle against a failing source."""

    async def test_unreachable_source_raises(self) -> None:
        """Listing an unreachable source raises ToolSourceError."""
        connection = ToolSourceConnection(BrokenSource())

        with pytest.raises(ToolSourceError, match="broken"):
            await connection.list_tools()

        await connection.close()

    async def test_discovery_reports_unreachable_source(self) -> None:
        """The real connection factory surfaces connect failures during discovery."""
        registry = ToolRegistryClient()

        with pytest.raises(ToolSourceError):
            await registry.discover([BrokenSource()])

        await registry.close()
