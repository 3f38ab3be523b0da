"""
Tool Registry Client
====================

Connects to MCP tool sources, discovers their tools and invokes them.

Connections:
    Each source gets one ToolSourceConnection, opened on first use and
    kept for the process lifetime. The MCP session is owned by a single
    long-lived task:

        owner task: open transport → initialize session → ready → wait for close
        callers:    await ready → session.list_tools() / session.call_tool()

    Any number of concurrent events can share the session, and closing it
    happens in the task that opened it, which the transports require.

Registry:
    discover() connects to every source concurrently and builds one flat
    registry keyed by tool name. Discovery is all-or-nothing: a source
    that fails, or a tool name served by two sources, fails it.
"""

import asyncio
from contextlib import AsyncExitStack
from typing import Any, Callable, Iterable

from mcp import ClientSession

from triage_bot.agent.prompts import BUILTIN_TOOL_NAMES
from triage_bot.errors import ToolInvocationError, ToolSourceError, UnknownToolError
from triage_bot.tools import RegisteredTool, ToolSource
from triage_bot.utils.logger import Logger

logger = Logger("ToolRegistry")


class ToolSourceConnection:
    """
    Lazily opened, shared MCP session with one tool source.

    Example:
        connection = ToolSourceConnection(LocalToolSource("github", "github-mcp-server"))
        tools = await connection.list_tools()
        result = await connection.call_tool("create_issue", {"title": "..."})
        await connection.close()
    """

    def __init__(self, source: ToolSource):
        self.source = source
        self._session: ClientSession | None = None
        self._error: BaseException | None = None
        self._task: asyncio.Task | None = None
        self._ready = asyncio.Event()
        self._closing = asyncio.Event()
        self._start_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.source.name

    async def _run(self) -> None:
        """Owner task: open the session, then hold it until close()."""
        try:
            async with AsyncExitStack() as stack:
                read, write = await self.source.open_transport(stack)
                session = await stack.enter_async_context(ClientSession(read, write))
                await session.initialize()

                self._session = session
                self._ready.set()
                logger.info(f"Connected to tool source {self.name}")

                await self._closing.wait()
        except Exception as e:
            self._error = e
            logger.error(f"Tool source {self.name} connection failed", e)
        finally:
            self._session = None
            self._ready.set()

    async def _get_session(self) -> ClientSession:
        async with self._start_lock:
            if self._task is None:
                self._task = asyncio.create_task(self._run(), name=f"mcp-{self.name}")

        await self._ready.wait()

        if self._session is None:
            raise ToolSourceError(
                f"Tool source {self.name} is not connected: {self._error!r}"
            ) from self._error
        return self._session

    async def list_tools(self) -> list[Any]:
        """
        List every tool the source serves, following pagination cursors.

        Returns:
            MCP Tool objects

        Raises:
            ToolSourceError: If the source cannot be reached
        """
        session = await self._get_session()

        tools: list[Any] = []
        cursor: str | None = None
        while True:
            result = await session.list_tools(cursor=cursor)
            tools.extend(result.tools)
            cursor = result.nextCursor
            if not cursor:
                break

        logger.debug(f"Tool source {self.name} serves {len(tools)} tools")
        return tools

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Call a tool on this source.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            The MCP result as JSON (content, isError, structuredContent)
        """
        session = await self._get_session()
        result = await session.call_tool(name, arguments)
        return result.model_dump(mode="json", exclude_none=True)

    async def close(self) -> None:
        """Close the session and stop the owner task."""
        if self._task is None:
            return
        self._closing.set()
        await self._task
        self._task = None
        logger.debug(f"Closed tool source {self.name}")


class ToolRegistryClient:
    """
    Registry of tools discovered from MCP sources.

    Example:
        registry = ToolRegistryClient()
        await registry.discover(load_tool_sources(Path("mcp.json")))

        registry.get_openai_tools()   # offered to the assistant
        result = await registry.invoke("create_issue", {"title": "Login broken"})

        await registry.close()
    """

    def __init__(
        self,
        connection_factory: Callable[[ToolSource], ToolSourceConnection] = ToolSourceConnection
    ):
        """
        Initialize an empty registry.

        Args:
            connection_factory: Builds the connection for a source
        """
        self._connection_factory = connection_factory
        self._connections: list[ToolSourceConnection] = []
        self._tools: dict[str, RegisteredTool] = {}

    async def _list_source(self, connection: ToolSourceConnection) -> list[RegisteredTool]:
        try:
            tools = await connection.list_tools()
        except ToolSourceError:
            raise
        except Exception as e:
            raise ToolSourceError(f"Failed to list tools of {connection.name}: {e}") from e

        return [
            RegisteredTool(
                name=tool.name,
                description=getattr(tool, "description", None),
                parameters=dict(getattr(tool, "inputSchema", None) or {}),
                connection=connection,
            )
            for tool in tools
        ]

    async def discover(self, sources: Iterable[ToolSource]) -> list[RegisteredTool]:
        """
        Connect to every source and register its tools.

        Args:
            sources: Tool sources to connect to

        Returns:
            All registered tools

        Raises:
            ToolSourceError: If any source failed, a tool shadows a built-in
                tool, or two sources serve the same tool name
        """
        connections = [self._connection_factory(source) for source in sources]
        self._connections.extend(connections)

        listed = await asyncio.gather(*(self._list_source(c) for c in connections))

        registry: dict[str, RegisteredTool] = dict(self._tools)
        for tools in listed:
            for tool in tools:
                if tool.name in BUILTIN_TOOL_NAMES:
                    raise ToolSourceError(
                        f"Tool {tool.name} from {tool.connection.name} shadows a built-in tool"
                    )
                existing = registry.get(tool.name)
                if existing is not None:
                    raise ToolSourceError(
                        f"Tool {tool.name} is served by both {existing.connection.name} "
                        f"and {tool.connection.name}"
                    )
                registry[tool.name] = tool

        self._tools = registry
        logger.info(
            f"Discovered {len(self._tools)} tools from {len(connections)} sources",
            {"tools": self.list_names()},
        )
        return list(self._tools.values())

    def list_names(self) -> list[str]:
        """Get all registered tool names."""
        return list(self._tools.keys())

    def get_openai_tools(self) -> list[dict]:
        """Get every registered tool as an OpenAI function tool."""
        return [tool.to_openai_tool() for tool in self._tools.values()]

    async def invoke(self, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        """
        Invoke a registered tool.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            The tool result as JSON

        Raises:
            UnknownToolError: If no source serves the tool
            ToolInvocationError: If the call failed
        """
        tool = self._tools.get(name)
        if tool is None:
            raise UnknownToolError(name)

        logger.info(f"Invoking {name} on {tool.connection.name}")

        try:
            return await tool.connection.call_tool(name, arguments)
        except Exception as e:
            raise ToolInvocationError(f"Tool {name} failed: {e}") from e

    async def close(self) -> None:
        """Close every source connection."""
        for connection in self._connections:
            try:
                await connection.close()
            except Exception as e:
                logger.warning(f"Error closing tool source {connection.name}: {e}")
        self._connections.clear()
