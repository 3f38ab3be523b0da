"""
MCP Tools
=========

Tools the assistant agent can call, discovered at startup from external
Model Context Protocol (MCP) servers ("tool sources").

Tool Sources:
    A source is either a local process spoken to over stdio, or a remote
    server spoken to over streamable HTTP. Sources are listed in an
    mcp.json file in the format most MCP clients use:

        {
            "mcpServers": {
                "github": {
                    "command": "github-mcp-server",
                    "args": ["stdio"],
                    "env": {"GITHUB_TOKEN": "ghp_..."}
                },
                "docs": {
                    "url": "https://docs.example.com/mcp",
                    "headers": {"Authorization": "Bearer ..."}
                }
            }
        }

    Both the "servers" and "mcpServers" keys are read and merged.

How Tools Work:
    1. At startup every source is connected and its tools are listed
    2. Each tool is offered to the assistant as an OpenAI function tool
    3. When the assistant calls one, the call goes to the source serving it
    4. The result is fed back to the assistant

This module provides the data model and configuration loading; the
connections and the registry live in triage_bot.tools.client.
"""

import json
import os
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

from mcp import StdioServerParameters
from mcp.client.stdio import stdio_client
from mcp.client.streamable_http import streamablehttp_client

from triage_bot.utils.logger import Logger

if TYPE_CHECKING:
    from triage_bot.tools.client import ToolSourceConnection

logger = Logger("Tools")


@dataclass(frozen=True)
class LocalToolSource:
    """
    An MCP server started as a subprocess and spoken to over stdio.

    Attributes:
        name: Source name (the key in mcp.json)
        command: Executable to run
        args: Command line arguments
        env: Extra environment variables for the process
    """
    name: str
    command: str
    args: tuple[str, ...] = ()
    env: dict[str, str] = field(default_factory=dict)

    async def open_transport(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        """
        Start the process and open its stdio streams.

        Args:
            stack: Owns the transport; closing it stops the process

        Returns:
            (read_stream, write_stream)
        """
        params = StdioServerParameters(
            command=self.command,
            args=list(self.args),
            env={**os.environ, **self.env} if self.env else None,
        )
        read, write = await stack.enter_async_context(stdio_client(params))
        return read, write


@dataclass(frozen=True)
class RemoteToolSource:
    """
    An MCP server reached over streamable HTTP.

    Attributes:
        name: Source name (the key in mcp.json)
        url: Endpoint URL
        headers: Static headers sent with every request (e.g. auth)
    """
    name: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)

    async def open_transport(self, stack: AsyncExitStack) -> tuple[Any, Any]:
        """
        Open the HTTP transport.

        Args:
            stack: Owns the transport; closing it ends the HTTP session

        Returns:
            (read_stream, write_stream)
        """
        read, write, _ = await stack.enter_async_context(
            streamablehttp_client(self.url, headers=self.headers or None)
        )
        return read, write


ToolSource = Union[LocalToolSource, RemoteToolSource]


@dataclass
class RegisteredTool:
    """
    A tool discovered from a source.

    Attributes:
        name: Tool name, unique across all sources
        description: What the tool does (shown to the model)
        parameters: JSON Schema of the arguments
        connection: Connection to the source that serves the tool
    """
    name: str
    description: str | None
    parameters: dict[str, Any]
    connection: "ToolSourceConnection"

    def to_openai_tool(self) -> dict:
        """
        Convert to an OpenAI Responses function tool.

        MCP schemas are not written for strict mode, so strict is off.

        Returns:
            Function tool definition
        """
        parameters = dict(self.parameters or {})
        parameters.setdefault("type", "object")
        parameters.setdefault("properties", {})

        return {
            "type": "function",
            "name": self.name,
            "description": self.description or "",
            "parameters": parameters,
            "strict": False,
        }


def _string_map(value: Any, source: str, key: str) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"Tool source {source}: '{key}' must be an object")
    return {str(k): str(v) for k, v in value.items()}


def parse_tool_source(name: str, entry: dict[str, Any]) -> ToolSource:
    """
    Build a tool source from one mcp.json entry.

    Args:
        name: Source name
        entry: The entry's configuration

    Returns:
        LocalToolSource if the entry has a command, RemoteToolSource if it has a url

    Raises:
        ValueError: If the entry has neither, or both
    """
    if not isinstance(entry, dict):
        raise ValueError(f"Tool source {name}: entry must be an object")

    command = entry.get("command")
    url = entry.get("url")

    if command and url:
        raise ValueError(f"Tool source {name}: set either 'command' or 'url', not both")

    if command:
        return LocalToolSource(
            name=name,
            command=str(command),
            args=tuple(str(arg) for arg in entry.get("args") or ()),
            env=_string_map(entry.get("env"), name, "env"),
        )

    if url:
        return RemoteToolSource(
            name=name,
            url=str(url),
            headers=_string_map(entry.get("headers"), name, "headers"),
        )

    raise ValueError(f"Tool source {name}: missing 'command' or 'url'")


def load_tool_sources(path: Path) -> list[ToolSource]:
    """
    Load tool sources from an mcp.json file.

    Args:
        path: Path to the file

    Returns:
        The configured sources; empty if the file does not exist

    Raises:
        ValueError: If the file is malformed
    """
    path = Path(path)
    if not path.exists():
        logger.info(f"No tool source config at {path}")
        return []

    with path.open() as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in {path}: {e}") from e

    if not isinstance(data, dict):
        raise ValueError(f"{path} must contain a JSON object")

    entries: dict[str, Any] = {}
    for key in ("servers", "mcpServers"):
        section = data.get(key) or {}
        if not isinstance(section, dict):
            raise ValueError(f"'{key}' in {path} must be an object")
        entries.update(section)

    sources = [parse_tool_source(name, entry) for name, entry in entries.items()]
    logger.info(f"Loaded {len(sources)} tool sources from {path}")
    return sources


__all__ = [
    "LocalToolSource",
    "RemoteToolSource",
    "ToolSource",
    "RegisteredTool",
    "parse_tool_source",
    "load_tool_sources",
]
