"""
Storage Module
==============

Per-channel state kept by the triage bot:

    Channel
    ├── directive   ChannelDirective   replaced wholesale, never appended
    ├── context     [ChannelContextEntry, ...]   append-only, by creation time
    └── messages    [raw Slack events, ...]      searched by the message search agent

A directive always exists once a channel has been referenced: the first
reference creates it with an "unset" placeholder the assistant can see
and reason about.

The ChannelStore contract is what the orchestration engine depends on.
JsonChannelStore (json_store.py) is the production implementation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

UNSET_DIRECTIVE_MESSAGE = {"ignore": "Channel directive has not been set yet."}
UNSET_DIRECTIVE_NOTES = "No notes."


@dataclass
class ChannelDirective:
    """
    The standing instructions for one channel.

    Attributes:
        user_message: The raw event that asked for the directive
        notes: The assistant's understanding of the request
    """
    user_message: dict[str, Any]
    notes: str

    @classmethod
    def unset(cls) -> "ChannelDirective":
        """The placeholder stored before anyone sets a directive."""
        return cls(user_message=dict(UNSET_DIRECTIVE_MESSAGE), notes=UNSET_DIRECTIVE_NOTES)

    def to_dict(self) -> dict:
        return {"user_message": self.user_message, "notes": self.notes}

    @classmethod
    def from_dict(cls, data: dict) -> "ChannelDirective":
        return cls(user_message=data.get("user_message", {}), notes=data.get("notes", ""))


@dataclass
class ChannelContextEntry:
    """
    One fact recorded about a channel.

    Attributes:
        user_message: The raw event that asked to remember something
        notes: What the assistant decided to remember
        created_at: When the entry was recorded (UTC, ISO 8601)
    """
    user_message: dict[str, Any]
    notes: str
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return {
            "user_message": self.user_message,
            "notes": self.notes,
            "created_at": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ChannelContextEntry":
        return cls(
            user_message=data.get("user_message", {}),
            notes=data.get("notes", ""),
            created_at=data.get("created_at", ""),
        )


@dataclass
class Channel:
    """A channel and its current directive."""
    channel_id: str
    directive: ChannelDirective


class ChannelStore(ABC):
    """
    Storage contract for channel directives, context and message history.

    Implementations must be safe to call from concurrent tasks. No
    per-channel ordering is promised: concurrent writers race and the
    last write wins.
    """

    @abstractmethod
    async def get_or_create_channel(self, channel_id: str) -> Channel:
        """Get a channel, creating it with the unset directive if needed."""

    @abstractmethod
    async def update_directive(self, channel_id: str, directive: ChannelDirective) -> None:
        """Replace the channel's directive."""

    @abstractmethod
    async def append_context(self, channel_id: str, entry: ChannelContextEntry) -> None:
        """Append a context entry to the channel."""

    @abstractmethod
    async def get_context(self, channel_id: str) -> str:
        """Get the channel's context entries, oldest first, serialized as JSON."""

    @abstractmethod
    async def append_message(self, channel_id: str, message: dict[str, Any]) -> None:
        """Record a raw message event for later search."""

    @abstractmethod
    async def search_messages(self, channel_id: str, terms: str) -> str:
        """
        Search the channel's messages.

        Args:
            channel_id: Channel to search
            terms: Comma-separated search terms (matched with OR semantics)

        Returns:
            Matching messages, best first, serialized as JSON
        """


from triage_bot.storage.json_store import JsonChannelStore  # noqa: E402

__all__ = [
    "UNSET_DIRECTIVE_MESSAGE",
    "UNSET_DIRECTIVE_NOTES",
    "ChannelDirective",
    "ChannelContextEntry",
    "Channel",
    "ChannelStore",
    "JsonChannelStore",
]
