"""
JSON Channel Store
==================

File-backed ChannelStore: two files per channel under the data directory.

    data/
    └── channels/
        ├── C0123ABCD.json             directive and context entries
        └── C0123ABCD.messages.jsonl   raw message events, one per line

The JSON document is small; it is cached in memory on first access and
rewritten after every change. Message events are only ever appended to
the JSONL file and read back when searching. Each channel has its own
asyncio.Lock and the file I/O runs in a worker thread, so the event loop
is never blocked on disk.

Message Search:
    Terms are matched case-insensitively against each message's text.

    score(message) = sum(occurrences of term in text for term in terms)

    Any term may match (OR semantics); messages scoring 0 are dropped. The
    best MAX_SEARCH_RESULTS messages are returned, highest score first.
"""

import asyncio
import json
import re
from pathlib import Path
from typing import Any

from triage_bot.storage import Channel, ChannelContextEntry, ChannelDirective, ChannelStore
from triage_bot.utils.logger import Logger

logger = Logger("JsonChannelStore")

MAX_SEARCH_RESULTS = 50

# Slack ids are alphanumeric; anything else is not safe in a file name
_UNSAFE_ID_CHARS = re.compile(r"[^A-Za-z0-9_-]")


def split_terms(terms: str) -> list[str]:
    """
    Split a comma-separated term list, dropping empty terms.

    Args:
        terms: e.g. "deploy, timeout, ,504"

    Returns:
        e.g. ["deploy", "timeout", "504"]
    """
    return [term.strip() for term in terms.split(",") if term.strip()]


def score_message(text: str, terms: list[str]) -> int:
    """
    Score a message text against search terms.

    Args:
        text: Message text
        terms: Cleaned search terms

    Returns:
        Total case-insensitive occurrences of all terms
    """
    haystack = text.lower()
    return sum(haystack.count(term.lower()) for term in terms)


def rank_messages(
    messages: list[dict[str, Any]],
    terms: list[str],
    limit: int = MAX_SEARCH_RESULTS
) -> list[dict[str, Any]]:
    """
    Rank messages by term score.

    Args:
        messages: Raw message events
        terms: Cleaned search terms
        limit: Maximum number of results

    Returns:
        Matching messages, highest score first; ties keep insertion order
    """
    scored = []
    for message in messages:
        score = score_message(str(message.get("text", "")), terms)
        if score > 0:
            scored.append((score, message))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [message for _, message in scored[:limit]]


class JsonChannelStore(ChannelStore):
    """
    ChannelStore persisted as JSON files.

    Example:
        store = JsonChannelStore(Path("data"))

        channel = await store.get_or_create_channel("C123")
        await store.append_message("C123", {"text": "deploy failed", "ts": "1.0"})
        results = await store.search_messages("C123", "deploy, failed")
    """

    def __init__(self, data_dir: Path):
        """
        Initialize the store.

        Args:
            data_dir: Root data directory; channel files live in data_dir/channels
        """
        self.channels_dir = Path(data_dir) / "channels"
        self.channels_dir.mkdir(parents=True, exist_ok=True)

        self._channels: dict[str, dict[str, Any]] = {}
        self._locks: dict[str, asyncio.Lock] = {}

        logger.info(f"Channel store initialized at {self.channels_dir}")

    def _stem(self, channel_id: str) -> str:
        return _UNSAFE_ID_CHARS.sub("_", channel_id)

    def _path(self, channel_id: str) -> Path:
        return self.channels_dir / f"{self._stem(channel_id)}.json"

    def _messages_path(self, channel_id: str) -> Path:
        return self.channels_dir / f"{self._stem(channel_id)}.messages.jsonl"

    def _lock(self, channel_id: str) -> asyncio.Lock:
        return self._locks.setdefault(channel_id, asyncio.Lock())

    # ==========================================================================
    # Sync file helpers (run in a worker thread)
    # ==========================================================================

    def _read_sync(self, path: Path) -> dict[str, Any] | None:
        if not path.exists():
            return None
        with path.open() as f:
            return json.load(f)

    def _write_sync(self, path: Path, data: dict[str, Any]) -> None:
        tmp_path = path.with_suffix(".json.tmp")
        with tmp_path.open("w") as f:
            json.dump(data, f, indent=2)
        tmp_path.replace(path)

    def _append_message_sync(self, path: Path, message: dict[str, Any]) -> None:
        with path.open("a") as f:
            f.write(json.dumps(message) + "\n")

    def _read_messages_sync(self, path: Path) -> list[dict[str, Any]]:
        if not path.exists():
            return []
        with path.open() as f:
            return [json.loads(line) for line in f if line.strip()]

    # ==========================================================================
    # Internal state (callers hold the channel's lock)
    # ==========================================================================

    async def _load(self, channel_id: str) -> dict[str, Any]:
        """Get a channel document, creating it with the unset directive if needed."""
        data = self._channels.get(channel_id)
        if data is not None:
            return data

        path = self._path(channel_id)
        data = await asyncio.to_thread(self._read_sync, path)

        if data is None:
            data = {
                "channel_id": channel_id,
                "directive": ChannelDirective.unset().to_dict(),
                "context": [],
            }
            await asyncio.to_thread(self._write_sync, path, data)
            logger.info(f"Created channel {channel_id}")

        self._channels[channel_id] = data
        return data

    async def _save(self, channel_id: str) -> None:
        await asyncio.to_thread(self._write_sync, self._path(channel_id), self._channels[channel_id])

    # ==========================================================================
    # ChannelStore
    # ==========================================================================

    async def get_or_create_channel(self, channel_id: str) -> Channel:
        async with self._lock(channel_id):
            data = await self._load(channel_id)
            return Channel(
                channel_id=channel_id,
                directive=ChannelDirective.from_dict(data["directive"]),
            )

    async def update_directive(self, channel_id: str, directive: ChannelDirective) -> None:
        async with self._lock(channel_id):
            data = await self._load(channel_id)
            data["directive"] = directive.to_dict()
            await self._save(channel_id)
        logger.info(f"Updated directive for channel {channel_id}")

    async def append_context(self, channel_id: str, entry: ChannelContextEntry) -> None:
        async with self._lock(channel_id):
            data = await self._load(channel_id)
            data["context"].append(entry.to_dict())
            await self._save(channel_id)
        logger.info(f"Appended context to channel {channel_id}")

    async def get_context(self, channel_id: str) -> str:
        async with self._lock(channel_id):
            data = await self._load(channel_id)
            return json.dumps(list(data["context"]))

    async def append_message(self, channel_id: str, message: dict[str, Any]) -> None:
        async with self._lock(channel_id):
            await asyncio.to_thread(self._append_message_sync, self._messages_path(channel_id), message)
        logger.debug(f"Stored message in channel {channel_id}")

    async def search_messages(self, channel_id: str, terms: str) -> str:
        cleaned = split_terms(terms)
        if not cleaned:
            return json.dumps([])

        async with self._lock(channel_id):
            messages = await asyncio.to_thread(self._read_messages_sync, self._messages_path(channel_id))

        results = rank_messages(messages, cleaned)
        logger.debug(
            f"Search in {channel_id} for {cleaned} matched {len(results)} messages"
        )
        return json.dumps(results)
