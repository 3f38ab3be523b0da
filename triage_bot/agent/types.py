"""
Agent Types
===========

Shared types for the orchestration engine.

Actions are the closed set of outcomes a single assistant turn can
produce. Tool-shaped actions (SetDirective, AppendContext, InvokeTool)
carry the provider's call_id so their results can be fed back to the
model; a Reply terminates its branch and carries none.

    NoAction       the model decided not to respond
    Reply          post a classified reply in a thread
    SetDirective   replace the channel directive
    AppendContext  record a new fact about the channel
    InvokeTool     call a tool discovered from an MCP source
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union


class Classification(str, Enum):
    """Triage classification of a reply; each maps to a Slack reaction."""
    BUG = "Bug"
    FEATURE = "Feature"
    QUESTION = "Question"
    INCIDENT = "Incident"
    OTHER = "Other"

    @property
    def emoji(self) -> str:
        """The reaction name added to the triggering message."""
        return _CLASSIFICATION_EMOJI[self]


_CLASSIFICATION_EMOJI = {
    Classification.BUG: "bug",
    Classification.FEATURE: "bulb",
    Classification.QUESTION: "question",
    Classification.INCIDENT: "warning",
    Classification.OTHER: "grey_question",
}


@dataclass(frozen=True)
class NoAction:
    """The model chose not to act on the message."""


@dataclass(frozen=True)
class Reply:
    """Reply in a thread with a classification."""
    thread_id: str | None
    classification: Classification
    message: str


@dataclass(frozen=True)
class SetDirective:
    """Replace the channel directive with new notes."""
    call_id: str
    notes: str


@dataclass(frozen=True)
class AppendContext:
    """Append a context entry to the channel."""
    call_id: str
    notes: str


@dataclass(frozen=True)
class InvokeTool:
    """Invoke a registered (MCP) tool."""
    call_id: str
    tool_name: str
    arguments: dict[str, Any] = field(default_factory=dict)


Action = Union[NoAction, Reply, SetDirective, AppendContext, InvokeTool]


@dataclass(frozen=True)
class HelperContext:
    """
    The sub-context handed to both helper agents.

    Attributes:
        user_message: The serialized triggering event
        bot_user_id: The bot's own user id
        channel_id: Channel the event came from
        channel_directive: Serialized current directive
        channel_context: Serialized context entries
        thread_context: Serialized thread history
    """
    user_message: str
    bot_user_id: str
    channel_id: str
    channel_directive: str
    channel_context: str
    thread_context: str


@dataclass
class CompiledContext:
    """
    Everything the assistant agent sees for one inbound event.

    Built fresh by the ContextCompiler for every event and owned by the
    orchestration call that created it; never persisted.

    Attributes:
        user_message: The serialized triggering event
        raw_event: The triggering event itself (stored with directives/context)
        bot_user_id: The bot's own user id
        channel_id: Channel the event came from
        thread_id: Thread to reply in
        channel_directive: Serialized current directive
        channel_context: Serialized context entries
        thread_context: Serialized thread history
        web_search_context: Findings of the web search helper
        message_search_context: Findings of the message search helper
        tools: Tool definitions offered to the assistant model
    """
    user_message: str
    raw_event: dict[str, Any]
    bot_user_id: str
    channel_id: str
    thread_id: str
    channel_directive: str
    channel_context: str
    thread_context: str
    web_search_context: str
    message_search_context: str
    tools: list[dict] = field(default_factory=list)


@dataclass(frozen=True)
class Decision:
    """
    What the dispatch callback wants the assistant loop to do next.

    A terminal decision ends the loop. A decision with a follow-up payload
    sends it to the model as the next input, chained to the previous
    response.
    """
    follow_up: list[dict] | None = None

    @classmethod
    def terminal(cls) -> "Decision":
        return cls()

    @classmethod
    def continue_with(cls, payload: list[dict]) -> "Decision":
        if not payload:
            raise ValueError("A continuing decision needs a non-empty payload")
        return cls(follow_up=list(payload))

    @property
    def is_terminal(self) -> bool:
        return not self.follow_up
