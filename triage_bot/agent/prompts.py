"""
Prompts and Tool Schemas
========================

Default system directives for the three agents, the fixed schemas of the
built-in tools, and the structured reply format the assistant must follow.

Every directive can be overridden from the environment (see
triage_bot.utils.config). The schemas cannot: the parser and dispatcher
depend on their exact shape.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from triage_bot.tools.client import ToolRegistryClient


SET_CHANNEL_DIRECTIVE = "set_channel_directive"
UPDATE_CHANNEL_CONTEXT = "update_channel_context"
BUILTIN_TOOL_NAMES = frozenset({SET_CHANNEL_DIRECTIVE, UPDATE_CHANNEL_CONTEXT})

# Substrings in the triggering message that unlock the built-in tools
TOOL_TRIGGER_KEYWORDS = ("remember", "directive")

NO_RELEVANT_MESSAGES = "No relevant messages found."


ASSISTANT_AGENT_SYSTEM_DIRECTIVE = """
# Prime Directive

You are a triage bot living in a chat channel (Slack). You watch the channel and
step in when you can help, usually in response to a new top-level message in a
technical support channel. You are not a human and you do not replace one: help
when you can, stay out of the way when you cannot.

When you respond to a message you should:
  (1) tag the on-call handle that the channel directive or context identifies,
  (2) summarize the issue in a sentence or two,
  (3) classify it as one of Bug, Feature, Question, Incident or Other,
  (4) link related threads when the message search results point at them,
  (5) use every other piece of context (web search results, channel context,
      thread history) to give a high-confidence recommendation: an answer, a doc,
      an incident channel, an existing issue,
  (6) ask clarifying questions when you are not sure,
  (7) say so when you cannot help, tagging whoever might be able to.

Some messages need no reply at all, such as announcements or chatter. Returning
`NoAction` for those is expected.

## Input

You receive the serialized chat event (JSON) that triggered you, preceded by
labeled sections: your user id, the channel directive, the channel context, the
thread history, web search results and message search results.

## Output

Respond with the structured JSON format you are given. For a reply, set `type`
to `ReplyToThread`, fill in `thread_ts` with the timestamp of the thread to reply
in, a `classification`, and the `message` (Slack markdown: bold, italics, links
and @-mentions are welcome). Otherwise set `type` to `NoAction` and leave the
other fields null.

If you call a tool, you will receive its result and can then write your reply.
"""


ASSISTANT_AGENT_MENTION_DIRECTIVE = """
# @-mention Directive

Sometimes you are @-mentioned inside a thread rather than reacting to a
top-level message. Help as best you can, and say so if you cannot.

Sometimes the mention asks you to change how you operate in this channel:

- "please remember that ...", "note that ...": call `update_channel_context`.
  The note is added to what you know about the channel.
- "update your directive ...", "from now on in this channel ...": call
  `set_channel_directive`. This replaces your standing instructions for the
  channel.

The distinction is subtle but important; ask a clarifying question if unsure.
These tools do not message the user, so always follow up with a reply that
confirms what you stored.
"""


SEARCH_AGENT_SYSTEM_DIRECTIVE = """
# Web Search Agent

You support a triage bot in a chat channel. Given the triggering message and its
channel and thread context, search the web for information that would help
answer or triage it: documentation, known issues, release notes, status pages,
error message explanations.

Respond with a concise plain-text summary of your findings, including source
links. If nothing useful turns up, or the message does not need outside
information, respond with "No relevant web results."
"""


MESSAGE_SEARCH_AGENT_SYSTEM_DIRECTIVE = """
# Message Search Agent

You support a triage bot in a chat channel. Given the triggering message and its
channel and thread context, choose keywords to search the channel's message
history for related past discussions: error messages, service names, feature
names, ticket ids, distinctive terms.

Respond with ONLY a comma-separated list of keywords, at most ten, most
important first, for example:

deploy, timeout, payments-api, 504

If the message is not worth searching for, respond with an empty string.
"""


# ==============================================================================
# Tool Schemas
# ==============================================================================

def _note_tool(name: str, description: str, message_description: str) -> dict:
    return {
        "type": "function",
        "name": name,
        "description": description,
        "parameters": {
            "type": "object",
            "properties": {
                "message": {"type": "string", "description": message_description},
            },
            "required": ["message"],
            "additionalProperties": False,
        },
        "strict": True,
    }


def build_builtin_tools() -> tuple[dict, ...]:
    """
    Build the definitions of the two state-mutating built-in tools.

    Returns:
        Function tool definitions in the OpenAI Responses format
    """
    return (
        _note_tool(
            SET_CHANNEL_DIRECTIVE,
            "Replace the channel directive, your standing instructions for this channel. "
            "Only call this when the user explicitly asks you to update or set your directive. "
            "Almost always the user just wants a reply and this tool must not be called. "
            "The directive is provided to you on every subsequent request.",
            "What you understood from the user's request to change the channel directive. "
            "Stored together with the user's message. Slack markdown is allowed. "
            "This is not shown to the user, so also reply to them.",
        ),
        _note_tool(
            UPDATE_CHANNEL_CONTEXT,
            "Add to what you know about this channel. Only call this when the user explicitly asks "
            "you to remember something or to update your channel context. "
            "Almost always the user just wants a reply and this tool must not be called.",
            "What you want to remember from the user's message. Stored together with the user's "
            "message. This is not shown to the user, so also reply to them.",
        ),
    )


def build_web_search_tools() -> tuple[dict, ...]:
    """Tools offered to the web search helper."""
    return ({"type": "web_search_preview"},)


def build_reply_format() -> dict:
    """
    Build the strict JSON schema every assistant reply must follow.

    Returns:
        The `text.format` value for the OpenAI Responses API
    """
    return {
        "type": "json_schema",
        "name": "TriageBotResponse",
        "description": "Format for triage bot responses.",
        "schema": {
            "type": "object",
            "properties": {
                "type": {
                    "type": "string",
                    "enum": ["NoAction", "ReplyToThread"],
                },
                "thread_ts": {"type": ["string", "null"]},
                "classification": {
                    "type": ["string", "null"],
                    "enum": ["Bug", "Feature", "Question", "Incident", "Other", None],
                },
                "message": {"type": ["string", "null"]},
            },
            "required": ["type", "thread_ts", "classification", "message"],
            "additionalProperties": False,
        },
        "strict": True,
    }


TEXT_FORMAT = {"type": "text"}


@dataclass(frozen=True)
class ToolSchemas:
    """
    Immutable tool and format definitions shared by one engine.

    Built once when the engine is constructed and passed to the
    components that need them.
    """
    builtin_tools: tuple[dict, ...]
    web_search_tools: tuple[dict, ...]
    reply_format: dict

    @classmethod
    def build(cls) -> "ToolSchemas":
        return cls(
            builtin_tools=build_builtin_tools(),
            web_search_tools=build_web_search_tools(),
            reply_format=build_reply_format(),
        )


class ToolPolicy:
    """
    Decides which tools the assistant model is offered for a message.

    Registry (MCP) tools are always offered. The built-in tools mutate
    channel state, so they are only offered when the triggering message
    mentions one of the trigger keywords ("remember", "directive");
    otherwise the model tends to update its context on its own.

    Example:
        policy = ToolPolicy(schemas, registry)
        tools = policy.offered_tools('{"text": "please remember ..."}')
    """

    def __init__(
        self,
        schemas: ToolSchemas,
        registry: "ToolRegistryClient | None" = None,
        keywords: tuple[str, ...] = TOOL_TRIGGER_KEYWORDS
    ):
        self.schemas = schemas
        self.registry = registry
        self.keywords = tuple(keyword.lower() for keyword in keywords)

    def allows_builtins(self, user_message: str) -> bool:
        """Check whether a message unlocks the built-in tools."""
        text = user_message.lower()
        return any(keyword in text for keyword in self.keywords)

    def offered_tools(self, user_message: str) -> list[dict]:
        """
        Get the tool definitions to send with the assistant request.

        Args:
            user_message: The serialized triggering event

        Returns:
            Built-ins (when unlocked) followed by every registry tool
        """
        tools: list[dict] = []
        if self.allows_builtins(user_message):
            tools.extend(self.schemas.builtin_tools)
        if self.registry is not None:
            tools.extend(self.registry.get_openai_tools())
        return tools
