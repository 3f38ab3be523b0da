"""
Response Parsing
================

Turns a Responses API result into typed actions.

Output items are walked in order:

    message          output_text  → NoAction / Reply (structured JSON), else plain text
                     refusal      → ModelRefusalError
    function_call    set_channel_directive   → SetDirective
                     update_channel_context  → AppendContext
                     <registered tool>       → InvokeTool
                     <anything else>         → UnknownToolError
    web_search_call  logged
    reasoning        skipped

Unknown tool names fail closed: an action nobody can execute is an error,
never silently dropped.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from triage_bot.agent.prompts import BUILTIN_TOOL_NAMES, SET_CHANNEL_DIRECTIVE, UPDATE_CHANNEL_CONTEXT
from triage_bot.agent.types import (
    Action,
    AppendContext,
    Classification,
    InvokeTool,
    NoAction,
    Reply,
    SetDirective,
)
from triage_bot.errors import ModelRefusalError, ResponseParseError, UnknownToolError
from triage_bot.utils.logger import Logger

logger = Logger("Parser")

REPLY_TYPE_NO_ACTION = "NoAction"
REPLY_TYPE_REPLY = "ReplyToThread"


@dataclass
class ParsedOutput:
    """
    Result of parsing one model response.

    Attributes:
        actions: Actions in output order
        texts: Free text that was not a structured reply
    """
    actions: list[Action] = field(default_factory=list)
    texts: list[str] = field(default_factory=list)


def _decode_arguments(name: str, raw: Any) -> dict[str, Any]:
    """Decode function call arguments into a JSON object."""
    if isinstance(raw, dict):
        return raw

    try:
        decoded = json.loads(raw or "{}")
    except (TypeError, json.JSONDecodeError) as e:
        raise ResponseParseError(f"Arguments of {name} are not valid JSON: {e}") from e

    if not isinstance(decoded, dict):
        raise ResponseParseError(f"Arguments of {name} must be a JSON object")
    return decoded


def _builtin_notes(name: str, arguments: dict[str, Any]) -> str:
    message = arguments.get("message")
    if not isinstance(message, str):
        raise ResponseParseError(f"{name} requires a string 'message' argument")
    return message


def _structured_action(text: str) -> Action | None:
    """
    Decode a structured assistant reply.

    Returns:
        NoAction or Reply, or None if the text is not a valid structured reply
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        return None

    if not isinstance(data, dict):
        return None

    reply_type = data.get("type")

    if reply_type == REPLY_TYPE_NO_ACTION:
        return NoAction()

    if reply_type == REPLY_TYPE_REPLY:
        message = data.get("message")
        if not isinstance(message, str) or not message:
            return None

        classification = data.get("classification")
        try:
            parsed_classification = Classification(classification) if classification else Classification.OTHER
        except ValueError:
            logger.warning(f"Unknown classification {classification!r}, using Other")
            parsed_classification = Classification.OTHER

        return Reply(
            thread_id=data.get("thread_ts") or None,
            classification=parsed_classification,
            message=message,
        )

    return None


class ResponseParser:
    """
    Parses model responses into actions.

    Args:
        tool_names: Returns the names currently served by the tool registry.
            Called per parse so tools discovered later are recognized.

    Example:
        parser = ResponseParser(lambda: registry.list_names())
        parsed = parser.parse(response)
        for action in parsed.actions:
            ...
    """

    def __init__(self, tool_names: Callable[[], Iterable[str]] = lambda: ()):
        self._tool_names = tool_names

    def parse(self, response: Any) -> ParsedOutput:
        """
        Parse a response.

        Args:
            response: Responses API result (object with an `output` list)

        Returns:
            ParsedOutput with actions and leftover text

        Raises:
            ModelRefusalError: If the model refused
            UnknownToolError: If a function call names an unknown tool
            ResponseParseError: If function call arguments are malformed
        """
        parsed = ParsedOutput()
        registered = set(self._tool_names())

        for item in getattr(response, "output", None) or []:
            item_type = getattr(item, "type", None)

            if item_type == "message":
                self._parse_message(item, parsed)

            elif item_type == "function_call":
                parsed.actions.append(self._parse_function_call(item, registered))

            elif item_type == "web_search_call":
                logger.debug(f"Web search call: {getattr(item, 'id', '?')}")

            elif item_type == "reasoning":
                continue

            else:
                logger.warning(f"Ignoring unexpected output item type: {item_type}")

        return parsed

    def _parse_message(self, item: Any, parsed: ParsedOutput) -> None:
        for content in getattr(item, "content", None) or []:
            content_type = getattr(content, "type", None)

            if content_type == "refusal":
                raise ModelRefusalError(f"Model refused: {getattr(content, 'refusal', '')}")

            if content_type != "output_text":
                logger.warning(f"Ignoring unexpected message content type: {content_type}")
                continue

            text = content.text
            action = _structured_action(text)
            if action is not None:
                parsed.actions.append(action)
            else:
                logger.debug(f"Model text: {text[:200]}")
                parsed.texts.append(text)

    def _parse_function_call(self, item: Any, registered: set[str]) -> Action:
        name = item.name
        call_id = item.call_id

        if name not in BUILTIN_TOOL_NAMES and name not in registered:
            raise UnknownToolError(name)

        arguments = _decode_arguments(name, item.arguments)

        if name == SET_CHANNEL_DIRECTIVE:
            return SetDirective(call_id=call_id, notes=_builtin_notes(name, arguments))

        if name == UPDATE_CHANNEL_CONTEXT:
            return AppendContext(call_id=call_id, notes=_builtin_notes(name, arguments))

        return InvokeTool(call_id=call_id, tool_name=name, arguments=arguments)
