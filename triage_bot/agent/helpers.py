"""
Helper Agents
=============

Two narrowly scoped model calls that gather supporting context before the
assistant agent decides what to do:

- WebSearchAgent: searches the web (provider-side `web_search_preview`
  tool) and summarizes what it found.
- MessageSearchAgent: picks comma-separated keywords for searching the
  channel's message history.

Both receive the same HelperContext and go through the shared
RetryingCaller, so each has its own retry budget.
"""

from triage_bot.agent.model import ModelRequest, labeled_message
from triage_bot.agent.prompts import TEXT_FORMAT
from triage_bot.agent.retry import RetryingCaller
from triage_bot.agent.types import HelperContext
from triage_bot.utils.logger import Logger

logger = Logger("HelperAgents")


def build_helper_input(context: HelperContext) -> list[dict]:
    """
    Build the labeled input segments shared by both helpers.

    Args:
        context: The helper sub-context

    Returns:
        Input items: identity, channel context, thread context, user message
    """
    return [
        labeled_message(
            "developer",
            "## Identity",
            f"Your Slack user id is `{context.bot_user_id}`. "
            f"You are working in channel `{context.channel_id}`.",
        ),
        labeled_message(
            "developer",
            "## Channel Context",
            context.channel_context,
        ),
        labeled_message(
            "developer",
            "## Thread Context",
            context.thread_context,
        ),
        labeled_message(
            "user",
            "## User Message",
            context.user_message,
        ),
    ]


def output_texts(response) -> list[str]:
    """
    Collect every output_text string from a model response.

    Args:
        response: Responses API result

    Returns:
        Texts in output order
    """
    texts = []
    for item in getattr(response, "output", None) or []:
        if getattr(item, "type", None) != "message":
            continue
        for content in getattr(item, "content", None) or []:
            if getattr(content, "type", None) == "output_text":
                texts.append(content.text)
    return texts


class HelperAgent:
    """
    Base for a helper agent: one plain-text model call.

    Attributes:
        name: Label used in logs
        separator: How multiple output texts are joined
    """

    name = "helper"
    separator = "\n\n"

    def __init__(
        self,
        caller: RetryingCaller,
        model: str,
        instructions: str,
        temperature: float | None = None,
        reasoning_effort: str | None = None,
        max_output_tokens: int | None = None
    ):
        self.caller = caller
        self.model = model
        self.instructions = instructions
        self.temperature = temperature
        self.reasoning_effort = reasoning_effort
        self.max_output_tokens = max_output_tokens

    def tools(self) -> list[dict]:
        return []

    def build_request(self, context: HelperContext) -> ModelRequest:
        return ModelRequest(
            model=self.model,
            input=build_helper_input(context),
            instructions=self.instructions,
            tools=self.tools(),
            text_format=TEXT_FORMAT,
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature,
            reasoning_effort=self.reasoning_effort,
        )

    async def run(self, context: HelperContext) -> str:
        """
        Run the helper for one event.

        Args:
            context: The helper sub-context

        Returns:
            The helper's output texts joined with the separator

        Raises:
            ModelCallError: If the model call failed
        """
        response = await self.caller.call(self.build_request(context))
        result = self.separator.join(output_texts(response))
        logger.debug(f"{self.name} returned {len(result)} characters")
        return result


class WebSearchAgent(HelperAgent):
    """Searches the web for information relevant to the message."""

    name = "web search"
    separator = "\n\n"

    def __init__(self, caller: RetryingCaller, model: str, instructions: str,
                 web_search_tools: tuple[dict, ...] = (), **kwargs):
        super().__init__(caller, model, instructions, **kwargs)
        self.web_search_tools = web_search_tools

    def tools(self) -> list[dict]:
        return list(self.web_search_tools)


class MessageSearchAgent(HelperAgent):
    """Chooses keywords for searching the channel's message history."""

    name = "message search"
    separator = ", "
