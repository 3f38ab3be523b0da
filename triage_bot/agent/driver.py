"""
Assistant Driver
================

Runs the assistant agent's request/response/tool-call loop for one event.

State Machine:

    BuildInput ──▶ CallModel ──▶ ParseOutput ──▶ Dispatch
                       ▲                            │
                       │   Continue(payload)        │
                       └────────────────────────────┤
                                                    │ Terminal
                                                    ▼
                                                  done

Each Continue sends the dispatcher's payload (function call outputs) as
the next input, chained to the previous response through
`previous_response_id`. The previous id is threaded through the loop
explicitly. The loop is capped; a model that keeps calling tools past the
cap raises IterationLimitError instead of spinning forever.
"""

from dataclasses import dataclass, field
from typing import Awaitable, Callable

from triage_bot.agent.model import ModelRequest, labeled_message
from triage_bot.agent.parser import ResponseParser
from triage_bot.agent.retry import RetryingCaller
from triage_bot.agent.types import Action, CompiledContext, Decision
from triage_bot.errors import IterationLimitError
from triage_bot.utils.logger import Logger

logger = Logger("AssistantDriver")

Dispatch = Callable[[list[Action]], Awaitable[Decision]]


@dataclass(frozen=True)
class AssistantSettings:
    """
    Model settings for the assistant agent.

    Attributes:
        model: Assistant model name
        system_directive: Instructions sent with every request
        mention_directive: How to handle @-mentions and the built-in tools
        reply_format: Strict JSON schema of the structured reply
        temperature: Sampling temperature (gpt models only)
        reasoning_effort: Reasoning effort (o models only)
        max_output_tokens: Upper bound on generated tokens
    """
    model: str
    system_directive: str
    mention_directive: str
    reply_format: dict
    temperature: float | None = None
    reasoning_effort: str | None = None
    max_output_tokens: int | None = None


@dataclass
class DriveResult:
    """
    Outcome of one driver run.

    Attributes:
        iterations: Number of model calls made
        response_id: Id of the last response
        actions: Every action parsed, in order
    """
    iterations: int
    response_id: str | None
    actions: list[Action] = field(default_factory=list)


class AssistantDriver:
    """
    Drives the assistant agent to a terminal decision.

    Example:
        driver = AssistantDriver(caller, parser, settings, max_iterations=5)
        result = await driver.run(context, dispatcher)
    """

    def __init__(
        self,
        caller: RetryingCaller,
        parser: ResponseParser,
        settings: AssistantSettings,
        max_iterations: int = 5
    ):
        """
        Initialize the driver.

        Args:
            caller: Retrying model caller
            parser: Response parser
            settings: Assistant model settings
            max_iterations: Maximum model calls per event
        """
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")

        self.caller = caller
        self.parser = parser
        self.settings = settings
        self.max_iterations = max_iterations

    def build_input(self, context: CompiledContext) -> list[dict]:
        """
        Build the initial input for the assistant.

        Identity and policy come first, then channel state, gathered
        findings and finally the triggering message.

        Args:
            context: The compiled context

        Returns:
            Labeled input segments
        """
        return [
            labeled_message(
                "developer",
                "## Identity",
                f"Your Slack user id is `{context.bot_user_id}`. "
                f"You are working in channel `{context.channel_id}`.",
            ),
            labeled_message("developer", "## Mention Directive", self.settings.mention_directive),
            labeled_message("developer", "## Channel Directive", context.channel_directive),
            labeled_message("developer", "## Channel Context", context.channel_context),
            labeled_message("developer", "## Thread Context", context.thread_context),
            labeled_message("developer", "## Web Search Results", context.web_search_context),
            labeled_message("developer", "## Message Search Results", context.message_search_context),
            labeled_message("user", "## User Message", context.user_message),
        ]

    def build_request(
        self,
        context: CompiledContext,
        input_items: list[dict],
        previous_response_id: str | None = None
    ) -> ModelRequest:
        return ModelRequest(
            model=self.settings.model,
            input=input_items,
            instructions=self.settings.system_directive,
            tools=list(context.tools),
            text_format=self.settings.reply_format,
            max_output_tokens=self.settings.max_output_tokens,
            temperature=self.settings.temperature,
            reasoning_effort=self.settings.reasoning_effort,
            previous_response_id=previous_response_id,
        )

    async def run(self, context: CompiledContext, dispatch: Dispatch) -> DriveResult:
        """
        Run the loop until the dispatcher returns a terminal decision.

        Args:
            context: The compiled context
            dispatch: Executes parsed actions and decides what comes next

        Returns:
            DriveResult with the iteration count and all parsed actions

        Raises:
            ModelCallError: If a model call failed
            ResponseParseError: If a response could not be parsed
            IterationLimitError: If the loop did not terminate in time
        """
        input_items = self.build_input(context)
        previous_response_id: str | None = None
        all_actions: list[Action] = []

        for iteration in range(1, self.max_iterations + 1):
            request = self.build_request(context, input_items, previous_response_id)
            response = await self.caller.call(request)

            parsed = self.parser.parse(response)
            all_actions.extend(parsed.actions)

            logger.debug(
                f"Iteration {iteration}: {len(parsed.actions)} actions",
                {"actions": [type(action).__name__ for action in parsed.actions]},
            )

            decision = await dispatch(parsed.actions)
            previous_response_id = getattr(response, "id", None)

            if decision.is_terminal:
                return DriveResult(
                    iterations=iteration,
                    response_id=previous_response_id,
                    actions=all_actions,
                )

            input_items = decision.follow_up

        raise IterationLimitError(self.max_iterations)
