"""
Agent Core
==========

The triage agent: one inbound Slack event, end to end.

Agent Flow:
    Slack event
         │
         ▼
    Compile Context ── web search helper ─┐ (concurrently)
         │          ── message search ────┘
         ▼
    Assistant loop
    ┌──────────────────────────────────────────┐
    │  call model → parse actions → dispatch   │
    │        ▲                          │      │
    │        └──── tool outputs ◀───────┘      │
    └──────────────────────────────────────────┘
         │
         ▼
    Reply in thread (with a classification reaction), or stay silent

Failure Policy:
    handle_event() lets errors propagate. process() is the fail-closed
    wrapper the Slack handlers use: any failure is logged together with
    the event that caused it, and nothing is posted to the channel.

Collaborators (chat, storage, model, tools) are injected, so tests can
substitute fakes for all of them.
"""

from typing import TYPE_CHECKING, Any

from triage_bot.agent.context import ContextCompiler
from triage_bot.agent.dispatcher import ActionDispatcher
from triage_bot.agent.driver import AssistantDriver, AssistantSettings, DriveResult
from triage_bot.agent.helpers import MessageSearchAgent, WebSearchAgent
from triage_bot.agent.model import ModelClient
from triage_bot.agent.parser import ResponseParser
from triage_bot.agent.prompts import ToolPolicy, ToolSchemas
from triage_bot.agent.retry import RetryingCaller
from triage_bot.slack.chat import ChatClient
from triage_bot.storage import ChannelStore
from triage_bot.utils.logger import Logger

if TYPE_CHECKING:
    from triage_bot.tools.client import ToolRegistryClient
    from triage_bot.utils.config import AgentConfig

logger = Logger("Agent")


class TriageAgent:
    """
    Processes Slack events with the helper agents and the assistant agent.

    Example:
        agent = TriageAgent.from_config(config.agent, chat, storage, model_client, registry)

        await agent.store_message(event, channel_id="C123")
        await agent.process(event, channel_id="C123", thread_id=event["ts"])
    """

    def __init__(
        self,
        chat: ChatClient,
        storage: ChannelStore,
        compiler: ContextCompiler,
        driver: AssistantDriver,
        tools: "ToolRegistryClient | None" = None
    ):
        """
        Initialize the agent.

        Args:
            chat: Chat client
            storage: Channel storage
            compiler: Builds the context for each event
            driver: Runs the assistant loop
            tools: Registry of MCP tools, if any
        """
        self.chat = chat
        self.storage = storage
        self.compiler = compiler
        self.driver = driver
        self.tools = tools

    @classmethod
    def from_config(
        cls,
        config: "AgentConfig",
        chat: ChatClient,
        storage: ChannelStore,
        model_client: ModelClient,
        tools: "ToolRegistryClient | None" = None
    ) -> "TriageAgent":
        """
        Build the whole engine from configuration.

        The tool schemas are built once here and shared by every component.

        Args:
            config: Agent configuration
            chat: Chat client
            storage: Channel storage
            model_client: Model client
            tools: Registry of MCP tools, if any

        Returns:
            A ready TriageAgent
        """
        openai = config.openai
        schemas = ToolSchemas.build()

        caller = RetryingCaller(
            model_client,
            max_attempts=config.retry.max_attempts,
            timeout=config.retry.timeout_seconds,
            base_backoff=config.retry.backoff_seconds,
        )

        helper_settings = dict(
            model=openai.search_agent_model,
            temperature=openai.search_agent_temperature,
            reasoning_effort=openai.search_agent_reasoning_effort,
            max_output_tokens=openai.max_tokens,
        )
        web_search = WebSearchAgent(
            caller,
            instructions=config.directives.web_search_system,
            web_search_tools=schemas.web_search_tools,
            **helper_settings,
        )
        message_search = MessageSearchAgent(
            caller,
            instructions=config.directives.message_search_system,
            **helper_settings,
        )

        compiler = ContextCompiler(
            web_search=web_search,
            message_search=message_search,
            storage=storage,
            chat=chat,
            policy=ToolPolicy(schemas, tools),
        )

        parser = ResponseParser(tools.list_names if tools is not None else (lambda: ()))

        driver = AssistantDriver(
            caller,
            parser,
            AssistantSettings(
                model=openai.assistant_agent_model,
                system_directive=config.directives.assistant_system,
                mention_directive=config.directives.assistant_mention,
                reply_format=schemas.reply_format,
                temperature=openai.assistant_agent_temperature,
                reasoning_effort=openai.assistant_agent_reasoning_effort,
                max_output_tokens=openai.max_tokens,
            ),
            max_iterations=config.max_iterations,
        )

        logger.info(
            f"Agent initialized (assistant: {openai.assistant_agent_model}, "
            f"search: {openai.search_agent_model})"
        )

        return cls(chat=chat, storage=storage, compiler=compiler, driver=driver, tools=tools)

    async def handle_event(
        self,
        event: dict[str, Any],
        channel_id: str,
        thread_id: str
    ) -> DriveResult:
        """
        Triage one event.

        Args:
            event: The raw Slack event
            channel_id: Channel the event came from
            thread_id: Thread to reply in

        Returns:
            DriveResult of the assistant loop

        Raises:
            TriageBotError: If any step failed
        """
        context = await self.compiler.compile(event, channel_id, thread_id)
        dispatcher = ActionDispatcher(self.chat, self.storage, self.tools, context)
        result = await self.driver.run(context, dispatcher)

        logger.child(channel_id).info(
            f"Handled event in {result.iterations} iterations",
            {"actions": [type(action).__name__ for action in result.actions]},
        )
        return result

    async def process(
        self,
        event: dict[str, Any],
        channel_id: str,
        thread_id: str
    ) -> DriveResult | None:
        """
        Triage one event, failing closed.

        Args:
            event: The raw Slack event
            channel_id: Channel the event came from
            thread_id: Thread to reply in

        Returns:
            DriveResult, or None if processing failed
        """
        try:
            return await self.handle_event(event, channel_id, thread_id)
        except Exception as e:
            logger.child(channel_id).error(
                "Failed to process event",
                e,
                {"event": event, "thread_id": thread_id},
            )
            return None

    async def store_message(self, event: dict[str, Any], channel_id: str) -> None:
        """
        Record a message for later search.

        Args:
            event: The raw Slack message event
            channel_id: Channel the message was posted in
        """
        await self.storage.get_or_create_channel(channel_id)
        await self.storage.append_message(channel_id, event)
