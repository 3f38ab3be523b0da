"""
Slack Event Handlers
====================

Receives Slack events and routes them to the triage agent.

Event Types:
- message: every channel message is stored for message search; top-level
  human messages are also triaged
- app_mention: someone @-mentioned the bot, anywhere (including threads)
- /triage-bot: slash command (no subcommands yet)

Routing Rules for `message`:
    1. Always store the raw event
    2. Skip bot messages (including our own)
    3. Skip subtypes (edits, deletes, joins, ...)
    4. Skip messages mentioning the bot; app_mention handles those
    5. Skip replies inside threads
    6. Triage the rest

Handler Pattern:
    Slack expects events to be acknowledged within 3 seconds, while a
    triage run takes far longer (several model calls). Each triage run is
    therefore started on its own task and the handler returns right away.
    The tasks are tracked so they are not garbage collected mid-run and
    can be awaited on shutdown.
"""

import asyncio
from typing import TYPE_CHECKING, Any

from slack_bolt.async_app import AsyncAck, AsyncApp, AsyncRespond

from triage_bot.utils.logger import Logger

if TYPE_CHECKING:
    from triage_bot.agent import TriageAgent

logger = Logger("Handlers")

SLASH_COMMAND = "/triage-bot"
NO_COMMANDS_TEXT = "No app commands are currently supported."


class EventIntake:
    """
    Routes Slack events to the triage agent.

    Example:
        intake = EventIntake(agent, bot_user_id="U0BOT")
        register_handlers(app, intake)
    """

    def __init__(self, agent: "TriageAgent", bot_user_id: str):
        """
        Initialize the intake.

        Args:
            agent: The triage agent
            bot_user_id: The bot's own user id, to detect mentions
        """
        self.agent = agent
        self.bot_user_id = bot_user_id
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of triage runs in flight."""
        return len(self._tasks)

    def _spawn(self, event: dict[str, Any], channel_id: str, thread_id: str) -> asyncio.Task:
        task = asyncio.create_task(
            self.agent.process(event, channel_id, thread_id),
            name=f"triage-{channel_id}-{thread_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def should_triage(self, event: dict[str, Any]) -> bool:
        """
        Decide whether a stored message event should also be triaged.

        Args:
            event: A `message` event

        Returns:
            True only for top-level human messages that do not mention the bot
        """
        if event.get("bot_id") or event.get("subtype"):
            return False

        if f"<@{self.bot_user_id}>" in (event.get("text") or ""):
            return False

        if event.get("thread_ts"):
            return False

        return True

    async def handle_message(self, event: dict[str, Any]) -> asyncio.Task | None:
        """
        Handle a `message` event.

        Args:
            event: The Slack event

        Returns:
            The triage task, if one was started
        """
        channel_id = event.get("channel")
        if not channel_id:
            return None

        try:
            await self.agent.store_message(event, channel_id)
        except Exception as e:
            logger.error(f"Failed to store message in {channel_id}", e)

        if not self.should_triage(event):
            return None

        logger.info(f"New message in {channel_id} from {event.get('user')}")
        return self._spawn(event, channel_id, event.get("ts"))

    async def handle_mention(self, event: dict[str, Any]) -> asyncio.Task | None:
        """
        Handle an `app_mention` event.

        Replies go to the thread the mention was made in, or start a
        thread on the mentioning message.

        Args:
            event: The Slack event

        Returns:
            The triage task
        """
        channel_id = event.get("channel")
        if not channel_id:
            return None

        thread_id = event.get("thread_ts") or event.get("ts")

        logger.info(f"Mention in {channel_id} from {event.get('user')}")
        return self._spawn(event, channel_id, thread_id)

    async def handle_command(self, ack: AsyncAck, respond: AsyncRespond, command: dict) -> None:
        """
        Handle the /triage-bot slash command.

        Args:
            ack: Acknowledge function (must be called within 3 seconds)
            respond: Responds to the command invoker
            command: The command data
        """
        await ack()
        logger.debug(f"Slash command from {command.get('user_id')}: {command.get('text', '')}")
        await respond(NO_COMMANDS_TEXT)

    async def drain(self) -> None:
        """Wait for every in-flight triage run to finish."""
        if self._tasks:
            logger.info(f"Waiting for {len(self._tasks)} triage runs to finish")
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


def register_handlers(app: AsyncApp, intake: EventIntake) -> None:
    """
    Register all event handlers with the Slack app.

    Args:
        app: The Bolt app instance
        intake: Routes the events to the agent
    """

    async def on_message(event: dict) -> None:
        await intake.handle_message(event)

    async def on_mention(event: dict) -> None:
        await intake.handle_mention(event)

    async def on_command(ack: AsyncAck, respond: AsyncRespond, command: dict) -> None:
        await intake.handle_command(ack, respond, command)

    app.event("message")(on_message)
    app.event("app_mention")(on_mention)
    app.command(SLASH_COMMAND)(on_command)

    logger.info("Registered Slack event handlers")
