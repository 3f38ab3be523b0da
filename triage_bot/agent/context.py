"""
Context Compilation
===================

Gathers everything the assistant agent needs to decide on one event:

    1. storage   → channel (get-or-create) and its directive
    2. storage   → channel context entries
    3. chat      → thread history
    4. helpers   → web search ──────────────┐  concurrently,
                 → message search → storage ┘  fail-fast
    5. policy    → tools offered to the assistant

Steps 1 to 3 run one after another. The two helpers run as sibling tasks
and are joined with fail-fast semantics: if either fails, compilation
fails with ContextCompileError and no partial context is assembled, so
the assistant is never called with half the picture.

Message Search:
    The message search helper answers with comma-separated keywords. They
    are cleaned (split, stripped, empties dropped). With no keywords left
    the storage search is skipped and the findings are a fixed sentinel.
"""

import asyncio
import json
from typing import Any

from triage_bot.agent.helpers import MessageSearchAgent, WebSearchAgent
from triage_bot.agent.prompts import NO_RELEVANT_MESSAGES, ToolPolicy
from triage_bot.agent.types import CompiledContext, HelperContext
from triage_bot.errors import ContextCompileError
from triage_bot.slack.chat import ChatClient
from triage_bot.storage import ChannelStore
from triage_bot.storage.json_store import split_terms
from triage_bot.utils.logger import Logger

logger = Logger("Context")


class ContextCompiler:
    """
    Builds a CompiledContext for an inbound event.

    Example:
        compiler = ContextCompiler(web_search, message_search, storage, chat, policy)
        context = await compiler.compile(event, channel_id="C123", thread_id="1700000000.000100")
    """

    def __init__(
        self,
        web_search: WebSearchAgent,
        message_search: MessageSearchAgent,
        storage: ChannelStore,
        chat: ChatClient,
        policy: ToolPolicy
    ):
        """
        Initialize the compiler.

        Args:
            web_search: Web search helper agent
            message_search: Message search helper agent
            storage: Channel storage
            chat: Chat client (thread history, bot identity)
            policy: Decides the tools offered to the assistant
        """
        self.web_search = web_search
        self.message_search = message_search
        self.storage = storage
        self.chat = chat
        self.policy = policy

    async def compile(
        self,
        event: dict[str, Any],
        channel_id: str,
        thread_id: str
    ) -> CompiledContext:
        """
        Compile the context for one event.

        Args:
            event: The raw triggering event
            channel_id: Channel the event came from
            thread_id: Thread the assistant should reply in

        Returns:
            CompiledContext for the assistant agent

        Raises:
            ContextCompileError: If either helper (or the search it feeds) failed
        """
        user_message = json.dumps(event)
        bot_user_id = self.chat.bot_user_id

        channel = await self.storage.get_or_create_channel(channel_id)
        channel_directive = json.dumps(channel.directive.to_dict())
        channel_context = await self.storage.get_context(channel_id)
        thread_context = await self.chat.get_thread_context(channel_id, thread_id)

        helper_context = HelperContext(
            user_message=user_message,
            bot_user_id=bot_user_id,
            channel_id=channel_id,
            channel_directive=channel_directive,
            channel_context=channel_context,
            thread_context=thread_context,
        )

        helpers = (
            asyncio.create_task(self.web_search.run(helper_context)),
            asyncio.create_task(self._search_messages(helper_context)),
        )
        try:
            web_search_context, message_search_context = await asyncio.gather(*helpers)
        except Exception as e:
            for task in helpers:
                task.cancel()
            raise ContextCompileError(
                f"Failed to gather context for channel {channel_id}: {e}"
            ) from e

        logger.debug(
            f"Compiled context for {channel_id}/{thread_id}",
            {
                "web_search_chars": len(web_search_context),
                "message_search_chars": len(message_search_context),
            },
        )

        return CompiledContext(
            user_message=user_message,
            raw_event=event,
            bot_user_id=bot_user_id,
            channel_id=channel_id,
            thread_id=thread_id,
            channel_directive=channel_directive,
            channel_context=channel_context,
            thread_context=thread_context,
            web_search_context=web_search_context,
            message_search_context=message_search_context,
            tools=self.policy.offered_tools(user_message),
        )

    async def _search_messages(self, context: HelperContext) -> str:
        """Run the message search helper, then search storage with its keywords."""
        keywords = await self.message_search.run(context)

        terms = split_terms(keywords)
        if not terms:
            logger.debug("Message search produced no terms")
            return NO_RELEVANT_MESSAGES

        return await self.storage.search_messages(context.channel_id, ", ".join(terms))
