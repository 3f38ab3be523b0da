"""
Chat Client
===========

The chat collaborator the orchestration engine talks to: who the bot is,
posting thread replies, adding reactions, and reading thread history.

SlackChatClient is the production implementation on the slack_sdk
AsyncWebClient. It needs the bot's own user id, which is looked up once
with `auth.test` at startup:

    chat = await SlackChatClient.connect(app.client)
    chat.bot_user_id  # "U0BOT..."
"""

import json
from abc import ABC, abstractmethod

from slack_sdk.errors import SlackApiError
from slack_sdk.web.async_client import AsyncWebClient

from triage_bot.utils.logger import Logger

logger = Logger("SlackChat")


class ChatClient(ABC):
    """Chat operations needed by the triage agent."""

    @property
    @abstractmethod
    def bot_user_id(self) -> str:
        """The bot's own user id."""

    @abstractmethod
    async def send_message(self, channel_id: str, thread_id: str, text: str) -> None:
        """Post a reply in a thread."""

    @abstractmethod
    async def react_to_message(self, channel_id: str, thread_id: str, emoji: str) -> None:
        """Add a reaction (by name, without colons) to a message."""

    @abstractmethod
    async def get_thread_context(self, channel_id: str, thread_id: str) -> str:
        """
        Get a thread's messages serialized as JSON.

        Returns:
            The serialized messages, or "" if the thread does not exist
        """


class SlackChatClient(ChatClient):
    """
    ChatClient backed by the Slack Web API.

    Example:
        chat = SlackChatClient(AsyncWebClient(token=bot_token), bot_user_id="U0BOT")
        await chat.send_message("C123", "1700000000.000100", "On it!")
    """

    def __init__(self, client: AsyncWebClient, bot_user_id: str):
        """
        Initialize the chat client.

        Args:
            client: Authenticated Slack web client
            bot_user_id: The bot's own user id
        """
        self.client = client
        self._bot_user_id = bot_user_id

    @classmethod
    async def connect(cls, client: AsyncWebClient) -> "SlackChatClient":
        """
        Create a chat client, looking up the bot's user id.

        Args:
            client: Authenticated Slack web client

        Returns:
            SlackChatClient for the authenticated bot
        """
        response = await client.auth_test()
        bot_user_id = response["user_id"]
        logger.info(f"Authenticated as bot user {bot_user_id}")
        return cls(client, bot_user_id)

    @property
    def bot_user_id(self) -> str:
        return self._bot_user_id

    async def send_message(self, channel_id: str, thread_id: str, text: str) -> None:
        await self.client.chat_postMessage(
            channel=channel_id,
            thread_ts=thread_id,
            text=text,
            link_names=True,
        )
        logger.debug(f"Replied in {channel_id} thread {thread_id}")

    async def react_to_message(self, channel_id: str, thread_id: str, emoji: str) -> None:
        await self.client.reactions_add(
            channel=channel_id,
            timestamp=thread_id,
            name=emoji,
        )

    async def get_thread_context(self, channel_id: str, thread_id: str) -> str:
        try:
            response = await self.client.conversations_replies(
                channel=channel_id,
                ts=thread_id,
            )
        except SlackApiError as e:
            if e.response.get("error") == "thread_not_found":
                return ""
            raise

        return json.dumps(response.get("messages", []))
