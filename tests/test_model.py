"""Tests for model requests and the Slack chat client."""

from unittest.mock import AsyncMock, MagicMock

import pytest
from slack_sdk.errors import SlackApiError

from triage_bot.agent.model import ModelRequest, OpenAIModelClient, labeled_message
from triage_bot.slack.chat import SlackChatClient

INPUT = [labeled_message("user", "## User Message", "hello")]


class TestModelRequest:
    """Provider-specific parameters."""

    def test_gpt_gets_temperature_only(self) -> None:
        """gpt models get temperature, never reasoning."""
        kwargs = ModelRequest(
            model="gpt-4.1", input=INPUT, temperature=0.2, reasoning_effort="low",
        ).to_openai_kwargs()

        assert kwargs["temperature"] == 0.2
        assert "reasoning" not in kwargs

    def test_o_models_get_reasoning_only(self) -> None:
        """o models get reasoning effort, never temperature."""
        kwargs = ModelRequest(
            model="o3", input=INPUT, temperature=0.7, reasoning_effort="medium",
        ).to_openai_kwargs()

        assert kwargs["reasoning"] == {"effort": "medium"}
        assert "temperature" not in kwargs

    def test_chaining_and_format(self) -> None:
        """Previous response id and text format are passed through."""
        kwargs = ModelRequest(
            model="o3",
            input=INPUT,
            instructions="be helpful",
            tools=[{"type": "web_search_preview"}],
            text_format={"type": "text"},
            max_output_tokens=100,
            previous_response_id="resp_1",
        ).to_openai_kwargs()

        assert kwargs["instructions"] == "be helpful"
        assert kwargs["tools"] == [{"type": "web_search_preview"}]
        assert kwargs["text"] == {"format": {"type": "text"}}
        assert kwargs["max_output_tokens"] == 100
        assert kwargs["previous_response_id"] == "resp_1"

    def test_labeled_message(self) -> None:
        """Segments are a heading and a body."""
        assert labeled_message("developer", "## Identity", "me") == {
            "role": "developer",
            "content": "## Identity\n\nme\n\n",
        }

    async def test_openai_client_sends_kwargs(self) -> None:
        """The OpenAI client forwards the request to responses.create."""
        sdk = MagicMock()
        sdk.responses.create = AsyncMock(return_value="response")
        client = OpenAIModelClient(client=sdk)

        result = await client.create_response(ModelRequest(model="o3", input=INPUT))

        assert result == "response"
        sdk.responses.create.assert_awaited_once_with(model="o3", input=INPUT)


class TestSlackChatClient:
    """Slack Web API calls."""

    async def test_connect_looks_up_bot_id(self) -> None:
        """The bot id comes from auth.test."""
        web = MagicMock()
        web.auth_test = AsyncMock(return_value={"ok": True, "user_id": "UBOT"})

        chat = await SlackChatClient.connect(web)

        assert chat.bot_user_id == "UBOT"

    async def test_send_and_react(self) -> None:
        """Replies link names in the thread; reactions go on the message."""
        web = MagicMock()
        web.chat_postMessage = AsyncMock()
        web.reactions_add = AsyncMock()
        chat = SlackChatClient(web, "UBOT")

        await chat.send_message("C1", "1.0", "hi @oncall")
        await chat.react_to_message("C1", "1.0", "bug")

        web.chat_postMessage.assert_awaited_once_with(
            channel="C1", thread_ts="1.0", text="hi @oncall", link_names=True,
        )
        web.reactions_add.assert_awaited_once_with(channel="C1", timestamp="1.0", name="bug")

    async def test_thread_context(self) -> None:
        """Thread replies are serialized as JSON."""
        web = MagicMock()
        web.conversations_replies = AsyncMock(return_value={"messages": [{"text": "first"}]})

        context = await SlackChatClient(web, "UBOT").get_thread_context("C1", "1.0")

        assert context == '[{"text": "first"}]'

    async def test_missing_thread_is_empty(self) -> None:
        """thread_not_found yields an empty context."""
        web = MagicMock()
        web.conversations_replies = AsyncMock(
            side_effect=SlackApiError("not found", {"ok": False, "error": "thread_not_found"})
        )

        assert await SlackChatClient(web, "UBOT").get_thread_context("C1", "1.0") == ""

    async def test_other_errors_propagate(self) -> None:
        """Other API errors are raised."""
        web = MagicMock()
        web.conversations_replies = AsyncMock(
            side_effect=SlackApiError("nope", {"ok": False, "error": "channel_not_found"})
        )

        with pytest.raises(SlackApiError):
            await SlackChatClient(web, "UBOT").get_thread_context("C1", "1.0")
