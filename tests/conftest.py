"""Shared test fixtures for the triage bot test suite."""

import json
from types import SimpleNamespace
from typing import Any, Callable

import pytest

from triage_bot.agent import prompts
from triage_bot.agent.model import ModelClient, ModelRequest
from triage_bot.slack.chat import ChatClient
from triage_bot.storage import JsonChannelStore
from triage_bot.utils.config import (
    AgentConfig,
    DirectiveConfig,
    OpenAIConfig,
    RetryConfig,
)


class FakeModelClient(ModelClient):
    """Model client answering every request through a handler function."""

    def __init__(self, handler: Callable[[ModelRequest], Any]):
        self.handler = handler
        self.requests: list[ModelRequest] = []

    async def create_response(self, request: ModelRequest) -> Any:
        self.requests.append(request)
        result = self.handler(request)
        if isinstance(result, BaseException):
            raise result
        return result

    def requests_for(self, instructions: str) -> list[ModelRequest]:
        return [r for r in self.requests if r.instructions == instructions]


class FakeChat(ChatClient):
    """Chat client recording replies and reactions."""

    def __init__(self, bot_user_id: str = "UBOT", thread_context: str = "[]"):
        self._bot_user_id = bot_user_id
        self.thread_context = thread_context
        self.sent: list[tuple[str, str, str]] = []
        self.reactions: list[tuple[str, str, str]] = []
        self.fail_reactions = False

    @property
    def bot_user_id(self) -> str:
        return self._bot_user_id

    async def send_message(self, channel_id: str, thread_id: str, text: str) -> None:
        self.sent.append((channel_id, thread_id, text))

    async def react_to_message(self, channel_id: str, thread_id: str, emoji: str) -> None:
        if self.fail_reactions:
            raise RuntimeError("already_reacted")
        self.reactions.append((channel_id, thread_id, emoji))

    async def get_thread_context(self, channel_id: str, thread_id: str) -> str:
        return self.thread_context


def text_item(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        type="message",
        content=[SimpleNamespace(type="output_text", text=text, annotations=[])],
    )


def function_call_item(name: str, arguments: Any, call_id: str = "call_1") -> SimpleNamespace:
    if not isinstance(arguments, str):
        arguments = json.dumps(arguments)
    return SimpleNamespace(type="function_call", name=name, arguments=arguments, call_id=call_id)


def reply_item(message: str, classification: str | None = "Question",
               thread_ts: str | None = None) -> SimpleNamespace:
    return text_item(json.dumps({
        "type": "ReplyToThread",
        "thread_ts": thread_ts,
        "classification": classification,
        "message": message,
    }))


def no_action_item() -> SimpleNamespace:
    return text_item(json.dumps({
        "type": "NoAction",
        "thread_ts": None,
        "classification": None,
        "message": None,
    }))


def make_response(*items: Any, response_id: str = "resp_1") -> SimpleNamespace:
    return SimpleNamespace(id=response_id, output=list(items))


@pytest.fixture
def responses() -> SimpleNamespace:
    """Builders for fake Responses API results."""
    return SimpleNamespace(
        text=text_item,
        function_call=function_call_item,
        reply=reply_item,
        no_action=no_action_item,
        make=make_response,
    )


@pytest.fixture
def fake_model() -> Callable[[Callable[[ModelRequest], Any]], FakeModelClient]:
    """Factory for model clients driven by a handler function."""
    return FakeModelClient


@pytest.fixture
def chat() -> FakeChat:
    """Chat client that records instead of posting."""
    return FakeChat()


@pytest.fixture
def store(tmp_path) -> JsonChannelStore:
    """File-backed channel store in a temporary directory."""
    return JsonChannelStore(tmp_path)


@pytest.fixture
def agent_config() -> AgentConfig:
    """Agent configuration with the default prompts and no retry backoff.

    Returns:
        AgentConfig safe for tests (no real API calls).
    """
    return AgentConfig(
        openai=OpenAIConfig(
            api_key="sk-test-fake-key",
            search_agent_model="gpt-4.1",
            assistant_agent_model="o3",
            search_agent_temperature=0.0,
            assistant_agent_temperature=0.7,
            search_agent_reasoning_effort="low",
            assistant_agent_reasoning_effort="medium",
            max_tokens=4096,
        ),
        directives=DirectiveConfig(
            assistant_system=prompts.ASSISTANT_AGENT_SYSTEM_DIRECTIVE,
            assistant_mention=prompts.ASSISTANT_AGENT_MENTION_DIRECTIVE,
            web_search_system=prompts.SEARCH_AGENT_SYSTEM_DIRECTIVE,
            message_search_system=prompts.MESSAGE_SEARCH_AGENT_SYSTEM_DIRECTIVE,
        ),
        retry=RetryConfig(max_attempts=3, timeout_seconds=5.0, backoff_seconds=0.0),
        max_iterations=5,
    )
