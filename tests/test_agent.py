"""Tests for the assistant driver and the triage agent end to end."""

import json
from unittest.mock import AsyncMock

import pytest

from triage_bot.agent import prompts
from triage_bot.agent.core import TriageAgent
from triage_bot.agent.driver import AssistantDriver, AssistantSettings
from triage_bot.agent.parser import ResponseParser
from triage_bot.agent.retry import RetryingCaller
from triage_bot.agent.types import AppendContext, CompiledContext, Decision, Reply, SetDirective
from triage_bot.errors import IterationLimitError

ASSISTANT = prompts.ASSISTANT_AGENT_SYSTEM_DIRECTIVE
MENTION = {
    "type": "app_mention",
    "channel": "C1",
    "user": "U1",
    "text": "<@UBOT> please remember that the on-call is @X",
    "ts": "10.0",
}


async def _no_sleep(_delay: float) -> None:
    return None


def _helpers_then(assistant_handler, responses):
    """Route helper requests to canned answers and the rest to assistant_handler."""

    def handler(request):
        if request.instructions == prompts.SEARCH_AGENT_SYSTEM_DIRECTIVE:
            return responses.make(responses.text("No relevant web results."))
        if request.instructions == prompts.MESSAGE_SEARCH_AGENT_SYSTEM_DIRECTIVE:
            return responses.make(responses.text(""))
        return assistant_handler(request)

    return handler


def _context(tools=None) -> CompiledContext:
    return CompiledContext(
        user_message=json.dumps(MENTION),
        raw_event=MENTION,
        bot_user_id="UBOT",
        channel_id="C1",
        thread_id="10.0",
        channel_directive="{}",
        channel_context="[]",
        thread_context="[]",
        web_search_context="web",
        message_search_context="messages",
        tools=tools or [],
    )


class TestAssistantDriver:
    """The request/response/dispatch loop."""

    def _driver(self, model, max_iterations=5) -> AssistantDriver:
        return AssistantDriver(
            RetryingCaller(model, sleep=_no_sleep),
            ResponseParser(),
            AssistantSettings(
                model="o3",
                system_directive=ASSISTANT,
                mention_directive="mention-directive",
                reply_format=prompts.build_reply_format(),
            ),
            max_iterations=max_iterations,
        )

    def test_input_order(self, fake_model) -> None:
        """Identity and policy come first, the user message last."""
        driver = self._driver(fake_model(lambda request: None))

        items = driver.build_input(_context())

        headings = [item["content"].split("\n", 1)[0] for item in items]
        assert headings == [
            "## Identity",
            "## Mention Directive",
            "## Channel Directive",
            "## Channel Context",
            "## Thread Context",
            "## Web Search Results",
            "## Message Search Results",
            "## User Message",
        ]
        assert items[-1]["role"] == "user"
        assert all(item["role"] == "developer" for item in items[:-1])

    async def test_continue_chains_previous_response(self, fake_model, responses) -> None:
        """A Continue sends its payload with the previous response id."""
        counter = iter(range(1, 10))
        model = fake_model(lambda request: responses.make(response_id=f"resp_{next(counter)}"))
        payload = [{"type": "function_call_output", "call_id": "c1", "output": "{}"}]
        dispatch = AsyncMock(side_effect=[Decision.continue_with(payload), Decision.terminal()])

        result = await self._driver(model).run(_context(), dispatch)

        assert result.iterations == 2
        assert result.response_id == "resp_2"
        assert model.requests[0].previous_response_id is None
        assert model.requests[1].previous_response_id == "resp_1"
        assert model.requests[1].input == payload

    async def test_terminal_stops_after_one_call(self, fake_model, responses) -> None:
        """A terminal decision ends the loop immediately."""
        model = fake_model(lambda request: responses.make(responses.no_action()))
        dispatch = AsyncMock(return_value=Decision.terminal())

        result = await self._driver(model).run(_context(), dispatch)

        assert result.iterations == 1
        assert len(model.requests) == 1

    async def test_iteration_cap(self, fake_model, responses) -> None:
        """A loop that never terminates raises after the cap."""
        model = fake_model(lambda request: responses.make())
        payload = [{"type": "function_call_output", "call_id": "c", "output": "{}"}]
        dispatch = AsyncMock(return_value=Decision.continue_with(payload))

        with pytest.raises(IterationLimitError):
            await self._driver(model, max_iterations=3).run(_context(), dispatch)

        assert len(model.requests) == 3

    def test_continue_requires_payload(self) -> None:
        """A continuing decision must carry input."""
        with pytest.raises(ValueError):
            Decision.continue_with([])


class TestRememberScenario:
    """A mention asking the bot to remember something."""

    async def test_remember_appends_context_then_replies(
        self, agent_config, fake_model, responses, chat, store
    ) -> None:
        """One AppendContext mentioning @X, no SetDirective, then a reply."""

        def assistant(request):
            if request.previous_response_id is None:
                return responses.make(
                    responses.function_call(
                        "update_channel_context",
                        {"message": "The on-call engineer for this channel is @X."},
                        "call_1",
                    ),
                    response_id="resp_1",
                )
            return responses.make(
                responses.reply("Got it, @X is on-call. I'll remember that.", "Other", "10.0"),
                response_id="resp_2",
            )

        model = fake_model(_helpers_then(assistant, responses))
        agent = TriageAgent.from_config(agent_config, chat, store, model)

        result = await agent.handle_event(MENTION, "C1", "10.0")

        context_actions = [a for a in result.actions if isinstance(a, AppendContext)]
        directive_actions = [a for a in result.actions if isinstance(a, SetDirective)]
        assert len(context_actions) == 1
        assert "@X" in context_actions[0].notes
        assert directive_actions == []
        assert isinstance(result.actions[-1], Reply)

        entries = json.loads(await store.get_context("C1"))
        assert [entry["notes"] for entry in entries] == ["The on-call engineer for this channel is @X."]
        assert entries[0]["user_message"] == MENTION

        channel = await store.get_or_create_channel("C1")
        assert channel.directive.notes == "No notes."

        assert chat.sent == [("C1", "10.0", "Got it, @X is on-call. I'll remember that.")]
        assert chat.reactions == [("C1", "10.0", "grey_question")]

        first, second = model.requests_for(ASSISTANT)
        assert {"set_channel_directive", "update_channel_context"} <= {t["name"] for t in first.tools}
        assert second.previous_response_id == "resp_1"
        assert second.input[0]["call_id"] == "call_1"


class TestFailClosed:
    """process() never lets errors escape."""

    async def test_runaway_loop_is_silent(self, agent_config, fake_model, responses, chat, store) -> None:
        """A model that keeps calling tools hits the cap; nothing is posted."""
        model = fake_model(_helpers_then(
            lambda request: responses.make(
                responses.function_call("update_channel_context", {"message": "again"}, "c"),
            ),
            responses,
        ))
        agent = TriageAgent.from_config(agent_config, chat, store, model)

        with pytest.raises(IterationLimitError):
            await agent.handle_event(MENTION, "C1", "10.0")

        assert await agent.process(MENTION, "C1", "10.0") is None
        assert chat.sent == []
        assert len(model.requests_for(ASSISTANT)) == 2 * agent_config.max_iterations

    async def test_unknown_tool_is_silent(self, agent_config, fake_model, responses, chat, store) -> None:
        """An unknown tool call fails the event without posting."""
        model = fake_model(_helpers_then(
            lambda request: responses.make(responses.function_call("drop_tables", {}, "c")),
            responses,
        ))
        agent = TriageAgent.from_config(agent_config, chat, store, model)

        assert await agent.process(MENTION, "C1", "10.0") is None
        assert chat.sent == []

    async def test_store_message(self, agent_config, fake_model, chat, store) -> None:
        """Messages are recorded for search."""
        agent = TriageAgent.from_config(agent_config, chat, store, fake_model(lambda r: None))

        await agent.store_message({"text": "deploy failed", "ts": "1"}, "C1")

        assert json.loads(await store.search_messages("C1", "deploy"))[0]["ts"] == "1"
