"""
Action Dispatcher
=================

Executes the actions of one assistant turn and tells the driver whether
to continue.

    NoAction       logged
    Reply          reaction (best effort), then thread reply
    SetDirective   replace the channel directive   ─┐
    AppendContext  append a channel context entry   ├─ function_call_output
    InvokeTool     call the registered tool        ─┘

A turn that produced any tool-shaped action continues with the collected
function call outputs, so the model sees the results and can reply. A
turn without one is terminal.
"""

import json
from typing import TYPE_CHECKING, Any

from triage_bot.agent.types import (
    Action,
    AppendContext,
    CompiledContext,
    Decision,
    InvokeTool,
    NoAction,
    Reply,
    SetDirective,
)
from triage_bot.slack.chat import ChatClient
from triage_bot.storage import ChannelContextEntry, ChannelDirective, ChannelStore
from triage_bot.utils.logger import Logger

if TYPE_CHECKING:
    from triage_bot.tools.client import ToolRegistryClient

logger = Logger("Dispatcher")


def function_call_output(call_id: str, output: Any) -> dict:
    """
    Build a function call output item for the next model request.

    Args:
        call_id: The call this output answers
        output: JSON-serializable result

    Returns:
        Input item in the Responses API format
    """
    return {
        "type": "function_call_output",
        "call_id": call_id,
        "output": json.dumps(output),
    }


class ActionDispatcher:
    """
    Dispatches the actions of one event.

    Created fresh for each event, bound to that event's compiled context.
    Instances are awaitable callables, which is what AssistantDriver.run
    expects.

    Example:
        dispatcher = ActionDispatcher(chat, storage, registry, context)
        decision = await dispatcher([Reply(...)])
    """

    def __init__(
        self,
        chat: ChatClient,
        storage: ChannelStore,
        tools: "ToolRegistryClient | None",
        context: CompiledContext
    ):
        self.chat = chat
        self.storage = storage
        self.tools = tools
        self.context = context
        self.logger = logger.child(context.channel_id)

    async def __call__(self, actions: list[Action]) -> Decision:
        """
        Dispatch actions in order.

        Args:
            actions: Parsed actions of one turn

        Returns:
            Continue with function call outputs if any tool-shaped action ran,
            else Terminal

        Raises:
            Exception: If posting a reply or writing to storage fails
        """
        outputs: list[dict] = []

        for action in actions:
            if isinstance(action, NoAction):
                self.logger.info("Assistant chose not to act")

            elif isinstance(action, Reply):
                await self._reply(action)

            elif isinstance(action, SetDirective):
                outputs.append(await self._set_directive(action))

            elif isinstance(action, AppendContext):
                outputs.append(await self._append_context(action))

            elif isinstance(action, InvokeTool):
                outputs.append(await self._invoke_tool(action))

            else:
                raise TypeError(f"Unsupported action: {action!r}")

        if outputs:
            return Decision.continue_with(outputs)
        return Decision.terminal()

    async def _reply(self, action: Reply) -> None:
        thread_id = action.thread_id or self.context.thread_id
        channel_id = self.context.channel_id

        try:
            await self.chat.react_to_message(channel_id, thread_id, action.classification.emoji)
        except Exception as e:
            self.logger.warning(
                f"Could not add :{action.classification.emoji}: reaction: {e}"
            )

        await self.chat.send_message(channel_id, thread_id, action.message)
        self.logger.info(
            f"Replied in thread {thread_id} ({action.classification.value})"
        )

    async def _set_directive(self, action: SetDirective) -> dict:
        directive = ChannelDirective(user_message=self.context.raw_event, notes=action.notes)
        await self.storage.update_directive(self.context.channel_id, directive)
        self.logger.info("Channel directive updated")
        return function_call_output(action.call_id, {
            "status": "ok",
            "result": "Channel directive updated.",
        })

    async def _append_context(self, action: AppendContext) -> dict:
        entry = ChannelContextEntry(user_message=self.context.raw_event, notes=action.notes)
        await self.storage.append_context(self.context.channel_id, entry)
        self.logger.info("Channel context updated")
        return function_call_output(action.call_id, {
            "status": "ok",
            "result": "Channel context updated.",
        })

    async def _invoke_tool(self, action: InvokeTool) -> dict:
        if self.tools is None:
            return function_call_output(action.call_id, {
                "status": "error",
                "error": f"No tool registry available for {action.tool_name}",
            })

        try:
            result = await self.tools.invoke(action.tool_name, action.arguments)
        except Exception as e:
            self.logger.error(f"Tool {action.tool_name} failed", e)
            return function_call_output(action.call_id, {
                "status": "error",
                "error": str(e),
            })

        self.logger.info(f"Tool {action.tool_name} completed")
        return function_call_output(action.call_id, result)
