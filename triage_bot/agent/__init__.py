"""
Agent System
============

The orchestration engine. For every triggering Slack event it:
1. Gathers context (channel state, thread history, web and message search)
2. Drives the assistant agent through its tool-call loop
3. Parses the assistant's structured output into actions
4. Dispatches the actions (replies, directive/context updates, MCP tools)

This module provides:
- TriageAgent: One event end to end, fail-closed
- ContextCompiler: Builds the context for the assistant
- AssistantDriver: The request/response/tool-call loop
- ActionDispatcher: Executes parsed actions
- ResponseParser: Model output to typed actions
- RetryingCaller: Timeout and retry around every model call
"""

from triage_bot.agent.core import TriageAgent
from triage_bot.agent.context import ContextCompiler
from triage_bot.agent.dispatcher import ActionDispatcher
from triage_bot.agent.driver import AssistantDriver, AssistantSettings, DriveResult
from triage_bot.agent.model import ModelClient, ModelRequest, OpenAIModelClient
from triage_bot.agent.parser import ParsedOutput, ResponseParser
from triage_bot.agent.retry import RetryingCaller

__all__ = [
    "TriageAgent",
    "ContextCompiler",
    "ActionDispatcher",
    "AssistantDriver",
    "AssistantSettings",
    "DriveResult",
    "ModelClient",
    "ModelRequest",
    "OpenAIModelClient",
    "ParsedOutput",
    "ResponseParser",
    "RetryingCaller",
]
