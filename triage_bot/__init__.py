"""
Triage Bot - Slack Channel Triage Assistant
===========================================

A Slack bot that watches support channels and triages new messages:
it gathers context with two helper agents (web search and message
search), lets an assistant agent decide what to do, and carries out the
decision: a classified thread reply, an update to the channel's directive
or context, or a call to a tool served over MCP.

This package provides:
- agent: The orchestration engine (context, model loop, parsing, dispatch)
- tools: MCP tool sources and the tool registry client
- storage: Channel directives, context and message history
- slack: Bolt app, event intake and the chat client
"""

__version__ = "1.0.0"
