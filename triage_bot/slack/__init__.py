"""
Slack Integration
=================

Handles all Slack-related functionality:
- chat: the chat client the agent replies, reacts and reads threads through
- app: Bolt app and Socket Mode handler
- handlers: event intake and routing to the agent
"""

from triage_bot.slack.chat import ChatClient, SlackChatClient
from triage_bot.slack.app import create_slack_app, create_socket_handler
from triage_bot.slack.handlers import EventIntake, register_handlers

__all__ = [
    "ChatClient",
    "SlackChatClient",
    "create_slack_app",
    "create_socket_handler",
    "EventIntake",
    "register_handlers",
]
