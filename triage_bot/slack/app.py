"""
Slack Bolt App
==============

Creates and configures the Slack Bolt application.

Slack Bolt is the official framework for building Slack apps. It provides:
- Socket Mode connection (no public URL needed)
- Event handling with decorators
- Built-in request verification

Why Socket Mode?
- No need for a public URL or webhook
- Works behind firewalls
- A triage bot only ever listens to the workspaces it is installed in
"""

from slack_bolt.adapter.socket_mode.async_handler import AsyncSocketModeHandler
from slack_bolt.async_app import AsyncApp

from triage_bot.utils.config import SlackConfig
from triage_bot.utils.logger import Logger

logger = Logger("SlackApp")


def create_slack_app(config: SlackConfig) -> AsyncApp:
    """
    Create and configure the Slack Bolt app.

    Args:
        config: Slack tokens

    Returns:
        Configured AsyncApp instance
    """
    app = AsyncApp(
        token=config.bot_token,
        signing_secret=config.signing_secret,
    )

    logger.info("Slack Bolt app created")

    return app


def create_socket_handler(app: AsyncApp, config: SlackConfig) -> AsyncSocketModeHandler:
    """
    Create a Socket Mode handler for the app.

    Socket Mode establishes a WebSocket connection to Slack,
    allowing the bot to receive events without a public URL.

    Args:
        app: The Bolt app instance
        config: Slack tokens (the app-level token opens the socket)

    Returns:
        Configured socket handler
    """
    handler = AsyncSocketModeHandler(
        app=app,
        app_token=config.app_token
    )

    logger.info("Socket Mode handler created")

    return handler
