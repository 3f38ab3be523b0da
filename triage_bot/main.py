"""
Triage Bot - Main Entry Point
=============================

This is the main entry point for the bot. It:
1. Loads configuration
2. Initializes all components (storage, tools, chat, agent)
3. Sets up Slack handlers
4. Starts the bot

Run with:
    python -m triage_bot.main

Or after installing:
    triage-bot [-v] [--env-file PATH]
"""

import argparse
import asyncio
import signal
import sys
from pathlib import Path

from triage_bot.utils.config import get_config
from triage_bot.utils.logger import Logger, LogLevel, set_log_level

main_logger = Logger("Main")


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="triage-bot",
        description="Slack bot that triages channel messages with OpenAI models and MCP tools.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file (default: search from the working directory)",
    )
    return parser.parse_args(argv)


async def main(args: argparse.Namespace) -> None:
    """
    Main async entry point.

    Initializes all components and runs the bot until it is stopped.
    """
    main_logger.info("Starting triage bot...")

    registry = None
    handler = None
    intake = None

    try:
        # 1. Load configuration
        # This validates that all required env vars are set
        main_logger.info("Loading configuration...")
        config = get_config(args.env_file)
        set_log_level(LogLevel.DEBUG if args.verbose else config.log_level)

        # 2. Initialize storage
        main_logger.info("Initializing storage...")
        from triage_bot.storage import JsonChannelStore
        storage = JsonChannelStore(config.data_dir)

        # 3. Discover MCP tools
        main_logger.info("Discovering tools...")
        from triage_bot.tools import load_tool_sources
        from triage_bot.tools.client import ToolRegistryClient
        registry = ToolRegistryClient()
        await registry.discover(load_tool_sources(config.mcp_config_path))

        # 4. Create Slack app and chat client
        main_logger.info("Creating Slack app...")
        from triage_bot.slack import SlackChatClient, create_slack_app, create_socket_handler
        app = create_slack_app(config.slack)
        chat = await SlackChatClient.connect(app.client)

        # 5. Create the agent
        main_logger.info("Creating agent...")
        from triage_bot.agent import OpenAIModelClient, TriageAgent
        agent = TriageAgent.from_config(
            config.agent,
            chat=chat,
            storage=storage,
            model_client=OpenAIModelClient(config.agent.openai.api_key),
            tools=registry,
        )

        # 6. Register event handlers
        main_logger.info("Registering event handlers...")
        from triage_bot.slack import EventIntake, register_handlers
        intake = EventIntake(agent, chat.bot_user_id)
        register_handlers(app, intake)

        # 7. Start the Socket Mode handler
        main_logger.info("Starting Socket Mode connection...")
        handler = create_socket_handler(app, config.slack)
        await handler.connect_async()

        # Run until a shutdown signal arrives
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop.set)

        main_logger.info("Triage bot is running! Press Ctrl+C to stop.")
        await stop.wait()

    except Exception as e:
        main_logger.error("Failed to start bot", e)
        await _shutdown(handler, intake, registry)
        sys.exit(1)

    await _shutdown(handler, intake, registry)


async def _shutdown(handler, intake, registry) -> None:
    """
    Graceful shutdown.

    Args:
        handler: The Socket Mode handler, if started
        intake: The event intake, if created
        registry: The tool registry, if created
    """
    main_logger.info("Shutting down...")

    # Stop receiving events, then let in-flight runs finish
    if handler is not None:
        await handler.close_async()
    if intake is not None:
        await intake.drain()

    # Close the MCP connections
    if registry is not None:
        await registry.close()

    main_logger.info("Shutdown complete")


def run(argv: list[str] | None = None) -> None:
    """
    Synchronous entry point.

    This is called when running with the `triage-bot` command.
    """
    args = parse_args(argv)
    try:
        asyncio.run(main(args))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
