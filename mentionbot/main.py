"""
Entrypoint: `python -m mentionbot.main` or the `mentionbot` console script.

Builds the stores, LLM service and HTTP client once, wires them into the
MessageHandler and starts the Discord client.
"""

import asyncio
from functools import partial
import logging
import os
import sys
from typing import Awaitable, Callable

import discord
from discord.ext import commands
import httpx

from mentionbot.config.loader import Settings, get_config
from mentionbot.discord.errors import handle_app_command_error
from mentionbot.discord.handler import MessageHandler
from mentionbot.llm.together_service import TogetherService
from mentionbot.llm.tools.trends import get_today_trends_in_japanese
from mentionbot.state import ConversationStore, RateLimiter


def setup_logging() -> None:
    if os.environ.get("DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="%(asctime)s %(levelname)s: %(message)s")
        logging.getLogger("httpx").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s: %(message)s")
        logging.getLogger("httpx").setLevel(logging.WARNING)


def build_bot(settings: Settings) -> tuple[commands.Bot, Callable[[], Awaitable[None]]]:
    intents = discord.Intents.default()
    intents.message_content = True
    activity = discord.CustomActivity(name=settings.status_message[:128]) if settings.status_message else None
    discord_bot = commands.Bot(intents=intents, activity=activity, command_prefix=None)

    httpx_client = httpx.AsyncClient()
    llm = TogetherService.from_config(settings.llm)
    handler = MessageHandler(
        discord_bot,
        settings,
        llm,
        ConversationStore(settings.history_size),
        RateLimiter(settings.rate_limit_seconds),
        trend_fetcher=partial(get_today_trends_in_japanese, httpx_client, settings.trend_timeout_seconds),
    )

    @discord_bot.tree.command(name="clear", description="Clear your conversation history with the bot")
    async def clear_command(interaction: discord.Interaction) -> None:
        had_history = handler.clear_user(interaction.user.id)
        out = "✅ Conversation history cleared." if had_history else "There was no conversation history to clear."
        await interaction.response.send_message(out, ephemeral=True)
        logging.info("History cleared by %s", interaction.user.id)

    @discord_bot.tree.error
    async def on_app_command_error(interaction: discord.Interaction, error: Exception) -> None:
        await handle_app_command_error(interaction, error, discord_bot, settings.admin_ids)

    @discord_bot.event
    async def on_ready() -> None:
        await discord_bot.tree.sync()
        logging.info("Logged in as %s (%s) | allowed servers: %d | trends: %s",
                     discord_bot.user, discord_bot.user.id, len(settings.allowed_servers), settings.enable_trend)

    @discord_bot.event
    async def on_message(message: discord.Message) -> None:
        await handler.handle(message)

    async def close_clients() -> None:
        await httpx_client.aclose()
        await llm.close()

    return discord_bot, close_clients


async def run_bot(settings: Settings) -> None:
    discord_bot, close_clients = build_bot(settings)
    try:
        async with discord_bot:
            await discord_bot.start(settings.bot_token)
    finally:
        await close_clients()


def main() -> None:
    setup_logging()
    settings = Settings.from_config(get_config())
    logging.info("🚀 Bot starting | text model: %s | vision model: %s",
                 settings.llm.get("text_model", "default"), settings.llm.get("vision_model", "default"))
    try:
        asyncio.run(run_bot(settings))
    except KeyboardInterrupt:
        pass
    except discord.LoginFailure as e:
        logging.error("Discord login failed: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
