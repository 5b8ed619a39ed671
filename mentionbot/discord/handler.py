"""
mentionbot/discord/handler.py

on_message pipeline: admission checks → context assembly → optional trend
fetch → LLM call → reply. Every path ends in at most one reply.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
import logging
from typing import Awaitable, Callable, Optional

import discord

from mentionbot.config.loader import Settings
from mentionbot.discord.context import (
    build_llm_messages,
    build_system_prompt,
    contains_broadcast_mention,
    describe_mentioned_users,
    first_image_url,
    fit_reply,
    message_length,
    sanitize_broadcast_mentions,
    strip_bot_mention,
)
from mentionbot.discord.errors import notify_admin_error
from mentionbot.llm.errors import LLMError, format_user_friendly_error, parse_error_message
from mentionbot.llm.together_service import TogetherService
from mentionbot.llm.tools.trends import TrendFetchError, contains_trend_or_synonyms
from mentionbot.state import ConversationStore, RateLimiter

REPLY_SERVER_NOT_ALLOWED = "I am not allowed to respond in this server. Please contact the administrator."
REPLY_USER_EXCLUDED = "You are not allowed to use this bot. Please contact the administrator."
REPLY_RATE_LIMITED = "You are sending too many requests. Please wait a moment and try again."
REPLY_GENERIC_ERROR = "An error occurred while processing your request."
REPLY_TRENDS_UNAVAILABLE = "I couldn't fetch today's trends right now. Please try again later."

NO_BROADCAST = discord.AllowedMentions(everyone=False)

TrendFetcher = Callable[[], Awaitable[list[str]]]


def length_limit_reply(max_length: int) -> str:
    return f"Your message is too long. Please keep it under {max_length} characters."


class MessageHandler:
    def __init__(
        self,
        client: discord.Client,
        settings: Settings,
        llm: TogetherService,
        history: ConversationStore,
        rate_limiter: RateLimiter,
        trend_fetcher: TrendFetcher,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.client = client
        self.settings = settings
        self.llm = llm
        self.history = history
        self.rate_limiter = rate_limiter
        self.trend_fetcher = trend_fetcher
        self._now = now or (lambda: datetime.now().astimezone())
        self._background: set[asyncio.Task] = set()

    # ── Admission ───────────────────────────────────────────────────────────

    @staticmethod
    def is_mentioned(message: discord.Message, bot_id: int) -> bool:
        # Same rule as discord.ClientUser.mentioned_in().
        return message.mention_everyone or any(u.id == bot_id for u in message.mentions)

    async def handle(self, message: discord.Message) -> None:
        bot_user = self.client.user
        if bot_user is None or message.author.id == bot_user.id:
            return
        if not self.is_mentioned(message, bot_user.id):
            return

        author_id = message.author.id

        if message.guild is not None and str(message.guild.id) not in self.settings.allowed_servers:
            logging.info("%s | guild %s is not allowed", author_id, message.guild.id)
            await self._reply(message, REPLY_SERVER_NOT_ALLOWED)
            return

        if contains_broadcast_mention(message.content):
            return

        if str(author_id) in self.settings.excluded_users:
            logging.info("%s | user is excluded", author_id)
            await self._reply(message, REPLY_USER_EXCLUDED)
            return

        if self.rate_limiter.is_limited(author_id):
            logging.info("%s | message is currently restricted (%.1fs left).",
                         author_id, self.rate_limiter.remaining(author_id))
            await self._reply(message, REPLY_RATE_LIMITED)
            return

        self.rate_limiter.mark(author_id)

        length = message_length(message.content)
        if length > self.settings.max_length:
            logging.info("%s | message too long (%d chars)", author_id, length)
            await self._reply(message, length_limit_reply(self.settings.max_length))
            return

        await self._respond(message, bot_user)

    # ── Response ────────────────────────────────────────────────────────────

    async def _respond(self, message: discord.Message, bot_user: discord.ClientUser) -> None:
        author_id = message.author.id
        image_url = first_image_url(message.attachments)

        if message.guild is not None:
            self._start_typing(message.channel)

        content = strip_bot_mention(message.content, bot_user.id)
        mentioned_users = describe_mentioned_users(message, bot_user.id)

        self.history.append(author_id, "user", content)

        trends: list[str] = []
        if self.settings.enable_trend and contains_trend_or_synonyms(content):
            try:
                trends = await self.trend_fetcher()
            except TrendFetchError as e:
                if self.settings.trend_on_failure == "skip":
                    logging.warning("Trend fetch failed, answering without trends: %s", e)
                else:
                    logging.warning("Trend fetch failed: %s", e)
                    await self._notify_admins(e, f"Trend fetch for user {author_id}")
                    await self._reply(message, REPLY_TRENDS_UNAVAILABLE)
                    return

        system_prompt = build_system_prompt(bot_user.name, self._now(), mentioned_users, trends)
        messages = build_llm_messages(system_prompt, self.history.get(author_id), image_url)

        logging.info(
            "Message (uid:%s, image:%s, history:%d, trends:%d): %s",
            author_id, bool(image_url), len(messages) - 1, len(trends), content,
        )

        try:
            data = await self.llm.complete(messages)
        except LLMError as e:
            logging.error("LLM call failed for %s: %s", author_id, parse_error_message(e), exc_info=e)
            await self._notify_admins(e, f"LLM call for user {author_id}")
            await self._reply(message, format_user_friendly_error(e))
            return

        if not data or not data.strip():
            await self._reply(message, REPLY_GENERIC_ERROR)
            return

        await self._reply(message, fit_reply(sanitize_broadcast_mentions(data)))
        self.history.append(author_id, "assistant", data)

    # ── Helpers ─────────────────────────────────────────────────────────────

    async def _reply(self, message: discord.Message, text: str) -> None:
        try:
            await message.reply(text, allowed_mentions=NO_BROADCAST)
        except discord.HTTPException as e:
            logging.warning("Failed to reply to message %s: %s", message.id, e)

    async def _notify_admins(self, error: Exception, context: str) -> None:
        await notify_admin_error(self.client, self.settings.admin_ids, error, context)

    def _start_typing(self, channel: discord.abc.Messageable) -> None:
        task = asyncio.create_task(self._send_typing(channel))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    @staticmethod
    async def _send_typing(channel: discord.abc.Messageable) -> None:
        try:
            await channel.typing()
        except discord.HTTPException as e:
            logging.debug("Typing indicator failed: %s", e)

    def clear_user(self, user_id: int) -> bool:
        """Forget a user's history and cooldown. Returns True if history existed."""
        self.rate_limiter.reset(user_id)
        return self.history.clear(user_id)
