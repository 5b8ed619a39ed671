"""
Prompt and context assembly for a single inbound message.

Everything here is synchronous and free of network I/O so the handler can
stay a thin orchestration layer.
"""

from __future__ import annotations

from datetime import datetime
import re
from typing import Any, Iterable, Optional

import discord

BROADCAST_MENTIONS = ("@here", "@everyone")
WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
DEFAULT_ROLE_NAME = "@everyone"
MAX_DISCORD_MESSAGE = 2000

_BROADCAST_RE = re.compile(r"@(everyone|here)")


def contains_broadcast_mention(content: str) -> bool:
    return any(m in content for m in BROADCAST_MENTIONS)


def sanitize_broadcast_mentions(text: str) -> str:
    """'@everyone hi' -> '[at]everyone hi' so the reply can never mass-ping."""
    return _BROADCAST_RE.sub(r"[at]\1", text)


def message_length(content: str) -> int:
    """Length as Discord counts it: UTF-16 code units, so an emoji may count as 2."""
    return len(content.encode("utf-16-le")) // 2


def strip_bot_mention(content: str, bot_id: int) -> str:
    return re.sub(rf"<@!?{bot_id}>", "", content, count=1).strip()


def first_image_url(attachments: Iterable[discord.Attachment]) -> Optional[str]:
    for a in attachments:
        if a.content_type and a.content_type.startswith("image/"):
            return a.url
    return None


def describe_mentioned_users(message: discord.Message, bot_id: int) -> str:
    """
    One clause per mentioned user other than the bot:
    'User alice (Id: 1, Nickname: Ali, Roles: Mod, Artist)', joined by '; '.
    """
    parts = []
    for user in message.mentions:
        if user.id == bot_id:
            continue
        # Cached Member first; guild mentions are usually Members already.
        member = (message.guild.get_member(user.id) if message.guild else None) or user
        nickname = getattr(member, "nick", None) or "No nickname"
        roles = ", ".join(r.name for r in getattr(member, "roles", ()) if r.name != DEFAULT_ROLE_NAME)
        parts.append(f"User {user.name} (Id: {user.id}, Nickname: {nickname}, Roles: {roles})")
    return "; ".join(parts)


def build_system_prompt(
    bot_name: str,
    now: datetime,
    mentioned_users: str = "",
    trends: Iterable[str] = (),
) -> str:
    prompt = (
        "Always respond in Japanese and in one concise line. "
        f"The bot's name is {bot_name}. "
        f"Today is {now.date().isoformat()} ({WEEKDAYS[now.weekday()]}). "
        f"The current time is {now.strftime('%H:%M:%S')}."
    )
    parts = [prompt]
    if mentioned_users:
        parts.append(f"The message mentions the following users: {mentioned_users}.")
    trends = list(trends)
    if trends:
        parts.append("Trends: " + ", ".join(trends))
    return " ".join(parts)


def build_llm_messages(
    system_prompt: str,
    history: list[dict[str, Any]],
    image_url: Optional[str] = None,
) -> list[dict[str, Any]]:
    messages: list[dict[str, Any]] = [{"role": "system", "content": system_prompt}, *history]
    if image_url:
        messages.append({
            "role": "user",
            "content": [{"type": "image_url", "image_url": {"url": image_url}}],
        })
    return messages


def fit_reply(text: str) -> str:
    if len(text) <= MAX_DISCORD_MESSAGE:
        return text
    return text[: MAX_DISCORD_MESSAGE - 1] + "…"
