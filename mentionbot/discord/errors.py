from __future__ import annotations

from datetime import datetime
import logging
from typing import Iterable, Optional

import discord

from mentionbot.llm.errors import parse_error_message

REPLY_COMMAND_FAILED = "An error occurred while running this command. The administrator has been notified."


def format_admin_notice(error: Exception, context: str, now: Optional[datetime] = None) -> str:
    """DM body sent to admins: timestamp, where it happened, classified error."""
    stamp = (now or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")
    lines = ["🤖 **mentionbot error**", f"⏰ {stamp}"]
    if context:
        lines.append(f"📝 {context}")
    lines.append(parse_error_message(error))
    return "\n".join(lines)


async def notify_admin_error(
    client: discord.Client,
    admin_ids: Iterable[int],
    error: Exception,
    context: str = "",
) -> None:
    """
    DM every configured admin. Never raises: a failed DM is only logged.
    """
    admin_ids = list(admin_ids)
    if not admin_ids:
        return

    notice = format_admin_notice(error, context)
    for admin_id in admin_ids:
        try:
            admin = client.get_user(admin_id) or await client.fetch_user(admin_id)
            await admin.send(notice)
        except discord.DiscordException as e:
            logging.warning("Could not notify admin %s: %s", admin_id, e)


async def _send_ephemeral(interaction: discord.Interaction, text: str) -> None:
    if interaction.response.is_done():
        await interaction.followup.send(text, ephemeral=True)
    else:
        await interaction.response.send_message(text, ephemeral=True)


async def handle_app_command_error(
    interaction: discord.Interaction,
    error: Exception,
    client: discord.Client,
    admin_ids: Iterable[int],
) -> None:
    command = getattr(interaction.command, "name", "unknown")
    logging.exception("/%s failed for %s: %s", command, interaction.user.id, error)
    await notify_admin_error(client, admin_ids, error, f"/{command} used by {interaction.user.id}")
    try:
        await _send_ephemeral(interaction, REPLY_COMMAND_FAILED)
    except discord.HTTPException as e:
        logging.warning("Could not report /%s failure to user: %s", command, e)
