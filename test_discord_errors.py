from datetime import datetime
from types import SimpleNamespace
import unittest
from unittest.mock import AsyncMock, MagicMock

import discord

from mentionbot.discord.errors import (
    REPLY_COMMAND_FAILED,
    format_admin_notice,
    handle_app_command_error,
    notify_admin_error,
)
from mentionbot.llm.errors import LLMRateLimitError
from mentionbot.llm.tools.trends import TrendFetchError


class TestAdminNotice(unittest.TestCase):
    def test_includes_time_context_and_classification(self):
        notice = format_admin_notice(LLMRateLimitError("429"), "LLM call for user 5", datetime(2024, 5, 6, 9, 0, 0))
        self.assertIn("2024-05-06 09:00:00", notice)
        self.assertIn("LLM call for user 5", notice)
        self.assertIn("Rate Limited", notice)

    def test_without_context(self):
        notice = format_admin_notice(TrendFetchError("HTTP error! Status: 500"), "")
        self.assertIn("TrendFetchError: HTTP error! Status: 500", notice)
        self.assertNotIn("📝", notice)


class TestNotifyAdminError(unittest.IsolatedAsyncioTestCase):
    async def test_no_admins_is_a_no_op(self):
        client = MagicMock()
        await notify_admin_error(client, [], ValueError("x"))
        client.get_user.assert_not_called()

    async def test_fetches_uncached_admin(self):
        admin = SimpleNamespace(send=AsyncMock())
        client = SimpleNamespace(get_user=MagicMock(return_value=None), fetch_user=AsyncMock(return_value=admin))
        await notify_admin_error(client, [42], ValueError("boom"), "ctx")
        client.fetch_user.assert_awaited_once_with(42)
        admin.send.assert_awaited_once()

    async def test_failed_dm_does_not_stop_others(self):
        blocked = SimpleNamespace(send=AsyncMock(side_effect=discord.DiscordException("DMs closed")))
        ok = SimpleNamespace(send=AsyncMock())
        client = SimpleNamespace(get_user=MagicMock(side_effect=[blocked, ok]), fetch_user=AsyncMock())
        await notify_admin_error(client, [1, 2], ValueError("boom"))
        ok.send.assert_awaited_once()


class TestAppCommandError(unittest.IsolatedAsyncioTestCase):
    def make_interaction(self, done):
        interaction = MagicMock()
        interaction.command = SimpleNamespace(name="clear")
        interaction.user = SimpleNamespace(id=7)
        interaction.response.is_done = MagicMock(return_value=done)
        interaction.response.send_message = AsyncMock()
        interaction.followup.send = AsyncMock()
        return interaction

    async def test_replies_ephemerally(self):
        interaction = self.make_interaction(done=False)
        await handle_app_command_error(interaction, ValueError("boom"), MagicMock(), [])
        interaction.response.send_message.assert_awaited_once_with(REPLY_COMMAND_FAILED, ephemeral=True)
        interaction.followup.send.assert_not_awaited()

    async def test_uses_followup_after_response(self):
        interaction = self.make_interaction(done=True)
        await handle_app_command_error(interaction, ValueError("boom"), MagicMock(), [])
        interaction.followup.send.assert_awaited_once_with(REPLY_COMMAND_FAILED, ephemeral=True)


if __name__ == "__main__":
    unittest.main()
