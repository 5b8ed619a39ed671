from datetime import datetime
from types import SimpleNamespace
import unittest

from mentionbot.discord.context import (
    MAX_DISCORD_MESSAGE,
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

BOT_ID = 999


class TestSanitize(unittest.TestCase):
    def test_everyone_and_here(self):
        self.assertEqual(sanitize_broadcast_mentions("@everyone hi"), "[at]everyone hi")
        self.assertEqual(sanitize_broadcast_mentions("yo @here and @everyone"), "yo [at]here and [at]everyone")

    def test_plain_text_untouched(self):
        self.assertEqual(sanitize_broadcast_mentions("mail me @ home"), "mail me @ home")

    def test_contains_broadcast(self):
        self.assertTrue(contains_broadcast_mention("hey @here"))
        self.assertFalse(contains_broadcast_mention("hey there"))


class TestMessageParsing(unittest.TestCase):
    def test_strip_bot_mention(self):
        self.assertEqual(strip_bot_mention(f"<@{BOT_ID}> hello", BOT_ID), "hello")
        self.assertEqual(strip_bot_mention(f"hi <@!{BOT_ID}>  ", BOT_ID), "hi")
        self.assertEqual(strip_bot_mention("<@123> hello", BOT_ID), "<@123> hello")

    def test_message_length_counts_utf16_units(self):
        self.assertEqual(message_length("abc"), 3)
        self.assertEqual(message_length("トレンド"), 4)
        self.assertEqual(message_length("😀"), 2)

    def test_first_image_url(self):
        attachments = [
            SimpleNamespace(content_type="text/plain", url="https://cdn/a.txt"),
            SimpleNamespace(content_type=None, url="https://cdn/b"),
            SimpleNamespace(content_type="image/png", url="https://cdn/c.png"),
            SimpleNamespace(content_type="image/jpeg", url="https://cdn/d.jpg"),
        ]
        self.assertEqual(first_image_url(attachments), "https://cdn/c.png")
        self.assertIsNone(first_image_url([]))

    def test_describe_mentioned_users(self):
        bot = SimpleNamespace(id=BOT_ID, name="bot")
        alice = SimpleNamespace(id=7, name="alice")
        bob = SimpleNamespace(id=8, name="bob")
        members = {
            7: SimpleNamespace(nick="Ali", roles=[SimpleNamespace(name="@everyone"), SimpleNamespace(name="Mod"), SimpleNamespace(name="Artist")]),
        }
        message = SimpleNamespace(mentions=[bot, alice, bob], guild=SimpleNamespace(get_member=members.get))

        self.assertEqual(
            describe_mentioned_users(message, BOT_ID),
            "User alice (Id: 7, Nickname: Ali, Roles: Mod, Artist); "
            "User bob (Id: 8, Nickname: No nickname, Roles: )",
        )

    def test_describe_only_bot(self):
        message = SimpleNamespace(mentions=[SimpleNamespace(id=BOT_ID, name="bot")], guild=None)
        self.assertEqual(describe_mentioned_users(message, BOT_ID), "")


class TestPrompt(unittest.TestCase):
    now = datetime(2024, 5, 6, 9, 5, 7)

    def test_base_prompt(self):
        self.assertEqual(
            build_system_prompt("TestBot", self.now),
            "Always respond in Japanese and in one concise line. The bot's name is TestBot. "
            "Today is 2024-05-06 (Monday). The current time is 09:05:07.",
        )

    def test_with_mentions_and_trends(self):
        prompt = build_system_prompt("TestBot", self.now, "User alice (Id: 7)", ["大谷", "天気"])
        self.assertTrue(prompt.endswith(
            "The current time is 09:05:07. The message mentions the following users: User alice (Id: 7). "
            "Trends: 大谷, 天気"
        ))

    def test_llm_messages_with_image(self):
        history = [{"role": "user", "content": "what is this?"}]
        messages = build_llm_messages("sys", history, "https://cdn/c.png")
        self.assertEqual(messages[0], {"role": "system", "content": "sys"})
        self.assertEqual(messages[1], history[0])
        self.assertEqual(
            messages[2],
            {"role": "user", "content": [{"type": "image_url", "image_url": {"url": "https://cdn/c.png"}}]},
        )

    def test_llm_messages_without_image(self):
        self.assertEqual(len(build_llm_messages("sys", [])), 1)


class TestFitReply(unittest.TestCase):
    def test_short_reply_kept(self):
        self.assertEqual(fit_reply("hi"), "hi")

    def test_long_reply_truncated(self):
        out = fit_reply("x" * (MAX_DISCORD_MESSAGE + 500))
        self.assertEqual(len(out), MAX_DISCORD_MESSAGE)
        self.assertTrue(out.endswith("…"))


if __name__ == "__main__":
    unittest.main()
