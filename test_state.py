import unittest

from mentionbot.state import ConversationStore, RateLimiter


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestConversationStore(unittest.TestCase):
    def test_window_drops_oldest(self):
        store = ConversationStore(max_entries=5)
        for i in range(6):
            store.append(1, "user", f"turn {i}")

        history = store.get(1)
        self.assertEqual(len(history), 5)
        self.assertEqual(history[0], {"role": "user", "content": "turn 1"})
        self.assertEqual(history[-1]["content"], "turn 5")

    def test_users_are_independent(self):
        store = ConversationStore()
        store.append(1, "user", "a")
        store.append(2, "user", "b")
        store.append(2, "assistant", "c")
        self.assertEqual([e["content"] for e in store.get(1)], ["a"])
        self.assertEqual([e["role"] for e in store.get(2)], ["user", "assistant"])
        self.assertEqual(store.get(3), [])

    def test_get_returns_copies(self):
        store = ConversationStore()
        store.append(1, "user", "a")
        store.get(1)[0]["content"] = "changed"
        self.assertEqual(store.get(1)[0]["content"], "a")

    def test_clear(self):
        store = ConversationStore()
        store.append(1, "user", "a")
        self.assertTrue(store.clear(1))
        self.assertFalse(store.clear(1))
        self.assertEqual(store.get(1), [])

    def test_rejects_empty_window(self):
        with self.assertRaises(ValueError):
            ConversationStore(max_entries=0)


class TestRateLimiter(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.limiter = RateLimiter(5.0, clock=self.clock)

    def test_limited_until_window_ends(self):
        self.assertFalse(self.limiter.is_limited(1))
        self.limiter.mark(1)
        self.assertTrue(self.limiter.is_limited(1))
        self.clock.advance(4.9)
        self.assertTrue(self.limiter.is_limited(1))
        self.clock.advance(0.1)
        self.assertFalse(self.limiter.is_limited(1))

    def test_remark_extends_from_latest_mark(self):
        self.limiter.mark(1)
        self.clock.advance(3)
        self.limiter.mark(1)
        self.clock.advance(3)
        # an early clear from the first mark must not unlock the user
        self.assertTrue(self.limiter.is_limited(1))
        self.assertAlmostEqual(self.limiter.remaining(1), 2.0)

    def test_other_users_unaffected(self):
        self.limiter.mark(1)
        self.assertFalse(self.limiter.is_limited(2))

    def test_reset(self):
        self.limiter.mark(1)
        self.limiter.reset(1)
        self.assertFalse(self.limiter.is_limited(1))
        self.assertEqual(self.limiter.remaining(1), 0.0)


if __name__ == "__main__":
    unittest.main()
