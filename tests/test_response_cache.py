import json
import unittest

from goldpulse.integrations.session_storage import MemorySessionStorage
from goldpulse.services.response_cache import ResponseCache
from support import FakeClock


class ResponseCacheTest(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock(0.0)
        self.storage = MemorySessionStorage()
        self.cache = ResponseCache(self.storage, clock=self.clock)

    def test_entry_is_hit_until_ttl_and_removed_after(self):
        self.cache.set("chart:QQQ:1d:1d", {"price": 1.0}, ttl=60.0)

        self.clock.now = 59.999
        self.assertEqual(self.cache.get("chart:QQQ:1d:1d"), {"price": 1.0})

        self.clock.now = 60.001
        self.assertIs(self.cache.get("chart:QQQ:1d:1d"), ResponseCache.MISS)
        self.assertNotIn("chart:QQQ:1d:1d", self.cache)
        self.assertNotIn("chart:QQQ:1d:1d", json.loads(self.storage.get_item("api_cache")))

    def test_unknown_key_is_miss(self):
        self.assertIs(self.cache.get("nope"), ResponseCache.MISS)
        self.assertEqual(self.cache.metrics()["cache_misses"], 1)

    def test_set_and_get_copy_values(self):
        value = {"price": 1.0, "tags": ["a"]}
        self.cache.set("k", value)
        value["tags"].append("mutated")

        first = self.cache.get("k")
        first["tags"].append("mutated-again")

        self.assertEqual(self.cache.get("k"), {"price": 1.0, "tags": ["a"]})

    def test_set_supersedes_previous_entry(self):
        self.cache.set("k", 1, ttl=10)
        self.clock.now = 9.0
        self.cache.set("k", 2, ttl=10)
        self.clock.now = 15.0

        self.assertEqual(self.cache.get("k"), 2)
        self.assertEqual(self.cache.keys(), ["k"])

    def test_default_ttl_applies_when_not_given(self):
        self.cache.set("k", "v")
        self.clock.now = 60.0
        self.assertEqual(self.cache.get("k"), "v")
        self.clock.now = 60.5
        self.assertIs(self.cache.get("k"), ResponseCache.MISS)

    def test_write_through_persists_whole_mapping(self):
        self.cache.set("metals:XAU-USD:usd", {"price": 2650.0}, ttl=60)
        self.cache.set("chart:QQQ:1d:1d", {"price": 522.0}, ttl=60)

        stored = json.loads(self.storage.get_item("api_cache"))

        self.assertEqual(set(stored), {"metals:XAU-USD:usd", "chart:QQQ:1d:1d"})
        self.assertEqual(stored["chart:QQQ:1d:1d"]["value"], {"price": 522.0})
        self.assertEqual(stored["chart:QQQ:1d:1d"]["ttl"], 60.0)

    def test_rehydrates_and_discards_expired_entries(self):
        self.cache.set("fresh", 1, ttl=100)
        self.cache.set("stale", 2, ttl=10)

        self.clock.now = 50.0
        reloaded = ResponseCache(self.storage, clock=self.clock)

        self.assertEqual(reloaded.keys(), ["fresh"])
        self.assertEqual(reloaded.get("fresh"), 1)

    def test_corrupt_storage_is_ignored(self):
        self.storage.set_item("api_cache", "{not json")

        reloaded = ResponseCache(self.storage, clock=self.clock)

        self.assertEqual(reloaded.keys(), [])

    def test_clear_with_pattern_removes_matching_keys(self):
        self.cache.set("chart:QQQ:1d:1d", 1)
        self.cache.set("chart:history:QQQ:1h:5d", 2)
        self.cache.set("metals:XAU-USD:usd", 3)

        removed = self.cache.clear("chart:")

        self.assertEqual(removed, 2)
        self.assertEqual(self.cache.keys(), ["metals:XAU-USD:usd"])
        self.assertEqual(list(json.loads(self.storage.get_item("api_cache"))), ["metals:XAU-USD:usd"])

    def test_clear_without_pattern_empties_cache(self):
        self.cache.set("a", 1)
        self.cache.set("b", 2)

        self.assertEqual(self.cache.clear(), 2)
        self.assertEqual(self.cache.keys(), [])
        self.assertEqual(json.loads(self.storage.get_item("api_cache")), {})

    def test_storage_budget_evicts_oldest_first(self):
        cache = ResponseCache(self.storage, clock=self.clock, max_storage_bytes=200)
        for i in range(6):
            self.clock.now = float(i)
            cache.set(f"key-{i}", "x" * 20, ttl=600)

        keys = cache.keys()
        self.assertIn("key-5", keys)
        self.assertNotIn("key-0", keys)
        self.assertLessEqual(len(self.storage.get_item("api_cache").encode("utf-8")), 200)
        self.assertGreater(cache.metrics()["cache_evicted"], 0)

    def test_storage_write_failure_keeps_memory_authoritative(self):
        class FullStorage(MemorySessionStorage):
            def set_item(self, key, value):
                raise OSError("quota exceeded")

        cache = ResponseCache(FullStorage(), clock=self.clock)
        cache.set("k", {"price": 3.0})

        self.assertEqual(cache.get("k"), {"price": 3.0})


if __name__ == "__main__":
    unittest.main()
