import unittest
from unittest.mock import AsyncMock, MagicMock, patch
from data.memory import MemoryStorage
from models.experiments import ABTestConfig, UserAssignment
from services.cache import (
    ASSIGNMENT_CACHE_TTL,
    TEST_CONFIG_CACHE_TTL,
    CacheClient,
    CachedStorage,
    _MockValkeyBackend,
    get_mock_cache_client,
)
from services.assignment import deactivate_test, ensure_test_config, resolve_assignment


class TestCacheClient(unittest.TestCase):

    def test_assignment_round_trip_with_ttl(self):
        backend = MagicMock()
        client = CacheClient(backend=backend)
        assignment = UserAssignment(id="a1", test_id="cta", user_id="u1", variant={"color": "red"})

        client.set_assignment(assignment)

        key, value = backend.set.call_args.args
        self.assertEqual(key, "asn:cta:u1")
        self.assertEqual(backend.set.call_args.kwargs["ex"], ASSIGNMENT_CACHE_TTL)

        backend.get.return_value = value
        self.assertEqual(client.get_assignment("cta", "u1"), assignment)

    @patch('services.cache.time')
    def test_mock_backend_expires_keys(self, mock_time):
        mock_time.monotonic.return_value = 100.0
        backend = _MockValkeyBackend()
        backend.set("test:cta", "cached", ex=60)

        mock_time.monotonic.return_value = 159.0
        self.assertEqual(backend.get("test:cta"), "cached")

        mock_time.monotonic.return_value = 160.0
        self.assertIsNone(backend.get("test:cta"))
        self.assertNotIn("test:cta", backend._cache)

    def test_miss_returns_none(self):
        client = get_mock_cache_client()
        self.assertIsNone(client.get_test_config("nope"))
        self.assertIsNone(client.get_assignment("nope", "u1"))


class TestCachedStorage(unittest.IsolatedAsyncioTestCase):

    async def asyncSetUp(self):
        self.inner = MemoryStorage()
        self.storage = CachedStorage(self.inner, get_mock_cache_client())
        await ensure_test_config(self.storage, "cta", ["A", "B"])

    async def test_assignment_served_from_cache(self):
        first = await resolve_assignment(self.storage, "cta", "user-1")

        self.storage.storage = AsyncMock()
        second = await self.storage.get_assignment("cta", "user-1")

        self.assertEqual(first, second)
        self.storage.storage.get_assignment.assert_not_called()

    async def test_deactivation_invalidates_config(self):
        self.assertTrue((await self.storage.get_test_config("cta")).active)  # warms the cache
        await deactivate_test(self.storage, "cta")
        self.assertFalse((await self.storage.get_test_config("cta")).active)
        self.assertIsNone(await resolve_assignment(self.storage, "cta", "user-2"))

    async def test_race_winner_is_cached(self):
        winner = UserAssignment(id="winner", test_id="cta", user_id="u9", variant="B")
        await self.inner.save_assignment(winner)

        loser = UserAssignment(id="loser", test_id="cta", user_id="u9", variant="A")
        stored = await self.storage.save_assignment(loser)

        self.assertEqual(stored.id, "winner")
        self.assertEqual(self.storage.cache.get_assignment("cta", "u9").id, "winner")

    async def test_lists_pass_through(self):
        await resolve_assignment(self.storage, "cta", "user-3")
        self.assertEqual(len(await self.storage.list_assignments("cta")), 1)
        self.assertEqual([c.test_id for c in await self.storage.list_test_configs()], ["cta"])
        self.assertIsInstance((await self.storage.list_test_configs())[0], ABTestConfig)

    @patch('services.cache.time')
    async def test_deactivation_reaches_other_cache_after_ttl(self, mock_time):
        """Another instance's cached config goes stale for at most TEST_CONFIG_CACHE_TTL."""
        mock_time.monotonic.return_value = 1000.0
        inner = MemoryStorage()
        instance_a = CachedStorage(inner, get_mock_cache_client())
        instance_b = CachedStorage(inner, get_mock_cache_client())
        await ensure_test_config(instance_a, "cta", ["A", "B"])
        self.assertIsNotNone(await resolve_assignment(instance_b, "cta", "u1"))  # warms b

        await deactivate_test(instance_a, "cta")
        self.assertIsNone(await resolve_assignment(instance_a, "cta", "u2"))
        self.assertIsNotNone(await resolve_assignment(instance_b, "cta", "u2"))

        mock_time.monotonic.return_value = 1000.0 + TEST_CONFIG_CACHE_TTL
        self.assertIsNone(await resolve_assignment(instance_b, "cta", "u3"))
