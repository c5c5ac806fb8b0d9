import logging
import redis
import time
from data.storage import StorageAdapter
from models.experiments import ABTestConfig, UserAssignment
from models.events import ConversionEvent
from config import config

logger = logging.getLogger(__name__)

# --- Configuration Constants ---
TEST_CONFIG_CACHE_TTL = 60       # 1 minute, configs can be deactivated
ASSIGNMENT_CACHE_TTL = 24 * 3600  # assignments never change once stored

# --- Valkey/Redis Backend Implementations ---

class _MockValkeyBackend:
    """Simulates the low-level Valkey/Redis client (in-memory, honours `ex`)."""
    def __init__(self):
        self._cache = {}

    def get(self, key: str) -> str | None:
        logger.debug("cache mock get: %s", key)
        entry = self._cache.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if time.monotonic() >= expires_at:
            self._cache.pop(key, None)
            return None
        return value

    def set(self, key: str, value: str, ex: int):
        logger.debug("cache mock set: %s (ex=%d)", key, ex)
        self._cache[key] = (value, time.monotonic() + ex)

    def delete(self, key: str):
        logger.debug("cache mock delete: %s", key)
        self._cache.pop(key, None)


class RealValkeyBackend:
    """Real implementation using redis-py client (compatible with Valkey)."""
    def __init__(self, host: str, port: int, db: int = 0, password: str | None = None):
        try:
            self.client = redis.Redis(
                host=host,
                port=port,
                db=db,
                password=password,
                decode_responses=True,
                socket_timeout=2.0
            )
            self.client.ping()
        except redis.RedisError as e:
            logger.error("Failed to connect to Valkey/Redis: %s", e)
            raise

    # Cache errors degrade to a miss; the storage stays the source of truth.

    def get(self, key: str) -> str | None:
        try:
            return self.client.get(key)
        except Exception as e:
            logger.error("Valkey GET error for key %s: %s", key, e)
            return None

    def set(self, key: str, value: str, ex: int):
        try:
            self.client.set(key, value, ex=ex)
        except Exception as e:
            logger.error("Valkey SET error for key %s: %s", key, e)

    def delete(self, key: str):
        try:
            self.client.delete(key)
        except Exception as e:
            logger.error("Valkey DEL error for key %s: %s", key, e)


# --- Dedicated Cache Client Class ---

class CacheClient:
    """High-level client for managing application cache operations."""

    def __init__(self, backend):
        self.backend = backend
        logger.debug("CacheClient backend: %s", self.backend)

    # --- Test Config Caching ---

    def get_test_config(self, test_id: str) -> ABTestConfig | None:
        json_str = self.backend.get(f"test:{test_id}")
        if json_str:
            return ABTestConfig.model_validate_json(json_str)
        return None

    def set_test_config(self, test: ABTestConfig):
        self.backend.set(f"test:{test.test_id}", test.model_dump_json(), ex=TEST_CONFIG_CACHE_TTL)
        logger.debug("Test %s cached.", test.test_id)

    def invalidate_test_config(self, test_id: str):
        self.backend.delete(f"test:{test_id}")

    # --- Assignment Caching ---

    def get_assignment(self, test_id: str, user_id: str) -> UserAssignment | None:
        json_str = self.backend.get(f"asn:{test_id}:{user_id}")
        if json_str:
            return UserAssignment.model_validate_json(json_str)
        return None

    def set_assignment(self, assignment: UserAssignment):
        key = f"asn:{assignment.test_id}:{assignment.user_id}"
        self.backend.set(key, assignment.model_dump_json(), ex=ASSIGNMENT_CACHE_TTL)
        logger.debug("Assignment for user %s (test %s) cached.", assignment.user_id, assignment.test_id)


class CachedStorage(StorageAdapter):
    """Read-through cache in front of another storage for the hot lookups."""

    def __init__(self, storage: StorageAdapter, cache: CacheClient):
        self.storage = storage
        self.cache = cache

    async def save_test_config(self, config: ABTestConfig) -> None:
        await self.storage.save_test_config(config)
        # drop rather than overwrite, the next read repopulates from storage
        self.cache.invalidate_test_config(config.test_id)

    async def get_test_config(self, test_id: str) -> ABTestConfig | None:
        config = self.cache.get_test_config(test_id)
        if config:
            logger.debug("get_test_config %s cache hit", test_id)
            return config

        config = await self.storage.get_test_config(test_id)
        if config:
            logger.debug("get_test_config %s cache miss", test_id)
            self.cache.set_test_config(config)
        return config

    async def list_test_configs(self) -> list[ABTestConfig]:
        return await self.storage.list_test_configs()

    async def save_assignment(self, assignment: UserAssignment) -> UserAssignment:
        stored = await self.storage.save_assignment(assignment)
        self.cache.set_assignment(stored)
        return stored

    async def get_assignment(self, test_id: str, user_id: str) -> UserAssignment | None:
        assignment = self.cache.get_assignment(test_id, user_id)
        if assignment:
            logger.debug("get_assignment %s/%s cache hit", test_id, user_id)
            return assignment

        assignment = await self.storage.get_assignment(test_id, user_id)
        if assignment:
            logger.debug("get_assignment %s/%s cache miss", test_id, user_id)
            self.cache.set_assignment(assignment)
        return assignment

    async def get_assignment_by_id(self, assignment_id: str) -> UserAssignment | None:
        return await self.storage.get_assignment_by_id(assignment_id)

    async def list_assignments(self, test_id: str) -> list[UserAssignment]:
        return await self.storage.list_assignments(test_id)

    async def save_conversion(self, event: ConversionEvent) -> None:
        await self.storage.save_conversion(event)

    async def list_conversions(self, test_id: str) -> list[ConversionEvent]:
        return await self.storage.list_conversions(test_id)


# --- Default Client ---

_DEFAULT_CACHE_CLIENT: CacheClient | None = None


def get_cache_client() -> CacheClient:
    """Shared client: Valkey when VALKEY_HOST is set and reachable, in-memory otherwise."""
    global _DEFAULT_CACHE_CLIENT
    if _DEFAULT_CACHE_CLIENT is None:
        backend = None
        if config.valkey_host:
            logger.info("valkey_host: %s, port: %d", config.valkey_host, config.valkey_port)
            try:
                backend = RealValkeyBackend(host=config.valkey_host, port=config.valkey_port)
            except Exception:
                logger.info("Falling back to Mock Valkey Backend due to connection failure.")
        _DEFAULT_CACHE_CLIENT = CacheClient(backend=backend or _MockValkeyBackend())
    return _DEFAULT_CACHE_CLIENT


def get_mock_cache_client():
    return CacheClient(backend=_MockValkeyBackend())
