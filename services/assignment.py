from typing import Any, Sequence
from data.storage import StorageAdapter
from models.experiments import ABTestConfig, UserAssignment, utc_now, variant_key
from models.events import ConversionEvent, DEFAULT_EVENT
from services.bucketing import assign_variant
from services.errors import ConfigurationError, NotFoundError
import logging
import math
import uuid

logger = logging.getLogger(__name__)

# Allowed drift of the weight sum away from 1.0
WEIGHT_TOLERANCE = 0.001


def new_id() -> str:
    return uuid.uuid4().hex


def generate_equal_weights(variant_count: int) -> list[float]:
    return [1 / variant_count] * variant_count


def validate_test_config(test_id: str, variants: Sequence[Any], weights: Sequence[float] | None):
    """Raises ConfigurationError for a test shape the bucketing can't serve."""
    if not test_id:
        raise ConfigurationError("Test ID is required")
    if not variants or len(variants) < 2:
        raise ConfigurationError("At least 2 variants are required")

    try:
        keys = [variant_key(v) for v in variants]
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Variants must be JSON values: {e}") from e
    if len(keys) != len(set(keys)):
        raise ConfigurationError("Variants must be unique")

    if weights is not None:
        if len(weights) != len(variants):
            raise ConfigurationError("Weights array must match variants array length")
        if not all(math.isfinite(w) for w in weights):
            raise ConfigurationError("Weights must be finite numbers")
        if any(w < 0 for w in weights):
            raise ConfigurationError("Weights must not be negative")
        total = sum(weights)
        if abs(total - 1) > WEIGHT_TOLERANCE:
            raise ConfigurationError(f"Weights must sum to 1, got {total}")


class VariantAssignment:
    """
    What a caller gets back from `run_test`: the variant to show plus a
    `convert` coroutine bound to the assignment.

    A fallback handle (no resolvable assignment) carries the first variant
    and its `convert` does nothing, so the caller's conversion path never
    fails because a test was stopped.
    """

    def __init__(self, variant: Any, assignment: UserAssignment, storage: StorageAdapter | None = None):
        self.variant = variant
        self.assignment = assignment
        self._storage = storage

    @property
    def is_fallback(self) -> bool:
        return self._storage is None

    async def convert(self, event: str = DEFAULT_EVENT, metadata: dict[str, Any] | None = None) -> ConversionEvent | None:
        if self._storage is None:
            logger.debug("convert on fallback assignment for test %s ignored", self.assignment.test_id)
            return None
        return await record_conversion(self._storage, self.assignment, event, metadata)

    def __repr__(self):
        return f"<VariantAssignment test={self.assignment.test_id} user={self.assignment.user_id} variant={self.variant!r} fallback={self.is_fallback}>"


# --- Test Configs ---

async def ensure_test_config(
    storage: StorageAdapter,
    test_id: str,
    variants: Sequence[Any],
    weights: Sequence[float] | None = None,
    metadata: dict[str, Any] | None = None,
) -> ABTestConfig:
    """Creates the test config if none exists; an existing one is returned unchanged."""
    validate_test_config(test_id, variants, weights)

    existing = await storage.get_test_config(test_id)
    if existing:
        if [variant_key(v) for v in existing.variants] != [variant_key(v) for v in variants]:
            logger.debug("ensure_test_config %s: stored variants differ from requested, keeping stored", test_id)
        return existing

    config_metadata = {"created_at": utc_now().isoformat()}
    config_metadata.update(metadata or {})

    config = ABTestConfig(
        test_id=test_id,
        variants=list(variants),
        weights=list(weights) if weights is not None else generate_equal_weights(len(variants)),
        active=True,
        metadata=config_metadata,
    )
    await storage.save_test_config(config)
    logger.info("create new test %s with variants %s", test_id, config.variants)
    return config


async def get_test(storage: StorageAdapter, test_id: str) -> ABTestConfig | None:
    return await storage.get_test_config(test_id)


async def list_tests(storage: StorageAdapter) -> list[ABTestConfig]:
    return await storage.list_test_configs()


async def deactivate_test(storage: StorageAdapter, test_id: str) -> bool:
    """Stops a test. Returns False (and logs) when the test doesn't exist."""
    config = await storage.get_test_config(test_id)
    if not config:
        logger.warning("deactivate_test: test %s not found", test_id)
        return False

    await storage.save_test_config(config.model_copy(update={"active": False}))
    logger.info("test %s stopped", test_id)
    return True


# --- Idempotent Assignment ---

async def resolve_assignment(storage: StorageAdapter, test_id: str, user_id: str) -> UserAssignment | None:
    """
    Returns the user's assignment for the test, creating it on first request.
    None when the test is unknown or no longer active.
    """
    config = await storage.get_test_config(test_id)
    if not config or not config.active:
        logger.debug("resolve_assignment: test %s missing or inactive", test_id)
        return None

    existing = await storage.get_assignment(test_id, user_id)
    if existing:
        logger.debug("Found persistent assignment for user %s on test %s: %s", user_id, test_id, existing.variant)
        return existing

    variant = assign_variant(test_id, user_id, config.variants, config.weights)
    assignment = UserAssignment(
        id=new_id(),
        test_id=test_id,
        user_id=user_id,
        variant=variant,
        assigned_at=utc_now(),
    )
    stored = await storage.save_assignment(assignment)

    if stored.id != assignment.id:
        # a concurrent request stored first; its assignment wins
        logger.warning("RACE DETECTED: user %s on test %s already assigned, using stored assignment %s",
                       user_id, test_id, stored.id)
    else:
        logger.info("User %s newly assigned to %s (test %s)", user_id, variant, test_id)
    return stored


async def run_test(
    storage: StorageAdapter,
    test_id: str,
    variants: Sequence[Any],
    user_id: str,
    weights: Sequence[float] | None = None,
    metadata: dict[str, Any] | None = None,
) -> VariantAssignment:
    """Auto-creates the test on first use and returns the user's variant handle."""
    test_metadata = {"name": f"Auto-generated test: {test_id}"}
    test_metadata.update(metadata or {})
    config = await ensure_test_config(storage, test_id, variants, weights, test_metadata)

    assignment = await resolve_assignment(storage, test_id, user_id)
    if not assignment:
        logger.warning("No variant assigned for test %s, returning first variant", test_id)
        fallback = UserAssignment(
            id=new_id(),
            test_id=test_id,
            user_id=user_id,
            variant=config.variants[0],
            assigned_at=utc_now(),
        )
        return VariantAssignment(fallback.variant, fallback)

    return VariantAssignment(assignment.variant, assignment, storage)


# --- Conversions ---

async def record_conversion(
    storage: StorageAdapter,
    assignment: UserAssignment | None,
    event: str = DEFAULT_EVENT,
    metadata: dict[str, Any] | None = None,
) -> ConversionEvent | None:
    """Appends a conversion for the assignment. Without an assignment this is a no-op."""
    if assignment is None:
        logger.debug("record_conversion without assignment discarded (event %s)", event)
        return None

    conversion = ConversionEvent(
        id=new_id(),
        test_id=assignment.test_id,
        user_id=assignment.user_id,
        event=event,
        variant=assignment.variant,
        assignment_id=assignment.id,
        converted_at=utc_now(),
        metadata=metadata,
    )
    await storage.save_conversion(conversion)
    logger.info("Tracked event %s for assignment %s (test %s)", event, assignment.id, assignment.test_id)
    return conversion


async def convert_assignment(
    storage: StorageAdapter,
    assignment_id: str,
    event: str = DEFAULT_EVENT,
    metadata: dict[str, Any] | None = None,
) -> ConversionEvent:
    """Records a conversion for a stored assignment, looked up by id."""
    assignment = await storage.get_assignment_by_id(assignment_id)
    if not assignment:
        raise NotFoundError(f"Assignment {assignment_id} not found.")
    return await record_conversion(storage, assignment, event, metadata)
