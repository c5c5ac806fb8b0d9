from collections import Counter
from typing import Sequence
from data.storage import StorageAdapter
from models.experiments import ABTestConfig, UserAssignment, variant_key
from models.events import ConversionEvent
from models.results import ABTestResults, ABTestStats, VariantResults
import logging
import math

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def _duration_days(assignments: Sequence[UserAssignment], conversions: Sequence[ConversionEvent]) -> int:
    """Whole days (rounded up) from the earliest assignment to the latest conversion."""
    if not assignments or not conversions:
        return 0
    first_assigned = min(a.assigned_at for a in assignments)
    last_converted = max(c.converted_at for c in conversions)
    span = (last_converted - first_assigned).total_seconds()
    return max(0, math.ceil(span / SECONDS_PER_DAY))


def _pick_winner(variant_results: Sequence[VariantResults]):
    """Highest conversion rate; first declared variant wins ties. None unless the rate is > 0."""
    best = None
    for result in variant_results:
        if best is None or result.conversion_rate > best.conversion_rate:
            best = result
    if best is None or best.conversion_rate <= 0:
        return None
    return best.variant


def compute_results(
    config: ABTestConfig,
    assignments: Sequence[UserAssignment],
    conversions: Sequence[ConversionEvent],
) -> ABTestResults:
    """
    Aggregates raw assignment and conversion records into per-variant rates.
    Pure: no I/O, the caller loads the records and handles an unknown test.
    """
    users_per_variant = Counter(variant_key(a.variant) for a in assignments)

    conversions_per_variant: dict[str, Counter] = {}
    for conversion in conversions:
        conversions_per_variant.setdefault(variant_key(conversion.variant), Counter())[conversion.event] += 1

    variant_results = []
    for variant in config.variants:
        key = variant_key(variant)
        total_users = users_per_variant.get(key, 0)
        events = conversions_per_variant.get(key, Counter())
        total_conversions = sum(events.values())

        variant_results.append(VariantResults(
            variant=variant,
            total_users=total_users,
            total_conversions=total_conversions,
            conversion_rate=total_conversions / total_users if total_users > 0 else 0.0,
            events=dict(events),
        ))

    stats = ABTestStats(
        duration_days=_duration_days(assignments, conversions),
        winner=_pick_winner(variant_results),
        is_significant=False,
    )
    return ABTestResults(config=config, variants=variant_results, stats=stats)


async def calculate_summary(storage: StorageAdapter, test_id: str) -> ABTestResults | None:
    """Loads a point-in-time snapshot of the test's records and aggregates it."""
    config = await storage.get_test_config(test_id)
    if not config:
        logger.info("calculate_summary: test %s not found", test_id)
        return None

    assignments = await storage.list_assignments(test_id)
    conversions = await storage.list_conversions(test_id)
    logger.debug("calculate_summary %s: %d assignments, %d conversions", test_id, len(assignments), len(conversions))

    return compute_results(config, assignments, conversions)
