import unittest
from datetime import datetime, timedelta, timezone
from data.memory import MemoryStorage
from models.experiments import ABTestConfig, UserAssignment
from models.events import ConversionEvent
from services.results import calculate_summary, compute_results

START = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


def make_config(variants=("A", "B")):
    return ABTestConfig(
        test_id="cta",
        variants=list(variants),
        weights=[1 / len(variants)] * len(variants),
    )


def make_assignments(variant, count, prefix, at=START):
    return [
        UserAssignment(id=f"{prefix}-{i}", test_id="cta", user_id=f"{prefix}-user-{i}", variant=variant, assigned_at=at)
        for i in range(count)
    ]


def make_conversions(assignments, event="conversion", at=START):
    return [
        ConversionEvent(
            id=f"conv-{a.id}-{event}",
            test_id=a.test_id,
            user_id=a.user_id,
            event=event,
            variant=a.variant,
            assignment_id=a.id,
            converted_at=at,
        )
        for a in assignments
    ]


class TestComputeResults(unittest.TestCase):

    def test_rates_and_winner(self):
        """10 users on A with 2 conversions, 10 on B with 5: B wins."""
        a_users = make_assignments("A", 10, "a")
        b_users = make_assignments("B", 10, "b")
        conversions = make_conversions(a_users[:2]) + make_conversions(b_users[:5])

        results = compute_results(make_config(), a_users + b_users, conversions)

        a_result, b_result = results.variants
        self.assertEqual(a_result.variant, "A")
        self.assertEqual(a_result.total_users, 10)
        self.assertEqual(a_result.total_conversions, 2)
        self.assertAlmostEqual(a_result.conversion_rate, 0.2)
        self.assertAlmostEqual(b_result.conversion_rate, 0.5)
        self.assertEqual(results.stats.winner, "B")
        self.assertFalse(results.stats.is_significant)

    def test_variant_without_users_has_zero_rate(self):
        a_users = make_assignments("A", 4, "a")
        results = compute_results(make_config(), a_users, make_conversions(a_users[:1]))

        b_result = results.variants[1]
        self.assertEqual(b_result.total_users, 0)
        self.assertEqual(b_result.conversion_rate, 0)
        self.assertEqual(b_result.events, {})

    def test_no_winner_without_conversions(self):
        results = compute_results(make_config(), make_assignments("A", 3, "a"), [])
        self.assertIsNone(results.stats.winner)
        self.assertEqual(results.stats.duration_days, 0)

    def test_tie_goes_to_first_declared_variant(self):
        a_users = make_assignments("A", 4, "a")
        b_users = make_assignments("B", 4, "b")
        conversions = make_conversions(b_users[:2]) + make_conversions(a_users[:2])
        results = compute_results(make_config(), a_users + b_users, conversions)
        self.assertEqual(results.stats.winner, "A")

    def test_event_histogram(self):
        a_users = make_assignments("A", 5, "a")
        conversions = (make_conversions(a_users[:3], "signup")
                       + make_conversions(a_users[:1], "purchase"))
        results = compute_results(make_config(), a_users, conversions)
        self.assertEqual(results.variants[0].events, {"signup": 3, "purchase": 1})
        self.assertEqual(results.variants[0].total_conversions, 4)

    def test_duration_rounds_up_from_earliest_assignment(self):
        early = make_assignments("A", 1, "early", at=START)
        late = make_assignments("B", 1, "late", at=START + timedelta(days=3))
        conversions = (make_conversions(late, at=START + timedelta(days=4, hours=1))
                       + make_conversions(early, at=START + timedelta(days=1)))

        results = compute_results(make_config(), late + early, conversions)

        self.assertEqual(results.stats.duration_days, 5)

    def test_structured_variants_match_by_value(self):
        red, blue = {"color": "red", "size": 2}, {"color": "blue", "size": 2}
        config = make_config([red, blue])
        users = make_assignments({"size": 2, "color": "blue"}, 2, "b")
        results = compute_results(config, users, make_conversions(users[:1]))
        self.assertEqual(results.variants[1].total_users, 2)
        self.assertEqual(results.stats.winner, blue)

    def test_bool_variant_not_confused_with_int(self):
        config = make_config([True, 1])
        users = make_assignments(1, 2, "one")
        results = compute_results(config, users, make_conversions(users))
        self.assertEqual(results.variants[0].total_users, 0)
        self.assertEqual(results.variants[1].total_users, 2)
        self.assertEqual(results.stats.winner, 1)


class TestCalculateSummary(unittest.IsolatedAsyncioTestCase):

    async def test_unknown_test_returns_none(self):
        self.assertIsNone(await calculate_summary(MemoryStorage(), "missing"))

    async def test_reads_records_from_storage(self):
        storage = MemoryStorage()
        await storage.save_test_config(make_config())
        users = make_assignments("A", 2, "a")
        for user in users:
            await storage.save_assignment(user)
        for conversion in make_conversions(users[:1]):
            await storage.save_conversion(conversion)

        results = await calculate_summary(storage, "cta")

        self.assertEqual(results.config.test_id, "cta")
        self.assertAlmostEqual(results.variants[0].conversion_rate, 0.5)
        self.assertEqual(results.stats.winner, "A")
