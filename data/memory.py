from data.storage import StorageAdapter
from models.experiments import ABTestConfig, UserAssignment
from models.events import ConversionEvent
import logging

logger = logging.getLogger(__name__)


class MemoryStorage(StorageAdapter):
    """
    In-memory storage for development and tests only. Not a persistence layer:
    plain keyed dicts, no eviction, everything is lost when the process exits.
    Records are copied in and out so callers can't mutate stored state.
    """

    def __init__(self):
        self._tests: dict[str, ABTestConfig] = {}
        self._assignments: dict[tuple[str, str], UserAssignment] = {}
        self._assignments_by_id: dict[str, UserAssignment] = {}
        self._conversions: list[ConversionEvent] = []

    async def save_test_config(self, config: ABTestConfig) -> None:
        self._tests[config.test_id] = config.model_copy(deep=True)

    async def get_test_config(self, test_id: str) -> ABTestConfig | None:
        config = self._tests.get(test_id)
        return config.model_copy(deep=True) if config else None

    async def list_test_configs(self) -> list[ABTestConfig]:
        return [c.model_copy(deep=True) for c in self._tests.values()]

    async def save_assignment(self, assignment: UserAssignment) -> UserAssignment:
        key = (assignment.test_id, assignment.user_id)
        # No await between the check and the insert, so this is atomic on the event loop.
        stored = self._assignments.setdefault(key, assignment.model_copy(deep=True))
        if stored.id == assignment.id:
            self._assignments_by_id[stored.id] = stored
        else:
            logger.debug("memory store kept existing assignment %s for %s", stored.id, key)
        return stored.model_copy(deep=True)

    async def get_assignment(self, test_id: str, user_id: str) -> UserAssignment | None:
        assignment = self._assignments.get((test_id, user_id))
        return assignment.model_copy(deep=True) if assignment else None

    async def get_assignment_by_id(self, assignment_id: str) -> UserAssignment | None:
        assignment = self._assignments_by_id.get(assignment_id)
        return assignment.model_copy(deep=True) if assignment else None

    async def list_assignments(self, test_id: str) -> list[UserAssignment]:
        return [a.model_copy(deep=True) for (tid, _), a in self._assignments.items() if tid == test_id]

    async def save_conversion(self, event: ConversionEvent) -> None:
        self._conversions.append(event.model_copy(deep=True))

    async def list_conversions(self, test_id: str) -> list[ConversionEvent]:
        return [c.model_copy(deep=True) for c in self._conversions if c.test_id == test_id]

    # --- Debug helpers ---

    async def clear(self) -> None:
        self._tests.clear()
        self._assignments.clear()
        self._assignments_by_id.clear()
        self._conversions = []

    async def get_stats(self) -> dict[str, int]:
        return {
            "tests_count": len(self._tests),
            "assignments_count": len(self._assignments),
            "conversions_count": len(self._conversions),
        }
