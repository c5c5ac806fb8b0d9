"""
Storage contract the assignment engine depends on.

Every backend must guarantee at most one assignment per (test_id, user_id):
`save_assignment` is first-writer-wins and returns whichever assignment ended
up stored, so a request that lost a race hands back the winner instead of its
own computed one. Backend failures are raised as `StorageError`.
"""
from abc import ABC, abstractmethod
from models.experiments import ABTestConfig, UserAssignment
from models.events import ConversionEvent


class StorageAdapter(ABC):

    # --- Test configs ---

    @abstractmethod
    async def save_test_config(self, config: ABTestConfig) -> None:
        """Insert or replace the config keyed by `config.test_id`."""

    @abstractmethod
    async def get_test_config(self, test_id: str) -> ABTestConfig | None:
        ...

    @abstractmethod
    async def list_test_configs(self) -> list[ABTestConfig]:
        ...

    # --- Assignments ---

    @abstractmethod
    async def save_assignment(self, assignment: UserAssignment) -> UserAssignment:
        """Store the assignment unless one exists for the pair; return the stored one."""

    @abstractmethod
    async def get_assignment(self, test_id: str, user_id: str) -> UserAssignment | None:
        ...

    @abstractmethod
    async def get_assignment_by_id(self, assignment_id: str) -> UserAssignment | None:
        ...

    @abstractmethod
    async def list_assignments(self, test_id: str) -> list[UserAssignment]:
        ...

    # --- Conversions ---

    @abstractmethod
    async def save_conversion(self, event: ConversionEvent) -> None:
        ...

    @abstractmethod
    async def list_conversions(self, test_id: str) -> list[ConversionEvent]:
        ...
