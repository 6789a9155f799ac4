"""Test case persistence interface."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models.healing_models import TestCase, TestStatus


class TestCaseRepository(ABC):
    """
    Storage of generated test cases.

    PATTERN: Async repository returning detached copies
    CRITICAL: Callers mutate returned objects and persist them with save()
    """

    @abstractmethod
    async def find_by_id(self, test_id: str) -> Optional[TestCase]:
        pass

    @abstractmethod
    async def save(self, test_case: TestCase) -> TestCase:
        """Insert or replace a test case, stamping modified_at."""
        pass

    @abstractmethod
    async def find_by_status(self, status: TestStatus) -> List[TestCase]:
        pass

    @abstractmethod
    async def find_by_class_name(self, class_name: str) -> List[TestCase]:
        """Tests whose own class or target class has the given name."""
        pass

    @abstractmethod
    async def find_all(self) -> List[TestCase]:
        pass

    @abstractmethod
    async def delete(self, test_id: str) -> bool:
        """Remove a test case; returns whether it existed."""
        pass
