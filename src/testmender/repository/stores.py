"""Test case repositories."""

import asyncio
import logging
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional

from .base import TestCaseRepository
from ..models.healing_models import TestCase, TestStatus

logger = logging.getLogger(__name__)


def _matches_class(test_case: TestCase, class_name: str) -> bool:
    return class_name in (test_case.class_name, test_case.target_class)


class InMemoryTestCaseRepository(TestCaseRepository):
    """
    Process-local repository.

    PATTERN: Copy on read and write so callers never share state
    """

    def __init__(self, test_cases: Optional[List[TestCase]] = None):
        self._test_cases: Dict[str, TestCase] = {}
        self._lock = asyncio.Lock()
        for test_case in test_cases or []:
            self._test_cases[test_case.id] = test_case.model_copy(deep=True)

    async def find_by_id(self, test_id: str) -> Optional[TestCase]:
        async with self._lock:
            test_case = self._test_cases.get(test_id)
            return test_case.model_copy(deep=True) if test_case else None

    async def save(self, test_case: TestCase) -> TestCase:
        async with self._lock:
            test_case.modified_at = datetime.now()
            self._test_cases[test_case.id] = test_case.model_copy(deep=True)
            return test_case

    async def _select(self, predicate: Callable[[TestCase], bool]) -> List[TestCase]:
        async with self._lock:
            return [
                tc.model_copy(deep=True) for tc in self._test_cases.values() if predicate(tc)
            ]

    async def find_by_status(self, status: TestStatus) -> List[TestCase]:
        return await self._select(lambda tc: tc.status == status)

    async def find_by_class_name(self, class_name: str) -> List[TestCase]:
        return await self._select(lambda tc: _matches_class(tc, class_name))

    async def find_all(self) -> List[TestCase]:
        return await self._select(lambda tc: True)

    async def delete(self, test_id: str) -> bool:
        async with self._lock:
            return self._test_cases.pop(test_id, None) is not None


class JsonFileTestCaseRepository(InMemoryTestCaseRepository):
    """
    Repository persisted as one JSON document per test case.

    PATTERN: In-memory index loaded at startup, write-through on change
    GOTCHA: Files that fail validation are skipped with a warning
    """

    def __init__(self, storage_dir: str):
        """
        Initialize repository and load existing test cases.

        Args:
            storage_dir: Directory holding ``<id>.json`` files
        """
        super().__init__()
        self.storage_dir = Path(storage_dir)
        self.storage_dir.mkdir(parents=True, exist_ok=True)
        self._load()

    def _path(self, test_id: str) -> Path:
        return self.storage_dir / f"{test_id}.json"

    def _load(self) -> None:
        for path in sorted(self.storage_dir.glob("*.json")):
            try:
                test_case = TestCase.model_validate_json(path.read_text(encoding="utf-8"))
                self._test_cases[test_case.id] = test_case
            except Exception as e:
                logger.warning(f"Skipping unreadable test case file {path}: {e}")
        logger.info(f"Loaded {len(self._test_cases)} test cases from {self.storage_dir}")

    async def save(self, test_case: TestCase) -> TestCase:
        saved = await super().save(test_case)
        self._path(saved.id).write_text(saved.model_dump_json(indent=2), encoding="utf-8")
        logger.debug(f"Saved test case {saved.id} to {self.storage_dir}")
        return saved

    async def delete(self, test_id: str) -> bool:
        existed = await super().delete(test_id)
        path = self._path(test_id)
        if path.exists():
            path.unlink()
        return existed
