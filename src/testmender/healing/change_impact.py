"""Change impact analysis between two versions of production code.

PATTERN: Structural diff of method maps, then fan-in to targeting tests
CRITICAL: Body-only changes never mark tests BROKEN
GOTCHA: Equivalence is structural; behavioural changes go undetected
"""

import logging
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel

from .base import AnalysisError, CodeAnalyzer
from ..models.healing_models import MethodSnapshot, TestCase, TestStatus

logger = logging.getLogger(__name__)


class ChangeType(str, Enum):
    """Kind of structural change to a method."""

    REMOVED = "removed"
    SIGNATURE_CHANGED = "signature_changed"


class MethodChange(BaseModel):
    """A structurally changed method."""

    key: str
    change_type: ChangeType
    old: MethodSnapshot
    new: Optional[MethodSnapshot] = None


def find_method_changes(
    old_methods: Dict[str, MethodSnapshot], new_methods: Dict[str, MethodSnapshot]
) -> List[MethodChange]:
    """
    Compare two class-level method maps.

    Args:
        old_methods: Methods before the change
        new_methods: Methods after the change

    Returns:
        Removed and signature-changed methods, in old-map order
    """
    changes = []
    for key, old in old_methods.items():
        new = new_methods.get(key)
        if new is None:
            changes.append(MethodChange(key=key, change_type=ChangeType.REMOVED, old=old))
        elif not old.is_structurally_equal(new):
            changes.append(
                MethodChange(
                    key=key, change_type=ChangeType.SIGNATURE_CHANGED, old=old, new=new
                )
            )
    return changes


class ChangeImpactAnalyzer:
    """
    Mark tests targeting changed methods as BROKEN.

    PATTERN: Repository lookup by class, filtered on target method
    """

    def __init__(self, repository, code_analyzer: Optional[CodeAnalyzer] = None):
        """
        Initialize analyzer.

        Args:
            repository: Test case repository
            code_analyzer: Source to method map analyzer
        """
        self.repository = repository
        self.code_analyzer = code_analyzer

    async def analyze_change_impact(self, old_source: str, new_source: str) -> List[TestCase]:
        """
        Analyze two versions of a class source.

        Args:
            old_source: Source before the change
            new_source: Source after the change

        Returns:
            Tests marked BROKEN

        Raises:
            AnalysisError: If either source cannot be analyzed
        """
        if self.code_analyzer is None:
            raise AnalysisError("No code analyzer configured")

        logger.info("Analyzing impact of code changes")
        try:
            old_methods = await self.code_analyzer.analyze(old_source)
            new_methods = await self.code_analyzer.analyze(new_source)
        except AnalysisError:
            raise
        except Exception as e:
            raise AnalysisError(f"Source analysis failed: {e}") from e

        return await self.analyze_methods(old_methods, new_methods)

    async def analyze_methods(
        self,
        old_methods: Dict[str, MethodSnapshot],
        new_methods: Dict[str, MethodSnapshot],
    ) -> List[TestCase]:
        """
        Mark tests impacted by structural method changes.

        Args:
            old_methods: Methods before the change
            new_methods: Methods after the change

        Returns:
            De-duplicated impacted tests, each saved with status BROKEN
        """
        affected: Dict[str, TestCase] = {}

        for change in find_method_changes(old_methods, new_methods):
            logger.info(f"Method {change.key} {change.change_type.value}")
            for test_case in await self._find_targeting_tests(change.old):
                affected.setdefault(test_case.id, test_case)

        broken = []
        for test_case in affected.values():
            test_case.status = TestStatus.BROKEN
            broken.append(await self.repository.save(test_case))

        logger.info(f"Marked {len(broken)} tests as BROKEN")
        return broken

    async def _find_targeting_tests(self, method: MethodSnapshot) -> List[TestCase]:
        candidates = await self.repository.find_by_class_name(method.class_name)
        return [
            tc
            for tc in candidates
            if tc.target_method == method.method_name
            and tc.target_class in ("", method.class_name)
            and (
                not tc.target_package
                or not method.package_name
                or tc.target_package == method.package_name
            )
        ]
