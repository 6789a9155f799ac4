"""Failure diagnosis for broken tests.

PATTERN: Multi-step analysis with graceful degradation
CRITICAL: Never raises; any failure degrades to complete regeneration
"""

import logging
from typing import Optional

from .base import SourceInspector
from .history_tracker import ExecutionHistoryTracker
from .inspectors import NoOpSourceInspector
from .patcher import join_items, render_renames
from .pattern_recognizer import FailurePatternRecognizer
from .prompts import parse_recorded_signature
from ..models.healing_models import (
    AnalysisResult,
    IssueKind,
    MethodSnapshot,
    TestCase,
)

logger = logging.getLogger(__name__)


def _render_signature(name: str, types, return_type: str) -> str:
    return f"{return_type} {name}({', '.join(types)})"


class FailureDiagnosisEngine:
    """
    Explain why a test broke.

    PATTERN: Signature comparison, source inspection, then pattern recognition
    GOTCHA: Without a recorded signature no comparison is made
    """

    def __init__(
        self,
        tracker: ExecutionHistoryTracker,
        recognizer: Optional[FailurePatternRecognizer] = None,
        inspector: Optional[SourceInspector] = None,
    ):
        """
        Initialize diagnosis engine.

        Args:
            tracker: History tracker providing the latest run
            recognizer: Failure pattern recognizer
            inspector: Source inspector (defaults to no-op)
        """
        self.tracker = tracker
        self.recognizer = recognizer or FailurePatternRecognizer()
        self.inspector = inspector or NoOpSourceInspector()

    async def analyze(self, test_case: TestCase, snapshot: MethodSnapshot) -> AnalysisResult:
        """
        Diagnose a broken test against the current target snapshot.

        Args:
            test_case: Broken test case
            snapshot: Current snapshot of the target method

        Returns:
            Analysis result; never empty
        """
        result = AnalysisResult()

        try:
            self._compare_signatures(test_case, snapshot, result)
            await self._inspect_source(test_case, snapshot, result)
            await self._recognize_patterns(test_case, result)
        except Exception as e:
            logger.error(f"Diagnosis error for {test_case.name}: {e}", exc_info=True)
            result.set(IssueKind.ERROR, str(e) or type(e).__name__)
            result.set(IssueKind.COMPLETE_REGENERATION, "true")

        if result.is_empty():
            result.set(IssueKind.COMPLETE_REGENERATION, "true")

        logger.info(f"Diagnosed {test_case.name}: {list(result.issues)}")
        return result

    def _compare_signatures(
        self, test_case: TestCase, snapshot: MethodSnapshot, result: AnalysisResult
    ) -> None:
        recorded = parse_recorded_signature(test_case.generation_prompt)
        if recorded is None:
            return

        name, types, return_type = recorded
        if types == snapshot.parameter_types and return_type == snapshot.return_type:
            return

        result.set(IssueKind.METHOD_SIGNATURE_CHANGED, "true")
        result.set(IssueKind.OLD_SIGNATURE, _render_signature(name, types, return_type))
        result.set(
            IssueKind.NEW_SIGNATURE,
            _render_signature(snapshot.method_name, snapshot.parameter_types, snapshot.return_type),
        )

    async def _inspect_source(
        self, test_case: TestCase, snapshot: MethodSnapshot, result: AnalysisResult
    ) -> None:
        inspection = await self.inspector.inspect(test_case, snapshot)
        if inspection.missing_imports:
            result.set(IssueKind.MISSING_IMPORTS, join_items(inspection.missing_imports))
        if inspection.invalid_assertions:
            result.set(IssueKind.INVALID_ASSERTIONS, join_items(inspection.invalid_assertions))
        if inspection.renamed_elements:
            result.set(IssueKind.RENAMED_ELEMENTS, render_renames(inspection.renamed_elements))

    async def _recognize_patterns(self, test_case: TestCase, result: AnalysisResult) -> None:
        latest = await self.tracker.latest_execution(test_case.id)
        if latest is not None:
            if latest.successful:
                return
            error_message, stack_trace = latest.error_message, latest.stack_trace
        elif test_case.last_execution_result and not test_case.last_execution_result.success:
            error_message = test_case.last_execution_result.error_message
            stack_trace = test_case.last_execution_result.stack_trace
        else:
            return

        patterns = self.recognizer.analyze_failure(test_case, error_message, stack_trace)
        for pattern in patterns:
            result.set(f"{IssueKind.PATTERN_PREFIX}{pattern.pattern_type}", pattern.description)
            for n, fix in enumerate(pattern.suggested_fixes):
                result.set(f"{IssueKind.FIX_PREFIX}{pattern.pattern_type}_{n}", fix)

        await self.tracker.record_patterns(test_case.id, patterns)
