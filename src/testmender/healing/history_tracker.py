"""Per-test execution history and trend tracking.

PATTERN: Rolling window over recent runs plus full aggregate counters
CRITICAL: Read-modify-write of one test's history is serialised per test ID
"""

import logging
from typing import Callable, List, Optional

from .base import HistoryStore
from .keyed_lock import KeyedLock
from .pattern_recognizer import extract_error_type
from ..models.healing_models import (
    ExecutionOutcome,
    ExecutionTrend,
    FailurePattern,
    FAILURE_TAG,
    HealingAttempt,
    RECENT_EXECUTION_LIMIT,
    SUCCESS_TAG,
    TestExecution,
    TestExecutionHistory,
)

logger = logging.getLogger(__name__)


def compute_trend(recent: List[TestExecution]) -> ExecutionTrend:
    """
    Classify the outcome sequence of a newest-first ring.

    Args:
        recent: Ring of executions, newest first

    Returns:
        Trend over the window read chronologically
    """
    outcomes = [execution.successful for execution in reversed(recent)]
    if not outcomes:
        return ExecutionTrend.STABLE_FAIL
    if all(outcomes):
        return ExecutionTrend.STABLE_PASS
    if not any(outcomes):
        return ExecutionTrend.STABLE_FAIL

    changes = sum(1 for prev, cur in zip(outcomes, outcomes[1:]) if prev != cur)
    if changes >= 2:
        return ExecutionTrend.FLAKY
    # Exactly one change: direction is given by the latest outcome
    return ExecutionTrend.IMPROVING if outcomes[-1] else ExecutionTrend.DEGRADING


TREND_PRIORITY = {
    ExecutionTrend.DEGRADING: 30,
    ExecutionTrend.FLAKY: 20,
    ExecutionTrend.STABLE_FAIL: 15,
    ExecutionTrend.IMPROVING: 10,
}


def compute_priority_score(history: TestExecutionHistory) -> int:
    """
    Score how urgently a test needs attention; higher heals first.

    Recent and repeated failures, a low pass rate, fast runs, files that
    keep failing the test and known failure patterns all raise the score.
    """
    score = TREND_PRIORITY.get(history.trend, 0)

    recent = history.recent_executions
    if recent:
        if not recent[0].successful:
            score += 25
        score += 5 * sum(1 for execution in recent[:5] if not execution.successful)

    if history.pass_rate < 0.5:
        score += 10

    if history.average_execution_time < 100:
        score += 10
    elif history.average_execution_time < 500:
        score += 5

    score += min(20, len(history.code_change_correlations) * 5)
    score += min(20, len(history.detected_patterns) * 5)
    return score


def merge_patterns(
    existing: List[FailurePattern], incoming: List[FailurePattern]
) -> List[FailurePattern]:
    """Merge patterns by type: occurrences accumulate and fixes are unioned."""
    merged = {p.pattern_type: p.model_copy(deep=True) for p in existing}
    for pattern in incoming:
        current = merged.get(pattern.pattern_type)
        if current is None:
            merged[pattern.pattern_type] = pattern.model_copy(deep=True)
            continue
        current.occurrences += pattern.occurrences
        current.confidence = max(current.confidence, pattern.confidence)
        current.error_signature = pattern.error_signature or current.error_signature
        for fix in pattern.suggested_fixes:
            if fix not in current.suggested_fixes:
                current.suggested_fixes.append(fix)
    return list(merged.values())


class ExecutionHistoryTracker:
    """
    Track execution outcomes and healing attempts per test.

    PATTERN: Lazy creation from current test metadata
    CRITICAL: Recording for a deleted test is a no-op
    GOTCHA: Averages use the full counters, trends only the ring window
    """

    def __init__(
        self,
        store: HistoryStore,
        repository,
        classify_error: Callable[[Optional[str], Optional[str]], str] = extract_error_type,
        window: int = RECENT_EXECUTION_LIMIT,
    ):
        """
        Initialize history tracker.

        Args:
            store: Key to history storage
            repository: Test case repository used to create histories lazily
            classify_error: Maps (message, stack trace) to an error type
            window: Size of the recent-executions ring
        """
        self.store = store
        self.repository = repository
        self.classify_error = classify_error
        self.window = window
        self._locks = KeyedLock()
        self.logger = logger

    async def _load_or_create(self, test_id: str) -> Optional[TestExecutionHistory]:
        history = await self.store.get(test_id)
        if history is not None:
            return history

        test_case = await self.repository.find_by_id(test_id)
        if test_case is None:
            self.logger.debug(f"Test {test_id} no longer exists, skipping history")
            return None

        return TestExecutionHistory(test_id=test_id, test_name=test_case.name)

    async def record_execution(
        self,
        test_id: str,
        outcome: ExecutionOutcome,
        error_message: Optional[str] = None,
        stack_trace: Optional[str] = None,
        duration_ms: int = 0,
        changed_files: Optional[List[str]] = None,
        code_version: Optional[str] = None,
    ) -> Optional[TestExecutionHistory]:
        """
        Record one test run.

        Args:
            test_id: Test identifier
            outcome: Run outcome
            error_message: Failure message
            stack_trace: Failure stack trace
            duration_ms: Run duration in milliseconds
            changed_files: Source files changed since the previous run
            code_version: Revision the run executed against

        Returns:
            Updated history, or None if the test no longer exists
        """
        async with self._locks.hold(test_id):
            history = await self._load_or_create(test_id)
            if history is None:
                return None

            execution = TestExecution(
                outcome=outcome,
                error_message=error_message,
                stack_trace=stack_trace,
                duration_ms=max(duration_ms, 0),
                code_version=code_version,
                changed_files=list(changed_files or []),
            )

            if history.first_executed is None:
                history.first_executed = execution.executed_at
            history.last_executed = execution.executed_at

            history.recent_executions.insert(0, execution)
            del history.recent_executions[self.window:]

            history.total_executions += 1
            if execution.successful:
                history.passed_executions += 1
            else:
                history.failed_executions += 1
                if error_message is not None:
                    error_type = self.classify_error(error_message, stack_trace)
                    history.error_types[error_type] = history.error_types.get(error_type, 0) + 1
                for path in execution.changed_files:
                    history.code_change_correlations[path] = (
                        history.code_change_correlations.get(path, 0) + 1
                    )

            history.total_execution_time_ms += execution.duration_ms
            history.pass_rate = history.passed_executions / history.total_executions
            history.average_execution_time = (
                history.total_execution_time_ms / history.total_executions
            )
            history.trend = compute_trend(history.recent_executions)
            history.priority_score = compute_priority_score(history)

            await self.store.put(history)
            self.logger.debug(
                f"Recorded {outcome.value} execution for {test_id}, "
                f"trend={history.trend.value}"
            )
            return history

    async def record_healing_attempt(
        self, test_id: str, description: str, successful: bool
    ) -> Optional[TestExecutionHistory]:
        """
        Append a tagged entry to the healing ledger.

        Args:
            test_id: Test identifier
            description: What the healing step did
            successful: Whether the step succeeded

        Returns:
            Updated history, or None if the test no longer exists
        """
        async with self._locks.hold(test_id):
            history = await self._load_or_create(test_id)
            if history is None:
                return None

            tag = SUCCESS_TAG if successful else FAILURE_TAG
            history.healing_attempts.append(
                HealingAttempt(description=f"{tag}{description}", successful=successful)
            )

            successes = sum(
                1 for attempt in history.healing_attempts
                if attempt.description.startswith(SUCCESS_TAG.strip())
            )
            history.healing_success_rate = successes / len(history.healing_attempts)

            await self.store.put(history)
            return history

    async def record_patterns(
        self, test_id: str, patterns: List[FailurePattern]
    ) -> Optional[TestExecutionHistory]:
        """Merge detected failure patterns into a test's history."""
        if not patterns:
            return await self.get_history(test_id)

        async with self._locks.hold(test_id):
            history = await self._load_or_create(test_id)
            if history is None:
                return None

            history.detected_patterns = merge_patterns(history.detected_patterns, patterns)
            history.priority_score = compute_priority_score(history)
            await self.store.put(history)
            return history

    async def get_history(self, test_id: str) -> Optional[TestExecutionHistory]:
        return await self.store.get(test_id)

    async def latest_execution(self, test_id: str) -> Optional[TestExecution]:
        """Most recent run of a test, if any."""
        history = await self.store.get(test_id)
        if history is None or not history.recent_executions:
            return None
        return history.recent_executions[0]

