"""Data models for the test healing engine."""

from .healing_models import (
    RECENT_EXECUTION_LIMIT,
    SUCCESS_TAG,
    FAILURE_TAG,
    HEALABLE_STATUSES,
    TestStatus,
    ExecutionOutcome,
    ExecutionTrend,
    TestExecutionResult,
    TestCase,
    ParameterInfo,
    MethodSnapshot,
    IssueKind,
    AnalysisResult,
    FailurePattern,
    TestExecution,
    HealingAttempt,
    TestExecutionHistory,
)

__all__ = [
    "RECENT_EXECUTION_LIMIT",
    "SUCCESS_TAG",
    "FAILURE_TAG",
    "HEALABLE_STATUSES",
    "TestStatus",
    "ExecutionOutcome",
    "ExecutionTrend",
    "TestExecutionResult",
    "TestCase",
    "ParameterInfo",
    "MethodSnapshot",
    "IssueKind",
    "AnalysisResult",
    "FailurePattern",
    "TestExecution",
    "HealingAttempt",
    "TestExecutionHistory",
]
