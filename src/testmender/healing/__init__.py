"""Test healing engine."""

from .base import (
    CodeAnalyzer,
    TextGenerator,
    TestExecutor,
    SourceInspector,
    SourceInspection,
    HistoryStore,
    BaseMatcher,
    HealingError,
    NotFoundError,
    AnalysisError,
    GenerationError,
    ExecutionError,
)
from .change_impact import ChangeImpactAnalyzer, ChangeType, MethodChange, find_method_changes
from .diagnosis import FailureDiagnosisEngine
from .history_store import InMemoryHistoryStore, RedisHistoryStore
from .history_tracker import ExecutionHistoryTracker, compute_trend
from .keyed_lock import KeyedLock
from .pattern_recognizer import (
    FailurePatternRecognizer,
    extract_error_type,
    create_error_signature,
)

__all__ = [
    "CodeAnalyzer",
    "TextGenerator",
    "TestExecutor",
    "SourceInspector",
    "SourceInspection",
    "HistoryStore",
    "BaseMatcher",
    "HealingError",
    "NotFoundError",
    "AnalysisError",
    "GenerationError",
    "ExecutionError",
    "ChangeImpactAnalyzer",
    "ChangeType",
    "MethodChange",
    "find_method_changes",
    "FailureDiagnosisEngine",
    "InMemoryHistoryStore",
    "RedisHistoryStore",
    "ExecutionHistoryTracker",
    "compute_trend",
    "KeyedLock",
    "FailurePatternRecognizer",
    "extract_error_type",
    "create_error_signature",
]
