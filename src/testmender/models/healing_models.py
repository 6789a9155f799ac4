"""Data models for the test healing engine.

This module contains the Pydantic models shared by change-impact analysis,
failure diagnosis, the healing pipeline and execution history tracking.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Optional
from enum import Enum
from datetime import datetime
import uuid


RECENT_EXECUTION_LIMIT = 10

SUCCESS_TAG = "[SUCCESS] "
FAILURE_TAG = "[FAILURE] "


class TestStatus(str, Enum):
    """Lifecycle status of a test case."""

    GENERATED = "generated"
    EXECUTING = "executing"
    PASSED = "passed"
    FAILED = "failed"
    BROKEN = "broken"
    HEALED = "healed"


HEALABLE_STATUSES = (TestStatus.BROKEN, TestStatus.FAILED)


class ExecutionOutcome(str, Enum):
    """Outcome of a single test run."""

    PASSED = "passed"
    FAILED = "failed"


class ExecutionTrend(str, Enum):
    """Rolling classification of recent executions."""

    STABLE_PASS = "stable_pass"  # Every run in the window passed
    STABLE_FAIL = "stable_fail"  # Every run in the window failed
    IMPROVING = "improving"  # Failing, then passing
    DEGRADING = "degrading"  # Passing, then failing
    FLAKY = "flaky"  # Alternating


class TestExecutionResult(BaseModel):
    """Result of the last execution attached to a test case."""

    success: bool = Field(description="Whether the run passed")
    execution_time_ms: int = Field(default=0, description="Run duration")
    error_message: Optional[str] = Field(default=None, description="Failure message")
    stack_trace: Optional[str] = Field(default=None, description="Failure stack trace")
    executed_at: datetime = Field(default_factory=datetime.now)


class TestCase(BaseModel):
    """A generated test case and the production method it targets."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str = Field(description="Test name")
    description: Optional[str] = Field(default=None, description="Test description")
    status: TestStatus = Field(default=TestStatus.GENERATED)

    # Test identity
    package_name: str = Field(default="", description="Test package")
    class_name: str = Field(default="", description="Test class")
    method_name: str = Field(default="", description="Test method")

    # Target identity
    target_package: str = Field(default="", description="Package of the code under test")
    target_class: str = Field(default="", description="Class of the code under test")
    target_method: str = Field(default="", description="Method under test")

    # Content
    source_code: str = Field(default="", description="Test source code")
    generation_prompt: str = Field(default="", description="Prompt the test was generated from")
    assertions: List[str] = Field(default_factory=list, description="Assertion lines")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.now)
    modified_at: datetime = Field(default_factory=datetime.now)
    last_executed_at: Optional[datetime] = Field(default=None)
    last_execution_result: Optional[TestExecutionResult] = Field(default=None)

    @property
    def target_qualified_name(self) -> str:
        """Dotted name of the target method."""
        parts = [self.target_package, self.target_class, self.target_method]
        return ".".join(p for p in parts if p)


class ParameterInfo(BaseModel):
    """A single method parameter."""

    model_config = ConfigDict(frozen=True)

    type: str
    name: str


class MethodSnapshot(BaseModel):
    """Structural descriptor of a method at one point in time."""

    model_config = ConfigDict(frozen=True)

    package_name: str = Field(default="")
    class_name: str = Field(default="")
    method_name: str
    return_type: str = Field(default="void")
    parameters: List[ParameterInfo] = Field(default_factory=list)
    exceptions: List[str] = Field(default_factory=list)
    body: str = Field(default="")
    is_public: bool = Field(default=True)
    is_static: bool = Field(default=False)

    @property
    def key(self) -> str:
        """Key used in class-level method maps."""
        return f"{self.class_name}.{self.method_name}"

    @property
    def qualified_name(self) -> str:
        parts = [self.package_name, self.class_name, self.method_name]
        return ".".join(p for p in parts if p)

    @property
    def signature(self) -> str:
        params = ", ".join(f"{p.type} {p.name}" for p in self.parameters)
        return f"{self.method_name}({params})"

    @property
    def parameter_types(self) -> List[str]:
        return [p.type for p in self.parameters]

    def is_structurally_equal(self, other: "MethodSnapshot") -> bool:
        """
        Compare return type and parameter type sequence, ignoring the body.

        Args:
            other: Snapshot to compare against

        Returns:
            True if both describe the same structural signature
        """
        return (
            self.return_type == other.return_type
            and self.parameter_types == other.parameter_types
        )


class IssueKind:
    """Keys used in AnalysisResult."""

    METHOD_SIGNATURE_CHANGED = "methodSignatureChanged"
    OLD_SIGNATURE = "oldSignature"
    NEW_SIGNATURE = "newSignature"
    MISSING_IMPORTS = "missingImports"
    INVALID_ASSERTIONS = "invalidAssertions"
    RENAMED_ELEMENTS = "renamedElements"
    COMPLETE_REGENERATION = "completeRegeneration"
    ERROR = "error"
    PATTERN_PREFIX = "pattern_"
    FIX_PREFIX = "fix_"

    TARGETED = (MISSING_IMPORTS, INVALID_ASSERTIONS, RENAMED_ELEMENTS)


class AnalysisResult(BaseModel):
    """Issues found while diagnosing one broken test."""

    issues: Dict[str, str] = Field(default_factory=dict)

    def set(self, kind: str, detail: str) -> None:
        self.issues[kind] = detail

    def get(self, kind: str) -> Optional[str]:
        return self.issues.get(kind)

    def has(self, kind: str) -> bool:
        return kind in self.issues

    def is_empty(self) -> bool:
        return not self.issues

    def pattern_types(self) -> List[str]:
        """Pattern types attached by failure recognition, in insertion order."""
        prefix = IssueKind.PATTERN_PREFIX
        return [k[len(prefix):] for k in self.issues if k.startswith(prefix)]

    @property
    def requires_regeneration(self) -> bool:
        """
        Whether the test must be regenerated instead of patched.

        Regeneration is needed when diagnosis asked for it, when the target
        signature changed, or when no targeted fix is available.
        """
        if self.has(IssueKind.COMPLETE_REGENERATION):
            return True
        if self.has(IssueKind.METHOD_SIGNATURE_CHANGED):
            return True
        return not any(self.has(kind) for kind in IssueKind.TARGETED)


class FailurePattern(BaseModel):
    """A classified failure category with remediation guidance."""

    pattern_id: str = Field(description="Unique pattern ID")
    pattern_type: str = Field(description="Category, e.g. NullPointerException")
    description: str = Field(description="Human-readable description")
    error_signature: str = Field(default="", description="Deduplication signature")
    occurrences: int = Field(default=1)
    confidence: float = Field(default=0.5, ge=0, le=1)
    suggested_fixes: List[str] = Field(default_factory=list)


class TestExecution(BaseModel):
    """One entry in the recent-executions ring."""

    outcome: ExecutionOutcome
    error_message: Optional[str] = None
    stack_trace: Optional[str] = None
    duration_ms: int = 0
    code_version: Optional[str] = None
    changed_files: List[str] = Field(default_factory=list)
    executed_at: datetime = Field(default_factory=datetime.now)

    @property
    def successful(self) -> bool:
        return self.outcome == ExecutionOutcome.PASSED


class HealingAttempt(BaseModel):
    """Ledger entry for one healing step."""

    description: str
    successful: bool
    timestamp: datetime = Field(default_factory=datetime.now)


class TestExecutionHistory(BaseModel):
    """Execution and healing history of a single test."""

    test_id: str
    test_name: str = ""

    first_executed: Optional[datetime] = None
    last_executed: Optional[datetime] = None

    total_executions: int = 0
    passed_executions: int = 0
    failed_executions: int = 0
    pass_rate: float = Field(default=0.0, ge=0, le=1)
    average_execution_time: float = 0.0
    total_execution_time_ms: int = 0

    trend: ExecutionTrend = ExecutionTrend.STABLE_FAIL
    recent_executions: List[TestExecution] = Field(default_factory=list)

    detected_patterns: List[FailurePattern] = Field(default_factory=list)
    error_types: Dict[str, int] = Field(default_factory=dict)
    code_change_correlations: Dict[str, int] = Field(default_factory=dict)

    healing_attempts: List[HealingAttempt] = Field(default_factory=list)
    healing_success_rate: float = Field(default=0.0, ge=0, le=1)

    priority_score: int = Field(default=0, ge=0, description="Healing priority, higher first")
