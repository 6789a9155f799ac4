"""Base classes and collaborator interfaces for test healing components."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..models.healing_models import (
    MethodSnapshot,
    TestCase,
    TestExecutionHistory,
)

logger = logging.getLogger(__name__)


class CodeAnalyzer(ABC):
    """
    Turns production source into structural method descriptors.

    PATTERN: External collaborator behind an abstract interface
    GOTCHA: Map keys are ``Class.method``; overloads collapse onto one key
    """

    @abstractmethod
    async def analyze(self, source: str) -> Dict[str, MethodSnapshot]:
        """
        Analyze source code of one class.

        Args:
            source: Class source text

        Returns:
            Method key to snapshot mapping
        """
        pass

    @abstractmethod
    async def find_by_signature(self, signature: str) -> Optional[MethodSnapshot]:
        """
        Look up the current snapshot of a method.

        Args:
            signature: Qualified method name (``package.Class.method``)

        Returns:
            Latest snapshot, or None if the method is unknown
        """
        pass


class TextGenerator(ABC):
    """Generative text model producing candidate test source."""

    @abstractmethod
    async def generate(self, prompt: str, max_tokens: int) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: Full healing prompt
            max_tokens: Maximum tokens to generate

        Returns:
            Generated text
        """
        pass


class TestExecutor(ABC):
    """Isolated test runner."""

    @abstractmethod
    async def execute(self, test_id: str) -> TestCase:
        """
        Run a stored test case.

        Args:
            test_id: ID of the test to run

        Returns:
            The test case with updated status and last execution result
        """
        pass


class SourceInspection(BaseModel):
    """Findings of a source inspector."""

    missing_imports: List[str] = Field(default_factory=list)
    invalid_assertions: List[str] = Field(default_factory=list)
    renamed_elements: Dict[str, str] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        return not (
            self.missing_imports or self.invalid_assertions or self.renamed_elements
        )


class SourceInspector(ABC):
    """
    Inspects test source against the current target snapshot.

    PATTERN: Strategy for syntax-tree based issue detection
    CRITICAL: Implementations raise AnalysisError on parse failure
    """

    def __init__(self):
        """Initialize inspector."""
        self.logger = logger

    @abstractmethod
    async def inspect(
        self, test_case: TestCase, snapshot: MethodSnapshot
    ) -> SourceInspection:
        """
        Find unresolved imports, stale assertions and renamed identifiers.

        Args:
            test_case: Test whose source is inspected
            snapshot: Current snapshot of the target method

        Returns:
            Inspection findings
        """
        pass


class HistoryStore(ABC):
    """Key to history storage used by the history tracker."""

    @abstractmethod
    async def get(self, test_id: str) -> Optional[TestExecutionHistory]:
        pass

    @abstractmethod
    async def put(self, history: TestExecutionHistory) -> None:
        pass

    @abstractmethod
    async def delete(self, test_id: str) -> None:
        pass

    @abstractmethod
    async def keys(self) -> List[str]:
        pass


class BaseMatcher(ABC):
    """
    Abstract base for failure pattern matchers.

    PATTERN: One matcher per failure category, registered by pattern type
    CRITICAL: Matching is keyword based and must never raise
    """

    pattern_type: str = ""
    description: str = ""

    @abstractmethod
    def matches(
        self,
        error_message: Optional[str],
        stack_trace: Optional[str],
        test_code: Optional[str],
    ) -> bool:
        """Check if this category applies to the failure."""
        pass

    @abstractmethod
    def suggested_fixes(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[str]:
        """Remediation hints, most specific first."""
        pass

    def signature(self, error_message: Optional[str], stack_trace: Optional[str]) -> str:
        """Signature used to deduplicate occurrences."""
        return f"{self.pattern_type}:unknown"

    def confidence(self, error_message: Optional[str], stack_trace: Optional[str]) -> float:
        return 0.9

    @staticmethod
    def _contains(text: Optional[str], *needles: str) -> bool:
        return bool(text) and any(needle in text for needle in needles)


class HealingError(Exception):
    """Base class for healing engine errors."""

    pass


class NotFoundError(HealingError):
    """Raised when a test case ID is unknown."""

    pass


class AnalysisError(HealingError):
    """Raised when parsing or diagnosis fails."""

    pass


class GenerationError(HealingError):
    """Raised when the text generator fails or returns nothing."""

    pass


class ExecutionError(HealingError):
    """Raised when the test executor fails or times out."""

    pass
