"""Runtime failure classification.

PATTERN: Registry of matchers keyed by pattern type
CRITICAL: Stateless; safe to share between concurrent heal tasks
"""

import logging
import re
import uuid
from typing import Dict, List, Optional

from .base import BaseMatcher
from .matchers import default_matchers
from ..models.healing_models import FailurePattern, TestCase

logger = logging.getLogger(__name__)

ERROR_CLASS_PATTERN = re.compile(r"([A-Za-z0-9_]+(?:Exception|Error))")

# Checked in order; first hit wins
KNOWN_ERROR_TYPES = [
    ("NullPointerException", "NullPointerException"),
    ("'NoneType' object", "NullPointerException"),
    ("ArrayIndexOutOfBoundsException", "IndexOutOfBoundsException"),
    ("IndexOutOfBoundsException", "IndexOutOfBoundsException"),
    ("ClassCastException", "ClassCastException"),
    ("NoSuchElementException", "NoSuchElementException"),
    ("IllegalArgumentException", "IllegalArgumentException"),
    ("AssertionError", "AssertionError"),
]

FRAMEWORK_FRAMES = (
    "org.junit",
    "sun.reflect",
    "java.lang.reflect",
    "org.testng",
    "_pytest",
    "pluggy",
)

SIGNATURE_MESSAGE_LIMIT = 50
GENERIC_CONFIDENCE = 0.5


def extract_error_type(
    error_message: Optional[str], stack_trace: Optional[str] = None
) -> str:
    """
    Extract the error class name from a failure.

    Args:
        error_message: Failure message
        stack_trace: Failure stack trace

    Returns:
        Canonical error type, or "Unknown"
    """
    candidates = []
    if error_message:
        candidates.append(error_message)
    if stack_trace:
        candidates.append(stack_trace.split("\n")[0])

    for text in candidates:
        for needle, error_type in KNOWN_ERROR_TYPES:
            if needle in text:
                return error_type
        match = ERROR_CLASS_PATTERN.search(text)
        if match:
            return match.group(1)

    return "Unknown"


def create_error_signature(
    error_message: Optional[str], stack_trace: Optional[str] = None
) -> str:
    """
    Build a deduplication signature for a failure.

    Format is ``<type>:<first message line>[:<first application frame>]``.
    Frames belonging to test frameworks or reflection are skipped.
    """
    parts = [extract_error_type(error_message, stack_trace)]

    if error_message:
        first_line = error_message.split("\n")[0].strip()
        parts.append(first_line[:SIGNATURE_MESSAGE_LIMIT])
    else:
        parts.append("unknown")

    if stack_trace:
        for line in stack_trace.split("\n"):
            if not line.strip():
                continue
            if any(frame in line for frame in FRAMEWORK_FRAMES):
                continue
            parts.append(line.strip())
            break

    return ":".join(parts)


class FailurePatternRecognizer:
    """
    Classify test failures into known categories.

    PATTERN: Open registry; new categories plug in without touching callers
    GOTCHA: Several categories can match the same failure
    """

    def __init__(self, matchers: Optional[List[BaseMatcher]] = None):
        """
        Initialize recognizer.

        Args:
            matchers: Matchers to register (defaults to the built-in set)
        """
        self._matchers: Dict[str, BaseMatcher] = {}
        for matcher in default_matchers() if matchers is None else matchers:
            self.register(matcher)

    def register(self, matcher: BaseMatcher) -> None:
        """Register a matcher, replacing any matcher of the same type."""
        if not matcher.pattern_type:
            raise ValueError("Matcher must declare a pattern_type")
        self._matchers[matcher.pattern_type] = matcher

    def unregister(self, pattern_type: str) -> None:
        self._matchers.pop(pattern_type, None)

    @property
    def pattern_types(self) -> List[str]:
        return list(self._matchers)

    def analyze_failure(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[FailurePattern]:
        """
        Identify failure patterns for a failing test.

        Args:
            test_case: The failing test case
            error_message: Failure message
            stack_trace: Failure stack trace

        Returns:
            Detected patterns, in registration order
        """
        logger.info(f"Analyzing failure for test: {test_case.name}")

        if error_message is None and stack_trace is None:
            logger.warning("No error message or stack trace provided for analysis")
            return []

        patterns = []
        for pattern_type, matcher in self._matchers.items():
            try:
                if not matcher.matches(error_message, stack_trace, test_case.source_code):
                    continue
                patterns.append(
                    FailurePattern(
                        pattern_id=f"{pattern_type}-{uuid.uuid4().hex[:8]}",
                        pattern_type=pattern_type,
                        description=matcher.description,
                        error_signature=matcher.signature(error_message, stack_trace),
                        occurrences=1,
                        confidence=matcher.confidence(error_message, stack_trace),
                        suggested_fixes=matcher.suggested_fixes(
                            test_case, error_message, stack_trace
                        ),
                    )
                )
            except Exception as e:
                logger.warning(f"Matcher {pattern_type} failed: {e}")

        if not patterns and error_message is not None:
            error_type = extract_error_type(error_message, stack_trace)
            patterns.append(
                FailurePattern(
                    pattern_id=f"generic-{uuid.uuid4().hex[:8]}",
                    pattern_type=error_type,
                    description=f"Generic {error_type} error",
                    error_signature=create_error_signature(error_message, stack_trace),
                    occurrences=1,
                    confidence=GENERIC_CONFIDENCE,
                    suggested_fixes=[],
                )
            )

        logger.debug(
            f"Detected {len(patterns)} patterns for {test_case.name}: "
            f"{[p.pattern_type for p in patterns]}"
        )
        return patterns
