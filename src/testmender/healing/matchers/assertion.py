"""Assertion failure matcher."""

import re
from typing import List, Optional, Tuple

from ..base import BaseMatcher
from ...models.healing_models import TestCase

# JUnit "expected:<a> but was:<b>" and pytest "assert a == b"
JUNIT_PATTERN = re.compile(r"expected:\s*<(.+?)>\s*but was:\s*<(.+?)>")
PYTEST_PATTERN = re.compile(r"assert (.+?) == (.+?)$", re.MULTILINE)
NUMERIC_PATTERN = re.compile(r"-?\d+(\.\d+)?")


class AssertionMatcher(BaseMatcher):
    """Match failed assertions and suggest expected-value fixes."""

    pattern_type = "AssertionError"
    description = "Test assertion failed"

    def matches(
        self,
        error_message: Optional[str],
        stack_trace: Optional[str],
        test_code: Optional[str],
    ) -> bool:
        if self._contains(error_message, "AssertionError") or self._contains(
            stack_trace, "AssertionError"
        ):
            return True
        return bool(error_message) and "expected" in error_message and "but was" in error_message

    def signature(self, error_message: Optional[str], stack_trace: Optional[str]) -> str:
        expected, actual = self._extract_values(error_message)
        if expected is None:
            return "ASSERT:unknown"
        return f"ASSERT:expected:{_shorten(expected)}:actual:{_shorten(actual)}"

    def confidence(self, error_message: Optional[str], stack_trace: Optional[str]) -> float:
        return 0.95

    def suggested_fixes(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[str]:
        expected, actual = self._extract_values(error_message)

        fixes = [
            "Verify the expected value in the assertion"
            + (f": expected {expected}" if expected is not None else ""),
            "Check the actual value calculation"
            + (f": actual {actual}" if actual is not None else ""),
        ]

        if expected is not None and actual is not None:
            if expected != actual and expected.strip() == actual.strip():
                fixes.append(
                    "Whitespace difference detected: normalize whitespace before comparing"
                )
            if expected != actual and expected.lower() == actual.lower():
                fixes.append(
                    "Case difference detected: use a case-insensitive comparison"
                )
            if NUMERIC_PATTERN.fullmatch(expected) and NUMERIC_PATTERN.fullmatch(actual):
                fixes.append(
                    "For floating-point values add a delta to the comparison: "
                    "assertEquals(expected, actual, delta)"
                )

        fixes.append("Review the business rules to confirm the expected behavior")
        fixes.append("Update the expected value if the new behavior is correct")
        return fixes

    def _extract_values(
        self, error_message: Optional[str]
    ) -> Tuple[Optional[str], Optional[str]]:
        if not error_message:
            return None, None
        match = JUNIT_PATTERN.search(error_message)
        if match:
            return match.group(1), match.group(2)
        match = PYTEST_PATTERN.search(error_message)
        if match:
            # pytest prints "assert actual == expected"
            return match.group(2).strip(), match.group(1).strip()
        return None, None


def _shorten(value: Optional[str], limit: int = 20) -> str:
    if value is None:
        return ""
    return value if len(value) <= limit else value[:limit] + "..."
