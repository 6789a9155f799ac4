"""Missing element matcher."""

import hashlib
from typing import List, Optional

from ..base import BaseMatcher
from ...models.healing_models import TestCase


class NoSuchElementMatcher(BaseMatcher):
    """Match iterator, optional and map lookups of absent elements."""

    pattern_type = "NoSuchElementException"
    description = "Attempted to access a non-existent element"

    def matches(
        self,
        error_message: Optional[str],
        stack_trace: Optional[str],
        test_code: Optional[str],
    ) -> bool:
        needles = ("NoSuchElementException", "StopIteration", "KeyError")
        return self._contains(error_message, *needles) or self._contains(
            stack_trace, *needles
        )

    def signature(self, error_message: Optional[str], stack_trace: Optional[str]) -> str:
        if not error_message:
            return "NSE:unknown"
        digest = hashlib.md5(error_message.encode("utf-8")).hexdigest()[:8]
        return f"NSE:{digest}"

    def confidence(self, error_message: Optional[str], stack_trace: Optional[str]) -> float:
        return 0.85

    def suggested_fixes(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[str]:
        return [
            "Check the iterator has elements before calling next()",
            "Handle empty Optional values explicitly",
            "Check the element exists before retrieving it",
            "For map lookups use containsKey() first, or a default value",
        ]
