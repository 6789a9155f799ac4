"""Index out of bounds matcher."""

import re
from typing import List, Optional

from ..base import BaseMatcher
from ...models.healing_models import TestCase

INDEX_PATTERN = re.compile(r"Index\s+(-?\d+)\s+out of bounds for length\s+(\d+)")


class IndexOutOfBoundsMatcher(BaseMatcher):
    """Match array, list and string index failures."""

    pattern_type = "IndexOutOfBoundsException"
    description = "Array or collection index out of bounds"

    def matches(
        self,
        error_message: Optional[str],
        stack_trace: Optional[str],
        test_code: Optional[str],
    ) -> bool:
        needles = ("IndexOutOfBoundsException", "IndexError")
        return self._contains(error_message, *needles) or self._contains(
            stack_trace, *needles
        )

    def signature(self, error_message: Optional[str], stack_trace: Optional[str]) -> str:
        match = INDEX_PATTERN.search(error_message or "")
        if match:
            return f"IOOB:index:{match.group(1)}:length:{match.group(2)}"
        return "IOOB:unknown"

    def suggested_fixes(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[str]:
        match = INDEX_PATTERN.search(error_message or "")
        if not match:
            return [
                "Check bounds before indexing into the array or collection",
                "Check the collection is not empty before accessing the first element",
                "Verify loop conditions stop before the end of the collection",
            ]

        index, length = int(match.group(1)), int(match.group(2))
        fixes = [
            f"Index {index} is out of bounds for a collection of length {length}",
            "Check bounds before indexing: if (index < collection.size()) { ... }",
        ]
        if index == length:
            fixes.append(
                "Indices are zero-based: the largest valid index is length - 1"
            )
        elif index < 0:
            fixes.append("Negative index detected: ensure the index is non-negative")
        elif index > length:
            fixes.append("Ensure the collection is populated before accessing elements")
        return fixes
