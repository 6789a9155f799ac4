"""Invalid cast matcher."""

import re
from typing import List, Optional

from ..base import BaseMatcher
from ...models.healing_models import TestCase

CAST_PATTERN = re.compile(r"([\w$.]+) cannot be cast to ([\w$.]+)")
TARGET_PATTERN = re.compile(r"cannot be cast to ([\w$.]+)")

BOXED_PAIRS = (("Integer", "int"), ("Boolean", "boolean"), ("Double", "double"))


class ClassCastMatcher(BaseMatcher):
    """Match ClassCastException failures."""

    pattern_type = "ClassCastException"
    description = "Invalid type cast operation"

    def matches(
        self,
        error_message: Optional[str],
        stack_trace: Optional[str],
        test_code: Optional[str],
    ) -> bool:
        return self._contains(error_message, "ClassCastException") or self._contains(
            stack_trace, "ClassCastException"
        )

    def signature(self, error_message: Optional[str], stack_trace: Optional[str]) -> str:
        match = TARGET_PATTERN.search(error_message or "")
        if match:
            return f"CCE:target:{match.group(1)}"
        return "CCE:unknown"

    def suggested_fixes(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[str]:
        fixes = [
            "Use instanceof to check the type before casting",
            "Review the type hierarchy to ensure the types are compatible",
        ]

        match = CAST_PATTERN.search(error_message or "")
        if match:
            source, target = match.groups()
            fixes.append(
                f"Cannot cast from '{source}' to '{target}': the types are incompatible"
            )
            if any(boxed in source and primitive in target for boxed, primitive in BOXED_PAIRS):
                fixes.append(
                    "For wrapper to primitive conversion use explicit unboxing, "
                    "e.g. Integer.intValue()"
                )
        return fixes
