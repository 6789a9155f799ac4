"""Null dereference matcher."""

import re
from typing import List, Optional

from ..base import BaseMatcher
from ...models.healing_models import TestCase

FRAME_PATTERN = re.compile(r"at ([\w$.]+)\.(\w+)\(([\w$.]+\.java):(\d+)\)")
LINE_PATTERN = re.compile(r"\(([\w$.]+\.java):(\d+)\)|line (\d+)")
VARIABLE_PATTERN = re.compile(r"(\w+)\.")


class NullPointerMatcher(BaseMatcher):
    """
    Match null reference failures.

    Recognises Java NullPointerException and Python attribute access on None.
    """

    pattern_type = "NullPointerException"
    description = "Null reference was accessed"

    def matches(
        self,
        error_message: Optional[str],
        stack_trace: Optional[str],
        test_code: Optional[str],
    ) -> bool:
        needles = ("NullPointerException", "'NoneType' object")
        return self._contains(error_message, *needles) or self._contains(
            stack_trace, *needles
        )

    def signature(self, error_message: Optional[str], stack_trace: Optional[str]) -> str:
        if stack_trace:
            match = FRAME_PATTERN.search(stack_trace)
            if match:
                return f"NPE:{match.group(1)}:{match.group(4)}"
        return "NPE:unknown"

    def suggested_fixes(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[str]:
        variable = self._variable_hint(stack_trace, test_case.source_code)
        return [
            "Add null checks before dereferencing the object: "
            f"if ({variable or 'object'} != null) {{ ... }}",
            "Initialize the variable before using it",
            "Use Optional to handle potentially null values",
            "Return empty collections instead of null",
        ]

    def _variable_hint(
        self, stack_trace: Optional[str], test_code: Optional[str]
    ) -> Optional[str]:
        """Guess the dereferenced variable from the failing source line."""
        if not stack_trace or not test_code:
            return None

        match = LINE_PATTERN.search(stack_trace)
        if not match:
            return None

        line_number = int(match.group(2) or match.group(3))
        lines = test_code.split("\n")
        if 0 < line_number <= len(lines):
            var_match = VARIABLE_PATTERN.search(lines[line_number - 1].strip())
            if var_match:
                return var_match.group(1)
        return None
