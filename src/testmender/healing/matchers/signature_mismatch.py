"""Method signature mismatch matcher."""

import re
from typing import List, Optional

from ..base import BaseMatcher
from ...models.healing_models import TestCase

ARG_COUNT_PATTERN = re.compile(
    r"(\w+)\(\) takes (\d+) positional arguments? but (\d+) (?:were|was) given"
)
KEYWORD_PATTERN = re.compile(r"unexpected keyword argument '(\w+)'")
NO_SUCH_METHOD_PATTERN = re.compile(r"NoSuchMethod(?:Error|Exception):\s*([\w$.]+)")


class SignatureMismatchMatcher(BaseMatcher):
    """
    Match calls that no longer fit the target signature.

    Covers Java NoSuchMethodError and compile errors, and Python TypeError
    argument mismatches.
    """

    pattern_type = "SignatureMismatch"
    description = "Call does not match the current method signature"

    def matches(
        self,
        error_message: Optional[str],
        stack_trace: Optional[str],
        test_code: Optional[str],
    ) -> bool:
        text = f"{error_message or ''}\n{stack_trace or ''}"
        if "NoSuchMethodError" in text or "NoSuchMethodException" in text:
            return True
        if "cannot be applied to given types" in text:
            return True
        return bool(ARG_COUNT_PATTERN.search(text) or KEYWORD_PATTERN.search(text))

    def signature(self, error_message: Optional[str], stack_trace: Optional[str]) -> str:
        text = error_message or ""
        match = ARG_COUNT_PATTERN.search(text)
        if match:
            return f"SIG:{match.group(1)}:expected:{match.group(2)}:given:{match.group(3)}"
        match = NO_SUCH_METHOD_PATTERN.search(text)
        if match:
            return f"SIG:{match.group(1)}"
        return "SIG:unknown"

    def confidence(self, error_message: Optional[str], stack_trace: Optional[str]) -> float:
        return 0.85

    def suggested_fixes(
        self,
        test_case: TestCase,
        error_message: Optional[str],
        stack_trace: Optional[str],
    ) -> List[str]:
        text = error_message or ""
        fixes = []

        match = ARG_COUNT_PATTERN.search(text)
        if match:
            name, expected, given = match.groups()
            fixes.append(
                f"Call {name}() with {expected} arguments instead of {given}"
            )

        match = KEYWORD_PATTERN.search(text)
        if match:
            fixes.append(
                f"Remove the keyword argument '{match.group(1)}', "
                "it is no longer accepted"
            )

        fixes.append("Update calls to match the current parameter list of the target method")
        fixes.append("Regenerate test inputs for any new parameters")
        return fixes
