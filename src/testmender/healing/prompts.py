"""Healing prompt rendering and parsing.

The method block written here is also the record diagnosis reads back from
a test's generation prompt, so rendering and parsing live together.
"""

import re
from typing import Dict, List, Optional, Tuple

from ..models.healing_models import (
    AnalysisResult,
    IssueKind,
    MethodSnapshot,
    TestCase,
)

SIGNATURE_LINE = re.compile(r"^Method signature:\s*(?P<name>[\w$]+)\((?P<params>.*)\)\s*$", re.M)
RETURN_LINE = re.compile(r"^Return type:\s*(?P<type>.+?)\s*$", re.M)

INSTRUCTIONS = [
    "Addresses the specific failure patterns identified above",
    "Applies the most appropriate fix from the suggested fixes",
    "Works with the current method implementation",
    "Maintains the same test coverage and intent",
    "Uses proper {framework} syntax",
    "Includes appropriate imports",
    "Provides meaningful assertions",
]

PATTERN_GUIDANCE = {
    "NullPointerException": (
        "For null pointer exceptions, make sure to:",
        [
            "Add null checks before accessing objects",
            "Initialize objects before use",
            "Use assertNotNull where appropriate",
        ],
    ),
    "AssertionError": (
        "For assertion errors, make sure to:",
        [
            "Verify expected values match the actual behavior",
            "Consider using more specific assertions (assertEquals, assertFalse, etc.)",
            "Add appropriate delta values for floating point comparisons",
        ],
    ),
    "IndexOutOfBoundsException": (
        "For index out of bounds exceptions, make sure to:",
        [
            "Check array/collection bounds before accessing elements",
            "Remember that indices are zero-based (max index is length-1)",
            "Check if collections are empty before accessing the first element",
        ],
    ),
}


def detect_framework(source: str) -> str:
    """Best-effort name of the test framework a test is written for."""
    if "@Test" in source:
        return "JUnit 5"
    if "import pytest" in source or re.search(r"^\s*(async\s+)?def test_", source, re.M):
        return "pytest"
    if "unittest" in source:
        return "unittest"
    return "test framework"


def build_method_block(snapshot: MethodSnapshot) -> str:
    """
    Render the current target method description.

    Args:
        snapshot: Target method snapshot

    Returns:
        Method block text
    """
    lines = [
        "Method Info for Healing:",
        "",
        f"Package: {snapshot.package_name}",
        f"Class: {snapshot.class_name}",
        f"Method signature: {snapshot.signature}",
        f"Return type: {snapshot.return_type}",
    ]

    if snapshot.parameters:
        lines.append("Parameters:")
        lines.extend(f"- {p.type} {p.name}" for p in snapshot.parameters)

    if snapshot.exceptions:
        lines.append("Throws:")
        lines.extend(f"- {exc}" for exc in snapshot.exceptions)

    return "\n".join(lines) + "\n"


def _split_parameters(params: str) -> List[str]:
    # Commas inside generic brackets do not separate parameters
    parts, depth, current = [], 0, []
    for char in params:
        if char in "<[(":
            depth += 1
        elif char in ">])":
            depth -= 1
        if char == "," and depth == 0:
            parts.append("".join(current).strip())
            current = []
        else:
            current.append(char)
    tail = "".join(current).strip()
    if tail:
        parts.append(tail)
    return parts


def parse_recorded_signature(prompt: str) -> Optional[Tuple[str, List[str], str]]:
    """
    Read the signature recorded in a generation prompt.

    Args:
        prompt: Generation prompt containing a method block

    Returns:
        (method name, parameter types, return type), or None when the prompt
        carries no method block
    """
    if not prompt:
        return None

    signature = SIGNATURE_LINE.search(prompt)
    if not signature:
        return None

    types = []
    for param in _split_parameters(signature.group("params")):
        tokens = param.rsplit(" ", 1)
        types.append(tokens[0].strip() if len(tokens) == 2 else param)

    return_match = RETURN_LINE.search(prompt)
    return_type = return_match.group("type") if return_match else "void"
    return signature.group("name"), types, return_type


def _group_issues(result: AnalysisResult) -> Tuple[List[str], Dict[str, List[str]], List[str]]:
    patterns, fixes, other = [], {}, []
    for kind, detail in result.issues.items():
        if kind.startswith(IssueKind.PATTERN_PREFIX):
            pattern_type = kind[len(IssueKind.PATTERN_PREFIX):]
            patterns.append(f"{pattern_type}: {detail}")
        elif kind.startswith(IssueKind.FIX_PREFIX):
            pattern_type = kind[len(IssueKind.FIX_PREFIX):].rsplit("_", 1)[0]
            fixes.setdefault(pattern_type, []).append(detail)
        else:
            other.append(f"{kind}: {detail}")
    return patterns, fixes, other


def build_healing_prompt(
    test_case: TestCase, snapshot: MethodSnapshot, result: AnalysisResult
) -> str:
    """
    Build the regeneration prompt for a broken test.

    PATTERN: Target block, broken source, grouped issues, fixed instructions
    CRITICAL: The method block must stay parseable by parse_recorded_signature

    Args:
        test_case: Broken test case
        snapshot: Current target method snapshot
        result: Diagnosis of the broken test

    Returns:
        Prompt text
    """
    framework = detect_framework(test_case.source_code)
    sections = [
        f"Heal the following broken {framework} test. "
        "The test is failing and needs to be fixed.\n",
        "CURRENT METHOD IMPLEMENTATION:",
        build_method_block(snapshot),
        "BROKEN TEST:",
        test_case.source_code,
        "",
        "TEST ISSUES:",
    ]

    patterns, fixes, other = _group_issues(result)

    if patterns:
        sections.append("\nDETECTED FAILURE PATTERNS:")
        sections.extend(f"- {p}" for p in patterns)

    for pattern_type, pattern_fixes in fixes.items():
        sections.append(f"\nSUGGESTED FIXES FOR {pattern_type}:")
        sections.extend(f"{i}. {fix}" for i, fix in enumerate(pattern_fixes, 1))

    if other:
        sections.append("\nOTHER ISSUES:")
        sections.extend(f"- {issue}" for issue in other)

    sections.append("\nPlease create a fixed version of this test that:")
    sections.extend(
        f"{i}. {line.format(framework=framework)}"
        for i, line in enumerate(INSTRUCTIONS, 1)
    )

    detected = set(result.pattern_types())
    for pattern_type, (heading, tips) in PATTERN_GUIDANCE.items():
        if pattern_type in detected:
            sections.append(f"\n{heading}")
            sections.extend(f"- {tip}" for tip in tips)

    sections.append("\nReturn ONLY the fixed test code, no explanation.")
    return "\n".join(sections) + "\n"
