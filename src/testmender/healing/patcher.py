"""Targeted source patches for broken tests."""

import logging
import re
from typing import Dict, List

from .prompts import detect_framework

logger = logging.getLogger(__name__)

LIST_SEPARATOR = "\n"
RENAME_SEPARATOR = ","
RENAME_ARROW = "->"

IMPORT_LINE = re.compile(r"^(import\s|from\s+\S+\s+import\s)")


def join_items(items: List[str]) -> str:
    return LIST_SEPARATOR.join(items)


def split_items(detail: str) -> List[str]:
    return [item for item in (detail or "").split(LIST_SEPARATOR) if item.strip()]


def render_renames(renames: Dict[str, str]) -> str:
    return RENAME_SEPARATOR.join(f"{old}{RENAME_ARROW}{new}" for old, new in renames.items())


def parse_renames(detail: str) -> Dict[str, str]:
    """Parse ``old->new`` pairs, ignoring malformed entries."""
    renames = {}
    for pair in (detail or "").split(RENAME_SEPARATOR):
        if RENAME_ARROW not in pair:
            continue
        old, new = (part.strip() for part in pair.split(RENAME_ARROW, 1))
        if old and new:
            renames[old] = new
    return renames


def _comment_prefix(code: str) -> str:
    return "//" if detect_framework(code) == "JUnit 5" else "#"


def extract_assertions(code: str) -> List[str]:
    """
    Collect assertion lines from test source.

    Args:
        code: Test source code

    Returns:
        Trimmed lines containing an assertion, comments excluded
    """
    assertions = []
    for line in (code or "").split("\n"):
        stripped = line.strip()
        if "assert" not in stripped:
            continue
        if stripped.startswith(("//", "*", "#")):
            continue
        assertions.append(stripped)
    return assertions


def add_imports(code: str, imports: List[str]) -> str:
    """
    Insert import statements after the existing import block.

    GOTCHA: Java imports need a trailing semicolon, Python ones must not have one
    """
    lines = code.split("\n")
    is_java = detect_framework(code) == "JUnit 5"

    pending = []
    for statement in imports:
        statement = statement.strip()
        if is_java and not statement.endswith(";"):
            statement += ";"
        if statement and statement not in lines and statement not in pending:
            pending.append(statement)

    if not pending:
        return code

    insert_at = 0
    for index, line in enumerate(lines):
        stripped = line.strip()
        if IMPORT_LINE.match(stripped) or stripped.startswith("package "):
            insert_at = index + 1

    logger.debug(f"Adding imports at line {insert_at}: {pending}")
    return "\n".join(lines[:insert_at] + pending + lines[insert_at:])


def fix_renamed_elements(code: str, renames: Dict[str, str]) -> str:
    """Replace whole-word occurrences of renamed identifiers."""
    for old, new in renames.items():
        code = re.sub(rf"\b{re.escape(old)}\b", new, code)
    return code


def fix_assertions(code: str, invalid: List[str], renames: Dict[str, str]) -> str:
    """
    Rewrite stale assertions.

    Assertions that a rename explains are rewritten in place; the rest are
    flagged with a FIXME comment for the next regeneration.

    Args:
        code: Test source code
        invalid: Source text of stale assertions
        renames: Identifier renames old to new

    Returns:
        Patched source code
    """
    marker = _comment_prefix(code)
    for assertion in invalid:
        if assertion not in code:
            logger.warning(f"Assertion not found in source: {assertion}")
            continue

        rewritten = fix_renamed_elements(assertion, renames)
        if rewritten != assertion:
            code = code.replace(assertion, rewritten)
            continue

        flagged = f"{marker} FIXME: assertion references a changed member\n"
        code = _prefix_line(code, assertion, flagged)
    return code


def _prefix_line(code: str, fragment: str, prefix: str) -> str:
    start = code.index(fragment)
    line_start = code.rfind("\n", 0, start) + 1
    indent = re.match(r"[ \t]*", code[line_start:]).group(0)
    return code[:line_start] + indent + prefix + code[line_start:]


def extract_code(response: str) -> str:
    """
    Extract test source from a generated response.

    Returns the first fenced block when present, else the whole response.
    """
    fence = re.search(r"```[\w+-]*\n(.*?)```", response, re.S)
    if fence:
        return fence.group(1).strip()
    return response.strip()
