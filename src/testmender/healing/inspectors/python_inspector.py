"""Syntax-tree inspection of Python test source.

PATTERN: ast.NodeVisitor collecting imports and references
CRITICAL: Only Python tests are inspected; parse failures raise AnalysisError
GOTCHA: Renames are inferred from the recorded target name, not from a diff
"""

import ast
from typing import Dict, List, Set

from ..base import AnalysisError, SourceInspection, SourceInspector
from ...models.healing_models import MethodSnapshot, TestCase


class _ReferenceCollector(ast.NodeVisitor):
    """Collect imported, defined and referenced names of a module."""

    def __init__(self):
        self.imported: Set[str] = set()
        self.defined: Set[str] = set()
        self.names: Set[str] = set()
        self.attributes: Set[str] = set()
        self.assertions: List[ast.AST] = []

    def visit_Import(self, node: ast.Import):
        for alias in node.names:
            self.imported.add(alias.asname or alias.name.split(".")[0])

    def visit_ImportFrom(self, node: ast.ImportFrom):
        for alias in node.names:
            self.imported.add(alias.asname or alias.name)

    def visit_ClassDef(self, node: ast.ClassDef):
        self.defined.add(node.name)
        self.generic_visit(node)

    def visit_FunctionDef(self, node: ast.FunctionDef):
        self.defined.add(node.name)
        self.generic_visit(node)

    visit_AsyncFunctionDef = visit_FunctionDef

    def visit_Name(self, node: ast.Name):
        if isinstance(node.ctx, ast.Store):
            self.defined.add(node.id)
        else:
            self.names.add(node.id)

    def visit_Attribute(self, node: ast.Attribute):
        self.attributes.add(node.attr)
        self.generic_visit(node)

    def visit_Assert(self, node: ast.Assert):
        self.assertions.append(node)
        self.generic_visit(node)

    def visit_Call(self, node: ast.Call):
        # unittest style self.assertX(...)
        if isinstance(node.func, ast.Attribute) and node.func.attr.startswith("assert"):
            self.assertions.append(node)
        self.generic_visit(node)


def _referenced_identifiers(node: ast.AST) -> Set[str]:
    found = set()
    for child in ast.walk(node):
        if isinstance(child, ast.Name):
            found.add(child.id)
        elif isinstance(child, ast.Attribute):
            found.add(child.attr)
    return found


class PythonSourceInspector(SourceInspector):
    """
    Detect stale imports, assertions and identifiers in pytest sources.

    PATTERN: Compare test references against the current target snapshot
    CRITICAL: Read-only; patching happens in the healing pipeline
    """

    async def inspect(
        self, test_case: TestCase, snapshot: MethodSnapshot
    ) -> SourceInspection:
        """
        Inspect a Python test against the current target snapshot.

        Args:
            test_case: Test whose source is inspected
            snapshot: Current snapshot of the target method

        Returns:
            Inspection findings

        Raises:
            AnalysisError: If the test source does not parse
        """
        try:
            tree = ast.parse(test_case.source_code or "")
        except SyntaxError as e:
            raise AnalysisError(f"Cannot parse test {test_case.name}: {e}") from e

        collector = _ReferenceCollector()
        collector.visit(tree)

        renamed = self._find_renames(test_case, snapshot, collector)
        return SourceInspection(
            missing_imports=self._find_missing_imports(snapshot, collector),
            invalid_assertions=self._find_invalid_assertions(
                test_case.source_code, collector, renamed
            ),
            renamed_elements=renamed,
        )

    def _find_missing_imports(
        self, snapshot: MethodSnapshot, collector: _ReferenceCollector
    ) -> List[str]:
        symbol = snapshot.class_name or snapshot.method_name
        if symbol not in collector.names:
            return []
        if symbol in collector.imported or symbol in collector.defined:
            return []

        if snapshot.package_name:
            statement = f"from {snapshot.package_name} import {symbol}"
        else:
            statement = f"import {symbol}"
        self.logger.debug(f"Missing import detected: {statement}")
        return [statement]

    def _find_renames(
        self,
        test_case: TestCase,
        snapshot: MethodSnapshot,
        collector: _ReferenceCollector,
    ) -> Dict[str, str]:
        renamed = {}
        old_name = test_case.target_method
        if old_name and old_name != snapshot.method_name:
            if old_name in collector.names or old_name in collector.attributes:
                renamed[old_name] = snapshot.method_name

        old_class = test_case.target_class
        if old_class and snapshot.class_name and old_class != snapshot.class_name:
            if old_class in collector.names or old_class in collector.imported:
                renamed[old_class] = snapshot.class_name

        return renamed

    def _find_invalid_assertions(
        self,
        source: str,
        collector: _ReferenceCollector,
        renamed: Dict[str, str],
    ) -> List[str]:
        if not renamed:
            return []

        invalid = []
        for node in collector.assertions:
            if _referenced_identifiers(node) & set(renamed):
                segment = ast.get_source_segment(source, node)
                if segment and segment not in invalid:
                    invalid.append(segment)
        return invalid
