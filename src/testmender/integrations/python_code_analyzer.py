"""Python source analysis into method snapshots.

PATTERN: AST traversal of class and module level functions
CRITICAL: Snapshots are indexed by qualified name for later lookup
GOTCHA: Unannotated parameters and returns are recorded as "Any"
"""

import ast
import logging
from pathlib import Path
from typing import Dict, List, Optional

from ..healing.base import AnalysisError, CodeAnalyzer
from ..models.healing_models import MethodSnapshot, ParameterInfo

logger = logging.getLogger(__name__)

UNTYPED = "Any"


def _annotation(node: Optional[ast.AST]) -> str:
    return ast.unparse(node) if node is not None else UNTYPED


def _decorator_names(node: ast.AST) -> List[str]:
    names = []
    for decorator in node.decorator_list:
        if isinstance(decorator, ast.Name):
            names.append(decorator.id)
        elif isinstance(decorator, ast.Attribute):
            names.append(decorator.attr)
    return names


def _raised_exceptions(node: ast.AST) -> List[str]:
    raised = []
    for child in ast.walk(node):
        if not isinstance(child, ast.Raise) or child.exc is None:
            continue
        target = child.exc.func if isinstance(child.exc, ast.Call) else child.exc
        name = ast.unparse(target)
        if name not in raised:
            raised.append(name)
    return raised


class PythonCodeAnalyzer(CodeAnalyzer):
    """
    Build method snapshots from Python source.

    PATTERN: Analyze once, look up many times by qualified name
    """

    def __init__(self, package_name: str = ""):
        """
        Initialize analyzer.

        Args:
            package_name: Module path recorded on snapshots from analyze()
        """
        self.package_name = package_name
        self._index: Dict[str, MethodSnapshot] = {}

    async def analyze(self, source: str) -> Dict[str, MethodSnapshot]:
        return self.analyze_module(source, self.package_name)

    def analyze_module(self, source: str, package_name: str) -> Dict[str, MethodSnapshot]:
        """
        Analyze one module.

        Args:
            source: Module source text
            package_name: Dotted module path

        Returns:
            Method key to snapshot mapping

        Raises:
            AnalysisError: If the source does not parse
        """
        try:
            tree = ast.parse(source)
        except SyntaxError as e:
            raise AnalysisError(f"Cannot parse source: {e}") from e

        methods: Dict[str, MethodSnapshot] = {}
        for node in tree.body:
            if isinstance(node, ast.ClassDef):
                for item in node.body:
                    if isinstance(item, (ast.FunctionDef, ast.AsyncFunctionDef)):
                        snapshot = self._snapshot(source, item, package_name, node.name)
                        methods[snapshot.key] = snapshot
            elif isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef)):
                snapshot = self._snapshot(source, node, package_name, "")
                methods[snapshot.key] = snapshot

        for snapshot in methods.values():
            self._index[snapshot.qualified_name] = snapshot

        logger.debug(f"Analyzed {len(methods)} methods in {package_name or '<source>'}")
        return methods

    def _snapshot(
        self, source: str, node: ast.AST, package_name: str, class_name: str
    ) -> MethodSnapshot:
        decorators = _decorator_names(node)
        is_static = "staticmethod" in decorators

        args = list(node.args.posonlyargs) + list(node.args.args)
        if class_name and not is_static and args:
            args = args[1:]  # self / cls
        args += list(node.args.kwonlyargs)

        return MethodSnapshot(
            package_name=package_name,
            class_name=class_name,
            method_name=node.name,
            return_type=_annotation(node.returns),
            parameters=[ParameterInfo(type=_annotation(a.annotation), name=a.arg) for a in args],
            exceptions=_raised_exceptions(node),
            body=ast.get_source_segment(source, node) or "",
            is_public=not node.name.startswith("_"),
            is_static=is_static,
        )

    async def find_by_signature(self, signature: str) -> Optional[MethodSnapshot]:
        return self._index.get(signature)

    def index_directory(self, root: str) -> int:
        """
        Analyze every module under a source root.

        Args:
            root: Directory whose relative paths give module names

        Returns:
            Number of methods indexed
        """
        root_path = Path(root)
        count = 0
        for path in sorted(root_path.rglob("*.py")):
            relative = path.relative_to(root_path).with_suffix("")
            parts = list(relative.parts)
            if parts[-1] == "__init__":
                parts = parts[:-1]
            try:
                methods = self.analyze_module(path.read_text(encoding="utf-8"), ".".join(parts))
                count += len(methods)
            except AnalysisError as e:
                logger.warning(f"Skipping {path}: {e}")
        logger.info(f"Indexed {count} methods under {root}")
        return count
