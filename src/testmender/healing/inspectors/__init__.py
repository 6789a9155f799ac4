"""Source inspectors for targeted test repair."""

from ..base import SourceInspector
from .noop_inspector import NoOpSourceInspector
from .python_inspector import PythonSourceInspector

INSPECTORS = {
    "noop": NoOpSourceInspector,
    "python": PythonSourceInspector,
}


def create_inspector(name: str) -> SourceInspector:
    """Instantiate an inspector by its configuration name."""
    try:
        return INSPECTORS[name.lower()]()
    except KeyError:
        raise ValueError(
            f"Unknown source inspector: {name}. Available: {sorted(INSPECTORS)}"
        )


__all__ = [
    "create_inspector",
    "NoOpSourceInspector",
    "PythonSourceInspector",
]
