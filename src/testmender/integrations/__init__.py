"""Reference implementations of the healing engine collaborators."""

from .python_code_analyzer import PythonCodeAnalyzer
from .openai_generator import OpenAITextGenerator
from .subprocess_executor import SubprocessTestExecutor

__all__ = [
    "PythonCodeAnalyzer",
    "OpenAITextGenerator",
    "SubprocessTestExecutor",
]
