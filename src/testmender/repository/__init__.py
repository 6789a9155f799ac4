"""Test case persistence."""

from .base import TestCaseRepository
from .stores import InMemoryTestCaseRepository, JsonFileTestCaseRepository

__all__ = [
    "TestCaseRepository",
    "InMemoryTestCaseRepository",
    "JsonFileTestCaseRepository",
]
