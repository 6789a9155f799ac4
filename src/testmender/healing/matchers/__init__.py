"""Failure pattern matchers."""

from typing import List

from ..base import BaseMatcher
from .null_pointer import NullPointerMatcher
from .assertion import AssertionMatcher
from .index_bounds import IndexOutOfBoundsMatcher
from .class_cast import ClassCastMatcher
from .no_such_element import NoSuchElementMatcher
from .signature_mismatch import SignatureMismatchMatcher


def default_matchers() -> List[BaseMatcher]:
    """Built-in matchers in registration order."""
    return [
        NullPointerMatcher(),
        AssertionMatcher(),
        IndexOutOfBoundsMatcher(),
        ClassCastMatcher(),
        NoSuchElementMatcher(),
        SignatureMismatchMatcher(),
    ]


__all__ = [
    "default_matchers",
    "NullPointerMatcher",
    "AssertionMatcher",
    "IndexOutOfBoundsMatcher",
    "ClassCastMatcher",
    "NoSuchElementMatcher",
    "SignatureMismatchMatcher",
]
