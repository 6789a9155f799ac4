"""Shared fixtures for testmender tests."""

import pytest

from testmender.models.healing_models import (
    MethodSnapshot,
    ParameterInfo,
    TestCase,
    TestStatus,
)
from testmender.repository.stores import InMemoryTestCaseRepository


@pytest.fixture
def make_test_case():
    """Factory for test cases targeting billing.Calculator.foo."""

    def _make(**overrides) -> TestCase:
        fields = {
            "name": "test_foo",
            "status": TestStatus.BROKEN,
            "package_name": "tests.billing",
            "class_name": "TestCalculator",
            "method_name": "test_foo",
            "target_package": "billing",
            "target_class": "Calculator",
            "target_method": "foo",
            "source_code": (
                "from billing import Calculator\n"
                "\n"
                "def test_foo():\n"
                "    calc = Calculator()\n"
                "    assert calc.foo(1) is None\n"
            ),
        }
        fields.update(overrides)
        return TestCase(**fields)

    return _make


@pytest.fixture
def foo_snapshot():
    """Snapshot of foo(int a) returning void."""
    return MethodSnapshot(
        package_name="billing",
        class_name="Calculator",
        method_name="foo",
        return_type="void",
        parameters=[ParameterInfo(type="int", name="a")],
    )


@pytest.fixture
def foo_two_args_snapshot():
    """Snapshot of foo(int a, int b) returning void."""
    return MethodSnapshot(
        package_name="billing",
        class_name="Calculator",
        method_name="foo",
        return_type="void",
        parameters=[ParameterInfo(type="int", name="a"), ParameterInfo(type="int", name="b")],
    )


@pytest.fixture
def repository():
    """Empty in-memory test case repository."""
    return InMemoryTestCaseRepository()
