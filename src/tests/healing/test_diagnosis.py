"""Tests for the failure diagnosis engine."""

import pytest
from unittest.mock import AsyncMock, Mock

from testmender.healing.base import AnalysisError, SourceInspection
from testmender.healing.diagnosis import FailureDiagnosisEngine
from testmender.healing.history_store import InMemoryHistoryStore
from testmender.healing.history_tracker import ExecutionHistoryTracker
from testmender.healing.prompts import build_method_block
from testmender.models.healing_models import (
    ExecutionOutcome,
    IssueKind,
    TestExecutionResult,
)


@pytest.fixture
def tracker(repository):
    return ExecutionHistoryTracker(InMemoryHistoryStore(), repository)


@pytest.fixture
def engine(tracker):
    return FailureDiagnosisEngine(tracker)


class TestSignatureComparison:
    """Test detection of changed target signatures."""

    @pytest.mark.asyncio
    async def test_detects_added_parameter(
        self, engine, make_test_case, foo_snapshot, foo_two_args_snapshot
    ):
        test_case = make_test_case(generation_prompt=build_method_block(foo_snapshot))

        result = await engine.analyze(test_case, foo_two_args_snapshot)

        assert result.get(IssueKind.METHOD_SIGNATURE_CHANGED) == "true"
        assert result.get(IssueKind.OLD_SIGNATURE) == "void foo(int)"
        assert result.get(IssueKind.NEW_SIGNATURE) == "void foo(int, int)"
        assert not result.has(IssueKind.COMPLETE_REGENERATION)
        assert result.requires_regeneration

    @pytest.mark.asyncio
    async def test_unchanged_signature(self, engine, make_test_case, foo_snapshot):
        test_case = make_test_case(generation_prompt=build_method_block(foo_snapshot))

        result = await engine.analyze(test_case, foo_snapshot)

        assert not result.has(IssueKind.METHOD_SIGNATURE_CHANGED)
        assert result.get(IssueKind.COMPLETE_REGENERATION) == "true"

    @pytest.mark.asyncio
    async def test_no_recorded_signature_skips_comparison(
        self, engine, make_test_case, foo_two_args_snapshot
    ):
        test_case = make_test_case(generation_prompt="Write a test for foo")

        result = await engine.analyze(test_case, foo_two_args_snapshot)

        assert not result.has(IssueKind.METHOD_SIGNATURE_CHANGED)
        assert result.issues == {IssueKind.COMPLETE_REGENERATION: "true"}


class TestPatternRecognition:
    """Test attachment of failure patterns from history."""

    @pytest.mark.asyncio
    async def test_npe_patterns_and_fixes(
        self, engine, tracker, repository, make_test_case, foo_snapshot
    ):
        test_case = await repository.save(make_test_case())
        await tracker.record_execution(
            test_case.id,
            ExecutionOutcome.FAILED,
            error_message="java.lang.NullPointerException",
        )

        result = await engine.analyze(test_case, foo_snapshot)

        assert result.get("pattern_NullPointerException") == "Null reference was accessed"
        assert "null checks" in result.get("fix_NullPointerException_0")
        assert result.has("fix_NullPointerException_1")
        assert result.pattern_types() == ["NullPointerException"]

        history = await tracker.get_history(test_case.id)
        assert [p.pattern_type for p in history.detected_patterns] == ["NullPointerException"]

    @pytest.mark.asyncio
    async def test_latest_success_skips_recognition(
        self, engine, tracker, repository, make_test_case, foo_snapshot
    ):
        test_case = await repository.save(make_test_case())
        await tracker.record_execution(
            test_case.id, ExecutionOutcome.FAILED, error_message="NullPointerException"
        )
        await tracker.record_execution(test_case.id, ExecutionOutcome.PASSED)

        result = await engine.analyze(test_case, foo_snapshot)

        assert result.pattern_types() == []

    @pytest.mark.asyncio
    async def test_falls_back_to_last_execution_result(
        self, engine, repository, make_test_case, foo_snapshot
    ):
        test_case = await repository.save(
            make_test_case(
                last_execution_result=TestExecutionResult(
                    success=False,
                    error_message="IndexOutOfBoundsException: Index 2 out of bounds for length 2",
                )
            )
        )

        result = await engine.analyze(test_case, foo_snapshot)

        assert result.pattern_types() == ["IndexOutOfBoundsException"]


class TestSourceInspection:
    """Test source inspector integration and degradation."""

    @pytest.mark.asyncio
    async def test_inspector_findings_are_reported(
        self, tracker, make_test_case, foo_snapshot
    ):
        inspector = Mock()
        inspector.inspect = AsyncMock(
            return_value=SourceInspection(
                missing_imports=["from billing import Calculator"],
                invalid_assertions=["assert calc.old(1) == 2", "assert calc.old(2) == 3"],
                renamed_elements={"old": "foo"},
            )
        )
        engine = FailureDiagnosisEngine(tracker, inspector=inspector)

        result = await engine.analyze(make_test_case(), foo_snapshot)

        assert result.get(IssueKind.MISSING_IMPORTS) == "from billing import Calculator"
        assert result.get(IssueKind.INVALID_ASSERTIONS) == (
            "assert calc.old(1) == 2\nassert calc.old(2) == 3"
        )
        assert result.get(IssueKind.RENAMED_ELEMENTS) == "old->foo"
        assert not result.requires_regeneration

    @pytest.mark.asyncio
    async def test_inspector_error_degrades_to_regeneration(
        self, tracker, make_test_case, foo_snapshot
    ):
        inspector = Mock()
        inspector.inspect = AsyncMock(side_effect=AnalysisError("cannot parse"))
        engine = FailureDiagnosisEngine(tracker, inspector=inspector)

        result = await engine.analyze(make_test_case(), foo_snapshot)

        assert result.get(IssueKind.ERROR) == "cannot parse"
        assert result.get(IssueKind.COMPLETE_REGENERATION) == "true"

    @pytest.mark.asyncio
    async def test_history_error_never_raises(self, make_test_case, foo_snapshot):
        tracker = Mock()
        tracker.latest_execution = AsyncMock(side_effect=ConnectionError("redis down"))
        engine = FailureDiagnosisEngine(tracker)

        result = await engine.analyze(make_test_case(), foo_snapshot)

        assert result.get(IssueKind.ERROR) == "redis down"
        assert result.has(IssueKind.COMPLETE_REGENERATION)
