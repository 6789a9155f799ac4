"""Tests for the healing orchestrator pipeline."""

import asyncio

import pytest
from unittest.mock import AsyncMock, Mock

from testmender.config.healing_config import HealingConfig
from testmender.healing.base import NotFoundError, SourceInspection, TestExecutor
from testmender.healing.prompts import build_method_block
from testmender.models.healing_models import (
    ExecutionOutcome,
    TestExecutionResult,
    TestStatus,
)
from testmender.services.healing_service import HealingOrchestrator

GENERATED = (
    "Here is the fixed test:\n"
    "```python\n"
    "from billing import Calculator\n"
    "\n"
    "def test_foo():\n"
    "    assert Calculator().foo(1, 2) is None\n"
    "```\n"
)


class FakeExecutor(TestExecutor):
    """Executor that marks stored tests as passed or failed."""

    def __init__(self, repository, passes=True, delay=0.0):
        self.repository = repository
        self.passes = passes
        self.delay = delay
        self.calls = []

    async def execute(self, test_id):
        self.calls.append(test_id)
        if self.delay:
            await asyncio.sleep(self.delay)
        test_case = await self.repository.find_by_id(test_id)
        test_case.status = TestStatus.PASSED if self.passes else TestStatus.FAILED
        test_case.last_execution_result = TestExecutionResult(
            success=self.passes,
            execution_time_ms=25,
            error_message=None if self.passes else "AssertionError: expected 3 but was 2",
        )
        return await self.repository.save(test_case)


@pytest.fixture
def config():
    return HealingConfig(
        max_workers=2, execution_timeout_seconds=0.05, generation_max_tokens=500
    )


@pytest.fixture
def code_analyzer(foo_two_args_snapshot):
    analyzer = Mock()
    analyzer.find_by_signature = AsyncMock(return_value=foo_two_args_snapshot)
    return analyzer


@pytest.fixture
def generator():
    generator = Mock()
    generator.generate = AsyncMock(return_value=GENERATED)
    return generator


@pytest.fixture
def executor(repository):
    return FakeExecutor(repository)


@pytest.fixture
def orchestrator(repository, code_analyzer, generator, executor, config):
    return HealingOrchestrator(repository, code_analyzer, generator, executor, config=config)


@pytest.fixture
def broken_test(make_test_case, foo_snapshot):
    """Broken test generated against foo(int a)."""
    return make_test_case(generation_prompt=build_method_block(foo_snapshot))


class TestHealTest:
    """Test HealingOrchestrator.heal_test."""

    @pytest.mark.asyncio
    async def test_signature_change_is_regenerated_and_verified(
        self, orchestrator, repository, generator, executor, broken_test
    ):
        await repository.save(broken_test)

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.PASSED
        assert executor.calls == [broken_test.id]

        prompt, max_tokens = generator.generate.await_args.args
        assert "Method signature: foo(int a, int b)" in prompt
        assert "methodSignatureChanged: true" in prompt
        assert max_tokens == 500

        stored = await repository.find_by_id(broken_test.id)
        assert stored.status == TestStatus.PASSED
        assert stored.description == "test_foo (Healed)"
        assert stored.source_code.endswith("assert Calculator().foo(1, 2) is None")
        assert stored.generation_prompt == prompt
        assert stored.assertions == ["assert Calculator().foo(1, 2) is None"]

        history = await orchestrator.get_history(broken_test.id)
        assert [a.description for a in history.healing_attempts] == [
            "[SUCCESS] Regenerated test for changed signature "
            "void foo(int) -> void foo(int, int)",
            "[SUCCESS] Verification passed after healing",
        ]
        assert history.total_executions == 1
        assert history.passed_executions == 1
        assert history.average_execution_time == 25

    @pytest.mark.asyncio
    async def test_failed_status_is_healable(self, orchestrator, repository, broken_test):
        broken_test.status = TestStatus.FAILED
        await repository.save(broken_test)

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.PASSED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [TestStatus.GENERATED, TestStatus.PASSED, TestStatus.HEALED]
    )
    async def test_non_broken_tests_are_returned_unchanged(
        self, orchestrator, repository, generator, executor, make_test_case, status
    ):
        test_case = await repository.save(make_test_case(status=status))

        result = await orchestrator.heal_test(test_case.id)

        assert result.status == status
        assert result.source_code == test_case.source_code
        generator.generate.assert_not_awaited()
        assert executor.calls == []
        assert await orchestrator.get_history(test_case.id) is None

    @pytest.mark.asyncio
    async def test_unknown_test_raises(self, orchestrator):
        with pytest.raises(NotFoundError):
            await orchestrator.heal_test("missing")

    @pytest.mark.asyncio
    async def test_generator_failure_leaves_test_broken(
        self, orchestrator, repository, generator, executor, broken_test
    ):
        await repository.save(broken_test)
        generator.generate = AsyncMock(side_effect=RuntimeError("quota exceeded"))

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.BROKEN
        assert executor.calls == []
        stored = await repository.find_by_id(broken_test.id)
        assert stored.status == TestStatus.BROKEN
        assert stored.source_code == broken_test.source_code

        history = await orchestrator.get_history(broken_test.id)
        assert history.healing_attempts[-1].description == (
            "[FAILURE] Healing failed: Generator failed: quota exceeded"
        )
        assert history.healing_success_rate == 0.0

    @pytest.mark.asyncio
    async def test_empty_generation_leaves_test_broken(
        self, orchestrator, repository, generator, broken_test
    ):
        await repository.save(broken_test)
        generator.generate = AsyncMock(return_value="   ")

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.BROKEN

    @pytest.mark.asyncio
    async def test_execution_timeout_leaves_test_broken(
        self, repository, code_analyzer, generator, config, broken_test
    ):
        await repository.save(broken_test)
        executor = FakeExecutor(repository, delay=1.0)
        orchestrator = HealingOrchestrator(
            repository, code_analyzer, generator, executor, config=config
        )

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.BROKEN
        assert result.last_execution_result.error_message == (
            "Execution timed out after 0.05s"
        )

        history = await orchestrator.get_history(broken_test.id)
        assert history.failed_executions == 1
        assert history.recent_executions[0].outcome == ExecutionOutcome.FAILED
        assert history.healing_attempts[-1].description == (
            "[FAILURE] Verification failed after healing"
        )
        assert history.healing_success_rate == pytest.approx(0.5)

    @pytest.mark.asyncio
    async def test_failing_candidate_is_broken(
        self, repository, code_analyzer, generator, config, broken_test
    ):
        await repository.save(broken_test)
        executor = FakeExecutor(repository, passes=False)
        orchestrator = HealingOrchestrator(
            repository, code_analyzer, generator, executor, config=config
        )

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.BROKEN
        history = await orchestrator.get_history(broken_test.id)
        assert history.error_types == {"AssertionError": 1}

    @pytest.mark.asyncio
    async def test_unresolvable_target_leaves_test_broken(
        self, orchestrator, repository, code_analyzer, generator, broken_test
    ):
        await repository.save(broken_test)
        code_analyzer.find_by_signature = AsyncMock(return_value=None)

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.BROKEN
        generator.generate.assert_not_awaited()
        code_analyzer.find_by_signature.assert_awaited_once_with("billing.Calculator.foo")
        history = await orchestrator.get_history(broken_test.id)
        assert history.healing_attempts[-1].description == (
            "[FAILURE] Healing failed: Current implementation not found: billing.Calculator.foo"
        )

    @pytest.mark.asyncio
    async def test_concurrent_heals_of_same_test_run_once(
        self, orchestrator, repository, generator, executor, broken_test
    ):
        await repository.save(broken_test)

        first, second = await asyncio.gather(
            orchestrator.heal_test(broken_test.id),
            orchestrator.heal_test(broken_test.id),
        )

        assert generator.generate.await_count == 1
        assert executor.calls == [broken_test.id]
        assert first.status == TestStatus.PASSED
        assert second.status == TestStatus.PASSED

    @pytest.mark.asyncio
    async def test_concurrent_caller_waits_for_failed_verification(
        self, repository, code_analyzer, generator, config, broken_test
    ):
        await repository.save(broken_test)
        executor = FakeExecutor(repository, passes=False, delay=0.01)
        orchestrator = HealingOrchestrator(
            repository, code_analyzer, generator, executor, config=config
        )

        first, second = await asyncio.gather(
            orchestrator.heal_test(broken_test.id),
            orchestrator.heal_test(broken_test.id),
        )

        assert first.status == TestStatus.BROKEN
        assert second.status == TestStatus.BROKEN
        assert generator.generate.await_count == 2
        assert executor.calls == [broken_test.id, broken_test.id]
        assert (await repository.find_by_id(broken_test.id)).status == TestStatus.BROKEN

    @pytest.mark.asyncio
    async def test_failure_after_candidate_saved_restores_original(
        self, orchestrator, repository, broken_test
    ):
        await repository.save(broken_test)
        orchestrator.tracker.record_execution = AsyncMock(
            side_effect=RuntimeError("history store down")
        )

        result = await orchestrator.heal_test(broken_test.id)

        assert result.status == TestStatus.BROKEN
        assert result.source_code == broken_test.source_code
        stored = await repository.find_by_id(broken_test.id)
        assert stored.status == TestStatus.BROKEN
        assert stored.source_code == broken_test.source_code
        assert stored.description == broken_test.description

        history = await orchestrator.get_history(broken_test.id)
        assert history.healing_attempts[-1].description == (
            "[FAILURE] Healing failed: history store down"
        )

    @pytest.mark.asyncio
    async def test_npe_history_adds_prompt_guidance(
        self, orchestrator, repository, generator, broken_test
    ):
        await repository.save(broken_test)
        await orchestrator.tracker.record_execution(
            broken_test.id,
            ExecutionOutcome.FAILED,
            error_message="java.lang.NullPointerException",
        )

        await orchestrator.heal_test(broken_test.id)

        prompt = generator.generate.await_args.args[0]
        assert "DETECTED FAILURE PATTERNS:" in prompt
        assert "SUGGESTED FIXES FOR NullPointerException:" in prompt
        assert "For null pointer exceptions, make sure to:" in prompt

    @pytest.mark.asyncio
    async def test_targeted_patch_skips_generation(
        self,
        repository,
        code_analyzer,
        generator,
        executor,
        config,
        make_test_case,
        foo_snapshot,
    ):
        code_analyzer.find_by_signature = AsyncMock(return_value=foo_snapshot)
        inspector = Mock()
        inspector.inspect = AsyncMock(
            return_value=SourceInspection(missing_imports=["import math"])
        )
        orchestrator = HealingOrchestrator(
            repository, code_analyzer, generator, executor, config=config, inspector=inspector
        )
        test_case = await repository.save(
            make_test_case(generation_prompt=build_method_block(foo_snapshot))
        )

        result = await orchestrator.heal_test(test_case.id)

        assert result.status == TestStatus.PASSED
        generator.generate.assert_not_awaited()
        assert "import math" in result.source_code
        history = await orchestrator.get_history(test_case.id)
        assert history.healing_attempts[0].description == (
            "[SUCCESS] Patched test: added 1 imports"
        )


class TestHealAllBrokenTests:
    """Test HealingOrchestrator.heal_all_broken_tests."""

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(
        self, orchestrator, repository, code_analyzer, make_test_case, foo_two_args_snapshot
    ):
        good = await repository.save(make_test_case())
        bad = await repository.save(make_test_case(name="test_bar", target_method="bar"))
        await repository.save(make_test_case(name="test_ok", status=TestStatus.PASSED))

        async def lookup(signature):
            return foo_two_args_snapshot if signature.endswith(".foo") else None

        code_analyzer.find_by_signature = AsyncMock(side_effect=lookup)

        broken = await orchestrator.heal_all_broken_tests()

        assert [tc.id for tc in broken] == [good.id, bad.id]
        assert all(tc.status == TestStatus.BROKEN for tc in broken)
        assert (await repository.find_by_id(good.id)).status == TestStatus.PASSED
        assert (await repository.find_by_id(bad.id)).status == TestStatus.BROKEN

    @pytest.mark.asyncio
    async def test_no_broken_tests(self, orchestrator, generator):
        assert await orchestrator.heal_all_broken_tests() == []
        generator.generate.assert_not_awaited()


class TestLifecycle:
    """Test change impact delegation and shutdown."""

    @pytest.mark.asyncio
    async def test_analyze_change_impact_delegates(
        self, orchestrator, repository, code_analyzer, make_test_case, foo_snapshot,
        foo_two_args_snapshot,
    ):
        test_case = await repository.save(make_test_case(status=TestStatus.PASSED))
        code_analyzer.analyze = AsyncMock(
            side_effect=[
                {"Calculator.foo": foo_snapshot},
                {"Calculator.foo": foo_two_args_snapshot},
            ]
        )

        broken = await orchestrator.analyze_change_impact("old", "new")

        assert [tc.id for tc in broken] == [test_case.id]

    @pytest.mark.asyncio
    async def test_shutdown_closes_generator(self, orchestrator, generator):
        generator.close = AsyncMock()

        await orchestrator.shutdown()

        generator.close.assert_awaited_once()
