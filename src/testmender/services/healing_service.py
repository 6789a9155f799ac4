"""High-level test healing service orchestrator.

This service provides a facade over the test healing engine:
- Change impact analysis marking affected tests BROKEN
- Failure diagnosis against the current target method
- Regeneration or targeted patching of broken tests
- Verification by execution and history tracking

PATTERN: Service facade pattern for orchestrating the healing workflow
CRITICAL: Heal pipelines never raise; failures leave the test BROKEN
"""

import asyncio
import logging
from typing import List, Optional, Tuple

from ..config.healing_config import HealingConfig
from ..healing.base import (
    AnalysisError,
    CodeAnalyzer,
    ExecutionError,
    GenerationError,
    NotFoundError,
    SourceInspector,
    TestExecutor,
    TextGenerator,
)
from ..healing.change_impact import ChangeImpactAnalyzer
from ..healing.diagnosis import FailureDiagnosisEngine
from ..healing.history_store import InMemoryHistoryStore
from ..healing.history_tracker import ExecutionHistoryTracker
from ..healing.keyed_lock import KeyedLock
from ..healing.patcher import (
    add_imports,
    extract_assertions,
    extract_code,
    fix_assertions,
    fix_renamed_elements,
    parse_renames,
    split_items,
)
from ..healing.pattern_recognizer import FailurePatternRecognizer
from ..healing.prompts import build_healing_prompt
from ..models.healing_models import (
    AnalysisResult,
    ExecutionOutcome,
    HEALABLE_STATUSES,
    IssueKind,
    MethodSnapshot,
    TestCase,
    TestExecutionHistory,
    TestExecutionResult,
    TestStatus,
)
from ..repository.base import TestCaseRepository

logger = logging.getLogger(__name__)

HEALED_SUFFIX = " (Healed)"


class HealingOrchestrator:
    """
    High-level test healing service.

    PATTERN: Service facade for test healing operations
    CRITICAL: Orchestrates diagnose → repair → persist → execute → record
    GOTCHA: One pipeline per test ID at a time; the ID lock is taken before
            a worker slot so waiting duplicates never occupy the pool

    The orchestrator owns the worker pool (a semaphore of max_workers) and
    the per-test locks. Collaborators are injected; history storage and
    diagnosis default to in-process implementations.
    """

    def __init__(
        self,
        repository: TestCaseRepository,
        code_analyzer: CodeAnalyzer,
        generator: TextGenerator,
        executor: TestExecutor,
        config: Optional[HealingConfig] = None,
        tracker: Optional[ExecutionHistoryTracker] = None,
        recognizer: Optional[FailurePatternRecognizer] = None,
        inspector: Optional[SourceInspector] = None,
        diagnosis: Optional[FailureDiagnosisEngine] = None,
    ):
        """
        Initialize healing orchestrator.

        Args:
            repository: Test case repository
            code_analyzer: Resolves current target method snapshots
            generator: Produces regenerated test source
            executor: Runs candidate tests
            config: Engine configuration
            tracker: Execution history tracker
            recognizer: Failure pattern recognizer used by diagnosis
            inspector: Source inspector used by diagnosis
            diagnosis: Preconfigured diagnosis engine
        """
        self.logger = logger
        self.config = config or HealingConfig()
        self.repository = repository
        self.code_analyzer = code_analyzer
        self.generator = generator
        self.executor = executor

        self.tracker = tracker or ExecutionHistoryTracker(InMemoryHistoryStore(), repository)
        self.diagnosis = diagnosis or FailureDiagnosisEngine(
            self.tracker, recognizer=recognizer, inspector=inspector
        )
        self.change_impact = ChangeImpactAnalyzer(repository, code_analyzer)

        self._workers = asyncio.Semaphore(self.config.max_workers)
        self._locks = KeyedLock()

        self.logger.info(
            f"HealingOrchestrator initialized with {self.config.max_workers} workers"
        )

    async def analyze_change_impact(self, old_source: str, new_source: str) -> List[TestCase]:
        """
        Mark tests affected by a source change as BROKEN.

        Args:
            old_source: Source before the change
            new_source: Source after the change

        Returns:
            Tests marked BROKEN
        """
        return await self.change_impact.analyze_change_impact(old_source, new_source)

    async def heal_test(self, test_id: str) -> TestCase:
        """
        Heal a single test.

        Args:
            test_id: ID of the test to heal

        Returns:
            The executed test (PASSED or BROKEN), or the test unchanged if it
            did not need healing

        Raises:
            NotFoundError: If the test does not exist
        """
        async with self._locks.hold(test_id):
            # Read under the lock so a waiting caller sees the settled status
            test_case = await self.repository.find_by_id(test_id)
            if test_case is None:
                raise NotFoundError(f"Test case not found: {test_id}")

            if test_case.status not in HEALABLE_STATUSES:
                self.logger.debug(
                    f"Test {test_case.name} is {test_case.status.value}, nothing to heal"
                )
                return test_case

            async with self._workers:
                return await self._run_pipeline(test_case)

    async def heal_all_broken_tests(self) -> List[TestCase]:
        """
        Heal every BROKEN test concurrently.

        Returns:
            The BROKEN tests as they were before healing, in lookup order
        """
        broken = await self.repository.find_by_status(TestStatus.BROKEN)
        self.logger.info(f"Healing {len(broken)} broken tests")

        results = await asyncio.gather(
            *(self.heal_test(test_case.id) for test_case in broken),
            return_exceptions=True,
        )

        healed = 0
        for test_case, result in zip(broken, results):
            if isinstance(result, Exception):
                self.logger.error(f"Healing task for {test_case.name} failed: {result}")
            elif result.status == TestStatus.PASSED:
                healed += 1

        self.logger.info(f"Healed {healed}/{len(broken)} broken tests")
        return broken

    async def get_history(self, test_id: str) -> Optional[TestExecutionHistory]:
        return await self.tracker.get_history(test_id)

    async def shutdown(self) -> None:
        """Close collaborators that hold network resources."""
        for resource in (self.generator, self.tracker.store):
            close = getattr(resource, "close", None)
            if close is None:
                continue
            try:
                await close()
            except Exception as e:
                self.logger.warning(f"Error closing {type(resource).__name__}: {e}")

    async def _run_pipeline(self, test_case: TestCase) -> TestCase:
        test_id = test_case.id

        try:
            snapshot = await self.code_analyzer.find_by_signature(
                test_case.target_qualified_name
            )
            if snapshot is None:
                raise AnalysisError(
                    f"Current implementation not found: {test_case.target_qualified_name}"
                )

            analysis = await self.diagnosis.analyze(test_case, snapshot)
            candidate, step = await self._produce_candidate(test_case, snapshot, analysis)

            candidate.status = TestStatus.HEALED
            candidate = await self.repository.save(candidate)
            await self.tracker.record_healing_attempt(test_id, step, True)
            self.logger.info(f"Healed {candidate.name}: {step}")

            executed = await self._verify(candidate)
            passed = executed.status == TestStatus.PASSED
            await self.tracker.record_healing_attempt(
                test_id,
                f"Verification {'passed' if passed else 'failed'} after healing",
                passed,
            )
            return executed

        except Exception as e:
            self.logger.error(f"Healing failed for {test_case.name}: {e}", exc_info=True)
            return await self._mark_broken(test_case, e)

    async def _produce_candidate(
        self, test_case: TestCase, snapshot: MethodSnapshot, analysis: AnalysisResult
    ) -> Tuple[TestCase, str]:
        candidate = test_case.model_copy(deep=True)
        candidate.target_package = snapshot.package_name or candidate.target_package
        candidate.target_class = snapshot.class_name
        candidate.target_method = snapshot.method_name
        if not (candidate.description or "").endswith(HEALED_SUFFIX):
            candidate.description = f"{candidate.description or candidate.name}{HEALED_SUFFIX}"

        if analysis.requires_regeneration:
            prompt = build_healing_prompt(test_case, snapshot, analysis)
            source = await self._generate(prompt)
            candidate.source_code = source
            candidate.generation_prompt = prompt
            candidate.assertions = extract_assertions(source)

            if analysis.has(IssueKind.METHOD_SIGNATURE_CHANGED):
                step = (
                    f"Regenerated test for changed signature "
                    f"{analysis.get(IssueKind.OLD_SIGNATURE)} -> "
                    f"{analysis.get(IssueKind.NEW_SIGNATURE)}"
                )
            else:
                step = f"Regenerated test against {snapshot.signature}"
            return candidate, step

        source = test_case.source_code
        renames = parse_renames(analysis.get(IssueKind.RENAMED_ELEMENTS))
        steps = []

        if analysis.has(IssueKind.MISSING_IMPORTS):
            imports = split_items(analysis.get(IssueKind.MISSING_IMPORTS))
            source = add_imports(source, imports)
            steps.append(f"added {len(imports)} imports")

        if analysis.has(IssueKind.INVALID_ASSERTIONS):
            assertions = split_items(analysis.get(IssueKind.INVALID_ASSERTIONS))
            source = fix_assertions(source, assertions, renames)
            steps.append(f"rewrote {len(assertions)} assertions")

        if renames:
            source = fix_renamed_elements(source, renames)
            steps.append(
                "renamed " + ", ".join(f"{old} to {new}" for old, new in renames.items())
            )

        candidate.source_code = source
        candidate.assertions = extract_assertions(source)
        return candidate, "Patched test: " + "; ".join(steps)

    async def _generate(self, prompt: str) -> str:
        try:
            response = await self.generator.generate(prompt, self.config.generation_max_tokens)
        except GenerationError:
            raise
        except Exception as e:
            raise GenerationError(f"Generator failed: {e}") from e

        source = extract_code(response or "")
        if not source:
            raise GenerationError("Generator returned empty source")
        return source

    async def _verify(self, candidate: TestCase) -> TestCase:
        """Execute a candidate, record the run and persist the final status."""
        error: Optional[ExecutionError] = None
        timeout = self.config.execution_timeout_seconds

        try:
            executed = await asyncio.wait_for(
                self.executor.execute(candidate.id), timeout=timeout
            )
        except asyncio.TimeoutError:
            error = ExecutionError(f"Execution timed out after {timeout}s")
        except ExecutionError as e:
            error = e
        except Exception as e:
            error = ExecutionError(f"Executor failed: {e}")

        if error is not None:
            self.logger.warning(f"Execution of {candidate.name} failed: {error}")
            executed = await self.repository.find_by_id(candidate.id) or candidate
            executed.status = TestStatus.FAILED
            executed.last_execution_result = TestExecutionResult(
                success=False, error_message=str(error)
            )

        passed = executed.status == TestStatus.PASSED
        result = executed.last_execution_result
        await self.tracker.record_execution(
            candidate.id,
            ExecutionOutcome.PASSED if passed else ExecutionOutcome.FAILED,
            error_message=result.error_message if result else None,
            stack_trace=result.stack_trace if result else None,
            duration_ms=result.execution_time_ms if result else 0,
        )

        executed.status = TestStatus.PASSED if passed else TestStatus.BROKEN
        return await self.repository.save(executed)

    async def _mark_broken(self, test_case: TestCase, error: Exception) -> TestCase:
        """Restore the pre-heal test as BROKEN, discarding any saved candidate."""
        message = str(error) or type(error).__name__
        try:
            test_case.status = TestStatus.BROKEN
            restored = await self.repository.save(test_case)
            await self.tracker.record_healing_attempt(
                test_case.id, f"Healing failed: {message}", False
            )
            return restored
        except Exception as e:
            self.logger.error(
                f"Could not record healing failure for {test_case.name}: {e}", exc_info=True
            )
            test_case.status = TestStatus.BROKEN
            return test_case
