"""Run stored tests with pytest in a subprocess.

PATTERN: asyncio subprocess with captured output
CRITICAL: Each run happens in a fresh temporary directory
"""

import asyncio
import logging
import re
import shlex
import tempfile
import time
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple

from ..healing.base import ExecutionError, NotFoundError, TestExecutor
from ..models.healing_models import TestCase, TestExecutionResult, TestStatus

logger = logging.getLogger(__name__)

ERROR_LINE = re.compile(r"^E\s+(.+)$", re.M)
SUMMARY_LINE = re.compile(r"^FAILED\s+\S+\s+-\s+(.+)$", re.M)


def parse_failure(output: str) -> Tuple[Optional[str], Optional[str]]:
    """
    Extract the failure message from pytest output.

    Args:
        output: Combined stdout and stderr

    Returns:
        (error message, stack trace)
    """
    summary = SUMMARY_LINE.search(output)
    if summary:
        message = summary.group(1).strip()
    else:
        errors = ERROR_LINE.findall(output)
        message = errors[0].strip() if errors else None
    return message or "Test failed", output or None


def _module_name(name: str) -> str:
    safe = re.sub(r"\W+", "_", name).strip("_").lower() or "case"
    return f"test_{safe}" if not safe.startswith("test_") else safe


class SubprocessTestExecutor(TestExecutor):
    """
    Execute Python tests with a pytest subprocess.

    PATTERN: Write source to a temp module, run, persist the outcome
    GOTCHA: The healing orchestrator bounds the wait; this class does not
    """

    def __init__(
        self,
        repository,
        command: str = "python -m pytest",
        working_dir: Optional[str] = None,
    ):
        """
        Initialize executor.

        Args:
            repository: Test case repository
            command: Command line used to invoke pytest
            working_dir: Directory the subprocess runs in, so project imports resolve
        """
        self.repository = repository
        self.command = shlex.split(command)
        self.working_dir = working_dir

    async def execute(self, test_id: str) -> TestCase:
        """
        Run a stored test and persist the outcome.

        Args:
            test_id: Test to run

        Returns:
            Test case with status PASSED or FAILED

        Raises:
            NotFoundError: If the test does not exist
            ExecutionError: If pytest cannot be started
        """
        test_case = await self.repository.find_by_id(test_id)
        if test_case is None:
            raise NotFoundError(f"Test case not found: {test_id}")

        test_case.status = TestStatus.EXECUTING
        test_case = await self.repository.save(test_case)

        with tempfile.TemporaryDirectory(prefix="testmender-") as tmp:
            path = Path(tmp) / f"{_module_name(test_case.name)}.py"
            path.write_text(test_case.source_code, encoding="utf-8")

            started = time.monotonic()
            try:
                process = await asyncio.create_subprocess_exec(
                    *self.command,
                    str(path),
                    "-q",
                    "-p",
                    "no:cacheprovider",
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.STDOUT,
                    cwd=self.working_dir,
                )
                stdout, _ = await process.communicate()
            except FileNotFoundError as e:
                raise ExecutionError(f"Cannot start test runner: {e}") from e
            duration_ms = int((time.monotonic() - started) * 1000)

        output = stdout.decode(errors="replace")
        passed = process.returncode == 0

        if passed:
            result = TestExecutionResult(success=True, execution_time_ms=duration_ms)
        else:
            message, trace = parse_failure(output)
            result = TestExecutionResult(
                success=False,
                execution_time_ms=duration_ms,
                error_message=message,
                stack_trace=trace,
            )

        test_case.status = TestStatus.PASSED if passed else TestStatus.FAILED
        test_case.last_executed_at = datetime.now()
        test_case.last_execution_result = result
        logger.info(f"Executed {test_case.name}: {test_case.status.value} in {duration_ms}ms")
        return await self.repository.save(test_case)
