"""Command line entry point for the test healing engine."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from rich.console import Console
from rich.table import Table

from ..config.healing_config import HealingConfig
from ..healing.base import HealingError
from ..healing.change_impact import ChangeImpactAnalyzer
from ..healing.history_store import InMemoryHistoryStore, RedisHistoryStore
from ..healing.history_tracker import ExecutionHistoryTracker
from ..healing.inspectors import create_inspector
from ..integrations.openai_generator import OpenAITextGenerator
from ..integrations.python_code_analyzer import PythonCodeAnalyzer
from ..integrations.subprocess_executor import SubprocessTestExecutor
from ..models.healing_models import TestCase, TestExecutionHistory
from ..repository.stores import JsonFileTestCaseRepository
from ..services.healing_service import HealingOrchestrator

logger = logging.getLogger(__name__)

console = Console()

STATUS_STYLES = {
    "passed": "green",
    "healed": "cyan",
    "broken": "red",
    "failed": "yellow",
}


def _history_store(config: HealingConfig):
    if config.redis_url:
        return RedisHistoryStore(redis_url=config.redis_url)
    return InMemoryHistoryStore()


def _render_tests(title: str, tests: List[TestCase]) -> None:
    if not tests:
        console.print(f"[dim]{title}: none[/dim]")
        return

    table = Table(title=title, show_header=True)
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Target")
    table.add_column("Status")
    for tc in tests:
        style = STATUS_STYLES.get(tc.status.value, "white")
        table.add_row(
            tc.id,
            tc.name,
            tc.target_qualified_name,
            f"[{style}]{tc.status.value}[/{style}]",
        )
    console.print(table)


def _render_history(history: TestExecutionHistory) -> None:
    table = Table(title=f"History: {history.test_name or history.test_id}", show_header=False)
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Executions", str(history.total_executions))
    table.add_row("Passed / Failed", f"{history.passed_executions} / {history.failed_executions}")
    table.add_row("Pass rate", f"{history.pass_rate:.0%}")
    table.add_row("Average time", f"{history.average_execution_time:.0f}ms")
    table.add_row("Trend", history.trend.value)
    table.add_row("Priority score", str(history.priority_score))
    table.add_row("Healing success rate", f"{history.healing_success_rate:.0%}")
    for error_type, count in history.error_types.items():
        table.add_row(f"Errors: {error_type}", str(count))
    for path, count in history.code_change_correlations.items():
        table.add_row(f"Failed after change: {path}", str(count))
    console.print(table)

    for attempt in history.healing_attempts:
        console.print(f"  {attempt.timestamp:%Y-%m-%d %H:%M:%S}  {attempt.description}")


class CLIContext:
    """Lazily built collaborators shared by commands."""

    def __init__(self, config: HealingConfig, source_root: Optional[str], package: str):
        self.config = config
        self.source_root = source_root
        self.package = package
        self.repository = JsonFileTestCaseRepository(config.storage_dir)
        self.history_store = _history_store(config)

    def code_analyzer(self) -> PythonCodeAnalyzer:
        analyzer = PythonCodeAnalyzer(package_name=self.package)
        if self.source_root:
            analyzer.index_directory(self.source_root)
        return analyzer

    def orchestrator(self) -> HealingOrchestrator:
        tracker = ExecutionHistoryTracker(self.history_store, self.repository)
        return HealingOrchestrator(
            repository=self.repository,
            code_analyzer=self.code_analyzer(),
            generator=OpenAITextGenerator(
                api_key=self.config.openai_api_key,
                model=self.config.openai_model,
                temperature=self.config.generation_temperature,
            ),
            executor=SubprocessTestExecutor(
                self.repository,
                command=self.config.pytest_command,
                working_dir=self.source_root,
            ),
            config=self.config,
            tracker=tracker,
            inspector=create_inspector(self.config.source_inspector),
        )


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except HealingError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option(
    "--storage-dir",
    type=click.Path(file_okay=False),
    help="Directory of stored test cases",
)
@click.option(
    "--source-root",
    type=click.Path(exists=True, file_okay=False),
    help="Production source root used to resolve target methods",
)
@click.option("--package", default="", help="Module path of analyzed sources")
@click.option(
    "--inspector",
    type=click.Choice(["noop", "python"]),
    help="Source inspector for targeted repairs",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def main(
    ctx: click.Context,
    storage_dir: Optional[str],
    source_root: Optional[str],
    package: str,
    inspector: Optional[str],
    verbose: bool,
) -> None:
    """
    testmender - diagnose and heal broken generated tests.

    Mark tests affected by a change:
        testmender impact old.py new.py

    Heal one test, or every broken test:
        testmender --source-root src heal <test-id>
        testmender --source-root src heal-all
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

    overrides = {}
    if storage_dir:
        overrides["storage_dir"] = storage_dir
    if inspector:
        overrides["source_inspector"] = inspector

    ctx.obj = CLIContext(HealingConfig(**overrides), source_root, package)


@main.command()
@click.argument("old_source", type=click.Path(exists=True, dir_okay=False))
@click.argument("new_source", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def impact(obj: CLIContext, old_source: str, new_source: str) -> None:
    """Mark tests targeting changed methods as BROKEN."""

    async def run():
        analyzer = ChangeImpactAnalyzer(obj.repository, obj.code_analyzer())
        broken = await analyzer.analyze_change_impact(
            Path(old_source).read_text(encoding="utf-8"),
            Path(new_source).read_text(encoding="utf-8"),
        )
        _render_tests("Impacted tests", broken)

    _run(run())


@main.command()
@click.argument("test_id")
@click.pass_obj
def heal(obj: CLIContext, test_id: str) -> None:
    """Heal a single test."""

    async def run():
        orchestrator = obj.orchestrator()
        try:
            result = await orchestrator.heal_test(test_id)
            _render_tests("Heal result", [result])
        finally:
            await orchestrator.shutdown()

    _run(run())


@main.command("heal-all")
@click.pass_obj
def heal_all(obj: CLIContext) -> None:
    """Heal every BROKEN test."""

    async def run():
        orchestrator = obj.orchestrator()
        try:
            broken = await orchestrator.heal_all_broken_tests()
            healed = [await obj.repository.find_by_id(tc.id) for tc in broken]
            _render_tests("Heal results", [tc for tc in healed if tc is not None])
        finally:
            await orchestrator.shutdown()

    _run(run())


@main.command()
@click.argument("test_id")
@click.pass_obj
def history(obj: CLIContext, test_id: str) -> None:
    """Show execution and healing history of a test."""

    async def run():
        record = await obj.history_store.get(test_id)
        if record is None:
            console.print(f"[yellow]No history for {test_id}[/yellow]")
        else:
            _render_history(record)
        close = getattr(obj.history_store, "close", None)
        if close:
            await close()

    _run(run())


if __name__ == "__main__":
    main()
