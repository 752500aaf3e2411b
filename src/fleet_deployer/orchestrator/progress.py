"""Progress reporting for runner events.

The runner only talks to ``ProgressReporter``; every call is wrapped so a
failing reporter never affects task execution.
"""

from __future__ import annotations

import os
import sys
import threading
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn

from .models import TaskResult

_CI_VARIABLES = ("CI", "GITHUB_ACTIONS", "GITLAB_CI", "BUILDKITE", "JENKINS_URL")


def running_in_ci() -> bool:
    return any(os.environ.get(name) for name in _CI_VARIABLES)


def format_command(command: Any) -> str:
    if command is None:
        return "(no command)"
    if isinstance(command, (list, tuple)):
        return " ".join(str(part) for part in command)
    return str(command)


class ProgressReporter:
    """No-op reporter; subclasses override the hooks they care about."""

    def run_started(self, service_count: int, phase_count: int) -> None:
        pass

    def phase_started(self, index: int, total: int, step_label: str, services: List[str]) -> None:
        pass

    def service_skipped(self, service_name: str, reason: str) -> None:
        pass

    def dry_run_command(self, service_name: str, step_name: str, command: Any) -> None:
        pass

    def task_started(self, service_name: str, step_name: str) -> None:
        pass

    def task_completed(self, result: TaskResult) -> None:
        pass

    def phase_completed(self, index: int, results: List[TaskResult]) -> None:
        pass

    def run_completed(
        self, results: List[TaskResult], elapsed: float, error: Optional[BaseException] = None
    ) -> None:
        pass

    def info(self, message: str) -> None:
        pass


class ConsoleProgressReporter(ProgressReporter):
    """Renders progress with rich.

    Modes:
        normal  per-phase headers and a spinner per task (plain lines in CI
                or when stdout is not a terminal)
        quiet   a single summary line at the end
        json    a structured summary at the end, nothing else
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        quiet: bool = False,
        json_output: bool = False,
        animate: Optional[bool] = None,
    ) -> None:
        self.console = console or Console()
        self.quiet = quiet
        self.json_output = json_output
        if animate is None:
            animate = sys.stdout.isatty() and not running_in_ci()
        self.animate = animate
        self._lock = threading.Lock()
        self._progress: Optional[Progress] = None
        self._task_ids: Dict[str, TaskID] = {}
        self._name_width = 0

    @property
    def verbose(self) -> bool:
        return not (self.quiet or self.json_output)

    def run_started(self, service_count: int, phase_count: int) -> None:
        if self.verbose:
            self.console.rule(f"[bold]Deploying {service_count} service(s)")

    def phase_started(self, index: int, total: int, step_label: str, services: List[str]) -> None:
        self._name_width = max((len(name) for name in services), default=0) + 2
        if not self.verbose:
            return
        self.console.print(f"\n[bold cyan]Step {index + 1}/{total}:[/] {escape(step_label)}")

    def service_skipped(self, service_name: str, reason: str) -> None:
        if self.verbose:
            self.console.print(f"  [dim]{escape(service_name.ljust(self._name_width))} skipped ({reason})[/]")

    def dry_run_command(self, service_name: str, step_name: str, command: Any) -> None:
        if self.json_output:
            return
        self.console.print(
            f"  [yellow]{escape(service_name.ljust(self._name_width))}[/] {escape(step_name)}: "
            f"{escape(format_command(command))}",
            markup=True,
            highlight=False,
        )

    def task_started(self, service_name: str, step_name: str) -> None:
        if not (self.verbose and self.animate):
            return
        with self._lock:
            if self._progress is None:
                self._progress = Progress(
                    SpinnerColumn(),
                    TextColumn("{task.description}"),
                    TimeElapsedColumn(),
                    console=self.console,
                    transient=True,
                )
                self._progress.start()
            self._task_ids[service_name] = self._progress.add_task(
                escape(f"{service_name.ljust(self._name_width)} {step_name}"), total=None
            )

    def task_completed(self, result: TaskResult) -> None:
        if not self.verbose:
            return
        with self._lock:
            if self._progress is not None and result.service_name in self._task_ids:
                self._progress.remove_task(self._task_ids.pop(result.service_name))
            self.console.print(self._result_line(result), highlight=False)

    def phase_completed(self, index: int, results: List[TaskResult]) -> None:
        with self._lock:
            if self._progress is not None:
                self._progress.stop()
                self._progress = None
            self._task_ids.clear()

    def run_completed(
        self, results: List[TaskResult], elapsed: float, error: Optional[BaseException] = None
    ) -> None:
        succeeded = sum(1 for r in results if r.success)
        failed = len(results) - succeeded
        if self.json_output:
            self.console.print_json(data=self.summary(results, elapsed, error))
            return
        status = "[green]completed[/]" if error is None else "[red]failed[/]"
        line = f"Deployment {status}: {succeeded} succeeded, {failed} failed in {elapsed:.1f}s"
        if self.verbose:
            self.console.print()
            self.console.rule()
        self.console.print(line)
        if error is not None and self.verbose:
            self.console.print(f"[red]{escape(str(error))}[/]", highlight=False)

    def info(self, message: str) -> None:
        if self.verbose:
            self.console.print(message, highlight=False)

    def _result_line(self, result: TaskResult) -> str:
        name = escape(result.service_name.ljust(self._name_width))
        if result.success:
            return f"  [green]✓[/] {name} {escape(result.step_name)} [dim]({result.duration:.1f}s)[/]"
        detail = f": {escape(str(result.error))}" if result.error else ""
        return f"  [red]✗[/] {name} {escape(result.step_name)} [dim]({result.duration:.1f}s)[/]{detail}"

    @staticmethod
    def summary(
        results: List[TaskResult], elapsed: float, error: Optional[BaseException] = None
    ) -> Dict[str, Any]:
        succeeded = sum(1 for r in results if r.success)
        return {
            "success": error is None and succeeded == len(results),
            "total_time": round(elapsed, 3),
            "success_count": succeeded,
            "failed_count": len(results) - succeeded,
            "error": str(error) if error else None,
            "results": [r.to_dict() for r in results],
        }
