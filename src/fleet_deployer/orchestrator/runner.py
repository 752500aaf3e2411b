"""Phase runner: step N of every recipe runs together, phase by phase."""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import (
    DeployerError,
    ImageNameError,
    PhaseFailedError,
    RecipeNotFoundError,
    TaskExecutionError,
)
from ..local import worker as local_worker
from ..local.worker import TaskInfo
from ..providers.build import generate_image_name
from ..recipes.models import EXECUTION_MODE_ROOT, EXECUTION_MODE_SERVICE_DIR, Recipe, RecipeStep
from ..services.models import ServiceDescriptor
from .commands import generate_command
from .handlers import default_registry
from .models import RunnerOptions, StepTask, TaskResult
from .progress import ProgressReporter
from .registry import CommandRegistry

logger = logging.getLogger(__name__)

DEFAULT_WORKER_LIMIT = 4

CommandWorker = Callable[[TaskInfo], Tuple[bool, Optional[DeployerError]]]


@dataclass(frozen=True)
class SkippedService:
    phase_index: int
    service_name: str
    reason: str


@dataclass(frozen=True)
class DryRunCommand:
    phase_index: int
    service_name: str
    step_name: str
    command: Any


class Runner:
    """Runs recipe steps for many services with bounded parallelism.

    Phases are strictly sequential: every task of phase ``i`` finishes before
    phase ``i + 1`` is scheduled. Within a phase at most
    ``get_worker_count()`` tasks run at once.
    """

    def __init__(
        self,
        services: Iterable[ServiceDescriptor],
        recipes: Iterable[Recipe],
        options: Optional[RunnerOptions] = None,
        registry: Optional[CommandRegistry] = None,
        reporter: Optional[ProgressReporter] = None,
        command_worker: Optional[CommandWorker] = None,
    ) -> None:
        self.services: List[ServiceDescriptor] = list(services)
        self.options = options or RunnerOptions()
        self.registry = registry if registry is not None else default_registry()
        self.reporter = reporter or ProgressReporter()
        self._command_worker = command_worker or local_worker.command_worker

        # Indexed by provider; a later recipe for the same provider wins.
        self.recipes: Dict[str, Recipe] = {}
        for recipe in recipes:
            self.recipes[recipe.provider] = recipe

        self.image_names: Dict[str, str] = {}
        self.skipped: List[SkippedService] = []
        self.dry_run_commands: List[DryRunCommand] = []
        self._results: List[TaskResult] = []
        self._results_lock = threading.Lock()

    @property
    def results(self) -> List[TaskResult]:
        with self._results_lock:
            return list(self._results)

    def run(self) -> List[TaskResult]:
        """Execute every applicable phase.

        Returns the task results in completion order. Raises
        ``PhaseFailedError`` naming every failed service of the first phase
        that had a failure, or ``RecipeNotFoundError`` in strict mode.
        """
        if not self.services:
            self._report("info", "No services to deploy")
            return []

        missing = [s.display_name for s in self.services if s.provider not in self.recipes]
        if missing:
            if self.options.fail_on_missing_recipe:
                raise RecipeNotFoundError(missing)
            logger.debug("No recipe for: %s", ", ".join(missing))

        phase_count = self.find_max_steps()
        if phase_count == 0:
            self._report("info", "No recipe steps found for services")
            return []

        self._report("run_started", len(self.services), phase_count)
        self._compute_image_names()

        started = time.monotonic()
        for index in range(phase_count):
            try:
                self.execute_phase(index, phase_count)
            except PhaseFailedError as exc:
                self._report("run_completed", self.results, time.monotonic() - started, exc)
                raise

        self._report("run_completed", self.results, time.monotonic() - started, None)
        return self.results

    def find_max_steps(self) -> int:
        """Number of phases: the longest recipe in use, clamped to ``max_phases``."""
        longest = 0
        for service in self.services:
            recipe = self.recipes.get(service.provider)
            if recipe is not None:
                longest = max(longest, len(recipe.steps))
        if 0 < self.options.max_phases < longest:
            return self.options.max_phases
        return longest

    def should_skip_step(self, step: RecipeStep) -> bool:
        if self.options.include_tags and not step.has_any_tag(self.options.include_tags):
            return True
        if self.options.exclude_tags and step.has_any_tag(self.options.exclude_tags):
            return True
        return False

    def get_worker_count(self) -> int:
        if self.options.max_workers > 0:
            return self.options.max_workers
        return max(1, min(len(self.services), DEFAULT_WORKER_LIMIT))

    def collect_tasks(self, index: int) -> Tuple[List[StepTask], List[SkippedService]]:
        tasks: List[StepTask] = []
        skipped: List[SkippedService] = []
        for service in self.services:
            recipe = self.recipes.get(service.provider)
            if recipe is None:
                skipped.append(SkippedService(index, service.display_name, "no recipe"))
                continue
            step = recipe.step_at(index)
            if step is None:
                skipped.append(SkippedService(index, service.display_name, "no step"))
                continue
            if self.should_skip_step(step):
                skipped.append(SkippedService(index, service.display_name, "filtered by tags"))
                continue
            tasks.append(StepTask(service=service, recipe=recipe, step=step))
        return tasks, skipped

    def execute_phase(self, index: int, total: int) -> List[TaskResult]:
        tasks, skipped = self.collect_tasks(index)
        self.skipped.extend(skipped)
        if not tasks:
            logger.debug("Phase %d has no tasks", index + 1)
            return []

        label = self._step_label(tasks)
        self._report("phase_started", index, total, label, [t.service.display_name for t in tasks])
        for entry in skipped:
            self._report("service_skipped", entry.service_name, entry.reason)

        if self.options.dry_run:
            for task in tasks:
                command = self.generate_command(task.service, task.step)
                self.dry_run_commands.append(
                    DryRunCommand(index, task.service.display_name, task.step.name, command)
                )
                self._report("dry_run_command", task.service.display_name, task.step.name, command)
            return []

        return self.execute_tasks_parallel(tasks, phase_index=index, step_label=label)

    def execute_tasks_parallel(
        self,
        tasks: List[StepTask],
        phase_index: Optional[int] = None,
        step_label: Optional[str] = None,
    ) -> List[TaskResult]:
        """Run ``tasks`` concurrently and wait for all of them.

        Raises ``PhaseFailedError`` after the barrier if any task failed.
        """
        if not tasks:
            return []

        slots = threading.BoundedSemaphore(self.get_worker_count())
        phase_results: List[TaskResult] = []

        def run_one(task: StepTask) -> TaskResult:
            with slots:
                self._report("task_started", task.service.display_name, task.step.name)
                started = time.monotonic()
                try:
                    result = self.execute_task(task.service, task.step)
                except Exception as exc:
                    logger.exception("Task for %s raised", task.service.display_name)
                    result = TaskResult(
                        service_name=task.service.display_name,
                        step_name=task.step.name,
                        success=False,
                        error=TaskExecutionError(task.service.display_name, exc),
                    )
                result.duration = time.monotonic() - started
            with self._results_lock:
                self._results.append(result)
                phase_results.append(result)
            self._report("task_completed", result)
            return result

        try:
            with ThreadPoolExecutor(max_workers=len(tasks), thread_name_prefix="phase") as pool:
                futures = [pool.submit(run_one, task) for task in tasks]
                for future in as_completed(futures):
                    future.result()
        finally:
            self._report("phase_completed", phase_index if phase_index is not None else -1, phase_results)

        failed = [r.service_name for r in phase_results if not r.success]
        if failed:
            raise PhaseFailedError(failed, phase_index=phase_index, step_name=step_label)
        return phase_results

    def execute_task(self, service: ServiceDescriptor, step: RecipeStep) -> TaskResult:
        result = TaskResult(service_name=service.display_name, step_name=step.name)

        command = self.generate_command(service, step)
        if command is None:
            result.success = True
            return result

        mode = step.execution_mode or EXECUTION_MODE_ROOT
        cwd = service.working_dir if mode == EXECUTION_MODE_SERVICE_DIR else ""

        # A zero or missing step timeout falls back to the runner default;
        # a retries override of 0 is honoured.
        timeout = step.timeout if step.timeout and step.timeout > 0 else self.options.timeout
        retries = step.retries if step.retries is not None else self.options.retries

        env_vars = dict(service.build.env_vars)
        env_vars.update(step.env_vars)

        info = TaskInfo(
            command=command,
            service_name=service.display_name,
            cwd=cwd,
            execution_mode=mode,
            env_vars=env_vars,
            build_flags=dict(step.build_flags),
            timeout=timeout,
            retries=retries,
            debug=self.options.debug or step.debug,
            backoff_base=self.options.backoff_base,
            backoff_max=self.options.backoff_max,
        )
        success, error = self._command_worker(info)
        result.success = success
        result.error = error
        return result

    def generate_command(self, service: ServiceDescriptor, step: RecipeStep) -> Optional[Any]:
        return generate_command(
            service,
            step,
            self.registry,
            tag=self.options.tag,
            image_name=self.image_names.get(service.display_name, ""),
            registry_name=self.options.registry or service.registry_name,
            template_path=self.options.template_path,
        )

    def _compute_image_names(self) -> None:
        for service in self.services:
            try:
                image = generate_image_name(service, self.options.registry, self.options.tag)
            except ImageNameError as exc:
                logger.debug("No image name: %s", exc)
                image = ""
            self.image_names[service.display_name] = image

    @staticmethod
    def _step_label(tasks: List[StepTask]) -> str:
        names: List[str] = []
        for task in tasks:
            if task.step.name not in names:
                names.append(task.step.name)
        return " / ".join(names)

    def _report(self, hook: str, *args: Any) -> None:
        try:
            getattr(self.reporter, hook)(*args)
        except Exception as exc:
            logger.debug("Progress reporter hook %s failed: %s", hook, exc)
