"""Phase-based execution engine."""

from .commands import generate_command, substitute_vars
from .handlers import default_registry, register_default_handlers
from .models import RunnerOptions, StepTask, TaskResult
from .progress import ConsoleProgressReporter, ProgressReporter
from .registry import CommandRegistry, StepContext, StepHandler
from .runner import Runner

__all__ = [
    "CommandRegistry",
    "ConsoleProgressReporter",
    "ProgressReporter",
    "Runner",
    "RunnerOptions",
    "StepContext",
    "StepHandler",
    "StepTask",
    "TaskResult",
    "default_registry",
    "generate_command",
    "register_default_handlers",
    "substitute_vars",
]
