"""Data models for the orchestrator module."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ..errors import DeployerError
from ..recipes.models import Recipe, RecipeStep
from ..services.models import ServiceDescriptor


@dataclass(frozen=True)
class RunnerOptions:
    """Options fixed for the lifetime of one run."""

    tag: str = "latest"
    registry: str = ""                  # overrides service registry_name
    template_path: str = "./_templates"
    debug: bool = False
    timeout: int = 60                   # seconds per attempt unless the step overrides
    retries: int = 3
    dry_run: bool = False
    max_workers: int = 0                # 0 = min(service count, 4)
    max_phases: int = 0                 # 0 = all
    include_tags: List[str] = field(default_factory=list)
    exclude_tags: List[str] = field(default_factory=list)
    backoff_base: float = 1.0
    backoff_max: float = 60.0
    fail_on_missing_recipe: bool = False


@dataclass
class TaskResult:
    """Outcome of one (service, step) task."""

    service_name: str
    step_name: str
    success: bool = False
    duration: float = 0.0               # seconds
    error: Optional[DeployerError] = None

    def to_dict(self) -> dict:
        return {
            "service": self.service_name,
            "step": self.step_name,
            "success": self.success,
            "duration": round(self.duration, 3),
            "error": str(self.error) if self.error else None,
        }


@dataclass(frozen=True)
class StepTask:
    """A service paired with the step it runs in the current phase."""

    service: ServiceDescriptor
    recipe: Recipe
    step: RecipeStep
