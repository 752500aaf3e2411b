"""Recipe data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Union

if TYPE_CHECKING:
    from ..services.models import ServiceDescriptor

EXECUTION_MODE_ROOT = "root"
EXECUTION_MODE_SERVICE_DIR = "service_dir"

# A step command is a shell string, an argv list, or None for "use dispatch".
Command = Union[str, List[Any]]


def _optional_int(value: Any) -> Optional[int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


@dataclass(frozen=True)
class RecipeStep:
    """One step of a recipe, addressed by its position in the recipe."""

    name: str
    command: Optional[Command] = None
    execution_mode: str = EXECUTION_MODE_ROOT
    timeout: Optional[int] = None       # None = runner default
    retries: Optional[int] = None       # None = runner default
    env_vars: Dict[str, str] = field(default_factory=dict)
    build_flags: Dict[str, Any] = field(default_factory=dict)
    tags: List[str] = field(default_factory=list)
    debug: bool = False

    def has_any_tag(self, tags: List[str]) -> bool:
        """Case-insensitive exact match against this step's own tags."""
        wanted = {t.lower() for t in tags}
        return any(tag.lower() in wanted for tag in self.tags)

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "RecipeStep":
        command = payload.get("command")
        if command is not None and not isinstance(command, (str, list)):
            command = str(command)
        env_vars = payload.get("env_vars") or {}
        tags = payload.get("tags") or []
        return cls(
            name=str(payload.get("name", "")),
            command=command,
            # An empty mode means the default; unknown modes are kept so the
            # worker can reject them.
            execution_mode=str(payload.get("execution_mode") or EXECUTION_MODE_ROOT),
            timeout=_optional_int(payload.get("timeout")),
            retries=_optional_int(payload.get("retries")),
            env_vars={str(k): str(v) for k, v in env_vars.items()},
            build_flags=dict(payload.get("build_flags") or {}),
            tags=[str(t) for t in tags],
            debug=bool(payload.get("debug", False)),
        )


@dataclass(frozen=True)
class Recipe:
    """Provider-scoped ordered list of steps."""

    name: str
    provider: str
    steps: List[RecipeStep] = field(default_factory=list)
    description: str = ""
    service: str = ""
    required_fields: List[str] = field(default_factory=list)

    def step_at(self, index: int) -> Optional[RecipeStep]:
        if 0 <= index < len(self.steps):
            return self.steps[index]
        return None

    def validate_service(self, service: "ServiceDescriptor") -> List[str]:
        """Return the required fields that ``service`` does not define."""
        missing = []
        for name in self.required_fields:
            value = service.get(name)
            if value is None or value == "" or value == [] or value == {}:
                missing.append(name)
        return missing

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Recipe":
        steps = [RecipeStep.from_dict(s) for s in payload.get("steps") or [] if isinstance(s, dict)]
        required: List[str] = []
        for item in payload.get("required_fields") or []:
            # Either "field" or {"name": "field", ...}
            if isinstance(item, dict):
                if item.get("name"):
                    required.append(str(item["name"]))
            elif item:
                required.append(str(item))
        return cls(
            name=str(payload.get("name", "")),
            provider=str(payload.get("provider", "")),
            steps=steps,
            description=str(payload.get("description", "") or ""),
            service=str(payload.get("service", "") or ""),
            required_fields=required,
        )
