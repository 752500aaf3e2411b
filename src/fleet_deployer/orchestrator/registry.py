"""Step-name to command-handler dispatch."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..services.models import ServiceDescriptor


@dataclass(frozen=True)
class StepContext:
    """Everything a handler may use to build a command for one service step."""

    service: ServiceDescriptor
    image_name: str = ""
    tag: str = ""
    registry: str = ""
    template_path: str = ""


# Returns a command (str or list) or None when there is nothing to run.
StepHandler = Callable[[StepContext], Any]


class CommandRegistry:
    """Maps (step pattern, provider) to a handler.

    Lookup is exact: the step name scoped to the provider first, then the
    step name registered without a provider. Anything else is not found.
    """

    def __init__(self) -> None:
        self._handlers: Dict[Tuple[str, str], StepHandler] = {}

    def register(self, pattern: str, provider: str, handler: StepHandler) -> None:
        """Register ``handler``; re-registering the same key replaces it."""
        self._handlers[(pattern.strip().lower(), provider.strip().lower())] = handler

    def __len__(self) -> int:
        return len(self._handlers)

    def patterns(self) -> List[Tuple[str, str]]:
        return sorted(self._handlers)

    def get_handler(self, step_name: str, provider: str = "") -> Optional[StepHandler]:
        step = step_name.strip().lower()
        provider = provider.strip().lower()

        if provider and (step, provider) in self._handlers:
            return self._handlers[(step, provider)]
        if (step, "") in self._handlers:
            return self._handlers[(step, "")]

        return None
