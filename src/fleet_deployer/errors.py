"""Exception types shared across the deployer."""

from __future__ import annotations

from typing import List, Optional


class DeployerError(RuntimeError):
    """Base class for errors that stop a command."""


class ConfigError(DeployerError):
    """Raised when configuration cannot be loaded or parsed."""


class RecipeError(DeployerError):
    """Raised when a recipe file cannot be read or parsed."""


class ServiceDiscoveryError(DeployerError):
    """Raised when a service descriptor cannot be read or parsed."""


class RecipeNotFoundError(DeployerError):
    """Raised in strict mode when services have no recipe for their provider."""

    def __init__(self, services: List[str]) -> None:
        self.services = list(services)
        super().__init__(
            f"no recipe found for that provider: {', '.join(self.services)}"
        )


class PhaseFailedError(DeployerError):
    """Raised when at least one task of a phase reported failure."""

    def __init__(
        self,
        failed_services: List[str],
        phase_index: Optional[int] = None,
        step_name: Optional[str] = None,
    ) -> None:
        self.failed_services = list(failed_services)
        self.phase_index = phase_index
        self.step_name = step_name
        super().__init__(f"step failed for: {', '.join(self.failed_services)}")


# Worker-level errors are returned as values by the command worker, never raised
# across the task boundary.


class CommandStartError(DeployerError):
    """The process could not be launched."""

    def __init__(self, service_name: str, cause: BaseException) -> None:
        self.service_name = service_name
        self.cause = cause
        super().__init__(f"error starting command for {service_name}: {cause}")


class CommandTimeoutError(DeployerError):
    """The process outlived its timeout window."""

    def __init__(self, service_name: str, timeout: float) -> None:
        self.service_name = service_name
        self.timeout = timeout
        super().__init__("command timed out")


class ProcessTreeTerminationError(DeployerError):
    """A process in a timed-out tree could not be signalled."""

    def __init__(self, pid: int, cause: BaseException) -> None:
        self.pid = pid
        self.cause = cause
        super().__init__(f"error terminating process {pid}: {cause}")


class TaskExecutionError(DeployerError):
    """A step handler or worker raised instead of returning a result."""

    def __init__(self, service_name: str, cause: BaseException) -> None:
        self.service_name = service_name
        self.cause = cause
        super().__init__(f"task for {service_name} raised: {cause}")


class ImageNameError(DeployerError):
    """A service lacks what its provider needs to name a container image."""

    def __init__(self, service_name: str, reason: str) -> None:
        self.service_name = service_name
        self.reason = reason
        super().__init__(f"service '{service_name}': {reason}")
