"""Local command worker with timeout and retry handling."""

from __future__ import annotations

import logging
import os
import subprocess
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import (
    CommandStartError,
    CommandTimeoutError,
    DeployerError,
    ProcessTreeTerminationError,
)
from ..recipes.models import EXECUTION_MODE_ROOT, EXECUTION_MODE_SERVICE_DIR
from . import process as process_helpers

logger = logging.getLogger(__name__)

# Bytes of stderr kept for the failure log.
MAX_STDERR_BYTES = 1024

# How long to wait for a killed process to be reaped.
REAP_TIMEOUT_SECONDS = 5.0

WorkerOutcome = Tuple[bool, Optional[DeployerError]]


@dataclass
class TaskInfo:
    """Everything the worker needs to run one command."""

    command: Any                        # str, List[str] or loosely-typed list
    service_name: str
    cwd: str = ""                       # used in service_dir mode
    execution_mode: str = EXECUTION_MODE_ROOT
    env_vars: Dict[str, str] = field(default_factory=dict)
    build_flags: Dict[str, Any] = field(default_factory=dict)
    timeout: float = 300
    retries: int = 3
    debug: bool = False
    backoff_base: float = 1.0
    backoff_max: float = 60.0


def _prepare_command(command: Any) -> Optional[Tuple[Union[str, List[str]], bool]]:
    """Return ``(args, use_shell)`` or None for an unsupported shape."""
    if isinstance(command, str):
        return command, True
    if isinstance(command, (list, tuple)):
        if not command:
            return None
        return [item if isinstance(item, str) else str(item) for item in command], False
    return None


def _config_failure(task: TaskInfo, message: str, *args: Any) -> WorkerOutcome:
    # Configuration errors fail the task without an error value; they are only
    # visible in the log.
    if task.debug:
        logger.warning("[%s] " + message + " (task failed without error)", task.service_name, *args)
    else:
        logger.debug("[%s] " + message, task.service_name, *args)
    return False, None


def _resolve_working_dir(task: TaskInfo) -> Optional[str]:
    if task.execution_mode == EXECUTION_MODE_ROOT:
        return os.getcwd()
    if task.execution_mode == EXECUTION_MODE_SERVICE_DIR:
        return task.cwd or None
    raise ValueError(task.execution_mode)


def _build_env(task: TaskInfo) -> Dict[str, str]:
    env = os.environ.copy()
    env.update(task.env_vars)
    return env


def _reap(proc: subprocess.Popen) -> None:
    for stream in (proc.stdout, proc.stderr):
        if stream is not None:
            stream.close()
    try:
        proc.wait(timeout=REAP_TIMEOUT_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("Process %d did not exit after termination", proc.pid)


def _backoff(task: TaskInfo, attempt: int) -> float:
    return process_helpers.exponential_backoff_with_jitter(
        attempt, task.backoff_base, task.backoff_max
    )


def command_worker(task: TaskInfo) -> WorkerOutcome:
    """Run ``task.command`` with up to ``task.retries`` retries.

    Returns:
        ``(True, None)`` on a zero exit.
        ``(False, CommandStartError)`` when the process never started.
        ``(False, CommandTimeoutError)`` on timeout; timeouts are not retried.
        ``(False, None)`` after exhausting retries on non-zero exits, or for
        an invalid execution mode or command shape.
    """
    if task.debug:
        logger.debug("Executing command for %s", task.service_name)
        logger.debug("Command: %r", task.command)
        logger.debug("Working directory: %s", task.cwd)
        logger.debug("Execution mode: %s", task.execution_mode)
        logger.debug("Timeout: %s", task.timeout)
        logger.debug("Environment variables: %s", sorted(task.env_vars))

    retries = max(task.retries, 0)
    for attempt in range(retries + 1):
        try:
            working_dir = _resolve_working_dir(task)
        except ValueError:
            return _config_failure(task, "Invalid execution mode: %s", task.execution_mode)
        except OSError as exc:
            return _config_failure(task, "Error getting current working directory: %s", exc)

        prepared = _prepare_command(task.command)
        if prepared is None:
            return _config_failure(task, "Invalid command: %r", task.command)
        args, use_shell = prepared

        try:
            proc = subprocess.Popen(
                args,
                shell=use_shell,
                cwd=working_dir,
                env=_build_env(task),
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError) as exc:
            if attempt < retries:
                delay = _backoff(task, attempt)
                logger.warning(
                    "Could not start command for %s (%s), retrying in %.2f seconds...",
                    task.service_name, exc, delay,
                )
                time.sleep(delay)
                continue
            return False, CommandStartError(task.service_name, exc)

        # A non-positive timeout expires at once.
        timeout = max(task.timeout, 0) if task.timeout is not None else None
        try:
            stdout, stderr = proc.communicate(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Command for %s timed out after %s seconds", task.service_name, task.timeout)
            try:
                process_helpers.terminate_process_tree(proc.pid)
            except ProcessTreeTerminationError as exc:
                _reap(proc)
                return False, exc
            _reap(proc)
            return False, CommandTimeoutError(task.service_name, task.timeout)

        if proc.returncode == 0:
            if task.debug and stdout:
                logger.debug("[%s] %s", task.service_name, stdout.decode("utf-8", errors="replace").strip())
            return True, None

        error_output = stderr[:MAX_STDERR_BYTES].decode("utf-8", errors="replace")
        logger.warning("--------------------")
        logger.warning("Command failed for %s (exit %s)", task.service_name, proc.returncode)
        logger.warning("Error output: %s", error_output.strip())

        if attempt < retries:
            delay = _backoff(task, attempt)
            logger.warning("Retrying for %s in %.2f seconds...", task.service_name, delay)
            logger.warning("--------------------")
            time.sleep(delay)

    return False, None
