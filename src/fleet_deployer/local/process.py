"""Process helpers: retry backoff and process-tree termination."""

from __future__ import annotations

import logging
import random
import time
from typing import List, Optional

import psutil

from ..errors import ProcessTreeTerminationError

logger = logging.getLogger(__name__)

# Seconds between the graceful and the forceful signal pass.
TERMINATE_GRACE_SECONDS = 2.0


def exponential_backoff_with_jitter(attempt: int, base_delay: float, max_delay: float) -> float:
    """Delay in seconds before retry ``attempt`` (0-based).

    ``min(max_delay, base_delay * 2**attempt)`` scaled by a uniform jitter
    factor in ``[0.5, 1.5)``.
    """
    delay = min(max_delay, base_delay * (2 ** attempt))
    return delay * (0.5 + random.random())


def find_child_processes(pid: int) -> List[psutil.Process]:
    """Descendants of ``pid``; an empty list when there are none or ``pid`` is gone."""
    try:
        return psutil.Process(pid).children(recursive=True)
    except psutil.NoSuchProcess:
        return []


def _send(proc: psutil.Process, force: bool) -> None:
    try:
        if force:
            proc.kill()
        else:
            proc.terminate()
    except psutil.NoSuchProcess:
        # Already exited between discovery and signalling.
        logger.debug("Process %d already exited", proc.pid)
    except (psutil.Error, OSError) as exc:
        raise ProcessTreeTerminationError(proc.pid, exc) from exc


def terminate_process_tree(pid: int, grace_period: Optional[float] = None) -> None:
    """Terminate ``pid`` and its descendants, children before the parent.

    Sends a graceful termination signal to every process, waits the grace
    period, then sends a forceful kill. Raises ProcessTreeTerminationError
    when a live process cannot be signalled.
    """
    grace = TERMINATE_GRACE_SECONDS if grace_period is None else grace_period

    children = find_child_processes(pid)
    try:
        parent: Optional[psutil.Process] = psutil.Process(pid)
    except psutil.NoSuchProcess:
        parent = None

    targets = list(children)
    if parent is not None:
        targets.append(parent)
    if not targets:
        return

    logger.debug("Terminating process %d and %d child process(es)", pid, len(children))

    for proc in targets:
        _send(proc, force=False)

    time.sleep(grace)

    for proc in targets:
        _send(proc, force=True)
