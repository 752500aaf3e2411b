"""Local process execution."""

from .process import exponential_backoff_with_jitter, find_child_processes, terminate_process_tree
from .worker import TaskInfo, command_worker

__all__ = [
    "TaskInfo",
    "command_worker",
    "exponential_backoff_with_jitter",
    "find_child_processes",
    "terminate_process_tree",
]
