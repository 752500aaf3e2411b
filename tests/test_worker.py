import os
import tempfile
import time
import unittest
from pathlib import Path
from unittest import mock

from fleet_deployer.errors import CommandStartError, CommandTimeoutError
from fleet_deployer.local import process, worker
from fleet_deployer.local.worker import TaskInfo, command_worker


def make_task(command, **overrides) -> TaskInfo:
    fields = dict(
        command=command,
        service_name="svc",
        timeout=10,
        retries=0,
        backoff_base=0.0,
        backoff_max=0.0,
    )
    fields.update(overrides)
    return TaskInfo(**fields)


class CommandWorkerTests(unittest.TestCase):
    def test_zero_exit_succeeds(self) -> None:
        self.assertEqual(command_worker(make_task("true")), (True, None))

    def test_argv_list_runs_without_shell(self) -> None:
        self.assertEqual(command_worker(make_task(["/bin/sh", "-c", "exit 0"])), (True, None))

    def test_loosely_typed_list_is_stringified(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            target = Path(tmp) / "out.txt"
            ok, err = command_worker(make_task(["/bin/sh", "-c", f'echo "$0" > {target}', 42]))
            self.assertTrue(ok)
            self.assertIsNone(err)
            self.assertEqual(target.read_text().strip(), "42")

    def test_non_zero_exit_retries_then_fails_without_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            counter = Path(tmp) / "attempts"
            task = make_task(f"echo x >> {counter}; exit 1", retries=2)
            ok, err = command_worker(task)
            self.assertFalse(ok)
            self.assertIsNone(err)
            self.assertEqual(len(counter.read_text().splitlines()), 3)

    def test_zero_retries_means_single_attempt(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            counter = Path(tmp) / "attempts"
            ok, err = command_worker(make_task(f"echo x >> {counter}; exit 3", retries=0))
            self.assertEqual((ok, err), (False, None))
            self.assertEqual(len(counter.read_text().splitlines()), 1)

    def test_success_stops_retrying(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            counter = Path(tmp) / "attempts"
            # Fails on the first attempt only.
            script = f'echo x >> {counter}; [ "$(wc -l < {counter})" -ge 2 ]'
            ok, err = command_worker(make_task(script, retries=5))
            self.assertEqual((ok, err), (True, None))
            self.assertEqual(len(counter.read_text().splitlines()), 2)

    def test_backoff_sleeps_between_attempts(self) -> None:
        task = make_task("exit 1", retries=2, backoff_base=1.0, backoff_max=60.0)
        with mock.patch.object(worker.time, "sleep") as sleep:
            command_worker(task)
        self.assertEqual(sleep.call_count, 2)

    def test_timeout_is_not_retried(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            counter = Path(tmp) / "attempts"
            task = make_task(f"echo x >> {counter}; sleep 30", timeout=1, retries=3)
            started = time.monotonic()
            with mock.patch.object(process, "TERMINATE_GRACE_SECONDS", 0.1):
                ok, err = command_worker(task)
            elapsed = time.monotonic() - started

            self.assertFalse(ok)
            self.assertIsInstance(err, CommandTimeoutError)
            self.assertEqual(str(err), "command timed out")
            self.assertEqual(len(counter.read_text().splitlines()), 1)
            self.assertLess(elapsed, 10)

    def test_non_positive_timeout_expires_immediately(self) -> None:
        task = make_task("sleep 30", timeout=0, retries=2)
        started = time.monotonic()
        with mock.patch.object(process, "TERMINATE_GRACE_SECONDS", 0.1):
            ok, err = command_worker(task)
        self.assertFalse(ok)
        self.assertIsInstance(err, CommandTimeoutError)
        self.assertLess(time.monotonic() - started, 10)

    def test_start_failure_is_retried_then_wrapped(self) -> None:
        task = make_task(["/nonexistent/definitely-not-here"], retries=2)
        with mock.patch.object(worker.time, "sleep") as sleep:
            ok, err = command_worker(task)
        self.assertFalse(ok)
        self.assertIsInstance(err, CommandStartError)
        self.assertIsInstance(err.cause, OSError)
        self.assertEqual(sleep.call_count, 2)

    def test_invalid_execution_mode_fails_silently(self) -> None:
        with mock.patch.object(worker.subprocess, "Popen") as popen:
            result = command_worker(make_task("true", execution_mode="elsewhere", retries=3))
        self.assertEqual(result, (False, None))
        popen.assert_not_called()

    def test_invalid_command_shapes_fail_silently(self) -> None:
        for command in (None, 42, {"cmd": "true"}, []):
            with self.subTest(command=command):
                self.assertEqual(command_worker(make_task(command)), (False, None))

    def test_invalid_command_logged_as_warning_in_debug(self) -> None:
        with self.assertLogs("fleet_deployer.local.worker", level="WARNING") as logs:
            command_worker(make_task(42, debug=True))
        self.assertIn("Invalid command", "\n".join(logs.output))

    def test_env_vars_layer_over_parent_environment(self) -> None:
        with mock.patch.dict(os.environ, {"FLEET_PARENT_VAR": "inherited"}):
            task = make_task(
                'test "$FLEET_PARENT_VAR" = inherited && test "$STEP_VAR" = value',
                env_vars={"STEP_VAR": "value"},
            )
            self.assertEqual(command_worker(task), (True, None))

    def test_service_dir_mode_runs_in_service_path(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            task = make_task("touch marker", execution_mode="service_dir", cwd=tmp)
            self.assertEqual(command_worker(task), (True, None))
            self.assertTrue((Path(tmp) / "marker").exists())

    def test_root_mode_runs_in_current_directory(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            previous = os.getcwd()
            os.chdir(tmp)
            try:
                task = make_task("touch marker", execution_mode="root", cwd="/should/not/be/used")
                self.assertEqual(command_worker(task), (True, None))
            finally:
                os.chdir(previous)
            self.assertTrue((Path(tmp) / "marker").exists())

    def test_failure_logs_bounded_stderr(self) -> None:
        task = make_task("head -c 3000 /dev/zero | tr '\\0' x >&2; exit 1")
        with self.assertLogs("fleet_deployer.local.worker", level="WARNING") as logs:
            command_worker(task)
        error_lines = [line for line in logs.output if "Error output" in line]
        self.assertEqual(len(error_lines), 1)
        self.assertEqual(error_lines[0].count("x"), worker.MAX_STDERR_BYTES)


if __name__ == "__main__":
    unittest.main()
