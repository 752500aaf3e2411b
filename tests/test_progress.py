import io
import json
import unittest

from rich.console import Console

from fleet_deployer.errors import CommandTimeoutError, PhaseFailedError
from fleet_deployer.orchestrator import ConsoleProgressReporter, TaskResult
from fleet_deployer.orchestrator.progress import format_command


def make_reporter(**kwargs):
    buffer = io.StringIO()
    console = Console(file=buffer, width=200, color_system=None)
    return ConsoleProgressReporter(console=console, animate=False, **kwargs), buffer


RESULTS = [
    TaskResult("api", "build", success=True, duration=1.25),
    TaskResult("web", "build", success=False, duration=2.0, error=CommandTimeoutError("web", 5)),
]


class ConsoleProgressReporterTests(unittest.TestCase):
    def test_json_summary(self) -> None:
        reporter, buffer = make_reporter(json_output=True)
        reporter.phase_started(0, 1, "build", ["api", "web"])
        for result in RESULTS:
            reporter.task_completed(result)
        reporter.run_completed(RESULTS, 3.5, PhaseFailedError(["web"]))

        summary = json.loads(buffer.getvalue())
        self.assertFalse(summary["success"])
        self.assertEqual(summary["total_time"], 3.5)
        self.assertEqual((summary["success_count"], summary["failed_count"]), (1, 1))
        self.assertEqual(summary["results"][1]["error"], "command timed out")

    def test_quiet_prints_only_summary(self) -> None:
        reporter, buffer = make_reporter(quiet=True)
        reporter.run_started(2, 1)
        reporter.phase_started(0, 1, "build", ["api"])
        reporter.task_completed(RESULTS[0])
        reporter.run_completed(RESULTS[:1], 1.0)
        lines = [line for line in buffer.getvalue().splitlines() if line.strip()]
        self.assertEqual(lines, ["Deployment completed: 1 succeeded, 0 failed in 1.0s"])

    def test_normal_mode_lists_results_and_skips(self) -> None:
        reporter, buffer = make_reporter()
        reporter.phase_started(0, 2, "build", ["api", "web"])
        reporter.service_skipped("db", "no recipe")
        for result in RESULTS:
            reporter.task_completed(result)
        output = buffer.getvalue()
        self.assertIn("Step 1/2: build", output)
        self.assertIn("skipped (no recipe)", output)
        self.assertIn("command timed out", output)

    def test_dry_run_output_escapes_markup(self) -> None:
        reporter, buffer = make_reporter()
        reporter.dry_run_command("api", "build", ["echo", "[bold]x[/bold]"])
        self.assertIn("echo [bold]x[/bold]", buffer.getvalue())

    def test_format_command(self) -> None:
        self.assertEqual(format_command(["docker", "push", 1]), "docker push 1")
        self.assertEqual(format_command("make"), "make")
        self.assertEqual(format_command(None), "(no command)")


if __name__ == "__main__":
    unittest.main()
