import contextlib
import io
import json
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from fleet_deployer.cli import build_parser, build_runner_options, check_services, parse_comma_separated, run_cli
from fleet_deployer.config import AppConfig
from fleet_deployer.errors import ConfigError
from fleet_deployer.recipes import Recipe
from fleet_deployer.services import ServiceDescriptor

RECIPE = """
name: shell
provider: local
required_fields: [description]
steps:
  - name: build
    command: "echo ${name} > built-${name}.txt"
    execution_mode: service_dir
    tags: [build]
  - name: deploy
    command: "exit ${tag}"
    tags: [deploy]
"""


class ParserTests(unittest.TestCase):
    def test_parse_comma_separated(self) -> None:
        self.assertEqual(parse_comma_separated(" build, push ,,"), ["build", "push"])
        self.assertEqual(parse_comma_separated(None), [])

    def test_flags_override_config(self) -> None:
        config = AppConfig()
        config.runner.timeout = 90
        config.runner.registry = "from-config"
        args = build_parser().parse_args(
            ["deploy", "-t", "v2", "-r", "0", "--max-workers", "2", "--exclude-tags", "deploy", "api"]
        )
        options = build_runner_options(args, config)
        self.assertEqual(options.tag, "v2")
        self.assertEqual(options.retries, 0)
        self.assertEqual(options.timeout, 90)
        self.assertEqual(options.registry, "from-config")
        self.assertEqual(options.max_workers, 2)
        self.assertEqual(options.exclude_tags, ["deploy"])
        self.assertEqual(args.services, ["api"])
        self.assertFalse(options.dry_run)

    def test_non_positive_timeout_flag_rejected(self) -> None:
        args = build_parser().parse_args(["deploy", "-T", "0"])
        with self.assertRaises(ConfigError):
            build_runner_options(args, AppConfig())

    def test_subcommand_presets(self) -> None:
        config = AppConfig()
        parser = build_parser()
        self.assertEqual(build_runner_options(parser.parse_args(["build"]), config).include_tags, ["build"])
        self.assertEqual(build_runner_options(parser.parse_args(["publish"]), config).include_tags, ["build", "push"])
        self.assertTrue(build_runner_options(parser.parse_args(["dry-run"]), config).dry_run)
        explicit = build_runner_options(parser.parse_args(["build", "--only-tags", "lint"]), config)
        self.assertEqual(explicit.include_tags, ["lint"])


class CheckTests(unittest.TestCase):
    def test_check_services(self) -> None:
        recipe = Recipe.from_dict({"provider": "gcp", "required_fields": ["project"]})
        services = [
            ServiceDescriptor.from_dict({"name": "ok", "provider": "gcp", "project": "p"}),
            ServiceDescriptor.from_dict({"name": "bad", "provider": "gcp"}),
            ServiceDescriptor.from_dict({"name": "orphan", "provider": "aws"}),
        ]
        problems = check_services(services, [recipe])
        self.assertEqual(set(problems), {"bad", "orphan"})
        self.assertEqual(problems["bad"], ["missing required field 'project'"])


class RunCliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        (self.root / "recipes").mkdir()
        (self.root / "recipes" / "shell.yaml").write_text(RECIPE, encoding="utf-8")
        for name in ("alpha", "beta"):
            directory = self.root / "services" / name
            directory.mkdir(parents=True)
            (directory / "service.yaml").write_text(
                f"name: {name}\nprovider: local\ndescription: {name} service\n", encoding="utf-8"
            )
        self._cwd = os.getcwd()
        os.chdir(self.root)
        self._env = mock.patch.dict(
            os.environ,
            {k: v for k, v in os.environ.items() if not k.startswith("FLEET_DEPLOYER_")},
            clear=True,
        )
        self._env.start()

    def tearDown(self) -> None:
        self._env.stop()
        os.chdir(self._cwd)
        self._tmp.cleanup()

    def run_cli(self, *argv):
        out = io.StringIO()
        with contextlib.redirect_stdout(out):
            code = run_cli(list(argv))
        return code, out.getvalue()

    def test_deploy_success_json(self) -> None:
        code, output = self.run_cli("deploy", "--json", "-t", "0", "--recipe-path", "recipes")
        self.assertEqual(code, 0)
        summary = json.loads(output)
        self.assertTrue(summary["success"])
        self.assertEqual(summary["success_count"], 4)
        self.assertTrue((self.root / "services" / "alpha" / "built-alpha.txt").exists())

    def test_failing_step_exits_with_one(self) -> None:
        code, _ = self.run_cli("deploy", "--quiet", "-t", "3", "-r", "0", "--recipe-path", "recipes")
        self.assertEqual(code, 1)

    def test_dry_run_executes_nothing(self) -> None:
        code, output = self.run_cli("dry-run", "--recipe-path", "recipes", "alpha")
        self.assertEqual(code, 0)
        self.assertIn("echo alpha > built-alpha.txt", output)
        self.assertNotIn("beta", output)
        self.assertFalse((self.root / "services" / "alpha" / "built-alpha.txt").exists())

    def test_build_runs_only_build_steps(self) -> None:
        # deploy would fail with tag 5; build-only runs never reach it
        code, _ = self.run_cli("build", "--quiet", "-t", "5", "--recipe-path", "recipes")
        self.assertEqual(code, 0)
        self.assertTrue((self.root / "services" / "beta" / "built-beta.txt").exists())

    def test_strict_recipes(self) -> None:
        (self.root / "services" / "gamma").mkdir()
        (self.root / "services" / "gamma" / "service.yaml").write_text("name: gamma\nprovider: gcp\n", encoding="utf-8")
        code, _ = self.run_cli("deploy", "--quiet", "--strict-recipes", "-t", "0", "--recipe-path", "recipes")
        self.assertEqual(code, 1)

    def test_list_and_check(self) -> None:
        code, output = self.run_cli("list")
        self.assertEqual(code, 0)
        self.assertIn("alpha", output)
        self.assertIn("beta", output)

        code, output = self.run_cli("check", "--recipe-path", "recipes")
        self.assertEqual(code, 0)
        self.assertIn("All 2 service(s) are valid", output)

    def test_missing_recipe_directory(self) -> None:
        code, _ = self.run_cli("deploy", "--recipe-path", "nowhere")
        self.assertEqual(code, 1)

    def test_service_dir_steps_run_under_a_non_cwd_root(self) -> None:
        code, _ = self.run_cli("--root", "services", "build", "--quiet", "--recipe-path", "recipes")
        self.assertEqual(code, 0)
        self.assertTrue((self.root / "services" / "alpha" / "built-alpha.txt").exists())
        self.assertFalse((self.root / "alpha").exists())

    def test_ignore_files_hide_services(self) -> None:
        (self.root / ".fleet-deployerignore").write_text("# local only\nservices/beta/\n", encoding="utf-8")
        code, output = self.run_cli("list")
        self.assertEqual(code, 0)
        self.assertIn("alpha", output)
        self.assertNotIn("beta", output)


if __name__ == "__main__":
    unittest.main()
