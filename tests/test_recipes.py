import tempfile
import unittest
from pathlib import Path

from fleet_deployer.errors import RecipeError
from fleet_deployer.recipes import Recipe, RecipeStep, load_recipes_from_directory
from fleet_deployer.services import ServiceDescriptor

GCP_RECIPE = """
name: gcp-cloud-run
description: Build and deploy to Cloud Run
provider: gcp
required_fields:
  - name: project
    description: GCP project id
  - region
steps:
  - name: build binary
    command: go build ./...
    execution_mode: service_dir
    timeout: 120
    retries: 0
    tags: [Build]
    env_vars:
      CGO_ENABLED: 0
  - name: docker
    tags: [build]
  - name: deploy
    command: ["gcloud", "run", "deploy", "${name}"]
    tags: [deploy]
"""


class RecipeLoaderTests(unittest.TestCase):
    def test_loads_sorted_yaml_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            Path(tmp, "b.yml").write_text("name: b\nprovider: aws\nsteps: []\n", encoding="utf-8")
            Path(tmp, "a.yaml").write_text(GCP_RECIPE, encoding="utf-8")
            Path(tmp, "notes.txt").write_text("ignored", encoding="utf-8")
            recipes = load_recipes_from_directory(tmp)

        self.assertEqual([r.provider for r in recipes], ["gcp", "aws"])
        gcp = recipes[0]
        self.assertEqual(gcp.required_fields, ["project", "region"])
        first = gcp.steps[0]
        self.assertEqual(first.execution_mode, "service_dir")
        self.assertEqual((first.timeout, first.retries), (120, 0))
        self.assertEqual(first.env_vars, {"CGO_ENABLED": "0"})
        self.assertEqual(gcp.steps[1].command, None)
        self.assertEqual(gcp.steps[1].execution_mode, "root")
        self.assertEqual(gcp.steps[2].command, ["gcloud", "run", "deploy", "${name}"])

    def test_missing_directory(self) -> None:
        with self.assertRaises(RecipeError):
            load_recipes_from_directory("/definitely/not/here")

    def test_malformed_yaml(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            Path(tmp, "bad.yaml").write_text("steps: [unclosed", encoding="utf-8")
            with self.assertRaises(RecipeError):
                load_recipes_from_directory(tmp)


class RecipeModelTests(unittest.TestCase):
    def test_step_tags_case_insensitive(self) -> None:
        step = RecipeStep(name="x", tags=["Build"])
        self.assertTrue(step.has_any_tag(["BUILD"]))
        self.assertFalse(step.has_any_tag(["deploy"]))
        self.assertFalse(RecipeStep(name="y").has_any_tag(["build"]))

    def test_unset_overrides_are_none(self) -> None:
        step = RecipeStep.from_dict({"name": "x"})
        self.assertIsNone(step.timeout)
        self.assertIsNone(step.retries)

    def test_step_at(self) -> None:
        recipe = Recipe(name="r", provider="gcp", steps=[RecipeStep(name="a")])
        self.assertEqual(recipe.step_at(0).name, "a")
        self.assertIsNone(recipe.step_at(1))
        self.assertIsNone(recipe.step_at(-1))

    def test_validate_service_reports_missing_fields(self) -> None:
        recipe = Recipe.from_dict({"provider": "gcp", "required_fields": ["project", "region", "build.cmd"]})
        service = ServiceDescriptor.from_dict({"name": "api", "project": "p", "build": {"cmd": "make"}})
        self.assertEqual(recipe.validate_service(service), ["region"])


if __name__ == "__main__":
    unittest.main()
