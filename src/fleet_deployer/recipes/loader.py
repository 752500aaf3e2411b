"""Load recipe YAML files from a directory."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List

import yaml

from ..errors import RecipeError
from .models import Recipe

logger = logging.getLogger(__name__)


def load_recipe_file(path: Path) -> Recipe:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise RecipeError(f"failed to read file {path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise RecipeError(f"failed to parse YAML from {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise RecipeError(f"failed to parse YAML from {path}: expected a mapping")
    return Recipe.from_dict(data)


def load_recipes_from_directory(dir_path: str) -> List[Recipe]:
    """Load every ``*.yaml``/``*.yml`` recipe, ordered by file name."""
    directory = Path(dir_path)
    if not directory.is_dir():
        raise RecipeError(f"failed to read directory {directory}")

    files = sorted(
        (p for p in directory.iterdir() if p.is_file() and p.suffix in (".yaml", ".yml")),
        key=lambda p: p.name,
    )

    recipes = []
    for path in files:
        recipe = load_recipe_file(path)
        logger.debug("Loaded recipe %s (%d steps) from %s", recipe.name, len(recipe.steps), path)
        recipes.append(recipe)
    return recipes
