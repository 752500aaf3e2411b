"""Recipe models and loading."""

from .loader import load_recipe_file, load_recipes_from_directory
from .models import (
    EXECUTION_MODE_ROOT,
    EXECUTION_MODE_SERVICE_DIR,
    Recipe,
    RecipeStep,
)

__all__ = [
    "EXECUTION_MODE_ROOT",
    "EXECUTION_MODE_SERVICE_DIR",
    "Recipe",
    "RecipeStep",
    "load_recipe_file",
    "load_recipes_from_directory",
]
