"""Resolve a recipe step to the command the worker runs."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..recipes.models import RecipeStep
from ..services.models import ServiceDescriptor
from .registry import CommandRegistry, StepContext

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE_PATH = "./_templates"


def _variables(service: ServiceDescriptor, tag: str) -> Dict[str, str]:
    return {
        "${name}": service.name,
        "${service.name}": service.name,
        "${provider}": service.provider,
        "${region}": service.region,
        "${project}": service.project,
        "${tag}": tag,
        "${build.version}": tag,
    }


def _replace(text: str, variables: Dict[str, str]) -> str:
    for placeholder, value in variables.items():
        text = text.replace(placeholder, value)
    return text


def substitute_vars(command: Any, service: ServiceDescriptor, tag: str) -> Any:
    """Replace ``${...}`` placeholders in a string or in each string element of a list.

    Non-string list elements pass through unchanged.
    """
    variables = _variables(service, tag)
    if isinstance(command, str):
        return _replace(command, variables)
    if isinstance(command, (list, tuple)):
        return [_replace(item, variables) if isinstance(item, str) else item for item in command]
    return command


def generate_command(
    service: ServiceDescriptor,
    step: RecipeStep,
    registry: CommandRegistry,
    *,
    tag: str,
    image_name: str = "",
    registry_name: str = "",
    template_path: str = "",
) -> Optional[Any]:
    """A literal step command wins; otherwise dispatch by step name and provider.

    Returns None when neither applies, which callers treat as a no-op step.
    """
    if step.command is not None:
        return substitute_vars(step.command, service, tag)

    handler = registry.get_handler(step.name, service.provider)
    if handler is None:
        logger.debug("No handler for step %r (provider %r)", step.name, service.provider)
        return None

    context = StepContext(
        service=service,
        image_name=image_name,
        tag=tag,
        registry=registry_name,
        template_path=template_path or DEFAULT_TEMPLATE_PATH,
    )
    return handler(context)
