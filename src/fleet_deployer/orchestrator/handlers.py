"""Built-in step handlers for the supported providers."""

from __future__ import annotations

from typing import Any, Optional

from ..providers import build, docker, gcp, homebrew
from .registry import CommandRegistry, StepContext


def _build(ctx: StepContext) -> Any:
    return build.generate_build_command(ctx.service, ctx.tag)


def _docker_build(ctx: StepContext) -> Any:
    return docker.generate_build_command(ctx.service, ctx.image_name, ctx.template_path)


def _docker_push(ctx: StepContext) -> Any:
    return docker.generate_push_command(ctx.image_name)


def _gcp_deploy(ctx: StepContext) -> Any:
    return gcp.generate_deploy_command(ctx.service, ctx.image_name)


def _not_implemented(ctx: StepContext) -> Optional[Any]:
    # AWS and Azure deploys have no built-in command yet; recipes supply one.
    return None


def _homebrew_build(ctx: StepContext) -> Any:
    return homebrew.generate_build_command(ctx.service, ctx.tag)


def _homebrew_archive(ctx: StepContext) -> Any:
    return homebrew.generate_archive_command(ctx.service, ctx.tag)


def _homebrew_checksum(ctx: StepContext) -> Any:
    return homebrew.generate_checksum_command()


def _homebrew_formula(ctx: StepContext) -> Any:
    return homebrew.generate_formula_command(ctx.service, ctx.tag)


def _homebrew_tap(ctx: StepContext) -> Any:
    return homebrew.generate_tap_push_command(ctx.service, ctx.tag)


def register_default_handlers(registry: CommandRegistry) -> CommandRegistry:
    registry.register("build", "", _build)
    registry.register("docker", "", _docker_build)
    registry.register("push", "", _docker_push)
    registry.register("publish", "", _docker_push)

    registry.register("deploy", "gcp", _gcp_deploy)
    registry.register("deploy", "aws", _not_implemented)
    registry.register("deploy", "azure", _not_implemented)

    registry.register("build", "homebrew", _homebrew_build)
    registry.register("archive", "homebrew", _homebrew_archive)
    registry.register("checksum", "homebrew", _homebrew_checksum)
    registry.register("formula", "homebrew", _homebrew_formula)
    registry.register("tap", "homebrew", _homebrew_tap)
    return registry


def default_registry() -> CommandRegistry:
    """A fresh registry populated with the built-in handlers."""
    return register_default_handlers(CommandRegistry())
