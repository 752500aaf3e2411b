"""Command-line interface for Fleet-Deployer."""

from __future__ import annotations

import argparse
import logging
from dataclasses import dataclass, replace
from typing import Dict, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import AppConfig, load_config, validate_timeout
from .errors import DeployerError
from .orchestrator import ConsoleProgressReporter, Runner, RunnerOptions
from .recipes import Recipe, load_recipes_from_directory
from .services import ServiceDescriptor, find_services
from .utils.logging import get_logger, set_debug

logger = logging.getLogger(__name__)

# Subcommands that run the phase runner, with their preset include-tags.
RUN_COMMANDS: Dict[str, List[str]] = {
    "deploy": [],
    "dry-run": [],
    "build": ["build"],
    "push": ["push"],
    "publish": ["build", "push"],
}


@dataclass
class CLIContext:
    """Context captured from CLI arguments."""

    config: AppConfig
    root: str
    console: Console
    use_gitignore: bool = True


def parse_comma_separated(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def _add_run_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("services", nargs="*", help="Service names (default: all)")
    parser.add_argument("-t", "--tag", default=None, help="Tag for the services (default: latest)")
    parser.add_argument("-d", "--debug", action="store_true", default=None, help="Enable debug mode")
    parser.add_argument("-T", "--timeout", type=int, default=None, help="Per-attempt timeout in seconds")
    parser.add_argument("-r", "--retries", type=int, default=None, help="Retries after a failed attempt")
    parser.add_argument("-D", "--dry-run", action="store_true", help="Print commands without executing them")
    parser.add_argument("--registry", default=None, help="Registry prefix overriding service.yaml")
    parser.add_argument("--template-path", default=None, help="Directory with Dockerfile templates")
    parser.add_argument("--recipe-path", default=None, help="Directory with recipe YAML files")
    parser.add_argument("--max-workers", type=int, default=None, help="Parallel tasks per step (0 = auto)")
    parser.add_argument("--max-steps", type=int, default=0, help="Run at most N steps (0 = all)")
    parser.add_argument("--only-tags", default="", help="Only run steps with these tags (comma separated)")
    parser.add_argument("--exclude-tags", default="", help="Skip steps with these tags (comma separated)")
    parser.add_argument(
        "--strict-recipes",
        action="store_true",
        default=None,
        help="Fail when a service has no recipe for its provider",
    )
    parser.add_argument("--quiet", action="store_true", default=None, help="Only print a summary line")
    parser.add_argument("--json", action="store_true", default=None, help="Print a JSON summary")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="fleet-deployer",
        description="Build, push and deploy many services from provider recipes.",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a JSON config file overriding defaults.",
    )
    parser.add_argument(
        "--root",
        type=str,
        default=".",
        help="Directory searched for service.yaml files.",
    )
    parser.add_argument(
        "--no-gitignore",
        action="store_true",
        help="Do not apply .gitignore patterns during service discovery.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    helps = {
        "deploy": "Run every recipe step (build, push, deploy)",
        "dry-run": "Preview the commands of every step without executing",
        "build": "Run steps tagged 'build'",
        "push": "Run steps tagged 'push'",
        "publish": "Run steps tagged 'build' or 'push'",
    }
    for name, help_text in helps.items():
        _add_run_arguments(subparsers.add_parser(name, help=help_text))

    list_parser = subparsers.add_parser("list", help="List discovered services")
    list_parser.add_argument("services", nargs="*", help="Service names (default: all)")

    check_parser = subparsers.add_parser("check", help="Validate services against their recipes")
    check_parser.add_argument("services", nargs="*", help="Service names (default: all)")
    check_parser.add_argument("--recipe-path", default=None, help="Directory with recipe YAML files")

    return parser


def _build_context(args: argparse.Namespace) -> CLIContext:
    config = load_config(args.config)
    if getattr(args, "debug", None):
        config.runner.debug = True
    if getattr(args, "quiet", None):
        config.output.quiet = True
    if getattr(args, "json", None):
        config.output.json = True
    console = Console(no_color=config.output.no_color)
    return CLIContext(
        config=config,
        root=args.root,
        console=console,
        use_gitignore=not getattr(args, "no_gitignore", False),
    )


def build_runner_options(args: argparse.Namespace, config: AppConfig) -> RunnerOptions:
    """Merge CLI flags over configuration values (flags win)."""
    runner = config.runner
    include_tags = parse_comma_separated(args.only_tags) or list(RUN_COMMANDS.get(args.command, []))

    def pick(value, default):
        return default if value is None else value

    timeout = pick(args.timeout, runner.timeout)
    validate_timeout(timeout)

    return RunnerOptions(
        tag=pick(args.tag, runner.tag),
        registry=pick(args.registry, runner.registry),
        template_path=pick(args.template_path, runner.template_path),
        debug=bool(pick(args.debug, runner.debug)),
        timeout=timeout,
        retries=pick(args.retries, runner.retries),
        dry_run=bool(args.dry_run or args.command == "dry-run"),
        max_workers=pick(args.max_workers, runner.max_workers),
        max_phases=args.max_steps or 0,
        include_tags=include_tags,
        exclude_tags=parse_comma_separated(args.exclude_tags),
        backoff_base=runner.backoff_base,
        backoff_max=runner.backoff_max,
        fail_on_missing_recipe=bool(pick(args.strict_recipes, runner.fail_on_missing_recipe)),
    )


def _load_recipes(args: argparse.Namespace, config: AppConfig) -> List[Recipe]:
    path = getattr(args, "recipe_path", None) or config.runner.recipe_path
    return load_recipes_from_directory(path)


def handle_run_command(args: argparse.Namespace, context: CLIContext) -> int:
    """deploy / build / push / publish / dry-run"""
    options = build_runner_options(args, context.config)
    services = find_services(context.root, args.services, use_gitignore=context.use_gitignore)
    reporter = ConsoleProgressReporter(
        console=context.console,
        quiet=context.config.output.quiet,
        json_output=context.config.output.json,
    )
    if not services:
        reporter.info("No services found")
        return 0

    recipes = _load_recipes(args, context.config)
    logger.debug("Loaded %d recipe(s) for %d service(s)", len(recipes), len(services))

    runner = Runner(services, recipes, options, reporter=reporter)
    runner.run()
    return 0


def handle_list_command(args: argparse.Namespace, context: CLIContext) -> int:
    services = find_services(context.root, args.services, use_gitignore=context.use_gitignore)
    if not services:
        context.console.print("No services found")
        return 0

    table = Table(title=f"{len(services)} service(s)")
    for column in ("Name", "Provider", "Region", "Project", "Path"):
        table.add_column(column)
    for service in services:
        table.add_row(
            escape(service.display_name),
            service.provider or "-",
            service.region or "-",
            service.project or "-",
            escape(service.path),
        )
    context.console.print(table)
    return 0


def check_services(
    services: List[ServiceDescriptor], recipes: List[Recipe]
) -> Dict[str, List[str]]:
    """Map service display name to its problems; services without problems are omitted."""
    by_provider = {recipe.provider: recipe for recipe in recipes}
    problems: Dict[str, List[str]] = {}
    for service in services:
        recipe = by_provider.get(service.provider)
        if recipe is None:
            problems[service.display_name] = [f"no recipe for provider '{service.provider}'"]
            continue
        missing = recipe.validate_service(service)
        if missing:
            problems[service.display_name] = [f"missing required field '{name}'" for name in missing]
    return problems


def handle_check_command(args: argparse.Namespace, context: CLIContext) -> int:
    services = find_services(context.root, args.services, use_gitignore=context.use_gitignore)
    recipes = _load_recipes(args, context.config)
    problems = check_services(services, recipes)

    for service in services:
        issues = problems.get(service.display_name)
        name = escape(service.display_name)
        if not issues:
            context.console.print(f"[green]✓[/] {name}")
            continue
        context.console.print(f"[red]✗[/] {name}")
        for issue in issues:
            context.console.print(f"    {escape(issue)}")

    if problems:
        context.console.print(f"\n{len(problems)} of {len(services)} service(s) have problems")
        return 1
    context.console.print(f"\nAll {len(services)} service(s) are valid")
    return 0


def dispatch_command(args: argparse.Namespace) -> int:
    context = _build_context(args)
    set_debug(context.config.runner.debug)

    if args.command in RUN_COMMANDS:
        return handle_run_command(args, context)
    if args.command == "list":
        return handle_list_command(args, context)
    if args.command == "check":
        return handle_check_command(args, context)

    raise ValueError(f"Unsupported command: {args.command}")


def run_cli(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        return dispatch_command(args)
    except DeployerError as exc:
        get_logger(__name__).error("%s", exc)
        return 1
