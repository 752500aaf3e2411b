"""Find ``service.yaml`` descriptors below a project root."""

from __future__ import annotations

import fnmatch
import logging
import os
from pathlib import Path
from typing import Iterable, List, Optional

import yaml

from ..errors import ServiceDiscoveryError
from .models import ServiceDescriptor

logger = logging.getLogger(__name__)

SERVICE_FILE_NAME = "service.yaml"

# Directory depth below root that is searched; the descriptor file itself
# sits one level deeper than its directory.
DEFAULT_MAX_DEPTH = 4

# Ignore files read from the discovery root, in order.
IGNORE_FILE_NAMES = (".gitignore", ".fleet-deployerignore")

# Used when neither ignore file yields a pattern.
FALLBACK_IGNORE_PATTERNS = ["node_modules", ".git", "vendor"]


def _read_patterns(path: Path) -> List[str]:
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except OSError:
        return []
    patterns = []
    for line in lines:
        line = line.strip()
        # Negation patterns are not supported.
        if not line or line.startswith(("#", "!")):
            continue
        patterns.append(line)
    return patterns


def load_ignore_patterns(root: Path, use_gitignore: bool = True) -> List[str]:
    """Patterns from `.gitignore` and `.fleet-deployerignore` under ``root``.

    Falls back to ``FALLBACK_IGNORE_PATTERNS`` when no pattern was found.
    """
    patterns: List[str] = []
    for name in IGNORE_FILE_NAMES:
        if name == ".gitignore" and not use_gitignore:
            continue
        patterns.extend(_read_patterns(root / name))
    return patterns or list(FALLBACK_IGNORE_PATTERNS)


def should_ignore(rel_path: str, patterns: Iterable[str]) -> bool:
    """Match a root-relative path against gitignore-style patterns.

    ``dir/`` matches that directory and everything below it, ``/pattern`` is
    anchored at the root, and any other glob matches a single path component
    or the whole path.
    """
    path = rel_path.replace(os.sep, "/")
    parts = path.split("/")
    for pattern in patterns:
        if pattern.endswith("/"):
            directory = pattern.strip("/")
            if path == directory or path.startswith(directory + "/"):
                return True
            continue
        if pattern.startswith("/"):
            if fnmatch.fnmatchcase(path, pattern.lstrip("/")):
                return True
            continue
        if any(fnmatch.fnmatchcase(part, pattern) for part in parts):
            return True
        if fnmatch.fnmatchcase(path, pattern):
            return True
    return False


def load_service_file(path: Path, root: Path) -> ServiceDescriptor:
    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ServiceDiscoveryError(f"error parsing {path}: {exc}") from exc

    if not isinstance(data, dict) or not data.get("name"):
        raise ServiceDiscoveryError(f"error parsing {path}: missing required field 'name'")

    rel_path = os.path.relpath(path.parent, root)
    return ServiceDescriptor.from_dict(data, path=rel_path, root=str(root))


def find_services(
    root: str = ".",
    names: Optional[Iterable[str]] = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
    use_gitignore: bool = True,
) -> List[ServiceDescriptor]:
    """Discover services, expand multi-region entries and filter by name.

    Args:
        root: Directory to search.
        names: Optional service names; either the base name (matches every
            region) or a display name such as ``api (us-east1)``.
        max_depth: Maximum directory depth, ``-1`` for unlimited.
        use_gitignore: Also honour the root `.gitignore`.
    """
    root_path = Path(root).resolve()
    patterns = load_ignore_patterns(root_path, use_gitignore)
    found: List[ServiceDescriptor] = []

    for dirpath, dirnames, filenames in os.walk(root_path):
        rel = os.path.relpath(dirpath, root_path)
        depth = 0 if rel == "." else rel.count(os.sep) + 1
        if max_depth >= 0 and depth >= max_depth:
            dirnames[:] = []
        kept = []
        for name in sorted(dirnames):
            child = name if rel == "." else os.path.join(rel, name)
            if should_ignore(child, patterns):
                logger.debug("Ignoring directory: %s", child)
                continue
            kept.append(name)
        dirnames[:] = kept

        if SERVICE_FILE_NAME in filenames:
            service = load_service_file(Path(dirpath) / SERVICE_FILE_NAME, root_path)
            found.extend(service.expand_regions())

    logger.debug("Found %d services before filtering", len(found))

    wanted = [n for n in (names or []) if n]
    if not wanted:
        return found
    return filter_services(wanted, found)


def filter_services(
    names: Iterable[str], services: List[ServiceDescriptor]
) -> List[ServiceDescriptor]:
    selected: List[ServiceDescriptor] = []
    seen = set()
    for name in names:
        matches = [s for s in services if s.display_name == name] or [
            s for s in services if s.name == name
        ]
        if not matches:
            logger.warning("Service %s not found", name)
            continue
        for service in matches:
            if service.display_name not in seen:
                seen.add(service.display_name)
                selected.append(service)
    return selected
