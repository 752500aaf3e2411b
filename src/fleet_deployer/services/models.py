"""Service descriptor data models."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional


def _as_dict(value: Any) -> Dict[str, Any]:
    if isinstance(value, dict):
        return {str(k): v for k, v in value.items()}
    return {}


def _get_str(payload: Dict[str, Any], key: str, default: str = "") -> str:
    value = payload.get(key)
    return value if isinstance(value, str) else default


def _get_int(payload: Dict[str, Any], key: str) -> Optional[int]:
    value = payload.get(key)
    # bool is an int subclass; YAML "true" must not become 1
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def _string_map(value: Any) -> Dict[str, str]:
    return {k: v for k, v in _as_dict(value).items() if isinstance(v, str)}


@dataclass(frozen=True)
class BuildConfig:
    """Build-related settings from the ``build`` block."""

    language: str = ""
    version: str = ""
    cmd: str = ""
    env_vars: Dict[str, str] = field(default_factory=dict)
    # flag name -> values, e.g. {"ldflags": ["-s", "-w"]}
    flags: Dict[str, List[str]] = field(default_factory=dict)
    version_var: str = ""

    @classmethod
    def from_dict(cls, payload: Any) -> "BuildConfig":
        data = _as_dict(payload)
        flags: Dict[str, List[str]] = {}
        for name, raw in _as_dict(data.get("flags")).items():
            if isinstance(raw, str):
                values = [raw]
            elif isinstance(raw, list):
                values = [item for item in raw if isinstance(item, str)]
            else:
                values = []
            if values:
                flags[name] = values
        return cls(
            language=_get_str(data, "language"),
            version=_get_str(data, "version"),
            cmd=_get_str(data, "cmd"),
            env_vars=_string_map(data.get("env_vars")),
            flags=flags,
            version_var=_get_str(data, "version_var"),
        )


@dataclass(frozen=True)
class HomebrewConfig:
    tap_url: str = ""
    project_url: str = ""
    token_env: str = ""

    @classmethod
    def from_dict(cls, payload: Any) -> "HomebrewConfig":
        data = _as_dict(payload)
        return cls(
            tap_url=_get_str(data, "tap_url"),
            project_url=_get_str(data, "project_url"),
            token_env=_get_str(data, "token_env"),
        )


@dataclass(frozen=True)
class CloudRunConfig:
    """GCP Cloud Run tuning. ``None`` means "leave the platform default"."""

    min_instances: Optional[int] = None
    max_instances: Optional[int] = None
    cpu_throttling: Optional[bool] = None
    memory: str = ""
    cpu: str = ""
    concurrency: Optional[int] = None
    timeout: Optional[int] = None

    @classmethod
    def from_dict(cls, payload: Any) -> "CloudRunConfig":
        data = _as_dict(payload)
        throttling = data.get("cpu_throttling")
        return cls(
            min_instances=_get_int(data, "min_instances"),
            max_instances=_get_int(data, "max_instances"),
            cpu_throttling=throttling if isinstance(throttling, bool) else None,
            memory=_get_str(data, "memory"),
            cpu=_get_str(data, "cpu"),
            concurrency=_get_int(data, "concurrency"),
            timeout=_get_int(data, "timeout") if "timeout" in data else _get_int(data, "timeout_seconds"),
        )


@dataclass(frozen=True)
class ServiceDescriptor:
    """One deployable unit, read-only once loaded."""

    name: str
    provider: str = ""
    region: str = ""
    project: str = ""
    path: str = "."
    root: str = ""                      # discovery root that `path` is relative to
    template: str = ""
    registry_name: str = ""
    description: str = ""
    license: str = ""
    runtime_service: str = ""
    build: BuildConfig = field(default_factory=BuildConfig)
    env_vars: Dict[str, str] = field(default_factory=dict)
    secrets: Dict[str, str] = field(default_factory=dict)
    homebrew: HomebrewConfig = field(default_factory=HomebrewConfig)
    cloud_run: CloudRunConfig = field(default_factory=CloudRunConfig)
    config: Dict[str, Any] = field(default_factory=dict, compare=False)
    is_multi_region: bool = False

    @property
    def display_name(self) -> str:
        if self.is_multi_region and self.region:
            return f"{self.name} ({self.region})"
        return self.name

    @property
    def working_dir(self) -> str:
        """Service directory usable from the current process."""
        if not self.root or os.path.isabs(self.path):
            return self.path
        return os.path.join(self.root, self.path)

    def get(self, field_name: str) -> Any:
        """Look up a dotted field name, e.g. ``build.cmd``, in the raw config."""
        node: Any = self.config
        for part in field_name.split("."):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    @classmethod
    def from_dict(
        cls, payload: Dict[str, Any], path: str = ".", root: str = ""
    ) -> "ServiceDescriptor":
        data = _as_dict(payload)
        runtime = _as_dict(data.get("runtime"))
        return cls(
            name=_get_str(data, "name"),
            provider=_get_str(data, "provider"),
            region=_get_str(data, "region"),
            project=_get_str(data, "project"),
            path=path,
            root=root,
            template=_get_str(data, "template"),
            registry_name=_get_str(data, "registry_name"),
            description=_get_str(data, "description"),
            license=_get_str(data, "license"),
            runtime_service=_get_str(runtime, "service"),
            build=BuildConfig.from_dict(data.get("build")),
            env_vars=_string_map(data.get("env_vars")),
            secrets=_string_map(data.get("secrets")),
            homebrew=HomebrewConfig.from_dict(data.get("homebrew")),
            cloud_run=CloudRunConfig.from_dict(data.get("cloud_run")),
            config=data,
        )

    def expand_regions(self) -> List["ServiceDescriptor"]:
        """Split a ``regions:`` list into one descriptor per region."""
        regions = self.config.get("regions")
        if not isinstance(regions, list):
            return [self]
        names = [r for r in regions if isinstance(r, str) and r]
        if not names:
            return [self]
        return [replace(self, region=region, is_multi_region=True) for region in names]
