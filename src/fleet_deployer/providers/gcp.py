"""Google Cloud Run deploy command."""

from __future__ import annotations

from typing import List

from ..services.models import ServiceDescriptor


def _cloud_run_flags(service: ServiceDescriptor) -> List[str]:
    cfg = service.cloud_run
    flags: List[str] = []
    if cfg.min_instances is not None:
        flags.append(f"--min-instances={cfg.min_instances}")
    if cfg.max_instances is not None:
        flags.append(f"--max-instances={cfg.max_instances}")
    if cfg.cpu_throttling is not None:
        flags.append("--cpu-throttling" if cfg.cpu_throttling else "--no-cpu-throttling")
    if cfg.memory:
        flags.append(f"--memory={cfg.memory}")
    if cfg.cpu:
        flags.append(f"--cpu={cfg.cpu}")
    if cfg.concurrency is not None:
        flags.append(f"--concurrency={cfg.concurrency}")
    if cfg.timeout is not None:
        flags.append(f"--timeout={cfg.timeout}")
    return flags


def generate_deploy_command(service: ServiceDescriptor, image_name: str) -> List[str]:
    """``gcloud run deploy`` for ``service`` using the prebuilt ``image_name``."""
    cmd = [
        "gcloud", "run", "deploy", service.runtime_service or service.name,
        "--image", image_name,
        "--region", service.region,
        "--platform", "managed",
        "--allow-unauthenticated",
    ]
    if service.project:
        cmd.extend(["--project", service.project])
    if service.secrets:
        joined = ",".join(f"{key}={value}" for key, value in service.secrets.items())
        cmd.extend(["--set-secrets", joined])
    cmd.extend(_cloud_run_flags(service))
    return cmd
