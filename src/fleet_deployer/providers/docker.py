"""Docker image build and push commands."""

from __future__ import annotations

import os
from typing import List

from ..services.models import ServiceDescriptor

DOCKERFILE_NAME = "Dockerfile"


def dockerfile_path(service: ServiceDescriptor, template_path: str) -> str:
    if service.template:
        return os.path.join(template_path, service.template, DOCKERFILE_NAME)
    return os.path.join(template_path, DOCKERFILE_NAME)


def generate_build_command(
    service: ServiceDescriptor, image_name: str, template_path: str
) -> List[str]:
    cmd = [
        "docker", "build",
        "-t", image_name,
        "--build-arg", f"SERVICE_NAME={service.name}",
    ]
    if service.env_vars:
        pairs = [f"{key}={value}" for key, value in service.env_vars.items()]
        cmd.extend(["--build-arg", ",".join(pairs)])
    cmd.extend(["-f", dockerfile_path(service, template_path), "."])
    return cmd


def generate_push_command(image_name: str) -> List[str]:
    return ["docker", "push", image_name]
