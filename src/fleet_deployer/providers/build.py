"""Generic build commands and image naming."""

from __future__ import annotations

from typing import List, Optional

from ..errors import ImageNameError
from ..services.models import ServiceDescriptor

DEFAULT_TAG = "latest"

PROVIDER_LABELS = {
    "aws": "AWS",
    "azure": "Azure",
    "gcp": "GCP",
    "github": "GitHub",
    "gitlab": "GitLab",
}


def generate_image_name(service: ServiceDescriptor, registry: str = "", tag: str = "") -> str:
    """Return the fully qualified image name for ``service``.

    ``registry`` is a full registry URL override; an empty value or one equal
    to the service's ``registry_name`` falls through to the provider format.
    Raises ImageNameError when the provider is unknown, does not use images,
    or misses a required field.
    """
    suffix = tag or DEFAULT_TAG
    if registry and registry != service.registry_name:
        return f"{registry}/{service.name}:{suffix}"
    return f"{provider_image_name(service)}:{suffix}"


def provider_image_name(service: ServiceDescriptor) -> str:
    """Untagged image name in the provider's registry layout."""
    provider = service.provider
    name = service.name

    def require(value: str, what: str) -> str:
        if not value:
            raise ImageNameError(name, f"{PROVIDER_LABELS.get(provider, provider)} provider requires {what}")
        return value

    if provider == "aws":
        account = require(service.registry_name, "registry_name (account ID)")
        region = require(service.region, "region")
        return f"{account}.dkr.ecr.{region}.amazonaws.com/{name}"
    if provider == "gcp":
        region = require(service.region, "region")
        project = require(service.project, "project")
        repository = service.registry_name or project
        return f"{region}-docker.pkg.dev/{project}/{repository}/{name}"
    if provider == "azure":
        return f"{require(service.registry_name, 'registry_name')}.azurecr.io/{name}"
    if provider == "dockerhub":
        return f"docker.io/{name}"
    if provider == "gitlab":
        return f"{require(service.registry_name, 'registry_name')}.gitlab.io/{name}"
    if provider == "github":
        return f"ghcr.io/{require(service.registry_name, 'registry_name')}/{name}"
    if provider == "homebrew":
        raise ImageNameError(name, "Homebrew provider does not use Docker images")
    raise ImageNameError(name, f"unknown provider '{provider}'")


def render_build_command(service: ServiceDescriptor, tag: str = "") -> str:
    """The configured build command with its flags appended, or ``""``."""
    command = service.build.cmd
    if not command:
        return ""

    flags = {name: list(values) for name, values in service.build.flags.items()}
    if service.build.version_var and tag:
        flags.setdefault("ldflags", []).append(f"-X {service.build.version_var}={tag}")

    for name, values in flags.items():
        if not values:
            continue
        command = f"{command} -{name}='{' '.join(values)}'"
    return command


def generate_build_command(service: ServiceDescriptor, tag: str = "") -> Optional[List[str]]:
    """Shell-wrapped build command, or None when no build command is configured."""
    command = render_build_command(service, tag)
    if not command:
        return None
    return ["/bin/sh", "-c", command]
