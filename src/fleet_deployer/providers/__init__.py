"""Provider-specific command generators."""

from . import build, docker, gcp, homebrew

__all__ = ["build", "docker", "gcp", "homebrew"]
