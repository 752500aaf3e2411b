"""Service descriptors and discovery."""

from .discovery import filter_services, find_services, load_ignore_patterns, should_ignore
from .models import BuildConfig, CloudRunConfig, HomebrewConfig, ServiceDescriptor

__all__ = [
    "BuildConfig",
    "CloudRunConfig",
    "HomebrewConfig",
    "ServiceDescriptor",
    "find_services",
    "filter_services",
    "load_ignore_patterns",
    "should_ignore",
]
