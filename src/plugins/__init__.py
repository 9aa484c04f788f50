"""
Plugin system for the k3d Cluster provider.

This package provides the plugin architecture for pluggable cluster backends.
"""

from plugins.backends.base import ClusterBackend, ClusterInfo
from plugins.registry import BackendRegistry, get_registry, register_builtin_backends

__all__ = [
    "ClusterBackend",
    "ClusterInfo",
    "BackendRegistry",
    "get_registry",
    "register_builtin_backends",
]
