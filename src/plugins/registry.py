"""
Backend Registry - Discovery and registration of cluster backends.

This module provides the central registry for all cluster backends,
handling discovery, registration, and instantiation.
"""

import logging
from importlib.metadata import entry_points
from typing import Any, Dict, Optional, Type

from plugins.backends.base import ClusterBackend

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "k3d_provider.backends"


class BackendRegistry:
    """
    Central registry for cluster backends.

    Handles discovery, registration, and instantiation of backends.
    """

    def __init__(self):
        # Registered backend classes (not instantiated)
        self._backends: Dict[str, Type[ClusterBackend]] = {}

        # Cached backend metadata (name, version) to avoid repeated instantiation
        self._backend_info: Dict[str, Dict[str, str]] = {}

        # Instantiated and initialized backend instances
        self._instances: Dict[str, ClusterBackend] = {}

        # Backend configurations loaded from environment
        self._backend_configs: Dict[str, Dict[str, Any]] = {}

    def register_backend(self, backend_class: Type[ClusterBackend]) -> None:
        """
        Register a backend class.

        Args:
            backend_class: The ClusterBackend subclass to register
        """
        # Create temporary instance to get name/version (only once at registration)
        temp_instance = backend_class()
        name = temp_instance.name
        version = temp_instance.version

        if name in self._backends:
            logger.warning(f"Overwriting existing backend: {name}")

        self._backends[name] = backend_class
        self._backend_info[name] = {"name": name, "version": version}
        self._backend_configs[name] = backend_class.load_config_from_env()
        self._instances.pop(name, None)
        logger.info(f"Registered backend: {name} v{version}")

    def get_backend(
        self, name: str, config: Optional[Dict[str, Any]] = None
    ) -> ClusterBackend:
        """
        Get an initialized backend instance.

        Configuration loaded from the environment is merged with ``config``,
        with ``config`` taking precedence.

        Args:
            name: The backend name to retrieve
            config: Optional configuration overrides

        Returns:
            An initialized ClusterBackend instance

        Raises:
            ValueError: If the backend name is not registered
        """
        if name not in self._backends:
            available = ", ".join(self._backends.keys()) or "none"
            raise ValueError(f"Unknown backend: {name}. Available backends: {available}")

        if name not in self._instances:
            merged = dict(self._backend_configs.get(name, {}))
            merged.update(config or {})

            backend = self._backends[name]()
            backend.initialize(merged)
            self._instances[name] = backend
            logger.info(f"Initialized backend: {name}")

        return self._instances[name]

    def list_backends(self) -> list[str]:
        """List all registered backend names."""
        return list(self._backends.keys())

    def has_backend(self, name: str) -> bool:
        """Check if a backend is registered."""
        return name in self._backends

    def get_backend_info(self, name: str) -> Optional[Dict[str, str]]:
        """
        Get information about a registered backend.

        Returns:
            Dictionary with 'name' and 'version', or None if not found
        """
        return self._backend_info.get(name)

    def get_backend_config(self, name: str) -> Dict[str, Any]:
        """Configuration loaded from the environment for a backend."""
        return self._backend_configs.get(name, {})


# Global registry instance
_registry: Optional[BackendRegistry] = None


def get_registry() -> BackendRegistry:
    """Get the global backend registry singleton."""
    global _registry
    if _registry is None:
        _registry = BackendRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_backends() -> None:
    """
    Register the built-in k3d backend and discover third-party backends
    via entry points.
    """
    registry = get_registry()

    from plugins.backends.k3d import K3dBackend

    registry.register_backend(K3dBackend)

    for ep in entry_points(group=ENTRY_POINT_GROUP):
        try:
            registry.register_backend(ep.load())
        except Exception as e:
            logger.warning(f"Could not load backend {ep.name}: {e}")
