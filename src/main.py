"""
Application bootstrap for the k3d Cluster provider.

Sets up logging with secret redaction, registers cluster backends and
builds a ClusterProvider from configuration.
"""

import logging
from typing import Optional, Set

from config import Config, get_config
from models import REDACTED
from plugins.registry import get_registry, register_builtin_backends
from provider import ClusterProvider

logger = logging.getLogger(__name__)


class SecretRedactingFilter(logging.Filter):
    """
    Masks known secret values in log records.

    Secrets are registered as they are produced (see ClusterProvider), so
    a kubeconfig that ends up in an error message or command output is
    replaced before any handler formats it.
    """

    def __init__(self):
        super().__init__()
        self._secrets: Set[str] = set()

    def add(self, value: str) -> None:
        if value and value.strip():
            self._secrets.add(value)
            self._secrets.add(value.strip())

    def _scrub(self, text: str) -> str:
        # Longest first so a secret containing another is masked whole.
        for secret in sorted(self._secrets, key=len, reverse=True):
            text = text.replace(secret, REDACTED)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        if self._secrets:
            record.msg = self._scrub(record.getMessage())
            record.args = None
        return True


# Global redaction filter shared by every handler set up here.
redactor = SecretRedactingFilter()


def setup_logging(config: Optional[Config] = None) -> None:
    """Configure root logging and attach the redaction filter."""
    config = config or get_config()
    logging.basicConfig(
        level=getattr(logging, config.logging.level, logging.INFO),
        format=config.logging.format,
    )
    for handler in logging.getLogger().handlers:
        if redactor not in handler.filters:
            handler.addFilter(redactor)


def build_provider(
    config: Optional[Config] = None, backend_name: Optional[str] = None
) -> ClusterProvider:
    """
    Create a ClusterProvider for the configured backend.

    Raises:
        ValueError: If the backend is not registered
    """
    config = config or get_config()
    name = backend_name or config.provider.backend

    registry = get_registry()
    if not registry.has_backend(name):
        register_builtin_backends()

    backend = registry.get_backend(name, config.provider.get_backend_config(name))
    logger.debug(f"Using backend {name}")
    return ClusterProvider(backend, register_secret=redactor.add)
