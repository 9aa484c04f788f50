"""
Configuration module for the k3d Cluster provider.

Loads configuration from environment variables.
Supports pluggable cluster backends with backend-specific configuration.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            format=os.getenv(
                "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ),
        )


@dataclass
class ProviderConfig:
    """Provider and CLI configuration."""

    backend: str = "k3d"
    state_file: str = ".k3d-provider/state.json"

    # Backend-specific overrides keyed by backend name
    backend_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        # Load backend configs from JSON environment variable
        backend_configs = {}
        if os.getenv("BACKEND_CONFIGS"):
            try:
                backend_configs = json.loads(os.getenv("BACKEND_CONFIGS"))
            except json.JSONDecodeError as e:
                logger.warning(f"Ignoring malformed BACKEND_CONFIGS: {e}")

        return cls(
            backend=os.getenv("PROVIDER_BACKEND", "k3d"),
            state_file=os.getenv("PROVIDER_STATE_FILE", ".k3d-provider/state.json"),
            backend_configs=backend_configs,
        )

    def get_backend_config(self, backend_name: str) -> Dict[str, Any]:
        """Get configuration overrides for a specific backend."""
        return self.backend_configs.get(backend_name, {})


@dataclass
class Config:
    """Main configuration object."""

    provider: ProviderConfig
    logging: LoggingConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            provider=ProviderConfig.from_env(),
            logging=LoggingConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            provider=ProviderConfig(),
            logging=LoggingConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
