"""
Cluster Backend Base - Abstract interface for cluster tools.

A backend is the outbound adapter the reconciler uses to create, inspect,
upgrade and tear down clusters. The default shipped backend drives the
k3d CLI.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ClusterInfo:
    """Observable attributes of a live cluster."""

    name: str
    servers: int = 0
    agents: int = 0
    version: Optional[str] = None
    nodes: List[str] = field(default_factory=list)


class ClusterBackend(ABC):
    """
    Abstract base class for cluster backends.

    Every method is a blocking call into the external cluster tool and
    raises ``CommandError`` when the tool reports a failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this backend (e.g., 'k3d')."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Backend version string."""
        pass

    @abstractmethod
    def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the backend with configuration.

        Args:
            config: Backend-specific configuration dictionary
        """
        pass

    @abstractmethod
    def create(self, name: str, config: str, version: Optional[str] = None) -> None:
        """
        Create a cluster.

        Args:
            name: Cluster name
            config: Cluster config document, passed to the tool verbatim
            version: Optional engine version to pin
        """
        pass

    @abstractmethod
    def get_kubeconfig(self, name: str) -> str:
        """
        Fetch the kubeconfig credential bundle for a cluster.

        The returned value is a secret and must never be logged.
        """
        pass

    @abstractmethod
    def inspect(self, name: str) -> Optional[ClusterInfo]:
        """
        Describe a live cluster.

        Returns:
            ClusterInfo, or None if no cluster with that name exists.
        """
        pass

    @abstractmethod
    def upgrade(self, name: str, version: str) -> None:
        """Move every node of a cluster to the given engine version in place."""
        pass

    @abstractmethod
    def delete(self, name: str) -> None:
        """Tear a cluster down."""
        pass

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load backend-specific configuration from environment variables.

        Override this method in subclasses to define how the backend
        loads its configuration from the environment.

        Returns:
            Dictionary of configuration values for this backend.
        """
        return {}
