"""Pytest configuration and fixtures."""

from typing import Dict, Optional
from unittest.mock import MagicMock

import pytest
import yaml

import config
from errors import CommandError
from models import ResourceSpec, ResourceState
from plugins.backends.base import ClusterBackend, ClusterInfo
from plugins.registry import reset_registry

SAMPLE_KUBECONFIG = (
    "apiVersion: v1\n"
    "clusters:\n"
    "- cluster:\n"
    "    certificate-authority-data: LS0tLS1CRUdJTi\n"
    "    server: https://0.0.0.0:6443\n"
    "  name: k3d-demo\n"
    "users:\n"
    "- name: admin@k3d-demo\n"
    "  user:\n"
    "    client-key-data: c2VjcmV0LWtleQ==\n"
)


class FakeBackend(ClusterBackend):
    """In-memory cluster backend that records every call."""

    def __init__(self):
        self.clusters: Dict[str, ClusterInfo] = {}
        self.calls = []
        self.fail_on: Dict[str, CommandError] = {}

    @property
    def name(self) -> str:
        return "fake"

    @property
    def version(self) -> str:
        return "0.0.1"

    def initialize(self, config):
        self.config = config

    def _maybe_fail(self, op):
        self.calls.append(op)
        if op in self.fail_on:
            raise self.fail_on[op]

    def create(self, name: str, config: str, version: Optional[str] = None) -> None:
        self._maybe_fail("create")
        document = yaml.safe_load(config) or {}
        self.clusters[name] = ClusterInfo(
            name=name,
            servers=document.get("servers", 1),
            agents=document.get("agents", 0),
            version=version or "v1.27.4-k3s1",
            nodes=[f"k3d-{name}-server-0"],
        )

    def get_kubeconfig(self, name: str) -> str:
        self._maybe_fail("get_kubeconfig")
        return SAMPLE_KUBECONFIG.replace("demo", name)

    def inspect(self, name: str) -> Optional[ClusterInfo]:
        self._maybe_fail("inspect")
        return self.clusters.get(name)

    def upgrade(self, name: str, version: str) -> None:
        self._maybe_fail("upgrade")
        self.clusters[name].version = version

    def delete(self, name: str) -> None:
        self._maybe_fail("delete")
        self.clusters.pop(name, None)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset global config and registry between tests."""
    config.reset_config()
    reset_registry()
    yield
    config.reset_config()
    reset_registry()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def mock_backend():
    """MagicMock standing in for a ClusterBackend."""
    backend = MagicMock(spec=ClusterBackend)
    backend.get_kubeconfig.return_value = SAMPLE_KUBECONFIG
    backend.inspect.return_value = ClusterInfo(
        name="demo", servers=1, agents=2, version="v1.27.4-k3s1"
    )
    return backend


@pytest.fixture
def sample_spec():
    return ResourceSpec(config="servers: 1\nagents: 2", name="demo")


@pytest.fixture
def sample_state():
    return ResourceState(
        config="servers: 1\nagents: 2",
        name="demo",
        version="v1.27.4-k3s1",
        kube_config=SAMPLE_KUBECONFIG,
    )


@pytest.fixture
def sample_kubeconfig():
    return SAMPLE_KUBECONFIG
