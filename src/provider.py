"""
Cluster Provider - The interface the orchestration engine calls.

Binds a cluster backend to the lifecycle operations of the reconciler and
hands every secret output it produces to a redactor, so that logging and
storage layers downstream can mask it.
"""

import logging
from typing import Any, Callable, Dict, Optional, Tuple

import reconciler
from models import RESOURCE_TYPE, Action, Diff, ResourceSpec, ResourceState
from plugins.backends.base import ClusterBackend

logger = logging.getLogger(__name__)


class ClusterProvider:
    """
    Provider for the ``k3d:index:Cluster`` resource type.

    The provider ID of a cluster is its name.
    """

    resource_type = RESOURCE_TYPE

    def __init__(
        self,
        backend: ClusterBackend,
        register_secret: Optional[Callable[[str], None]] = None,
    ):
        self.backend = backend
        self._register_secret = register_secret

    def _track(self, state: Optional[ResourceState]) -> Optional[ResourceState]:
        if state is not None and self._register_secret is not None:
            for value in state.secret_values():
                self._register_secret(value)
        return state

    def check(self, resource_name: str, inputs: Optional[Dict[str, Any]]) -> ResourceSpec:
        """Apply defaults to raw inputs and validate them."""
        return reconciler.check(resource_name, inputs)

    def diff(self, spec: ResourceSpec, last_state: ResourceState) -> Diff:
        return reconciler.diff(spec, last_state)

    def create(
        self,
        spec: ResourceSpec,
        preview: bool = False,
        resource_name: Optional[str] = None,
    ) -> Tuple[str, ResourceState]:
        """
        Create a cluster.

        Returns:
            Tuple of (provider ID, recorded state)
        """
        state = reconciler.create(
            spec, self.backend, preview=preview, resource_name=resource_name
        )
        return state.name, self._track(state)

    def read(
        self, resource_id: str, last_state: ResourceState
    ) -> Optional[ResourceState]:
        self._track(last_state)
        return self._track(reconciler.read(resource_id, last_state, self.backend))

    def update(
        self,
        resource_id: str,
        spec: ResourceSpec,
        last_state: ResourceState,
        preview: bool = False,
    ) -> ResourceState:
        state = reconciler.update(
            resource_id, spec, last_state, self.backend, preview=preview
        )
        return self._track(state)

    def delete(self, resource_id: str, last_state: ResourceState) -> None:
        reconciler.delete(resource_id, last_state, self.backend)

    def reconcile(
        self,
        resource_id: Optional[str],
        spec: Optional[ResourceSpec],
        last_state: Optional[ResourceState],
        preview: bool = False,
        resource_name: Optional[str] = None,
    ) -> Tuple[Action, Optional[ResourceState]]:
        """Run one reconciliation pass; see ``reconciler.reconcile``."""
        self._track(last_state)
        action, state = reconciler.reconcile(
            resource_id,
            spec,
            last_state,
            self.backend,
            preview=preview,
            resource_name=resource_name,
        )
        return action, self._track(state)
