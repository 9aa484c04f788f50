"""
Cluster Reconciler - Lifecycle operations for the k3d Cluster resource.

Similar to a Kubernetes controller's reconcile step: compares desired state
with the last recorded state, decides on an external action and runs it
against the cluster backend. Each operation is a blocking call; nothing is
shared between calls, so different resources can be reconciled in parallel
as long as the caller serializes operations on the same resource.
"""

import logging
import re
from typing import Any, Dict, Optional, Tuple

import yaml

from errors import CommandError, DriftReadError, ProvisionError, ValidationError
from models import Action, AttributeChange, Diff, ResourceSpec, ResourceState
from plugins.backends.base import ClusterBackend, ClusterInfo
from validation import validate_spec

logger = logging.getLogger(__name__)

# Attribute -> change policy when desired and recorded values differ.
# kube_config is output-only and never compared.
CHANGE_POLICY: Dict[str, AttributeChange] = {
    "config": AttributeChange.CHANGED_REQUIRES_REPLACE,
    "name": AttributeChange.CHANGED_REQUIRES_REPLACE,
    "version": AttributeChange.CHANGED_UPDATABLE,
}

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")


def default_config(name: str) -> str:
    """Default k3d config: one server and one agent, named after the cluster."""
    return (
        "apiVersion: k3d.io/v1alpha5\n"
        "kind: Simple\n"
        "metadata:\n"
        f"  name: {name}\n"
        "servers: 1\n"
        "agents: 1\n"
    )


def derive_name(resource_name: str) -> str:
    """Turn a logical resource name into a valid cluster name."""
    name = _INVALID_NAME_CHARS.sub("-", resource_name.lower()).strip("-")
    return name[:63].rstrip("-") or "cluster"


def check(resource_name: str, inputs: Optional[Dict[str, Any]]) -> ResourceSpec:
    """
    Fill in defaults and validate raw inputs.

    A missing ``name`` is derived from the logical resource name and a
    missing ``config`` becomes the default config for that name.

    Raises:
        ValidationError: If the resulting spec is malformed
    """
    spec = ResourceSpec.from_dict(inputs)
    name = spec.name or derive_name(resource_name)
    spec = ResourceSpec(
        config=spec.config or default_config(name),
        name=name,
        version=spec.version,
    )
    validate_spec(spec)
    return spec


def _load_config(config: Optional[str]) -> Any:
    try:
        return yaml.safe_load(config) if config is not None else None
    except yaml.YAMLError:
        return config


def _config_equal(desired: Optional[str], recorded: Optional[str]) -> bool:
    """Configs are equal when their YAML documents parse to the same data."""
    if desired == recorded:
        return True
    return _load_config(desired) == _load_config(recorded)


def diff(spec: ResourceSpec, last_state: ResourceState) -> Diff:
    """
    Classify every input attribute of ``spec`` against ``last_state``.

    Pure function: makes no external calls. An unset ``name`` keeps the
    recorded one and is never a change.
    """
    changes: Dict[str, AttributeChange] = {}
    for attr, policy in CHANGE_POLICY.items():
        desired = getattr(spec, attr)
        recorded = getattr(last_state, attr)
        if attr == "name" and not desired:
            same = True
        elif attr == "config":
            same = _config_equal(desired, recorded)
        else:
            same = desired == recorded
        changes[attr] = AttributeChange.UNCHANGED if same else policy
    return Diff(changes=changes)


def plan(spec: Optional[ResourceSpec], last_state: Optional[ResourceState]) -> Action:
    """
    Decide which external action converges ``last_state`` onto ``spec``.

    Args:
        spec: Desired state, or None if the resource should not exist
        last_state: Recorded state, or None if nothing was created yet

    Returns:
        The Action to take
    """
    if spec is None:
        return Action.DELETE if last_state is not None else Action.NOOP
    if last_state is None:
        return Action.CREATE

    result = diff(spec, last_state)
    if result.requires_replace:
        return Action.REPLACE
    if result.has_changes:
        return Action.UPDATE
    return Action.NOOP


def create(
    spec: ResourceSpec,
    backend: ClusterBackend,
    preview: bool = False,
    resource_name: Optional[str] = None,
) -> ResourceState:
    """
    Create the cluster described by ``spec``.

    Args:
        spec: Desired state
        backend: Cluster backend to provision with
        preview: Return the expected state without touching the backend
        resource_name: Logical resource name; the cluster name is derived
            from it when ``spec.name`` is unset

    Returns:
        The recorded state, with ``kube_config`` populated unless previewing

    Raises:
        ValidationError: If the spec is malformed, or neither a name nor a
            resource name is given (nothing is provisioned)
        ProvisionError: If the cluster tool fails; no partial state is returned
    """
    validate_spec(spec)
    name = spec.name or (derive_name(resource_name) if resource_name else None)
    if not name:
        raise ValidationError(["name: required when no resource name is given"])

    spec = ResourceSpec(config=spec.config, name=name, version=spec.version)
    state = ResourceState.from_spec(spec)
    if preview:
        return state

    config = spec.config or default_config(name)
    try:
        backend.create(name, config, version=spec.version)
        kube_config = backend.get_kubeconfig(name)
    except CommandError as e:
        logger.error(f"Error creating cluster {name}: {e}")
        raise ProvisionError("create", e) from e

    if not kube_config or not kube_config.strip():
        logger.error(f"Cluster {name} was created without a kubeconfig")
        raise ProvisionError("create", "cluster tool returned an empty kubeconfig")

    return ResourceState.from_spec(spec, kube_config=kube_config)


def _observed_config(
    recorded: Optional[str], name: str, info: ClusterInfo
) -> Optional[str]:
    """
    Recorded config, with node counts rewritten if the live cluster differs.

    A config that matches the live cluster is returned verbatim.
    """
    text = recorded if recorded is not None else default_config(name)
    document = _load_config(text)
    if not isinstance(document, dict):
        return recorded

    expected = (document.get("servers", 1), document.get("agents", 0))
    if expected == (info.servers, info.agents):
        return recorded

    logger.warning(
        f"Drift detected on cluster {name}: expected {expected[0]} server(s) and "
        f"{expected[1]} agent(s), found {info.servers} and {info.agents}"
    )
    document["servers"] = info.servers
    document["agents"] = info.agents
    return yaml.safe_dump(document, sort_keys=False)


def read(
    resource_id: str, last_state: ResourceState, backend: ClusterBackend
) -> Optional[ResourceState]:
    """
    Refresh recorded state from the live cluster.

    Args:
        resource_id: Provider ID of the resource (the cluster name)
        last_state: Last recorded state
        backend: Cluster backend to inspect with

    Returns:
        The observed state, or None if the cluster no longer exists

    Raises:
        DriftReadError: If the live cluster could not be inspected
    """
    name = last_state.name or resource_id
    try:
        info = backend.inspect(name)
        if info is None:
            logger.info(f"Cluster {name} not found")
            return None
        kube_config = backend.get_kubeconfig(name)
    except CommandError as e:
        logger.error(f"Error reading cluster {name}: {e}")
        raise DriftReadError(e) from e

    version = last_state.version
    if version and info.version and info.version != version:
        logger.warning(
            f"Drift detected on cluster {name}: version {version} recorded, "
            f"{info.version} running"
        )
        version = info.version

    return ResourceState(
        config=_observed_config(last_state.config, name, info),
        name=last_state.name,
        version=version,
        kube_config=kube_config or last_state.kube_config,
    )


def update(
    resource_id: str,
    spec: ResourceSpec,
    last_state: ResourceState,
    backend: ClusterBackend,
    preview: bool = False,
) -> ResourceState:
    """
    Apply updatable attributes of ``spec`` to the live cluster in place.

    Raises:
        ValidationError: If the spec is malformed
        ProvisionError: If the change requires replacement or the cluster
            tool fails
    """
    validate_spec(spec)
    changes = diff(spec, last_state)
    if changes.requires_replace:
        raise ProvisionError(
            "update",
            f"{', '.join(changes.replace_keys)} cannot be changed in place",
        )

    name = last_state.name or resource_id
    merged = last_state.with_inputs(spec)
    if preview or "version" not in changes.update_keys or not spec.version:
        return merged

    try:
        backend.upgrade(name, spec.version)
    except CommandError as e:
        logger.error(f"Error updating cluster {name}: {e}")
        raise ProvisionError("update", e) from e

    logger.info(f"Cluster {name} updated to version {spec.version}")
    return merged


def delete(
    resource_id: str, last_state: ResourceState, backend: ClusterBackend
) -> None:
    """
    Tear down the cluster. A cluster that is already gone counts as deleted.

    Raises:
        ProvisionError: If the cluster tool fails and the cluster still exists
    """
    name = last_state.name or resource_id
    try:
        backend.delete(name)
        return
    except CommandError as e:
        cause = e

    try:
        still_there = backend.inspect(name) is not None
    except CommandError as e:
        logger.error(f"Error deleting cluster {name}: {cause}; inspect failed: {e}")
        raise ProvisionError("delete", cause) from cause

    if still_there:
        logger.error(f"Error deleting cluster {name}: {cause}")
        raise ProvisionError("delete", cause) from cause

    logger.info(f"Cluster {name} already deleted")


def reconcile(
    resource_id: Optional[str],
    spec: Optional[ResourceSpec],
    last_state: Optional[ResourceState],
    backend: ClusterBackend,
    preview: bool = False,
    resource_name: Optional[str] = None,
) -> Tuple[Action, Optional[ResourceState]]:
    """
    Run a single reconciliation pass.

    Replacement is carried out as delete of the old cluster followed by
    create of the new one. A spec without a name reuses the recorded name
    on replacement, and otherwise takes one derived from ``resource_name``.

    Returns:
        Tuple of (action taken, new recorded state or None if absent)
    """
    action = plan(spec, last_state)
    if not resource_id:
        resource_id = (last_state and last_state.name) or (spec and spec.name) or ""
    logger.info(f"Reconciling cluster {resource_id or resource_name}: {action.value}")

    if action == Action.NOOP:
        return action, last_state
    if action == Action.CREATE:
        return action, create(
            spec, backend, preview=preview, resource_name=resource_name or resource_id
        )
    if action == Action.UPDATE:
        return action, update(resource_id, spec, last_state, backend, preview=preview)

    if not preview:
        delete(resource_id, last_state, backend)
    if action == Action.DELETE:
        return action, None
    return action, create(
        spec, backend, preview=preview, resource_name=last_state.name or resource_id
    )
