"""
Resource Models - Desired and recorded state for a k3d Cluster resource.

Plain data records exchanged between the orchestration engine and the
reconciler. Output-only attributes carry a ``secret`` tag in their field
metadata so that any logging or storage layer can redact them.
"""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Optional

RESOURCE_TYPE = "k3d:index:Cluster"

REDACTED = "[secret]"

# Dataclass attribute name -> property bag key.
_WIRE_KEYS = {
    "config": "config",
    "name": "name",
    "version": "version",
    "kube_config": "kubeConfig",
}


class AttributeChange(Enum):
    """How a single attribute differs between desired and recorded state."""

    UNCHANGED = "unchanged"
    CHANGED_UPDATABLE = "changed-updatable"
    CHANGED_REQUIRES_REPLACE = "changed-requires-replace"


class Action(Enum):
    """External action a reconciliation pass decides on."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    NOOP = "noop"


@dataclass(frozen=True)
class ResourceSpec:
    """Desired state of a cluster, as submitted for one reconciliation pass."""

    config: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None

    @classmethod
    def from_dict(cls, props: Optional[Dict[str, Any]]) -> "ResourceSpec":
        """
        Build a spec from an input property bag.

        ``kubeConfig`` is output-only: a value supplied here is ignored.
        """
        props = props or {}
        return cls(
            config=props.get("config"),
            name=props.get("name"),
            version=props.get("version"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            key: getattr(self, attr)
            for attr, key in _WIRE_KEYS.items()
            if attr != "kube_config" and getattr(self, attr) is not None
        }


@dataclass(frozen=True)
class ResourceState:
    """
    Last recorded actual state of a cluster.

    ``kube_config`` stays ``None`` until a create has completed. It is tagged
    secret and never shows up in ``repr``.
    """

    config: Optional[str] = None
    name: Optional[str] = None
    version: Optional[str] = None
    kube_config: Optional[str] = field(
        default=None, repr=False, metadata={"secret": True, "output": True}
    )

    @classmethod
    def from_spec(
        cls, spec: ResourceSpec, kube_config: Optional[str] = None
    ) -> "ResourceState":
        """Echo every input of ``spec`` into a state record."""
        return cls(
            config=spec.config,
            name=spec.name,
            version=spec.version,
            kube_config=kube_config,
        )

    @classmethod
    def from_dict(cls, props: Optional[Dict[str, Any]]) -> "ResourceState":
        props = props or {}
        return cls(
            **{attr: props.get(key) for attr, key in _WIRE_KEYS.items()}
        )

    @classmethod
    def secret_outputs(cls) -> List[str]:
        """Property bag keys that must be treated as secret values."""
        return [
            _WIRE_KEYS[f.name] for f in fields(cls) if f.metadata.get("secret")
        ]

    def to_dict(self, redact: bool = False) -> Dict[str, Any]:
        """
        Convert to a property bag.

        Args:
            redact: Replace secret values with a placeholder. Use this for
                anything that ends up in logs or on a terminal.

        Returns:
            Dict keyed by wire names, omitting unset attributes.
        """
        props: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if redact and f.metadata.get("secret"):
                value = REDACTED
            props[_WIRE_KEYS[f.name]] = value
        return props

    def secret_values(self) -> List[str]:
        """Current values of secret attributes (for log scrubbing)."""
        return [
            getattr(self, f.name)
            for f in fields(self)
            if f.metadata.get("secret") and getattr(self, f.name)
        ]

    def with_inputs(self, spec: ResourceSpec) -> "ResourceState":
        """Return a copy with the inputs of ``spec`` applied."""
        return replace(
            self, config=spec.config, name=spec.name or self.name, version=spec.version
        )


@dataclass
class Diff:
    """Attribute-by-attribute comparison of a spec against recorded state."""

    changes: Dict[str, AttributeChange] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return any(c != AttributeChange.UNCHANGED for c in self.changes.values())

    @property
    def requires_replace(self) -> bool:
        """True if any attribute cannot be changed in place."""
        return any(
            c == AttributeChange.CHANGED_REQUIRES_REPLACE
            for c in self.changes.values()
        )

    @property
    def replace_keys(self) -> List[str]:
        return sorted(
            k
            for k, c in self.changes.items()
            if c == AttributeChange.CHANGED_REQUIRES_REPLACE
        )

    @property
    def update_keys(self) -> List[str]:
        return sorted(
            k
            for k, c in self.changes.items()
            if c == AttributeChange.CHANGED_UPDATABLE
        )
