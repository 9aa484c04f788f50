"""Local state file used by the CLI to remember recorded cluster state."""

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from errors import StateFileError
from models import RESOURCE_TYPE, ResourceState


@dataclass
class StateRecord:
    """Recorded state of one resource, keyed by its logical name."""

    resource_name: str
    resource_id: str
    state: ResourceState
    type: str = RESOURCE_TYPE
    updated_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.resource_id,
            "type": self.type,
            "outputs": self.state.to_dict(),
            "secretOutputs": ResourceState.secret_outputs(),
            "updatedAt": self.updated_at,
        }

    @classmethod
    def from_dict(cls, resource_name: str, data: Dict[str, Any]) -> "StateRecord":
        return cls(
            resource_name=resource_name,
            resource_id=data["id"],
            state=ResourceState.from_dict(data.get("outputs")),
            type=data.get("type", RESOURCE_TYPE),
            updated_at=data.get("updatedAt", ""),
        )


class StateStore:
    """
    JSON file holding one record per resource.

    The file contains kubeconfigs, so it is always written with mode 0600.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except ValueError as e:
            raise StateFileError(self.path, e) from e
        if not isinstance(data, dict):
            raise StateFileError(self.path, "expected a JSON object")
        return data.get("resources", {})

    def _save(self, resources: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w") as fh:
                json.dump({"version": 1, "resources": resources}, fh, indent=2)
            os.chmod(tmp, 0o600)
            os.replace(tmp, self.path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise

    def get(self, resource_name: str) -> Optional[StateRecord]:
        """Return the record for a resource, or None if none is stored."""
        data = self._load().get(resource_name)
        if data is None:
            return None
        return StateRecord.from_dict(resource_name, data)

    def put(self, record: StateRecord) -> None:
        resources = self._load()
        resources[record.resource_name] = record.to_dict()
        self._save(resources)

    def remove(self, resource_name: str) -> bool:
        """Drop a record. Returns True if one was removed."""
        resources = self._load()
        if resources.pop(resource_name, None) is None:
            return False
        self._save(resources)
        return True

    def list(self) -> List[StateRecord]:
        return [
            StateRecord.from_dict(name, data)
            for name, data in sorted(self._load().items())
        ]
