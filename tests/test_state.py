"""Unit tests for state.py - Local state file."""

import json
import stat
from unittest.mock import patch

import pytest

from errors import StateFileError
from models import ResourceState
from state import StateRecord, StateStore


def _record(name="my-cluster", kube_config="kc-secret"):
    return StateRecord(
        resource_name=name,
        resource_id="demo",
        state=ResourceState(config="servers: 1", name="demo", kube_config=kube_config),
    )


class TestStateStore:
    """Tests for StateStore."""

    def test_missing_file(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))
        assert store.get("my-cluster") is None
        assert store.list() == []

    def test_put_and_get(self, tmp_path):
        store = StateStore(str(tmp_path / "nested" / "state.json"))
        store.put(_record())

        record = store.get("my-cluster")
        assert record.resource_id == "demo"
        assert record.state.kube_config == "kc-secret"
        assert record.type == "k3d:index:Cluster"

    def test_file_is_private(self, tmp_path):
        path = tmp_path / "state.json"
        StateStore(str(path)).put(_record())

        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_records_secret_outputs(self, tmp_path):
        path = tmp_path / "state.json"
        StateStore(str(path)).put(_record())

        data = json.loads(path.read_text())
        assert data["resources"]["my-cluster"]["secretOutputs"] == ["kubeConfig"]

    def test_remove(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))
        store.put(_record())

        assert store.remove("my-cluster") is True
        assert store.remove("my-cluster") is False
        assert store.get("my-cluster") is None

    def test_list_sorted(self, tmp_path):
        store = StateStore(str(tmp_path / "state.json"))
        store.put(_record("b"))
        store.put(_record("a"))

        assert [r.resource_name for r in store.list()] == ["a", "b"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")

        with pytest.raises(StateFileError) as exc_info:
            StateStore(str(path)).get("my-cluster")

        assert str(path) in str(exc_info.value)

    def test_failed_write_leaves_no_temp_file(self, tmp_path):
        path = tmp_path / "state.json"
        store = StateStore(str(path))
        store.put(_record())

        with patch("state.json.dump", side_effect=TypeError("not serializable")):
            with pytest.raises(TypeError):
                store.put(_record("other"))

        assert not (tmp_path / "state.json.tmp").exists()
        assert [r.resource_name for r in store.list()] == ["my-cluster"]
