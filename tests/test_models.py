"""Unit tests for models.py - Resource records and diffs."""

import dataclasses

import pytest

from models import (
    REDACTED,
    AttributeChange,
    Diff,
    ResourceSpec,
    ResourceState,
)


class TestResourceSpec:
    """Tests for ResourceSpec."""

    def test_from_dict(self):
        spec = ResourceSpec.from_dict(
            {"config": "servers: 1", "name": "demo", "version": "v1.28.2-k3s1"}
        )
        assert spec.config == "servers: 1"
        assert spec.name == "demo"
        assert spec.version == "v1.28.2-k3s1"

    def test_from_dict_ignores_outputs(self):
        """Test that a caller-supplied kubeConfig never reaches the spec."""
        spec = ResourceSpec.from_dict({"name": "demo", "kubeConfig": "x"})
        assert spec.to_dict() == {"name": "demo"}

    def test_from_none(self):
        assert ResourceSpec.from_dict(None) == ResourceSpec()

    def test_is_immutable(self):
        spec = ResourceSpec(name="demo")
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.name = "other"


class TestResourceState:
    """Tests for ResourceState and secret handling."""

    def test_secret_outputs(self):
        assert ResourceState.secret_outputs() == ["kubeConfig"]

    def test_repr_hides_kubeconfig(self):
        state = ResourceState(name="demo", kube_config="super-secret")
        assert "super-secret" not in repr(state)

    def test_to_dict_redacts(self):
        state = ResourceState(config="servers: 1", name="demo", kube_config="super-secret")

        assert state.to_dict()["kubeConfig"] == "super-secret"
        redacted = state.to_dict(redact=True)
        assert redacted["kubeConfig"] == REDACTED
        assert redacted["name"] == "demo"

    def test_to_dict_omits_unset(self):
        assert ResourceState(name="demo").to_dict() == {"name": "demo"}

    def test_round_trip_through_property_bag(self):
        state = ResourceState(
            config="servers: 1", name="demo", version="v1", kube_config="kc"
        )
        assert ResourceState.from_dict(state.to_dict()) == state

    def test_from_spec_has_no_kubeconfig(self):
        state = ResourceState.from_spec(ResourceSpec(name="demo"))
        assert state.kube_config is None
        assert state.secret_values() == []

    def test_with_inputs_keeps_outputs(self):
        state = ResourceState(name="demo", version="v1", kube_config="kc")
        merged = state.with_inputs(ResourceSpec(name="demo", version="v2"))
        assert merged.version == "v2"
        assert merged.kube_config == "kc"


class TestDiff:
    """Tests for Diff aggregation."""

    def test_empty(self):
        diff = Diff()
        assert not diff.has_changes
        assert not diff.requires_replace

    def test_replace_supersedes_update(self):
        diff = Diff(
            changes={
                "config": AttributeChange.CHANGED_REQUIRES_REPLACE,
                "version": AttributeChange.CHANGED_UPDATABLE,
                "name": AttributeChange.UNCHANGED,
            }
        )
        assert diff.has_changes
        assert diff.requires_replace
        assert diff.replace_keys == ["config"]
        assert diff.update_keys == ["version"]
