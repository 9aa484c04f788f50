"""Unit tests for validation.py - Spec and config schema validation."""

import pytest

from errors import ValidationError
from models import ResourceSpec
from validation import (
    CLUSTER_CONFIG_SCHEMA,
    parse_cluster_config,
    validate_against_schema,
    validate_spec,
)


class TestParseClusterConfig:
    """Tests for parse_cluster_config function."""

    def test_parses_mapping(self):
        assert parse_cluster_config("servers: 1\nagents: 2") == {
            "servers": 1,
            "agents": 2,
        }

    def test_empty_document(self):
        assert parse_cluster_config("") == {}

    def test_invalid_yaml(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_cluster_config("servers: [1")
        assert "not valid YAML" in str(exc_info.value)

    def test_non_mapping(self):
        with pytest.raises(ValidationError):
            parse_cluster_config("just a string")


class TestValidateAgainstSchema:
    """Tests for validate_against_schema function."""

    def test_valid_config(self):
        document = {
            "apiVersion": "k3d.io/v1alpha5",
            "kind": "Simple",
            "metadata": {"name": "demo"},
            "servers": 1,
            "agents": 2,
            "ports": [{"port": "8080:80"}],
        }
        is_valid, error = validate_against_schema(document, CLUSTER_CONFIG_SCHEMA)
        assert is_valid is True
        assert error is None

    def test_wrong_kind(self):
        is_valid, error = validate_against_schema(
            {"kind": "Cluster"}, CLUSTER_CONFIG_SCHEMA
        )
        assert is_valid is False
        assert "kind" in error

    def test_collects_all_errors(self):
        is_valid, error = validate_against_schema(
            {"servers": 0, "agents": -1}, CLUSTER_CONFIG_SCHEMA
        )
        assert is_valid is False
        assert "servers" in error
        assert "agents" in error


class TestValidateSpec:
    """Tests for validate_spec function."""

    def test_valid_spec(self):
        validate_spec(
            ResourceSpec(config="servers: 1\nagents: 2", name="demo", version="v1.28.2-k3s1")
        )

    def test_empty_spec_is_valid(self):
        validate_spec(ResourceSpec())

    @pytest.mark.parametrize("name", ["Demo", "-demo", "demo_1", "a" * 64])
    def test_invalid_name(self, name):
        with pytest.raises(ValidationError) as exc_info:
            validate_spec(ResourceSpec(name=name))
        assert exc_info.value.problems[0].startswith("name")

    @pytest.mark.parametrize("version", ["latest", "1.28", "v1.28.2+k3s1"])
    def test_invalid_version(self, version):
        with pytest.raises(ValidationError):
            validate_spec(ResourceSpec(version=version))

    def test_invalid_config_reports_path(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_spec(ResourceSpec(config="servers: two"))
        assert exc_info.value.problems[0].startswith("config.servers")
