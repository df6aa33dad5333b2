"""
Tests for validator configuration loading.
"""

import logging

import pytest
import yaml

from scstate.config import ValidatorConfig, load_config, setup_logging


def _write_yaml(tmp_path, content):
    path = tmp_path / "config.yml"
    with open(path, "w") as f:
        yaml.safe_dump(content, f)
    return path


class TestValidatorConfig:
    """Test ValidatorConfig construction."""

    def test_version_string_is_encoded(self):
        config = ValidatorConfig(version="1.2")
        assert config.version == 1002000
        assert config.embedded is True
        assert config.rules.label == "1.2"

    def test_log_level_normalized(self):
        assert ValidatorConfig(version=2000000, log_level="debug").log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError, match="log level"):
            ValidatorConfig(version=2000000, log_level="chatty")

    def test_invalid_embedded(self):
        with pytest.raises(ValueError, match="embedded"):
            ValidatorConfig(version=2000000, embedded="yes")

    def test_invalid_version(self):
        with pytest.raises(ValueError):
            ValidatorConfig(version="two")


class TestLoadConfig:
    """Test reading configuration from YAML."""

    def test_load(self, tmp_path):
        path = _write_yaml(tmp_path, {"version": "2.1.0", "embedded": False})

        config = load_config(path)
        assert config.version == 2001000
        assert config.embedded is False
        assert config.log_level == "INFO"

    def test_unknown_key(self, tmp_path):
        path = _write_yaml(tmp_path, {"version": "2.0", "strict": True})

        with pytest.raises(ValueError, match="strict"):
            load_config(path)

    def test_missing_version(self, tmp_path):
        path = _write_yaml(tmp_path, {"embedded": True})

        with pytest.raises(ValueError, match="version"):
            load_config(path)

    def test_empty_file(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("")

        with pytest.raises(ValueError, match="version"):
            load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = _write_yaml(tmp_path, ["version", "2.0"])

        with pytest.raises(ValueError, match="mapping"):
            load_config(path)


def test_setup_logging(monkeypatch):
    calls = []
    monkeypatch.setattr(logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    setup_logging("DEBUG")

    assert len(calls) == 1
    assert calls[0]["level"] == "DEBUG"
