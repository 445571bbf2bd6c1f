"""Tests for YAML config loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from io_connect.api.data_access import DataAccess
from io_connect.config.loader import RetrievalMode, build_settings, load_config

EXAMPLE_CONFIG = Path(__file__).resolve().parents[1] / "config" / "io_connect.example.yaml"


def test_missing_file_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_non_mapping_is_rejected(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")

    with pytest.raises(ValueError, match="dictionary"):
        load_config(path)


def test_non_mapping_section_is_rejected(tmp_path):
    path = tmp_path / "cfg.yaml"
    path.write_text("user_id: u\ndata_url: d\nretry: 3\n", encoding="utf-8")

    with pytest.raises(ValueError, match="'retry'"):
        load_config(path)


def test_example_config_loads():
    settings = build_settings(load_config(EXAMPLE_CONFIG))

    assert settings.retrieval.mode == RetrievalMode.BATCHED
    assert settings.retry.default.max_attempts == 15
    assert settings.retry.influx.long_delay_ms == 10000
    assert settings.retry.consumption.max_attempts == 3


def test_camel_case_keys_are_accepted():
    settings = build_settings({"userId": "u-1", "dataUrl": "host", "onPrem": True, "logTime": True})

    assert settings.user_id == "u-1"
    assert settings.data_url == "host"
    assert settings.on_prem is True
    assert settings.log_time is True


def test_defaults_fill_missing_sections():
    settings = build_settings({"user_id": "u-1", "data_url": "host"})

    assert settings.tz == "UTC"
    assert settings.retrieval.cursor_limit == 1000
    assert settings.retrieval.verify_device is True
    assert settings.retry.default.short_delay_ms == 2000


def test_overrides_are_validated():
    settings = build_settings(
        {
            "user_id": "u-1",
            "data_url": "host",
            "retrieval": {"mode": "per_sensor", "cursor_limit": 50},
            "retry": {"influx": {"max_attempts": 2}},
        }
    )

    assert settings.retrieval.mode == RetrievalMode.PER_SENSOR
    assert settings.retry.influx.max_attempts == 2
    # Unset fields fall back to the model defaults
    assert settings.retry.influx.long_delay_ms == 4000

    with pytest.raises(ValidationError):
        build_settings({"user_id": "u-1", "data_url": "host", "retry": {"default": {"max_attempts": 0}}})


def test_blank_user_id_is_rejected():
    with pytest.raises(ValidationError):
        build_settings({"user_id": "  ", "data_url": "host"})


def test_client_from_config(tmp_path):
    path = tmp_path / "io_connect.config.yaml"
    path.write_text("userId: u-9\ndataUrl: data.example.com\ntz: UTC\n", encoding="utf-8")

    client = DataAccess.from_config(path)

    assert client.settings.user_id == "u-9"
    assert client.settings.data_url == "data.example.com"
