from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from bandscope.common.config import DEFAULT_RUN_STEP_DELAY, load_settings
from bandscope.common.errors import StorageUnavailable
from bandscope.common.utils import format_relative_time


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    for name in (
        "BANDSCOPE_CONFIG",
        "BANDSCOPE_DATA_ROOT",
        "BANDSCOPE_LOG_LEVEL",
        "BANDSCOPE_RUN_START_DELAY",
        "BANDSCOPE_RUN_STEP_DELAY",
    ):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    settings = load_settings()
    assert settings.data_root == Path("/app/data")
    assert settings.log_level == "INFO"
    assert settings.run_step_delay == DEFAULT_RUN_STEP_DELAY


def test_yaml_file_then_env_override(tmp_path, monkeypatch):
    config = tmp_path / "bandscope.yaml"
    config.write_text("data_root: /srv/bandscope\nlog_level: debug\nrun_start_delay: 0.05\n")
    settings = load_settings(str(config))
    assert settings.data_root == Path("/srv/bandscope")
    assert settings.log_level == "DEBUG"
    assert settings.run_start_delay == 0.05

    monkeypatch.setenv("BANDSCOPE_DATA_ROOT", str(tmp_path / "data"))
    monkeypatch.setenv("BANDSCOPE_RUN_STEP_DELAY", "0")
    settings = load_settings(str(config))
    assert settings.data_root == tmp_path / "data"
    assert settings.run_step_delay == 0.0


def test_blank_data_root_is_unavailable(monkeypatch):
    monkeypatch.setenv("BANDSCOPE_DATA_ROOT", "   ")
    with pytest.raises(StorageUnavailable):
        load_settings()


def test_negative_delay_is_rejected(monkeypatch):
    monkeypatch.setenv("BANDSCOPE_RUN_START_DELAY", "-1")
    with pytest.raises(ValueError):
        load_settings()


def test_non_mapping_config_is_rejected(tmp_path):
    config = tmp_path / "bandscope.yaml"
    config.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_settings(str(config))


@pytest.mark.parametrize(
    "age, expected",
    [
        (timedelta(seconds=5), "Just now"),
        (timedelta(minutes=1), "1 minute ago"),
        (timedelta(minutes=42), "42 minutes ago"),
        (timedelta(hours=3), "3 hours ago"),
        (timedelta(days=1), "1 day ago"),
        (timedelta(days=15), "2 weeks ago"),
        (timedelta(days=29), "1 month ago"),
        (timedelta(days=95), "3 months ago"),
    ],
)
def test_format_relative_time(age, expected):
    now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
    assert format_relative_time(now - age, now=now) == expected
