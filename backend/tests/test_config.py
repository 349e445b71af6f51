"""
Tests for settings and config file loading.
"""
import pytest

from monika_history.config import MonikaConfig, Settings, SymonConfig, load_config


def test_load_yaml_config(tmp_path):
    path = tmp_path / "monika.yml"
    path.write_text(
        "version: '1.2'\n"
        "probes:\n"
        "  - id: '1'\n"
        "    name: home\n"
        "symon:\n"
        "  id: monika-1\n"
        "  url: https://symon.example.com\n"
        "  key: secret\n"
        "  interval: 30\n"
        "thresholds:\n"
        "  response_time: 1000\n"
    )

    config = load_config(path)

    assert config.version == "1.2"
    assert config.probes == [{"id": "1", "name": "home"}]
    assert config.symon == SymonConfig(id="monika-1", url="https://symon.example.com", key="secret", interval=30)
    assert config.model_dump()["thresholds"] == {"response_time": 1000}


def test_load_json_config(tmp_path):
    path = tmp_path / "monika.json"
    path.write_text('{"probes": [{"id": "1"}]}')

    config = load_config(path)

    assert config.symon is None
    assert config.version is None


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "monika.yml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError):
        load_config(path)


def test_symon_interval_defaults():
    assert SymonConfig(id="a", url="http://x", key="k").interval == 10
    with pytest.raises(ValueError):
        SymonConfig(id="a", url="http://x", key="k", interval=0)


def test_settings_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("MONIKA_DATABASE_PATH", str(tmp_path / "history.db"))
    monkeypatch.setenv("MONIKA_LOG_LEVEL", "debug")

    settings = Settings()

    assert settings.resolved_database_path() == tmp_path / "history.db"
    assert settings.log_level == "debug"
    assert isinstance(MonikaConfig(), MonikaConfig)
