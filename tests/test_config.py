import logging
from pathlib import Path

import pytest

import config
from logutils import setupLogging
from runverbose import openStore


def test_defaults_without_config_file(monkeypatch):
    monkeypatch.setattr(config, "CONFIG_FILE", "")
    settings = config.loadConfig()
    assert settings["db_file"] == config.DB_FILE
    assert settings["log_level"] == config.LOG_LEVEL


def test_yaml_overrides(tmp_path):
    cfg = tmp_path / "blog.yaml"
    cfg.write_text("db_file: /srv/blog/blog.db\nlog_level: DEBUG\nadmin_token: t0k\nunrelated: 1\n", encoding="utf-8")
    settings = config.loadConfig(cfg)
    assert settings["db_file"] == Path("/srv/blog/blog.db")
    assert settings["log_level"] == "DEBUG"
    assert settings["admin_token"] == "t0k"
    assert "unrelated" not in settings


def test_config_must_be_a_mapping(tmp_path):
    cfg = tmp_path / "blog.yaml"
    cfg.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        config.loadConfig(cfg)


def test_store_that_cannot_open_ends_the_process(tmp_path):
    with pytest.raises(SystemExit) as exc:
        openStore({"db_file": tmp_path})
    assert exc.value.code == 1


def test_setup_logging_quiets_werkzeug():
    setupLogging("debug")
    assert logging.getLogger("werkzeug").level == logging.ERROR
