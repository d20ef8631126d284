"""Tests for configuration validation and structured logging."""

import json
import logging

import pytest

from config import Config
from conftest import make_config
from utils.logger import JSONFormatter, setup_logging


def test_missing_supabase_settings_are_listed():
    with pytest.raises(ValueError) as exc:
        Config(supabase_url="", supabase_key="")
    assert "SUPABASE_URL" in str(exc.value)
    assert "SUPABASE_KEY" in str(exc.value)


def test_retention_must_be_positive():
    with pytest.raises(ValueError):
        make_config(retention_days=0)


def test_tournament_ids_from_env(monkeypatch):
    monkeypatch.setenv("TOURNAMENT_IDS", "ti2025, riyadh ,")
    assert make_config(tournament_ids=[]).tournament_ids == ["ti2025", "riyadh"]


def test_json_formatter_includes_extra():
    record = logging.LogRecord("refresh.matches", logging.INFO, __file__, 1,
                               "Ingest cycle complete", None, None)
    record.fetched = 3
    data = json.loads(JSONFormatter().format(record))
    assert data["message"] == "Ingest cycle complete"
    assert data["level"] == "INFO"
    assert data["fetched"] == 3


def test_setup_logging_writes_file(tmp_path):
    log_file = tmp_path / "logs" / "refresh.log"
    setup_logging(make_config(log_format="json", log_level="INFO"), log_file=log_file)
    try:
        logging.getLogger("test").info("hello", extra={"tid": "T"})
        for handler in logging.getLogger().handlers:
            handler.flush()
        line = json.loads(log_file.read_text().strip().splitlines()[-1])
        assert line["tid"] == "T"
    finally:
        for handler in list(logging.getLogger().handlers):
            handler.close()
        logging.getLogger().handlers.clear()
