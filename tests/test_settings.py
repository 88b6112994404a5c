"""Tests for settings and logging configuration."""

import sys
import os
import io
import json
import logging
from decimal import Decimal

import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from exceptions import ConfigurationError
from log_config import JsonFormatter, setup_logging
from settings import ChargebackPolicy, LedgerSettings, parse_chargeback_policy, quantum_for


class TestLedgerSettings:
    def test_default_values(self):
        settings = LedgerSettings()

        assert settings.precision == 4
        assert settings.chargeback_policy == ChargebackPolicy.TRUST
        assert settings.shards == 1
        assert settings.log_level == "WARNING"
        assert settings.log_format == "standard"
        assert settings.quantum == Decimal("0.0001")

    @pytest.mark.parametrize("kwargs", [
        {"precision": -1},
        {"precision": 19},
        {"shards": 0},
        {"log_level": "LOUD"},
        {"log_format": "xml"},
    ])
    def test_invalid_values(self, kwargs):
        with pytest.raises(ConfigurationError):
            LedgerSettings(**kwargs)

    def test_from_env(self):
        settings = LedgerSettings.from_env({
            "LEDGER_PRECISION": "2",
            "LEDGER_CHARGEBACK_POLICY": "Revalidate",
            "LEDGER_SHARDS": "4",
            "LEDGER_LOG_LEVEL": "debug",
            "LEDGER_LOG_FORMAT": "json",
        })

        assert settings.precision == 2
        assert settings.chargeback_policy == ChargebackPolicy.REVALIDATE
        assert settings.shards == 4
        assert settings.log_level == "debug"
        assert settings.log_format == "json"

    def test_from_env_defaults(self):
        assert LedgerSettings.from_env({}) == LedgerSettings()

    def test_from_env_invalid_integer(self):
        with pytest.raises(ConfigurationError):
            LedgerSettings.from_env({"LEDGER_SHARDS": "many"})

    def test_from_env_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("LEDGER_SHARDS", "3")
        assert LedgerSettings.from_env().shards == 3

    def test_parse_chargeback_policy(self):
        assert parse_chargeback_policy(" TRUST ") == ChargebackPolicy.TRUST
        with pytest.raises(ConfigurationError):
            parse_chargeback_policy("maybe")

    def test_quantum_for(self):
        assert quantum_for(0) == Decimal("1")
        assert quantum_for(2) == Decimal("0.01")


class TestSetupLogging:
    def test_standard_format(self):
        stream = io.StringIO()
        setup_logging("INFO", "standard", stream=stream)

        logging.getLogger("ledger_engine").info("hello")

        assert stream.getvalue() == "INFO: hello\n"

    def test_level_filters(self):
        stream = io.StringIO()
        setup_logging("WARNING", stream=stream)

        logging.getLogger("ledger_engine").info("quiet")
        logging.getLogger("ledger_engine").warning("loud")

        assert stream.getvalue() == "WARNING: loud\n"

    def test_replaces_existing_handlers(self):
        setup_logging("INFO", stream=io.StringIO())
        setup_logging("INFO", stream=io.StringIO())
        assert len(logging.getLogger().handlers) == 1

    def test_json_format(self):
        stream = io.StringIO()
        setup_logging("INFO", "json", stream=stream)

        logging.getLogger("csv_source").warning("bad line")

        data = json.loads(stream.getvalue())
        assert data["level"] == "WARNING"
        assert data["logger"] == "csv_source"
        assert data["message"] == "bad line"
        assert "timestamp" in data


class TestJsonFormatter:
    def test_includes_exception(self):
        formatter = JsonFormatter()
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord("test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())

        data = json.loads(formatter.format(record))
        assert data["message"] == "failed"
        assert "ValueError: boom" in data["exception"]
