"""
Tests for environment configuration and structured logging
"""

import json
import logging
import sys
import pytest
from decimal import Decimal
from pydantic import ValidationError

from bank_ledger import config as config_module
from bank_ledger.config import BankLedgerConfig, get_config, reload_config
from bank_ledger.logging_config import JSONFormatter, get_logger, log_action, setup_logging


class ListHandler(logging.Handler):
    """Collects formatted records"""

    def __init__(self):
        super().__init__()
        self.setFormatter(JSONFormatter())
        self.lines = []

    def emit(self, record):
        self.lines.append(self.format(record))


class TestConfig:
    """Test BankLedgerConfig"""

    def test_defaults(self, monkeypatch):
        for name in ("DATABASE_URL", "LOCK_TIMEOUT_SECONDS", "ACCOUNT_ID_START"):
            monkeypatch.delenv(f"BANK_LEDGER_{name}", raising=False)
        config = BankLedgerConfig(_env_file=None)

        assert config.database_url == "memory://"
        assert config.accounts_table == "accounts"
        assert config.lock_timeout_seconds is None
        assert config.account_id_start == 1000
        assert config.overdraft_limit == Decimal('1000.00')
        assert config.log_format == "json"

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("BANK_LEDGER_DATABASE_URL", "sqlite://")
        monkeypatch.setenv("BANK_LEDGER_LOCK_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("bank_ledger_account_id_start", "5000")

        config = BankLedgerConfig(_env_file=None)

        assert config.database_url == "sqlite://"
        assert config.lock_timeout_seconds == 2.5
        assert config.account_id_start == 5000

    def test_rejects_negative_timeout(self):
        with pytest.raises(ValidationError):
            BankLedgerConfig(lock_timeout_seconds=-1)

    def test_rejects_zero_poll_interval(self):
        with pytest.raises(ValidationError):
            BankLedgerConfig(lock_poll_interval=0)

    @pytest.mark.parametrize("limit", ["0", "-50", "abc", "Infinity"])
    def test_rejects_bad_overdraft_limit(self, limit):
        with pytest.raises(ValidationError):
            BankLedgerConfig(default_overdraft_limit=limit)

    def test_reload_config(self, monkeypatch):
        original = get_config()
        monkeypatch.setenv("BANK_LEDGER_DEFAULT_OVERDRAFT_LIMIT", "250")
        try:
            reloaded = reload_config()
            assert reloaded is get_config()
            assert reloaded is not original
            assert get_config().overdraft_limit == Decimal('250')
        finally:
            config_module.config = original


class TestJSONFormatter:
    """Test the structured log output"""

    def make_record(self, **attrs):
        record = logging.LogRecord(
            "bank_ledger.test", logging.INFO, __file__, 1, "Account created", (), None
        )
        for key, value in attrs.items():
            setattr(record, key, value)
        return record

    def test_fields(self):
        record = self.make_record(
            action="account_created", resource="account:1001", extra={"variant": "standard"}
        )

        entry = json.loads(JSONFormatter().format(record))

        assert entry["level"] == "INFO"
        assert entry["logger"] == "bank_ledger.test"
        assert entry["message"] == "Account created"
        assert entry["action"] == "account_created"
        assert entry["resource"] == "account:1001"
        assert entry["extra"] == {"variant": "standard"}
        assert "timestamp" in entry

    def test_omits_missing_fields(self):
        entry = json.loads(JSONFormatter().format(self.make_record()))
        assert "action" not in entry
        assert "resource" not in entry
        assert "extra" not in entry

    def test_decimal_values_serialized(self):
        record = self.make_record(extra={"balance": Decimal('12.50')})
        entry = json.loads(JSONFormatter().format(record))
        assert entry["extra"]["balance"] == "12.50"

    def test_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self.make_record(exc_info=sys.exc_info())
        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in entry["exception"]


class TestLogging:
    """Test setup_logging and log_action"""

    def setup_method(self):
        """Set up test fixtures"""
        self.logger = get_logger("bank_ledger.test_logging")
        self.handler = ListHandler()

    def teardown_method(self):
        for handler in self.logger.handlers[:]:
            self.logger.removeHandler(handler)

    def test_setup_logging_json(self, capsys):
        logger = setup_logging("DEBUG", "json", logger_name="bank_ledger.test_logging")

        assert logger is self.logger
        assert logger.level == logging.DEBUG
        assert not logger.propagate

        logger.debug("hello")
        entry = json.loads(capsys.readouterr().err.strip())
        assert entry["message"] == "hello"

    def test_setup_logging_text(self, capsys):
        logger = setup_logging("INFO", "text", logger_name="bank_ledger.test_logging")
        logger.info("plain line")
        line = capsys.readouterr().err.strip()
        assert "| INFO     | bank_ledger.test_logging | plain line" in line

    def test_setup_logging_replaces_handlers(self):
        setup_logging(logger_name="bank_ledger.test_logging")
        setup_logging(logger_name="bank_ledger.test_logging")
        assert len(self.logger.handlers) == 1

    def test_log_action(self):
        setup_logging("INFO", logger_name="bank_ledger.test_logging")
        self.logger.addHandler(self.handler)

        log_action(
            self.logger, "warning", "Authentication failed",
            action="authentication_failed", resource="account:1001", extra={"attempt": 1}
        )

        entry = json.loads(self.handler.lines[-1])
        assert entry["level"] == "WARNING"
        assert entry["action"] == "authentication_failed"
        assert entry["resource"] == "account:1001"
        assert entry["extra"] == {"attempt": 1}

    def test_log_action_respects_level(self):
        setup_logging("ERROR", logger_name="bank_ledger.test_logging")
        self.logger.addHandler(self.handler)

        log_action(self.logger, "info", "Loaded 3 accounts", action="load_accounts")

        assert self.handler.lines == []
