"""
Tests for environment configuration and structured logging
"""

import json
import logging

from bank_ledger.config import BankConfig
from bank_ledger.logging_config import JSONFormatter, log_action, setup_logging


class TestBankConfig:
    """Settings from BANK_* environment variables"""

    def test_defaults(self):
        config = BankConfig(_env_file=None)
        assert config.session_ttl_days == 7
        assert config.session_expiry_buffer_seconds == 60
        assert config.max_funding_amount == "10000.00"
        assert config.account_number_max_attempts == 5

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BANK_DATABASE_URL", "memory://")
        monkeypatch.setenv("BANK_API_PORT", "9000")
        monkeypatch.setenv("BANK_MAX_FUNDING_AMOUNT", "500.00")

        config = BankConfig(_env_file=None)
        assert config.database_url == "memory://"
        assert config.api_port == 9000
        assert config.max_funding_amount == "500.00"


class TestStructuredLogging:
    """JSON log lines carry the structured action fields"""

    def test_json_formatter(self):
        logger = logging.getLogger("bank_ledger.test")
        records = []

        class Capture(logging.Handler):
            def emit(self, record):
                records.append(record)

        handler = Capture()
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        try:
            log_action(logger, "info", "Account funded", user_id="7", action="fund_account",
                       resource="account:3", extra={"amount": 100})
        finally:
            logger.removeHandler(handler)

        entry = json.loads(JSONFormatter().format(records[0]))
        assert entry["message"] == "Account funded"
        assert entry["level"] == "INFO"
        assert entry["user_id"] == "7"
        assert entry["action"] == "fund_account"
        assert entry["resource"] == "account:3"
        assert entry["extra"] == {"amount": 100}
        assert "correlation_id" not in entry

    def test_setup_logging_to_file(self, tmp_path):
        log_file = tmp_path / "bank.log"
        logger = setup_logging("DEBUG", "json", str(log_file), logger_name="bank_ledger.filetest")
        try:
            logger.info("hello", extra={"action": "test"})
            for handler in logger.handlers:
                handler.flush()
            entry = json.loads(log_file.read_text().strip())
            assert entry["message"] == "hello"
            assert entry["action"] == "test"
        finally:
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
                handler.close()
