"""
Tests for structured logging setup
"""

import json
import sys
import logging

from bank_ledger.logging_config import JSONFormatter, setup_logging, log_action


class ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


class TestJSONFormatter:
    """Test JSON log line rendering"""

    def test_structured_fields(self):
        record = logging.LogRecord(
            "bank_ledger.accounts", logging.INFO, __file__, 1,
            "Transaction added", (), None
        )
        record.user_id = "alice"
        record.action = "transaction_added"

        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["message"] == "Transaction added"
        assert entry["user_id"] == "alice"
        assert entry["action"] == "transaction_added"
        assert "resource" not in entry

    def test_exception_info(self):
        try:
            raise RuntimeError("connection lost")
        except RuntimeError:
            record = logging.LogRecord(
                "bank_ledger", logging.ERROR, __file__, 1,
                "Error retrieving account", (), sys.exc_info()
            )

        entry = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: connection lost" in entry["exception"]


class TestSetupLogging:
    """Test logger configuration"""

    def test_json_handler(self):
        logger = setup_logging("DEBUG", logger_name="bank_ledger_test_json")
        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.propagate is False

    def test_text_handler_replaces_previous(self):
        setup_logging("INFO", logger_name="bank_ledger_test_text")
        logger = setup_logging("WARNING", logger_name="bank_ledger_test_text", fmt="text")

        assert len(logger.handlers) == 1
        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.WARNING

    def test_log_action_fields(self):
        logger = logging.getLogger("bank_ledger_test_action")
        logger.setLevel(logging.INFO)
        handler = ListHandler()
        logger.addHandler(handler)

        log_action(logger, "info", "Account created", user_id="alice",
                   action="account_created", extra={"balance": 0.0})

        record = handler.records[0]
        assert record.getMessage() == "Account created"
        assert record.user_id == "alice"
        assert record.action == "account_created"
        assert record.extra == {"balance": 0.0}
        logger.removeHandler(handler)
