"""
Tests for configuration, structured logging and currency helpers
"""

import json
import logging
import pytest

from loan_servicing import config as config_module
from loan_servicing.config import LoanServicingConfig, get_config, reload_config
from loan_servicing.currency import Currency, validate_currency_code, format_minor_units
from loan_servicing.exceptions import UnsupportedCurrencyError
from loan_servicing.logging_config import (
    JSONFormatter, setup_logging, get_logger, log_action
)
from loan_servicing.service import LoanService
from loan_servicing.storage import InMemoryStorage


class TestConfig:
    """Test environment-driven configuration"""

    def test_defaults(self):
        """Test default configuration values"""
        config = LoanServicingConfig()
        assert config.database_url == "memory://"
        assert config.log_level == "INFO"
        assert config.log_format == "json"
        assert config.default_currency == "TRY"
        assert "TRY" in config.supported_currencies

    def test_environment_override(self, monkeypatch):
        """Test LOAN_SERVICING_ variables override defaults"""
        monkeypatch.setenv("LOAN_SERVICING_DATABASE_URL", "sqlite://")
        monkeypatch.setenv("LOAN_SERVICING_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOAN_SERVICING_DEFAULT_CURRENCY", "EUR")
        monkeypatch.setenv("LOAN_SERVICING_SUPPORTED_CURRENCIES", '["EUR"]')

        config = LoanServicingConfig()
        assert config.database_url == "sqlite://"
        assert config.log_level == "DEBUG"
        assert config.default_currency == "EUR"
        assert config.supported_currencies == ["EUR"]

    def test_reload_config(self, monkeypatch):
        """Test reload_config picks up new environment values"""
        original = get_config()
        monkeypatch.setenv("LOAN_SERVICING_LOG_FORMAT", "text")
        try:
            reloaded = reload_config()
            assert reloaded.log_format == "text"
            assert get_config() is reloaded
        finally:
            config_module.config = original


class TestStructuredLogging:
    """Test JSON log formatting and helpers"""

    def teardown_method(self):
        """Detach handlers installed by setup_logging"""
        for name in ("loan_servicing_test", "loan_servicing"):
            logger = logging.getLogger(name)
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
            logger.propagate = True
            logger.setLevel(logging.NOTSET)

    def test_json_formatter(self):
        """Test records render as JSON without empty fields"""
        logger = get_logger("loan_servicing_test")
        record = logger.makeRecord(
            logger.name, logging.INFO, __file__, 1, "Loan created", (), None
        )
        record.loan_id = "LOAN001"
        record.extra = {"amount": 5000}

        entry = json.loads(JSONFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["message"] == "Loan created"
        assert entry["loan_id"] == "LOAN001"
        assert entry["extra"] == {"amount": 5000}
        assert "action" not in entry
        assert "timestamp" in entry

    def test_setup_logging_json(self):
        """Test setup_logging installs a single JSON handler"""
        logger = setup_logging("DEBUG", logger_name="loan_servicing_test")
        setup_logging("DEBUG", logger_name="loan_servicing_test")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.DEBUG
        assert logger.propagate is False

    def test_setup_logging_text(self):
        """Test text format uses a plain formatter"""
        logger = setup_logging("WARNING", logger_name="loan_servicing_test", log_format="text")

        assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert logger.level == logging.WARNING

    def test_log_action_attaches_fields(self, caplog):
        """Test log_action puts structured fields on the record"""
        logger = get_logger("loan_servicing_test")
        with caplog.at_level(logging.INFO, logger="loan_servicing_test"):
            log_action(
                logger, "info", "Repayment received", action="repay_loan",
                loan_id="LOAN001", resource="received_repayment:RR1",
                extra={"amount": 1666}
            )

        record = caplog.records[-1]
        assert record.getMessage() == "Repayment received"
        assert record.action == "repay_loan"
        assert record.loan_id == "LOAN001"
        assert record.resource == "received_repayment:RR1"
        assert record.extra == {"amount": 1666}

    def test_service_from_config(self):
        """Test building a service from configuration"""
        config = LoanServicingConfig(
            database_url="memory://", supported_currencies=["EUR"], log_level="WARNING",
            default_currency="EUR"
        )
        service = LoanService.from_config(config)

        assert isinstance(service.storage, InMemoryStorage)
        assert service.supported_currencies == ["EUR"]
        assert service.default_currency == "EUR"
        assert logging.getLogger("loan_servicing").level == logging.WARNING


class TestCurrency:
    """Test currency code handling"""

    def test_from_code(self):
        """Test lookup is case-insensitive"""
        assert Currency.from_code("try") is Currency.TRY
        assert Currency.from_code("EUR").precision == 2
        assert Currency.JPY.precision == 0

    @pytest.mark.parametrize("code", ["XYZ", "", None])
    def test_unknown_code(self, code):
        """Test unknown codes raise UnsupportedCurrencyError"""
        with pytest.raises(UnsupportedCurrencyError):
            Currency.from_code(code)

    def test_validate_against_allow_list(self):
        """Test configured allow-lists restrict accepted codes"""
        assert validate_currency_code("eur", ["EUR", "TRY"]) == "EUR"
        with pytest.raises(UnsupportedCurrencyError, match="not enabled"):
            validate_currency_code("USD", ["EUR", "TRY"])

    def test_format_minor_units(self):
        """Test minor-unit amounts render in major units"""
        assert format_minor_units(166600, "TRY") == "TRY 1,666.00"
        assert format_minor_units(5, "EUR") == "EUR 0.05"
        assert format_minor_units(5000, "JPY") == "JPY 5,000"


if __name__ == "__main__":
    pytest.main([__file__])
