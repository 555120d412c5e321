"""Tests for settings loading."""

import pytest

from payroll_settlement.config import Settings, _parse_states
from payroll_settlement.services.state_machine import CompensationStatus


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in (
            "ALLOWED_SIGNING_STATES",
            "DEFAULT_CURRENCY",
            "IDEMPOTENCY_CODE_PREFIX",
            "LEDGER_CATEGORY_NAME",
            "LOG_LEVEL",
            "STORE_TIMEOUT_SECONDS",
        ):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.setattr("payroll_settlement.config.load_dotenv", lambda: None)

        settings = Settings.from_env()

        assert settings.allowed_signing_states == frozenset(CompensationStatus)
        assert settings.default_currency == "TRY"
        assert settings.ledger_category_name == "Personnel Expenses"
        assert settings.idempotency_code_prefix == "PAY"
        assert settings.store_timeout_seconds == 10.0
        assert settings.log_level == "INFO"

    def test_from_env(self, monkeypatch):
        monkeypatch.setattr("payroll_settlement.config.load_dotenv", lambda: None)
        monkeypatch.setenv("ALLOWED_SIGNING_STATES", "approved, paid")
        monkeypatch.setenv("DEFAULT_CURRENCY", "EUR")
        monkeypatch.setenv("STORE_TIMEOUT_SECONDS", "0")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("PORT", "9001")

        settings = Settings.from_env()

        assert settings.allowed_signing_states == {
            CompensationStatus.APPROVED,
            CompensationStatus.PAID,
        }
        assert settings.default_currency == "EUR"
        assert settings.store_timeout_seconds == 0.0
        assert settings.log_level == "DEBUG"
        assert settings.port == 9001


class TestParseStates:
    def test_blank_means_all(self):
        assert _parse_states("  ") == frozenset(CompensationStatus)
        assert _parse_states(None) == frozenset(CompensationStatus)

    def test_case_insensitive(self):
        assert _parse_states("DRAFT,Approved") == {
            CompensationStatus.DRAFT,
            CompensationStatus.APPROVED,
        }

    def test_unknown_state_fails(self):
        with pytest.raises(ValueError, match="archived"):
            _parse_states("draft,archived")
