"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from ledgerflow.config import LedgerSettings, get_settings, validate_all_settings


class TestLedgerSettings:
    """Tests for LedgerSettings."""

    def test_defaults(self):
        settings = LedgerSettings(_env_file=None)
        assert settings.default_profile_name == "Personal"
        assert settings.fixed_payment_post_hour == 9
        assert settings.free_account_limit == 3
        assert settings.free_monthly_transaction_limit == 200
        assert settings.data_file is None

    def test_reads_prefixed_environment(self, monkeypatch):
        monkeypatch.setenv("LEDGER_FIXED_PAYMENT_POST_HOUR", "7")
        monkeypatch.setenv("LEDGER_DEFAULT_PROFILE_NAME", "Household")
        settings = LedgerSettings(_env_file=None)
        assert settings.fixed_payment_post_hour == 7
        assert settings.default_profile_name == "Household"

    def test_post_hour_out_of_range(self):
        with pytest.raises(ValidationError):
            LedgerSettings(_env_file=None, fixed_payment_post_hour=24)

    def test_missing_data_directory_warns(self, tmp_path):
        with pytest.warns(UserWarning):
            LedgerSettings(_env_file=None, data_file=str(tmp_path / "missing" / "ledger.json"))


class TestSettingsRoot:
    """Tests for get_settings and the startup check."""

    def test_cached(self):
        get_settings.cache_clear()
        assert get_settings() is get_settings()

    def test_validate_all_settings(self, monkeypatch):
        assert validate_all_settings()["ledger"] is True

        monkeypatch.setenv("LEDGER_FREE_ACCOUNT_LIMIT", "0")
        results = validate_all_settings()
        assert results["ledger"] is False
        assert "ledger_error" in results
