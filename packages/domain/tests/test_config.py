"""Tests for EngineSettings loading."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from liquidation_domain.config import EngineSettings, get_settings


def test_defaults():
    settings = EngineSettings(_env_file=None)

    assert settings.interest_day_count_basis == Decimal("365.25")
    assert settings.default_stacking == "reverse_issuance"
    assert settings.convertible_seniority_rank is None
    assert settings.max_conversion_iterations == 10


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("LIQUIDATION_DEFAULT_STACKING", "pari_passu")
    monkeypatch.setenv("LIQUIDATION_CONVERTIBLE_SENIORITY_RANK", "2")
    monkeypatch.setenv("LIQUIDATION_INTEREST_DAY_COUNT_BASIS", "365")

    settings = EngineSettings(_env_file=None)

    assert settings.default_stacking == "pari_passu"
    assert settings.convertible_seniority_rank == 2
    assert settings.interest_day_count_basis == Decimal("365")


def test_invalid_stacking_rejected(monkeypatch):
    monkeypatch.setenv("LIQUIDATION_DEFAULT_STACKING", "newest_last")

    with pytest.raises(ValidationError):
        EngineSettings(_env_file=None)


def test_get_settings_is_cached():
    get_settings.cache_clear()
    try:
        assert get_settings() is get_settings()
    finally:
        get_settings.cache_clear()
