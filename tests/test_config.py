"""Tests for settings and the stock site configuration check."""

import pytest

from catalog_pipeline.config import ConfigurationError, Settings, sanitize_env_value


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_sanitize_env_value():
    """Test quote stripping on env values."""
    assert sanitize_env_value('  "https://stock.example.com";  ') == "https://stock.example.com"
    assert sanitize_env_value("`#ItemCode`") == "#ItemCode"


def test_stock_site_lists_missing_keys():
    """Test stock site config errors name every missing key."""
    with pytest.raises(ConfigurationError) as exc_info:
        _settings(
            stock_base_url="https://stock.example.com",
            stock_check_path="/check_stock.php",
            stock_search_selector="#ItemCode",
            stock_results_row_selector="#listDiv tr",
            stock_username="",
            stock_password="",
        ).stock_site()

    assert exc_info.value.missing == ["STOCK_USERNAME", "STOCK_PASSWORD"]


def test_stock_site_builds_config_with_defaults():
    """Test stock site config defaults."""
    config = _settings(
        stock_base_url="'https://stock.example.com/'",
        stock_check_path="/check_stock.php",
        stock_username="buyer",
        stock_password="secret",
        stock_search_selector="#ItemCode",
        stock_results_row_selector="#listDiv tr",
    ).stock_site()

    assert config.check_stock_url == "https://stock.example.com/check_stock.php"
    assert config.landing_path == "calculator.php"
    assert config.no_record_text == "----- No Record -----"


def test_openai_key_accepts_legacy_name(monkeypatch):
    """Test the legacy OPEN_API_KEY name."""
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.setenv("OPEN_API_KEY", "sk-legacy")

    assert _settings().openai_api_key == "sk-legacy"


def test_browser_timings_follow_settings():
    """Test browser timeouts come from settings."""
    timings = _settings(search_settle_timeout_ms=1000).browser_timings()

    assert timings.search_settle_timeout_ms == 1000
    assert timings.challenge_timeout_ms == 20000
