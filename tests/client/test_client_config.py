"""
Unit Tests for ClientConfig

Tests for credential parsing and environment loading.
"""

import pytest

from question_toolkit.client.config import PLACEHOLDER_KEY, ClientConfig, parse_api_keys
from question_toolkit.common.errors import ConfigurationError


class TestParseApiKeys:
    """Tests for parse_api_keys()."""

    def test_parse_api_keys_when_single_key_then_one_key(self):
        assert parse_api_keys("abc") == ("abc",)

    def test_parse_api_keys_when_comma_separated_then_split_and_stripped(self):
        assert parse_api_keys(" k1 , k2,, ") == ("k1", "k2")

    def test_parse_api_keys_when_json_array_then_parsed(self):
        assert parse_api_keys('["k1", "k2"]') == ("k1", "k2")

    def test_parse_api_keys_when_placeholder_then_dropped(self):
        assert parse_api_keys(PLACEHOLDER_KEY) == ()

    def test_parse_api_keys_when_empty_then_no_keys(self):
        assert parse_api_keys("") == ()
        assert parse_api_keys(None) == ()


class TestClientConfig:
    """Tests for ClientConfig construction."""

    def test_init_when_no_keys_then_raises_configuration_error(self):
        with pytest.raises(ConfigurationError, match="GEMINI_API_KEY"):
            ClientConfig(api_keys=())

    def test_init_when_keys_given_as_string_then_parsed(self):
        config = ClientConfig(api_keys="k1,k2")
        assert config.api_keys == ("k1", "k2")

    def test_init_when_negative_retries_then_raises(self):
        with pytest.raises(ConfigurationError, match="max_retries"):
            ClientConfig(api_keys=("k",), max_retries=-1)

    def test_from_env_when_defaults_then_documented_values(self):
        config = ClientConfig.from_env({"GEMINI_API_KEY": "secret"})
        assert config.extraction_model == "gemini-2.5-flash"
        assert config.localization_model == "gemini-2.5-pro"
        assert config.generation_model == "gemini-2.5-flash"
        assert config.timeout_ms == 360_000
        assert config.retry_base_delay_s == 2.0
        assert config.max_retries == 3

    def test_from_env_when_overrides_then_applied(self):
        config = ClientConfig.from_env({
            "GEMINI_API_KEY": '["a", "b"]',
            "GEMINI_LOCALIZATION_MODEL": "vision-x",
            "GEMINI_REQUEST_TIMEOUT_MS": "1000",
            "GEMINI_MAX_RETRIES": "5",
        })
        assert config.api_keys == ("a", "b")
        assert config.localization_model == "vision-x"
        assert config.timeout_s == 1.0
        assert config.max_retries == 5

    def test_from_env_when_numeric_malformed_then_raises(self):
        with pytest.raises(ConfigurationError, match="GEMINI_MAX_RETRIES"):
            ClientConfig.from_env({"GEMINI_API_KEY": "k", "GEMINI_MAX_RETRIES": "three"})

    def test_repr_when_keys_set_then_keys_hidden(self):
        config = ClientConfig(api_keys=("super-secret-key",))
        assert "super-secret-key" not in repr(config)
        assert "keys=1" in repr(config)
