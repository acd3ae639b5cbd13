"""Tests for benchmark configuration loading and validation."""

import pytest

from ait.config import ConfigurationError, load_config, provider_env


class TestLoadConfig:
    def test_defaults(self, clean_env):
        """Config loads with sane defaults when no env vars set."""
        config = load_config()
        assert config.protocol == ""
        assert config.base_url == ""
        assert config.model == ""
        assert config.concurrency == 3
        assert config.count == 10
        assert config.timeout_s == 300.0
        assert config.max_tokens == 4096
        assert config.stream is True
        assert config.log_level == "INFO"

    def test_custom_env_vars(self, clean_env):
        """Config reads from environment variables."""
        clean_env.setenv("AIT_MODEL", "gpt-4o-mini")
        clean_env.setenv("AIT_CONCURRENCY", "16")
        clean_env.setenv("AIT_COUNT", "200")
        clean_env.setenv("AIT_TIMEOUT_S", "12.5")
        clean_env.setenv("AIT_STREAM", "false")
        clean_env.setenv("LOG_LEVEL", "DEBUG")

        config = load_config()
        assert config.model == "gpt-4o-mini"
        assert config.concurrency == 16
        assert config.count == 200
        assert config.timeout_s == 12.5
        assert config.stream is False
        assert config.log_level == "DEBUG"

    def test_openai_credentials_detected(self, clean_env):
        clean_env.setenv("OPENAI_BASE_URL", "https://api.openai.test/v1")
        clean_env.setenv("OPENAI_API_KEY", "sk-openai")

        config = load_config()
        assert config.protocol == "openai"
        assert config.base_url == "https://api.openai.test/v1"
        assert config.api_key == "sk-openai"

    def test_anthropic_credentials_detected(self, clean_env):
        clean_env.setenv("ANTHROPIC_BASE_URL", "https://api.anthropic.test")
        clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant")

        config = load_config()
        assert config.protocol == "anthropic"
        assert config.api_key == "sk-ant"

    def test_explicit_protocol_wins(self, clean_env):
        clean_env.setenv("OPENAI_API_KEY", "sk-openai")
        clean_env.setenv("ANTHROPIC_API_KEY", "sk-ant")
        clean_env.setenv("AIT_PROTOCOL", "Anthropic")

        config = load_config()
        assert config.protocol == "anthropic"
        assert config.api_key == "sk-ant"

    def test_invalid_int_raises(self, clean_env):
        """Non-integer value for int config raises RuntimeError."""
        clean_env.setenv("AIT_CONCURRENCY", "not_a_number")
        with pytest.raises(RuntimeError, match="Invalid integer"):
            load_config()

    def test_invalid_float_raises(self, clean_env):
        clean_env.setenv("AIT_TIMEOUT_S", "soon")
        with pytest.raises(RuntimeError, match="Invalid float"):
            load_config()

    def test_invalid_bool_raises(self, clean_env):
        clean_env.setenv("AIT_STREAM", "maybe")
        with pytest.raises(RuntimeError, match="Invalid boolean"):
            load_config()

    def test_provider_env_unknown_protocol(self, clean_env):
        assert provider_env("gemini") == ("", "")


class TestValidate:
    def test_valid_config(self, make_config):
        make_config().validate()

    @pytest.mark.parametrize(
        ("overrides", "message"),
        [
            ({"protocol": "gemini"}, "Unsupported protocol"),
            ({"base_url": ""}, "base URL"),
            ({"api_key": ""}, "API key"),
            ({"model": ""}, "model name"),
            ({"concurrency": 0}, "Concurrency"),
            ({"count": 0}, "Count"),
            ({"timeout_s": 0}, "Timeout"),
            ({"prompt_source": None}, "prompt source"),
        ],
    )
    def test_invalid_config(self, make_config, overrides, message):
        with pytest.raises(ConfigurationError, match=message):
            make_config(**overrides).validate()

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)
