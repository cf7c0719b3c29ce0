"""Tests for persevere.core.config module."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from persevere.core.config import LogConfig, ResilienceConfig, RetryPolicy
from persevere.core.constants import (
    DEFAULT_BASE_DELAY_SECONDS,
    DEFAULT_MAX_RETRIES,
    FALLBACK_CACHE_MAX_AGE_SECONDS,
)
from persevere.core.errors import ConfigurationError


class TestRetryPolicy:
    """Tests for RetryPolicy."""

    def test_defaults(self) -> None:
        policy = RetryPolicy()

        assert policy.max_retries == DEFAULT_MAX_RETRIES
        assert policy.base_delay_seconds == DEFAULT_BASE_DELAY_SECONDS
        assert policy.max_delay_seconds is None
        assert policy.jitter_factor == 0.0
        assert policy.fallback_factory is None
        assert policy.use_cached_fallback is False
        assert policy.has_fallback is False

    def test_default_tolerates_two_retries(self) -> None:
        assert RetryPolicy().max_retries >= 2

    def test_zero_retries_allowed(self) -> None:
        assert RetryPolicy(max_retries=0).max_retries == 0

    def test_negative_retries_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(max_retries=-1)

    def test_negative_delay_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(base_delay_seconds=-0.5)

    def test_base_delay_above_cap_rejected(self) -> None:
        with pytest.raises(ValidationError, match="must not exceed"):
            RetryPolicy(base_delay_seconds=10.0, max_delay_seconds=5.0)

    def test_jitter_range(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(jitter_factor=1.1)

    def test_immutable(self) -> None:
        policy = RetryPolicy()
        with pytest.raises(ValidationError):
            policy.max_retries = 5  # type: ignore[misc]

    def test_fallback_presence(self) -> None:
        assert RetryPolicy(fallback_value="fallback").has_fallback is True
        assert RetryPolicy(fallback_value="fallback").fallback_value == "fallback"

    def test_explicit_none_fallback_counts_as_present(self) -> None:
        policy = RetryPolicy(fallback_value=None)
        assert policy.has_fallback is True
        assert policy.fallback_value is None

    def test_fallback_factory_must_be_callable(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(fallback_factory="not callable")

    def test_with_overrides_keeps_fallback(self) -> None:
        policy = RetryPolicy(fallback_value=None, max_retries=1)
        updated = policy.with_overrides(base_delay_seconds=0.01)

        assert updated.has_fallback is True
        assert updated.max_retries == 1
        assert updated.base_delay_seconds == 0.01
        assert policy.base_delay_seconds == DEFAULT_BASE_DELAY_SECONDS

    def test_with_overrides_validates(self) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy().with_overrides(max_retries=-3)


class TestLogConfig:
    def test_defaults(self) -> None:
        config = LogConfig()
        assert config.level == "INFO"
        assert config.format == "console"
        assert config.file_path is None

    def test_both_requires_file_path(self) -> None:
        with pytest.raises(ValidationError, match="file_path is required"):
            LogConfig(format="both")

    def test_both_with_file_path(self, tmp_path: Path) -> None:
        config = LogConfig(format="both", file_path=tmp_path / "persevere.log")
        assert config.file_path == tmp_path / "persevere.log"


class TestResilienceConfig:
    def test_defaults(self) -> None:
        config = ResilienceConfig()

        assert config.default_policy() == RetryPolicy()
        assert config.logging.level == "INFO"
        assert config.fallback_cache_max_age_seconds == FALLBACK_CACHE_MAX_AGE_SECONDS

    def test_from_yaml_string(self) -> None:
        config = ResilienceConfig.from_yaml_string(
            """
            defaults:
              max_retries: 5
              base_delay_seconds: 0.5
              fallback_value: []
            logging:
              level: DEBUG
              format: json
            fallback_cache_max_age_seconds: 120
            """
        )

        policy = config.default_policy()
        assert policy.max_retries == 5
        assert policy.base_delay_seconds == 0.5
        assert policy.has_fallback is True
        assert policy.fallback_value == []
        assert config.logging.level == "DEBUG"
        assert config.logging.format == "json"
        assert config.fallback_cache_max_age_seconds == 120

    def test_empty_document_uses_defaults(self) -> None:
        assert ResilienceConfig.from_yaml_string("") == ResilienceConfig()

    def test_from_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "resilience.yaml"
        path.write_text("defaults:\n  max_retries: 1\n")

        assert ResilienceConfig.from_yaml(path).default_policy().max_retries == 1

    def test_missing_file(self, tmp_path: Path) -> None:
        path = tmp_path / "missing.yaml"
        with pytest.raises(ConfigurationError, match="Cannot read configuration") as exc_info:
            ResilienceConfig.from_yaml(path)
        assert exc_info.value.source == path
        assert isinstance(exc_info.value.__cause__, OSError)

    def test_invalid_yaml(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            ResilienceConfig.from_yaml_string("defaults: [unclosed")

    def test_invalid_values(self) -> None:
        with pytest.raises(ConfigurationError, match="Invalid configuration") as exc_info:
            ResilienceConfig.from_yaml_string("defaults:\n  max_retries: -2\n")
        assert isinstance(exc_info.value.__cause__, ValidationError)
        assert "<string>" in str(exc_info.value)
