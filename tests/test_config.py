import pytest
from pydantic import ValidationError

from codesensei.config import (
    BEDROCK_MODEL_ID,
    FALLBACK_TOKEN_THRESHOLD,
    HARD_TOKEN_CEILING,
    PipelineConfig,
)


def test_defaults_match_module_constants():
    config = PipelineConfig()
    assert config.model_id == BEDROCK_MODEL_ID
    assert config.fallback_token_threshold == FALLBACK_TOKEN_THRESHOLD == 80_000
    assert config.hard_token_ceiling == HARD_TOKEN_CEILING == 100_000
    assert config.max_attempts == 3
    assert config.request_timeout_seconds == 30


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("CODESENSEI_MODEL_ID", "anthropic.claude-3-haiku")
    monkeypatch.setenv("CODESENSEI_REGION", "eu-west-1")
    monkeypatch.setenv("CODESENSEI_MAX_ATTEMPTS", "5")
    monkeypatch.setenv("CODESENSEI_REQUEST_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("CODESENSEI_SERVER_PORT", "9000")
    config = PipelineConfig()
    assert config.model_id == "anthropic.claude-3-haiku"
    assert config.region == "eu-west-1"
    assert config.max_attempts == 5
    assert config.request_timeout_seconds == 12.5
    assert config.server_port == 9000


def test_unprefixed_variables_are_ignored(monkeypatch):
    monkeypatch.setenv("MODEL_ID", "something-else")
    assert PipelineConfig().model_id == BEDROCK_MODEL_ID


def test_empty_values_keep_defaults(monkeypatch):
    monkeypatch.setenv("CODESENSEI_REGION", "")
    assert PipelineConfig().region == "us-east-1"


def test_malformed_number_fails_fast(monkeypatch):
    monkeypatch.setenv("CODESENSEI_MAX_ATTEMPTS", "three")
    with pytest.raises(ValidationError, match="max_attempts"):
        PipelineConfig()


def test_inconsistent_environment_is_rejected(monkeypatch):
    monkeypatch.setenv("CODESENSEI_FALLBACK_TOKEN_THRESHOLD", "200000")
    with pytest.raises(ValidationError, match="hard_token_ceiling"):
        PipelineConfig()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_attempts": 0},
        {"fallback_token_threshold": 200, "hard_token_ceiling": 100},
        {"request_timeout_seconds": 0},
    ],
)
def test_inconsistent_settings_are_rejected(kwargs):
    with pytest.raises(ValueError):
        PipelineConfig(**kwargs)


def test_config_is_frozen():
    config = PipelineConfig()
    with pytest.raises(ValidationError):
        config.max_attempts = 10


def test_limits_exposes_budgets_only():
    limits = PipelineConfig().limits()
    assert limits["hard_token_ceiling"] == 100_000
    assert "model_id" not in limits
    assert "aws_profile" not in limits
