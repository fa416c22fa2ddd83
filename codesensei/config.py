"""Configuration for the CodeSensei analysis pipeline."""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Server Config ────────────────────────────────────────────────────────────
SERVER_NAME = "codesensei-mcp"
SERVER_VERSION = "0.3.0"
SERVER_HOST = "127.0.0.1"
SERVER_PORT = 8088

# ── Bedrock Config ───────────────────────────────────────────────────────────
BEDROCK_PROFILE: Optional[str] = None  # None = default credential chain
BEDROCK_REGION = "us-east-1"
BEDROCK_MODEL_ID = "anthropic.claude-3-5-sonnet-20240620-v1:0"
BEDROCK_MAX_TOKENS = 4000
BEDROCK_TEMPERATURE = 0.7
BEDROCK_ANTHROPIC_VERSION = "bedrock-2023-05-31"

# ── Retry Policy ─────────────────────────────────────────────────────────────
# Timeout is armed per attempt, so three timeouts can stack to ~90s.
REQUEST_TIMEOUT_SECONDS = 30
MAX_ATTEMPTS = 3
BACKOFF_BASE_MS = 1000
BACKOFF_MAX_MS = 4000

# ── Token Budget ─────────────────────────────────────────────────────────────
# ~4 chars per token for the Claude model family
CHARS_PER_TOKEN = 4
# Above this the full file is replaced by a window around the selection
FALLBACK_TOKEN_THRESHOLD = 80_000
# Even a windowed request is rejected above this
HARD_TOKEN_CEILING = 100_000
# Lines of padding kept on each side of the selection in local mode
CONTEXT_BUFFER_LINES = 50

# ── Request Limits ───────────────────────────────────────────────────────────
MAX_CODE_BYTES = 5 * 1024 * 1024
MAX_PROMPT_LENGTH = 5000
MAX_HISTORY_ITEMS = 10

_ENV_PREFIX = "CODESENSEI_"


class PipelineConfig(BaseSettings):
    """Every tunable the pipeline reads, built once at process start.

    Fields can be overridden with CODESENSEI_* environment variables named
    after the field, e.g. CODESENSEI_MODEL_ID or CODESENSEI_MAX_ATTEMPTS.
    Malformed values fail validation at start-up, not mid-request.
    """

    model_config = SettingsConfigDict(
        env_prefix=_ENV_PREFIX,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        protected_namespaces=(),
    )

    model_id: str = BEDROCK_MODEL_ID
    region: str = BEDROCK_REGION
    aws_profile: Optional[str] = BEDROCK_PROFILE
    max_output_tokens: int = BEDROCK_MAX_TOKENS
    temperature: float = BEDROCK_TEMPERATURE
    request_timeout_seconds: float = REQUEST_TIMEOUT_SECONDS
    max_attempts: int = MAX_ATTEMPTS
    backoff_base_ms: int = BACKOFF_BASE_MS
    backoff_max_ms: int = BACKOFF_MAX_MS
    fallback_token_threshold: int = FALLBACK_TOKEN_THRESHOLD
    hard_token_ceiling: int = HARD_TOKEN_CEILING
    context_buffer_lines: int = CONTEXT_BUFFER_LINES
    max_code_bytes: int = MAX_CODE_BYTES
    max_prompt_length: int = MAX_PROMPT_LENGTH
    max_history_items: int = MAX_HISTORY_ITEMS
    server_host: str = SERVER_HOST
    server_port: int = SERVER_PORT

    @model_validator(mode="after")
    def _check_consistency(self) -> PipelineConfig:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.fallback_token_threshold > self.hard_token_ceiling:
            raise ValueError(
                "fallback_token_threshold must not exceed hard_token_ceiling"
            )
        if self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be positive")
        return self

    def limits(self) -> dict:
        """Budget settings that are safe to show to callers."""
        return self.model_dump(
            include={
                "fallback_token_threshold",
                "hard_token_ceiling",
                "context_buffer_lines",
                "max_code_bytes",
                "max_prompt_length",
                "max_history_items",
                "max_output_tokens",
                "max_attempts",
            }
        )
