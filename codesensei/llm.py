"""Bedrock inference client with classified retry and backoff."""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Union

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import (
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from codesensei.config import BEDROCK_ANTHROPIC_VERSION, PipelineConfig
from codesensei.models import AnalysisFailure, ErrorCode

logger = logging.getLogger(__name__)

# Decoded response body, or the raw text when the body was not JSON
ModelPayload = Union[dict, str]

# Bedrock error codes that mean "slow down"
THROTTLE_CODES = frozenset({"ThrottlingException", "TooManyRequestsException"})
# Bedrock error codes that mean "our side is broken, try again"
SERVER_ERROR_CODES = frozenset(
    {
        "InternalServerException",
        "ServiceUnavailableException",
        "ModelNotReadyException",
    }
)


# ── Failure classification ───────────────────────────────────────────────────


class FailureKind(str, Enum):
    TIMEOUT = "timeout"
    THROTTLED = "throttled"
    SERVER = "server"
    FATAL = "fatal"

    @property
    def retryable(self) -> bool:
        return self is not FailureKind.FATAL


_EXHAUSTED_CODES = {
    FailureKind.TIMEOUT: ErrorCode.AI_TIMEOUT,
    FailureKind.THROTTLED: ErrorCode.RATE_LIMIT_EXCEEDED,
    FailureKind.SERVER: ErrorCode.BEDROCK_UNAVAILABLE,
}

_EXHAUSTED_MESSAGES = {
    ErrorCode.AI_TIMEOUT: "The AI model did not respond in time. Please try again.",
    ErrorCode.RATE_LIMIT_EXCEEDED: "The AI service is busy. Please try again in a minute.",
    ErrorCode.BEDROCK_UNAVAILABLE: "The AI service is temporarily unavailable. Please try again later.",
}


def classify_error(exc: BaseException) -> FailureKind:
    """Decide whether a failed call is worth retrying, and why."""
    if isinstance(exc, (ReadTimeoutError, ConnectTimeoutError, TimeoutError)):
        return FailureKind.TIMEOUT

    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code", "")
        status = exc.response.get("ResponseMetadata", {}).get("HTTPStatusCode") or 0
        if status == 429 or code in THROTTLE_CODES:
            return FailureKind.THROTTLED
        if status >= 500 or code in SERVER_ERROR_CODES:
            return FailureKind.SERVER

    return FailureKind.FATAL


# ── Retry state machine ──────────────────────────────────────────────────────


class InvokerState(str, Enum):
    ATTEMPTING = "attempting"
    BACKOFF = "backoff"
    SUCCEEDED = "succeeded"
    FAILED_RETRYABLE = "failed_retryable"
    FAILED_FATAL = "failed_fatal"

    @property
    def terminal(self) -> bool:
        return self in (
            InvokerState.SUCCEEDED,
            InvokerState.FAILED_RETRYABLE,
            InvokerState.FAILED_FATAL,
        )


@dataclass(frozen=True)
class Transition:
    state: InvokerState
    delay_ms: int = 0
    error_code: Optional[ErrorCode] = None


def backoff_ms(attempt: int, base_ms: int = 1000, max_ms: int = 4000) -> int:
    """Delay after a failed ``attempt`` (1-indexed): exponential, capped."""
    return min(base_ms * 2 ** (attempt - 1), max_ms)


def transition(
    attempt: int,
    max_attempts: int,
    failure: Optional[FailureKind],
    base_ms: int = 1000,
    max_ms: int = 4000,
) -> Transition:
    """Next state after ``attempt`` finished with ``failure`` (None = success).

    Pure: no clocks, no I/O. A retryable failure backs off while attempts
    remain and ends in FAILED_RETRYABLE once they are used up. Fatal
    failures end immediately.
    """
    if failure is None:
        return Transition(InvokerState.SUCCEEDED)
    if not failure.retryable:
        return Transition(InvokerState.FAILED_FATAL)
    if attempt < max_attempts:
        return Transition(
            InvokerState.BACKOFF, delay_ms=backoff_ms(attempt, base_ms, max_ms)
        )
    return Transition(
        InvokerState.FAILED_RETRYABLE, error_code=_EXHAUSTED_CODES[failure]
    )


# ── Bedrock invoker ──────────────────────────────────────────────────────────


class ModelInvoker:
    """Sends one prompt to the configured Bedrock model.

    Owns the retry policy: botocore's own retries are disabled and each
    attempt gets a fresh read timeout, so a hung call is aborted by the
    socket timeout rather than left running.
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: Any = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._config = config
        self._client = client
        self._sleep = sleep

    def _get_client(self):
        """Lazy-init the Bedrock Runtime client."""
        if self._client is None:
            session = boto3.Session(
                profile_name=self._config.aws_profile,
                region_name=self._config.region,
            )
            self._client = session.client(
                "bedrock-runtime",
                config=BotoConfig(
                    retries={"total_max_attempts": 1, "mode": "standard"},
                    read_timeout=self._config.request_timeout_seconds,
                    connect_timeout=min(10, self._config.request_timeout_seconds),
                    tcp_keepalive=True,
                ),
            )
            logger.info(
                "Bedrock client initialized: profile=%s region=%s model=%s",
                self._config.aws_profile,
                self._config.region,
                self._config.model_id,
            )
        return self._client

    def _request_body(self, system_prompt: str, user_message: str) -> str:
        return json.dumps(
            {
                "anthropic_version": BEDROCK_ANTHROPIC_VERSION,
                "max_tokens": self._config.max_output_tokens,
                "temperature": self._config.temperature,
                "system": system_prompt,
                "messages": [
                    {"role": "user", "content": user_message},
                ],
            }
        )

    def _call(self, body: str) -> ModelPayload:
        response = self._get_client().invoke_model(
            modelId=self._config.model_id,
            contentType="application/json",
            accept="application/json",
            body=body,
        )
        raw = response["body"].read()
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8", errors="replace")
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Bedrock response body is not JSON, passing raw text on")
            return raw

    def invoke(
        self, system_prompt: str, user_message: str
    ) -> ModelPayload | AnalysisFailure:
        """Send the prompt and return the decoded response payload.

        Returns an AnalysisFailure once retryable failures (timeouts,
        throttling, 5xx) exhaust the attempt budget. Any other error is
        raised unchanged on first occurrence.
        """
        cfg = self._config
        body = self._request_body(system_prompt, user_message)
        attempt = 1

        while True:
            logger.info(
                "Bedrock attempt %d/%d model=%s", attempt, cfg.max_attempts, cfg.model_id
            )
            start = time.monotonic()
            try:
                payload = self._call(body)
            except Exception as e:
                latency_ms = int((time.monotonic() - start) * 1000)
                kind = classify_error(e)
                step = transition(
                    attempt,
                    cfg.max_attempts,
                    kind,
                    cfg.backoff_base_ms,
                    cfg.backoff_max_ms,
                )
                if step.state == InvokerState.FAILED_FATAL:
                    logger.error(
                        "Bedrock call failed after %dms (not retryable): %s",
                        latency_ms,
                        e,
                    )
                    raise

                if step.state == InvokerState.FAILED_RETRYABLE:
                    logger.error(
                        "Bedrock call failed after %d attempts (%s): %s",
                        attempt,
                        kind.value,
                        e,
                    )
                    return AnalysisFailure(
                        code=step.error_code,
                        message=_EXHAUSTED_MESSAGES[step.error_code],
                        details={"attempts": attempt},
                        cause=e,
                    )

                logger.warning(
                    "Bedrock attempt %d failed after %dms (%s), retrying in %dms: %s",
                    attempt,
                    latency_ms,
                    kind.value,
                    step.delay_ms,
                    e,
                )
                self._sleep(step.delay_ms / 1000)
                attempt += 1
                continue

            _log_usage(cfg.model_id, payload, int((time.monotonic() - start) * 1000))
            return payload


def _log_usage(model_id: str, payload: ModelPayload, latency_ms: int) -> None:
    """Log provider-reported token usage when the payload carries it."""
    usage = payload.get("usage", {}) if isinstance(payload, dict) else {}
    input_tokens = usage.get("input_tokens", 0) or 0
    output_tokens = usage.get("output_tokens", 0) or 0
    logger.info(
        "Bedrock usage: input=%d output=%d total=%d latency=%dms model=%s",
        input_tokens,
        output_tokens,
        input_tokens + output_tokens,
        latency_ms,
        model_id,
    )
    if isinstance(payload, dict) and payload.get("stop_reason") == "max_tokens":
        logger.warning("Response truncated (hit max_tokens). Output may be incomplete.")
