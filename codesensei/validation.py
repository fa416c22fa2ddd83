"""Inbound request validation for the analyze tool."""

from __future__ import annotations

import logging
from typing import Any, Optional

from codesensei.config import PipelineConfig
from codesensei.intent import classify_intent
from codesensei.models import (
    AnalysisFailure,
    AnalysisRequest,
    ErrorCode,
    HistoryEntry,
    Intent,
    Role,
    Selection,
)

logger = logging.getLogger(__name__)


def _invalid(message: str, field: str, code: ErrorCode = ErrorCode.INVALID_INPUT) -> AnalysisFailure:
    logger.info("Rejected request: %s (%s)", message, field)
    return AnalysisFailure(code=code, message=message, field=field)


def _normalize_string(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def _as_int(value: Any) -> Optional[int]:
    """Coerce ints and integral numeric strings; reject everything else."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def parse_selection(raw: Any) -> Optional[Selection] | AnalysisFailure:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        return _invalid(
            "selection must be an object with start_line and end_line.", "selection"
        )

    start = _as_int(raw.get("start_line"))
    if start is None or start < 1:
        return _invalid(
            "selection.start_line must be a positive integer.", "selection.start_line"
        )

    end = _as_int(raw.get("end_line"))
    if end is None or end < start:
        return _invalid(
            "selection.end_line must be an integer greater than or equal to start_line.",
            "selection.end_line",
        )

    text = raw.get("selected_text")
    return Selection(
        start_line=start,
        end_line=end,
        selected_text=text if isinstance(text, str) else None,
    )


def parse_history(raw: Any, limit: int) -> tuple[HistoryEntry, ...] | AnalysisFailure:
    """Keep the most recent ``limit`` entries and check each one."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        return _invalid("history must be an array of { role, content } items.", "history")

    entries: list[HistoryEntry] = []
    for entry in raw[-limit:] if limit > 0 else []:
        if not isinstance(entry, dict):
            return _invalid("history must be an array of { role, content } items.", "history")
        role = _normalize_string(entry.get("role")).lower()
        content = entry.get("content")
        if role not in (Role.USER.value, Role.AI.value):
            return _invalid("history entries need a role of 'user' or 'ai'.", "history")
        if not isinstance(content, str) or not content.strip():
            return _invalid("history entries need non-empty content.", "history")
        entries.append(HistoryEntry(role=Role(role), content=content))
    return tuple(entries)


def parse_mode(raw: Any, prompt: str) -> Intent | AnalysisFailure:
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return classify_intent(prompt)
    mode = _normalize_string(raw).lower()
    try:
        return Intent(mode)
    except ValueError:
        return _invalid("mode must be 'explain' or 'improve'.", "mode")


def validate_request(payload: Any, config: PipelineConfig) -> AnalysisRequest | AnalysisFailure:
    """Check a raw analyze payload and build an AnalysisRequest.

    The first problem found is returned as an AnalysisFailure naming the
    offending field.
    """
    if not isinstance(payload, dict):
        return _invalid("Request body must be a JSON object.", "body")

    code = payload.get("code")
    if not isinstance(code, str):
        return _invalid("code must be a string value.", "code")
    if len(code.encode("utf-8")) > config.max_code_bytes:
        return _invalid(
            f"Code payload exceeds the {config.max_code_bytes // (1024 * 1024)}MB limit.",
            "code",
            ErrorCode.FILE_TOO_LARGE,
        )

    language = _normalize_string(payload.get("language"))
    if not language:
        return _invalid("language is required.", "language")

    prompt = _normalize_string(payload.get("prompt"))
    if not prompt:
        return _invalid("prompt is required.", "prompt")
    if len(prompt) > config.max_prompt_length:
        return _invalid(
            f"Prompt must be {config.max_prompt_length} characters or fewer.",
            "prompt",
            ErrorCode.MESSAGE_TOO_LONG,
        )

    selection = parse_selection(payload.get("selection"))
    if isinstance(selection, AnalysisFailure):
        return selection

    history = parse_history(payload.get("history"), config.max_history_items)
    if isinstance(history, AnalysisFailure):
        return history

    intent = parse_mode(payload.get("mode"), prompt)
    if isinstance(intent, AnalysisFailure):
        return intent

    return AnalysisRequest(
        code=code,
        prompt=prompt,
        language=language,
        intent=intent,
        selection=selection,
        history=history,
    )
