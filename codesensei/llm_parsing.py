"""LLM response parsing: turn model text into a validated AnalysisResult."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from typing import Any, Optional

import json5

from codesensei.models import (
    AnalysisFailure,
    AnalysisResult,
    ContextMode,
    Edit,
    ErrorCode,
    Intent,
    ReducedContext,
)
from codesensei.sanitize import sanitize_analysis, sanitize_replacement
from codesensei.tokens import estimate_text_tokens

logger = logging.getLogger(__name__)

_MALFORMED_MESSAGE = "The AI returned a response that could not be understood. Please try again."


def _malformed(reason: str, cause: Optional[BaseException] = None) -> AnalysisFailure:
    logger.warning("Malformed model response: %s", reason)
    return AnalysisFailure(
        code=ErrorCode.AI_MALFORMED_RESPONSE,
        message=_MALFORMED_MESSAGE,
        details={"reason": reason},
        cause=cause,
    )


def extract_text(payload: Any) -> Optional[str]:
    """Pull the model's text out of a Bedrock response payload.

    Handles the Anthropic messages shape (``content`` blocks), the older
    ``completion`` field, Titan-style ``outputText`` and a bare string.
    """
    if isinstance(payload, str):
        return payload
    if not isinstance(payload, dict):
        return None

    content = payload.get("content")
    if isinstance(content, list):
        texts = [
            block.get("text", "")
            for block in content
            if isinstance(block, dict) and block.get("type", "text") == "text"
        ]
        joined = "".join(t for t in texts if isinstance(t, str))
        if joined:
            return joined
    elif isinstance(content, str):
        return content

    for key in ("completion", "outputText"):
        value = payload.get(key)
        if isinstance(value, str):
            return value
    return None


def extract_json_object(text: str) -> dict | AnalysisFailure:
    """Find and parse the JSON object in ``text``.

    The model may wrap its JSON in prose, so the candidate is the span from
    the first ``{`` to the last ``}``. That span is tried with the strict
    parser, then the lenient JSON5 parser; the whole text gets one lenient
    attempt as a last resort.
    """
    start = text.find("{")
    end = text.rfind("}")
    candidate = text[start : end + 1] if start != -1 and end > start else None

    attempts = []
    if candidate is not None:
        attempts.append(("strict", json.loads, candidate))
        attempts.append(("lenient", json5.loads, candidate))
    attempts.append(("lenient-full", json5.loads, text))

    last_error: Optional[BaseException] = None
    for label, loads, source in attempts:
        try:
            data = loads(source)
        except (ValueError, RecursionError) as e:
            logger.debug("JSON parse (%s) failed: %s", label, e)
            last_error = e
            continue
        if isinstance(data, dict):
            if label != "strict":
                logger.info("Model JSON recovered with %s parser", label)
            return data
        last_error = None
        logger.debug("JSON parse (%s) produced %s, not an object", label, type(data).__name__)

    return _malformed("no JSON object found in response", last_error)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_shape(data: dict) -> tuple[str, list[Edit]] | AnalysisFailure:
    """Check the parsed object and build Edits. No partial acceptance."""
    analysis = data.get("analysis")
    if not isinstance(analysis, str) or not analysis.strip():
        return _malformed("analysis must be a non-empty string")

    changes = data.get("changes")
    if not isinstance(changes, list):
        return _malformed("changes must be an array")

    edits: list[Edit] = []
    for i, change in enumerate(changes):
        if not isinstance(change, dict):
            return _malformed(f"changes[{i}] is not an object")
        start = change.get("start_line")
        end = change.get("end_line")
        replacement = change.get("replacement")
        if not _is_int(start) or start < 1:
            return _malformed(f"changes[{i}].start_line must be an integer >= 1")
        if not _is_int(end) or end < start:
            return _malformed(f"changes[{i}].end_line must be an integer >= start_line")
        if not isinstance(replacement, str):
            return _malformed(f"changes[{i}].replacement must be a string")
        edits.append(Edit(start_line=start, end_line=end, replacement=replacement))

    return analysis, edits


def remap_edit(edit: Edit, window: ReducedContext) -> Edit:
    """Translate a window-relative edit back to original-file numbering.

    The model is asked for original numbers but may answer relative to the
    snippet. Numbers that fit inside the window are taken as relative,
    unless the window starts at line 1 where both readings agree.
    """
    offset = window.original_start_line - 1
    looks_relative = (
        offset > 0 and 1 <= edit.start_line <= edit.end_line <= window.line_count
    )
    if not looks_relative:
        return edit
    return Edit(
        start_line=edit.start_line + offset,
        end_line=edit.end_line + offset,
        replacement=edit.replacement,
    )


def remap_edits(edits: Sequence[Edit], window: ReducedContext) -> list[Edit]:
    remapped = [remap_edit(e, window) for e in edits]
    moved = sum(1 for a, b in zip(edits, remapped) if a != b)
    if moved:
        logger.info(
            "Remapped %d/%d edits from window offset %d",
            moved,
            len(edits),
            window.original_start_line - 1,
        )
    return remapped


def parse_model_response(
    payload: Any,
    context_mode: ContextMode,
    intent: Intent,
    input_tokens: int,
    window: Optional[ReducedContext] = None,
) -> AnalysisResult | AnalysisFailure:
    """Normalize a raw model payload into an AnalysisResult."""
    text = extract_text(payload)
    if not text or not text.strip():
        return _malformed("empty model response")

    data = extract_json_object(text)
    if isinstance(data, AnalysisFailure):
        return data

    shaped = validate_shape(data)
    if isinstance(shaped, AnalysisFailure):
        return shaped
    raw_analysis, edits = shaped

    analysis = sanitize_analysis(raw_analysis)
    edits = [
        Edit(e.start_line, e.end_line, sanitize_replacement(e.replacement))
        for e in edits
    ]

    if context_mode == ContextMode.LOCAL and window is not None:
        edits = remap_edits(edits, window)

    output_tokens = estimate_text_tokens(analysis, *(e.replacement for e in edits))

    return AnalysisResult(
        analysis=analysis,
        changes=tuple(edits),
        context_mode=context_mode,
        token_count=input_tokens + output_tokens,
        intent=intent,
    )
