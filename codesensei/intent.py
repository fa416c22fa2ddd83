"""Prompt intent classification (explain vs. improve)."""

from __future__ import annotations

from typing import Any

from codesensei.models import Intent

EXPLAIN_PATTERNS = [
    "what does",
    "explain",
    "describe",
    "walk me through",
    "how does this work",
    "tell me about",
    "help me understand",
]


def classify_intent(message: Any) -> Intent:
    """Guess the intent of a prompt from key phrases. Defaults to improve."""
    if not isinstance(message, str):
        return Intent.IMPROVE

    normalized = message.strip().lower()
    if not normalized:
        return Intent.IMPROVE

    if any(p in normalized for p in EXPLAIN_PATTERNS):
        return Intent.EXPLAIN
    return Intent.IMPROVE
