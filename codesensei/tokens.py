"""Token estimation from raw character counts."""

from __future__ import annotations

import math
from collections.abc import Iterable
from typing import Optional

from codesensei.config import CHARS_PER_TOKEN
from codesensei.models import HistoryEntry


def estimate_text_tokens(*texts: Optional[str]) -> int:
    """Approximate tokens for arbitrary text, without the floor of 1."""
    total_chars = sum(len(t) for t in texts if t)
    return math.ceil(total_chars / CHARS_PER_TOKEN)


def estimate_tokens(
    code: Optional[str],
    prompt: Optional[str],
    history: Optional[Iterable[HistoryEntry]] = None,
) -> int:
    """Estimate input tokens for a query. Never returns less than 1."""
    history_text = [entry.content for entry in history or ()]
    return max(1, estimate_text_tokens(code, prompt, *history_text))
