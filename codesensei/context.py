"""Context reduction: cut a padded window around the selection."""

from __future__ import annotations

import logging

from codesensei.config import CONTEXT_BUFFER_LINES
from codesensei.models import CodeDocument, ReducedContext, Selection

logger = logging.getLogger(__name__)


def reduce_context(
    code: str,
    selection: Selection,
    buffer: int = CONTEXT_BUFFER_LINES,
) -> ReducedContext:
    """Extract the selection plus ``buffer`` lines on each side.

    The window is clamped to the document, so a selection near either end
    (or past the end) yields a shorter window rather than an error.
    """
    lines = CodeDocument(code).lines
    line_count = len(lines)

    start_idx = min(max(0, selection.start_line - 1 - buffer), line_count)
    end_idx = max(start_idx, min(line_count, selection.end_line + buffer))

    window = ReducedContext(
        code="\n".join(lines[start_idx:end_idx]),
        original_start_line=start_idx + 1,
        original_end_line=end_idx,
    )
    logger.info(
        "Reduced %d lines to window %d-%d around selection %d-%d",
        line_count,
        window.original_start_line,
        window.original_end_line,
        selection.start_line,
        selection.end_line,
    )
    return window
