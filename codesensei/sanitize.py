"""Strip markdown residue from model output.

The model is told to answer in plain prose, but it still reaches for
headers, bullets and fences. Analysis text is flattened to plain text;
replacement code only loses its wrapping (fences and a narrative lead-in),
never its indentation.
"""

from __future__ import annotations

import re

BULLET = "•"

_FENCE_LINE = re.compile(r"^[ \t]*```[\w+#.-]*[ \t]*$", re.MULTILINE)
_HEADER = re.compile(r"^([ \t]*)(?:#{1,6}[ \t]+)+", re.MULTILINE)
_ORDERED = re.compile(r"^([ \t]*)(?:\d+[.)][ \t]+)+", re.MULTILINE)
_BULLET = re.compile(r"^([ \t]*)[-*+][ \t]+", re.MULTILINE)
_BOLD_STAR = re.compile(r"\*\*(?=\S)(.+?)(?<=\S)\*\*", re.DOTALL)
_BOLD_UNDERSCORE = re.compile(r"(?<!\w)__(?=\S)(.+?)(?<=\S)__(?!\w)", re.DOTALL)
_ITALIC_STAR = re.compile(r"(?<![\w*])\*(?=\S)([^*\n]+?)(?<=\S)\*(?![\w*])")
_ITALIC_UNDERSCORE = re.compile(r"(?<!\w)_(?=\S)([^_\n]+?)(?<=\S)_(?!\w)")
_UNDERLINE_TAG = re.compile(r"</?u>", re.IGNORECASE)
_INLINE_CODE = re.compile(r"`([^`\n]+)`")
_EXTRA_NEWLINES = re.compile(r"\n{3,}")

_NARRATIVE_PREFIX = re.compile(
    r"^\s*here(?:'s|’s|\s+is|\s+are)\b[^\n:]*?\bcode\b[^\n:]*:[ \t]*\n?",
    re.IGNORECASE,
)
_FENCE_OPEN = re.compile(r"^\s*```[\w+#.-]*[ \t]*(?:\n|$)")
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```[ \t]*\s*$")


def _sanitize_pass(text: str) -> str:
    text = _FENCE_LINE.sub("", text)
    text = _HEADER.sub(r"\1", text)
    text = _ORDERED.sub(r"\1", text)
    text = _BULLET.sub(rf"\1{BULLET} ", text)
    text = _BOLD_STAR.sub(r"\1", text)
    text = _BOLD_UNDERSCORE.sub(r"\1", text)
    text = _ITALIC_STAR.sub(r"\1", text)
    text = _ITALIC_UNDERSCORE.sub(r"\1", text)
    text = _UNDERLINE_TAG.sub("", text)
    text = _INLINE_CODE.sub(r"\1", text)
    text = _EXTRA_NEWLINES.sub("\n\n", text)
    return text.strip()


def sanitize_analysis(text: str) -> str:
    """Flatten markdown in analysis text to plain prose.

    Passes repeat until the text stops changing, so the result is stable
    under re-sanitizing. Every pass that changes the text either shortens it
    or turns a bullet marker into "•", so the loop always ends. If nothing is
    left the original text is returned.
    """
    cleaned = text
    while True:
        updated = _sanitize_pass(cleaned)
        if updated == cleaned:
            break
        cleaned = updated
    return cleaned if cleaned else text


def sanitize_replacement(text: str) -> str:
    """Remove a "Here's the ... code:" lead-in and wrapping code fences."""
    cleaned = _NARRATIVE_PREFIX.sub("", text, count=1)

    opened = _FENCE_OPEN.match(cleaned)
    if opened:
        cleaned = cleaned[opened.end():]
        # Only strip a closing fence that pairs with an opening one
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)

    return cleaned
