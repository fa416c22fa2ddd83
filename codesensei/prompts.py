"""System prompt templates and user message builder for code analysis."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Optional

from codesensei.config import MAX_HISTORY_ITEMS
from codesensei.models import (
    ContextMode,
    HistoryEntry,
    Intent,
    ReducedContext,
    Role,
    Selection,
)


@dataclass(frozen=True)
class PromptPair:
    system: str
    user: str


# ── System template ──────────────────────────────────────────────────────────

_SYSTEM_TEMPLATE = """You are CodeSensei, a senior {language} engineer reviewing code with a colleague.
Answer the question about the code you are given, accurately and concisely.

You must respond ONLY with a single valid JSON object. No text before or after it.

Respond with this exact JSON structure:
{{
  "analysis": "Plain prose answer. No markdown: no code fences, no headers, no bullet lists, no bold or italics.",
  "changes": [
    {{
      "start_line": 12,
      "end_line": 14,
      "replacement": "the new code for lines 12-14, without fences or commentary"
    }}
  ]
}}

Line numbers:
- start_line and end_line are 1-indexed and inclusive, with end_line >= start_line.
- Line numbers ALWAYS refer to the ORIGINAL FILE, never to a truncated snippet.
- If you are shown only part of the file, the visible line range is stated in the message. Use those original numbers.

{intent_block}"""

_EXPLAIN_BLOCK = """Mode: EXPLAIN.
- The user wants to understand the code, not change it.
- Do NOT propose edits. "changes" MUST be an empty array: "changes": []
- Put the whole explanation in "analysis"."""

_IMPROVE_BLOCK = """Mode: IMPROVE.
- Propose concrete edits in "changes" when they make the code better.
- Each replacement must be complete, drop-in code for its line range, keeping the original indentation.
- If no change is warranted, return "changes": [] and explain why in "analysis"."""

_INTENT_BLOCKS = {
    Intent.EXPLAIN: _EXPLAIN_BLOCK,
    Intent.IMPROVE: _IMPROVE_BLOCK,
}


def build_system_prompt(language: str, intent: Intent) -> str:
    """Build the system prompt for the given language and intent."""
    return _SYSTEM_TEMPLATE.format(
        language=language,
        intent_block=_INTENT_BLOCKS[intent],
    )


# ── User message ─────────────────────────────────────────────────────────────


def _local_context_note(window: Optional[ReducedContext]) -> Optional[str]:
    if window is None:
        return None
    return (
        "## Context Note\n"
        f"The file is too large to send in full. You are seeing original lines "
        f"{window.original_start_line}-{window.original_end_line} only.\n"
        "Any start_line/end_line you return must use ORIGINAL FILE line numbers "
        f"(the first visible line is line {window.original_start_line}).\n"
    )


def _scope_section(selection: Optional[Selection]) -> str:
    if selection is None:
        return "## Scope\nFull file review.\n"
    header = f"## Selected Lines {selection.start_line}-{selection.end_line}\n"
    if selection.selected_text:
        return f"{header}```\n{selection.selected_text}\n```\n"
    return header


def _history_section(
    history: Sequence[HistoryEntry], limit: int = MAX_HISTORY_ITEMS
) -> Optional[str]:
    recent = list(history)[-limit:] if limit > 0 else []
    if not recent:
        return None
    lines = ["## Conversation So Far"]
    for entry in recent:
        speaker = "User" if entry.role == Role.USER else "Assistant"
        lines.append(f"{speaker}: {entry.content}")
    return "\n".join(lines) + "\n"


def build_user_message(
    language: str,
    context_mode: ContextMode,
    code: str,
    selection: Optional[Selection],
    prompt: str,
    history: Sequence[HistoryEntry] = (),
    window: Optional[ReducedContext] = None,
    history_limit: int = MAX_HISTORY_ITEMS,
) -> str:
    """Build the user message.

    Sections are ordered: language, local-context note, code, scope,
    history, question. Sections that do not apply are left out entirely.
    Only the last ``history_limit`` history entries are rendered.
    """
    parts: list[Optional[str]] = [
        f"## Language\n{language}\n",
        _local_context_note(window) if context_mode == ContextMode.LOCAL else None,
        f"## Code\n```{language.lower()}\n{code}\n```\n",
        _scope_section(selection),
        _history_section(history, history_limit),
        f"## Question\n{prompt}\n",
    ]
    return "\n".join(p for p in parts if p is not None)


def build_prompt(
    language: str,
    intent: Intent,
    context_mode: ContextMode,
    code: str,
    selection: Optional[Selection],
    prompt: str,
    history: Sequence[HistoryEntry] = (),
    window: Optional[ReducedContext] = None,
    history_limit: int = MAX_HISTORY_ITEMS,
) -> PromptPair:
    """Build the system prompt and user message for one analysis request."""
    return PromptPair(
        system=build_system_prompt(language, intent),
        user=build_user_message(
            language=language,
            context_mode=context_mode,
            code=code,
            selection=selection,
            prompt=prompt,
            history=history,
            window=window,
            history_limit=history_limit,
        ),
    )
