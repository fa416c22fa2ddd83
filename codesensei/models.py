"""Data models for the CodeSensei analysis pipeline."""

from __future__ import annotations

import dataclasses
import json
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional


class Intent(str, Enum):
    """What the user wants from the model."""

    EXPLAIN = "explain"  # Prose only, no edits allowed
    IMPROVE = "improve"  # Prose plus optional line-addressed edits

    def __str__(self) -> str:
        return self.value


class ContextMode(str, Enum):
    """How much of the document the model saw."""

    FULL = "full"  # Entire document sent verbatim
    LOCAL = "local"  # Padded window around the selection

    def __str__(self) -> str:
        return self.value


class Role(str, Enum):
    USER = "user"
    AI = "ai"

    def __str__(self) -> str:
        return self.value


class ErrorCode(str, Enum):
    """Error codes surfaced to callers."""

    # Request validation
    INVALID_INPUT = "INVALID_INPUT"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    MESSAGE_TOO_LONG = "MESSAGE_TOO_LONG"
    # Input budget
    TOKEN_LIMIT_EXCEEDED = "TOKEN_LIMIT_EXCEEDED"
    TOKEN_LIMIT_EXCEEDED_NEEDS_SELECTION = "TOKEN_LIMIT_EXCEEDED_NEEDS_SELECTION"
    # Transient upstream
    AI_TIMEOUT = "AI_TIMEOUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    BEDROCK_UNAVAILABLE = "BEDROCK_UNAVAILABLE"
    # Model contract violation
    AI_MALFORMED_RESPONSE = "AI_MALFORMED_RESPONSE"
    # Anything unclassified
    INTERNAL_ERROR = "INTERNAL_ERROR"

    def __str__(self) -> str:
        return self.value

    @property
    def status(self) -> int:
        """HTTP-like status code for the tool error envelope."""
        return _STATUS_BY_CODE.get(self, 500)


_STATUS_BY_CODE = {
    ErrorCode.INVALID_INPUT: 400,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.MESSAGE_TOO_LONG: 400,
    ErrorCode.TOKEN_LIMIT_EXCEEDED: 400,
    ErrorCode.TOKEN_LIMIT_EXCEEDED_NEEDS_SELECTION: 400,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.AI_MALFORMED_RESPONSE: 502,
    ErrorCode.BEDROCK_UNAVAILABLE: 503,
    ErrorCode.AI_TIMEOUT: 504,
}


@dataclass(frozen=True)
class Selection:
    """A highlighted region, 1-indexed and inclusive."""

    start_line: int
    end_line: int
    selected_text: Optional[str] = None

    def __post_init__(self) -> None:
        if self.start_line < 1 or self.end_line < self.start_line:
            raise ValueError(
                f"invalid selection {self.start_line}-{self.end_line}"
            )


@dataclass(frozen=True)
class HistoryEntry:
    role: Role
    content: str


@dataclass(frozen=True)
class CodeDocument:
    """Source text for one request."""

    text: str

    @property
    def lines(self) -> list[str]:
        return self.text.split("\n")

    @property
    def line_count(self) -> int:
        return len(self.lines)


@dataclass(frozen=True)
class ReducedContext:
    """A padded window of the original document.

    original_start_line/original_end_line are the 1-indexed bounds of the
    window within the original document and anchor the line remap.
    """

    code: str
    original_start_line: int
    original_end_line: int

    @property
    def line_count(self) -> int:
        return self.original_end_line - self.original_start_line + 1


@dataclass(frozen=True)
class Edit:
    """A line-range replacement in original-document coordinates."""

    start_line: int
    end_line: int
    replacement: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class AnalysisRequest:
    """A validated inbound request."""

    code: str
    prompt: str
    language: str
    intent: Intent = Intent.IMPROVE
    selection: Optional[Selection] = None
    history: tuple[HistoryEntry, ...] = ()


@dataclass(frozen=True)
class AnalysisResult:
    """Structured answer to one analysis request."""

    analysis: str
    changes: tuple[Edit, ...]
    context_mode: ContextMode
    token_count: int
    intent: Intent

    def to_dict(self) -> dict:
        return {
            "analysis": self.analysis,
            "changes": [c.to_dict() for c in self.changes],
            "context_mode": str(self.context_mode),
            "token_count": self.token_count,
            "intent": str(self.intent),
        }

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)


@dataclass(frozen=True)
class AnalysisFailure:
    """The error half of a fallible pipeline step.

    ``cause`` is diagnostic context only and never rendered to end users.
    """

    code: ErrorCode
    message: str
    field: Optional[str] = None
    details: Optional[dict] = None
    cause: Optional[BaseException] = dataclasses.field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict:
        error: dict = {"code": str(self.code), "message": self.message}
        if self.field:
            error["field"] = self.field
        if self.details:
            error["details"] = self.details
        return {"status": self.code.status, "error": error}

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)
