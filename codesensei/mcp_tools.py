"""MCP tool definitions for the CodeSensei analysis pipeline."""

from __future__ import annotations

import asyncio
import json
import logging
import traceback
from typing import Any, Optional

from fastmcp import FastMCP

from codesensei.analyzer import AnalysisPipeline
from codesensei.intent import classify_intent
from codesensei.models import AnalysisFailure, ErrorCode
from codesensei.validation import validate_request

logger = logging.getLogger(__name__)


def _error_response(tool_name: str, error: Exception) -> str:
    """Build the INTERNAL_ERROR envelope for an unexpected tool failure."""
    logger.error("Tool %s failed: %s\n%s", tool_name, error, traceback.format_exc())
    return AnalysisFailure(
        code=ErrorCode.INTERNAL_ERROR,
        message="Failed to analyze code. Please try again later.",
    ).to_json()


def run_analysis(pipeline: AnalysisPipeline, payload: Any) -> str:
    """Validate a raw payload, run the pipeline and render JSON.

    Failures come back as the error envelope; the underlying cause is
    logged but never included in the output.
    """
    request = validate_request(payload, pipeline.config)
    if isinstance(request, AnalysisFailure):
        return request.to_json()

    outcome = pipeline.analyze(request)
    if isinstance(outcome, AnalysisFailure) and outcome.cause is not None:
        logger.warning("Analysis failed with %s: %r", outcome.code, outcome.cause)
    return outcome.to_json()


def register_tools(mcp: FastMCP, pipeline: AnalysisPipeline) -> None:
    """Register all analysis tools on the given FastMCP server instance."""

    @mcp.tool()
    async def analyze_code(
        code: str,
        prompt: str,
        language: str,
        selection: Optional[dict] = None,
        history: Optional[list[dict]] = None,
        mode: Optional[str] = None,
    ) -> str:
        """Ask the model about a piece of code.

        Returns JSON with ``analysis`` (plain text), ``changes`` (line-range
        edits in original file numbering), ``context_mode``, ``token_count``
        and ``intent``, or an ``error`` envelope.

        Args:
            code: Full contents of the file under review
            prompt: The user's question
            language: Language of the code (e.g., "python")
            selection: Optional {start_line, end_line, selected_text?}, 1-indexed
            history: Optional prior turns as [{role: "user"|"ai", content}]
            mode: Optional "explain" or "improve"; guessed from the prompt if omitted
        """
        payload = {
            "code": code,
            "prompt": prompt,
            "language": language,
            "selection": selection,
            "history": history,
            "mode": mode,
        }
        try:
            return await asyncio.to_thread(run_analysis, pipeline, payload)
        except Exception as e:
            return _error_response("analyze_code", e)

    @mcp.tool()
    def classify_prompt_intent(prompt: str) -> str:
        """Guess whether a prompt asks to explain or to improve code.

        Args:
            prompt: The user's question
        """
        return str(classify_intent(prompt))

    @mcp.tool()
    def get_limits() -> str:
        """Get the token and size limits the analyzer enforces."""
        return json.dumps(pipeline.config.limits(), indent=2)
