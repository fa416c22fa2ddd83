"""Analysis pipeline: budget the input, ask the model, normalize the answer."""

from __future__ import annotations

import logging
from typing import Optional

from codesensei.config import PipelineConfig
from codesensei.context import reduce_context
from codesensei.llm import ModelInvoker
from codesensei.llm_parsing import parse_model_response
from codesensei.models import (
    AnalysisFailure,
    AnalysisRequest,
    AnalysisResult,
    ContextMode,
    ErrorCode,
    Intent,
    ReducedContext,
)
from codesensei.prompts import build_prompt
from codesensei.tokens import estimate_tokens

logger = logging.getLogger(__name__)


class AnalysisPipeline:
    """Runs one analysis request end to end.

    Holds only configuration and the invoker; every call to ``analyze`` is
    independent, so one instance can serve concurrent requests.
    """

    def __init__(
        self,
        config: PipelineConfig,
        invoker: Optional[ModelInvoker] = None,
    ) -> None:
        self.config = config
        self.invoker = invoker or ModelInvoker(config)

    def plan_context(
        self, request: AnalysisRequest
    ) -> tuple[ContextMode, str, Optional[ReducedContext], int] | AnalysisFailure:
        """Choose full or local context and check the token budget.

        Returns (mode, effective code, window, input token estimate).
        """
        cfg = self.config
        full_tokens = estimate_tokens(request.code, request.prompt, request.history)

        if full_tokens <= cfg.fallback_token_threshold:
            logger.info("Context mode full: ~%d tokens", full_tokens)
            return ContextMode.FULL, request.code, None, full_tokens

        if request.selection is None:
            logger.info(
                "~%d tokens over fallback threshold %d and no selection",
                full_tokens,
                cfg.fallback_token_threshold,
            )
            return AnalysisFailure(
                code=ErrorCode.TOKEN_LIMIT_EXCEEDED_NEEDS_SELECTION,
                message=(
                    "This file is too large to analyze in full. "
                    "Select the lines you want to ask about and try again."
                ),
                details={
                    "estimated_tokens": full_tokens,
                    "threshold": cfg.fallback_token_threshold,
                },
            )

        window = reduce_context(
            request.code, request.selection, cfg.context_buffer_lines
        )
        local_tokens = estimate_tokens(window.code, request.prompt, request.history)
        logger.info(
            "Context mode local: ~%d tokens (full file ~%d)", local_tokens, full_tokens
        )

        if local_tokens > cfg.hard_token_ceiling:
            return AnalysisFailure(
                code=ErrorCode.TOKEN_LIMIT_EXCEEDED,
                message=(
                    "The selected code is too large to analyze. "
                    "Select fewer lines and try again."
                ),
                details={
                    "estimated_tokens": local_tokens,
                    "limit": cfg.hard_token_ceiling,
                },
            )

        return ContextMode.LOCAL, window.code, window, local_tokens

    def analyze(self, request: AnalysisRequest) -> AnalysisResult | AnalysisFailure:
        """Analyze one request. Never returns a partial result."""
        plan = self.plan_context(request)
        if isinstance(plan, AnalysisFailure):
            return plan
        context_mode, code, window, input_tokens = plan

        prompt = build_prompt(
            language=request.language,
            intent=request.intent,
            context_mode=context_mode,
            code=code,
            selection=request.selection,
            prompt=request.prompt,
            history=request.history,
            history_limit=self.config.max_history_items,
            window=window,
        )

        payload = self.invoker.invoke(prompt.system, prompt.user)
        if isinstance(payload, AnalysisFailure):
            return payload

        result = parse_model_response(
            payload,
            context_mode=context_mode,
            intent=request.intent,
            input_tokens=input_tokens,
            window=window,
        )
        if isinstance(result, AnalysisFailure):
            return result

        # The model cannot be trusted to leave explanations edit-free
        if request.intent == Intent.EXPLAIN and result.changes:
            logger.warning(
                "Model returned %d edits for an explain request, rejecting",
                len(result.changes),
            )
            return AnalysisFailure(
                code=ErrorCode.AI_MALFORMED_RESPONSE,
                message="The AI returned code changes for an explanation request. Please try again.",
                details={"reason": "edits returned for explain intent"},
            )

        logger.info(
            "Analysis complete: intent=%s mode=%s edits=%d tokens=%d",
            result.intent,
            result.context_mode,
            len(result.changes),
            result.token_count,
        )
        return result
