import io
import json
import os

import pytest

from codesensei.config import PipelineConfig


class FakeInvoker:
    """Stands in for ModelInvoker; returns queued outcomes in order."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def invoke(self, system_prompt, user_message):
        self.calls.append((system_prompt, user_message))
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch):
    """Keep CODESENSEI_* variables from the host out of PipelineConfig."""
    for name in list(os.environ):
        if name.startswith("CODESENSEI_"):
            monkeypatch.delenv(name)


@pytest.fixture
def bedrock_response():
    """Factory for a canned invoke_model response carrying the model text."""

    def make(text: str, **extra) -> dict:
        body = {
            "content": [{"type": "text", "text": text}],
            "stop_reason": "end_turn",
            "usage": {"input_tokens": 10, "output_tokens": 5},
        }
        body.update(extra)
        return {"body": io.BytesIO(json.dumps(body).encode("utf-8"))}

    return make


@pytest.fixture
def model_json():
    """Factory for the JSON object the model is asked to answer with."""

    def make(analysis="Looks fine.", changes=()) -> str:
        return json.dumps({"analysis": analysis, "changes": list(changes)})

    return make


@pytest.fixture
def fake_invoker():
    return FakeInvoker


@pytest.fixture
def config():
    return PipelineConfig()


@pytest.fixture
def small_config():
    """Tiny budgets so tests can cross thresholds with short documents."""
    return PipelineConfig(
        fallback_token_threshold=100,
        hard_token_ceiling=400,
        context_buffer_lines=50,
    )
