import pytest

from codesensei.config import PipelineConfig
from codesensei.models import (
    AnalysisFailure,
    AnalysisRequest,
    ErrorCode,
    Intent,
    Role,
    Selection,
)
from codesensei.validation import validate_request


def _payload(**overrides):
    payload = {"code": "x = 1", "prompt": "Improve this", "language": "python"}
    payload.update(overrides)
    return payload


def _validate(payload, config=None):
    return validate_request(payload, config or PipelineConfig())


def _failure(payload, config=None) -> AnalysisFailure:
    result = _validate(payload, config)
    assert isinstance(result, AnalysisFailure)
    return result


def test_minimal_payload_is_accepted():
    request = _validate(_payload(prompt="  Improve this  ", language=" python "))
    assert isinstance(request, AnalysisRequest)
    assert request.prompt == "Improve this"
    assert request.language == "python"
    assert request.selection is None
    assert request.history == ()
    assert request.intent == Intent.IMPROVE


def test_non_object_body_is_rejected():
    assert _failure(["not", "a", "dict"]).field == "body"


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"code": None}, "code"),
        ({"code": 12}, "code"),
        ({"language": "   "}, "language"),
        ({"prompt": ""}, "prompt"),
        ({"prompt": 5}, "prompt"),
    ],
)
def test_missing_or_wrong_type_fields(overrides, field):
    failure = _failure(_payload(**overrides))
    assert failure.code == ErrorCode.INVALID_INPUT
    assert failure.field == field


def test_code_size_is_measured_in_utf8_bytes():
    config = PipelineConfig(max_code_bytes=10)
    assert isinstance(_validate(_payload(code="a" * 10), config), AnalysisRequest)
    # five two-byte characters = ten bytes, six = twelve
    assert isinstance(_validate(_payload(code="é" * 5), config), AnalysisRequest)
    assert _failure(_payload(code="é" * 6), config).code == ErrorCode.FILE_TOO_LARGE


def test_prompt_length_limit():
    assert isinstance(_validate(_payload(prompt="a" * 5000)), AnalysisRequest)
    assert _failure(_payload(prompt="a" * 5001)).code == ErrorCode.MESSAGE_TOO_LONG


def test_selection_is_parsed_and_coerced():
    request = _validate(
        _payload(selection={"start_line": "3", "end_line": 5, "selected_text": "y = 2"})
    )
    assert request.selection == Selection(3, 5, "y = 2")


def test_selection_text_must_be_a_string_to_be_kept():
    request = _validate(_payload(selection={"start_line": 1, "end_line": 1, "selected_text": 7}))
    assert request.selection.selected_text is None


@pytest.mark.parametrize(
    "selection,field",
    [
        ("1-5", "selection"),
        ({"start_line": 0, "end_line": 5}, "selection.start_line"),
        ({"start_line": "abc", "end_line": 5}, "selection.start_line"),
        ({"start_line": 5, "end_line": 4}, "selection.end_line"),
        ({"start_line": 5}, "selection.end_line"),
        ({"start_line": True, "end_line": 2}, "selection.start_line"),
    ],
)
def test_invalid_selection(selection, field):
    assert _failure(_payload(selection=selection)).field == field


def test_history_keeps_last_ten_entries():
    history = [{"role": "user", "content": f"m{i}"} for i in range(15)]
    request = _validate(_payload(history=history))
    assert len(request.history) == 10
    assert request.history[0].content == "m5"
    assert request.history[-1].content == "m14"


def test_history_roles_are_normalized():
    request = _validate(_payload(history=[{"role": " AI ", "content": "hi"}]))
    assert request.history[0].role == Role.AI


@pytest.mark.parametrize(
    "history",
    [
        "not a list",
        [{"role": "system", "content": "x"}],
        [{"role": "user", "content": "   "}],
        [{"role": "user"}],
        ["plain string"],
    ],
)
def test_invalid_history(history):
    failure = _failure(_payload(history=history))
    assert failure.code == ErrorCode.INVALID_INPUT
    assert failure.field == "history"


def test_bad_entries_older_than_the_window_are_ignored():
    history = [{"role": "bogus"}] + [{"role": "user", "content": f"m{i}"} for i in range(10)]
    assert isinstance(_validate(_payload(history=history)), AnalysisRequest)


def test_explicit_mode_wins_over_prompt():
    request = _validate(_payload(prompt="Explain this", mode="IMPROVE"))
    assert request.intent == Intent.IMPROVE


def test_mode_is_classified_from_prompt_when_absent():
    request = _validate(_payload(prompt="Walk me through this loop"))
    assert request.intent == Intent.EXPLAIN


def test_unknown_mode_is_rejected():
    assert _failure(_payload(mode="rewrite")).field == "mode"
