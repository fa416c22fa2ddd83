import pytest

from codesensei.context import reduce_context
from codesensei.models import Selection


def _doc(n: int) -> str:
    return "\n".join(f"line {i}" for i in range(1, n + 1))


def test_window_is_clamped_to_document_end():
    window = reduce_context(_doc(200), Selection(150, 152))
    assert window.original_start_line == 100
    assert window.original_end_line == 200
    lines = window.code.split("\n")
    assert lines[0] == "line 100"
    assert lines[-1] == "line 200"


def test_window_is_clamped_to_document_start():
    window = reduce_context(_doc(500), Selection(10, 20))
    assert window.original_start_line == 1
    assert window.original_end_line == 70


def test_window_pads_both_sides_in_the_middle():
    window = reduce_context(_doc(1000), Selection(400, 410))
    assert window.original_start_line == 350
    assert window.original_end_line == 460
    assert window.line_count == 111


@pytest.mark.parametrize(
    "start,end",
    [(1, 1), (5, 300), (250, 260), (290, 300), (1, 300)],
)
def test_window_contains_selection_and_stays_in_bounds(start, end):
    total = 300
    window = reduce_context(_doc(total), Selection(start, end))
    assert window.original_start_line <= start
    assert window.original_end_line >= end
    assert window.original_start_line >= max(1, start - 50)
    assert window.original_end_line <= min(total, end + 50)
    assert window.line_count <= total
    assert len(window.code.split("\n")) == window.line_count


def test_selection_past_end_never_exceeds_document():
    window = reduce_context(_doc(20), Selection(30, 40))
    assert window.original_end_line <= 20


def test_custom_buffer():
    window = reduce_context(_doc(100), Selection(50, 50), buffer=5)
    assert (window.original_start_line, window.original_end_line) == (45, 55)
