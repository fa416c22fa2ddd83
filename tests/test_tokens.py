from codesensei.models import HistoryEntry, Role
from codesensei.tokens import estimate_text_tokens, estimate_tokens


def test_rounds_up_to_whole_tokens():
    assert estimate_tokens("abcde", "", []) == 2


def test_counts_code_prompt_and_history():
    history = [
        HistoryEntry(Role.USER, "a" * 8),
        HistoryEntry(Role.AI, "b" * 4),
    ]
    assert estimate_tokens("c" * 12, "d" * 4, history) == 7


def test_empty_query_is_never_free():
    assert estimate_tokens("", "", []) == 1
    assert estimate_tokens(None, None, None) == 1


def test_text_estimate_has_no_floor():
    assert estimate_text_tokens() == 0
    assert estimate_text_tokens("abcd", None, "e") == 2
