from __future__ import annotations

from storyengine.core.models import HistoryEntry
from storyengine.core.utils import clip, extract_json, format_history, next_step_id


def test_extract_json_handles_fences_and_nesting() -> None:
    raw = '```JSON\n{"a": {"b": 1}, "c": [1, 2]}\n```'
    assert extract_json(raw) == '{"a": {"b": 1}, "c": [1, 2]}'
    assert extract_json("no braces here") == "no braces here"
    assert extract_json(None) == ""


def test_format_history_numbers_parts() -> None:
    text = format_history([HistoryEntry(" First. ", "Run"), HistoryEntry("Second.")])
    assert text.splitlines() == [
        "Part 1: First.",
        "Choice made: Run",
        "Part 2: Second.",
        "Choice made: N/A",
    ]


def test_clip_collapses_whitespace() -> None:
    assert clip("a   b\nc", 10) == "a b c"
    assert clip("abcdefghij", 4) == "abcd…"


def test_next_step_id_is_strictly_increasing() -> None:
    far_future = 10**30
    assert next_step_id(far_future) == far_future + 1
    first = next_step_id()
    assert next_step_id(first) > first
