from __future__ import annotations

from deepsexa.services.stream_parser import ParsedMessage, parse_message_content


def test_closed_reasoning_block_splits_reasoning_and_answer():
    parsed = parse_message_content("<think>abc</think>xyz")

    assert parsed == ParsedMessage(reasoning="abc", answer="xyz", complete=True)


def test_open_reasoning_block_is_incomplete():
    parsed = parse_message_content("<think>partial")

    assert parsed == ParsedMessage(reasoning="partial", answer="", complete=False)


def test_no_markers_is_all_answer():
    assert parse_message_content("plain text") == ParsedMessage("", "plain text", True)
    assert parse_message_content("") == ParsedMessage("", "", True)


def test_segments_are_trimmed():
    parsed = parse_message_content("<think>\n  step one \n</think>\n\n The answer. ")

    assert parsed.reasoning == "step one"
    assert parsed.answer == "The answer."


def test_only_first_closing_marker_splits():
    parsed = parse_message_content("<think>a</think>b</think>c")

    assert parsed.reasoning == "a"
    assert parsed.answer == "b</think>c"


def test_parsing_is_idempotent():
    buffer = "<think>why</think>because"

    assert parse_message_content(buffer) == parse_message_content(buffer)


def test_growing_buffer_stays_complete_once_closed():
    full = "<think>first, then second</think>final answer [1]"
    close_at = full.index("</think>") + len("</think>")

    seen_complete = False
    for end in range(1, len(full) + 1):
        parsed = parse_message_content(full[:end])
        if end >= close_at:
            assert parsed.complete
            seen_complete = True
        elif full[:end].startswith("<think>"):
            assert not parsed.complete

    assert seen_complete
    assert parse_message_content(full).answer == "final answer [1]"


def test_to_dict():
    assert ParsedMessage("r", "a", False).to_dict() == {
        "reasoning": "r",
        "answer": "a",
        "complete": False,
    }
