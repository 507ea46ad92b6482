# ==============================================================================
# FILE: tests/test_reassembler.py
# DESCRIPTION: Pure stream reassembly functions
# ==============================================================================

import pytest

from horizon.reassembler import (
    MessageReassembler,
    apply_chunk,
    apply_structured,
    clean_trailing_punctuation,
)
from horizon.types import StreamAccumulator


def test_structured_update_replaces_text():
    acc = StreamAccumulator(current_text="stale", is_active=True)

    update = apply_structured(acc, "Hi", is_complete=False)

    assert update.accumulator == StreamAccumulator(current_text="Hi", is_active=True)
    assert update.completed is None


def test_structured_completion_emits_and_resets():
    acc = StreamAccumulator(current_text="Hi", is_active=True)

    update = apply_structured(acc, "Hi there", is_complete=True)

    assert update.completed == "Hi there"
    assert update.accumulator == StreamAccumulator()


def test_first_chunk_replaces_inactive_text():
    acc = StreamAccumulator(current_text="previous answer", is_active=False)

    update = apply_chunk(acc, "New")

    assert update.accumulator == StreamAccumulator(current_text="New", is_active=True)


def test_chunks_append_while_active():
    acc = StreamAccumulator()
    for chunk in ["The", " quick", " fox"]:
        acc = apply_chunk(acc, chunk).accumulator

    assert acc.current_text == "The quick fox"
    assert acc.is_active


@pytest.mark.parametrize(
    "text, expected",
    [
        ("Hello ,", "Hello,"),
        ("it  '", "it'"),
        ("code `", "code`"),
        ('say "', 'say"'),
        ("end .", "end ."),
        ("a , b", "a , b"),
    ],
)
def test_clean_trailing_punctuation(text, expected):
    assert clean_trailing_punctuation(text) == expected


def test_append_collapses_space_before_comma():
    acc = StreamAccumulator(current_text="Hello", is_active=True)

    assert apply_chunk(acc, " ,").accumulator.current_text == "Hello,"


def test_inputs_are_not_mutated():
    acc = StreamAccumulator(current_text="Hi", is_active=True)

    apply_chunk(acc, " there")
    apply_structured(acc, "x", is_complete=True)

    assert acc == StreamAccumulator(current_text="Hi", is_active=True)


def test_reassembler_exchange():
    reassembler = MessageReassembler()
    reassembler.begin_exchange()

    assert reassembler.structured("Hi", False) is None
    assert reassembler.current_text == "Hi"
    assert reassembler.is_active

    assert reassembler.structured("Hi there", True) == "Hi there"
    assert reassembler.current_text == ""
    assert not reassembler.is_active


def test_repeated_structured_update_does_not_duplicate():
    acc = StreamAccumulator()

    acc = apply_structured(acc, "X", is_complete=False).accumulator
    acc = apply_structured(acc, "X", is_complete=False).accumulator

    assert acc.current_text == "X"
    assert acc.is_active
