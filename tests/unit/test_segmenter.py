from __future__ import annotations

import pytest

from services.segmentation.segmenter import SegmenterConfig, segment, split_paragraphs, split_sentences
from services.workflow.errors import ValidationError


def test_paragraph_mode_drops_short_fragment():
    doc = "Hello there. This is long enough.\n\nShort"
    assert segment(doc, "paragraph") == ["Hello there. This is long enough."]


def test_paragraph_threshold_is_strictly_greater():
    doc = ("a" * 20) + "\n\n" + ("b" * 21)
    assert split_paragraphs(doc) == ["b" * 21]


def test_paragraph_split_tolerates_whitespace_only_lines():
    doc = "  First paragraph with enough text.  \n   \t\nSecond paragraph with enough text."
    assert segment(doc, "paragraph") == [
        "First paragraph with enough text.",
        "Second paragraph with enough text.",
    ]


def test_sentence_mode_latin_and_arabic_terminals():
    doc = (
        "This sentence ends with a comma,. Tiny. Another sentence here؟ "
        "الجملة العربية الطويلة هنا؛ end"
    )
    assert segment(doc, "sentence") == [
        "This sentence ends with a comma",
        "Another sentence here",
        "الجملة العربية الطويلة هنا",
    ]


def test_sentence_mode_strips_trailing_arabic_comma():
    assert split_sentences("جملة تنتهي بفاصلة عربية،. ok") == ["جملة تنتهي بفاصلة عربية"]


def test_sentence_threshold_is_strictly_greater():
    doc = ("x" * 10) + ". " + ("y" * 11) + "!"
    assert split_sentences(doc) == ["y" * 11]


def test_segmentation_is_deterministic():
    doc = "One long sentence goes here! Another long sentence goes here? " * 5
    for mode in ("sentence", "paragraph"):
        assert segment(doc, mode) == segment(doc, mode)


def test_empty_document_yields_empty_sequence():
    assert segment("", "paragraph") == []
    assert segment("short. tiny!", "sentence") == []


def test_custom_thresholds():
    cfg = SegmenterConfig(min_paragraph_chars=3, min_sentence_chars=2)
    assert segment("abcd\n\nab", "paragraph", cfg) == ["abcd"]
    assert segment("abc. a.", "sentence", cfg) == ["abc"]


def test_unknown_unit_type_is_validation_error():
    with pytest.raises(ValidationError):
        segment("Some text that is long enough.", "chapter")


def test_separator_only_fragment_is_dropped():
    doc = "A real sentence that is long. ,,,,,,,,,,,,. Another real sentence!"
    assert segment(doc, "sentence") == ["A real sentence that is long", "Another real sentence"]


def test_length_is_measured_after_stripping_separators():
    # 11 characters with the comma, 10 without
    assert split_sentences("Hi there a,. Long enough sentence,") == ["Long enough sentence"]
