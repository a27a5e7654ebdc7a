# services/segmentation/segmenter.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Union

from services.workflow.errors import ValidationError
from services.workflow.models import UnitType


# Latin terminals plus Arabic question mark and semicolon.
_SENTENCE_SPLIT_RE = re.compile(r"[.!?؟؛]+")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\s*\n")
# Arabic comma and Latin comma left dangling at the end of a clause.
_TRAILING_SEP_RE = re.compile(r"[،,]+$")


@dataclass(frozen=True)
class SegmenterConfig:
    min_paragraph_chars: int = 20
    min_sentence_chars: int = 10


def _coerce_unit_type(unit_type: Union[str, UnitType]) -> UnitType:
    try:
        return UnitType(unit_type)
    except ValueError as e:
        raise ValidationError(
            f"Unsupported unit_type {unit_type!r}. Use 'sentence' or 'paragraph'."
        ) from e


def split_paragraphs(text: str, min_chars: int = 20) -> List[str]:
    parts = (p.strip() for p in _PARAGRAPH_SPLIT_RE.split(text or ""))
    return [p for p in parts if len(p) > min_chars]


def split_sentences(text: str, min_chars: int = 10) -> List[str]:
    """
    Each fragment is trimmed and loses its trailing separators before the
    length filter, so a run of bare commas never becomes a unit.
    """
    cleaned = (_TRAILING_SEP_RE.sub("", s.strip()).strip() for s in _SENTENCE_SPLIT_RE.split(text or ""))
    return [s for s in cleaned if len(s) > min_chars]


def segment(
    text: str,
    unit_type: Union[str, UnitType],
    config: SegmenterConfig = SegmenterConfig(),
) -> List[str]:
    """
    Cut a document into ordered translation units.

    An empty result is returned as-is; the caller decides that it is a
    failed packet.
    """
    ut = _coerce_unit_type(unit_type)
    if ut is UnitType.PARAGRAPH:
        return split_paragraphs(text, config.min_paragraph_chars)
    return split_sentences(text, config.min_sentence_chars)
