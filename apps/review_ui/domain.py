# apps/review_ui/domain.py
from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class ReviewCard:
    id: str
    packet_id: str
    sequence_number: int
    source_text: str
    target_text: str
    assigned_to: str
    submitted_at: Optional[str]
    rejection_reason: Optional[str]   # reason from the previous round, if any
    version: int

    @classmethod
    def from_api(cls, d: Dict[str, Any]) -> "ReviewCard":
        return cls(
            id=d["id"],
            packet_id=d["packet_id"],
            sequence_number=int(d["sequence_number"]),
            source_text=d["source_text"],
            target_text=d.get("target_text") or "",
            assigned_to=d["assigned_to"],
            submitted_at=d.get("submitted_at"),
            rejection_reason=d.get("rejection_reason"),
            version=int(d.get("version", 0)),
        )


@dataclass
class ReviewOutcome:
    item_id: str
    status: str
    quality_score: Optional[int]
    error: Optional[str] = None
