# services/workflow/models.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class Role(str, Enum):
    ADMIN = "admin"
    TRANSLATOR = "translator"
    QA = "qa"


class ItemStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"  # reserved, never written by the engine
    IN_QA = "in_qa"
    APPROVED = "approved"
    REJECTED = "rejected"


class UnitType(str, Enum):
    SENTENCE = "sentence"
    PARAGRAPH = "paragraph"


class PacketStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


def _ts(v: Optional[datetime]) -> Optional[str]:
    return v.isoformat() if v is not None else None


def _parse_ts(v: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(v) if v else None


@dataclass(frozen=True)
class Actor:
    """Acting identity as supplied by the session layer."""
    user_id: str
    role: Role


@dataclass(frozen=True)
class Roster:
    """Ordered translator ids a packet was distributed over."""
    translator_ids: Tuple[str, ...]

    def __len__(self) -> int:
        return len(self.translator_ids)

    def assignee_for(self, index: int) -> str:
        return self.translator_ids[index % len(self.translator_ids)]

    def distinct(self) -> Tuple[str, ...]:
        seen: Dict[str, None] = {}
        for t in self.translator_ids:
            seen.setdefault(t, None)
        return tuple(seen)


@dataclass(frozen=True)
class Source:
    id: str
    title: str
    content: str
    tags: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["tags"] = list(self.tags)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Source":
        return cls(id=d["id"], title=d["title"], content=d["content"], tags=tuple(d.get("tags") or ()))


@dataclass(frozen=True)
class InstructionTemplate:
    id: str
    name: str
    task_type: str
    instructions: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "InstructionTemplate":
        return cls(**d)


@dataclass(frozen=True)
class StyleTag:
    id: str
    name: str
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StyleTag":
        return cls(**d)


@dataclass(frozen=True)
class WorkPacket:
    id: str
    source_id: str
    template_id: str
    unit_type: UnitType
    roster: Roster
    created_by: str
    created_at: datetime
    style_tag_id: Optional[str] = None
    status: PacketStatus = PacketStatus.ACTIVE

    def with_status(self, status: PacketStatus) -> "WorkPacket":
        return replace(self, status=status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source_id": self.source_id,
            "template_id": self.template_id,
            "unit_type": self.unit_type.value,
            "roster": list(self.roster.translator_ids),
            "created_by": self.created_by,
            "created_at": _ts(self.created_at),
            "style_tag_id": self.style_tag_id,
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WorkPacket":
        return cls(
            id=d["id"],
            source_id=d["source_id"],
            template_id=d["template_id"],
            unit_type=UnitType(d["unit_type"]),
            roster=Roster(tuple(d["roster"])),
            created_by=d["created_by"],
            created_at=_parse_ts(d["created_at"]),
            style_tag_id=d.get("style_tag_id"),
            status=PacketStatus(d.get("status", "active")),
        )


@dataclass(frozen=True)
class WorkItem:
    id: str
    packet_id: str
    source_text: str
    assigned_to: str
    sequence_number: int
    created_at: datetime
    status: ItemStatus = ItemStatus.PENDING
    target_text: Optional[str] = None
    reviewed_by: Optional[str] = None
    rejection_reason: Optional[str] = None
    quality_score: Optional[int] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    version: int = 0

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["status"] = self.status.value
        d["created_at"] = _ts(self.created_at)
        d["submitted_at"] = _ts(self.submitted_at)
        d["reviewed_at"] = _ts(self.reviewed_at)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WorkItem":
        return cls(
            id=d["id"],
            packet_id=d["packet_id"],
            source_text=d["source_text"],
            assigned_to=d["assigned_to"],
            sequence_number=int(d["sequence_number"]),
            created_at=_parse_ts(d["created_at"]),
            status=ItemStatus(d.get("status", "pending")),
            target_text=d.get("target_text"),
            reviewed_by=d.get("reviewed_by"),
            rejection_reason=d.get("rejection_reason"),
            quality_score=d.get("quality_score"),
            submitted_at=_parse_ts(d.get("submitted_at")),
            reviewed_at=_parse_ts(d.get("reviewed_at")),
            version=int(d.get("version", 0)),
        )


@dataclass(frozen=True)
class WorkItemAssignment:
    packet_id: str
    translator_id: str
    created_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "packet_id": self.packet_id,
            "translator_id": self.translator_id,
            "created_at": _ts(self.created_at),
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WorkItemAssignment":
        return cls(
            packet_id=d["packet_id"],
            translator_id=d["translator_id"],
            created_at=_parse_ts(d["created_at"]),
        )


@dataclass
class PacketBundle:
    """Everything written for one packet in a single atomic store call."""
    packet: WorkPacket
    items: List[WorkItem] = field(default_factory=list)
    assignments: List[WorkItemAssignment] = field(default_factory=list)
