# services/export/gate.py
from __future__ import annotations

import csv
import io
import json
from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

import jsonschema

from services.storage.store import Store
from services.workflow.errors import ValidationError
from services.workflow.models import ItemStatus, WorkItem

REPO_ROOT = Path(__file__).resolve().parents[2]
SCHEMA_PATH = REPO_ROOT / "config" / "schemas" / "export_record.schema.json"

EXPORT_FIELDS = (
    "source_text",
    "target_text",
    "style",
    "style_description",
    "task_type",
    "template_name",
    "translator",
    "quality_score",
    "reviewed_at",
)

DateLike = Union[date, datetime, None]


def _as_utc(v: datetime) -> datetime:
    return v if v.tzinfo is not None else v.replace(tzinfo=timezone.utc)


def _lower_bound(v: DateLike) -> Optional[datetime]:
    if v is None:
        return None
    if isinstance(v, datetime):
        return _as_utc(v)
    return datetime.combine(v, time.min, tzinfo=timezone.utc)


def _upper_bound(v: DateLike) -> Optional[datetime]:
    # a bare date covers the whole day
    if v is None:
        return None
    if isinstance(v, datetime):
        return _as_utc(v)
    return datetime.combine(v, time.max, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ExportFilters:
    translator_id: Optional[str] = None
    from_date: DateLike = None
    to_date: DateLike = None
    task_type: Optional[str] = None


@dataclass(frozen=True)
class ExportRecord:
    source_text: str
    target_text: str
    quality_score: int
    reviewed_at: str
    style: str = "unknown"
    style_description: str = ""
    task_type: str = "unknown"
    template_name: str = ""
    translator: str = ""

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        return {k: d[k] for k in EXPORT_FIELDS}


@lru_cache(maxsize=1)
def _load_schema() -> dict:
    if not SCHEMA_PATH.exists():
        raise FileNotFoundError(f"Schema not found: {SCHEMA_PATH}")
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def validate_record(record: ExportRecord) -> None:
    try:
        jsonschema.validate(instance=record.to_dict(), schema=_load_schema())
    except jsonschema.exceptions.ValidationError as e:
        raise ValidationError(f"Export record failed the dataset contract: {e.message}") from e


class ExportGate:
    """Read-only view of approved items for dataset extraction."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def _matches(self, it: WorkItem, f: ExportFilters, lo: Optional[datetime], hi: Optional[datetime]) -> bool:
        if it.status is not ItemStatus.APPROVED:
            return False
        if f.translator_id is not None and it.assigned_to != f.translator_id:
            return False
        if lo is not None or hi is not None:
            if it.reviewed_at is None:
                return False
            ts = _as_utc(it.reviewed_at)
            if lo is not None and ts < lo:
                return False
            if hi is not None and ts > hi:
                return False
        if f.task_type is not None and self._task_type_of(it) != f.task_type:
            return False
        return True

    def _task_type_of(self, it: WorkItem) -> Optional[str]:
        packet = self.store.get_packet(it.packet_id)
        tpl = self.store.get_template(packet.template_id) if packet else None
        return tpl.task_type if tpl else None

    def approved_items(self, filters: Optional[ExportFilters] = None) -> List[WorkItem]:
        f = filters or ExportFilters()
        lo, hi = _lower_bound(f.from_date), _upper_bound(f.to_date)
        if lo is not None and hi is not None and lo > hi:
            raise ValidationError(f"from_date {lo.isoformat()} is after to_date {hi.isoformat()}.")
        items = self.store.find_items(lambda it: self._matches(it, f, lo, hi))
        return sorted(items, key=lambda it: _as_utc(it.reviewed_at), reverse=True)

    def project(self, it: WorkItem) -> ExportRecord:
        packet = self.store.get_packet(it.packet_id)
        tpl = self.store.get_template(packet.template_id) if packet else None
        tag = self.store.get_style_tag(packet.style_tag_id) if packet and packet.style_tag_id else None
        return ExportRecord(
            source_text=it.source_text,
            target_text=it.target_text or "",
            quality_score=int(it.quality_score or 0),
            reviewed_at=_as_utc(it.reviewed_at).isoformat(),
            style=tag.name if tag else "unknown",
            style_description=tag.description if tag else "",
            task_type=tpl.task_type if tpl else "unknown",
            template_name=tpl.name if tpl else "",
            translator=it.assigned_to,
        )

    def export(self, filters: Optional[ExportFilters] = None) -> List[ExportRecord]:
        records = [self.project(it) for it in self.approved_items(filters)]
        for r in records:
            validate_record(r)
        return records


def to_jsonl(records: Iterable[ExportRecord]) -> str:
    return "\n".join(json.dumps(r.to_dict(), ensure_ascii=False) for r in records)


def to_csv(records: Iterable[ExportRecord]) -> str:
    buf = io.StringIO()
    w = csv.DictWriter(buf, fieldnames=list(EXPORT_FIELDS), lineterminator="\n")
    w.writeheader()
    for r in records:
        w.writerow(r.to_dict())
    return buf.getvalue()
