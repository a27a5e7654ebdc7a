# services/engine.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple
from uuid import uuid4

from services.distribution.distributor import distribute, make_roster, verify_distribution
from services.export.gate import ExportFilters, ExportGate, ExportRecord
from services.lifecycle import state_machine as sm
from services.lifecycle.authorization import Action, require
from services.review.qa_flow import ReviewFlow
from services.segmentation.segmenter import SegmenterConfig, segment
from services.storage.store import Store
from services.workflow.errors import (
    AuthorizationError,
    NotFoundError,
    ValidationError,
    WorkflowError,
)
from services.workflow.models import (
    Actor,
    InstructionTemplate,
    ItemStatus,
    PacketBundle,
    PacketStatus,
    Role,
    Source,
    StyleTag,
    UnitType,
    WorkItem,
    WorkPacket,
)

logger = logging.getLogger(__name__)

_TRANSLATOR_OPEN = (ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.REJECTED)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class EngineConfig:
    min_paragraph_chars: int = 20
    min_sentence_chars: int = 10
    checklist_items: Tuple[str, ...] = sm.DEFAULT_CHECKLIST

    @classmethod
    def from_settings(cls, settings: Any) -> "EngineConfig":
        return cls(
            min_paragraph_chars=settings.min_paragraph_chars,
            min_sentence_chars=settings.min_sentence_chars,
            checklist_items=tuple(settings.checklist_items),
        )


class WorkflowEngine:
    """
    Entry point for every operation on packets and work items.
    Each call is an independent request; the acting identity is passed in.
    """

    def __init__(
        self,
        *,
        store: Store,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self.store = store
        self.config = config or EngineConfig()
        self.clock = clock
        self.id_factory = id_factory
        self.review_flow = ReviewFlow(store, checklist_items=self.config.checklist_items, clock=clock)
        self.export_gate = ExportGate(store)

    @property
    def segmenter_config(self) -> SegmenterConfig:
        return SegmenterConfig(
            min_paragraph_chars=self.config.min_paragraph_chars,
            min_sentence_chars=self.config.min_sentence_chars,
        )

    # --- catalog ---
    def add_source(self, actor: Actor, *, title: str, content: str, tags: Sequence[str] = ()) -> Source:
        require(actor, Action.MANAGE_CATALOG)
        if not (title or "").strip() or not (content or "").strip():
            raise ValidationError("Source requires a title and non-empty content.")
        return self.store.put_source(Source(id=self.id_factory(), title=title.strip(), content=content, tags=tuple(tags)))

    def add_template(self, actor: Actor, *, name: str, task_type: str, instructions: str = "") -> InstructionTemplate:
        require(actor, Action.MANAGE_CATALOG)
        if not (name or "").strip() or not (task_type or "").strip():
            raise ValidationError("Template requires a name and a task_type.")
        return self.store.put_template(
            InstructionTemplate(id=self.id_factory(), name=name.strip(), task_type=task_type.strip(), instructions=instructions)
        )

    def add_style_tag(self, actor: Actor, *, name: str, description: str = "") -> StyleTag:
        require(actor, Action.MANAGE_CATALOG)
        if not (name or "").strip():
            raise ValidationError("Style tag requires a name.")
        return self.store.put_style_tag(StyleTag(id=self.id_factory(), name=name.strip(), description=description))

    # --- packets ---
    def create_packet(
        self,
        actor: Actor,
        *,
        source_id: str,
        template_id: str,
        unit_type: str,
        translator_ids: Sequence[str],
        style_tag_id: Optional[str] = None,
    ) -> Tuple[WorkPacket, int]:
        """
        Segment + distribute + persist as one bundle.
        Returns (packet, item_count). Any failure persists nothing.
        """
        require(actor, Action.CREATE_PACKET)

        if not source_id:
            raise ValidationError("source_id is required.")
        if not template_id:
            raise ValidationError("template_id is required.")
        try:
            ut = UnitType(unit_type)
        except ValueError as e:
            raise ValidationError(f"Unsupported unit_type {unit_type!r}. Use 'sentence' or 'paragraph'.") from e

        source = self.store.get_source(source_id)
        if source is None:
            raise NotFoundError(f"Source {source_id} not found.")
        if self.store.get_template(template_id) is None:
            raise NotFoundError(f"Template {template_id} not found.")
        if style_tag_id and self.store.get_style_tag(style_tag_id) is None:
            raise NotFoundError(f"Style tag {style_tag_id} not found.")

        roster = make_roster(translator_ids)
        fragments = segment(source.content, ut, self.segmenter_config)
        if not fragments:
            raise ValidationError(
                f"Source {source_id} produced no {ut.value} units above the minimum length; packet not created."
            )

        now = self.clock()
        packet = WorkPacket(
            id=self.id_factory(),
            source_id=source_id,
            template_id=template_id,
            unit_type=ut,
            roster=roster,
            created_by=actor.user_id,
            created_at=now,
            style_tag_id=style_tag_id or None,
        )
        items, assignments = distribute(fragments, roster, packet_id=packet.id, now=now, id_factory=self.id_factory)
        problems = verify_distribution(items, roster)
        if problems:
            raise WorkflowError(f"Distribution invariant violated: {problems[:3]}")

        self.store.create_packet_bundle(PacketBundle(packet=packet, items=items, assignments=assignments))
        logger.info(
            "packet %s created by %s: %d %s units over %d translators",
            packet.id, actor.user_id, len(items), ut.value, len(roster),
        )
        return packet, len(items)

    def list_packets(self, actor: Actor) -> List[WorkPacket]:
        require(actor, Action.MANAGE_PACKETS)
        return self.store.list_packets()

    def set_packet_status(self, actor: Actor, packet_id: str, status: str) -> WorkPacket:
        require(actor, Action.MANAGE_PACKETS)
        packet = self.store.get_packet(packet_id)
        if packet is None:
            raise NotFoundError(f"Packet {packet_id} not found.")
        try:
            ps = PacketStatus(status)
        except ValueError as e:
            raise ValidationError(f"Unsupported packet status {status!r}.") from e
        return self.store.update_packet(packet.with_status(ps))

    # --- translator side ---
    def list_assigned_units(self, actor: Actor) -> List[WorkItem]:
        """Open units for the acting translator: newest packet first, then sequence order."""
        require(actor, Action.LIST_OWN_WORK)
        items = self.store.find_items(
            lambda it: it.assigned_to == actor.user_id and it.status in _TRANSLATOR_OPEN
        )

        def key(it: WorkItem):
            packet = self.store.get_packet(it.packet_id)
            created = packet.created_at.timestamp() if packet else 0.0
            return (-created, it.packet_id, it.sequence_number)

        return sorted(items, key=key)

    def get_item(self, actor: Actor, item_id: str) -> WorkItem:
        require(actor, Action.VIEW_ITEM)
        item = self._load_item(item_id)
        if actor.role is Role.TRANSLATOR and item.assigned_to != actor.user_id:
            raise AuthorizationError(f"Item {item_id} is not assigned to user {actor.user_id}.")
        return item

    def save_draft(
        self, actor: Actor, item_id: str, target_text: str, *, expected_version: Optional[int] = None
    ) -> WorkItem:
        item = self._load_item(item_id)
        updated = sm.save_draft(item, target_text, actor, expected_version=expected_version)
        self.store.update_item(updated, expected_version=item.version)
        logger.debug("draft saved on item %s by %s", item_id, actor.user_id)
        return updated

    def submit(
        self,
        actor: Actor,
        item_id: str,
        target_text: Optional[str] = None,
        *,
        expected_version: Optional[int] = None,
    ) -> WorkItem:
        item = self._load_item(item_id)
        updated = sm.submit(item, target_text, actor, now=self.clock(), expected_version=expected_version)
        self.store.update_item(updated, expected_version=item.version)
        logger.info("item %s submitted for review by %s (from %s)", item_id, actor.user_id, item.status.value)
        return updated

    # --- review side ---
    def list_review_queue(self, actor: Actor) -> List[WorkItem]:
        require(actor, Action.VIEW_QA_QUEUE)
        return self.review_flow.queue()

    def next_for_review(self, actor: Actor, after_id: Optional[str] = None) -> Optional[WorkItem]:
        require(actor, Action.VIEW_QA_QUEUE)
        return self.review_flow.next_after(after_id)

    def review(
        self,
        actor: Actor,
        item_id: str,
        decision: str,
        *,
        checklist: Optional[Mapping[str, bool]] = None,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> WorkItem:
        return self.review_flow.decide(
            item_id,
            decision,
            actor,
            checklist=checklist,
            reason=reason,
            expected_version=expected_version,
        )

    # --- export / reporting ---
    def export_approved(self, actor: Actor, filters: Optional[ExportFilters] = None) -> List[ExportRecord]:
        require(actor, Action.EXPORT)
        records = self.export_gate.export(filters)
        logger.info("export by %s returned %d records", actor.user_id, len(records))
        return records

    def dashboard_stats(self, actor: Actor) -> Dict[str, Any]:
        require(actor, Action.VIEW_STATS)
        items = self.store.find_items()
        today = self.clock().date()

        approved = [it for it in items if it.status is ItemStatus.APPROVED]
        rejected = sum(1 for it in items if it.status is ItemStatus.REJECTED)
        in_qa = sum(1 for it in items if it.status is ItemStatus.IN_QA)
        approved_today = sum(1 for it in approved if it.reviewed_at and it.reviewed_at.date() == today)
        reviewed = len(approved) + rejected
        rejection_rate = round(rejected / reviewed * 100, 1) if reviewed else 0.0

        return {
            "approved_units": len(approved),
            "approved_today": approved_today,
            "qa_queue": in_qa,
            "rejection_rate": rejection_rate,
        }

    def _load_item(self, item_id: str) -> WorkItem:
        item = self.store.get_item(item_id)
        if item is None:
            raise NotFoundError(f"Work item {item_id} not found.")
        return item
