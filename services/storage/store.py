from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Callable, Dict, List, Optional, Protocol

from services.workflow.errors import ConflictError, NotFoundError, ValidationError
from services.workflow.models import (
    InstructionTemplate,
    PacketBundle,
    Source,
    StyleTag,
    WorkItem,
    WorkItemAssignment,
    WorkPacket,
)

logger = logging.getLogger(__name__)

ItemPredicate = Callable[[WorkItem], bool]


class Store(Protocol):
    def put_source(self, source: Source) -> Source: ...
    def get_source(self, source_id: str) -> Optional[Source]: ...
    def put_template(self, template: InstructionTemplate) -> InstructionTemplate: ...
    def get_template(self, template_id: str) -> Optional[InstructionTemplate]: ...
    def put_style_tag(self, tag: StyleTag) -> StyleTag: ...
    def get_style_tag(self, tag_id: str) -> Optional[StyleTag]: ...

    def create_packet_bundle(self, bundle: PacketBundle) -> None: ...
    def get_packet(self, packet_id: str) -> Optional[WorkPacket]: ...
    def list_packets(self) -> List[WorkPacket]: ...
    def update_packet(self, packet: WorkPacket) -> WorkPacket: ...
    def list_assignments(self, packet_id: str) -> List[WorkItemAssignment]: ...

    def get_item(self, item_id: str) -> Optional[WorkItem]: ...
    def find_items(self, predicate: Optional[ItemPredicate] = None) -> List[WorkItem]: ...
    def update_item(self, item: WorkItem, *, expected_version: int) -> WorkItem: ...


class InMemoryStore:
    """
    Process-local store. Packet creation and the id indexes are guarded by one
    store-wide lock so a bundle is visible either completely or not at all.
    Item and packet updates take only their own packet's lock.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._sources: Dict[str, Source] = {}
        self._templates: Dict[str, InstructionTemplate] = {}
        self._style_tags: Dict[str, StyleTag] = {}
        self._packets: Dict[str, WorkPacket] = {}
        self._assignments: Dict[str, List[WorkItemAssignment]] = {}
        self._items: Dict[str, WorkItem] = {}
        self._items_by_packet: Dict[str, List[str]] = {}
        self._packet_locks: Dict[str, threading.RLock] = {}

    # --- persistence hooks (no-op in memory) ---
    def _persist_catalog(self, kind: str, obj_id: str, payload: dict) -> None:
        pass

    def _persist_bundle(self, bundle: PacketBundle) -> None:
        pass

    # --- catalog ---
    def put_source(self, source: Source) -> Source:
        with self._lock:
            self._persist_catalog("sources", source.id, source.to_dict())
            self._sources[source.id] = source
        return source

    def get_source(self, source_id: str) -> Optional[Source]:
        return self._sources.get(source_id)

    def put_template(self, template: InstructionTemplate) -> InstructionTemplate:
        with self._lock:
            self._persist_catalog("templates", template.id, template.to_dict())
            self._templates[template.id] = template
        return template

    def get_template(self, template_id: str) -> Optional[InstructionTemplate]:
        return self._templates.get(template_id)

    def put_style_tag(self, tag: StyleTag) -> StyleTag:
        with self._lock:
            self._persist_catalog("style_tags", tag.id, tag.to_dict())
            self._style_tags[tag.id] = tag
        return tag

    def get_style_tag(self, tag_id: str) -> Optional[StyleTag]:
        return self._style_tags.get(tag_id)

    # --- packets ---
    def _packet_lock(self, packet_id: str) -> threading.RLock:
        with self._lock:
            return self._packet_locks.setdefault(packet_id, threading.RLock())

    def _bundle_for(self, packet_id: str) -> PacketBundle:
        return PacketBundle(
            packet=self._packets[packet_id],
            items=[self._items[i] for i in self._items_by_packet.get(packet_id, [])],
            assignments=list(self._assignments.get(packet_id, [])),
        )

    def _commit_bundle(self, bundle: PacketBundle) -> None:
        pid = bundle.packet.id
        self._packets[pid] = bundle.packet
        self._assignments[pid] = list(bundle.assignments)
        self._items_by_packet[pid] = [it.id for it in bundle.items]
        for it in bundle.items:
            self._items[it.id] = it

    def create_packet_bundle(self, bundle: PacketBundle) -> None:
        with self._lock:
            pid = bundle.packet.id
            if pid in self._packets:
                raise ValidationError(f"Packet {pid} already exists.")
            clash = [it.id for it in bundle.items if it.id in self._items]
            if clash:
                raise ValidationError(f"Work item ids already exist: {clash[:5]}")
            # persist first: a failed write leaves memory untouched
            self._persist_bundle(bundle)
            self._commit_bundle(bundle)
        logger.info("stored packet %s with %d items", pid, len(bundle.items))

    def get_packet(self, packet_id: str) -> Optional[WorkPacket]:
        return self._packets.get(packet_id)

    def list_packets(self) -> List[WorkPacket]:
        with self._lock:
            return sorted(self._packets.values(), key=lambda p: p.created_at, reverse=True)

    def update_packet(self, packet: WorkPacket) -> WorkPacket:
        if packet.id not in self._packets:
            raise NotFoundError(f"Packet {packet.id} not found.")
        with self._packet_lock(packet.id):
            bundle = self._bundle_for(packet.id)
            bundle.packet = packet
            self._persist_bundle(bundle)
            self._packets[packet.id] = packet
        return packet

    def list_assignments(self, packet_id: str) -> List[WorkItemAssignment]:
        return list(self._assignments.get(packet_id, []))

    # --- items ---
    def get_item(self, item_id: str) -> Optional[WorkItem]:
        return self._items.get(item_id)

    def find_items(self, predicate: Optional[ItemPredicate] = None) -> List[WorkItem]:
        with self._lock:
            items = list(self._items.values())
        return [it for it in items if predicate is None or predicate(it)]

    def update_item(self, item: WorkItem, *, expected_version: int) -> WorkItem:
        """Compare-and-swap on the item's version, under its packet's lock only."""
        known = self._items.get(item.id)
        if known is None:
            raise NotFoundError(f"Work item {item.id} not found.")
        with self._packet_lock(known.packet_id):
            current = self._items[item.id]
            if current.version != expected_version:
                raise ConflictError(
                    f"Work item {item.id} changed concurrently "
                    f"(stored version {current.version}, expected {expected_version}, "
                    f"stored status '{current.status.value}')."
                )
            bundle = self._bundle_for(current.packet_id)
            bundle.items = [item if it.id == item.id else it for it in bundle.items]
            self._persist_bundle(bundle)
            self._items[item.id] = item
        return item


class LocalJsonStore(InMemoryStore):
    """
    JSON-on-disk store. Layout:
      <root>/sources/<id>.json, templates/, style_tags/
      <root>/packets/<packet_id>.json   (packet + items + assignments)

    One file per packet keeps creation all-or-nothing: the bundle is written
    to a temp file and renamed into place.
    """

    def __init__(self, root_dir: str) -> None:
        super().__init__()
        self.root = Path(root_dir)
        self.root.mkdir(parents=True, exist_ok=True)
        self._load()

    @staticmethod
    def _write_json_atomic(out: Path, obj: dict) -> None:
        out.parent.mkdir(parents=True, exist_ok=True)
        tmp = out.with_suffix(out.suffix + ".tmp")
        tmp.write_text(json.dumps(obj, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(out)  # atomic on same filesystem

    @staticmethod
    def _read_json(p: Path) -> dict:
        return json.loads(p.read_text(encoding="utf-8"))

    def _persist_catalog(self, kind: str, obj_id: str, payload: dict) -> None:
        self._write_json_atomic(self.root / kind / f"{obj_id}.json", payload)

    def _persist_bundle(self, bundle: PacketBundle) -> None:
        self._write_json_atomic(
            self.root / "packets" / f"{bundle.packet.id}.json",
            {
                "packet": bundle.packet.to_dict(),
                "items": [it.to_dict() for it in bundle.items],
                "assignments": [a.to_dict() for a in bundle.assignments],
            },
        )

    def _load(self) -> None:
        for p in sorted((self.root / "sources").glob("*.json")):
            src = Source.from_dict(self._read_json(p))
            self._sources[src.id] = src
        for p in sorted((self.root / "templates").glob("*.json")):
            tpl = InstructionTemplate.from_dict(self._read_json(p))
            self._templates[tpl.id] = tpl
        for p in sorted((self.root / "style_tags").glob("*.json")):
            tag = StyleTag.from_dict(self._read_json(p))
            self._style_tags[tag.id] = tag
        for p in sorted((self.root / "packets").glob("*.json")):
            raw = self._read_json(p)
            self._commit_bundle(
                PacketBundle(
                    packet=WorkPacket.from_dict(raw["packet"]),
                    items=[WorkItem.from_dict(d) for d in raw.get("items", [])],
                    assignments=[WorkItemAssignment.from_dict(d) for d in raw.get("assignments", [])],
                )
            )
        logger.info("loaded %d packets from %s", len(self._packets), self.root)
