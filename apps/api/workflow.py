from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional, Union

from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from services.engine import WorkflowEngine
from services.export.gate import ExportFilters, to_csv, to_jsonl
from services.workflow.errors import AuthenticationError, AuthorizationError, ValidationError
from services.workflow.models import Actor, Role, WorkItem, WorkPacket


# --- Request models ---
class SourceIn(BaseModel):
    title: str
    content: str
    tags: List[str] = Field(default_factory=list)


class TemplateIn(BaseModel):
    name: str
    task_type: str
    instructions: str = ""


class StyleTagIn(BaseModel):
    name: str
    description: str = ""


class PacketIn(BaseModel):
    source_id: str
    template_id: str
    unit_type: str
    translator_ids: List[str]
    style_tag_id: Optional[str] = None


class PacketStatusIn(BaseModel):
    status: str


class DraftIn(BaseModel):
    target_text: str
    expected_version: Optional[int] = None


class SubmitIn(BaseModel):
    target_text: Optional[str] = None
    expected_version: Optional[int] = None


class ReviewIn(BaseModel):
    decision: str
    checklist: Dict[str, bool] = Field(default_factory=dict)
    reason: Optional[str] = None
    expected_version: Optional[int] = None


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    """Identity is asserted by the session layer in front of this service."""
    if not x_user_id or not x_user_role:
        raise AuthenticationError("X-User-Id and X-User-Role headers are required.")
    try:
        role = Role(x_user_role.strip().lower())
    except ValueError as e:
        raise AuthorizationError(f"Unknown role {x_user_role!r}.") from e
    return Actor(user_id=x_user_id.strip(), role=role)


def _parse_when(name: str, v: Optional[str]) -> Union[date, datetime, None]:
    if not v:
        return None
    try:
        if len(v) == 10:
            return date.fromisoformat(v)
        return datetime.fromisoformat(v)
    except ValueError as e:
        raise ValidationError(f"{name} must be an ISO date or datetime, got {v!r}") from e


def _packet_out(packet: WorkPacket, item_count: Optional[int] = None) -> dict:
    out = packet.to_dict()
    if item_count is not None:
        out["item_count"] = item_count
    return out


def _item_out(item: Optional[WorkItem]) -> Optional[dict]:
    return item.to_dict() if item is not None else None


def create_workflow_router(*, engine: WorkflowEngine) -> APIRouter:
    router = APIRouter()

    # --- Catalog ---
    @router.post("/sources", status_code=201)
    def add_source(body: SourceIn, actor: Actor = Depends(get_actor)):
        return engine.add_source(actor, title=body.title, content=body.content, tags=body.tags).to_dict()

    @router.post("/templates", status_code=201)
    def add_template(body: TemplateIn, actor: Actor = Depends(get_actor)):
        return engine.add_template(
            actor, name=body.name, task_type=body.task_type, instructions=body.instructions
        ).to_dict()

    @router.post("/style-tags", status_code=201)
    def add_style_tag(body: StyleTagIn, actor: Actor = Depends(get_actor)):
        return engine.add_style_tag(actor, name=body.name, description=body.description).to_dict()

    # --- Packets ---
    @router.post("/packets", status_code=201)
    def create_packet(body: PacketIn, actor: Actor = Depends(get_actor)):
        packet, count = engine.create_packet(
            actor,
            source_id=body.source_id,
            template_id=body.template_id,
            unit_type=body.unit_type,
            translator_ids=body.translator_ids,
            style_tag_id=body.style_tag_id,
        )
        return _packet_out(packet, count)

    @router.get("/packets")
    def list_packets(actor: Actor = Depends(get_actor)):
        return [_packet_out(p) for p in engine.list_packets(actor)]

    @router.patch("/packets/{packet_id}/status")
    def set_packet_status(packet_id: str, body: PacketStatusIn, actor: Actor = Depends(get_actor)):
        return _packet_out(engine.set_packet_status(actor, packet_id, body.status))

    # --- Translator ---
    @router.get("/my-work")
    def my_work(actor: Actor = Depends(get_actor)):
        return [_item_out(it) for it in engine.list_assigned_units(actor)]

    @router.get("/items/{item_id}")
    def get_item(item_id: str, actor: Actor = Depends(get_actor)):
        return _item_out(engine.get_item(actor, item_id))

    @router.put("/items/{item_id}/draft")
    def save_draft(item_id: str, body: DraftIn, actor: Actor = Depends(get_actor)):
        return _item_out(
            engine.save_draft(actor, item_id, body.target_text, expected_version=body.expected_version)
        )

    @router.post("/items/{item_id}/submit")
    def submit(item_id: str, body: SubmitIn, actor: Actor = Depends(get_actor)):
        return _item_out(
            engine.submit(actor, item_id, body.target_text, expected_version=body.expected_version)
        )

    # --- QA ---
    @router.get("/qa-queue")
    def qa_queue(actor: Actor = Depends(get_actor)):
        return [_item_out(it) for it in engine.list_review_queue(actor)]

    @router.get("/qa-queue/next")
    def qa_next(after_id: Optional[str] = Query(None), actor: Actor = Depends(get_actor)):
        nxt = engine.next_for_review(actor, after_id)
        return {"exhausted": nxt is None, "item": _item_out(nxt)}

    @router.post("/items/{item_id}/review")
    def review(item_id: str, body: ReviewIn, actor: Actor = Depends(get_actor)):
        return _item_out(
            engine.review(
                actor,
                item_id,
                body.decision,
                checklist=body.checklist,
                reason=body.reason,
                expected_version=body.expected_version,
            )
        )

    # --- Export / stats ---
    @router.get("/export")
    def export(
        fmt: str = Query("jsonl", alias="format"),
        translator_id: Optional[str] = Query(None),
        from_date: Optional[str] = Query(None),
        to_date: Optional[str] = Query(None),
        task_type: Optional[str] = Query(None),
        actor: Actor = Depends(get_actor),
    ):
        filters = ExportFilters(
            translator_id=translator_id or None,
            from_date=_parse_when("from_date", from_date),
            to_date=_parse_when("to_date", to_date),
            task_type=task_type or None,
        )
        records = engine.export_approved(actor, filters)

        if fmt == "json":
            return [r.to_dict() for r in records]
        if fmt == "jsonl":
            return PlainTextResponse(
                to_jsonl(records),
                media_type="application/jsonl",
                headers={"Content-Disposition": 'attachment; filename="translations.jsonl"'},
            )
        if fmt == "csv":
            return PlainTextResponse(
                to_csv(records),
                media_type="text/csv",
                headers={"Content-Disposition": 'attachment; filename="translations.csv"'},
            )
        raise ValidationError(f"Unsupported export format {fmt!r}. Use jsonl, csv or json.")

    @router.get("/stats")
    def stats(actor: Actor = Depends(get_actor)):
        return engine.dashboard_stats(actor)

    return router
