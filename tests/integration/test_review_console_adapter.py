from __future__ import annotations

from fastapi.testclient import TestClient

from apps.api.app_factory import create_app
from apps.review_ui.adapters import ApiAdapter
from services.engine import WorkflowEngine
from services.storage.store import InMemoryStore
from services.workflow.models import Actor, Role

ADMIN = Actor("admin-1", Role.ADMIN)
T1 = Actor("t1", Role.TRANSLATOR)


def _engine_with_two_submissions() -> WorkflowEngine:
    engine = WorkflowEngine(store=InMemoryStore())
    src = engine.add_source(ADMIN, title="Doc", content="First sentence, long enough! Second sentence is long enough?")
    tpl = engine.add_template(ADMIN, name="s", task_type="sentence")
    engine.create_packet(ADMIN, source_id=src.id, template_id=tpl.id, unit_type="sentence", translator_ids=["t1"])
    for it in engine.list_assigned_units(T1):
        engine.submit(T1, it.id, f"translated {it.sequence_number}")
    return engine


def test_console_walks_queue_and_decides():
    client = TestClient(create_app(engine=_engine_with_two_submissions()))
    adapter = ApiAdapter("http://testserver", reviewer_id="qa-1", role="qa", session=client)

    queue = adapter.get_queue()
    assert [c.sequence_number for c in queue] == [1, 2]
    assert queue[0].source_text == "First sentence, long enough"

    first = adapter.next_card()
    assert first.id == queue[0].id

    outcome = adapter.decide(first, "approve", checklist={"accuracy": True, "meaning": True, "dialect": True, "fluency": True})
    assert outcome.error is None
    assert outcome.status == "approved"
    assert outcome.quality_score == 5

    second = adapter.next_card(after_id=first.id)
    assert second.id == queue[1].id

    outcome = adapter.decide(second, "reject", reason="")
    assert outcome.status == "error"
    assert "reason" in outcome.error

    outcome = adapter.decide(second, "reject", reason="wrong dialect")
    assert outcome.status == "rejected"
    assert adapter.next_card(after_id=second.id) is None
    assert adapter.get_queue() == []


def test_stale_card_surfaces_conflict():
    client = TestClient(create_app(engine=_engine_with_two_submissions()))
    a = ApiAdapter("http://testserver", reviewer_id="qa-1", session=client)
    b = ApiAdapter("http://testserver", reviewer_id="qa-2", session=client)

    card_a = a.next_card()
    card_b = b.next_card()
    assert a.decide(card_a, "approve", checklist={"accuracy": True}).status == "approved"

    outcome = b.decide(card_b, "reject", reason="disagree")
    assert outcome.status == "error"
    assert "version" in outcome.error
