from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from services.engine import WorkflowEngine
from services.storage.store import InMemoryStore
from services.workflow.models import Actor, Role


class FakeClock:
    """Strictly increasing server time, one second per call."""

    def __init__(self, start: datetime = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        self.now = self.now + timedelta(seconds=1)
        return self.now

    def jump(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class SeqIds:
    def __init__(self):
        self.n = 0

    def __call__(self) -> str:
        self.n += 1
        return f"id-{self.n:04d}"


TWO_PARAGRAPHS = (
    "The first paragraph is comfortably long.\n\n"
    "The second paragraph is also long enough.\n\n"
    "The third paragraph rounds out the doc.\n\n"
    "Tiny"
)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(store, clock):
    return WorkflowEngine(store=store, clock=clock, id_factory=SeqIds())


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def qa():
    return Actor(user_id="qa-1", role=Role.QA)


@pytest.fixture
def t1():
    return Actor(user_id="t1", role=Role.TRANSLATOR)


@pytest.fixture
def t2():
    return Actor(user_id="t2", role=Role.TRANSLATOR)


@pytest.fixture
def catalog(engine, admin):
    """(source, template, style_tag) ready for packet creation."""
    source = engine.add_source(admin, title="Doc", content=TWO_PARAGRAPHS)
    template = engine.add_template(admin, name="Dialect paragraphs", task_type="paragraph")
    tag = engine.add_style_tag(admin, name="formal", description="Formal register")
    return source, template, tag


@pytest.fixture
def packet(engine, admin, catalog):
    source, template, tag = catalog
    p, _ = engine.create_packet(
        admin,
        source_id=source.id,
        template_id=template.id,
        unit_type="paragraph",
        translator_ids=["t1", "t2"],
        style_tag_id=tag.id,
    )
    return p
