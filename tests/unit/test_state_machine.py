from __future__ import annotations

from datetime import datetime, timezone

import pytest

from services.lifecycle import state_machine as sm
from services.lifecycle.authorization import AUTHORIZATION_TABLE, Action, is_allowed
from services.workflow.errors import (
    AuthorizationError,
    ConflictError,
    IllegalTransitionError,
    ValidationError,
)
from services.workflow.models import Actor, ItemStatus, Role, WorkItem

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
OWNER = Actor("t1", Role.TRANSLATOR)
OTHER = Actor("t2", Role.TRANSLATOR)
REVIEWER = Actor("qa-1", Role.QA)
ADMIN = Actor("admin-1", Role.ADMIN)
ALL_CHECKED = {"accuracy": True, "meaning": True, "dialect": True, "fluency": True}


def make_item(status=ItemStatus.PENDING, target_text=None, **kw) -> WorkItem:
    return WorkItem(
        id="w1",
        packet_id="p1",
        source_text="Some source text to translate",
        assigned_to="t1",
        sequence_number=1,
        created_at=NOW,
        status=status,
        target_text=target_text,
        **kw,
    )


@pytest.mark.parametrize(
    "checked, expected",
    [(4, 5), (3, 4), (2, 3), (1, 1), (0, 1)],
)
def test_quality_score_from_checklist(checked, expected):
    keys = list(sm.DEFAULT_CHECKLIST)
    checklist = {k: i < checked for i, k in enumerate(keys)}
    assert sm.quality_score(checklist) == expected


def test_quality_score_three_of_four_is_four():
    assert sm.quality_score({"accuracy": True, "meaning": True, "dialect": True}) == 4


def test_quality_score_rejects_unknown_items():
    with pytest.raises(ValidationError):
        sm.quality_score({"accuracy": True, "spelling": True})


def test_save_draft_only_touches_target_text():
    item = make_item()
    out = sm.save_draft(item, "draft one", OWNER)
    assert out.status is ItemStatus.PENDING
    assert out.target_text == "draft one"
    assert out.submitted_at is None
    assert out.version == item.version + 1


def test_submit_sets_submitted_at():
    out = sm.submit(make_item(target_text="draft"), None, OWNER, now=NOW)
    assert out.status is ItemStatus.IN_QA
    assert out.target_text == "draft"
    assert out.submitted_at == NOW


@pytest.mark.parametrize("text", ["", "   ", None])
def test_submit_requires_text(text):
    with pytest.raises(ValidationError):
        sm.submit(make_item(), text, OWNER, now=NOW)


@pytest.mark.parametrize("actor", [OTHER, REVIEWER, ADMIN])
def test_only_assigned_translator_submits(actor):
    with pytest.raises(AuthorizationError):
        sm.submit(make_item(), "translation", actor, now=NOW)


def test_translator_cannot_approve():
    with pytest.raises(AuthorizationError):
        sm.approve(make_item(ItemStatus.IN_QA, "t"), OWNER, ALL_CHECKED, now=NOW)


def test_approve_sets_review_fields():
    out = sm.approve(make_item(ItemStatus.IN_QA, "t"), REVIEWER, ALL_CHECKED, now=NOW)
    assert out.status is ItemStatus.APPROVED
    assert out.reviewed_by == "qa-1"
    assert out.reviewed_at == NOW
    assert out.quality_score == 5


def test_reject_requires_reason():
    for reason in (None, "", "  "):
        with pytest.raises(ValidationError):
            sm.reject(make_item(ItemStatus.IN_QA, "t"), REVIEWER, reason, now=NOW)


def test_reject_then_resubmit_keeps_reason_as_history():
    rejected = sm.reject(make_item(ItemStatus.IN_QA, "t"), ADMIN, "wrong dialect", now=NOW)
    assert rejected.status is ItemStatus.REJECTED
    assert rejected.rejection_reason == "wrong dialect"
    assert rejected.quality_score is None

    again = sm.submit(rejected, "revised translation", OWNER, now=NOW)
    assert again.status is ItemStatus.IN_QA
    assert again.target_text == "revised translation"
    assert again.rejection_reason == "wrong dialect"


def test_approved_is_terminal():
    approved = make_item(ItemStatus.APPROVED, "t", quality_score=5)
    assert sm.is_terminal(ItemStatus.APPROVED)
    with pytest.raises(IllegalTransitionError):
        sm.approve(approved, REVIEWER, ALL_CHECKED, now=NOW)
    with pytest.raises(IllegalTransitionError):
        sm.reject(approved, REVIEWER, "late", now=NOW)
    with pytest.raises(IllegalTransitionError):
        sm.save_draft(approved, "edit", OWNER)
    with pytest.raises(IllegalTransitionError):
        sm.submit(approved, "edit", OWNER, now=NOW)


def _attempt(action, item):
    if action is Action.SAVE_DRAFT:
        return sm.save_draft(item, "text", OWNER)
    if action is Action.SUBMIT:
        return sm.submit(item, "text", OWNER, now=NOW)
    if action is Action.APPROVE:
        return sm.approve(item, REVIEWER, ALL_CHECKED, now=NOW)
    return sm.reject(item, REVIEWER, "reason", now=NOW)


@pytest.mark.parametrize("status", list(ItemStatus))
@pytest.mark.parametrize("action", list(sm.TRANSITIONS))
def test_transition_table_is_exhaustive(status, action):
    item = make_item(status, "existing")
    rule = sm.TRANSITIONS[action]
    if status in rule.sources:
        out = _attempt(action, item)
        assert out.status is (rule.target or status)
        assert out.version == item.version + 1
    else:
        with pytest.raises(IllegalTransitionError):
            _attempt(action, item)


def test_stale_version_is_a_conflict():
    item = make_item(ItemStatus.IN_QA, "t", version=3)
    with pytest.raises(ConflictError):
        sm.approve(item, REVIEWER, ALL_CHECKED, now=NOW, expected_version=2)
    assert sm.approve(item, REVIEWER, ALL_CHECKED, now=NOW, expected_version=3).version == 4


def test_authorization_table_matches_roles():
    assert is_allowed(Role.QA, Action.APPROVE)
    assert is_allowed(Role.ADMIN, Action.REJECT)
    assert not is_allowed(Role.TRANSLATOR, Action.APPROVE)
    assert not is_allowed(Role.QA, Action.SUBMIT)
    assert not is_allowed(Role.QA, Action.EXPORT)
    assert set(AUTHORIZATION_TABLE) == set(Action)
