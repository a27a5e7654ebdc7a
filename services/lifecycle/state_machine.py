# services/lifecycle/state_machine.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, FrozenSet, Mapping, Optional, Sequence

from services.lifecycle.authorization import Action, require
from services.workflow.errors import (
    AuthorizationError,
    ConflictError,
    IllegalTransitionError,
    ValidationError,
)
from services.workflow.models import Actor, ItemStatus, WorkItem


DEFAULT_CHECKLIST: tuple = ("accuracy", "meaning", "dialect", "fluency")


@dataclass(frozen=True)
class TransitionRule:
    sources: FrozenSet[ItemStatus]
    target: Optional[ItemStatus]  # None keeps the current status
    owner_only: bool


_TRANSLATOR_EDITABLE = frozenset({ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.REJECTED})

TRANSITIONS: Dict[Action, TransitionRule] = {
    Action.SAVE_DRAFT: TransitionRule(_TRANSLATOR_EDITABLE, None, owner_only=True),
    Action.SUBMIT: TransitionRule(_TRANSLATOR_EDITABLE, ItemStatus.IN_QA, owner_only=True),
    Action.APPROVE: TransitionRule(frozenset({ItemStatus.IN_QA}), ItemStatus.APPROVED, owner_only=False),
    Action.REJECT: TransitionRule(frozenset({ItemStatus.IN_QA}), ItemStatus.REJECTED, owner_only=False),
}


def allowed_actions(status: ItemStatus) -> list:
    return [a for a, rule in TRANSITIONS.items() if status in rule.sources]


def is_terminal(status: ItemStatus) -> bool:
    return not allowed_actions(status)


def _guard(
    item: WorkItem,
    action: Action,
    actor: Actor,
    expected_version: Optional[int],
) -> None:
    """Role, ownership, version, then source status."""
    require(actor, action)
    rule = TRANSITIONS[action]
    if rule.owner_only and item.assigned_to != actor.user_id:
        raise AuthorizationError(
            f"Item {item.id} is assigned to {item.assigned_to}; "
            f"user {actor.user_id} may not {action.value} it."
        )
    # a stale read reports the conflict, not whatever status it raced into
    if expected_version is not None and expected_version != item.version:
        raise ConflictError(
            f"Item {item.id} is at version {item.version} (status '{item.status.value}'), "
            f"request was based on version {expected_version}."
        )
    if item.status not in rule.sources:
        expected = sorted(s.value for s in rule.sources)
        raise IllegalTransitionError(
            f"Cannot {action.value} item {item.id}: status is '{item.status.value}', "
            f"expected one of {expected}."
        )


def quality_score(
    checklist: Mapping[str, bool],
    items: Sequence[str] = DEFAULT_CHECKLIST,
) -> int:
    """
    round_half_up(checked / total * 5), clamped to 1..5.

    Keys missing from `checklist` count as unchecked; unknown keys are rejected.
    """
    if not items:
        raise ValidationError("Quality checklist has no items configured.")
    unknown = sorted(set(checklist) - set(items))
    if unknown:
        raise ValidationError(f"Unknown checklist items: {unknown}. Expected a subset of {list(items)}.")

    checked = sum(1 for k in items if bool(checklist.get(k, False)))
    raw = (Decimal(checked) / Decimal(len(items)) * 5).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(1, min(5, int(raw)))


def save_draft(
    item: WorkItem,
    target_text: str,
    actor: Actor,
    *,
    expected_version: Optional[int] = None,
) -> WorkItem:
    _guard(item, Action.SAVE_DRAFT, actor, expected_version)
    return replace(item, target_text=target_text, version=item.version + 1)


def submit(
    item: WorkItem,
    target_text: Optional[str],
    actor: Actor,
    *,
    now: datetime,
    expected_version: Optional[int] = None,
) -> WorkItem:
    _guard(item, Action.SUBMIT, actor, expected_version)
    text = target_text if target_text is not None else item.target_text
    if not text or not text.strip():
        raise ValidationError(f"Item {item.id} cannot be submitted with an empty translation.")
    # rejection_reason is left in place as history of the previous round
    return replace(
        item,
        target_text=text,
        status=ItemStatus.IN_QA,
        submitted_at=now,
        version=item.version + 1,
    )


def approve(
    item: WorkItem,
    actor: Actor,
    checklist: Mapping[str, bool],
    *,
    now: datetime,
    checklist_items: Sequence[str] = DEFAULT_CHECKLIST,
    expected_version: Optional[int] = None,
) -> WorkItem:
    _guard(item, Action.APPROVE, actor, expected_version)
    score = quality_score(checklist, checklist_items)
    return replace(
        item,
        status=ItemStatus.APPROVED,
        reviewed_by=actor.user_id,
        reviewed_at=now,
        quality_score=score,
        version=item.version + 1,
    )


def reject(
    item: WorkItem,
    actor: Actor,
    reason: Optional[str],
    *,
    now: datetime,
    expected_version: Optional[int] = None,
) -> WorkItem:
    _guard(item, Action.REJECT, actor, expected_version)
    if not reason or not reason.strip():
        raise ValidationError(f"A rejection reason is required to reject item {item.id}.")
    return replace(
        item,
        status=ItemStatus.REJECTED,
        reviewed_by=actor.user_id,
        reviewed_at=now,
        rejection_reason=reason.strip(),
        quality_score=None,
        version=item.version + 1,
    )
