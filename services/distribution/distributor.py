# services/distribution/distributor.py
from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Sequence, Tuple
from uuid import uuid4

from services.workflow.errors import ValidationError
from services.workflow.models import ItemStatus, Roster, WorkItem, WorkItemAssignment


def make_roster(translator_ids: Sequence[str]) -> Roster:
    ids = [str(t).strip() if t is not None else "" for t in (translator_ids or [])]
    if not ids:
        raise ValidationError("Roster is empty: at least one translator is required.")
    if any(not t for t in ids):
        raise ValidationError("Roster contains a blank translator id.")
    return Roster(tuple(ids))


def distribute(
    fragments: Sequence[str],
    roster: Roster,
    *,
    packet_id: str,
    now: datetime,
    id_factory: Callable[[], str] = lambda: str(uuid4()),
) -> Tuple[List[WorkItem], List[WorkItemAssignment]]:
    """
    Round-robin: fragment i goes to roster[i % len(roster)] with
    sequence_number i + 1. Workload, skill and availability are not consulted.

    Returns (items, assignments); nothing is persisted here.
    """
    if len(roster) == 0:
        raise ValidationError("Roster is empty: at least one translator is required.")

    items = [
        WorkItem(
            id=id_factory(),
            packet_id=packet_id,
            source_text=text,
            assigned_to=roster.assignee_for(i),
            sequence_number=i + 1,
            created_at=now,
            status=ItemStatus.PENDING,
        )
        for i, text in enumerate(fragments)
    ]
    assignments = [
        WorkItemAssignment(packet_id=packet_id, translator_id=t, created_at=now)
        for t in roster.distinct()
    ]
    return items, assignments


def verify_distribution(items: Sequence[WorkItem], roster: Roster) -> List[str]:
    """
    Re-check the cyclic mapping against the packet's roster.
    Returns a list of problems; empty means the distribution is intact.
    """
    problems: List[str] = []
    ordered = sorted(items, key=lambda it: it.sequence_number)
    for i, it in enumerate(ordered):
        if it.sequence_number != i + 1:
            problems.append(f"sequence gap: expected {i + 1}, found {it.sequence_number}")
            break
    for it in ordered:
        expected = roster.assignee_for(it.sequence_number - 1)
        if it.assigned_to != expected:
            problems.append(
                f"item {it.id} (seq {it.sequence_number}) assigned to {it.assigned_to}, expected {expected}"
            )
    return problems
