# services/review/qa_flow.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Mapping, Optional, Sequence, Tuple, Union

from services.lifecycle import state_machine as sm
from services.lifecycle.authorization import Action, require
from services.storage.store import Store
from services.workflow.errors import NotFoundError, ValidationError
from services.workflow.models import Actor, ItemStatus, WorkItem

logger = logging.getLogger(__name__)


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _queue_key(it: WorkItem) -> Tuple[datetime, str, int]:
    # submitted_at is always set for in_qa items; ties fall back to packet order
    return (it.submitted_at or it.created_at, it.packet_id, it.sequence_number)


class ReviewFlow:
    """
    FIFO review over the live set of in_qa items. Nothing is cached: every
    call re-reads the store.
    """

    def __init__(
        self,
        store: Store,
        *,
        checklist_items: Sequence[str] = sm.DEFAULT_CHECKLIST,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.checklist_items = tuple(checklist_items)
        self.clock = clock

    def queue(self) -> List[WorkItem]:
        items = self.store.find_items(lambda it: it.status is ItemStatus.IN_QA)
        return sorted(items, key=_queue_key)

    def next_after(self, after_id: Optional[str] = None) -> Optional[WorkItem]:
        """
        Item following `after_id` in the current queue, or the head when
        `after_id` is None. If `after_id` already left the queue (it was just
        decided), resume at the first item submitted after it.
        Returns None when the queue is exhausted.
        """
        q = self.queue()
        if after_id is None:
            return q[0] if q else None

        for idx, it in enumerate(q):
            if it.id == after_id:
                return q[idx + 1] if idx + 1 < len(q) else None

        anchor = self.store.get_item(after_id)
        if anchor is None:
            raise NotFoundError(f"Work item {after_id} not found.")
        anchor_key = _queue_key(anchor)
        for it in q:
            if _queue_key(it) > anchor_key:
                return it
        return None

    def decide(
        self,
        item_id: str,
        decision: Union[Decision, str],
        actor: Actor,
        *,
        checklist: Optional[Mapping[str, bool]] = None,
        reason: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> WorkItem:
        try:
            d = Decision(decision)
        except ValueError as e:
            raise ValidationError(f"Unknown decision {decision!r}. Use 'approve' or 'reject'.") from e

        require(actor, Action.APPROVE if d is Decision.APPROVE else Action.REJECT)
        item = self.store.get_item(item_id)
        if item is None:
            raise NotFoundError(f"Work item {item_id} not found.")

        now = self.clock()
        if d is Decision.APPROVE:
            updated = sm.approve(
                item,
                actor,
                checklist or {},
                now=now,
                checklist_items=self.checklist_items,
                expected_version=expected_version,
            )
        else:
            updated = sm.reject(item, actor, reason, now=now, expected_version=expected_version)

        self.store.update_item(updated, expected_version=item.version)
        logger.info(
            "item %s %s by %s (score=%s)",
            item_id, updated.status.value, actor.user_id, updated.quality_score,
        )
        return updated
