# services/lifecycle/authorization.py
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet

from services.workflow.errors import AuthorizationError
from services.workflow.models import Actor, Role


class Action(str, Enum):
    # item transitions
    SAVE_DRAFT = "save_draft"
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    # engine operations
    CREATE_PACKET = "create_packet"
    MANAGE_PACKETS = "manage_packets"
    MANAGE_CATALOG = "manage_catalog"
    LIST_OWN_WORK = "list_own_work"
    VIEW_ITEM = "view_item"
    VIEW_QA_QUEUE = "view_qa_queue"
    EXPORT = "export"
    VIEW_STATS = "view_stats"


_ANY: FrozenSet[Role] = frozenset(Role)

# (role, action) -> allowed. Anything absent is denied.
AUTHORIZATION_TABLE: Dict[Action, FrozenSet[Role]] = {
    Action.SAVE_DRAFT: frozenset({Role.TRANSLATOR}),
    Action.SUBMIT: frozenset({Role.TRANSLATOR}),
    Action.APPROVE: frozenset({Role.QA, Role.ADMIN}),
    Action.REJECT: frozenset({Role.QA, Role.ADMIN}),
    Action.CREATE_PACKET: frozenset({Role.ADMIN}),
    Action.MANAGE_PACKETS: frozenset({Role.ADMIN}),
    Action.MANAGE_CATALOG: frozenset({Role.ADMIN}),
    Action.LIST_OWN_WORK: frozenset({Role.TRANSLATOR}),
    Action.VIEW_ITEM: _ANY,
    Action.VIEW_QA_QUEUE: frozenset({Role.QA, Role.ADMIN}),
    Action.EXPORT: frozenset({Role.ADMIN}),
    Action.VIEW_STATS: frozenset({Role.ADMIN}),
}


def is_allowed(role: Role, action: Action) -> bool:
    return role in AUTHORIZATION_TABLE.get(action, frozenset())


def require(actor: Actor, action: Action) -> None:
    if not is_allowed(actor.role, action):
        allowed = sorted(r.value for r in AUTHORIZATION_TABLE.get(action, frozenset()))
        raise AuthorizationError(
            f"Role '{actor.role.value}' may not {action.value}; requires one of {allowed}."
        )
