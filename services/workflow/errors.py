# services/workflow/errors.py
from __future__ import annotations


class WorkflowError(RuntimeError):
    """Base for every non-retriable engine error."""

    kind = "workflow_error"
    status_code = 500


class ValidationError(WorkflowError):
    """Malformed input; nothing was persisted."""

    kind = "validation_error"
    status_code = 400


class AuthenticationError(WorkflowError):
    """Request carries no usable identity."""

    kind = "authentication_error"
    status_code = 401


class AuthorizationError(WorkflowError):
    """Actor lacks the role or ownership for the request."""

    kind = "authorization_error"
    status_code = 403


class IllegalTransitionError(WorkflowError):
    """Transition not reachable from the item's current status."""

    kind = "illegal_transition"
    status_code = 409


class NotFoundError(WorkflowError):
    kind = "not_found"
    status_code = 404


class ConflictError(WorkflowError):
    """Item changed since the caller read it (stale version)."""

    kind = "conflict"
    status_code = 409
