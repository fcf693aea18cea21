"""
core.errors — Typed failures surfaced by the governance core.

The permission evaluator and the audit trail never raise these; they are
for workflow precondition violations that the HTTP layer turns into a
clear response (see routes/authorization.py for the status mapping).
"""


class GovernanceError(Exception):
    """Base class for governance core failures."""


class ValidationError(GovernanceError, ValueError):
    """Malformed or missing required input."""

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field


class NotFoundError(GovernanceError, LookupError):
    """Referenced record does not exist."""


class InvalidStateError(GovernanceError):
    """Transition attempted on a record that is no longer in the required state."""

    def __init__(self, message, current_status=None):
        super().__init__(message)
        self.current_status = current_status


class AuthorizationDenied(GovernanceError):
    """Actor lacks every capability that would permit the action.

    Deliberately carries no detail about which permission was missing.
    """

    GENERIC_MESSAGE = 'You do not have permission to perform this action'

    def __init__(self, message=GENERIC_MESSAGE):
        super().__init__(message)
