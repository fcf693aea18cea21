"""
core.audit — Append-only audit trail.

Public API:
    log_action, log_action_objects   — best-effort writes (never raise)
    action_type_for_method           — HTTP method → CREATE/UPDATE/DELETE
    get_audit_logs, get_audit_log    — query side
"""

from core.audit.audit_trail import (
    log_action,
    log_action_objects,
    action_type_for_method,
    serialize_snapshot,
    VALID_ACTION_TYPES,
)
from core.audit.queries import (
    get_audit_logs,
    get_audit_log,
)

__all__ = [
    'log_action',
    'log_action_objects',
    'action_type_for_method',
    'serialize_snapshot',
    'VALID_ACTION_TYPES',
    'get_audit_logs',
    'get_audit_log',
]
