"""
Audit trail — append-only log of mutating actions.

Writing an entry is best-effort: serialization or storage problems are
logged and absorbed, and the return value only reports whether an entry
was recorded. A failing audit write never raises into, or rolls back, the
business operation it describes.

Each entry is flushed inside its own SAVEPOINT on the caller's session. A
written entry commits with the caller's transaction unless commit=True is
passed (standalone use, e.g. the request-level audit hook, after the
business change is already committed); a failed entry is rolled back to
its savepoint alone.
"""
import json
import logging
from datetime import date, datetime
from decimal import Decimal

logger = logging.getLogger(__name__)

VALID_ACTION_TYPES = frozenset({'CREATE', 'UPDATE', 'DELETE'})

_METHOD_ACTIONS = {
    'POST': 'CREATE',
    'PUT': 'UPDATE',
    'PATCH': 'UPDATE',
    'DELETE': 'DELETE',
}


def action_type_for_method(method):
    """Map an HTTP method to an audit action type. GET and others → None."""
    if not method:
        return None
    return _METHOD_ACTIONS.get(method.upper())


def log_action(user_id, action_type, table_name, old_values=None,
               new_values=None, record_id=None, commit=False):
    """Append one audit entry from already-serialized snapshots.

    The insert runs inside a SAVEPOINT and is flushed there, so a storage
    failure (NOT NULL, foreign key, column length) is rolled back to the
    savepoint and absorbed. The caller's pending changes are untouched and
    still commit with the caller's transaction.

    Args:
        user_id: Effective actor.
        action_type: 'CREATE', 'UPDATE' or 'DELETE'.
        table_name: Logical table the action targeted.
        old_values: JSON text snapshot before the change, or None.
        new_values: JSON text snapshot after the change, or None.
        record_id: Optional id of the affected row.
        commit: Commit immediately (standalone call) instead of riding on
                the caller's transaction.

    Returns:
        bool: True if the entry was written, False if it was absorbed.
    """
    from models import db, AuditLog

    if action_type not in VALID_ACTION_TYPES or not table_name:
        logger.error("[audit] Rejected entry %r on %r for user=%s",
                     action_type, table_name, user_id)
        return False

    try:
        with db.session.begin_nested():
            db.session.add(AuditLog(
                user_id=user_id,
                action_type=action_type,
                table_name=table_name,
                record_id=str(record_id) if record_id is not None else None,
                old_values=old_values,
                new_values=new_values,
                timestamp=datetime.utcnow(),
            ))
            db.session.flush()
    except Exception as e:
        logger.error("[audit] Failed to record %s on %s for user=%s: %s",
                     action_type, table_name, user_id, e)
        return False

    if not commit:
        return True

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error("[audit] Failed to commit %s on %s for user=%s: %s",
                     action_type, table_name, user_id, e)
        return False
    return True


def log_action_objects(user_id, action_type, table_name, old_object=None,
                       new_object=None, record_id=None, commit=False):
    """Serialize two snapshot objects to JSON, then delegate to log_action.

    Models are snapshotted through their to_dict(). Serialization errors are
    absorbed like any other audit failure.
    """
    try:
        old_values = serialize_snapshot(old_object)
        new_values = serialize_snapshot(new_object)
    except Exception as e:
        logger.error("[audit] Failed to serialize snapshots for %s on %s user=%s: %s",
                     action_type, table_name, user_id, e)
        return False

    return log_action(user_id, action_type, table_name, old_values, new_values,
                      record_id=record_id, commit=commit)


def serialize_snapshot(obj):
    """Return compact JSON text for a snapshot, or None for None."""
    if obj is None:
        return None
    if hasattr(obj, 'to_dict') and callable(obj.to_dict):
        obj = obj.to_dict()
    return json.dumps(obj, default=_json_default, separators=(',', ':'))


def _json_default(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    if hasattr(value, 'to_dict') and callable(value.to_dict):
        return value.to_dict()
    raise TypeError(f'Object of type {type(value).__name__} is not JSON serializable')
