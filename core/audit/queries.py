"""
Audit query helpers — filtered, paginated reads for the admin audit view.
"""
import math

from core.errors import NotFoundError

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 200


def get_audit_logs(user_id=None, action_type=None, table_name=None,
                   start_date=None, end_date=None, page=1,
                   page_size=DEFAULT_PAGE_SIZE):
    """Query the audit trail.

    Args:
        user_id: Optional filter by actor.
        action_type: Optional filter ('CREATE', 'UPDATE', 'DELETE').
        table_name: Optional filter by table.
        start_date: Optional inclusive lower bound on timestamp.
        end_date: Optional inclusive upper bound on timestamp.
        page: 1-based page number.
        page_size: Entries per page (clamped to 1..MAX_PAGE_SIZE).

    Returns:
        dict with total, page, page_size, total_pages, data (list[AuditLog])
        ordered by timestamp descending.
    """
    from models import AuditLog

    page = max(int(page or 1), 1)
    page_size = min(max(int(page_size or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

    q = AuditLog.query

    if user_id is not None:
        q = q.filter(AuditLog.user_id == user_id)
    if action_type:
        q = q.filter(AuditLog.action_type == action_type)
    if table_name:
        q = q.filter(AuditLog.table_name == table_name)
    if start_date is not None:
        q = q.filter(AuditLog.timestamp >= start_date)
    if end_date is not None:
        q = q.filter(AuditLog.timestamp <= end_date)

    total = q.count()
    entries = (
        q.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )

    return {
        'total': total,
        'page': page,
        'page_size': page_size,
        'total_pages': math.ceil(total / page_size) if total else 0,
        'data': entries,
    }


def get_audit_log(audit_log_id):
    """Return a single audit entry or raise NotFoundError."""
    from models import db, AuditLog

    entry = db.session.get(AuditLog, audit_log_id)
    if entry is None:
        raise NotFoundError('Audit log not found')
    return entry
