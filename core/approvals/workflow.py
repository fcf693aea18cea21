"""
Staff action approval workflow — staff submit, an administrator reviews once.

State machine:
    Pending → Approved   (approve_action)
    Pending → Rejected   (reject_action, notes required)
Approved and Rejected are terminal.

Critical constraints:
    - Every transition is a compare-and-set on status, so a second
      concurrent reviewer sees the terminal state and gets
      InvalidStateError instead of overwriting the first review. A lost
      compare-and-set does not roll back the session; the caller's pending
      work survives and commits with the caller's transaction.
    - The payload is stored verbatim and never interpreted here; applying
      it is replay.py's job.
    - submit/approve/reject each append an audit entry against
      StaffActionApprovals.
"""
import logging
from datetime import datetime

from core.approvals.payloads import VALID_ACTION_TYPES, encode_action_data
from core.errors import (
    AuthorizationDenied,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from core.permissions.constants import APPROVALS_SUBMIT
from core.permissions.evaluator import has_permission

logger = logging.getLogger(__name__)

APPROVALS_TABLE = 'StaffActionApprovals'

EXECUTE = 'execute'
DEFER = 'defer'


def classify_action(permissions, capability):
    """Decide whether an action runs now or is deferred for review.

    Args:
        permissions: The actor's parsed permission set.
        capability: The full capability the action needs (e.g. 'leases.terminate').

    Returns:
        'execute' when the actor holds the capability, 'defer' when they
        only hold approvals.submit.

    Raises:
        AuthorizationDenied: the actor holds neither.
    """
    if has_permission(permissions, capability):
        return EXECUTE
    if has_permission(permissions, APPROVALS_SUBMIT):
        return DEFER
    raise AuthorizationDenied()


def submit_action(staff_id, action_type, table_name, record_id=None,
                  action_data=None):
    """Capture a staff mutation as a pending approval.

    Args:
        staff_id: The submitting staff user.
        action_type: One of payloads.VALID_ACTION_TYPES.
        table_name: Target table of the deferred mutation.
        record_id: Target row for updates/deletes (None for creates).
        action_data: Opaque payload; dict/list is JSON-encoded, text kept as-is.

    Returns:
        StaffActionApproval in Pending.
    """
    from models import db, User, StaffActionApproval
    from core.audit.audit_trail import log_action_objects

    if action_type not in VALID_ACTION_TYPES:
        raise ValidationError(
            f'Invalid action_type: {action_type}. '
            f'Must be one of: {", ".join(sorted(VALID_ACTION_TYPES))}',
            field='action_type',
        )
    if not isinstance(table_name, str) or not table_name.strip():
        raise ValidationError('table_name is required', field='table_name')
    if record_id is not None:
        try:
            record_id = int(record_id)
        except (TypeError, ValueError):
            raise ValidationError('record_id must be an integer', field='record_id')

    staff = db.session.get(User, staff_id)
    if staff is None:
        raise NotFoundError('Staff member not found')

    approval = StaffActionApproval(
        staff_id=staff_id,
        action_type=action_type,
        table_name=table_name.strip(),
        record_id=record_id,
        action_data=encode_action_data(action_data),
        status=StaffActionApproval.STATUS_PENDING,
        submitted_at=datetime.utcnow(),
    )
    db.session.add(approval)
    db.session.flush()

    log_action_objects(staff_id, 'CREATE', APPROVALS_TABLE, None,
                       _audit_view(approval), record_id=approval.id)
    db.session.commit()

    logger.info("[approvals] Approval %s submitted by staff %s (%s on %s)",
                approval.id, staff_id, action_type, approval.table_name)
    return approval


def approve_action(approval_id, admin_id, notes=None):
    """Approve a pending approval.

    Returns:
        StaffActionApproval in Approved.

    Raises:
        NotFoundError: approval does not exist.
        InvalidStateError: approval was already reviewed.
    """
    from models import StaffActionApproval

    notes = notes.strip() if isinstance(notes, str) and notes.strip() else None
    return _review(approval_id, admin_id, notes, StaffActionApproval.STATUS_APPROVED)


def reject_action(approval_id, admin_id, notes):
    """Reject a pending approval. A stated reason is mandatory.

    Raises:
        ValidationError: notes missing or blank.
        NotFoundError: approval does not exist.
        InvalidStateError: approval was already reviewed.
    """
    from models import StaffActionApproval

    if not isinstance(notes, str) or not notes.strip():
        raise ValidationError('A reason is required to reject an action', field='admin_notes')
    return _review(approval_id, admin_id, notes.strip(), StaffActionApproval.STATUS_REJECTED)


def get_approvals(status=None, staff_id=None, limit=50):
    """List approvals, newest first.

    Args:
        status: Optional filter ('Pending', 'Approved', 'Rejected').
        staff_id: Optional filter by submitter.
        limit: Max entries to return (default 50).
    """
    from models import StaffActionApproval

    q = StaffActionApproval.query

    if status:
        q = q.filter_by(status=status)
    if staff_id is not None:
        q = q.filter_by(staff_id=staff_id)

    return (
        q.order_by(StaffActionApproval.submitted_at.desc(), StaffActionApproval.id.desc())
        .limit(limit)
        .all()
    )


def get_approval(approval_id):
    """Return a single approval or raise NotFoundError."""
    from models import db, StaffActionApproval

    approval = db.session.get(StaffActionApproval, approval_id)
    if approval is None:
        raise NotFoundError('Approval not found')
    return approval


# ---------------------------------------------------------------------------
# Internal: compare-and-set review
# ---------------------------------------------------------------------------

def _review(approval_id, admin_id, notes, new_status):
    from models import db, StaffActionApproval
    from core.audit.audit_trail import log_action

    now = datetime.utcnow()

    # Guard: the status predicate in the UPDATE is the only gate, so two
    # reviewers racing on the same row cannot both win.
    updated = StaffActionApproval.query.filter_by(
        id=approval_id, status=StaffActionApproval.STATUS_PENDING,
    ).update({
        'status': new_status,
        'admin_id': admin_id,
        'admin_notes': notes,
        'reviewed_at': now,
    }, synchronize_session=False)

    if updated == 0:
        # Read the column, not the identity map: a cached instance may be stale.
        current_status = (
            db.session.query(StaffActionApproval.status)
            .filter_by(id=approval_id)
            .scalar()
        )
        if current_status is None:
            raise NotFoundError('Approval not found')
        raise InvalidStateError(
            f'Approval already reviewed (status: {current_status})',
            current_status=current_status,
        )

    log_action(
        admin_id, 'UPDATE', APPROVALS_TABLE,
        old_values=_json({'status': StaffActionApproval.STATUS_PENDING}),
        new_values=_json({
            'status': new_status,
            'admin_id': admin_id,
            'admin_notes': notes,
            'reviewed_at': now.isoformat(),
        }),
        record_id=approval_id,
    )
    db.session.commit()

    approval = db.session.get(StaffActionApproval, approval_id)
    logger.info("[approvals] Approval %s %s by admin %s",
                approval_id, new_status.lower(), admin_id)
    return approval


def _audit_view(approval):
    return {
        'id': approval.id,
        'staff_id': approval.staff_id,
        'action_type': approval.action_type,
        'table_name': approval.table_name,
        'record_id': approval.record_id,
        'action_data': approval.action_data,
        'status': approval.status,
        'submitted_at': approval.submitted_at,
    }


def _json(value):
    from core.audit.audit_trail import serialize_snapshot
    return serialize_snapshot(value)
