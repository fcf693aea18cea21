"""
Replay of approved actions — apply the captured payload to its target table.

The workflow's contract ends at the Approved transition. Applying the
mutation belongs to the owning business module, which registers an applier
per action type here:

    @register_replay('LeaseCreated')
    def _apply_lease_created(approval, payload, actor_id):
        ...
        return {...}

Appliers receive the approval, its typed payload and the reviewing admin,
run inside the caller's session, and return a result dict. The approval
stays Approved whatever the applier does; a failed replay is reported,
never rolled into the approval state.
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from core.approvals.payloads import (
    CreatePayload,
    DeletePayload,
    UpdatePayload,
    parse_action_payload,
)
from core.errors import GovernanceError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

_REPLAY_HANDLERS = {}

# Columns a replayed payload may never set directly.
_PROTECTED_FIELDS = frozenset({'id', 'created_at'})


def register_replay(action_type):
    """Decorator: register the applier for an action type."""
    def decorator(fn):
        _REPLAY_HANDLERS[action_type] = fn
        return fn
    return decorator


def replay_approved_action(approval, actor_id):
    """Apply an approved action's payload.

    Args:
        approval: StaffActionApproval, must be Approved.
        actor_id: The admin who approved it (recorded in the audit trail).

    Returns:
        (dict, None) on success — applier result.
        (None, str) on failure — error message.
    """
    from models import db, StaffActionApproval

    if approval.status != StaffActionApproval.STATUS_APPROVED:
        return None, f'Only approved actions can be replayed (status: {approval.status})'

    handler = _REPLAY_HANDLERS.get(approval.action_type)
    if handler is None:
        return None, f'No replay handler registered for {approval.action_type}'

    try:
        payload = parse_action_payload(approval.action_type, approval.action_data)
        result = handler(approval, payload, actor_id)
        db.session.commit()
    except GovernanceError as e:
        db.session.rollback()
        logger.warning("[approvals] Replay of approval %s rejected: %s", approval.id, e)
        return None, str(e)
    except Exception as e:
        db.session.rollback()
        logger.error("[approvals] Replay of approval %s failed: %s", approval.id, e)
        return None, 'Failed to apply approved action'

    logger.info("[approvals] Replayed approval %s (%s on %s)",
                approval.id, approval.action_type, approval.table_name)
    return result, None


# ---------------------------------------------------------------------------
# Generic table appliers
# ---------------------------------------------------------------------------

def _replayable_models():
    from models import Lease, Invoice

    return {
        'Leases': Lease,
        'Invoices': Invoice,
    }


def _model_for(table_name):
    model = _replayable_models().get(table_name)
    if model is None:
        raise ValidationError(f'Table {table_name} does not support replay', field='table_name')
    return model


def _load(model, record_id, table_name):
    from models import db

    if record_id is None:
        raise ValidationError('record_id is required for this action', field='record_id')
    obj = db.session.get(model, record_id)
    if obj is None:
        raise NotFoundError(f'{table_name} record {record_id} not found')
    return obj


def _coerce(model, field, value):
    from models import db

    column = model.__table__.columns.get(field)
    if column is None or field in _PROTECTED_FIELDS:
        raise ValidationError(f'Field "{field}" cannot be set on {model.__tablename__}', field=field)
    if value is None:
        return None

    if isinstance(column.type, db.DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day)
        try:
            return datetime.fromisoformat(str(value))
        except ValueError:
            raise ValidationError(f'Invalid datetime for {field}: {value}', field=field)

    if isinstance(column.type, db.Numeric):
        try:
            return Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f'Invalid number for {field}: {value}', field=field)

    if isinstance(column.type, db.Integer):
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f'Invalid integer for {field}: {value}', field=field)

    return value


def apply_create(approval, payload, actor_id):
    """Insert a new row from a CreatePayload."""
    from models import db
    from core.audit.audit_trail import log_action_objects

    if not isinstance(payload, CreatePayload):
        raise ValidationError('Create actions need a create payload', field='action_data')

    model = _model_for(approval.table_name)
    values = {k: _coerce(model, k, v) for k, v in payload.values.items()}
    obj = model(**values)
    db.session.add(obj)
    db.session.flush()

    log_action_objects(actor_id, 'CREATE', approval.table_name, None, obj, record_id=obj.id)
    return {'action': 'create', 'table_name': approval.table_name, 'record_id': obj.id}


def apply_update(approval, payload, actor_id):
    """Apply an UpdatePayload's changes to the target row."""
    from core.audit.audit_trail import log_action_objects

    if not isinstance(payload, UpdatePayload):
        raise ValidationError('Update actions need an update payload', field='action_data')

    model = _model_for(approval.table_name)
    obj = _load(model, approval.record_id, approval.table_name)
    before = obj.to_dict()

    for field, value in payload.changes.items():
        setattr(obj, field, _coerce(model, field, value))

    log_action_objects(actor_id, 'UPDATE', approval.table_name, before, obj, record_id=obj.id)
    return {
        'action': 'update',
        'table_name': approval.table_name,
        'record_id': obj.id,
        'fields': sorted(payload.changes),
    }


def apply_delete(approval, payload, actor_id):
    """Delete the target row."""
    from models import db
    from core.audit.audit_trail import log_action_objects

    if not isinstance(payload, DeletePayload):
        raise ValidationError('Delete actions need a delete payload', field='action_data')

    model = _model_for(approval.table_name)
    obj = _load(model, approval.record_id, approval.table_name)
    before = obj.to_dict()
    db.session.delete(obj)

    log_action_objects(actor_id, 'DELETE', approval.table_name, before, None, record_id=approval.record_id)
    return {'action': 'delete', 'table_name': approval.table_name, 'record_id': approval.record_id}


register_replay('Create')(apply_create)
register_replay('Update')(apply_update)
register_replay('Delete')(apply_delete)


# ---------------------------------------------------------------------------
# Lease and invoice lifecycle appliers
# ---------------------------------------------------------------------------

@register_replay('LeaseCreated')
def _apply_lease_created(approval, payload, actor_id):
    from core.notifications.scheduler import (
        lease_expiry_notice_days,
        schedule_lease_expiry_notification,
    )

    result = apply_create(_as_table(approval, 'Leases'), payload, actor_id)
    scheduled = schedule_lease_expiry_notification(
        result['record_id'], lease_expiry_notice_days(), commit=False,
    )
    result['scheduled_notification_id'] = scheduled.id if scheduled else None
    return result


@register_replay('LeaseRenewed')
def _apply_lease_renewed(approval, payload, actor_id):
    from core.notifications.scheduler import (
        cancel_notifications_for_entity,
        lease_expiry_notice_days,
        schedule_lease_expiry_notification,
    )

    result = apply_update(_as_table(approval, 'Leases'), payload, actor_id)
    result['cancelled_notifications'] = cancel_notifications_for_entity(
        'Lease', result['record_id'], commit=False,
    )
    scheduled = schedule_lease_expiry_notification(
        result['record_id'], lease_expiry_notice_days(), commit=False,
    )
    result['scheduled_notification_id'] = scheduled.id if scheduled else None
    return result


@register_replay('LeaseTerminated')
def _apply_lease_terminated(approval, payload, actor_id):
    from core.notifications.scheduler import cancel_notifications_for_entity

    changes = dict(payload.changes)
    changes.setdefault('status', 'Terminated')
    result = apply_update(_as_table(approval, 'Leases'), UpdatePayload(changes=changes), actor_id)
    result['cancelled_notifications'] = cancel_notifications_for_entity(
        'Lease', result['record_id'], commit=False,
    )
    return result


@register_replay('InvoiceCreated')
def _apply_invoice_created(approval, payload, actor_id):
    from datetime import timedelta
    from models import db, Invoice
    from core.notifications.alerts import create_invoice_notification
    from core.notifications.scheduler import (
        rent_reminder_lead_days,
        schedule_rent_reminder,
    )

    result = apply_create(_as_table(approval, 'Invoices'), payload, actor_id)
    invoice = db.session.get(Invoice, result['record_id'])
    reminder_date = invoice.due_date - timedelta(days=rent_reminder_lead_days())
    scheduled = schedule_rent_reminder(invoice.id, reminder_date, commit=False)
    result['scheduled_notification_id'] = scheduled.id if scheduled else None
    notification = create_invoice_notification(invoice.id, commit=False)
    result['notification_id'] = notification.id if notification else None
    return result


def _as_table(approval, table_name):
    if approval.table_name != table_name:
        raise ValidationError(
            f'{approval.action_type} applies to {table_name}, not {approval.table_name}',
            field='table_name',
        )
    return approval
