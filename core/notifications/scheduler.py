"""
Notification scheduling — create time-triggered notices ahead of time.

Business events (invoice raised, lease created or renewed) schedule a
Pending ScheduledNotification; the dispatcher delivers it once the trigger
date passes. Scheduling against a record that cannot be resolved, or into
the past, is a logged no-op rather than an error.
"""
import logging
from datetime import datetime, timedelta

logger = logging.getLogger(__name__)

RENT_REMINDER = 'RentReminder'
CONTRACT_EXPIRY = 'ContractExpiry'

# Days before the due date a rent reminder fires by default.
DEFAULT_RENT_REMINDER_LEAD_DAYS = 3

# Days before the lease end date an expiry notice fires by default.
DEFAULT_LEASE_EXPIRY_NOTICE_DAYS = 30


def rent_reminder_lead_days():
    """RENT_REMINDER_LEAD_DAYS from the app config, or the default outside an app."""
    return _config_days('RENT_REMINDER_LEAD_DAYS', DEFAULT_RENT_REMINDER_LEAD_DAYS)


def lease_expiry_notice_days():
    """LEASE_EXPIRY_NOTICE_DAYS from the app config, or the default outside an app."""
    return _config_days('LEASE_EXPIRY_NOTICE_DAYS', DEFAULT_LEASE_EXPIRY_NOTICE_DAYS)


def schedule_rent_reminder(invoice_id, reminder_date, commit=True):
    """Schedule a rent reminder for an invoice's tenant.

    Args:
        invoice_id: The invoice the reminder is about.
        reminder_date: When the reminder should be delivered.
        commit: Commit immediately; pass False to join the caller's transaction.

    Returns:
        ScheduledNotification, or None if the invoice cannot be resolved.
    """
    from models import db, Invoice, ScheduledNotification

    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None or invoice.lease is None:
        logger.warning("[notify] Cannot schedule reminder: Invoice %s not found", invoice_id)
        return None

    scheduled = ScheduledNotification(
        notification_type=RENT_REMINDER,
        recipient_id=invoice.lease.tenant_user_id,
        trigger_date=reminder_date,
        message_template=(
            f'Reminder: Rent payment of RM{invoice.amount:.2f} '
            f'is due on {invoice.due_date:%Y-%m-%d}'
        ),
        status=ScheduledNotification.STATUS_PENDING,
        related_entity_type='Invoice',
        related_entity_id=invoice.id,
    )
    _save(scheduled, commit)

    logger.info("[notify] Scheduled rent reminder for Invoice %s on %s", invoice_id, reminder_date)
    return scheduled


def schedule_lease_expiry_notification(lease_id, days_before_expiry, now=None,
                                       commit=True):
    """Schedule a lease expiry notice days_before_expiry ahead of the end date.

    Args:
        lease_id: The expiring lease.
        days_before_expiry: Lead time in days.
        now: Reference time (defaults to utcnow).
        commit: Commit immediately; pass False to join the caller's transaction.

    Returns:
        ScheduledNotification, or None when the lease is missing or the
        computed trigger date is not in the future.
    """
    from models import db, Lease, ScheduledNotification

    lease = db.session.get(Lease, lease_id)
    if lease is None:
        logger.warning("[notify] Cannot schedule expiry notification: Lease %s not found", lease_id)
        return None

    now = now or datetime.utcnow()
    trigger_date = lease.end_date - timedelta(days=int(days_before_expiry))

    if trigger_date <= now:
        logger.warning("[notify] Notification date %s is in the past for Lease %s",
                       trigger_date, lease_id)
        return None

    scheduled = ScheduledNotification(
        notification_type=CONTRACT_EXPIRY,
        recipient_id=lease.tenant_user_id,
        trigger_date=trigger_date,
        message_template=(
            f'Your lease agreement will expire on {lease.end_date:%Y-%m-%d}. '
            f'Please contact management for renewal.'
        ),
        status=ScheduledNotification.STATUS_PENDING,
        related_entity_type='Lease',
        related_entity_id=lease.id,
    )
    _save(scheduled, commit)

    logger.info("[notify] Scheduled lease expiry notification for Lease %s on %s",
                lease_id, trigger_date)
    return scheduled


def cancel_scheduled_notification(scheduled_notification_id, commit=True):
    """Cancel a scheduled notification that is still Pending.

    Cancelling a missing or non-pending record is a logged no-op.

    Returns:
        bool: True if the notification moved to Cancelled.
    """
    from models import db, ScheduledNotification

    updated = ScheduledNotification.query.filter_by(
        id=scheduled_notification_id,
        status=ScheduledNotification.STATUS_PENDING,
    ).update({'status': ScheduledNotification.STATUS_CANCELLED}, synchronize_session=False)

    if updated == 0:
        current = db.session.get(ScheduledNotification, scheduled_notification_id)
        if current is None:
            logger.warning("[notify] Cannot cancel notification: ScheduledNotification %s not found",
                           scheduled_notification_id)
        else:
            db.session.refresh(current)
            logger.warning("[notify] Cannot cancel notification: ScheduledNotification %s status is %s",
                           scheduled_notification_id, current.status)
        return False

    if commit:
        db.session.commit()
    else:
        _expire(ScheduledNotification, scheduled_notification_id)

    logger.info("[notify] Cancelled scheduled notification %s", scheduled_notification_id)
    return True


def cancel_notifications_for_entity(entity_type, entity_id, commit=True):
    """Cancel every pending notice tied to a business record.

    Used when the record they describe changes (lease renewed or terminated).

    Returns:
        int: Count of notifications cancelled.
    """
    from models import db, ScheduledNotification

    count = ScheduledNotification.query.filter_by(
        related_entity_type=entity_type,
        related_entity_id=entity_id,
        status=ScheduledNotification.STATUS_PENDING,
    ).update({'status': ScheduledNotification.STATUS_CANCELLED}, synchronize_session=False)

    if commit and count:
        db.session.commit()

    if count:
        logger.info("[notify] Cancelled %s pending notification(s) for %s %s",
                    count, entity_type, entity_id)
    return count


def get_scheduled_notifications(status=None, recipient_id=None, limit=100):
    """List scheduled notifications ordered by trigger date ascending."""
    from models import ScheduledNotification

    q = ScheduledNotification.query

    if status:
        q = q.filter_by(status=status)
    if recipient_id is not None:
        q = q.filter_by(recipient_id=recipient_id)

    return (
        q.order_by(ScheduledNotification.trigger_date.asc(), ScheduledNotification.id.asc())
        .limit(limit)
        .all()
    )


def _save(scheduled, commit):
    from models import db

    db.session.add(scheduled)
    if commit:
        db.session.commit()
    else:
        db.session.flush()


def _expire(model, pk):
    from models import db

    obj = db.session.get(model, pk)
    if obj is not None:
        db.session.expire(obj)


def _config_days(key, default):
    from flask import current_app, has_app_context

    if not has_app_context():
        return default
    return int(current_app.config.get(key, default))
