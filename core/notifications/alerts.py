"""
Immediate alerts — feed notifications generated from current business state.

Unlike scheduled notices these are written straight into the feed. The
generators are idempotent per record: a reminder whose marker text already
appears in the tenant's feed under the same type is not written again, so
running them daily (or twice by hand) never duplicates an alert.

    generate_rent_due_reminders   — pending invoices due in the lead window
    generate_lease_expiry_alerts  — active leases ending in the notice window
    create_invoice_notification   — "new invoice" alert for one invoice
"""
import logging
from datetime import datetime, time, timedelta

logger = logging.getLogger(__name__)

RENT_DUE = 'RentReminder'
LEASE_EXPIRY = 'LeaseExpiry'
NEW_INVOICE = 'NewInvoice'


def generate_rent_due_reminders(now=None, lead_days=None):
    """Remind tenants of pending invoices falling due lead_days from today.

    Args:
        now: Reference time (defaults to utcnow).
        lead_days: Days ahead to look (defaults to RENT_REMINDER_LEAD_DAYS).

    Returns:
        dict: {'matched', 'created', 'skipped'}
    """
    from models import Invoice
    from core.notifications.scheduler import rent_reminder_lead_days

    if lead_days is None:
        lead_days = rent_reminder_lead_days()
    window_start, window_end = _day_window(now, lead_days)

    invoices = (
        Invoice.query
        .filter(Invoice.status == 'Pending',
                Invoice.due_date >= window_start,
                Invoice.due_date < window_end)
        .order_by(Invoice.id.asc())
        .all()
    )

    summary = {'matched': len(invoices), 'created': 0, 'skipped': 0}
    for invoice in invoices:
        if invoice.lease is None:
            summary['skipped'] += 1
            continue
        tenant_id = invoice.lease.tenant_user_id
        if _already_alerted(tenant_id, RENT_DUE, _invoice_marker(invoice.id)):
            summary['skipped'] += 1
            continue

        _add(tenant_id, RENT_DUE,
             f'Reminder: {_invoice_marker(invoice.id)} RM{invoice.amount:.2f} '
             f'is due on {invoice.due_date:%b %d, %Y}')
        summary['created'] += 1

    _commit('rent due reminders')
    logger.info("[notify] Rent due reminders: %s created, %s skipped",
                summary['created'], summary['skipped'])
    return summary


def generate_lease_expiry_alerts(now=None, notice_days=None):
    """Alert tenants whose active lease ends notice_days from today.

    Args:
        now: Reference time (defaults to utcnow).
        notice_days: Days ahead to look (defaults to LEASE_EXPIRY_NOTICE_DAYS).

    Returns:
        dict: {'matched', 'created', 'skipped'}
    """
    from models import Lease
    from core.notifications.scheduler import lease_expiry_notice_days

    if notice_days is None:
        notice_days = lease_expiry_notice_days()
    window_start, window_end = _day_window(now, notice_days)

    leases = (
        Lease.query
        .filter(Lease.status == 'Active',
                Lease.end_date >= window_start,
                Lease.end_date < window_end)
        .order_by(Lease.id.asc())
        .all()
    )

    summary = {'matched': len(leases), 'created': 0, 'skipped': 0}
    for lease in leases:
        marker = f'lease for Unit {lease.unit_number} will expire on {lease.end_date:%b %d, %Y}'
        if _already_alerted(lease.tenant_user_id, LEASE_EXPIRY, marker):
            summary['skipped'] += 1
            continue

        _add(lease.tenant_user_id, LEASE_EXPIRY,
             f'Your {marker}. Please contact us to renew.')
        summary['created'] += 1

    _commit('lease expiry alerts')
    logger.info("[notify] Lease expiry alerts: %s created, %s skipped",
                summary['created'], summary['skipped'])
    return summary


def create_invoice_notification(invoice_id, commit=True):
    """Tell the tenant a new invoice was raised.

    Returns:
        Notification, or None if the invoice cannot be resolved.
    """
    from models import db, Invoice

    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None or invoice.lease is None:
        logger.warning("[notify] Cannot notify new invoice: Invoice %s not found", invoice_id)
        return None

    notification = _add(
        invoice.lease.tenant_user_id, NEW_INVOICE,
        f'New invoice #{invoice.id} for RM{invoice.amount:.2f} has been generated. '
        f'Due date: {invoice.due_date:%b %d, %Y}',
    )
    if commit:
        _commit('invoice notification')
    else:
        db.session.flush()

    logger.info("[notify] Created invoice notification for user %s, invoice %s",
                invoice.lease.tenant_user_id, invoice_id)
    return notification


def _invoice_marker(invoice_id):
    # "for" keeps "#1" from matching "#12".
    return f'Invoice #{invoice_id} for'


def _already_alerted(user_id, notification_type, marker):
    from models import Notification

    return (
        Notification.query
        .filter(Notification.user_id == user_id,
                Notification.type == notification_type,
                Notification.message.contains(marker, autoescape=True))
        .first()
        is not None
    )


def _add(user_id, notification_type, message):
    from models import db
    from core.notifications.feed import new_notification

    notification = new_notification(user_id, message, notification_type)
    db.session.add(notification)
    return notification


def _day_window(now, days_ahead):
    now = now or datetime.utcnow()
    start = datetime.combine((now + timedelta(days=int(days_ahead))).date(), time.min)
    return start, start + timedelta(days=1)


def _commit(what):
    from models import db

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        logger.error("[notify] Failed to save %s: %s", what, e)
        raise
