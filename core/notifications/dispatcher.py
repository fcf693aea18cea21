"""
Scheduled notification dispatcher — the periodic sweep.

Promotes every Pending ScheduledNotification whose trigger date has passed
into a user-visible Notification. Each item is handled independently: a
failure to materialize one marks it Failed and the sweep moves on.

Exactly-once delivery rests on a single gate: status == 'Pending'. Each
item's transition to Sent or Failed is a compare-and-set on that status, so
a row cancelled (or already swept) by someone else is skipped rather than
delivered twice. All transitions are committed together at the end.
"""
import logging
from datetime import datetime

logger = logging.getLogger(__name__)


def build_notification(scheduled):
    """Materialize the Notification a scheduled notice delivers.

    Does not touch the session; the dispatcher adds it only once the
    scheduled row has been claimed.
    """
    from core.notifications.feed import new_notification

    return new_notification(
        user_id=scheduled.recipient_id,
        message=scheduled.message_template,
        notification_type=scheduled.notification_type,
    )


def get_due_notifications(now=None, limit=None):
    """Return Pending scheduled notifications whose trigger date has passed."""
    from models import ScheduledNotification

    now = now or datetime.utcnow()
    q = (
        ScheduledNotification.query
        .filter(
            ScheduledNotification.status == ScheduledNotification.STATUS_PENDING,
            ScheduledNotification.trigger_date <= now,
        )
        .order_by(ScheduledNotification.trigger_date.asc(), ScheduledNotification.id.asc())
    )
    if limit is not None:
        q = q.limit(limit)
    return q.all()


def process_pending_notifications(now=None, materialize=None, limit=None):
    """Deliver every due scheduled notification.

    Args:
        now: Reference time (defaults to utcnow).
        materialize: Callable(ScheduledNotification) -> Notification;
                     defaults to build_notification.
        limit: Optional cap on items handled in one sweep.

    Returns:
        dict: processed, sent, failed, skipped counts.
    """
    from models import db, ScheduledNotification

    now = now or datetime.utcnow()
    materialize = materialize or build_notification

    due = get_due_notifications(now=now, limit=limit)

    summary = {'processed': len(due), 'sent': 0, 'failed': 0, 'skipped': 0}

    for scheduled in due:
        scheduled_id = scheduled.id
        recipient_id = scheduled.recipient_id
        try:
            notification = materialize(scheduled)
        except Exception as e:
            logger.error("[notify] Error processing scheduled notification %s: %s", scheduled_id, e)
            if _transition(scheduled_id, {'status': ScheduledNotification.STATUS_FAILED}):
                summary['failed'] += 1
            else:
                summary['skipped'] += 1
            continue

        claimed = _transition(scheduled_id, {
            'status': ScheduledNotification.STATUS_SENT,
            'sent_at': datetime.utcnow(),
        })
        if not claimed:
            logger.warning("[notify] Scheduled notification %s is no longer pending; skipped",
                           scheduled_id)
            summary['skipped'] += 1
            continue

        db.session.add(notification)
        summary['sent'] += 1
        logger.info("[notify] Processed scheduled notification %s for user %s",
                    scheduled_id, recipient_id)

    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("[notify] Failed to persist notification sweep")
        raise

    logger.info("[notify] Processed %s pending notifications (sent=%s failed=%s skipped=%s)",
                summary['processed'], summary['sent'], summary['failed'], summary['skipped'])
    return summary


def _transition(scheduled_id, values):
    """Compare-and-set a Pending row to a terminal state. True if this call won."""
    from models import ScheduledNotification

    updated = ScheduledNotification.query.filter_by(
        id=scheduled_id,
        status=ScheduledNotification.STATUS_PENDING,
    ).update(values, synchronize_session=False)
    return updated == 1
