"""
Notification feed — the sink the dispatcher delivers into and users read from.
"""
from datetime import datetime

from core.errors import NotFoundError


def new_notification(user_id, message, notification_type='Info'):
    """Build an unsaved Notification."""
    from models import Notification

    if user_id is None:
        raise ValueError('Notification needs a recipient')
    if not message:
        raise ValueError('Notification message is empty')

    return Notification(
        user_id=user_id,
        message=message,
        type=notification_type or 'Info',
        is_read=False,
        created_at=datetime.utcnow(),
    )


def create_notification(user_id, message, notification_type='Info', commit=True):
    """Create and persist a notification immediately."""
    from models import db

    notification = new_notification(user_id, message, notification_type)
    db.session.add(notification)
    if commit:
        db.session.commit()
    return notification


def get_user_notifications(user_id, unread_only=False, limit=50):
    """Return a user's notifications, newest first."""
    from models import Notification

    q = Notification.query.filter_by(user_id=user_id)
    if unread_only:
        q = q.filter_by(is_read=False)
    return q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_notification_read(notification_id, user_id):
    """Mark one of the user's notifications as read.

    Raises:
        NotFoundError: no such notification for this user.
    """
    from models import db, Notification

    notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if notification is None:
        raise NotFoundError('Notification not found')

    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_notifications_read(user_id):
    """Mark every unread notification of the user as read. Returns the count."""
    from models import db, Notification

    count = Notification.query.filter_by(user_id=user_id, is_read=False).update(
        {'is_read': True}, synchronize_session=False,
    )
    db.session.commit()
    return count


def delete_notification(notification_id, user_id):
    """Delete one of the user's notifications.

    Raises:
        NotFoundError: no such notification for this user.
    """
    from models import db, Notification

    notification = Notification.query.filter_by(id=notification_id, user_id=user_id).first()
    if notification is None:
        raise NotFoundError('Notification not found')

    db.session.delete(notification)
    db.session.commit()
