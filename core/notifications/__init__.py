"""
core.notifications — Scheduled notifications and the user notification feed.

Public API:
    schedule_rent_reminder, schedule_lease_expiry_notification — scheduling
    cancel_scheduled_notification, cancel_notifications_for_entity — cancellation
    get_scheduled_notifications                                — queries
    rent_reminder_lead_days, lease_expiry_notice_days          — configured lead times
    process_pending_notifications                              — the sweep
    run_sweep_cycle                                            — cron wrapper
    generate_rent_due_reminders, generate_lease_expiry_alerts,
    create_invoice_notification                                — immediate alerts
    create_notification, get_user_notifications,
    mark_notification_read, mark_all_notifications_read,
    delete_notification                                        — feed
"""

from core.notifications.scheduler import (
    RENT_REMINDER,
    CONTRACT_EXPIRY,
    schedule_rent_reminder,
    schedule_lease_expiry_notification,
    cancel_scheduled_notification,
    cancel_notifications_for_entity,
    get_scheduled_notifications,
    rent_reminder_lead_days,
    lease_expiry_notice_days,
)
from core.notifications.dispatcher import (
    build_notification,
    get_due_notifications,
    process_pending_notifications,
)
from core.notifications.sweep_worker import run_sweep_cycle
from core.notifications.alerts import (
    generate_rent_due_reminders,
    generate_lease_expiry_alerts,
    create_invoice_notification,
)
from core.notifications.feed import (
    new_notification,
    create_notification,
    get_user_notifications,
    mark_notification_read,
    mark_all_notifications_read,
    delete_notification,
)

__all__ = [
    'RENT_REMINDER',
    'CONTRACT_EXPIRY',
    'schedule_rent_reminder',
    'schedule_lease_expiry_notification',
    'cancel_scheduled_notification',
    'cancel_notifications_for_entity',
    'get_scheduled_notifications',
    'rent_reminder_lead_days',
    'lease_expiry_notice_days',
    'build_notification',
    'get_due_notifications',
    'process_pending_notifications',
    'run_sweep_cycle',
    'generate_rent_due_reminders',
    'generate_lease_expiry_alerts',
    'create_invoice_notification',
    'new_notification',
    'create_notification',
    'get_user_notifications',
    'mark_notification_read',
    'mark_all_notifications_read',
    'delete_notification',
]
