"""
Notification routes — the user's feed plus scheduled-notification management.

Feed:
    GET  /api/notifications                               — Caller's notifications
    PUT  /api/notifications/<id>/read                     — Mark one as read
    PUT  /api/notifications/read-all                       — Mark all as read
    DELETE /api/notifications/<id>                        — Delete one
Alerts:
    POST /api/notifications/generate-reminders             — Rent reminders + lease alerts
    POST /api/notifications/generate-rent-reminders        — Rent due reminders
    POST /api/notifications/generate-lease-alerts          — Lease expiry alerts
Scheduled:
    GET  /api/scheduled-notifications                     — List scheduled notices
    POST /api/scheduled-notifications/rent-reminder       — Schedule a rent reminder
    POST /api/scheduled-notifications/lease-expiry        — Schedule a lease expiry notice
    POST /api/scheduled-notifications/<id>/cancel         — Cancel a pending notice
    POST /api/scheduled-notifications/internal/process    — Cron: deliver due notices
"""
import logging
import os
from datetime import datetime, timedelta

from flask import current_app, jsonify, request

from core.errors import NotFoundError, ValidationError
from core.permissions.constants import (
    INVOICES_CREATE,
    LEASES_CREATE,
    NOTIFICATIONS_MANAGE,
)
from routes.authorization import audited, current_user_id, require_permission

logger = logging.getLogger(__name__)

SCHEDULED_TABLE = 'ScheduledNotifications'


def _require_cron_auth():
    """Verify cron secret or admin password."""
    auth = request.headers.get('Authorization', '')
    cron_secret = os.environ.get('CRON_SECRET', '')
    admin_pw = os.environ.get('ADMIN_PASSWORD', '')

    if cron_secret and auth == f'Bearer {cron_secret}':
        return True
    # Fallback: JSON body password for manual trigger
    data = request.get_json(silent=True) or {}
    if admin_pw and data.get('password') == admin_pw:
        return True
    return False


def _parse_datetime(value, field):
    if value is None or value == '':
        return None
    try:
        return datetime.fromisoformat(str(value))
    except ValueError:
        raise ValidationError(f'{field} must be an ISO 8601 date', field=field)


def _require_int(data, field):
    value = data.get(field)
    if value is None:
        raise ValidationError(f'{field} is required', field=field)
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{field} must be an integer', field=field)


def register_notifications_routes(app):

    # ------------------------------------------------------------------
    # Feed
    # ------------------------------------------------------------------

    @app.route('/api/notifications', methods=['GET'])
    def notifications_list():
        """The caller's notifications, newest first.

        Query params:
            unread (bool, optional): only unread when 'true'.
            limit (int, optional): Max results (default 50).
        """
        user_id = current_user_id()
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.notifications.feed import get_user_notifications

        unread_only = request.args.get('unread', '').lower() in ('1', 'true', 'yes')
        limit = min(max(request.args.get('limit', 50, type=int), 1), 200)

        notifications = get_user_notifications(user_id, unread_only=unread_only, limit=limit)
        return jsonify({
            'notifications': [n.to_dict() for n in notifications],
            'count': len(notifications),
        })

    @app.route('/api/notifications/<int:id>/read', methods=['PUT'])
    def notifications_mark_read(id):
        user_id = current_user_id()
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.notifications.feed import mark_notification_read

        notification = mark_notification_read(id, user_id)
        return jsonify({'success': True, 'notification': notification.to_dict()})

    @app.route('/api/notifications/read-all', methods=['PUT'])
    def notifications_mark_all_read():
        user_id = current_user_id()
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.notifications.feed import mark_all_notifications_read

        count = mark_all_notifications_read(user_id)
        return jsonify({'success': True, 'marked_read': count})

    @app.route('/api/notifications/<int:id>', methods=['DELETE'])
    def notifications_delete(id):
        user_id = current_user_id()
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.notifications.feed import delete_notification

        delete_notification(id, user_id)
        return jsonify({'success': True})

    # ------------------------------------------------------------------
    # Alerts
    # ------------------------------------------------------------------

    @app.route('/api/notifications/generate-reminders', methods=['POST'])
    @require_permission(INVOICES_CREATE, NOTIFICATIONS_MANAGE)
    @require_permission(LEASES_CREATE, NOTIFICATIONS_MANAGE)
    def notifications_generate_all():
        """Run the rent due reminders and the lease expiry alerts."""
        from core.notifications.alerts import (
            generate_lease_expiry_alerts,
            generate_rent_due_reminders,
        )

        try:
            rent = generate_rent_due_reminders()
            leases = generate_lease_expiry_alerts()
        except Exception as e:
            logger.error("[notify] Generating notifications failed: %s", e)
            return jsonify({'error': 'Error generating notifications'}), 500
        return jsonify({'success': True, 'rent_reminders': rent, 'lease_alerts': leases})

    @app.route('/api/notifications/generate-rent-reminders', methods=['POST'])
    @require_permission(INVOICES_CREATE, NOTIFICATIONS_MANAGE)
    def notifications_generate_rent():
        from core.notifications.alerts import generate_rent_due_reminders

        try:
            rent = generate_rent_due_reminders()
        except Exception as e:
            logger.error("[notify] Generating rent reminders failed: %s", e)
            return jsonify({'error': 'Error generating rent reminders'}), 500
        return jsonify({'success': True, 'rent_reminders': rent})

    @app.route('/api/notifications/generate-lease-alerts', methods=['POST'])
    @require_permission(LEASES_CREATE, NOTIFICATIONS_MANAGE)
    def notifications_generate_leases():
        from core.notifications.alerts import generate_lease_expiry_alerts

        try:
            leases = generate_lease_expiry_alerts()
        except Exception as e:
            logger.error("[notify] Generating lease alerts failed: %s", e)
            return jsonify({'error': 'Error generating lease alerts'}), 500
        return jsonify({'success': True, 'lease_alerts': leases})

    # ------------------------------------------------------------------
    # Scheduled notifications
    # ------------------------------------------------------------------

    @app.route('/api/scheduled-notifications', methods=['GET'])
    @require_permission(NOTIFICATIONS_MANAGE)
    def scheduled_list():
        """List scheduled notices ordered by trigger date.

        Query params:
            status (str, optional): Pending, Sent, Failed or Cancelled.
            recipient_id (int, optional)
            limit (int, optional): Max results (default 100).
        """
        from models import ScheduledNotification
        from core.notifications.scheduler import get_scheduled_notifications

        status = request.args.get('status')
        if status and status not in ScheduledNotification.VALID_STATUSES:
            raise ValidationError(f'Invalid status: {status}', field='status')

        limit = min(max(request.args.get('limit', 100, type=int), 1), 500)
        scheduled = get_scheduled_notifications(
            status=status,
            recipient_id=request.args.get('recipient_id', type=int),
            limit=limit,
        )
        return jsonify({
            'scheduled_notifications': [s.to_dict() for s in scheduled],
            'count': len(scheduled),
        })

    @app.route('/api/scheduled-notifications/rent-reminder', methods=['POST'])
    @require_permission(INVOICES_CREATE, NOTIFICATIONS_MANAGE)
    @audited(SCHEDULED_TABLE)
    def scheduled_rent_reminder():
        """Schedule a rent reminder for an invoice.

        Body:
            invoice_id (int)
            reminder_date (ISO 8601, optional): defaults to the invoice due
                date minus RENT_REMINDER_LEAD_DAYS.
        """
        data = request.get_json(silent=True) or {}
        invoice_id = _require_int(data, 'invoice_id')

        from models import db, Invoice
        from core.notifications.scheduler import rent_reminder_lead_days, schedule_rent_reminder

        reminder_date = _parse_datetime(data.get('reminder_date'), 'reminder_date')
        if reminder_date is None:
            invoice = db.session.get(Invoice, invoice_id)
            if invoice is None:
                raise NotFoundError('Invoice not found')
            reminder_date = invoice.due_date - timedelta(days=rent_reminder_lead_days())

        scheduled = schedule_rent_reminder(invoice_id, reminder_date)
        if scheduled is None:
            raise NotFoundError('Invoice not found')

        return jsonify({'success': True, 'scheduled_notification': scheduled.to_dict()}), 201

    @app.route('/api/scheduled-notifications/lease-expiry', methods=['POST'])
    @require_permission(LEASES_CREATE, NOTIFICATIONS_MANAGE)
    @audited(SCHEDULED_TABLE)
    def scheduled_lease_expiry():
        """Schedule a lease expiry notice.

        Body:
            lease_id (int)
            days_before_expiry (int, optional): defaults to LEASE_EXPIRY_NOTICE_DAYS.

        A trigger date already in the past schedules nothing and returns
        scheduled_notification: null.
        """
        data = request.get_json(silent=True) or {}
        lease_id = _require_int(data, 'lease_id')

        from core.notifications.scheduler import lease_expiry_notice_days

        if data.get('days_before_expiry') is None:
            days = lease_expiry_notice_days()
        else:
            days = _require_int(data, 'days_before_expiry')
        if days < 0:
            raise ValidationError('days_before_expiry must not be negative', field='days_before_expiry')

        from models import db, Lease
        from core.notifications.scheduler import schedule_lease_expiry_notification

        if db.session.get(Lease, lease_id) is None:
            raise NotFoundError('Lease not found')

        scheduled = schedule_lease_expiry_notification(lease_id, days)
        if scheduled is None:
            return jsonify({
                'success': True,
                'scheduled_notification': None,
                'message': 'Notification date is in the past; nothing scheduled',
            })

        return jsonify({'success': True, 'scheduled_notification': scheduled.to_dict()}), 201

    @app.route('/api/scheduled-notifications/<int:id>/cancel', methods=['POST'])
    @require_permission(NOTIFICATIONS_MANAGE)
    def scheduled_cancel(id):
        """Cancel a pending notice. Audited only when the status changed."""
        from models import db, ScheduledNotification
        from core.audit.audit_trail import log_action, serialize_snapshot
        from core.notifications.scheduler import cancel_scheduled_notification

        cancelled = cancel_scheduled_notification(id, commit=False)
        if cancelled:
            log_action(
                current_user_id(), 'UPDATE', SCHEDULED_TABLE,
                old_values=serialize_snapshot({'status': ScheduledNotification.STATUS_PENDING}),
                new_values=serialize_snapshot({'status': ScheduledNotification.STATUS_CANCELLED}),
                record_id=id,
            )
            db.session.commit()
        return jsonify({'success': True, 'cancelled': cancelled})

    @app.route('/api/scheduled-notifications/internal/process', methods=['POST'])
    def scheduled_internal_process():
        """Cron: deliver every due scheduled notification. Protected by CRON_SECRET."""
        if not _require_cron_auth():
            return jsonify({'error': 'Unauthorized'}), 401

        from core.notifications.sweep_worker import run_sweep_cycle

        result = run_sweep_cycle(max_seconds=current_app.config['NOTIFICATION_SWEEP_MAX_SECONDS'])
        status_code = 500 if result.get('error') else 200
        return jsonify({'success': status_code == 200, **result}), status_code
