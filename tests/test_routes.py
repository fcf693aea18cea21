"""
HTTP tests for the governance API: authorization mapping, approvals,
audit log, roles, notifications and the internal sweep endpoint.
"""
import json
import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from models import db, AuditLog, Lease, Notification, ScheduledNotification, StaffActionApproval

DENIED = 'You do not have permission to perform this action'


@pytest.mark.routes
class TestAuthorizationMapping:

    @pytest.mark.parametrize('method,path', [
        ('get', '/api/approvals'),
        ('post', '/api/approvals'),
        ('get', '/api/approvals/1'),
        ('put', '/api/approvals/1/approve'),
        ('get', '/api/audit-logs'),
        ('get', '/api/roles'),
        ('get', '/api/permissions/me'),
        ('get', '/api/notifications'),
        ('get', '/api/scheduled-notifications'),
    ])
    def test_no_session_is_401(self, client, method, path):
        resp = getattr(client, method)(path, json={})
        assert resp.status_code == 401
        assert resp.get_json()['error'] == 'Authentication required'

    @pytest.mark.parametrize('method,path', [
        ('get', '/api/approvals'),
        ('put', '/api/approvals/1/approve'),
        ('get', '/api/audit-logs'),
        ('get', '/api/roles'),
        ('get', '/api/scheduled-notifications'),
    ])
    def test_denied_is_generic_403(self, login, tenant_user, method, path):
        client = login(tenant_user)
        resp = getattr(client, method)(path, json={})

        assert resp.status_code == 403
        body = resp.get_json()
        assert body == {'error': DENIED}

    def test_user_without_role_is_denied(self, login, roleless_user):
        resp = login(roleless_user).get('/api/audit-logs')
        assert resp.status_code == 403

    def test_health(self, client):
        resp = client.get('/api/health')
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'healthy'


@pytest.mark.routes
class TestApprovalRoutes:

    def _submit(self, client, lease):
        return client.post('/api/approvals', json={
            'action_type': 'LeaseTerminated',
            'table_name': 'Leases',
            'record_id': lease.id,
            'action_data': {},
        })

    def test_staff_submits(self, login, staff_user, lease):
        resp = self._submit(login(staff_user), lease)

        assert resp.status_code == 201
        approval = resp.get_json()['approval']
        assert approval['status'] == 'Pending'
        assert approval['staff_id'] == staff_user.id
        assert approval['action_data'] == '{}'

    def test_tenant_cannot_submit(self, login, tenant_user, lease):
        resp = self._submit(login(tenant_user), lease)
        assert resp.status_code == 403

    def test_submit_validation_error(self, login, staff_user):
        resp = login(staff_user).post('/api/approvals', json={
            'action_type': 'Teleport', 'table_name': 'Leases',
        })
        assert resp.status_code == 400
        assert resp.get_json()['field'] == 'action_type'

    def test_submit_needs_body(self, login, staff_user):
        resp = login(staff_user).post('/api/approvals')
        assert resp.status_code == 400

    def test_admin_approves_and_replays(self, client, login, staff_user, admin_user, lease):
        approval_id = self._submit(login(staff_user), lease).get_json()['approval']['id']

        resp = login(admin_user).put(f'/api/approvals/{approval_id}/approve',
                                     json={'admin_notes': 'tenant moved out'})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['approval']['status'] == 'Approved'
        assert body['approval']['admin_notes'] == 'tenant moved out'
        assert body['replay_error'] is None
        assert body['replay']['record_id'] == lease.id
        assert db.session.get(Lease, lease.id).status == 'Terminated'

    def test_double_approve_is_409(self, login, staff_user, admin_user, lease):
        approval_id = self._submit(login(staff_user), lease).get_json()['approval']['id']
        client = login(admin_user)
        client.put(f'/api/approvals/{approval_id}/approve', json={})

        resp = client.put(f'/api/approvals/{approval_id}/approve', json={})

        assert resp.status_code == 409
        assert 'already reviewed' in resp.get_json()['error']
        assert resp.get_json()['status'] == 'Approved'

    def test_staff_cannot_review(self, login, staff_user, lease):
        client = login(staff_user)
        approval_id = self._submit(client, lease).get_json()['approval']['id']

        resp = client.put(f'/api/approvals/{approval_id}/approve', json={})

        assert resp.status_code == 403
        assert db.session.get(StaffActionApproval, approval_id).status == 'Pending'

    @pytest.mark.parametrize('body', [{}, {'admin_notes': ''}, {'admin_notes': '   '}])
    def test_reject_requires_notes(self, login, staff_user, admin_user, lease, body):
        approval_id = self._submit(login(staff_user), lease).get_json()['approval']['id']

        resp = login(admin_user).put(f'/api/approvals/{approval_id}/reject', json=body)

        assert resp.status_code == 400
        assert resp.get_json()['field'] == 'admin_notes'

    def test_reject(self, login, staff_user, admin_user, lease):
        approval_id = self._submit(login(staff_user), lease).get_json()['approval']['id']

        resp = login(admin_user).put(f'/api/approvals/{approval_id}/reject',
                                     json={'admin_notes': 'insufficient evidence'})

        assert resp.status_code == 200
        assert resp.get_json()['approval']['status'] == 'Rejected'
        assert db.session.get(Lease, lease.id).status == 'Active'

    def test_approve_missing_is_404(self, login, admin_user):
        resp = login(admin_user).put('/api/approvals/999999/approve', json={})
        assert resp.status_code == 404

    def test_list_with_status_filter(self, login, staff_user, admin_user, lease):
        self._submit(login(staff_user), lease)
        self._submit(login(staff_user), lease)

        client = login(admin_user)
        assert client.get('/api/approvals').get_json()['count'] == 2
        assert client.get('/api/approvals?status=Approved').get_json()['count'] == 0
        assert client.get('/api/approvals?status=Bogus').status_code == 400

    def test_detail_visible_to_submitter_and_reviewer_only(self, login, staff_user, admin_user,
                                                           technician_user, lease, roles):
        from core.permissions.roles import create_role
        from models import User

        approval_id = self._submit(login(staff_user), lease).get_json()['approval']['id']

        assert login(staff_user).get(f'/api/approvals/{approval_id}').status_code == 200
        assert login(admin_user).get(f'/api/approvals/{approval_id}').status_code == 200

        role = create_role(admin_user.id, 'Junior', ['approvals.submit'])
        other_staff = User(email='other@example.com', name='Other', role_id=role.id)
        db.session.add(other_staff)
        db.session.commit()
        assert login(other_staff).get(f'/api/approvals/{approval_id}').status_code == 403
        assert login(technician_user).get(f'/api/approvals/{approval_id}').status_code == 403


@pytest.mark.routes
class TestAuditRoutes:

    def test_lists_workflow_entries(self, login, staff_user, admin_user, lease):
        login(staff_user).post('/api/approvals', json={
            'action_type': 'Update', 'table_name': 'Leases',
            'record_id': lease.id, 'action_data': {'status': 'Expired'},
        })

        resp = login(admin_user).get('/api/audit-logs?table_name=StaffActionApprovals&action_type=create')

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['total'] == 1
        assert body['data'][0]['user_id'] == staff_user.id
        assert body['data'][0]['user_name'] == 'Sam Staff'

    def test_bad_filters(self, login, admin_user):
        client = login(admin_user)
        assert client.get('/api/audit-logs?action_type=READ').status_code == 400
        resp = client.get('/api/audit-logs?start_date=yesterday')
        assert resp.status_code == 400
        assert resp.get_json()['field'] == 'start_date'

    def test_detail(self, login, admin_user):
        entry = AuditLog(user_id=admin_user.id, action_type='DELETE', table_name='Invoices')
        db.session.add(entry)
        db.session.commit()

        client = login(admin_user)
        assert client.get(f'/api/audit-logs/{entry.id}').get_json()['audit_log']['table_name'] == 'Invoices'
        assert client.get('/api/audit-logs/999999').status_code == 404


@pytest.mark.routes
class TestRoleRoutes:

    def test_crud(self, login, admin_user):
        client = login(admin_user)

        resp = client.post('/api/roles', json={'role_name': 'Accountant', 'permissions': ['invoices.*']})
        assert resp.status_code == 201
        role_id = resp.get_json()['role']['id']

        resp = client.put(f'/api/roles/{role_id}', json={'permissions': ['invoices.view']})
        assert resp.get_json()['role']['permissions'] == ['invoices.view']

        detail = client.get(f'/api/roles/{role_id}').get_json()
        assert detail['user_count'] == 0

        assert client.delete(f'/api/roles/{role_id}').status_code == 200
        assert client.get(f'/api/roles/{role_id}').status_code == 404

    def test_duplicate_name_is_400(self, login, admin_user):
        resp = login(admin_user).post('/api/roles', json={'role_name': 'Staff', 'permissions': []})
        assert resp.status_code == 400
        assert resp.get_json() == {'error': 'Role name already exists', 'field': 'role_name'}

    def test_cannot_delete_role_in_use(self, login, admin_user, roles):
        resp = login(admin_user).delete(f"/api/roles/{roles['Admin'].id}")
        assert resp.status_code == 400

    def test_permissions_me(self, login, staff_user):
        body = login(staff_user).get('/api/permissions/me').get_json()
        assert body['role'] == 'Staff'
        assert 'approvals.submit' in body['permissions']

    def test_permissions_me_without_role(self, login, roleless_user):
        body = login(roleless_user).get('/api/permissions/me').get_json()
        assert body == {'role': None, 'permissions': []}


@pytest.mark.routes
class TestNotificationRoutes:

    def test_feed_and_mark_read(self, login, tenant_user):
        from core.notifications.feed import create_notification

        n = create_notification(tenant_user.id, 'Welcome')
        client = login(tenant_user)

        body = client.get('/api/notifications').get_json()
        assert body['count'] == 1
        assert body['notifications'][0]['is_read'] is False

        assert client.put(f'/api/notifications/{n.id}/read').status_code == 200
        assert client.get('/api/notifications?unread=true').get_json()['count'] == 0

    def test_mark_other_users_notification_is_404(self, login, tenant_user, staff_user):
        from core.notifications.feed import create_notification

        n = create_notification(staff_user.id, 'Staff only')
        assert login(tenant_user).put(f'/api/notifications/{n.id}/read').status_code == 404

    def test_schedule_rent_reminder_with_default_lead(self, login, staff_user, invoice):
        resp = login(staff_user).post('/api/scheduled-notifications/rent-reminder',
                                      json={'invoice_id': invoice.id})

        assert resp.status_code == 201
        scheduled = resp.get_json()['scheduled_notification']
        assert scheduled['trigger_date'] == '2030-04-28T00:00:00'

        entry = AuditLog.query.filter_by(table_name='ScheduledNotifications').one()
        assert entry.action_type == 'CREATE'
        assert entry.user_id == staff_user.id
        assert json.loads(entry.new_values) == {'invoice_id': invoice.id}

    def test_schedule_rent_reminder_missing_invoice(self, login, staff_user):
        resp = login(staff_user).post('/api/scheduled-notifications/rent-reminder',
                                      json={'invoice_id': 999999, 'reminder_date': '2030-01-01'})
        assert resp.status_code == 404
        assert AuditLog.query.filter_by(table_name='ScheduledNotifications').count() == 0

    def test_schedule_rent_reminder_bad_input(self, login, staff_user):
        client = login(staff_user)
        assert client.post('/api/scheduled-notifications/rent-reminder', json={}).status_code == 400
        resp = client.post('/api/scheduled-notifications/rent-reminder',
                           json={'invoice_id': 1, 'reminder_date': 'soon'})
        assert resp.get_json()['field'] == 'reminder_date'

    def test_schedule_lease_expiry(self, login, staff_user, lease):
        resp = login(staff_user).post('/api/scheduled-notifications/lease-expiry',
                                      json={'lease_id': lease.id})
        assert resp.status_code == 201
        assert resp.get_json()['scheduled_notification']['notification_type'] == 'ContractExpiry'

    def test_schedule_lease_expiry_in_past(self, login, staff_user, lease):
        resp = login(staff_user).post('/api/scheduled-notifications/lease-expiry',
                                      json={'lease_id': lease.id, 'days_before_expiry': 120})
        assert resp.status_code == 200
        assert resp.get_json()['scheduled_notification'] is None
        assert ScheduledNotification.query.count() == 0

    def test_cancel(self, login, admin_user, lease):
        from core.notifications.scheduler import schedule_lease_expiry_notification

        sn = schedule_lease_expiry_notification(lease.id, 30)
        client = login(admin_user)

        first = client.post(f'/api/scheduled-notifications/{sn.id}/cancel')
        second = client.post(f'/api/scheduled-notifications/{sn.id}/cancel')

        assert first.get_json() == {'success': True, 'cancelled': True}
        assert second.status_code == 200
        assert second.get_json()['cancelled'] is False

        # Only the cancel that changed the status is audited.
        entry = AuditLog.query.filter_by(table_name='ScheduledNotifications').one()
        assert entry.action_type == 'UPDATE'
        assert entry.user_id == admin_user.id
        assert entry.record_id == str(sn.id)
        assert json.loads(entry.new_values) == {'status': 'Cancelled'}

    def test_cancel_missing_is_not_audited(self, login, admin_user):
        resp = login(admin_user).post('/api/scheduled-notifications/999999/cancel')

        assert resp.get_json() == {'success': True, 'cancelled': False}
        assert AuditLog.query.filter_by(table_name='ScheduledNotifications').count() == 0

    def test_tenant_cannot_schedule(self, login, tenant_user, invoice):
        resp = login(tenant_user).post('/api/scheduled-notifications/rent-reminder',
                                       json={'invoice_id': invoice.id})
        assert resp.status_code == 403

    def test_mark_all_read(self, login, tenant_user, staff_user):
        from core.notifications.feed import create_notification

        create_notification(tenant_user.id, 'one')
        create_notification(tenant_user.id, 'two')
        create_notification(staff_user.id, 'staff')
        client = login(tenant_user)

        resp = client.put('/api/notifications/read-all')
        assert resp.get_json() == {'success': True, 'marked_read': 2}
        assert client.get('/api/notifications?unread=true').get_json()['count'] == 0
        assert Notification.query.filter_by(user_id=staff_user.id, is_read=False).count() == 1

    def test_delete_notification(self, login, tenant_user, staff_user):
        from core.notifications.feed import create_notification

        mine = create_notification(tenant_user.id, 'mine')
        theirs = create_notification(staff_user.id, 'theirs')
        client = login(tenant_user)

        assert client.delete(f'/api/notifications/{mine.id}').status_code == 200
        assert client.delete(f'/api/notifications/{theirs.id}').status_code == 404
        assert Notification.query.count() == 1

    def test_feed_mutations_need_session(self, client):
        assert client.put('/api/notifications/read-all').status_code == 401
        assert client.delete('/api/notifications/1').status_code == 401

    def test_generate_reminders(self, login, staff_user, tenant_user, lease):
        from models import Invoice

        due = (datetime.utcnow() + timedelta(days=3)).replace(hour=12, minute=0, second=0, microsecond=0)
        db.session.add(Invoice(lease_id=lease.id, amount=1850, due_date=due, status='Pending'))
        db.session.commit()
        client = login(staff_user)

        body = client.post('/api/notifications/generate-reminders').get_json()
        assert body['success'] is True
        assert body['rent_reminders']['created'] == 1
        assert body['lease_alerts']['matched'] == 0

        again = client.post('/api/notifications/generate-rent-reminders').get_json()
        assert again['rent_reminders'] == {'matched': 1, 'created': 0, 'skipped': 1}
        assert Notification.query.filter_by(user_id=tenant_user.id, type='RentReminder').count() == 1

    def test_generate_lease_alerts(self, login, admin_user):
        resp = login(admin_user).post('/api/notifications/generate-lease-alerts')
        assert resp.status_code == 200
        assert resp.get_json()['lease_alerts'] == {'matched': 0, 'created': 0, 'skipped': 0}

    @pytest.mark.parametrize('path', [
        '/api/notifications/generate-reminders',
        '/api/notifications/generate-rent-reminders',
        '/api/notifications/generate-lease-alerts',
    ])
    def test_tenant_cannot_generate(self, login, tenant_user, path):
        assert login(tenant_user).post(path).status_code == 403

    def test_generator_failure_is_500(self, login, admin_user):
        with patch('core.notifications.alerts.generate_rent_due_reminders',
                   side_effect=RuntimeError('boom')):
            resp = login(admin_user).post('/api/notifications/generate-rent-reminders')
        assert resp.status_code == 500
        assert resp.get_json() == {'error': 'Error generating rent reminders'}


@pytest.mark.routes
class TestInternalProcess:

    def _due(self, tenant_user):
        sn = ScheduledNotification(
            notification_type='RentReminder',
            recipient_id=tenant_user.id,
            trigger_date=datetime.utcnow() - timedelta(minutes=5),
            message_template='Pay up',
            status='Pending',
        )
        db.session.add(sn)
        db.session.commit()
        return sn

    def test_requires_secret(self, client, monkeypatch):
        monkeypatch.setenv('CRON_SECRET', 's3cret')
        monkeypatch.delenv('ADMIN_PASSWORD', raising=False)

        assert client.post('/api/scheduled-notifications/internal/process').status_code == 401
        resp = client.post('/api/scheduled-notifications/internal/process',
                           headers={'Authorization': 'Bearer wrong'})
        assert resp.status_code == 401

    def test_no_secret_configured_rejects(self, client, monkeypatch):
        monkeypatch.delenv('CRON_SECRET', raising=False)
        monkeypatch.delenv('ADMIN_PASSWORD', raising=False)

        resp = client.post('/api/scheduled-notifications/internal/process',
                           headers={'Authorization': 'Bearer '})
        assert resp.status_code == 401

    def test_cron_delivers(self, client, tenant_user, monkeypatch):
        monkeypatch.setenv('CRON_SECRET', 's3cret')
        self._due(tenant_user)

        resp = client.post('/api/scheduled-notifications/internal/process',
                           headers={'Authorization': 'Bearer s3cret'})

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['success'] is True
        assert body['sent'] == 1
        assert Notification.query.filter_by(user_id=tenant_user.id).count() == 1

    def test_admin_password_fallback(self, client, tenant_user, monkeypatch):
        monkeypatch.delenv('CRON_SECRET', raising=False)
        monkeypatch.setenv('ADMIN_PASSWORD', 'letmein')
        self._due(tenant_user)

        resp = client.post('/api/scheduled-notifications/internal/process',
                           json={'password': 'letmein'})
        assert resp.status_code == 200
        assert resp.get_json()['sent'] == 1
