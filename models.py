"""
Database models for the property management governance core
"""
from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _iso(value):
    return value.isoformat() if value else None


class Role(db.Model):
    """Named role carrying a JSON list of permission strings"""
    __tablename__ = 'roles'

    id = db.Column(db.Integer, primary_key=True)
    role_name = db.Column(db.String(50), unique=True, nullable=False, index=True)  # Admin, Staff, Technician, Tenant
    permissions = db.Column(db.Text)  # JSON list, e.g. '["units.*", "leases.view"]'
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    users = db.relationship('User', backref='role', lazy='dynamic')

    def __repr__(self):
        return f'<Role {self.role_name}>'

    def to_dict(self):
        from core.permissions.evaluator import parse_permissions

        return {
            'id': self.id,
            'role_name': self.role_name,
            'permissions': sorted(parse_permissions(self.permissions)),
            'created_at': _iso(self.created_at),
        }


class User(db.Model):
    """Account holder: admin, staff, technician or tenant depending on role"""
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False, default='')
    role_id = db.Column(db.Integer, db.ForeignKey('roles.id'), index=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<User {self.email}>'

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role_id': self.role_id,
            'role_name': self.role.role_name if self.role else None,
            'created_at': _iso(self.created_at),
        }


# ============================================
# Business records the governance core resolves
# ============================================

class Lease(db.Model):
    """Tenancy agreement for a unit"""
    __tablename__ = 'leases'

    id = db.Column(db.Integer, primary_key=True)
    tenant_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    unit_number = db.Column(db.String(50), nullable=False)
    start_date = db.Column(db.DateTime, nullable=False)
    end_date = db.Column(db.DateTime, nullable=False)
    monthly_rent = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.String(20), nullable=False, default='Active')  # Active, Terminated, Expired
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    tenant = db.relationship('User', foreign_keys=[tenant_user_id])
    invoices = db.relationship('Invoice', backref='lease', lazy='dynamic')

    def __repr__(self):
        return f'<Lease {self.id} unit={self.unit_number}>'

    def to_dict(self):
        return {
            'id': self.id,
            'tenant_user_id': self.tenant_user_id,
            'unit_number': self.unit_number,
            'start_date': _iso(self.start_date),
            'end_date': _iso(self.end_date),
            'monthly_rent': str(self.monthly_rent) if self.monthly_rent is not None else None,
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


class Invoice(db.Model):
    """Rent invoice raised against a lease"""
    __tablename__ = 'invoices'

    id = db.Column(db.Integer, primary_key=True)
    lease_id = db.Column(db.Integer, db.ForeignKey('leases.id'), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    due_date = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.String(20), nullable=False, default='Pending')  # Pending, Paid, Overdue
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def __repr__(self):
        return f'<Invoice {self.id} lease={self.lease_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'lease_id': self.lease_id,
            'amount': str(self.amount) if self.amount is not None else None,
            'due_date': _iso(self.due_date),
            'status': self.status,
            'created_at': _iso(self.created_at),
        }


# ============================================
# Governance: audit, approvals, notifications
# ============================================

class AuditLog(db.Model):
    """Append-only record of a mutating action. Never updated or deleted."""
    __tablename__ = 'audit_logs'

    VALID_ACTION_TYPES = ('CREATE', 'UPDATE', 'DELETE')

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    action_type = db.Column(db.String(10), nullable=False, index=True)
    table_name = db.Column(db.String(100), nullable=False, index=True)
    record_id = db.Column(db.String(64))
    old_values = db.Column(db.Text)  # JSON snapshot
    new_values = db.Column(db.Text)  # JSON snapshot
    timestamp = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)

    user = db.relationship('User', foreign_keys=[user_id])

    def __repr__(self):
        return f'<AuditLog {self.action_type} {self.table_name} by={self.user_id}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'user_name': self.user.name if self.user else None,
            'action_type': self.action_type,
            'table_name': self.table_name,
            'record_id': self.record_id,
            'old_values': self.old_values,
            'new_values': self.new_values,
            'timestamp': _iso(self.timestamp),
        }


class StaffActionApproval(db.Model):
    """Deferred staff mutation awaiting a single administrator review"""
    __tablename__ = 'staff_action_approvals'

    STATUS_PENDING = 'Pending'
    STATUS_APPROVED = 'Approved'
    STATUS_REJECTED = 'Rejected'
    VALID_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

    id = db.Column(db.Integer, primary_key=True)
    staff_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    action_type = db.Column(db.String(50), nullable=False)  # Create, Update, Delete, LeaseCreated, ...
    table_name = db.Column(db.String(100), nullable=False)
    record_id = db.Column(db.Integer)
    action_data = db.Column(db.Text)  # opaque payload, JSON by convention
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id'))
    admin_notes = db.Column(db.Text)
    submitted_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False, index=True)
    reviewed_at = db.Column(db.DateTime)

    staff = db.relationship('User', foreign_keys=[staff_id])
    admin = db.relationship('User', foreign_keys=[admin_id])

    def __repr__(self):
        return f'<StaffActionApproval {self.id} {self.action_type} {self.status}>'

    @property
    def is_terminal(self):
        return self.status != self.STATUS_PENDING

    def to_dict(self):
        return {
            'id': self.id,
            'staff_id': self.staff_id,
            'staff_name': self.staff.name if self.staff else None,
            'action_type': self.action_type,
            'table_name': self.table_name,
            'record_id': self.record_id,
            'action_data': self.action_data,
            'status': self.status,
            'admin_id': self.admin_id,
            'admin_name': self.admin.name if self.admin else None,
            'admin_notes': self.admin_notes,
            'submitted_at': _iso(self.submitted_at),
            'reviewed_at': _iso(self.reviewed_at),
        }


class ScheduledNotification(db.Model):
    """Notice created ahead of time, delivered once its trigger date passes"""
    __tablename__ = 'scheduled_notifications'

    STATUS_PENDING = 'Pending'
    STATUS_SENT = 'Sent'
    STATUS_FAILED = 'Failed'
    STATUS_CANCELLED = 'Cancelled'
    VALID_STATUSES = (STATUS_PENDING, STATUS_SENT, STATUS_FAILED, STATUS_CANCELLED)

    id = db.Column(db.Integer, primary_key=True)
    notification_type = db.Column(db.String(50), nullable=False)  # RentReminder, ContractExpiry
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    trigger_date = db.Column(db.DateTime, nullable=False, index=True)
    message_template = db.Column(db.Text, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    related_entity_type = db.Column(db.String(50))  # Invoice, Lease
    related_entity_id = db.Column(db.Integer)
    sent_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    recipient = db.relationship('User', foreign_keys=[recipient_id])

    __table_args__ = (
        db.Index('ix_sched_notif_status_trigger', 'status', 'trigger_date'),
    )

    def __repr__(self):
        return f'<ScheduledNotification {self.id} {self.notification_type} {self.status}>'

    def to_dict(self):
        return {
            'id': self.id,
            'notification_type': self.notification_type,
            'recipient_id': self.recipient_id,
            'trigger_date': _iso(self.trigger_date),
            'message_template': self.message_template,
            'status': self.status,
            'related_entity_type': self.related_entity_type,
            'related_entity_id': self.related_entity_id,
            'sent_at': _iso(self.sent_at),
            'created_at': _iso(self.created_at),
        }


class Notification(db.Model):
    """User-visible notification in the tenant-facing feed"""
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    message = db.Column(db.Text, nullable=False)
    type = db.Column(db.String(50), nullable=False, default='Info')  # Info, RentReminder, ContractExpiry, LeaseExpiry, NewInvoice
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def __repr__(self):
        return f'<Notification {self.id} user={self.user_id} {self.type}>'

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'message': self.message,
            'type': self.type,
            'is_read': self.is_read,
            'created_at': _iso(self.created_at),
        }
