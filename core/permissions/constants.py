"""
Capability catalogue and default role seeds.

Permission strings are dot-segmented ("leases.create"). Two wildcard forms
exist: "*" grants everything, "<module>.*" grants everything in a module.
"""

# Properties
PROPERTIES_VIEW = 'properties.view'
PROPERTIES_CREATE = 'properties.create'
PROPERTIES_EDIT = 'properties.edit'
PROPERTIES_DELETE = 'properties.delete'

# Units
UNITS_VIEW = 'units.view'
UNITS_CREATE = 'units.create'
UNITS_EDIT = 'units.edit'
UNITS_DELETE = 'units.delete'

# Tenants
TENANTS_VIEW = 'tenants.view'
TENANTS_CREATE = 'tenants.create'
TENANTS_EDIT = 'tenants.edit'
TENANTS_DELETE = 'tenants.delete'

# Leases
LEASES_VIEW = 'leases.view'
LEASES_CREATE = 'leases.create'
LEASES_EDIT = 'leases.edit'
LEASES_TERMINATE = 'leases.terminate'

# Finance
INVOICES_VIEW = 'invoices.view'
INVOICES_CREATE = 'invoices.create'
PAYMENTS_VIEW = 'payments.view'
PAYMENTS_CREATE = 'payments.create'
EXPENSES_VIEW = 'expenses.view'
EXPENSES_CREATE = 'expenses.create'

# Maintenance
MAINTENANCE_VIEW = 'maintenance.view'
MAINTENANCE_VIEW_ALL = 'maintenance.view.all'
MAINTENANCE_VIEW_ASSIGNED = 'maintenance.view.assigned'
MAINTENANCE_ASSIGN = 'maintenance.assign'
MAINTENANCE_UPDATE = 'maintenance.update'
MAINTENANCE_CREATE = 'maintenance.create'

# Notifications
NOTIFICATIONS_MANAGE = 'notifications.manage'

# Approvals
APPROVALS_REVIEW = 'approvals.review'
APPROVALS_SUBMIT = 'approvals.submit'

# Admin
USERS_MANAGE = 'users.manage'
ROLES_MANAGE = 'roles.manage'
AUDIT_VIEW = 'audit.view'

ALL_PERMISSIONS = '*'

# Seeded on first run by init_db.py. Staff edits leases and invoices
# directly but must route deletes and terminations through approvals.
DEFAULT_ROLES = {
    'Admin': [ALL_PERMISSIONS],
    'Staff': [
        PROPERTIES_VIEW, PROPERTIES_EDIT,
        'units.*', 'tenants.*',
        LEASES_VIEW, LEASES_CREATE, LEASES_EDIT,
        'invoices.*', 'payments.*', 'expenses.*',
        MAINTENANCE_VIEW_ALL, MAINTENANCE_ASSIGN,
        APPROVALS_SUBMIT,
    ],
    'Technician': [MAINTENANCE_VIEW_ASSIGNED, MAINTENANCE_UPDATE],
    'Tenant': [
        LEASES_VIEW, INVOICES_VIEW, PAYMENTS_VIEW,
        MAINTENANCE_CREATE, MAINTENANCE_VIEW,
    ],
}
