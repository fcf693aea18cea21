"""
Role storage — repository used by the evaluator, plus role management.

The role table is read-mostly. Permission lists are stored as JSON text
for compatibility with existing clients and parsed once at the boundary.
All role mutations are audited against the "Roles" table.
"""
import json

from core.errors import NotFoundError, ValidationError
from core.permissions.evaluator import parse_permissions

ROLES_TABLE = 'Roles'


class RoleRepository:
    """Lookup interface the permission evaluator depends on."""

    def get_role(self, role_id):
        raise NotImplementedError

    def get_role_for_user(self, user_id):
        raise NotImplementedError


class SqlRoleRepository(RoleRepository):
    """Resolves roles through the Flask-SQLAlchemy session."""

    def get_role(self, role_id):
        from models import db, Role

        if role_id is None:
            return None
        return db.session.get(Role, role_id)

    def get_role_for_user(self, user_id):
        from models import db, User

        if user_id is None:
            return None
        user = db.session.get(User, user_id)
        if user is None:
            return None
        return user.role


# ---------------------------------------------------------------------------
# Role management
# ---------------------------------------------------------------------------

def list_roles():
    """Return all roles ordered by name."""
    from models import Role

    return Role.query.order_by(Role.role_name.asc()).all()


def get_role(role_id):
    """Return a role or raise NotFoundError."""
    from models import db, Role

    role = db.session.get(Role, role_id)
    if role is None:
        raise NotFoundError('Role not found')
    return role


def create_role(actor_id, role_name, permissions):
    """Create a role with a unique name.

    Args:
        actor_id: User performing the change (for the audit trail).
        role_name: Unique role name.
        permissions: list of permission strings.

    Returns:
        Role.
    """
    from models import db, Role
    from core.audit.audit_trail import log_action_objects

    role_name = _clean_name(role_name)
    encoded = _encode_permissions(permissions)

    if Role.query.filter_by(role_name=role_name).first() is not None:
        raise ValidationError('Role name already exists', field='role_name')

    role = Role(role_name=role_name, permissions=encoded)
    db.session.add(role)
    db.session.flush()

    log_action_objects(actor_id, 'CREATE', ROLES_TABLE, None, role, record_id=role.id)
    db.session.commit()
    return role


def update_role(actor_id, role_id, role_name=None, permissions=None):
    """Rename a role and/or replace its permission list."""
    from models import Role, db
    from core.audit.audit_trail import log_action_objects

    role = get_role(role_id)
    before = role.to_dict()

    if role_name is not None:
        role_name = _clean_name(role_name)
        clash = Role.query.filter(Role.role_name == role_name, Role.id != role.id).first()
        if clash is not None:
            raise ValidationError('Role name already exists', field='role_name')
        role.role_name = role_name

    if permissions is not None:
        role.permissions = _encode_permissions(permissions)

    log_action_objects(actor_id, 'UPDATE', ROLES_TABLE, before, role, record_id=role.id)
    db.session.commit()
    return role


def delete_role(actor_id, role_id):
    """Delete a role that has no users assigned."""
    from models import db
    from core.audit.audit_trail import log_action_objects

    role = get_role(role_id)
    if role.users.count() > 0:
        raise ValidationError('Cannot delete role with assigned users', field='role_id')

    before = role.to_dict()
    db.session.delete(role)
    log_action_objects(actor_id, 'DELETE', ROLES_TABLE, before, None, record_id=role_id)
    db.session.commit()


def seed_default_roles():
    """Insert any DEFAULT_ROLES that do not exist yet. Returns the names created."""
    from models import db, Role
    from core.permissions.constants import DEFAULT_ROLES

    created = []
    for role_name, permissions in DEFAULT_ROLES.items():
        if Role.query.filter_by(role_name=role_name).first() is not None:
            continue
        db.session.add(Role(role_name=role_name, permissions=_encode_permissions(permissions)))
        created.append(role_name)

    if created:
        db.session.commit()
    return created


def _clean_name(role_name):
    if not isinstance(role_name, str) or not role_name.strip():
        raise ValidationError('role_name is required', field='role_name')
    return role_name.strip()


def _encode_permissions(permissions):
    if not isinstance(permissions, (list, tuple)):
        raise ValidationError('permissions must be a list of strings', field='permissions')
    cleaned = [p.strip() for p in permissions if isinstance(p, str) and p.strip()]
    if len(cleaned) != len(permissions):
        raise ValidationError('permissions must be a list of strings', field='permissions')
    # Stored as an ordered, de-duplicated list; evaluation treats it as a set.
    ordered = sorted(parse_permissions(cleaned))
    return json.dumps(ordered)
