"""
core.permissions — Role-based permission evaluation.

Public API:
    parse_permissions                          — stored JSON → frozenset
    has_permission, any_permission,
    all_permissions                            — pure capability checks
    get_role_permissions, get_user_permissions,
    user_has_permission                        — repository-backed lookups
    RoleRepository, SqlRoleRepository          — role lookup seam
    list_roles, get_role, create_role,
    update_role, delete_role                   — role management
    seed_default_roles                         — first-run role seeding
"""

from core.permissions.evaluator import (
    parse_permissions,
    has_permission,
    any_permission,
    all_permissions,
    get_role_permissions,
    get_user_permissions,
    user_has_permission,
)
from core.permissions.roles import (
    RoleRepository,
    SqlRoleRepository,
    list_roles,
    get_role,
    create_role,
    update_role,
    delete_role,
    seed_default_roles,
)

__all__ = [
    'parse_permissions',
    'has_permission',
    'any_permission',
    'all_permissions',
    'get_role_permissions',
    'get_user_permissions',
    'user_has_permission',
    'RoleRepository',
    'SqlRoleRepository',
    'list_roles',
    'get_role',
    'create_role',
    'update_role',
    'delete_role',
    'seed_default_roles',
]
