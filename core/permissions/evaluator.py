"""
Permission evaluator — pure checks over a role's permission set.

Runs on every authorization decision, so it holds no state and does no
caching. Roles are resolved through an explicit RoleRepository argument
rather than a module-level lookup, which keeps tests deterministic.

Denial is a boolean, never an exception. Malformed stored permission data
parses to an empty set, so it fails closed.
"""
import json
import logging

from core.permissions.constants import ALL_PERMISSIONS

logger = logging.getLogger(__name__)

_EMPTY = frozenset()


def parse_permissions(raw):
    """Parse a stored permission list into a frozenset of strings.

    Args:
        raw: JSON text ('["units.*"]'), an already-decoded list/tuple/set,
             or None.

    Returns:
        frozenset[str]. Empty for None, blank, or malformed input.
    """
    if raw is None:
        return _EMPTY

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode('utf-8', errors='replace')

    if isinstance(raw, str):
        if not raw.strip():
            return _EMPTY
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.error("[perm] Unparseable permissions JSON: %r", raw)
            return _EMPTY

    if not isinstance(raw, (list, tuple, set, frozenset)):
        logger.error("[perm] Permissions must be a list, got %s", type(raw).__name__)
        return _EMPTY

    if not all(isinstance(p, str) for p in raw):
        logger.error("[perm] Permissions list contains non-string entries: %r", raw)
        return _EMPTY

    return frozenset(raw)


def has_permission(permissions, requested):
    """Check whether a permission set grants a requested capability.

    Order: global wildcard, exact match, then "<module>.*" for requests
    with at least two segments. Only the first segment is ever
    wildcarded ("reports.*" covers "reports.financial.view", but
    "reports.financial.*" is treated as a literal string).
    """
    if ALL_PERMISSIONS in permissions:
        return True

    if not isinstance(requested, str) or not requested:
        return False

    if requested in permissions:
        return True

    parts = requested.split('.')
    if len(parts) >= 2 and f'{parts[0]}.*' in permissions:
        return True

    return False


def any_permission(permissions, requested_list):
    """True if at least one requested capability is granted."""
    return any(has_permission(permissions, r) for r in requested_list)


def all_permissions(permissions, requested_list):
    """True if every requested capability is granted (vacuously true when empty)."""
    return all(has_permission(permissions, r) for r in requested_list)


def get_role_permissions(role_id, roles=None):
    """Return the parsed permission set for a role.

    Args:
        role_id: The role to look up.
        roles: RoleRepository; defaults to the SQL-backed repository.

    Returns:
        frozenset[str]; empty when the role is missing or lookup fails.
    """
    repo = roles or _default_repository()
    try:
        role = repo.get_role(role_id)
    except Exception as e:
        logger.error("[perm] Role lookup failed role=%s: %s", role_id, e)
        return _EMPTY

    if role is None:
        return _EMPTY
    return parse_permissions(role.permissions)


def get_user_permissions(user_id, roles=None):
    """Return the parsed permission set of the role assigned to a user.

    Returns:
        frozenset[str]; empty when the user has no role or lookup fails.
    """
    repo = roles or _default_repository()
    try:
        role = repo.get_role_for_user(user_id)
    except Exception as e:
        logger.error("[perm] Permission lookup failed user=%s: %s", user_id, e)
        return _EMPTY

    if role is None:
        return _EMPTY
    return parse_permissions(role.permissions)


def user_has_permission(user_id, permission, roles=None):
    """Resolve a user's role and check a single capability."""
    return has_permission(get_user_permissions(user_id, roles=roles), permission)


def _default_repository():
    from core.permissions.roles import SqlRoleRepository
    return SqlRoleRepository()
