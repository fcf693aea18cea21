"""
Role routes — role management and the caller's effective permissions.

    GET    /api/roles             — List roles
    POST   /api/roles             — Create a role
    GET    /api/roles/<id>        — Role detail
    PUT    /api/roles/<id>        — Rename / replace permissions
    DELETE /api/roles/<id>        — Delete a role with no users
    GET    /api/permissions/me    — The caller's role and permission set
"""
from flask import jsonify, request

from core.permissions.constants import ROLES_MANAGE
from routes.authorization import current_user_id, require_permission


def register_roles_routes(app):

    @app.route('/api/roles', methods=['GET'])
    @require_permission(ROLES_MANAGE)
    def roles_list():
        from core.permissions.roles import list_roles

        roles = list_roles()
        return jsonify({'roles': [r.to_dict() for r in roles], 'count': len(roles)})

    @app.route('/api/roles', methods=['POST'])
    @require_permission(ROLES_MANAGE)
    def roles_create():
        """Create a role.

        Body:
            role_name (str): Unique name.
            permissions (list[str]): Capability strings, wildcards allowed.
        """
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body is required'}), 400

        from core.permissions.roles import create_role

        role = create_role(current_user_id(), data.get('role_name'), data.get('permissions', []))
        return jsonify({'success': True, 'role': role.to_dict()}), 201

    @app.route('/api/roles/<int:id>', methods=['GET'])
    @require_permission(ROLES_MANAGE)
    def roles_detail(id):
        from core.permissions.roles import get_role

        role = get_role(id)
        return jsonify({'role': role.to_dict(), 'user_count': role.users.count()})

    @app.route('/api/roles/<int:id>', methods=['PUT'])
    @require_permission(ROLES_MANAGE)
    def roles_update(id):
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body is required'}), 400

        from core.permissions.roles import update_role

        role = update_role(
            current_user_id(), id,
            role_name=data.get('role_name'),
            permissions=data.get('permissions'),
        )
        return jsonify({'success': True, 'role': role.to_dict()})

    @app.route('/api/roles/<int:id>', methods=['DELETE'])
    @require_permission(ROLES_MANAGE)
    def roles_delete(id):
        from core.permissions.roles import delete_role

        delete_role(current_user_id(), id)
        return jsonify({'success': True})

    @app.route('/api/permissions/me', methods=['GET'])
    def permissions_me():
        user_id = current_user_id()
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.permissions.roles import SqlRoleRepository
        from core.permissions.evaluator import parse_permissions

        role = SqlRoleRepository().get_role_for_user(user_id)
        return jsonify({
            'role': role.role_name if role else None,
            'permissions': sorted(parse_permissions(role.permissions)) if role else [],
        })
