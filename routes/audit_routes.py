"""
Audit log routes — read-only view of the audit trail.

    GET /api/audit-logs        — Filtered, paginated audit entries
    GET /api/audit-logs/<id>   — Single entry
"""
from datetime import datetime

from flask import jsonify, request

from core.errors import ValidationError
from core.permissions.constants import AUDIT_VIEW
from routes.authorization import require_permission


def _parse_datetime_arg(name):
    value = request.args.get(name)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise ValidationError(f'{name} must be an ISO 8601 date', field=name)


def register_audit_routes(app):

    @app.route('/api/audit-logs', methods=['GET'])
    @require_permission(AUDIT_VIEW)
    def audit_logs_list():
        """Query the audit trail.

        Query params:
            user_id (int, optional)
            action_type (str, optional): CREATE, UPDATE or DELETE.
            table_name (str, optional)
            start_date, end_date (ISO 8601, optional): inclusive bounds.
            page (int, optional): default 1.
            page_size (int, optional): default 50, max 200.
        """
        from core.audit.audit_trail import VALID_ACTION_TYPES
        from core.audit.queries import get_audit_logs

        action_type = request.args.get('action_type')
        if action_type:
            action_type = action_type.upper()
            if action_type not in VALID_ACTION_TYPES:
                raise ValidationError(f'Invalid action_type: {action_type}', field='action_type')

        result = get_audit_logs(
            user_id=request.args.get('user_id', type=int),
            action_type=action_type,
            table_name=request.args.get('table_name'),
            start_date=_parse_datetime_arg('start_date'),
            end_date=_parse_datetime_arg('end_date'),
            page=request.args.get('page', 1, type=int),
            page_size=request.args.get('page_size', 50, type=int),
        )
        result['data'] = [entry.to_dict() for entry in result['data']]
        return jsonify(result)

    @app.route('/api/audit-logs/<int:id>', methods=['GET'])
    @require_permission(AUDIT_VIEW)
    def audit_logs_detail(id):
        from core.audit.queries import get_audit_log

        return jsonify({'audit_log': get_audit_log(id).to_dict()})
