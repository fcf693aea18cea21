"""
Request authorization and audit hooks shared by the route modules.

    require_permission(*perms)  — 401 without a session, 403 unless the
                                  caller's role grants ANY of perms
    audited(table_name)         — record a successful mutating request
    register_error_handlers     — typed core errors → JSON responses
"""
import json
import logging
from functools import wraps

from flask import jsonify, make_response, request, session

from core.errors import (
    AuthorizationDenied,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def current_user_id():
    """Returns user_id from session or None."""
    return session.get('user_id')


def require_permission(*permissions):
    """Decorator: the caller must hold at least one of the given capabilities."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            from core.permissions.evaluator import any_permission, get_user_permissions

            user_id = current_user_id()
            if not user_id:
                return jsonify({'error': 'Authentication required'}), 401

            granted = get_user_permissions(user_id)
            if not any_permission(granted, permissions):
                logger.info("[perm] Denied user=%s %s %s (needs any of %s)",
                            user_id, request.method, request.path, ', '.join(permissions))
                raise AuthorizationDenied()
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def audited(table_name):
    """Decorator: audit a successful POST/PUT/PATCH/DELETE against table_name.

    The entry records the request body as new_values and the ``id`` route
    argument (when present) as record_id. It is written after the view has
    returned, so the business change is already committed; a failed audit
    write is logged and never alters the response.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            from core.audit.audit_trail import action_type_for_method, log_action

            response = make_response(f(*args, **kwargs))

            action_type = action_type_for_method(request.method)
            user_id = current_user_id()
            if action_type and user_id and 200 <= response.status_code < 300:
                body = request.get_json(silent=True)
                log_action(
                    user_id, action_type, table_name,
                    new_values=json.dumps(body) if body is not None else None,
                    record_id=kwargs.get('id'),
                    commit=True,
                )
            return response
        return decorated_function
    return decorator


def register_error_handlers(app):

    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        body = {'error': e.message}
        if e.field:
            body['field'] = e.field
        return jsonify(body), 400

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        return jsonify({'error': str(e)}), 404

    @app.errorhandler(InvalidStateError)
    def handle_invalid_state(e):
        body = {'error': str(e)}
        if e.current_status:
            body['status'] = e.current_status
        return jsonify(body), 409

    @app.errorhandler(AuthorizationDenied)
    def handle_denied(e):
        return jsonify({'error': AuthorizationDenied.GENERIC_MESSAGE}), 403
