"""
Approval routes — staff submit deferred actions, administrators review them.

    GET  /api/approvals                   — List approvals (reviewers)
    GET  /api/approvals/<id>              — Approval detail (submitter or reviewer)
    POST /api/approvals                   — Staff submits an action for review
    PUT  /api/approvals/<id>/approve      — Admin approves; payload is replayed
    PUT  /api/approvals/<id>/reject       — Admin rejects with a reason
"""
from flask import jsonify, request

from core.errors import AuthorizationDenied, ValidationError
from core.permissions.constants import APPROVALS_REVIEW, APPROVALS_SUBMIT
from routes.authorization import current_user_id, require_permission


def register_approvals_routes(app):

    @app.route('/api/approvals', methods=['GET'])
    @require_permission(APPROVALS_REVIEW)
    def approvals_list():
        """List approvals, newest first.

        Query params:
            status (str, optional): Pending, Approved or Rejected.
            staff_id (int, optional): Filter by submitter.
            limit (int, optional): Max results (default 50).
        """
        from models import StaffActionApproval
        from core.approvals.workflow import get_approvals

        status = request.args.get('status')
        if status and status not in StaffActionApproval.VALID_STATUSES:
            raise ValidationError(f'Invalid status: {status}', field='status')

        limit = request.args.get('limit', 50, type=int)
        limit = min(max(limit, 1), 200)

        approvals = get_approvals(
            status=status,
            staff_id=request.args.get('staff_id', type=int),
            limit=limit,
        )

        return jsonify({
            'approvals': [a.to_dict() for a in approvals],
            'count': len(approvals),
        })

    @app.route('/api/approvals/<int:id>', methods=['GET'])
    def approvals_detail(id):
        user_id = current_user_id()
        if not user_id:
            return jsonify({'error': 'Authentication required'}), 401

        from core.approvals.workflow import get_approval
        from core.permissions.evaluator import user_has_permission

        approval = get_approval(id)
        if approval.staff_id != user_id and not user_has_permission(user_id, APPROVALS_REVIEW):
            raise AuthorizationDenied()

        return jsonify({'approval': approval.to_dict()})

    @app.route('/api/approvals', methods=['POST'])
    @require_permission(APPROVALS_SUBMIT)
    def approvals_submit():
        """Staff submits a deferred action.

        Body:
            action_type (str): e.g. 'LeaseCreated', 'Update'.
            table_name (str): Target table, e.g. 'Leases'.
            record_id (int, optional): Target row for updates/deletes.
            action_data (object|str, optional): The deferred payload.
        """
        data = request.get_json(silent=True)
        if not data:
            return jsonify({'error': 'Request body is required'}), 400

        from core.approvals.workflow import submit_action

        approval = submit_action(
            staff_id=current_user_id(),
            action_type=data.get('action_type'),
            table_name=data.get('table_name'),
            record_id=data.get('record_id'),
            action_data=data.get('action_data'),
        )

        return jsonify({
            'success': True,
            'message': 'Action submitted for approval',
            'approval': approval.to_dict(),
        }), 201

    @app.route('/api/approvals/<int:id>/approve', methods=['PUT'])
    @require_permission(APPROVALS_REVIEW)
    def approvals_approve(id):
        """Approve a pending approval and apply its payload.

        Body:
            admin_notes (str, optional)

        The approval stays Approved even if replay fails; the failure is
        reported in replay_error.
        """
        data = request.get_json(silent=True) or {}
        admin_id = current_user_id()

        from core.approvals.workflow import approve_action
        from core.approvals.replay import replay_approved_action

        approval = approve_action(id, admin_id, notes=data.get('admin_notes'))
        result, error = replay_approved_action(approval, admin_id)

        return jsonify({
            'success': True,
            'message': 'Action approved',
            'approval': approval.to_dict(),
            'replay': result,
            'replay_error': error,
        })

    @app.route('/api/approvals/<int:id>/reject', methods=['PUT'])
    @require_permission(APPROVALS_REVIEW)
    def approvals_reject(id):
        """Reject a pending approval.

        Body:
            admin_notes (str): Reason for rejection (required).
        """
        data = request.get_json(silent=True) or {}

        from core.approvals.workflow import reject_action

        approval = reject_action(id, current_user_id(), data.get('admin_notes'))

        return jsonify({
            'success': True,
            'message': 'Action rejected',
            'approval': approval.to_dict(),
        })
