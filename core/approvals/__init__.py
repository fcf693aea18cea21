"""
core.approvals — Staff action approval workflow.

Staff members without full authority for a mutation submit it as a
pending approval. An administrator approves or rejects it exactly once;
approved payloads are then replayed against their target table.

Public API:
    classify_action                          — execute now vs. defer
    submit_action                            — capture a pending approval
    approve_action, reject_action            — terminal review transitions
    get_approvals, get_approval              — queries
    parse_action_payload, encode_action_data — typed payload boundary
    register_replay, replay_approved_action  — apply approved payloads
"""

from core.approvals.payloads import (
    VALID_ACTION_TYPES,
    CreatePayload,
    UpdatePayload,
    DeletePayload,
    parse_action_payload,
    encode_action_data,
)
from core.approvals.workflow import (
    APPROVALS_TABLE,
    EXECUTE,
    DEFER,
    classify_action,
    submit_action,
    approve_action,
    reject_action,
    get_approvals,
    get_approval,
)
from core.approvals.replay import (
    register_replay,
    replay_approved_action,
)

__all__ = [
    'VALID_ACTION_TYPES',
    'CreatePayload',
    'UpdatePayload',
    'DeletePayload',
    'parse_action_payload',
    'encode_action_data',
    'APPROVALS_TABLE',
    'EXECUTE',
    'DEFER',
    'classify_action',
    'submit_action',
    'approve_action',
    'reject_action',
    'get_approvals',
    'get_approval',
    'register_replay',
    'replay_approved_action',
]
