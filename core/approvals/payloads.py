"""
Typed views over the opaque approval payload.

The workflow stores action_data verbatim. Only the replay step needs to
understand it, and it parses the JSON once into one of three shapes.
"""
from __future__ import annotations

import json
from dataclasses import dataclass, field

from core.errors import ValidationError

# Action types whose payload describes a new record.
CREATE_ACTIONS = frozenset({'Create', 'LeaseCreated', 'InvoiceCreated', 'TenantAdded', 'PaymentRecorded'})
# Action types whose payload describes changes to an existing record.
UPDATE_ACTIONS = frozenset({'Update', 'LeaseRenewed', 'LeaseTerminated'})
DELETE_ACTIONS = frozenset({'Delete'})

VALID_ACTION_TYPES = CREATE_ACTIONS | UPDATE_ACTIONS | DELETE_ACTIONS


@dataclass(frozen=True)
class CreatePayload:
    values: dict = field(default_factory=dict)


@dataclass(frozen=True)
class UpdatePayload:
    changes: dict = field(default_factory=dict)


@dataclass(frozen=True)
class DeletePayload:
    reason: str | None = None


def encode_action_data(action_data):
    """Normalize a submitted payload to its wire form (text).

    Strings are kept verbatim; dicts and lists are JSON-encoded.
    """
    if action_data is None or isinstance(action_data, str):
        return action_data
    try:
        return json.dumps(action_data, separators=(',', ':'))
    except (TypeError, ValueError):
        raise ValidationError('action_data must be JSON-serializable', field='action_data')


def parse_action_payload(action_type, action_data):
    """Parse stored action_data into a typed payload for the action type.

    Returns:
        CreatePayload | UpdatePayload | DeletePayload

    Raises:
        ValidationError: unknown action type or malformed payload.
    """
    if action_type not in VALID_ACTION_TYPES:
        raise ValidationError(f'Unknown action_type: {action_type}', field='action_type')

    body = _decode(action_data)

    if action_type in DELETE_ACTIONS:
        reason = body.get('reason') if isinstance(body, dict) else None
        return DeletePayload(reason=reason)

    if not isinstance(body, dict):
        raise ValidationError('action_data must be a JSON object', field='action_data')

    if action_type in CREATE_ACTIONS:
        return CreatePayload(values=dict(body))
    return UpdatePayload(changes=dict(body))


def _decode(action_data):
    if action_data is None or action_data == '':
        return {}
    if isinstance(action_data, (dict, list)):
        return action_data
    try:
        return json.loads(action_data)
    except (TypeError, ValueError):
        raise ValidationError('action_data is not valid JSON', field='action_data')
