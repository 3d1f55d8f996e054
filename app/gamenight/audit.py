import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.gamenight.models import AuditEvent


def record_event(
    s: Session,
    *,
    actor_user_id: int | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper. The caller commits.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    ev = AuditEvent(
        request_id=rid,
        client_ip=request.remote_addr if in_request else None,
        actor_user_id=actor_user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        metadata_json=json.dumps(metadata, sort_keys=True) if metadata else None,
    )
    s.add(ev)
    return ev
