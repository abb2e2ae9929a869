import json
import logging

from flask import request

from models import db
from models.audit_log import AuditLog

logger = logging.getLogger(__name__)


def client_ip() -> str:
    """First hop of X-Forwarded-For when behind the proxy, else the peer address."""
    forwarded = request.headers.get("X-Forwarded-For", "")
    if forwarded:
        return forwarded.split(",")[0].strip()[:64]
    return request.remote_addr or "unknown"


def log_event(action: str, user_id=None, entity=None, entity_id=None, metadata=None):
    user_agent = request.headers.get("User-Agent", "")

    row = AuditLog(
        user_id=user_id,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        ip=client_ip(),
        user_agent=user_agent[:255] if user_agent else None,
        metadata_json=json.dumps(metadata, default=str) if metadata else None,
    )
    db.session.add(row)
    db.session.commit()
    logger.info("audit %s user=%s %s=%s", action, user_id, entity or "-", row.entity_id or "-")
