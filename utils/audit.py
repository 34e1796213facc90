"""Audit trail helper for security-relevant actions."""
from __future__ import annotations

from flask import has_request_context, request

from extensions import db
from models import AuditLog


def log_action(action: str, user_id: str | None = None, context: str | None = None) -> AuditLog:
    """Stage an audit entry on the current session; the caller owns the commit."""
    in_request = has_request_context()
    entry = AuditLog(
        user_id=user_id,
        action_type=action,
        ip_address=request.remote_addr if in_request else None,
        user_agent=request.headers.get("User-Agent", "unknown")[:255] if in_request else "system",
        context_entity=(context or "")[:120] or None,
    )
    db.session.add(entry)
    return entry
