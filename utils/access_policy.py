"""Role lookup and complaint visibility rules.

Roles are grants stored in ``user_roles``, separate from the user record. A
user may hold several grants; the most privileged one decides. Officials and
admins see every complaint. Everyone else, including unauthenticated callers,
sees only their own complaints and anonymous ones.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy import or_

from extensions import db
from models import ROLE_NAMES, ROLE_PRECEDENCE, Complaint, User, UserRole
from utils.audit import log_action
from utils.errors import AuthorizationError, NotFoundError, ValidationError

NO_ROLE = "none"
STAFF_ROLES: frozenset[str] = frozenset({"official", "admin"})


def get_role(user_id: str | None) -> str:
    if not user_id:
        return NO_ROLE
    granted = {
        grant.role
        for grant in UserRole.query.filter_by(user_id=str(user_id)).all()
    }
    for role in ROLE_PRECEDENCE:
        if role in granted:
            return role
    return NO_ROLE


def is_staff(role: str) -> bool:
    return role in STAFF_ROLES


def can_read(complaint: Complaint, viewer_id: str | None, role: str | None = None) -> bool:
    role = role if role is not None else get_role(viewer_id)
    if is_staff(role):
        return True
    if complaint.is_anonymous:
        return True
    return bool(viewer_id) and complaint.citizen_id == str(viewer_id)


def readable_filter(viewer_id: str | None, role: str | None = None):
    """SQL counterpart of :func:`can_read`; ``None`` means no restriction."""
    role = role if role is not None else get_role(viewer_id)
    if is_staff(role):
        return None
    if not viewer_id:
        return Complaint.is_anonymous.is_(True)
    return or_(Complaint.citizen_id == str(viewer_id), Complaint.is_anonymous.is_(True))


def require_staff(actor_id: str | None, action: str, target: str | None = None) -> str:
    """Return the actor's role or raise AuthorizationError after auditing the denial."""
    role = get_role(actor_id)
    if is_staff(role):
        return role
    current_app.logger.warning(
        "Complaint mutation denied",
        extra={"user_id": actor_id, "role": role, "action": action, "target": target},
    )
    log_action("UNAUTHORIZED_ACCESS", actor_id if actor_id else None, context=f"{action}:{target or '-'}")
    db.session.commit()
    raise AuthorizationError(f"Role '{role}' may not perform {action}")


def grant_role(user_id: str, role: str, actor_id: str | None = None) -> UserRole:
    """Grant ``role`` to ``user_id``. ``actor_id=None`` is reserved for system callers."""
    role = str(role or "").strip().lower()
    if role not in ROLE_NAMES:
        raise ValidationError(f"Unknown role '{role}'. Expected one of: {', '.join(ROLE_NAMES)}.")
    if actor_id is not None and get_role(actor_id) != "admin":
        log_action("UNAUTHORIZED_ACCESS", actor_id, context=f"grant_role:{user_id}")
        db.session.commit()
        raise AuthorizationError("Only admins may grant roles")

    user = db.session.get(User, str(user_id))
    if not user:
        raise NotFoundError(f"User {user_id} not found")

    existing = UserRole.query.filter_by(user_id=user.id, role=role).first()
    if existing:
        return existing
    grant = UserRole(user_id=user.id, role=role, granted_by=actor_id)
    db.session.add(grant)
    log_action("ROLE_GRANTED", actor_id, context=f"{user.id}:{role}")
    db.session.commit()
    current_app.logger.info("Role granted", extra={"user_id": user.id, "role": role, "granted_by": actor_id})
    return grant
