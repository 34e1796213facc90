"""Authorization decorators backed by role grants."""
from functools import wraps

from flask import abort, current_app
from flask_login import current_user, login_required

from extensions import db
from utils.access_policy import get_role
from utils.audit import log_action


def roles_required(*roles):
    allowed = {r.lower() for r in roles}

    def decorator(view_func):
        @wraps(view_func)
        @login_required
        def wrapped(*args, **kwargs):
            role_name = get_role(current_user.id)
            if role_name in allowed:
                return view_func(*args, **kwargs)

            current_app.logger.warning(
                "Unauthorized role access attempt",
                extra={"user_id": current_user.id, "role": role_name, "endpoint": view_func.__name__},
            )
            log_action("UNAUTHORIZED_ACCESS", current_user.id, context=view_func.__name__)
            db.session.commit()
            abort(403)

        return wrapped

    return decorator


def current_user_id() -> str | None:
    """Id of the authenticated caller, or None for anonymous requests."""
    if current_user and current_user.is_authenticated:
        return str(current_user.id)
    return None
