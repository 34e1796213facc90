"""Blueprint registration, dashboard, and health routes."""
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from extensions import db
from utils.complaint_store import recent_complaints
from utils.decorators import current_user_id
from utils.errors import TransientStoreError
from utils.reference_data import budget_summary, list_projects
from .auth import auth_bp
from .complaints import complaints_bp
from .transparency import transparency_bp

main_bp = Blueprint("main", __name__)


@main_bp.route("/")
def dashboard():
    """Landing data: latest readable complaints, leading projects, current budget."""
    viewer = current_user_id()
    complaint_limit = int(current_app.config.get("DASHBOARD_RECENT_COMPLAINTS", 4))
    project_limit = int(current_app.config.get("DASHBOARD_PROJECTS", 3))

    complaints = recent_complaints(viewer, limit=complaint_limit)
    ongoing = [p for p in list_projects(order="progress") if (p.progress_percent or 0) < 100]

    return jsonify(
        {
            "recent_complaints": [c.public_payload() for c in complaints],
            "ongoing_projects": [p.public_payload() for p in ongoing[:project_limit]],
            "budget": budget_summary(),
        }
    )


@main_bp.route("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except OperationalError as exc:
        db.session.rollback()
        raise TransientStoreError() from exc
    return jsonify({"status": "ok"})


__all__ = ["main_bp", "auth_bp", "complaints_bp", "transparency_bp"]
