"""Public infrastructure projects and budget transparency routes."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user

from models import PROJECT_CATEGORIES
from utils.decorators import roles_required
from utils.errors import ValidationError
from utils.reference_data import budget_summary, create_project, get_project, list_projects, upsert_budget_flow
from utils.security import sanitize_input

transparency_bp = Blueprint("transparency", __name__, url_prefix="/transparency")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


@transparency_bp.route("/projects", methods=["GET"])
def public_projects():
    filters = sanitize_input(request.args)
    order = filters.get("order") or "recent"
    if order not in ("recent", "progress"):
        raise ValidationError("order must be 'recent' or 'progress'.")
    # Category and search are matched in Python against stored text, so they are read unescaped.
    category = request.args.get("category")
    projects = list_projects(category=category, search=request.args.get("q"), order=order)
    current_app.logger.info(
        "public_projects_list",
        extra={"count": len(projects), "filters": {"category": category, "order": order}},
    )
    return jsonify(
        {
            "projects": [p.public_payload() for p in projects],
            "count": len(projects),
            "categories": list(PROJECT_CATEGORIES),
        }
    )


@transparency_bp.route("/projects/<string:project_id>", methods=["GET"])
def public_project_detail(project_id):
    return jsonify(get_project(project_id).public_payload())


@transparency_bp.route("/projects", methods=["POST"])
@roles_required("admin")
def add_project():
    project = create_project(_json_body(), actor_id=current_user.id)
    return jsonify(project.public_payload()), 201


@transparency_bp.route("/budget", methods=["GET"])
def budget_overview():
    fiscal_year = sanitize_input(request.args).get("fiscal_year") or None
    summary = budget_summary(fiscal_year)
    if summary is None:
        return jsonify({"budget": None, "message": "No budget has been published yet."})
    return jsonify({"budget": summary})


@transparency_bp.route("/budget/<string:fiscal_year>", methods=["PUT"])
@roles_required("admin")
def publish_budget(fiscal_year):
    upsert_budget_flow(fiscal_year, _json_body(), actor_id=current_user.id)
    return jsonify({"budget": budget_summary(fiscal_year)})
