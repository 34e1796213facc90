"""Complaint intake, tracking, and official status management blueprint."""
from flask import Blueprint, current_app, jsonify, request
from flask_login import login_required

from models import COMPLAINT_CATEGORIES, COMPLAINT_STATUSES
from utils.complaint_store import (
    assign_complaint,
    complaint_history,
    create_complaint,
    get_complaint,
    list_complaints,
    recent_complaints,
    update_complaint_status,
)
from utils.decorators import current_user_id
from utils.errors import ValidationError
from utils.queries import filter_complaints
from utils.security import parse_bool, sanitize_input

complaints_bp = Blueprint("complaints", __name__, url_prefix="/complaints")


def _json_body() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _limit_arg(filters: dict, default: int | None = None) -> int | None:
    raw = filters.get("limit")
    if raw in (None, ""):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("limit must be an integer.") from exc
    if value < 1:
        raise ValidationError("limit must be positive.")
    return value


@complaints_bp.route("/options", methods=["GET"])
def complaint_options():
    return jsonify(
        {
            "categories": [{"value": slug, "label": label} for slug, label in COMPLAINT_CATEGORIES.items()],
            "statuses": list(COMPLAINT_STATUSES),
        }
    )


@complaints_bp.route("/", methods=["POST"])
def submit_complaint():
    payload = _json_body()
    # Identity comes from the session only; any client-supplied citizen id is ignored.
    complaint = create_complaint(
        category=payload.get("category"),
        description=payload.get("description"),
        location=payload.get("location"),
        is_anonymous=parse_bool(payload.get("is_anonymous", payload.get("isAnonymous"))),
        citizen_id=current_user_id(),
        image_url=payload.get("image_url", payload.get("imageUrl")),
    )
    return jsonify(complaint.public_payload()), 201


@complaints_bp.route("/", methods=["GET"])
def list_visible_complaints():
    filters = sanitize_input(request.args)
    viewer = current_user_id()
    owner = filters.get("owner") or None
    if owner == "me":
        owner = viewer
    # Search text and category are compared in Python, never in SQL, so they are read unescaped.
    search = request.args.get("q")
    category = request.args.get("category")
    limit = _limit_arg(filters)
    narrowed = any((value or "").strip().lower() not in ("", "all") for value in (search, category))
    complaints = list_complaints(
        viewer_id=viewer,
        owner_id=owner,
        include_anonymous=parse_bool(filters.get("include_anonymous"), default=True),
        limit=None if narrowed else limit,
    )
    visible = filter_complaints(complaints, search=search, category=category)
    if limit is not None:
        visible = visible[: min(limit, int(current_app.config.get("COMPLAINT_LIST_MAX", 100)))]
    current_app.logger.info(
        "complaints_list",
        extra={"count": len(visible), "user_id": viewer, "filters": {"owner": owner, "q": search, "category": category}},
    )
    return jsonify({"complaints": [c.public_payload() for c in visible], "count": len(visible)})


@complaints_bp.route("/recent", methods=["GET"])
def list_recent_complaints():
    filters = sanitize_input(request.args)
    limit = _limit_arg(filters, default=int(current_app.config.get("DASHBOARD_RECENT_COMPLAINTS", 4)))
    complaints = recent_complaints(current_user_id(), limit=limit)
    return jsonify({"complaints": [c.public_payload() for c in complaints]})


@complaints_bp.route("/<string:complaint_id>", methods=["GET"])
def view_complaint(complaint_id):
    complaint = get_complaint(complaint_id, current_user_id())
    return jsonify(complaint.public_payload())


@complaints_bp.route("/<string:complaint_id>/history", methods=["GET"])
def view_complaint_history(complaint_id):
    history = complaint_history(complaint_id, current_user_id())
    return jsonify({"complaint_id": complaint_id, "timeline": [entry.public_payload() for entry in history]})


@complaints_bp.route("/<string:complaint_id>/status", methods=["PATCH"])
@login_required
def change_status(complaint_id):
    payload = _json_body()
    complaint = update_complaint_status(
        complaint_id,
        payload.get("status"),
        official_id=current_user_id(),
        remarks=payload.get("remarks"),
    )
    return jsonify(complaint.public_payload())


@complaints_bp.route("/<string:complaint_id>/assignment", methods=["PATCH"])
@login_required
def change_assignment(complaint_id):
    payload = _json_body()
    complaint = assign_complaint(complaint_id, payload.get("official_id"), actor_id=current_user_id())
    return jsonify(complaint.public_payload())
