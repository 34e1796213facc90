"""Complaint persistence: creation, retrieval, listing, and official updates.

Every operation touches a single complaint inside one transaction. Validation
happens here at the store boundary, so routes and CLI commands share it.
"""
from __future__ import annotations

import math
from datetime import datetime, timedelta
from urllib.parse import urlparse

from flask import current_app
from sqlalchemy.exc import OperationalError

from extensions import db
from models import COMPLAINT_CATEGORIES, Complaint, ComplaintStatusHistory, User
from utils.access_policy import can_read, get_role, is_staff, readable_filter, require_staff
from utils.audit import log_action
from utils.errors import AuthorizationError, NotFoundError, TransientStoreError, ValidationError
from utils.lifecycle import INITIAL_STATUS, check_transition, normalize_status

_CATEGORY_LOOKUP: dict[str, str] = {
    **{slug: slug for slug in COMPLAINT_CATEGORIES},
    **{label.lower(): slug for slug, label in COMPLAINT_CATEGORIES.items()},
}


def normalize_category(value) -> str:
    key = str(value or "").strip().lower()
    if not key:
        raise ValidationError("Category is required.")
    slug = _CATEGORY_LOOKUP.get(key)
    if not slug:
        raise ValidationError(f"Unknown category '{value}'.")
    return slug


def _coordinate(value, name: str, bound: float) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"Location {name} must be a number.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Location {name} must be a number.") from exc
    if not math.isfinite(number) or abs(number) > bound:
        raise ValidationError(f"Location {name} must be between -{bound:g} and {bound:g}.")
    return number


def validate_location(location) -> dict:
    """Return ``{"lat", "lng", "address"}`` with coordinates optional as a pair."""
    if not isinstance(location, dict):
        raise ValidationError("Location is required.")
    address = str(location.get("address") or "").strip()
    if not address:
        raise ValidationError("Location address is required.")
    if len(address) > 500:
        raise ValidationError("Location address must be at most 500 characters.")

    lat_raw = location.get("lat", location.get("latitude"))
    lng_raw = location.get("lng", location.get("longitude"))
    if lat_raw is None and lng_raw is None:
        return {"lat": None, "lng": None, "address": address}
    if lat_raw is None or lng_raw is None:
        raise ValidationError("Location needs both lat and lng, or neither.")
    return {
        "lat": _coordinate(lat_raw, "lat", 90),
        "lng": _coordinate(lng_raw, "lng", 180),
        "address": address,
    }


def _validate_description(description) -> str:
    text = str(description or "").strip()
    if not text:
        raise ValidationError("Description is required.")
    max_length = int(current_app.config.get("DESCRIPTION_MAX_LENGTH", 2000))
    if len(text) > max_length:
        raise ValidationError(f"Description must be at most {max_length} characters.")
    return text


def _validate_image_url(image_url) -> str | None:
    if image_url in (None, ""):
        return None
    value = str(image_url).strip()
    parsed = urlparse(value)
    if parsed.scheme not in ("http", "https") or not parsed.netloc or len(value) > 1024:
        raise ValidationError("Image URL must be an absolute http(s) URL.")
    return value


def _next_timestamp(complaint: Complaint) -> datetime:
    now = datetime.utcnow()
    if complaint.updated_at and now <= complaint.updated_at:
        now = complaint.updated_at + timedelta(microseconds=1)
    return now


def _commit() -> None:
    try:
        db.session.commit()
    except OperationalError as exc:
        db.session.rollback()
        current_app.logger.exception("Complaint store unavailable")
        raise TransientStoreError() from exc


def _load(complaint_id, lock: bool = False) -> Complaint:
    """Fetch one complaint; ``lock`` re-reads the row with SELECT ... FOR UPDATE."""
    try:
        if lock:
            complaint = (
                Complaint.query.filter_by(id=str(complaint_id)).populate_existing().with_for_update().first()
            )
        else:
            complaint = db.session.get(Complaint, str(complaint_id))
    except OperationalError as exc:
        db.session.rollback()
        raise TransientStoreError() from exc
    if not complaint:
        raise NotFoundError(f"Complaint {complaint_id} not found")
    return complaint


def create_complaint(
    category,
    description,
    location,
    is_anonymous: bool = False,
    citizen_id: str | None = None,
    image_url: str | None = None,
) -> Complaint:
    """Persist a new complaint with status Open.

    ``citizen_id`` must come from the authenticated session, never from the
    request body. Anonymous submissions drop it regardless.
    """
    slug = normalize_category(category)
    text = _validate_description(description)
    place = validate_location(location)
    image = _validate_image_url(image_url)
    anonymous = bool(is_anonymous) or not citizen_id
    owner_id = None if anonymous else str(citizen_id)

    if owner_id and not db.session.get(User, owner_id):
        raise ValidationError("Submitting user does not exist.")

    now = datetime.utcnow()
    complaint = Complaint(
        category=slug,
        description=text,
        latitude=place["lat"],
        longitude=place["lng"],
        address=place["address"],
        citizen_id=owner_id,
        is_anonymous=anonymous,
        status=INITIAL_STATUS,
        image_url=image,
        created_at=now,
        updated_at=now,
    )
    db.session.add(complaint)
    db.session.flush()
    db.session.add(
        ComplaintStatusHistory(
            complaint_id=complaint.id,
            previous_status=None,
            new_status=INITIAL_STATUS,
            remarks="Complaint submitted",
            changed_by=owner_id,
            changed_at=now,
        )
    )
    # Anonymous submitters are not linked in the audit trail either.
    log_action("COMPLAINT_CREATED", owner_id, context=f"complaint:{complaint.id}")
    _commit()
    current_app.logger.info(
        "Complaint created",
        extra={"complaint_id": complaint.id, "category": slug, "anonymous": anonymous},
    )
    return complaint


def get_complaint(complaint_id, viewer_id: str | None = None) -> Complaint:
    complaint = _load(complaint_id)
    if not can_read(complaint, viewer_id):
        current_app.logger.warning(
            "Complaint read denied", extra={"complaint_id": complaint.id, "user_id": viewer_id}
        )
        raise AuthorizationError("Complaint is not visible to this caller")
    return complaint


def complaint_history(complaint_id, viewer_id: str | None = None) -> list[ComplaintStatusHistory]:
    complaint = get_complaint(complaint_id, viewer_id)
    return list(complaint.status_history)


def list_complaints(
    viewer_id: str | None = None,
    owner_id: str | None = None,
    include_anonymous: bool = True,
    limit: int | None = None,
) -> list[Complaint]:
    """Complaints readable by ``viewer_id``, newest first.

    The optional owner filter keeps complaints filed by ``owner_id`` plus, when
    ``include_anonymous`` is set, anonymous ones. The read predicate is always
    applied on top, so a citizen never receives another citizen's named complaint.
    """
    query = Complaint.query
    visibility = readable_filter(viewer_id)
    if visibility is not None:
        query = query.filter(visibility)
    if owner_id:
        if include_anonymous:
            query = query.filter(
                db.or_(Complaint.citizen_id == str(owner_id), Complaint.is_anonymous.is_(True))
            )
        else:
            query = query.filter(Complaint.citizen_id == str(owner_id))
    elif not include_anonymous:
        query = query.filter(Complaint.is_anonymous.is_(False))

    query = query.order_by(Complaint.created_at.desc(), Complaint.id.desc())
    if limit is not None:
        max_limit = int(current_app.config.get("COMPLAINT_LIST_MAX", 100))
        query = query.limit(max(0, min(int(limit), max_limit)))
    try:
        return query.all()
    except OperationalError as exc:
        db.session.rollback()
        raise TransientStoreError() from exc


def recent_complaints(viewer_id: str | None = None, limit: int = 4) -> list[Complaint]:
    return list_complaints(viewer_id=viewer_id, limit=limit)


def update_complaint_status(complaint_id, new_status, official_id: str | None, remarks: str | None = None) -> Complaint:
    """Advance a complaint's status on behalf of an official or admin.

    The acting official becomes ``official_assigned`` when nobody holds it yet.
    The write only applies while the row still holds the status the transition
    was checked against; otherwise the update is rejected and nothing changes.
    """
    role = require_staff(official_id, "update_status", str(complaint_id))
    complaint = _load(complaint_id, lock=True)
    target = normalize_status(new_status)
    previous = complaint.status
    check_transition(previous, target, allow_skip=role == "admin")

    changed_at = _next_timestamp(complaint)
    try:
        matched = Complaint.query.filter(
            Complaint.id == complaint.id, Complaint.status == previous
        ).update(
            {
                Complaint.status: target,
                Complaint.official_assigned: db.func.coalesce(Complaint.official_assigned, str(official_id)),
                Complaint.updated_at: changed_at,
            },
            synchronize_session=False,
        )
    except OperationalError as exc:
        db.session.rollback()
        raise TransientStoreError() from exc
    if not matched:
        db.session.rollback()
        current_app.logger.warning(
            "Complaint status changed concurrently",
            extra={"complaint_id": complaint.id, "from_status": previous, "to_status": target, "user_id": official_id},
        )
        raise ValidationError("Complaint status changed while updating; reload it and try again.")

    db.session.add(
        ComplaintStatusHistory(
            complaint_id=complaint.id,
            previous_status=previous,
            new_status=target,
            remarks=(remarks or "").strip()[:500] or None,
            changed_by=str(official_id),
            changed_at=changed_at,
        )
    )
    log_action("COMPLAINT_STATUS_CHANGED", str(official_id), context=f"complaint:{complaint.id}:{target}")
    _commit()
    current_app.logger.info(
        "Complaint status changed",
        extra={"complaint_id": complaint.id, "from_status": previous, "to_status": target, "user_id": official_id},
    )
    return complaint


def assign_complaint(complaint_id, assignee_id: str, actor_id: str | None) -> Complaint:
    require_staff(actor_id, "assign", str(complaint_id))
    complaint = _load(complaint_id, lock=True)
    if not assignee_id or not is_staff(get_role(assignee_id)):
        raise ValidationError("Complaints can only be assigned to an official or admin.")
    if complaint.official_assigned == str(assignee_id):
        return complaint

    complaint.official_assigned = str(assignee_id)
    complaint.updated_at = _next_timestamp(complaint)
    log_action("COMPLAINT_ASSIGNED", str(actor_id), context=f"complaint:{complaint.id}:{assignee_id}")
    _commit()
    current_app.logger.info(
        "Complaint assigned",
        extra={"complaint_id": complaint.id, "assignee": assignee_id, "user_id": actor_id},
    )
    return complaint
