"""Projects and budget flows: read-mostly reference data with admin seeding."""
from __future__ import annotations

from datetime import date, datetime

from flask import current_app
from sqlalchemy.exc import OperationalError

from extensions import db
from models import BudgetFlow, Project
from utils.access_policy import get_role
from utils.audit import log_action
from utils.errors import AuthorizationError, NotFoundError, TransientStoreError, ValidationError
from utils.formatting import format_inr, percentage
from utils.queries import filter_projects, sort_projects

DEMO_PROJECTS: list[dict] = [
    {
        "title": "Flyover at 90 Feet Road",
        "category": "Flyover",
        "short_description": "Four-lane flyover easing the junction at 90 Feet Road.",
        "cost": 850_000_000,
        "ward": 145,
        "contractor": "L&T Construction",
        "start_date": "2023-01-01",
        "completion_date": "2024-12-31",
        "progress_percent": 47,
    },
    {
        "title": "Sewage Line Repair - Koramangala",
        "category": "Drainage",
        "short_description": "Replacement of collapsed sewage lines across Koramangala blocks.",
        "cost": 120_000_000,
        "ward": 150,
        "contractor": "BBMP Contractors Ltd",
        "start_date": "2023-03-01",
        "completion_date": "2024-08-31",
        "progress_percent": 60,
    },
    {
        "title": "Public Park Development - HSR Layout",
        "category": "Parks",
        "short_description": "Walking track, play area and lighting for the HSR Layout park.",
        "cost": 50_000_000,
        "ward": 185,
        "contractor": "Green City Projects",
        "start_date": "2023-02-01",
        "completion_date": "2024-10-31",
        "progress_percent": 40,
    },
    {
        "title": "Road Widening - Bannerghatta Road",
        "category": "Roads",
        "short_description": "Widening Bannerghatta Road to six lanes with footpaths.",
        "cost": 450_000_000,
        "ward": 188,
        "contractor": "Infra Builders Pvt Ltd",
        "start_date": "2023-04-01",
        "completion_date": "2025-03-31",
        "progress_percent": 35,
    },
    {
        "title": "Water Pipeline Extension - JP Nagar",
        "category": "Water Supply",
        "short_description": "Extending the potable water network to JP Nagar 7th and 8th phases.",
        "cost": 180_000_000,
        "ward": 178,
        "contractor": "Aqua Solutions",
        "start_date": "2023-01-01",
        "completion_date": "2024-09-30",
        "progress_percent": 55,
    },
]

DEMO_BUDGET: dict = {
    "fiscal_year": "2024-25",
    "bbmp_budget": 125_000_000_000,
    "state_funds": 45_000_000_000,
    "central_funds": 20_000_000_000,
    "category_wise_breakdown": {
        "Roads & Infrastructure": 35,
        "Water & Sanitation": 22,
        "Waste Management": 18,
        "Education": 15,
        "Sanitation": 10,
    },
}


def _require_admin(actor_id: str | None, action: str) -> None:
    if actor_id is None:
        return
    if get_role(actor_id) != "admin":
        log_action("UNAUTHORIZED_ACCESS", actor_id, context=action)
        db.session.commit()
        raise AuthorizationError(f"{action} requires admin")


def _parse_date(value, field: str, required: bool = True) -> date | None:
    if value in (None, ""):
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError as exc:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD).") from exc


def _number(value, field: str, minimum: float = 0) -> float:
    if isinstance(value, bool) or value in (None, ""):
        raise ValidationError(f"{field} is required.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"{field} must be a number.") from exc
    if number < minimum:
        raise ValidationError(f"{field} must be at least {minimum:g}.")
    return number


def _text(payload: dict, field: str, required: bool = True, max_length: int = 255) -> str | None:
    value = str(payload.get(field) or "").strip()
    if not value:
        if required:
            raise ValidationError(f"{field} is required.")
        return None
    if len(value) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters.")
    return value


def _commit() -> None:
    try:
        db.session.commit()
    except OperationalError as exc:
        db.session.rollback()
        current_app.logger.exception("Reference data store unavailable")
        raise TransientStoreError() from exc


def list_projects(category=None, search=None, order: str = "recent") -> list[Project]:
    try:
        projects = Project.query.all()
    except OperationalError as exc:
        db.session.rollback()
        raise TransientStoreError() from exc
    return sort_projects(filter_projects(projects, search=search, category=category), order=order)


def get_project(project_id) -> Project:
    project = db.session.get(Project, str(project_id))
    if not project:
        raise NotFoundError(f"Project {project_id} not found")
    return project


def create_project(payload: dict, actor_id: str | None = None) -> Project:
    _require_admin(actor_id, "create_project")
    start = _parse_date(payload.get("start_date"), "start_date")
    completion = _parse_date(payload.get("completion_date"), "completion_date", required=False)
    if completion and completion < start:
        raise ValidationError("completion_date must not be before start_date.")

    ward_raw = payload.get("ward")
    try:
        ward = int(ward_raw)
    except (TypeError, ValueError) as exc:
        raise ValidationError("ward must be an integer.") from exc
    if ward <= 0:
        raise ValidationError("ward must be positive.")

    progress = payload.get("progress_percent")
    if progress not in (None, ""):
        progress = int(_number(progress, "progress_percent"))
        if progress > 100:
            raise ValidationError("progress_percent must be between 0 and 100.")
    else:
        progress = 0

    duration = payload.get("duration_months")
    if duration in (None, "") and completion:
        duration = (completion.year - start.year) * 12 + (completion.month - start.month)
    elif duration not in (None, ""):
        duration = int(_number(duration, "duration_months"))

    images = payload.get("images") or []
    if not isinstance(images, list) or not all(isinstance(url, str) for url in images):
        raise ValidationError("images must be a list of URLs.")
    geo = payload.get("geo_location")
    if geo is not None and not isinstance(geo, dict):
        raise ValidationError("geo_location must be an object with lat and lng.")

    project = Project(
        title=_text(payload, "title"),
        category=_text(payload, "category", max_length=80),
        short_description=_text(payload, "short_description", max_length=500),
        detailed_description=_text(payload, "detailed_description", required=False, max_length=10000),
        cost=_number(payload.get("cost"), "cost"),
        ward=ward,
        contractor=_text(payload, "contractor", required=False),
        start_date=start,
        completion_date=completion,
        duration_months=duration,
        progress_percent=progress,
        geo_location=geo,
        images=images,
    )
    db.session.add(project)
    db.session.flush()
    log_action("PROJECT_CREATED", actor_id, context=f"project:{project.id}")
    _commit()
    current_app.logger.info("Project created", extra={"project_id": project.id, "category": project.category})
    return project


def upsert_budget_flow(fiscal_year: str, payload: dict, actor_id: str | None = None) -> BudgetFlow:
    _require_admin(actor_id, "upsert_budget")
    fiscal_year = str(fiscal_year or "").strip()
    if not fiscal_year:
        raise ValidationError("fiscal_year is required.")
    breakdown = payload.get("category_wise_breakdown") or {}
    if not isinstance(breakdown, dict):
        raise ValidationError("category_wise_breakdown must map categories to amounts.")
    cleaned = {str(name): _number(value, f"category_wise_breakdown.{name}") for name, value in breakdown.items()}

    flow = BudgetFlow.query.filter_by(fiscal_year=fiscal_year).first()
    if not flow:
        flow = BudgetFlow(fiscal_year=fiscal_year)
        db.session.add(flow)
    flow.bbmp_budget = _number(payload.get("bbmp_budget"), "bbmp_budget")
    flow.state_funds = _number(payload.get("state_funds"), "state_funds")
    flow.central_funds = _number(payload.get("central_funds"), "central_funds")
    flow.category_wise_breakdown = cleaned
    log_action("BUDGET_UPSERTED", actor_id, context=f"budget:{fiscal_year}")
    _commit()
    return flow


def budget_summary(fiscal_year: str | None = None) -> dict | None:
    """Totals, source split and category shares for one fiscal year (latest by default)."""
    query = BudgetFlow.query
    if fiscal_year:
        flow = query.filter_by(fiscal_year=fiscal_year).first()
        if not flow:
            raise NotFoundError(f"No budget recorded for {fiscal_year}")
    else:
        flow = query.order_by(BudgetFlow.fiscal_year.desc()).first()
        if not flow:
            return None

    total = flow.total
    sources = [
        {"source": "BBMP", "amount": flow.bbmp_budget, "label": format_inr(flow.bbmp_budget), "share": percentage(flow.bbmp_budget, total)},
        {"source": "State", "amount": flow.state_funds, "label": format_inr(flow.state_funds), "share": percentage(flow.state_funds, total)},
        {"source": "Central", "amount": flow.central_funds, "label": format_inr(flow.central_funds), "share": percentage(flow.central_funds, total)},
    ]
    breakdown = flow.category_wise_breakdown or {}
    breakdown_total = sum(float(v) for v in breakdown.values())
    categories = sorted(
        (
            {"category": name, "value": float(value), "share": percentage(value, breakdown_total)}
            for name, value in breakdown.items()
        ),
        key=lambda item: item["share"],
        reverse=True,
    )
    return {
        "fiscal_year": flow.fiscal_year,
        "total": total,
        "total_label": format_inr(total),
        "sources": sources,
        "categories": categories,
        "updated_at": flow.updated_at.isoformat() if isinstance(flow.updated_at, datetime) else None,
    }


def seed_reference_data() -> tuple[int, bool]:
    """Insert demo projects and budget when absent. Returns (projects_added, budget_added)."""
    added = 0
    for item in DEMO_PROJECTS:
        if Project.query.filter_by(title=item["title"]).first():
            continue
        create_project(item)
        added += 1
    budget_added = False
    if not BudgetFlow.query.filter_by(fiscal_year=DEMO_BUDGET["fiscal_year"]).first():
        upsert_budget_flow(DEMO_BUDGET["fiscal_year"], DEMO_BUDGET)
        budget_added = True
    return added, budget_added
