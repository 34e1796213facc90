import pytest

from models import AuditLog, BudgetFlow, Project
from utils.errors import AuthorizationError, NotFoundError, ValidationError
from utils.reference_data import (
    DEMO_PROJECTS,
    budget_summary,
    create_project,
    get_project,
    list_projects,
    seed_reference_data,
    upsert_budget_flow,
)

PROJECT = {
    "title": "Storm Drain Desilting - Bellandur",
    "category": "Drainage",
    "short_description": "Desilting primary storm drains before the monsoon.",
    "cost": 25_000_000,
    "ward": 150,
    "contractor": "Aqua Solutions",
    "start_date": "2024-02-01",
    "completion_date": "2024-07-15",
    "progress_percent": 20,
}


def test_seed_is_idempotent(ctx):
    assert seed_reference_data() == (len(DEMO_PROJECTS), True)
    assert seed_reference_data() == (0, False)
    assert Project.query.count() == len(DEMO_PROJECTS)
    assert BudgetFlow.query.count() == 1


def test_seeded_flyover(ctx):
    seed_reference_data()
    flyover = next(p for p in list_projects() if p.title == "Flyover at 90 Feet Road")
    payload = flyover.public_payload()
    assert payload["cost_label"] == "₹85 Crore"
    assert payload["progress_percent"] == 47
    assert payload["ward_label"] == "Ward 145"
    assert payload["duration_months"] == 23


def test_list_projects_filters_and_orders(ctx):
    seed_reference_data()
    by_progress = [p.progress_percent for p in list_projects(order="progress")]
    assert by_progress == sorted(by_progress, reverse=True)
    assert [p.category for p in list_projects(category="parks")] == ["Parks"]
    assert [p.title for p in list_projects(search="koramangala")] == ["Sewage Line Repair - Koramangala"]


def test_create_project_validation(ctx):
    project = create_project(dict(PROJECT))
    assert get_project(project.id).title == PROJECT["title"]
    assert project.duration_months == 5

    for field, value in (
        ("title", ""),
        ("cost", -1),
        ("ward", "north"),
        ("progress_percent", 120),
        ("start_date", "01/02/2024"),
        ("completion_date", "2023-12-31"),
    ):
        with pytest.raises(ValidationError):
            create_project({**PROJECT, field: value})


def test_project_writes_require_admin(ctx, make_user):
    citizen = make_user(role="citizen")
    admin = make_user(role="admin")
    with pytest.raises(AuthorizationError):
        create_project(dict(PROJECT), actor_id=citizen.id)
    with pytest.raises(AuthorizationError):
        upsert_budget_flow("2025-26", {"bbmp_budget": 1, "state_funds": 1, "central_funds": 1}, actor_id=citizen.id)
    assert Project.query.count() == 0

    create_project(dict(PROJECT), actor_id=admin.id)
    assert AuditLog.query.filter_by(action_type="PROJECT_CREATED", user_id=admin.id).count() == 1


def test_missing_project(ctx):
    with pytest.raises(NotFoundError):
        get_project("missing")


def test_budget_summary(ctx):
    assert budget_summary() is None
    seed_reference_data()

    summary = budget_summary()
    assert summary["fiscal_year"] == "2024-25"
    assert summary["total"] == 190_000_000_000
    assert summary["total_label"] == "₹19000 Crore"
    assert [(s["source"], s["share"]) for s in summary["sources"]] == [
        ("BBMP", 65.8),
        ("State", 23.7),
        ("Central", 10.5),
    ]
    assert [c["category"] for c in summary["categories"]][:2] == ["Roads & Infrastructure", "Water & Sanitation"]
    assert summary["categories"][0]["share"] == 35.0

    with pytest.raises(NotFoundError):
        budget_summary("1999-00")


def test_budget_upsert_replaces_year(ctx):
    upsert_budget_flow("2025-26", {"bbmp_budget": 100, "state_funds": 50, "central_funds": 50})
    upsert_budget_flow(
        "2025-26",
        {"bbmp_budget": 200, "state_funds": 0, "central_funds": 0, "category_wise_breakdown": {"Roads": 3, "Parks": 1}},
    )
    summary = budget_summary("2025-26")
    assert BudgetFlow.query.count() == 1
    assert summary["total"] == 200
    assert summary["categories"] == [
        {"category": "Roads", "value": 3.0, "share": 75.0},
        {"category": "Parks", "value": 1.0, "share": 25.0},
    ]

    with pytest.raises(ValidationError):
        upsert_budget_flow("2025-26", {"bbmp_budget": "lots", "state_funds": 0, "central_funds": 0})
