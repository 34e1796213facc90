from utils.reference_data import DEMO_PROJECTS, seed_reference_data

NEW_PROJECT = {
    "title": "Metro Feeder Bus Bays - Silk Board",
    "category": "Metro",
    "short_description": "Covered feeder bus bays at the Silk Board metro station.",
    "cost": 35_000_000,
    "ward": 172,
    "start_date": "2024-05-01",
}


def _seed(app):
    with app.app_context():
        seed_reference_data()


def test_projects_listing(app, client):
    _seed(app)
    body = client.get("/transparency/projects").get_json()
    assert body["count"] == len(DEMO_PROJECTS)
    assert "Water Supply" in body["categories"]

    progress = client.get("/transparency/projects?order=progress").get_json()["projects"]
    assert progress[0]["title"] == "Sewage Line Repair - Koramangala"

    roads = client.get("/transparency/projects?category=Roads").get_json()["projects"]
    assert [p["title"] for p in roads] == ["Road Widening - Bannerghatta Road"]

    assert client.get("/transparency/projects?order=cost").status_code == 400


def test_project_detail(app, client):
    _seed(app)
    project_id = client.get("/transparency/projects?q=flyover").get_json()["projects"][0]["id"]
    detail = client.get(f"/transparency/projects/{project_id}").get_json()
    assert detail["cost_label"] == "₹85 Crore"
    assert detail["contractor"] == "L&T Construction"
    assert client.get("/transparency/projects/unknown").status_code == 404


def test_project_creation_is_admin_only(client, make_user, login_client):
    official = login_client(make_user(role="official"))
    assert official.post("/transparency/projects", json=NEW_PROJECT).status_code == 403
    assert client.post("/transparency/projects", json=NEW_PROJECT).status_code == 401

    admin = login_client(make_user(role="admin"))
    created = admin.post("/transparency/projects", json=NEW_PROJECT)
    assert created.status_code == 201
    assert created.get_json()["ward_label"] == "Ward 172"
    assert admin.post("/transparency/projects", json={**NEW_PROJECT, "ward": 0}).status_code == 400


def test_budget_endpoints(app, client, make_user, login_client):
    empty = client.get("/transparency/budget").get_json()
    assert empty["budget"] is None

    _seed(app)
    budget = client.get("/transparency/budget").get_json()["budget"]
    assert budget["fiscal_year"] == "2024-25"
    assert budget["total_label"] == "₹19000 Crore"
    assert client.get("/transparency/budget?fiscal_year=1990-91").status_code == 404

    admin = login_client(make_user(role="admin"))
    published = admin.put(
        "/transparency/budget/2025-26",
        json={"bbmp_budget": 130_000_000_000, "state_funds": 40_000_000_000, "central_funds": 30_000_000_000},
    )
    assert published.status_code == 200
    assert published.get_json()["budget"]["total"] == 200_000_000_000
    assert client.get("/transparency/budget").get_json()["budget"]["fiscal_year"] == "2025-26"


def test_dashboard(app, client):
    _seed(app)
    for n in range(5):
        client.post(
            "/complaints/",
            json={"category": "other", "description": f"Report {n}", "location": {"address": "Ward office"}},
        )
    body = client.get("/").get_json()
    assert [c["description"] for c in body["recent_complaints"]] == ["Report 4", "Report 3", "Report 2", "Report 1"]
    assert [p["progress_percent"] for p in body["ongoing_projects"]] == [60, 55, 47]
    assert body["budget"]["fiscal_year"] == "2024-25"


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_category_filter_matches_special_characters(make_user, login_client, client):
    admin = login_client(make_user(role="admin"))
    assert admin.post("/transparency/projects", json={**NEW_PROJECT, "category": "Parks & Gardens"}).status_code == 201
    assert admin.post("/transparency/projects", json={**NEW_PROJECT, "category": "Parks"}).status_code == 201

    body = client.get("/transparency/projects", query_string={"category": "Parks & Gardens"}).get_json()
    assert body["count"] == 1
    assert body["projects"][0]["category"] == "Parks & Gardens"
