from extensions import db
from models import Complaint

LOCATION = {"lat": 12.97, "lng": 77.59, "address": "MG Road"}


def _submit(client, **overrides):
    payload = {"category": "garbage", "description": "Overflowing bin near the market", "location": LOCATION}
    payload.update(overrides)
    return client.post("/complaints/", json=payload)


def test_signed_in_citizen_submits_and_tracks(make_user, login_client):
    citizen = make_user()
    client = login_client(citizen)

    response = _submit(client)
    assert response.status_code == 201
    body = response.get_json()
    assert body["citizen_id"] == citizen.id
    assert body["status"] == "Open"
    assert body["status_badge"] == "danger"
    assert body["category_label"] == "Garbage"
    assert [step["reached"] for step in body["progress"]] == [True, False, False]

    mine = client.get("/complaints/?owner=me&include_anonymous=false").get_json()
    assert [c["id"] for c in mine["complaints"]] == [body["id"]]

    history = client.get(f"/complaints/{body['id']}/history").get_json()
    assert [entry["new_status"] for entry in history["timeline"]] == ["Open"]


def test_client_supplied_identity_is_ignored(client, make_user):
    victim = make_user()
    response = _submit(client, citizenId=victim.id, citizen_id=victim.id)
    assert response.status_code == 201
    body = response.get_json()
    assert body["citizen_id"] is None
    assert body["is_anonymous"] is True


def test_anonymous_flag_hides_signed_in_citizen(make_user, login_client):
    client = login_client(make_user())
    body = _submit(client, isAnonymous=True).get_json()
    assert body["is_anonymous"] is True
    assert body["citizen_id"] is None


def test_invalid_submission_returns_400(client):
    response = _submit(client, category="meteor")
    assert response.status_code == 400
    assert "Unknown category" in response.get_json()["message"]
    assert client.post("/complaints/", data="not json").status_code == 400


def test_other_citizens_cannot_read_named_complaints(client, make_user, login_client):
    owner_client = login_client(make_user())
    complaint_id = _submit(owner_client).get_json()["id"]

    stranger = login_client(make_user())
    denied = stranger.get(f"/complaints/{complaint_id}")
    assert denied.status_code == 403
    assert denied.get_json()["message"] == "Forbidden"
    assert client.get(f"/complaints/{complaint_id}").status_code == 403
    assert stranger.get("/complaints/").get_json()["count"] == 0

    official = login_client(make_user(role="official"))
    assert official.get(f"/complaints/{complaint_id}").status_code == 200


def test_list_filters(client):
    _submit(client, category="pothole", description="Pothole by the school gate")
    _submit(client, category="water", description="Burst pipe flooding the lane")

    by_category = client.get("/complaints/?category=water").get_json()
    assert [c["category"] for c in by_category["complaints"]] == ["water"]
    by_text = client.get("/complaints/?q=SCHOOL").get_json()
    assert [c["category"] for c in by_text["complaints"]] == ["pothole"]
    assert client.get("/complaints/?limit=1").get_json()["count"] == 1
    assert client.get("/complaints/?limit=zero").status_code == 400
    assert len(client.get("/complaints/recent").get_json()["complaints"]) == 2


def test_official_moves_complaint_through_lifecycle(app, client, make_user, login_client):
    complaint_id = _submit(client).get_json()["id"]
    official = make_user(role="official")
    official_client = login_client(official)

    reviewed = official_client.patch(f"/complaints/{complaint_id}/status", json={"status": "Under Review"})
    assert reviewed.status_code == 200
    assert reviewed.get_json()["official_assigned"] == official.id
    assert reviewed.get_json()["status_badge"] == "warning"

    backwards = official_client.patch(f"/complaints/{complaint_id}/status", json={"status": "Open"})
    assert backwards.status_code == 400

    resolved = official_client.patch(
        f"/complaints/{complaint_id}/status", json={"status": "Resolved", "remarks": "Cleared by ward crew"}
    )
    assert resolved.get_json()["status"] == "Resolved"

    timeline = client.get(f"/complaints/{complaint_id}/history").get_json()["timeline"]
    assert [entry["new_status"] for entry in timeline] == ["Open", "Under Review", "Resolved"]
    assert timeline[-1]["remarks"] == "Cleared by ward crew"


def test_citizen_status_update_is_forbidden(app, make_user, login_client):
    citizen_client = login_client(make_user())
    complaint_id = _submit(citizen_client).get_json()["id"]

    response = citizen_client.patch(f"/complaints/{complaint_id}/status", json={"status": "Resolved"})
    assert response.status_code == 403
    assert response.get_json() == {"error": "AuthorizationError", "message": "Forbidden"}
    with app.app_context():
        assert db.session.get(Complaint, complaint_id).status == "Open"


def test_status_update_requires_login(client):
    complaint_id = _submit(client).get_json()["id"]
    response = client.patch(f"/complaints/{complaint_id}/status", json={"status": "Under Review"})
    assert response.status_code == 401


def test_unknown_complaint_returns_404(client):
    response = client.get("/complaints/does-not-exist")
    assert response.status_code == 404
    assert response.get_json()["error"] == "NotFoundError"


def test_assignment_route(client, make_user, login_client):
    complaint_id = _submit(client).get_json()["id"]
    admin_client = login_client(make_user(role="admin"))
    official = make_user(role="official")

    response = admin_client.patch(f"/complaints/{complaint_id}/assignment", json={"official_id": official.id})
    assert response.status_code == 200
    assert response.get_json()["official_assigned"] == official.id

    citizen = make_user()
    rejected = admin_client.patch(f"/complaints/{complaint_id}/assignment", json={"official_id": citizen.id})
    assert rejected.status_code == 400


def test_options_and_headers(client):
    response = client.get("/complaints/options", headers={"X-Request-ID": "trace-123"})
    body = response.get_json()
    assert {"value": "road", "label": "Road Damage"} in body["categories"]
    assert body["statuses"] == ["Open", "Under Review", "Resolved"]
    assert response.headers["X-Request-ID"] == "trace-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"

    generated = client.get("/complaints/options").headers["X-Request-ID"]
    assert len(generated) == 32


def test_limit_applies_to_matching_complaints(client):
    _submit(client, category="water", description="Burst pipe flooding the lane")
    _submit(client, category="garbage", description="Overflowing bin near the market")
    _submit(client, category="garbage", description="Garbage left on the footpath")

    matched = client.get("/complaints/?q=burst&limit=1").get_json()
    assert [c["category"] for c in matched["complaints"]] == ["water"]
    by_category = client.get("/complaints/", query_string={"category": "Road Damage", "limit": 1}).get_json()
    assert by_category["count"] == 0
    assert client.get("/complaints/?category=garbage&limit=1").get_json()["count"] == 1


def test_payload_reports_lifecycle_position(client, make_user, login_client):
    complaint = _submit(client).get_json()
    assert complaint["next_statuses"] == ["Under Review"]
    assert complaint["closed"] is False

    admin = login_client(make_user(role="admin"))
    resolved = admin.patch(f"/complaints/{complaint['id']}/status", json={"status": "Resolved"}).get_json()
    assert resolved["next_statuses"] == []
    assert resolved["closed"] is True
