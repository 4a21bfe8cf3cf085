from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest

from app import create_app
from app.services import match_service, user_service


@pytest.fixture
def setup(admin, make_user, make_match):
    """Admin, two bettors and one upcoming CSK vs MI match"""
    alice = make_user("alice")
    bob = make_user("bob")
    match = make_match("CSK", "MI")
    return {"admin": admin.id, "alice": alice.id, "bob": bob.id, "match": match.id}


def test_health(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    data = response.get_json()
    assert data["status"] == "healthy"
    assert data["storage"] in ("sql", "memory")
    assert response.headers["X-Content-Type-Options"] == "nosniff"


def test_api_requires_login(client):
    response = client.get("/api/matches")

    assert response.status_code == 401
    assert response.get_json()["error"] == "unauthenticated"


def test_register_logs_the_user_in(client):
    response = client.post(
        "/auth/register",
        json={"username": "carol", "full_name": "Carol D", "password": "Secret123"},
    )

    assert response.status_code == 201
    assert response.get_json()["user"]["role"] == "user"

    me = client.get("/auth/user").get_json()["user"]
    assert me["username"] == "carol"
    assert me["full_name"] == "Carol D"


def test_register_rejects_taken_username_and_weak_password(client, make_user):
    make_user("carol")

    taken = client.post(
        "/auth/register",
        json={"username": "carol", "full_name": "Carol", "password": "Secret123"},
    )
    weak = client.post(
        "/auth/register",
        json={"username": "dave", "full_name": "Dave", "password": "short"},
    )

    assert taken.status_code == 400
    assert "username" in taken.get_json()["fields"]
    assert weak.status_code == 400
    assert "password" in weak.get_json()["fields"]


def test_login_with_wrong_password(client, make_user):
    make_user("alice")

    response = client.post(
        "/auth/login", json={"username": "alice", "password": "Wrong1234"}
    )

    assert response.status_code == 401
    assert response.get_json()["error"] == "invalid_credentials"


def test_logout(login, setup):
    client = login("alice")

    assert client.post("/auth/logout").status_code == 200
    assert client.get("/api/matches").status_code == 401


def test_csrf_token_endpoint(client):
    response = client.get("/auth/csrf-token")

    assert response.status_code == 200
    assert response.get_json()["csrf_token"]


def test_match_listing(login, setup, make_match):
    past = make_match("RCB", "KKR", hours=-24)
    client = login("alice")

    upcoming = client.get("/api/matches").get_json()["matches"]
    everything = client.get("/api/matches?all=1").get_json()["matches"]

    assert [m["id"] for m in upcoming] == [setup["match"]]
    assert [m["id"] for m in everything] == [past.id, setup["match"]]
    assert upcoming[0]["is_open"] is True
    assert upcoming[0]["status"] == "scheduled"


def test_match_detail_with_wager_counts(login, setup):
    client = login("alice")
    client.post(
        "/api/wagers",
        json={"match_id": setup["match"], "selected_team": "CSK", "amount": 20},
    )

    data = client.get(f"/api/matches/{setup['match']}").get_json()

    assert data["team1"] == "CSK"
    assert data["wager_counts"]["team1"] == {"wagers": 1, "staked": 20}
    assert data["wager_counts"]["total"] == {"wagers": 1, "staked": 20}
    assert data["my_wager"]["amount"] == 20


def test_unknown_match_is_404(login, setup):
    response = login("alice").get("/api/matches/999")

    assert response.status_code == 404
    assert response.get_json()["error"] == "match_not_found"


def test_place_and_change_wager(login, setup):
    client = login("alice")
    payload = {"match_id": setup["match"], "selected_team": "CSK", "amount": 10}

    created = client.post("/api/wagers", json=payload)
    again = client.post("/api/wagers", json={**payload, "amount": 30})

    assert created.status_code == 201
    assert created.get_json()["created"] is True
    assert again.status_code == 200
    assert again.get_json()["created"] is False

    wager_id = created.get_json()["wager"]["id"]
    updated = client.put(
        f"/api/wagers/{wager_id}", json={"selected_team": "MI", "amount": 20}
    )
    assert updated.status_code == 200
    assert updated.get_json()["wager"]["selected_team"] == "MI"

    mine = client.get(f"/api/wagers/match/{setup['match']}").get_json()["wager"]
    assert (mine["id"], mine["amount"]) == (wager_id, 20)

    listed = client.get("/api/wagers").get_json()["wagers"]
    assert len(listed) == 1
    assert listed[0]["outcome"] == "pending"
    assert listed[0]["match"]["id"] == setup["match"]


@pytest.mark.parametrize(
    "payload, status, error",
    [
        ({"selected_team": "CSK", "amount": 15}, 400, "invalid_amount"),
        ({"selected_team": "CSK", "amount": 12.5}, 400, "validation_error"),
        ({"selected_team": "CSK", "amount": True}, 400, "validation_error"),
        ({"selected_team": "RR", "amount": 10}, 400, "invalid_team"),
        ({"selected_team": "CSK"}, 400, "validation_error"),
    ],
)
def test_rejected_wagers(login, setup, payload, status, error):
    client = login("alice")

    response = client.post("/api/wagers", json={"match_id": setup["match"], **payload})

    assert response.status_code == status
    assert response.get_json()["error"] == error


def test_no_wager_on_started_match(login, setup, make_match):
    started = make_match("RCB", "KKR", hours=-1)

    response = login("alice").post(
        "/api/wagers",
        json={"match_id": started.id, "selected_team": "RCB", "amount": 10},
    )

    assert response.status_code == 409
    assert response.get_json()["error"] == "match_closed"


def test_cannot_change_someone_elses_wager(login, setup):
    wager = (
        login("alice")
        .post(
            "/api/wagers",
            json={"match_id": setup["match"], "selected_team": "CSK", "amount": 10},
        )
        .get_json()["wager"]
    )

    response = login("bob").put(
        f"/api/wagers/{wager['id']}", json={"selected_team": "MI", "amount": 10}
    )

    assert response.status_code == 403
    assert response.get_json()["error"] == "unauthorized"


def test_my_wager_for_match_without_wager(login, setup):
    response = login("alice").get(f"/api/wagers/match/{setup['match']}")

    assert response.status_code == 200
    assert response.get_json()["wager"] is None


def test_only_admins_settle(login, setup):
    response = login("alice").put(
        f"/api/matches/{setup['match']}/winner", json={"winner": "CSK"}
    )

    assert response.status_code == 403


def test_settlement_flow(login, setup):
    alice = login("alice")
    bob = login("bob")
    admin = login("admin")
    match_id = setup["match"]
    alice.post(
        "/api/wagers", json={"match_id": match_id, "selected_team": "CSK", "amount": 20}
    )
    bob.post(
        "/api/wagers", json={"match_id": match_id, "selected_team": "MI", "amount": 10}
    )

    def points():
        rows = alice.get("/api/leaderboard").get_json()["leaderboard"]
        return {row["username"]: row["total_points"] for row in rows}

    response = admin.put(f"/api/matches/{match_id}/winner", json={"winner": "CSK"})
    assert response.status_code == 200
    body = response.get_json()
    assert body["match"]["winner"] == "CSK"
    assert body["settlement"]["total_awarded"] == 30.0
    assert points() == {"alice": 30.0, "bob": -10.0, "admin": 0.0}

    admin.put(f"/api/matches/{match_id}/winner", json={"winner": "MI"})
    assert points() == {"alice": -20.0, "bob": 30.0, "admin": 0.0}

    # Same result again leaves the ledger alone
    admin.put(f"/api/matches/{match_id}/winner", json={"winner": "MI"})
    assert points() == {"alice": -20.0, "bob": 30.0, "admin": 0.0}

    reset = admin.put(
        f"/api/matches/{match_id}/winner", json={"winner": None, "is_abandoned": False}
    )
    assert reset.get_json()["match"]["is_resolved"] is False
    assert points() == {"alice": 0.0, "bob": 0.0, "admin": 0.0}

    rows = alice.get("/api/leaderboard").get_json()["leaderboard"]
    assert [row["rank"] for row in rows] == [1, 2, 3]

    wagers = admin.get(f"/api/matches/{match_id}/wagers").get_json()["wagers"]
    assert {w["username"] for w in wagers} == {"alice", "bob"}


def test_settle_rejects_bad_outcomes(login, setup):
    admin = login("admin")

    wrong_team = admin.put(
        f"/api/matches/{setup['match']}/winner", json={"winner": "RR"}
    )
    both = admin.put(
        f"/api/matches/{setup['match']}/winner",
        json={"winner": "CSK", "is_abandoned": True},
    )
    missing = admin.put("/api/matches/999/winner", json={"winner": "CSK"})

    assert wrong_team.status_code == 400
    assert wrong_team.get_json()["error"] == "invalid_outcome"
    assert both.status_code == 400
    assert missing.status_code == 404


def test_abandon_match(login, setup):
    admin = login("admin")

    response = admin.put(
        f"/api/matches/{setup['match']}/winner", json={"is_abandoned": True}
    )

    assert response.status_code == 200
    assert response.get_json()["match"]["status"] == "abandoned"


def test_admin_creates_match(login, setup):
    admin = login("admin")

    created = admin.post(
        "/api/matches",
        json={
            "team1": "RCB",
            "team2": "KKR",
            "venue": "Chinnaswamy",
            "match_date": "2099-04-01T19:30:00+05:30",
        },
    )
    same_teams = admin.post(
        "/api/matches",
        json={
            "team1": "RCB",
            "team2": "RCB",
            "venue": "Chinnaswamy",
            "match_date": "2099-04-02T19:30",
        },
    )
    by_user = login("alice").post(
        "/api/matches",
        json={
            "team1": "RCB",
            "team2": "KKR",
            "venue": "Chinnaswamy",
            "match_date": "2099-04-01T19:30",
        },
    )

    assert created.status_code == 201
    assert created.get_json()["match_date"].startswith("2099-04-01T14:00:00")
    assert same_teams.status_code == 400
    assert same_teams.get_json()["error"] == "invalid_team"
    assert by_user.status_code == 403

    listed = admin.get("/api/matches").get_json()["matches"]
    assert created.get_json()["id"] in [m["id"] for m in listed]


def test_user_administration(login, setup):
    admin = login("admin")

    created = admin.post(
        "/api/users",
        json={
            "username": "erin",
            "full_name": "Erin",
            "password": "Secret123",
            "role": "admin",
        },
    )
    assert created.status_code == 201
    assert created.get_json()["user"]["role"] == "admin"

    users = admin.get("/api/users").get_json()["users"]
    assert {u["username"] for u in users} == {"admin", "alice", "bob", "erin"}

    deactivated = admin.put(f"/api/users/{setup['bob']}/deactivate")
    assert deactivated.status_code == 200
    assert deactivated.get_json()["user"]["is_active"] is False

    response = admin.application.test_client().post(
        "/auth/login", json={"username": "bob", "password": "Secret123"}
    )
    assert response.status_code == 403

    assert admin.put(f"/api/users/{setup['admin']}/deactivate").status_code == 403
    assert admin.put("/api/users/999/deactivate").status_code == 404
    assert login("alice").get("/api/users").status_code == 403


def test_match_listing_cache_is_invalidated():
    app = create_app(
        "testing", {"STORAGE_BACKEND": "memory", "CACHE_TYPE": "SimpleCache"}
    )
    with app.app_context():
        user_service.create_user("alice", "Secret123", "Alice")
        match_service.create_match(
            "CSK", "MI", "Chepauk", datetime.now(timezone.utc) + timedelta(days=1)
        )

    client = app.test_client()
    client.post("/auth/login", json={"username": "alice", "password": "Secret123"})
    assert len(client.get("/api/matches").get_json()["matches"]) == 1

    with app.app_context():
        match_service.create_match(
            "RCB", "KKR", "Chinnaswamy", datetime.now(timezone.utc) + timedelta(days=2)
        )

    assert len(client.get("/api/matches").get_json()["matches"]) == 2


def test_cached_listing_closes_matches_at_kickoff():
    app = create_app(
        "testing", {"STORAGE_BACKEND": "memory", "CACHE_TYPE": "SimpleCache"}
    )
    with app.app_context():
        user_service.create_user("alice", "Secret123", "Alice")
        match = match_service.create_match(
            "CSK", "MI", "Chepauk", datetime.now(timezone.utc) + timedelta(hours=1)
        )

    client = app.test_client()
    client.post("/auth/login", json={"username": "alice", "password": "Secret123"})
    (before,) = client.get("/api/matches").get_json()["matches"]
    client.get("/api/matches?all=1")
    assert before["is_open"] is True

    after_kickoff = datetime.now(timezone.utc) + timedelta(hours=2)
    with patch("app.services.match_service.get_utc_time", return_value=after_kickoff):
        upcoming = client.get("/api/matches").get_json()["matches"]
        (row,) = client.get("/api/matches?all=1").get_json()["matches"]

    assert upcoming == []
    assert row["id"] == match.id
    assert row["is_open"] is False
    assert row["status"] == "in_progress"
