import pytest

from app.services import wager_service
from app.services.leaderboard_service import project_leaderboard
from app.services.settlement_service import settle_match

pytestmark = pytest.mark.usefixtures("ctx")


def by_username(rows):
    return {row["username"]: row for row in rows}


def test_every_user_is_ranked_even_without_wagers(make_user):
    make_user("alice")
    make_user("bob")

    rows = project_leaderboard()

    assert [row["username"] for row in rows] == ["alice", "bob"]
    assert [row["rank"] for row in rows] == [1, 2]
    assert all(row["total_points"] == 0 for row in rows)
    assert all(row["win_rate"] == 0 for row in rows)


def test_ranked_by_points_with_counts(make_user, make_match):
    alice = make_user("alice")
    bob = make_user("bob")
    carol = make_user("carol")
    first = make_match("CSK", "MI")
    second = make_match("RCB", "KKR", hours=72)
    wager_service.place_wager(alice, first.id, "CSK", 20)
    wager_service.place_wager(bob, first.id, "MI", 10)
    wager_service.place_wager(bob, second.id, "KKR", 30)

    settle_match(first.id, winner="MI")

    rows = project_leaderboard()
    assert [row["username"] for row in rows] == ["bob", "carol", "alice"]

    stats = by_username(rows)
    assert stats["bob"]["total_points"] == 30.0
    assert stats["bob"]["winning_bets_count"] == 1
    assert stats["bob"]["pending_bets_count"] == 1
    assert stats["bob"]["total_bets_count"] == 2
    assert stats["bob"]["win_rate"] == 100.0
    assert stats["alice"]["total_points"] == -20.0
    assert stats["alice"]["losing_bets_count"] == 1
    assert stats["alice"]["win_rate"] == 0
    assert stats["carol"]["rank"] == 2
    assert stats["carol"]["full_name"] == "Carol"


def test_ties_are_broken_by_user_id(make_user, make_match):
    first = make_user("zed")
    second = make_user("amy")
    match = make_match("CSK", "MI")
    wager_service.place_wager(first, match.id, "CSK", 10)
    wager_service.place_wager(second, match.id, "CSK", 10)

    settle_match(match.id, winner="CSK")

    rows = project_leaderboard()
    assert [row["user_id"] for row in rows] == [first.id, second.id]
    assert [row["total_points"] for row in rows] == [10.0, 10.0]


def test_abandoned_wagers_count_only_towards_total(make_user, make_match):
    alice = make_user("alice")
    match = make_match("CSK", "MI")
    wager_service.place_wager(alice, match.id, "CSK", 10)

    settle_match(match.id, is_abandoned=True)

    (row,) = project_leaderboard()
    assert row["total_bets_count"] == 1
    assert row["winning_bets_count"] == 0
    assert row["losing_bets_count"] == 0
    assert row["pending_bets_count"] == 0


def test_reflects_a_changed_result(make_user, make_match):
    alice = make_user("alice")
    bob = make_user("bob")
    match = make_match("CSK", "MI")
    wager_service.place_wager(alice, match.id, "CSK", 20)
    wager_service.place_wager(bob, match.id, "MI", 10)

    settle_match(match.id, winner="CSK")
    assert project_leaderboard()[0]["username"] == "alice"

    settle_match(match.id, winner="MI")
    rows = by_username(project_leaderboard())
    assert rows["bob"]["rank"] == 1
    assert rows["bob"]["total_points"] == 30.0
    assert rows["alice"]["total_points"] == -20.0
