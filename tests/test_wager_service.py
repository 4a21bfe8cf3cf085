from datetime import datetime, timedelta, timezone

import pytest

from app.errors import (
    InvalidAmount,
    InvalidTeam,
    MatchClosed,
    MatchNotFound,
    NotFound,
    Unauthorized,
)
from app.services import wager_service
from app.services.settlement_service import settle_match

pytestmark = pytest.mark.usefixtures("ctx")


def test_place_wager(make_user, make_match):
    user = make_user("alice")
    match = make_match("CSK", "MI")

    wager, created = wager_service.place_wager(user, match.id, "CSK", 20)

    assert created
    assert wager.user_id == user.id
    assert wager.match_id == match.id
    assert wager.selected_team == "CSK"
    assert wager.amount == 20


def test_second_wager_on_same_match_updates_the_first(make_user, make_match):
    user = make_user("alice")
    match = make_match("CSK", "MI")

    first, _ = wager_service.place_wager(user, match.id, "CSK", 20)
    second, created = wager_service.place_wager(user, match.id, "MI", 30)

    assert not created
    assert second.id == first.id
    wagers = wager_service.list_wagers_for_match(match.id)
    assert len(wagers) == 1
    assert (wagers[0].selected_team, wagers[0].amount) == ("MI", 30)


@pytest.mark.parametrize("amount", [0, 15, 40, -10, True, 10.0, "10", None])
def test_amount_must_be_allowed(make_user, make_match, amount):
    user = make_user("alice")
    match = make_match()

    with pytest.raises(InvalidAmount):
        wager_service.place_wager(user, match.id, "CSK", amount)

    assert wager_service.list_wagers_for_match(match.id) == []


def test_allowed_amounts_come_from_config(app, make_user, make_match):
    app.config["ALLOWED_WAGER_AMOUNTS"] = (50,)
    user = make_user("alice")
    match = make_match()

    with pytest.raises(InvalidAmount):
        wager_service.place_wager(user, match.id, "CSK", 10)
    wager, _ = wager_service.place_wager(user, match.id, "CSK", 50)
    assert wager.amount == 50


def test_unknown_match(make_user):
    user = make_user("alice")

    with pytest.raises(MatchNotFound):
        wager_service.place_wager(user, 404, "CSK", 10)


def test_team_must_play_in_the_match(make_user, make_match):
    user = make_user("alice")
    match = make_match("CSK", "MI")

    with pytest.raises(InvalidTeam):
        wager_service.place_wager(user, match.id, "RCB", 10)


def test_started_match_is_closed(make_user, make_match):
    user = make_user("alice")
    match = make_match(hours=-1)

    with pytest.raises(MatchClosed):
        wager_service.place_wager(user, match.id, "CSK", 10)


def test_window_closes_at_match_start(make_user, make_match):
    user = make_user("alice")
    match = make_match(hours=2)
    later = datetime.now(timezone.utc) + timedelta(hours=3)

    with pytest.raises(MatchClosed):
        wager_service.place_wager(user, match.id, "CSK", 10, now=later)


def test_update_wager(make_user, make_match):
    user = make_user("alice")
    match = make_match("CSK", "MI")
    wager, _ = wager_service.place_wager(user, match.id, "CSK", 10)

    updated = wager_service.update_wager(user, wager.id, "MI", 30)

    assert updated.id == wager.id
    assert (updated.selected_team, updated.amount) == ("MI", 30)


def test_update_someone_elses_wager(make_user, make_match):
    alice = make_user("alice")
    bob = make_user("bob")
    match = make_match()
    wager, _ = wager_service.place_wager(alice, match.id, "CSK", 10)

    with pytest.raises(Unauthorized):
        wager_service.update_wager(bob, wager.id, "MI", 10)

    assert wager_service.get_wager_for_match(alice.id, match.id).selected_team == "CSK"


def test_update_unknown_wager(make_user):
    user = make_user("alice")

    with pytest.raises(NotFound):
        wager_service.update_wager(user, 77, "CSK", 10)


def test_update_after_match_start(make_user, make_match):
    user = make_user("alice")
    match = make_match(hours=1)
    wager, _ = wager_service.place_wager(user, match.id, "CSK", 10)

    with pytest.raises(MatchClosed):
        wager_service.update_wager(
            user,
            wager.id,
            "MI",
            10,
            now=datetime.now(timezone.utc) + timedelta(hours=2),
        )


def test_list_wagers(make_user, make_match):
    alice = make_user("alice")
    bob = make_user("bob")
    first = make_match("CSK", "MI")
    second = make_match("RCB", "KKR", hours=72)
    wager_service.place_wager(alice, first.id, "CSK", 10)
    wager_service.place_wager(alice, second.id, "KKR", 20)
    wager_service.place_wager(bob, first.id, "MI", 30)

    assert [w.match_id for w in wager_service.list_wagers_for_user(alice.id)] == [
        first.id,
        second.id,
    ]
    assert [w.user_id for w in wager_service.list_wagers_for_match(first.id)] == [
        alice.id,
        bob.id,
    ]
    assert wager_service.get_wager_for_match(bob.id, second.id) is None


def test_list_wagers_for_unknown_match(ctx):
    with pytest.raises(MatchNotFound):
        wager_service.list_wagers_for_match(5)


@pytest.mark.parametrize(
    "outcome", [{"winner": "CSK"}, {"winner": "MI"}, {"is_abandoned": True}]
)
def test_resolved_match_freezes_wagers(make_user, make_match, outcome):
    user = make_user("alice")
    match = make_match("CSK", "MI")
    wager, _ = wager_service.place_wager(user, match.id, "CSK", 20)
    settle_match(match.id, **outcome)

    with pytest.raises(MatchClosed):
        wager_service.update_wager(user, wager.id, "MI", 30)
    with pytest.raises(MatchClosed):
        wager_service.place_wager(user, match.id, "MI", 30)

    stored = wager_service.get_wager_for_match(user.id, match.id)
    assert (stored.id, stored.selected_team, stored.amount) == (wager.id, "CSK", 20)
