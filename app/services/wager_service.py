"""
Wager store rules: one wager per user and match, changeable only while the
match is open (unresolved and not yet started).
"""

import logging

from flask import current_app

from app.errors import (
    InvalidAmount,
    InvalidTeam,
    MatchClosed,
    MatchNotFound,
    NotFound,
    Unauthorized,
)
from app.storage import get_storage, match_lock
from app.utils.timezone_utils import get_utc_time

logger = logging.getLogger(__name__)


def allowed_amounts():
    return tuple(current_app.config.get("ALLOWED_WAGER_AMOUNTS", (10, 20, 30)))


def _validate_amount(amount):
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidAmount(f"Amount must be a whole number, got {amount!r}")
    if amount not in allowed_amounts():
        choices = ", ".join(str(a) for a in allowed_amounts())
        raise InvalidAmount(f"Amount must be one of {choices}")


def _load_open_match(storage, match_id, selected_team, now):
    """Load a match for a wager write and check the team and the wager window"""
    match = storage.get_match(match_id, for_update=True)
    if match is None:
        raise MatchNotFound(f"Match {match_id} not found")

    if not match.is_team_playing(selected_team):
        raise InvalidTeam(
            f"{selected_team} is not playing in {match.team1} vs {match.team2}"
        )

    if match.is_resolved:
        raise MatchClosed("Match already has a result")
    if match.has_started(now):
        raise MatchClosed("Match has already started")

    return match


def place_wager(user, match_id, selected_team, amount, now=None):
    """Place a wager, or update the user's existing wager on the same match.

    Returns:
        tuple: (wager, created) where created is False when an existing
        wager was updated
    """
    _validate_amount(amount)
    now = now or get_utc_time()
    storage = get_storage()

    with storage.transaction(match_lock(match_id)):
        _load_open_match(storage, match_id, selected_team, now)

        existing = storage.get_wager_by_user_and_match(user.id, match_id)
        if existing:
            wager = storage.update_wager(existing.id, selected_team, amount)
            created = False
        else:
            wager = storage.insert_wager(user.id, match_id, selected_team, amount)
            created = True

    logger.info(
        f"{'Placed' if created else 'Updated'} wager {wager.id}: user {user.id} "
        f"backs {selected_team} for {amount} on match {match_id}"
    )
    return wager, created


def update_wager(user, wager_id, selected_team, amount, now=None):
    """Change team and amount of an existing wager owned by ``user``"""
    _validate_amount(amount)
    now = now or get_utc_time()
    storage = get_storage()

    wager = storage.get_wager(wager_id)
    if wager is None:
        raise NotFound(f"Wager {wager_id} not found")

    with storage.transaction(match_lock(wager.match_id)):
        # Re-read under the lock
        wager = storage.get_wager(wager_id)
        if wager.user_id != user.id:
            raise Unauthorized("You can only change your own wagers")

        _load_open_match(storage, wager.match_id, selected_team, now)
        wager = storage.update_wager(wager.id, selected_team, amount)

    logger.info(
        f"Updated wager {wager.id}: user {user.id} backs {selected_team} "
        f"for {amount} on match {wager.match_id}"
    )
    return wager


def get_wager_for_match(user_id, match_id):
    return get_storage().get_wager_by_user_and_match(user_id, match_id)


def list_wagers_for_match(match_id):
    storage = get_storage()
    if storage.get_match(match_id) is None:
        raise MatchNotFound(f"Match {match_id} not found")
    return storage.list_wagers_for_match(match_id)


def list_wagers_for_user(user_id):
    return get_storage().list_wagers_for_user(user_id)
