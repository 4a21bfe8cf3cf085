"""
Match lookup and creation used by the routes and the management CLI.
"""

import logging
from collections import Counter
from datetime import datetime, timezone

from app.errors import InvalidTeam, MatchNotFound
from app.storage import get_storage
from app.utils.cache_utils import invalidate_model_cache
from app.utils.timezone_utils import convert_to_utc, get_utc_time

logger = logging.getLogger(__name__)


def create_match(team1, team2, venue, match_date):
    """Create a new unresolved match.

    Naive ``match_date`` values are read in the application timezone; the
    match is stored in UTC.
    """
    team1, team2, venue = team1.strip(), team2.strip(), venue.strip()
    if team1.lower() == team2.lower():
        raise InvalidTeam("A match needs two different teams")

    match_date = convert_to_utc(match_date).replace(tzinfo=None)

    storage = get_storage()
    with storage.transaction():
        match = storage.create_match(team1, team2, venue, match_date)

    invalidate_model_cache("matches")
    logger.info(f"Created match {match.id}: {team1} vs {team2} at {venue}")
    return match


def get_match(match_id):
    match = get_storage().get_match(match_id)
    if match is None:
        raise MatchNotFound(f"Match {match_id} not found")
    return match


def list_matches(include_past=False, now=None):
    """Upcoming matches soonest first, or every match when ``include_past``"""
    storage = get_storage()
    if include_past:
        return storage.list_matches()
    return storage.list_upcoming_matches(now or get_utc_time())


def refresh_schedule(rows, include_past=False, now=None):
    """Recompute the time dependent fields of serialized match rows.

    Cached listings hold each match as stored; whether it has started, and
    so whether it is still open and upcoming, depends on the request time.
    """
    now = now or get_utc_time()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    listing = []
    for row in rows:
        started = now >= datetime.fromisoformat(row["match_date"])
        if started and not include_past:
            continue
        row = dict(row, is_open=not row["is_resolved"] and not started)
        if not row["is_resolved"]:
            row["status"] = "in_progress" if started else "scheduled"
        listing.append(row)
    return listing


def get_wager_counts(match):
    """Count wagers and staked amounts per team for a match"""
    wagers = get_storage().list_wagers_for_match(match.id)
    counts = Counter(w.selected_team for w in wagers)
    stakes = Counter()
    for wager in wagers:
        stakes[wager.selected_team] += wager.amount

    return {
        "team1": {"wagers": counts[match.team1], "staked": stakes[match.team1]},
        "team2": {"wagers": counts[match.team2], "staked": stakes[match.team2]},
        "total": {"wagers": len(wagers), "staked": sum(stakes.values())},
    }
