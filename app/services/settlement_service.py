"""
Settlement Engine for the IPL Wager application

Declaring, changing or revoking a match result runs through ``settle_match``.
Each call first reverses whatever the previous result paid out, using the
exact deltas recorded when it was applied, and then applies the new result.
Settling twice with the same outcome therefore leaves every score unchanged,
and resetting a result restores every score exactly.

All steps for one match run inside a single storage transaction holding that
match's lock, so concurrent calls for the same match never interleave and a
failure leaves no partial state behind.
"""

from decimal import Decimal

from app.errors import InvalidOutcome, MatchNotFound
from app.storage import get_storage, match_lock
from app.utils.cache_utils import invalidate_model_cache
from app.utils.logging_config import ContextualLogger
from app.utils.performance import timer
from app.utils.scoring import calculate_settlement, summarize_deltas


def _reverse_previous(storage, match_id, log):
    """Undo every recorded delta of the match and forget the entries"""
    entries = storage.list_settlement_entries(match_id)
    for entry in entries:
        storage.increment_score(entry.user_id, -entry.delta)
    storage.clear_settlement_entries(match_id)

    if entries:
        log.info(f"Reversed {len(entries)} settlement entries")
    return [(entry.user_id, -entry.delta) for entry in entries]


def _apply_result(storage, match_id, pool, winner, log):
    """Apply the payouts for ``winner`` and record each delta"""
    deltas = calculate_settlement(pool, winner)
    if not deltas:
        log.info(f"No wagers on {winner}, no points move")
        return []

    applied = []
    for wager in pool:
        delta = deltas[wager.id]
        storage.increment_score(wager.user_id, delta)
        storage.add_settlement_entry(match_id, wager.id, wager.user_id, delta)
        applied.append((wager.user_id, delta))

    log.info(
        f"Applied {len(applied)} settlement entries for winner {winner} "
        f"(pool {sum(w.amount for w in pool)})"
    )
    return applied


@timer
def settle_match(match_id, winner=None, is_abandoned=False):
    """
    Declare, change or revoke the result of a match.

    ``winner=None, is_abandoned=False`` resets the match to unresolved.

    Args:
        match_id: match to settle
        winner: winning team name, or None
        is_abandoned: True to mark the match abandoned (no payouts)

    Returns:
        The updated match

    Raises:
        MatchNotFound: unknown match
        InvalidOutcome: winner is not one of the teams, or a winner was
            given for an abandoned match
    """
    log = ContextualLogger(__name__, {"match_id": match_id})

    if winner is not None and is_abandoned:
        raise InvalidOutcome("An abandoned match cannot have a winner")

    storage = get_storage()
    with storage.transaction(match_lock(match_id)):
        match = storage.get_match(match_id, for_update=True)
        if match is None:
            raise MatchNotFound(f"Match {match_id} not found")

        if winner is not None and not match.is_team_playing(winner):
            raise InvalidOutcome(
                f"{winner} is not playing in {match.team1} vs {match.team2}"
            )

        previous_winner = match.winner
        pool = storage.list_wagers_for_match(match_id)

        changes = _reverse_previous(storage, match_id, log)
        match = storage.set_match_result(match_id, winner, bool(is_abandoned))

        if winner is not None:
            changes += _apply_result(storage, match_id, pool, winner, log)

    invalidate_model_cache("matches")

    if winner is not None:
        outcome = f"winner {winner}"
    elif is_abandoned:
        outcome = "abandoned"
    else:
        outcome = "reset"
    changed = [delta for delta in summarize_deltas(changes).values() if delta != 0]
    log.info(
        f"Match settled: {outcome} (previous winner: {previous_winner}), "
        f"{len(pool)} wagers, {len(changed)} scores changed"
    )
    return match


def get_settlement_summary(match_id):
    """Recorded deltas of the current settlement of a match"""
    storage = get_storage()
    if storage.get_match(match_id) is None:
        raise MatchNotFound(f"Match {match_id} not found")

    entries = storage.list_settlement_entries(match_id)
    return {
        "match_id": match_id,
        "entries": [entry.to_dict() for entry in entries],
        "total_awarded": float(
            sum((e.delta for e in entries if e.delta > 0), Decimal("0"))
        ),
        "total_forfeited": float(
            -sum((e.delta for e in entries if e.delta < 0), Decimal("0"))
        ),
    }
