"""
Leaderboard projection, recomputed from the score ledger and the wagers on
every call.
"""

from collections import defaultdict
from decimal import Decimal

from app.storage import get_storage
from app.utils.performance import timer


def _wager_stats(wagers, matches):
    stats = {"won": 0, "lost": 0, "void": 0, "pending": 0}
    for wager in wagers:
        stats[wager.outcome_for(matches.get(wager.match_id))] += 1
    return stats


@timer
def project_leaderboard():
    """Rank every user by total points.

    Ties on points are broken by user id (lower first). Abandoned matches
    count towards ``total_bets_count`` only.
    """
    storage = get_storage()

    users = storage.list_users()
    points = {score.user_id: Decimal(score.points) for score in storage.list_scores()}
    matches = {match.id: match for match in storage.list_matches()}

    wagers_by_user = defaultdict(list)
    for wager in storage.list_wagers():
        wagers_by_user[wager.user_id].append(wager)

    leaderboard = []
    for user in users:
        stats = _wager_stats(wagers_by_user[user.id], matches)
        settled = stats["won"] + stats["lost"]
        leaderboard.append(
            {
                "user_id": user.id,
                "username": user.username,
                "full_name": user.full_name,
                "total_points": points.get(user.id, Decimal("0")),
                "winning_bets_count": stats["won"],
                "losing_bets_count": stats["lost"],
                "pending_bets_count": stats["pending"],
                "total_bets_count": len(wagers_by_user[user.id]),
                "win_rate": round(stats["won"] / settled * 100, 1) if settled else 0,
            }
        )

    # Sort by points (descending), then by user id
    leaderboard.sort(key=lambda x: (-x["total_points"], x["user_id"]))

    for position, entry in enumerate(leaderboard, start=1):
        entry["rank"] = position
        entry["total_points"] = float(entry["total_points"])

    return leaderboard
