"""
Scoring Engine for the IPL Wager application

This module handles the point arithmetic for a settled match. Applying the
deltas to the score ledger and reversing them again is the job of
app/services/settlement_service.py; ranking lives in
app/services/leaderboard_service.py.
"""

from decimal import ROUND_FLOOR, ROUND_HALF_EVEN, Decimal

POINTS_QUANTUM = Decimal("0.01")


def quantize_points(value):
    """Round a point value to the ledger precision"""
    return Decimal(value).quantize(POINTS_QUANTUM, rounding=ROUND_HALF_EVEN)


def calculate_settlement(wagers, winner):
    """
    Calculate the point delta for every wager in a match pool.

    Winners share the whole pool (their own stakes included) in proportion
    to their stake; losers forfeit exactly their stake. Shares are floored to
    the ledger precision and the leftover hundredths go to the largest
    remainders (lowest wager id first on ties), so winners always receive
    exactly the pool.

    Returns:
        dict mapping wager id to a Decimal delta. Empty when nobody picked
        the winner, in which case no points move at all.

    Args:
        wagers: every wager placed on the match
        winner: name of the winning team
    """
    winning = [w for w in wagers if w.selected_team == winner]
    if not winning:
        return {}

    total_pool = Decimal(sum(w.amount for w in wagers))
    winning_total = Decimal(sum(w.amount for w in winning))

    deltas = {}
    remainders = []
    for wager in winning:
        exact = Decimal(wager.amount) * total_pool / winning_total
        share = exact.quantize(POINTS_QUANTUM, rounding=ROUND_FLOOR)
        deltas[wager.id] = share
        remainders.append((exact - share, wager.id))

    leftover = int((total_pool - sum(deltas.values())) / POINTS_QUANTUM)
    remainders.sort(key=lambda item: (-item[0], item[1]))
    for _, wager_id in remainders[:leftover]:
        deltas[wager_id] += POINTS_QUANTUM

    for wager in wagers:
        if wager.selected_team != winner:
            deltas[wager.id] = quantize_points(-wager.amount)
    return deltas


def summarize_deltas(deltas_by_user):
    """Collapse (user_id, delta) pairs into one net delta per user"""
    totals = {}
    for user_id, delta in deltas_by_user:
        totals[user_id] = totals.get(user_id, Decimal("0")) + delta
    return totals
