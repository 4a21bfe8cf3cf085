import copy
import itertools
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from app.models import (
    AccountMixin,
    MatchMixin,
    ScoreMixin,
    SettlementEntryMixin,
    WagerMixin,
)
from app.storage.base import Storage

logger = logging.getLogger(__name__)

_MISSING = object()


def _now():
    return datetime.now(timezone.utc)


@dataclass(eq=False)
class UserRecord(AccountMixin):
    id: int
    username: str
    password_hash: str
    full_name: str
    role: str = "user"
    is_active: bool = True
    created_at: datetime = field(default_factory=_now)
    last_login: Optional[datetime] = None


@dataclass
class MatchRecord(MatchMixin):
    id: int
    team1: str
    team2: str
    venue: str
    match_date: datetime
    winner: Optional[str] = None
    is_abandoned: bool = False
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class WagerRecord(WagerMixin):
    id: int
    user_id: int
    match_id: int
    selected_team: str
    amount: int
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)


@dataclass
class ScoreRecord(ScoreMixin):
    user_id: int
    points: Decimal = Decimal("0")


@dataclass
class SettlementEntryRecord(SettlementEntryMixin):
    id: int
    match_id: int
    wager_id: int
    user_id: int
    delta: Decimal
    created_at: datetime = field(default_factory=_now)


class MemoryStorage(Storage):
    """Process local storage for development and tests.

    Every read and write runs under one re-entrant lock. Inside a transaction
    each write first records the previous version of the row it touches; if
    the block raises those rows are put back, so a failed settlement leaves
    nothing behind. Reads hand out copies.
    """

    name = "memory"

    def __init__(self):
        super().__init__()
        self._lock = threading.RLock()
        self._depth = 0
        self._undo = None
        self.users = {}
        self.matches = {}
        self.wagers = {}
        self.scores = {}
        self.entries = {}
        self._ids = {
            "users": itertools.count(1),
            "matches": itertools.count(1),
            "wagers": itertools.count(1),
            "entries": itertools.count(1),
        }

    @contextmanager
    def transaction(self, *lock_keys):
        with self.locks.hold(*lock_keys), self._lock:
            outermost = self._depth == 0
            if outermost:
                self._undo = {}
            self._depth += 1
            try:
                yield self
            except Exception:
                if outermost:
                    self._rollback()
                    logger.debug("Memory transaction rolled back")
                raise
            finally:
                self._depth -= 1
                if outermost:
                    self._undo = None

    def _remember(self, table, key):
        """Keep the pre-transaction version of a row, once per transaction"""
        if self._undo is None:
            return
        saved = self._undo.setdefault(table, {})
        if key not in saved:
            row = getattr(self, table).get(key, _MISSING)
            saved[key] = row if row is _MISSING else copy.copy(row)

    def _rollback(self):
        for table, saved in self._undo.items():
            rows = getattr(self, table)
            for key, row in saved.items():
                if row is _MISSING:
                    rows.pop(key, None)
                else:
                    rows[key] = row

    def _next_id(self, table):
        return next(self._ids[table])

    # Users

    def get_user(self, user_id):
        with self._lock:
            return copy.copy(self.users.get(user_id))

    def get_user_by_username(self, username):
        with self._lock:
            for user in self.users.values():
                if user.username == username:
                    return copy.copy(user)
            return None

    def create_user(self, username, password_hash, full_name, role="user"):
        with self._lock:
            user = UserRecord(
                id=self._next_id("users"),
                username=username,
                password_hash=password_hash,
                full_name=full_name,
                role=role,
            )
            self._remember("users", user.id)
            self._remember("scores", user.id)
            self.users[user.id] = user
            self.scores[user.id] = ScoreRecord(user_id=user.id)
            return copy.copy(user)

    def list_users(self):
        with self._lock:
            return [copy.copy(self.users[key]) for key in sorted(self.users)]

    def deactivate_user(self, user_id):
        with self._lock:
            self._remember("users", user_id)
            user = self.users.get(user_id)
            if not user:
                return False
            user.is_active = False
            return True

    def record_login(self, user_id):
        with self._lock:
            self._remember("users", user_id)
            user = self.users.get(user_id)
            if user:
                user.last_login = _now()

    # Matches

    def create_match(self, team1, team2, venue, match_date):
        with self._lock:
            match = MatchRecord(
                id=self._next_id("matches"),
                team1=team1,
                team2=team2,
                venue=venue,
                match_date=match_date,
            )
            self._remember("matches", match.id)
            self.matches[match.id] = match
            return copy.copy(match)

    def get_match(self, match_id, for_update=False):
        with self._lock:
            return copy.copy(self.matches.get(match_id))

    def list_matches(self):
        with self._lock:
            matches = sorted(self.matches.values(), key=lambda m: (m.match_date, m.id))
            return [copy.copy(m) for m in matches]

    def list_upcoming_matches(self, now):
        # Stored datetimes are naive UTC
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        return [m for m in self.list_matches() if m.match_date > now]

    def set_match_result(self, match_id, winner, is_abandoned):
        with self._lock:
            self._remember("matches", match_id)
            match = self.matches[match_id]
            match.winner = winner
            match.is_abandoned = is_abandoned
            match.updated_at = _now()
            return copy.copy(match)

    # Wagers

    def insert_wager(self, user_id, match_id, selected_team, amount):
        with self._lock:
            for wager in self.wagers.values():
                if wager.user_id == user_id and wager.match_id == match_id:
                    raise ValueError(
                        f"Wager already exists for user {user_id} on match {match_id}"
                    )
            wager = WagerRecord(
                id=self._next_id("wagers"),
                user_id=user_id,
                match_id=match_id,
                selected_team=selected_team,
                amount=amount,
            )
            self._remember("wagers", wager.id)
            self.wagers[wager.id] = wager
            return copy.copy(wager)

    def update_wager(self, wager_id, selected_team, amount):
        with self._lock:
            self._remember("wagers", wager_id)
            wager = self.wagers[wager_id]
            wager.selected_team = selected_team
            wager.amount = amount
            wager.updated_at = _now()
            return copy.copy(wager)

    def get_wager(self, wager_id):
        with self._lock:
            return copy.copy(self.wagers.get(wager_id))

    def get_wager_by_user_and_match(self, user_id, match_id):
        with self._lock:
            for wager in self.wagers.values():
                if wager.user_id == user_id and wager.match_id == match_id:
                    return copy.copy(wager)
            return None

    def _select_wagers(self, predicate):
        with self._lock:
            return [
                copy.copy(self.wagers[key])
                for key in sorted(self.wagers)
                if predicate(self.wagers[key])
            ]

    def list_wagers_for_match(self, match_id):
        return self._select_wagers(lambda w: w.match_id == match_id)

    def list_wagers_for_user(self, user_id):
        return self._select_wagers(lambda w: w.user_id == user_id)

    def list_wagers(self):
        return self._select_wagers(lambda w: True)

    # Score ledger

    def increment_score(self, user_id, delta):
        with self._lock:
            self._remember("scores", user_id)
            score = self.scores.get(user_id)
            if score is None:
                score = self.scores[user_id] = ScoreRecord(user_id=user_id)
            score.points += Decimal(delta)

    def get_score(self, user_id):
        with self._lock:
            score = self.scores.get(user_id)
            return score.points if score else Decimal("0")

    def list_scores(self):
        with self._lock:
            return [copy.copy(self.scores[key]) for key in sorted(self.scores)]

    # Settlement entries

    def add_settlement_entry(self, match_id, wager_id, user_id, delta):
        with self._lock:
            entry = SettlementEntryRecord(
                id=self._next_id("entries"),
                match_id=match_id,
                wager_id=wager_id,
                user_id=user_id,
                delta=Decimal(delta),
            )
            self._remember("entries", entry.id)
            self.entries[entry.id] = entry
            return copy.copy(entry)

    def list_settlement_entries(self, match_id):
        with self._lock:
            return [
                copy.copy(self.entries[key])
                for key in sorted(self.entries)
                if self.entries[key].match_id == match_id
            ]

    def clear_settlement_entries(self, match_id):
        with self._lock:
            stale = [k for k, e in self.entries.items() if e.match_id == match_id]
            for key in stale:
                self._remember("entries", key)
                del self.entries[key]

    # Maintenance

    def ping(self):
        return True
