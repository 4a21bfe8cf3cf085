"""
Storage interface used by the wagering, settlement and leaderboard services.

Two implementations exist: ``SQLStorage`` (Flask-SQLAlchemy models) and
``MemoryStorage`` (process local dictionaries). Services only talk to the
methods declared here.
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager


def match_lock(match_id):
    """Lock key serializing every write that touches one match"""
    return ("match", int(match_id))


class KeyedLock:
    """Process wide registry of locks addressed by hashable keys"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = {}

    def _lock_for(self, key):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.RLock()
            return lock

    @contextmanager
    def hold(self, *keys):
        # Sorted acquisition keeps multi-key holders from deadlocking
        locks = [self._lock_for(key) for key in sorted(set(keys))]
        for lock in locks:
            lock.acquire()
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()


class Storage(ABC):
    name = "base"

    def __init__(self):
        self.locks = KeyedLock()

    # Unit of work

    @abstractmethod
    def transaction(self, *lock_keys):
        """Context manager: hold ``lock_keys`` and commit everything or nothing"""

    # Users

    @abstractmethod
    def get_user(self, user_id):
        pass

    @abstractmethod
    def get_user_by_username(self, username):
        pass

    @abstractmethod
    def create_user(self, username, password_hash, full_name, role="user"):
        pass

    @abstractmethod
    def list_users(self):
        pass

    @abstractmethod
    def deactivate_user(self, user_id):
        """Returns True when the user existed"""

    @abstractmethod
    def record_login(self, user_id):
        pass

    # Matches

    @abstractmethod
    def create_match(self, team1, team2, venue, match_date):
        pass

    @abstractmethod
    def get_match(self, match_id, for_update=False):
        pass

    @abstractmethod
    def list_matches(self):
        pass

    @abstractmethod
    def list_upcoming_matches(self, now):
        """Matches scheduled after ``now``, soonest first"""

    @abstractmethod
    def set_match_result(self, match_id, winner, is_abandoned):
        pass

    # Wagers

    @abstractmethod
    def insert_wager(self, user_id, match_id, selected_team, amount):
        pass

    @abstractmethod
    def update_wager(self, wager_id, selected_team, amount):
        pass

    @abstractmethod
    def get_wager(self, wager_id):
        pass

    @abstractmethod
    def get_wager_by_user_and_match(self, user_id, match_id):
        pass

    @abstractmethod
    def list_wagers_for_match(self, match_id):
        pass

    @abstractmethod
    def list_wagers_for_user(self, user_id):
        pass

    @abstractmethod
    def list_wagers(self):
        pass

    # Score ledger

    @abstractmethod
    def increment_score(self, user_id, delta):
        """Add ``delta`` to the user's running total, creating it at zero if absent"""

    @abstractmethod
    def get_score(self, user_id):
        """Current total as a Decimal, zero when the user has no ledger entry"""

    @abstractmethod
    def list_scores(self):
        pass

    # Settlement entries

    @abstractmethod
    def add_settlement_entry(self, match_id, wager_id, user_id, delta):
        pass

    @abstractmethod
    def list_settlement_entries(self, match_id):
        pass

    @abstractmethod
    def clear_settlement_entries(self, match_id):
        pass

    # Maintenance

    @abstractmethod
    def ping(self):
        """Raise StorageUnavailable when the backend cannot be reached"""
