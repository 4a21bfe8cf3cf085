from app import db  # noqa: F401 - imported for model imports

from .match import Match, MatchMixin
from .score import Score, ScoreMixin
from .settlement_entry import SettlementEntry, SettlementEntryMixin
from .user import ROLE_ADMIN, ROLE_USER, ROLES, AccountMixin, User
from .wager import Wager, WagerMixin

__all__ = [
    "User",
    "Match",
    "Wager",
    "Score",
    "SettlementEntry",
    "AccountMixin",
    "MatchMixin",
    "WagerMixin",
    "ScoreMixin",
    "SettlementEntryMixin",
    "ROLE_ADMIN",
    "ROLE_USER",
    "ROLES",
]
