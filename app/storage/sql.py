import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from app import db
from app.errors import StorageUnavailable
from app.models import Match, Score, SettlementEntry, User, Wager
from app.storage.base import Storage

logger = logging.getLogger(__name__)


class SQLStorage(Storage):
    """Storage backed by the Flask-SQLAlchemy session of the current app context"""

    name = "sql"

    @contextmanager
    def transaction(self, *lock_keys):
        with self.locks.hold(*lock_keys):
            try:
                yield self
                db.session.commit()
            except OperationalError as e:
                db.session.rollback()
                logger.error(f"Database unavailable, transaction rolled back: {e}")
                raise StorageUnavailable(
                    "Database is unavailable, please try again later"
                ) from e
            except Exception:
                db.session.rollback()
                raise

    # Users

    def get_user(self, user_id):
        return db.session.get(User, user_id)

    def get_user_by_username(self, username):
        return User.query.filter_by(username=username).first()

    def create_user(self, username, password_hash, full_name, role="user"):
        user = User(
            username=username,
            password_hash=password_hash,
            full_name=full_name,
            role=role,
            is_active=True,
        )
        db.session.add(user)
        db.session.flush()
        # Every account gets its ledger row up front so settlements only UPDATE
        db.session.add(Score(user_id=user.id, points=Decimal("0")))
        db.session.flush()
        return user

    def list_users(self):
        return User.query.order_by(User.id).all()

    def deactivate_user(self, user_id):
        user = db.session.get(User, user_id)
        if not user:
            return False
        user.is_active = False
        db.session.flush()
        return True

    def record_login(self, user_id):
        user = db.session.get(User, user_id)
        if user:
            user.last_login = datetime.now(timezone.utc)
            db.session.flush()

    # Matches

    def create_match(self, team1, team2, venue, match_date):
        match = Match(
            team1=team1,
            team2=team2,
            venue=venue,
            match_date=match_date,
            winner=None,
            is_abandoned=False,
        )
        db.session.add(match)
        db.session.flush()
        return match

    def get_match(self, match_id, for_update=False):
        if for_update:
            # Row lock on PostgreSQL; SQLite ignores FOR UPDATE
            return db.session.get(
                Match, match_id, with_for_update=True, populate_existing=True
            )
        return db.session.get(Match, match_id)

    def list_matches(self):
        return Match.query.order_by(Match.match_date, Match.id).all()

    def list_upcoming_matches(self, now):
        # Stored datetimes are naive UTC
        if now.tzinfo is not None:
            now = now.astimezone(timezone.utc).replace(tzinfo=None)
        return (
            Match.query.filter(Match.match_date > now)
            .order_by(Match.match_date, Match.id)
            .all()
        )

    def set_match_result(self, match_id, winner, is_abandoned):
        match = db.session.get(Match, match_id)
        match.winner = winner
        match.is_abandoned = is_abandoned
        db.session.flush()
        return match

    # Wagers

    def insert_wager(self, user_id, match_id, selected_team, amount):
        wager = Wager(
            user_id=user_id,
            match_id=match_id,
            selected_team=selected_team,
            amount=amount,
        )
        db.session.add(wager)
        db.session.flush()
        return wager

    def update_wager(self, wager_id, selected_team, amount):
        wager = db.session.get(Wager, wager_id)
        wager.selected_team = selected_team
        wager.amount = amount
        wager.updated_at = datetime.now(timezone.utc)
        db.session.flush()
        return wager

    def get_wager(self, wager_id):
        return db.session.get(Wager, wager_id)

    def get_wager_by_user_and_match(self, user_id, match_id):
        return Wager.query.filter_by(user_id=user_id, match_id=match_id).first()

    def list_wagers_for_match(self, match_id):
        return Wager.query.filter_by(match_id=match_id).order_by(Wager.id).all()

    def list_wagers_for_user(self, user_id):
        return Wager.query.filter_by(user_id=user_id).order_by(Wager.id).all()

    def list_wagers(self):
        return Wager.query.order_by(Wager.id).all()

    # Score ledger

    def increment_score(self, user_id, delta):
        delta = Decimal(delta)
        updated = (
            db.session.query(Score)
            .filter(Score.user_id == user_id)
            .update({Score.points: Score.points + delta})
        )
        if not updated:
            # Accounts created before ledger rows were seeded
            db.session.add(Score(user_id=user_id, points=delta))
        db.session.flush()

    def get_score(self, user_id):
        points = (
            db.session.query(Score.points).filter(Score.user_id == user_id).scalar()
        )
        return Decimal(points) if points is not None else Decimal("0")

    def list_scores(self):
        return Score.query.order_by(Score.user_id).all()

    # Settlement entries

    def add_settlement_entry(self, match_id, wager_id, user_id, delta):
        entry = SettlementEntry(
            match_id=match_id, wager_id=wager_id, user_id=user_id, delta=delta
        )
        db.session.add(entry)
        db.session.flush()
        return entry

    def list_settlement_entries(self, match_id):
        return (
            SettlementEntry.query.filter_by(match_id=match_id)
            .order_by(SettlementEntry.id)
            .all()
        )

    def clear_settlement_entries(self, match_id):
        SettlementEntry.query.filter_by(match_id=match_id).delete()
        db.session.flush()

    # Maintenance

    def ping(self):
        try:
            db.session.execute(text("SELECT 1"))
        except OperationalError as e:
            raise StorageUnavailable("Database is unavailable") from e
