from datetime import datetime, timezone

from app import db


class MatchMixin:
    """Match behaviour shared by the SQL model and the in-memory record"""

    @property
    def teams(self):
        return (self.team1, self.team2)

    @property
    def is_resolved(self):
        """A match is resolved once a winner is declared or it is abandoned"""
        return self.winner is not None or bool(self.is_abandoned)

    @property
    def status(self):
        """Get match status as string"""
        if self.is_abandoned:
            return "abandoned"
        if self.winner is not None:
            return "completed"
        if self.has_started():
            return "in_progress"
        return "scheduled"

    def is_team_playing(self, team):
        return team in self.teams

    def has_started(self, now=None):
        """Check if match has started"""
        if not self.match_date:
            return False
        # Handle timezone comparison properly
        now_utc = now or datetime.now(timezone.utc)
        if now_utc.tzinfo is None:
            now_utc = now_utc.replace(tzinfo=timezone.utc)
        match_date = self.match_date

        # If match_date is timezone-naive, assume it's in UTC
        if match_date.tzinfo is None:
            match_date = match_date.replace(tzinfo=timezone.utc)

        return now_utc >= match_date

    def is_open(self, now=None):
        """Check if match still accepts wagers (unresolved and not started)"""
        return not self.is_resolved and not self.has_started(now)

    def to_dict(self):
        """Convert match to dictionary for API responses"""
        from app.utils.timezone_utils import format_match_time

        match_date = self.match_date
        if match_date is not None and match_date.tzinfo is None:
            match_date = match_date.replace(tzinfo=timezone.utc)

        return {
            "id": self.id,
            "team1": self.team1,
            "team2": self.team2,
            "venue": self.venue,
            "match_date": match_date.isoformat() if match_date else None,
            "local_time": format_match_time(self.match_date),
            "winner": self.winner,
            "is_abandoned": bool(self.is_abandoned),
            "is_resolved": self.is_resolved,
            "is_open": self.is_open(),
            "status": self.status,
        }


class Match(MatchMixin, db.Model):
    __tablename__ = "matches"

    id = db.Column(db.Integer, primary_key=True)

    # Teams
    team1 = db.Column(db.String(100), nullable=False)
    team2 = db.Column(db.String(100), nullable=False)
    venue = db.Column(db.String(200), nullable=False)

    # Match timing (stored in UTC)
    match_date = db.Column(db.DateTime, nullable=False)

    # Result
    winner = db.Column(db.String(100), nullable=True)
    is_abandoned = db.Column(db.Boolean, default=False, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    wagers = db.relationship("Wager", backref="match", lazy="dynamic")

    # Indexes
    __table_args__ = (
        db.Index("idx_match_date", "match_date"),
        db.CheckConstraint("team1 != team2", name="different_teams"),
        db.CheckConstraint(
            "winner IS NULL OR winner = team1 OR winner = team2", name="valid_winner"
        ),
    )

    def __repr__(self):
        return f"<Match {self.team1} vs {self.team2} @ {self.venue}>"
