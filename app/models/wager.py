from datetime import datetime, timezone

from app import db


class WagerMixin:
    def outcome_for(self, match):
        """Classify this wager against its match: won, lost, void or pending"""
        if match is None or (match.winner is None and not match.is_abandoned):
            return "pending"
        if match.is_abandoned:
            return "void"
        return "won" if self.selected_team == match.winner else "lost"

    def to_dict(self):
        """Convert wager to dictionary for API responses"""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "match_id": self.match_id,
            "selected_team": self.selected_team,
            "amount": self.amount,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Wager(WagerMixin, db.Model):
    __tablename__ = "wagers"

    id = db.Column(db.Integer, primary_key=True)

    # Wager identification
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False)

    # Wager details
    selected_team = db.Column(db.String(100), nullable=False)
    amount = db.Column(db.Integer, nullable=False)

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Constraints and indexes
    __table_args__ = (
        db.UniqueConstraint("user_id", "match_id", name="unique_user_match_wager"),
        db.CheckConstraint("amount > 0", name="positive_amount"),
        db.Index("idx_wager_match", "match_id"),
        db.Index("idx_wager_user", "user_id"),
    )

    def __repr__(self):
        return f"<Wager user_id={self.user_id} match_id={self.match_id} team={self.selected_team} amount={self.amount}>"
