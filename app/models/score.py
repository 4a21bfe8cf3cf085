from datetime import datetime, timezone
from decimal import Decimal

from app import db


class ScoreMixin:
    def to_dict(self):
        return {
            "user_id": self.user_id,
            "points": float(self.points or 0),
        }


class Score(ScoreMixin, db.Model):
    """Running point total for one user, only ever changed by relative increments"""

    __tablename__ = "scores"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(
        db.Integer, db.ForeignKey("users.id"), nullable=False, unique=True
    )
    points = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    updated_at = db.Column(
        db.DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return f"<Score user_id={self.user_id} points={self.points}>"
