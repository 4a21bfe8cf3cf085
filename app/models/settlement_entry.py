from datetime import datetime, timezone

from app import db


class SettlementEntryMixin:
    def to_dict(self):
        return {
            "match_id": self.match_id,
            "wager_id": self.wager_id,
            "user_id": self.user_id,
            "delta": float(self.delta),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class SettlementEntry(SettlementEntryMixin, db.Model):
    """Exact point delta applied to one wager when its match was settled.

    Reversing a settlement replays these rows negated, so a reversal is always
    the exact inverse of what was applied.
    """

    __tablename__ = "settlement_entries"

    id = db.Column(db.Integer, primary_key=True)
    match_id = db.Column(db.Integer, db.ForeignKey("matches.id"), nullable=False)
    wager_id = db.Column(db.Integer, db.ForeignKey("wagers.id"), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    delta = db.Column(db.Numeric(12, 2), nullable=False)

    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        db.UniqueConstraint("match_id", "wager_id", name="unique_match_wager_entry"),
        db.Index("idx_settlement_match", "match_id"),
    )

    def __repr__(self):
        return f"<SettlementEntry match_id={self.match_id} wager_id={self.wager_id} delta={self.delta}>"
