from datetime import datetime, timezone

from cfb_pickem import db
from cfb_pickem.utils.timezone_utils import ensure_utc


class Week(db.Model):
    __tablename__ = "weeks"

    id = db.Column(db.Integer, primary_key=True)
    week_number = db.Column(db.Integer, nullable=False)
    season_year = db.Column(db.Integer, nullable=False)

    # Picks close at the deadline; spreads lock once the first game kicks off
    deadline = db.Column(db.DateTime(timezone=True), nullable=False)
    is_active = db.Column(db.Boolean, default=False, nullable=False)
    spreads_locked = db.Column(db.Boolean, default=False, nullable=False)
    status = db.Column(db.String(20), default="upcoming", nullable=False)

    # Timestamps
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    games = db.relationship(
        "Game",
        backref="week",
        lazy="dynamic",
        cascade="all, delete-orphan",
        order_by="Game.start_time",
    )
    weekly_scores = db.relationship(
        "WeeklyScore", backref="week", lazy="dynamic", cascade="all, delete-orphan"
    )

    __table_args__ = (
        db.UniqueConstraint("week_number", "season_year", name="unique_week_season"),
        db.CheckConstraint(
            "status IN ('upcoming', 'active', 'completed')", name="valid_week_status"
        ),
        db.Index("idx_week_active", "is_active"),
    )

    def __repr__(self):
        return f"<Week {self.week_number} ({self.season_year}) {self.status}>"

    @property
    def deadline_utc(self):
        return ensure_utc(self.deadline)

    def to_dict(self):
        return {
            "id": self.id,
            "week_number": self.week_number,
            "season_year": self.season_year,
            "deadline": self.deadline_utc.isoformat() if self.deadline else None,
            "is_active": self.is_active,
            "spreads_locked": self.spreads_locked,
            "status": self.status,
        }
