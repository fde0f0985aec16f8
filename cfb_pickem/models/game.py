from datetime import datetime, timezone

from cfb_pickem import db
from cfb_pickem.utils.timezone_utils import ensure_utc


class Game(db.Model):
    __tablename__ = "games"

    id = db.Column(db.Integer, primary_key=True)

    # Game identification
    week_id = db.Column(db.Integer, db.ForeignKey("weeks.id"), nullable=False)
    external_id = db.Column(db.String(50), index=True)
    source = db.Column(db.String(20))

    # Teams (provider spelling)
    home_team = db.Column(db.String(100), nullable=False)
    away_team = db.Column(db.String(100), nullable=False)

    # Line
    spread = db.Column(db.Float)  # Always >= 0, points given by the favorite
    favorite_team = db.Column(db.String(100))

    # Game timing
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)

    # Results
    status = db.Column(db.String(20), default="scheduled", nullable=False)
    home_score = db.Column(db.Integer)
    away_score = db.Column(db.Integer)
    spread_winner = db.Column(db.String(100))

    is_favorite_team_game = db.Column(db.Boolean, default=False, nullable=False)

    # Timestamps
    created_at = db.Column(
        db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    # Relationships
    picks = db.relationship(
        "Pick", backref="game", lazy="dynamic", cascade="all, delete-orphan"
    )

    # Indexes
    __table_args__ = (
        db.Index("idx_game_week", "week_id"),
        db.Index("idx_game_start_time", "start_time"),
        db.CheckConstraint(
            "status IN ('scheduled', 'live', 'completed')", name="valid_game_status"
        ),
    )

    def __repr__(self):
        return f"<Game {self.away_team} @ {self.home_team} ({self.status})>"

    @property
    def is_completed(self):
        return self.status == "completed"

    @property
    def start_time_utc(self):
        return ensure_utc(self.start_time)

    def to_dict(self):
        return {
            "id": self.id,
            "week_id": self.week_id,
            "external_id": self.external_id,
            "home_team": self.home_team,
            "away_team": self.away_team,
            "spread": self.spread,
            "favorite_team": self.favorite_team,
            "start_time": self.start_time_utc.isoformat() if self.start_time else None,
            "status": self.status,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "spread_winner": self.spread_winner,
            "is_favorite_team_game": self.is_favorite_team_game,
            "source": self.source,
        }
