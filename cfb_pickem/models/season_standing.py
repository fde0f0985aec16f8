from datetime import datetime, timezone

from cfb_pickem import db


class SeasonStanding(db.Model):
    __tablename__ = "season_standings"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    season_year = db.Column(db.Integer, nullable=False)

    total_correct = db.Column(db.Integer, default=0, nullable=False)
    total_picks = db.Column(db.Integer, default=0, nullable=False)
    season_percentage = db.Column(db.Float, default=0.0, nullable=False)
    season_rank = db.Column(db.Integer)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "season_year", name="unique_user_season_standing"),
    )

    def __repr__(self):
        return f"<SeasonStanding user_id={self.user_id} {self.season_year} rank={self.season_rank}>"

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "season_year": self.season_year,
            "total_correct": self.total_correct,
            "total_picks": self.total_picks,
            "season_percentage": self.season_percentage,
            "season_rank": self.season_rank,
        }
