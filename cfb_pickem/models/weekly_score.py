from datetime import datetime, timezone

from cfb_pickem import db


class WeeklyScore(db.Model):
    __tablename__ = "weekly_scores"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    week_id = db.Column(db.Integer, db.ForeignKey("weeks.id"), nullable=False)

    correct_picks = db.Column(db.Integer, default=0, nullable=False)
    total_picks = db.Column(db.Integer, default=0, nullable=False)
    percentage = db.Column(db.Float, default=0.0, nullable=False)
    weekly_rank = db.Column(db.Integer)

    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        db.UniqueConstraint("user_id", "week_id", name="unique_user_week_score"),
    )

    def __repr__(self):
        return f"<WeeklyScore user_id={self.user_id} week_id={self.week_id} {self.correct_picks}/{self.total_picks}>"

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "week_id": self.week_id,
            "correct_picks": self.correct_picks,
            "total_picks": self.total_picks,
            "percentage": self.percentage,
            "weekly_rank": self.weekly_rank,
        }
