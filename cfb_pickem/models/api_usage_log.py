from datetime import datetime, timezone

from cfb_pickem import db


class ApiUsageLog(db.Model):
    """Append-only record of every outbound provider call"""

    __tablename__ = "api_usage_log"

    id = db.Column(db.Integer, primary_key=True)
    service = db.Column(db.String(20), nullable=False)
    endpoint = db.Column(db.String(255), nullable=False)
    timestamp = db.Column(
        db.DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    success = db.Column(db.Boolean, nullable=False)
    error_message = db.Column(db.Text)
    credits_remaining = db.Column(db.Integer)

    __table_args__ = (
        db.Index("idx_usage_service_timestamp", "service", "timestamp"),
    )

    def __repr__(self):
        return f"<ApiUsageLog {self.service} {self.endpoint} ok={self.success}>"
