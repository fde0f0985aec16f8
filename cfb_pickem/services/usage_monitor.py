"""
Provider call accounting and the quota / error-rate circuit breaker
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from cfb_pickem.models import ApiUsageLog

logger = logging.getLogger(__name__)


class UsageMonitor:
    """
    Records every outbound provider call and decides when to stop calling

    Writes go through a dedicated session so a log entry never commits or
    rolls back the caller's unit of work.
    """

    def __init__(
        self,
        session_factory,
        clock=None,
        min_credits=50,
        max_error_rate=0.5,
        min_calls=10,
        window_hours=24,
        retention_days=30,
    ):
        self.session_factory = session_factory
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.min_credits = min_credits
        self.max_error_rate = max_error_rate
        self.min_calls = min_calls
        self.window = timedelta(hours=window_hours)
        self.retention = timedelta(days=retention_days)

    def log_call(self, service, endpoint, success, error=None, credits_remaining=None):
        """Fire-and-forget: failures to record are logged and swallowed"""
        session = self.session_factory()
        try:
            session.add(
                ApiUsageLog(
                    service=service,
                    endpoint=endpoint,
                    timestamp=self.clock(),
                    success=success,
                    error_message=error,
                    credits_remaining=credits_remaining,
                )
            )
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Failed to record {service} call to {endpoint}: {e}")
        finally:
            session.close()

    def get_usage_stats(self, service):
        """Call counts over the window plus the last quota the provider reported"""
        since = self.clock() - self.window
        session = self.session_factory()
        try:
            counts = dict(
                session.query(ApiUsageLog.success, func.count(ApiUsageLog.id))
                .filter(ApiUsageLog.service == service, ApiUsageLog.timestamp > since)
                .group_by(ApiUsageLog.success)
                .all()
            )
            last_credits = (
                session.query(ApiUsageLog.credits_remaining)
                .filter(
                    ApiUsageLog.service == service,
                    ApiUsageLog.credits_remaining.isnot(None),
                )
                .order_by(ApiUsageLog.timestamp.desc(), ApiUsageLog.id.desc())
                .first()
            )
        finally:
            session.close()

        successful = counts.get(True, 0)
        failed = counts.get(False, 0)
        total = successful + failed
        return {
            "service": service,
            "total_calls": total,
            "successful_calls": successful,
            "failed_calls": failed,
            "error_rate": failed / total if total else 0.0,
            "last_credits_remaining": last_credits[0] if last_credits else None,
        }

    def should_skip(self, service, ignore_error_rate=False):
        """
        True when a provider should not be called right now

        Low remaining credits always skip; a high recent failure rate skips
        unless ignore_error_rate is set for a manual refresh.
        """
        try:
            stats = self.get_usage_stats(service)
        except SQLAlchemyError as e:
            logger.error(f"Usage check failed for {service}, allowing call: {e}")
            return False

        credits = stats["last_credits_remaining"]
        if credits is not None and credits < self.min_credits:
            logger.warning(f"Low credits for {service}: {credits} remaining")
            return True

        if ignore_error_rate:
            return False

        if stats["total_calls"] > self.min_calls and stats["error_rate"] > self.max_error_rate:
            logger.warning(
                f"High error rate for {service}: {stats['error_rate'] * 100:.1f}% "
                f"of {stats['total_calls']} calls"
            )
            return True

        return False

    def cleanup(self):
        """Delete entries older than the retention period; returns the count removed"""
        cutoff = self.clock() - self.retention
        session = self.session_factory()
        try:
            removed = (
                session.query(ApiUsageLog)
                .filter(ApiUsageLog.timestamp < cutoff)
                .delete(synchronize_session=False)
            )
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

        if removed:
            logger.info(f"Cleaned up {removed} old API usage log entries")
        return removed
