"""
CFB Pick'em Background Scheduler Service

This module runs the weekly pick'em lifecycle with APScheduler: activating the
week, loading its games, polling scores on game days, locking spreads at
kickoff and nightly maintenance.
"""

import atexit
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from cfb_pickem import db
from cfb_pickem.models import Game
from cfb_pickem.services.context import get_context
from cfb_pickem.utils.logging_config import job_context

logger = logging.getLogger(__name__)

STARTUP_DELAY_SECONDS = 3


@dataclass(frozen=True)
class ScheduledTask:
    id: str
    name: str
    trigger: object
    handler: str
    misfire_grace_time: int = 300


def default_tasks(tz="UTC", now=None):
    """The standing job table; cron fields are read in the tz timezone"""
    now = now or datetime.now(timezone.utc)
    return [
        ScheduledTask(
            "update_active_week",
            "Update Active Week",
            CronTrigger(day_of_week="mon", hour=6, minute=0, timezone=tz),
            "_update_active_week",
            3600,
        ),
        ScheduledTask(
            "fetch_weekly_games",
            "Fetch Weekly Games",
            CronTrigger(day_of_week="tue", hour=10, minute=0, timezone=tz),
            "_fetch_weekly_games",
            3600,
        ),
        ScheduledTask(
            "update_scores_weekend",
            "Update Scores (Fri/Sun)",
            CronTrigger(day_of_week="fri,sun", minute="*/30", timezone=tz),
            "_update_scores",
            300,
        ),
        ScheduledTask(
            "update_scores_saturday",
            "Update Scores (Saturday)",
            CronTrigger(day_of_week="sat", minute="*/15", timezone=tz),
            "_update_scores",
            300,
        ),
        ScheduledTask(
            "auto_lock_spreads",
            "Auto Lock Spreads",
            CronTrigger(minute=0, timezone=tz),
            "_auto_lock_spreads",
            600,
        ),
        ScheduledTask(
            "daily_maintenance",
            "Daily Maintenance",
            CronTrigger(hour=2, minute=0, timezone=tz),
            "_daily_maintenance",
            3600,
        ),
        ScheduledTask(
            "ensure_active_week",
            "Ensure Active Week",
            IntervalTrigger(hours=6, timezone=tz),
            "_update_active_week",
            3600,
        ),
        ScheduledTask(
            "startup_bootstrap",
            "Startup Bootstrap",
            DateTrigger(
                run_date=now + timedelta(seconds=STARTUP_DELAY_SECONDS), timezone=tz
            ),
            "_startup_bootstrap",
            600,
        ),
    ]


class SchedulerService:
    """Manages background scheduling of the pick'em lifecycle"""

    def __init__(self, app=None):
        self.scheduler = None
        self.app = app
        self.is_running = False
        self.timezone = "UTC"
        self.tasks = {}
        self.sync_stats = {
            "last_run": None,
            "total_runs": 0,
            "successful_runs": 0,
            "failed_runs": 0,
            "last_error": None,
            "jobs": {},
        }

        if app:
            self.init_app(app)

    def init_app(self, app):
        """Initialize scheduler with Flask app"""
        self.app = app
        self.timezone = app.config.get("SCHEDULER_TIMEZONE") or "UTC"
        self.scheduler = BackgroundScheduler(daemon=True, timezone=self.timezone)

        # Register shutdown
        atexit.register(self.shutdown)

    @property
    def engine(self):
        return get_context(self.app).engine

    def start(self):
        """Start the background scheduler"""
        if self.is_running:
            return

        try:
            # Clear any existing jobs
            self.scheduler.remove_all_jobs()

            # Add scheduled jobs
            self._add_core_jobs()

            # Start scheduler
            self.scheduler.start()
            self.is_running = True

            logger.info("Scheduler started successfully")

        except Exception as e:
            logger.error(f"Failed to start scheduler: {e}")
            raise

    def stop(self):
        """Stop the background scheduler"""
        if not self.is_running:
            return

        try:
            self.scheduler.shutdown(wait=False)
            self.is_running = False
            logger.info("Scheduler stopped")

        except Exception as e:
            logger.error(f"Error stopping scheduler: {e}")

    def shutdown(self):
        """Graceful shutdown"""
        self.stop()

    def _add_core_jobs(self, tasks=None):
        """Add core scheduled jobs"""
        for task in tasks or default_tasks(self.timezone):
            self.tasks[task.id] = task
            self.scheduler.add_job(
                func=self._run_job,
                args=[task.id],
                trigger=task.trigger,
                id=task.id,
                name=task.name,
                max_instances=1,
                coalesce=True,
                misfire_grace_time=task.misfire_grace_time,
            )

        logger.info(f"Core scheduled jobs added: {', '.join(self.tasks)}")

    def _run_job(self, task_id):
        """Run one task inside an app context; never raises"""
        task = self.tasks[task_id]
        handler = getattr(self, task.handler)

        with self.app.app_context(), job_context(task.id):
            try:
                result = handler()
                self._update_stats(task_id, True)
                logger.info(f"{task.name} completed: {result}")
                return True

            except Exception as e:
                db.session.rollback()
                self._update_stats(task_id, False, str(e))
                logger.error(f"Error in {task.name}: {e}", exc_info=True)
                return False

    def _update_active_week(self):
        week = self.engine.ensure_current_week()
        return f"week {week.week_number} ({week.season_year}) active"

    def _fetch_weekly_games(self):
        stored = self.engine.fetch_weekly_games()
        return f"{stored} games stored"

    def _update_scores(self):
        updated = self.engine.update_game_scores()
        return f"{updated} games finalized"

    def _auto_lock_spreads(self):
        locked = self.engine.auto_lock_spreads()
        return f"locked weeks {locked}" if locked else "nothing to lock"

    def _daily_maintenance(self):
        """Re-check the active week, catch up on scores and prune usage logs"""
        week = self.engine.ensure_current_week()
        updated = self.engine.update_game_scores()
        removed = get_context(self.app).usage_monitor.cleanup()
        self._cleanup_old_stats()
        return (
            f"week {week.week_number} active, {updated} games finalized, "
            f"{removed} usage entries pruned"
        )

    def _startup_bootstrap(self):
        """Make sure there is an active week and, on an empty store, a slate of games"""
        week = self.engine.ensure_current_week()
        if db.session.query(Game.id).first() is not None:
            return f"week {week.week_number} active, games already loaded"

        logger.info("No games stored yet, running initial fetch")
        stored = self.engine.fetch_weekly_games()
        return f"week {week.week_number} active, {stored} games stored"

    def _update_stats(self, task_id, success, error=None):
        """Update run statistics"""
        now = datetime.now(timezone.utc)
        self.sync_stats["last_run"] = now
        self.sync_stats["total_runs"] += 1

        job_stats = self.sync_stats["jobs"].setdefault(
            task_id, {"runs": 0, "failures": 0, "last_run": None, "last_error": None}
        )
        job_stats["runs"] += 1
        job_stats["last_run"] = now

        if success:
            self.sync_stats["successful_runs"] += 1
            self.sync_stats["last_error"] = None
            job_stats["last_error"] = None
        else:
            self.sync_stats["failed_runs"] += 1
            self.sync_stats["last_error"] = error
            job_stats["failures"] += 1
            job_stats["last_error"] = error

    def _cleanup_old_stats(self):
        """Reset run counters periodically"""
        if self.sync_stats["total_runs"] > 10000:
            self.sync_stats.update(
                {"total_runs": 0, "successful_runs": 0, "failed_runs": 0, "jobs": {}}
            )

    def get_status(self):
        """Get scheduler status information"""
        jobs = []
        if self.scheduler:
            for job in self.scheduler.get_jobs():
                next_run = getattr(job, "next_run_time", None)
                jobs.append(
                    {
                        "id": job.id,
                        "name": job.name,
                        "next_run": next_run.isoformat() if next_run else None,
                        "trigger": str(job.trigger),
                    }
                )

        return {"is_running": self.is_running, "jobs": jobs, "stats": self.sync_stats}

    def force_sync(self, task_id):
        """Manually trigger a task"""
        if not self.tasks:
            for task in default_tasks(self.timezone):
                self.tasks[task.id] = task

        if task_id not in self.tasks:
            return False, f"Unknown task: {task_id}"

        if self._run_job(task_id):
            return True, f"Manual {task_id} run completed"
        return False, f"Manual {task_id} run failed: {self.sync_stats['last_error']}"

