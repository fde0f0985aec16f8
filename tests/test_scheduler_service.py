from datetime import datetime, timedelta, timezone

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from conftest import StubFetcher, make_game
from cfb_pickem.exceptions import StoreFailure
from cfb_pickem.models import ApiUsageLog, Game, Week
from cfb_pickem.services.scheduler_service import SchedulerService, default_tasks


@pytest.fixture
def fetcher(context):
    stub = StubFetcher(games={3: [make_game("Colorado", "Nebraska"), make_game("Oregon", "USC")]})
    context.engine.fetcher = stub
    return stub


@pytest.fixture
def service(app, context, fetcher):
    return SchedulerService(app)


def test_default_task_table():
    now = datetime(2025, 9, 10, 12, 0, tzinfo=timezone.utc)
    tasks = {task.id: task for task in default_tasks("America/Denver", now=now)}

    assert list(tasks) == [
        "update_active_week",
        "fetch_weekly_games",
        "update_scores_weekend",
        "update_scores_saturday",
        "auto_lock_spreads",
        "daily_maintenance",
        "ensure_active_week",
        "startup_bootstrap",
    ]
    assert isinstance(tasks["update_scores_saturday"].trigger, CronTrigger)
    assert "*/15" in str(tasks["update_scores_saturday"].trigger)
    assert str(tasks["auto_lock_spreads"].trigger) == "cron[minute='0']"
    assert str(tasks["daily_maintenance"].trigger.timezone) == "America/Denver"
    assert isinstance(tasks["ensure_active_week"].trigger, IntervalTrigger)
    assert tasks["ensure_active_week"].handler == tasks["update_active_week"].handler

    bootstrap = tasks["startup_bootstrap"].trigger
    assert isinstance(bootstrap, DateTrigger)
    assert bootstrap.run_date == now + timedelta(seconds=3)


def test_jobs_are_registered_without_starting(service):
    service._add_core_jobs()
    status = service.get_status()

    assert status["is_running"] is False
    assert len(status["jobs"]) == 8
    assert {job["id"] for job in status["jobs"]} == set(service.tasks)


def test_force_sync_activates_week(service):
    success, message = service.force_sync("update_active_week")

    assert success is True
    assert "update_active_week" in message
    assert Week.query.filter_by(is_active=True).one().week_number == 3
    assert service.sync_stats["successful_runs"] == 1
    assert service.sync_stats["jobs"]["update_active_week"]["runs"] == 1


def test_force_sync_unknown_task(service):
    success, message = service.force_sync("make_coffee")

    assert success is False
    assert "Unknown task" in message
    assert service.sync_stats["total_runs"] == 0


def test_failed_job_is_recorded_not_raised(service, context, monkeypatch):
    def boom():
        raise StoreFailure("database is locked")

    monkeypatch.setattr(context.engine, "ensure_current_week", boom)

    success, message = service.force_sync("update_active_week")

    assert success is False
    assert "database is locked" in message
    assert service.sync_stats["failed_runs"] == 1
    assert service.sync_stats["jobs"]["update_active_week"]["failures"] == 1


def test_startup_bootstrap_loads_games_once(service, fetcher):
    assert service.force_sync("startup_bootstrap")[0] is True
    assert Game.query.count() == 2

    assert service.force_sync("startup_bootstrap")[0] is True
    assert [call for call in fetcher.calls if call[0] == "games"] == [("games", 3, False)]


def test_score_job_settles_games(service, fetcher):
    service.force_sync("fetch_weekly_games")
    fetcher.scores[3] = [
        make_game("Colorado", "Nebraska", completed=True, home_score=31, away_score=10),
    ]

    success, _ = service.force_sync("update_scores_saturday")

    assert success is True
    colorado = Game.query.filter_by(home_team="Colorado").one()
    assert colorado.status == "completed"
    assert (colorado.home_score, colorado.away_score) == (31, 10)


def test_daily_maintenance_prunes_usage_log(service, context, clock):
    now = clock.now
    clock.now = now - timedelta(days=40)
    context.usage_monitor.log_call("cfbd", "/games", True)
    clock.now = now

    success, _ = service.force_sync("daily_maintenance")

    assert success is True
    assert ApiUsageLog.query.count() == 0

