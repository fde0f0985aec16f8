#!/usr/bin/env python3
"""
CFB Pick'em Management CLI

This script provides command-line management functionality for the CFB Pick'em application.
"""

import json
import logging

import click
from flask.cli import FlaskGroup, with_appcontext
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cfb_pickem import create_app, db
from cfb_pickem.exceptions import StoreFailure
from cfb_pickem.models import SeasonStanding, User, Week, WeeklyScore
from cfb_pickem.services.context import get_context
from cfb_pickem.services.scheduler_service import SchedulerService, default_tasks
from cfb_pickem.utils.timezone_utils import convert_to_app_timezone


def _create_cli_app():
    return create_app(start_scheduler=False)


@click.group(cls=FlaskGroup, create_app=_create_cli_app, add_default_commands=False)
def cli():
    """CFB Pick'em Management CLI"""
    pass


# Week Management Commands
@cli.group()
def week():
    """Week management commands"""
    pass


@week.command()
@with_appcontext
def current():
    """Show the calendar week and the active week"""
    engine = get_context().engine
    season_year, week_number = engine.current_season_week()
    click.echo(f"📅 Calendar week: {week_number} ({season_year})")

    summary = engine.get_week_summary()
    if not summary:
        click.echo("❌ No active week")
        return

    info = summary["week"]
    deadline = convert_to_app_timezone(db.session.get(Week, info["id"]).deadline)
    click.echo(
        f"🏈 Active week {info['week_number']} ({info['season_year']}): {info['status']}, "
        f"spreads {'locked' if info['spreads_locked'] else 'open'}, "
        f"deadline {deadline.strftime('%a %b %d %I:%M %p %Z')}"
    )
    click.echo(
        f"   {summary['games']} games, {summary['games_with_spreads']} with spreads, "
        f"{summary['completed_games']} completed"
    )


@week.command(name="games")
@with_appcontext
def list_games():
    """List the active week's games"""
    active = Week.query.filter_by(is_active=True).first()
    if active is None:
        click.echo("❌ No active week")
        return

    for game in active.games:
        info = game.to_dict()
        line = f"{info['away_team']} @ {info['home_team']}"
        if info["spread"] is not None:
            line += f" ({info['favorite_team']} -{info['spread']})"
        if info["status"] == "completed":
            line += f" final {info['away_score']}-{info['home_score']}, covered: {info['spread_winner']}"
        click.echo(f"{'⭐' if info['is_favorite_team_game'] else '  '} {line}")


@week.command()
@with_appcontext
def ensure():
    """Create and activate the current week"""
    try:
        week_obj = get_context().engine.ensure_current_week()
        click.echo(f"✅ Week {week_obj.week_number} ({week_obj.season_year}) is active")
    except StoreFailure as e:
        click.echo(f"❌ {e}")
        logging.error(f"Week activation failed: {e}")


@week.command()
@with_appcontext
def lock():
    """Lock spreads for weeks whose first game has started"""
    try:
        locked = get_context().engine.auto_lock_spreads()
        if locked:
            click.echo(f"🔒 Locked spreads for weeks {locked}")
        else:
            click.echo("Nothing to lock")
    except StoreFailure as e:
        click.echo(f"❌ {e}")


# Data Sync Commands
@cli.group()
def sync():
    """Data synchronization commands"""
    pass


@sync.command()
@click.option("--force", is_flag=True, help="Replace games even if the week is full")
@click.option(
    "--source",
    type=click.Choice(["api", "scrape"]),
    default="api",
    help="Use the API fallback chain or go straight to scraping",
)
@with_appcontext
def games(force, source):
    """Fetch games for the current week"""
    try:
        click.echo("Fetching games for the current week...")
        stored = get_context().engine.fetch_weekly_games(
            force_refresh=force or source == "scrape", preferred_source=source
        )
        click.echo(f"✅ Stored {stored} games")
    except StoreFailure as e:
        click.echo(f"❌ Error storing games: {e}")


@sync.command()
@with_appcontext
def season():
    """Load games for every week of the season"""
    click.echo("Loading the full season...")
    results = get_context().engine.fetch_all_season_games()
    for week_number, stored in results.items():
        if stored is None:
            click.echo(f"  Week {week_number}: ❌ failed")
        else:
            click.echo(f"  Week {week_number}: {stored} games stored")
    click.echo("✅ Season load finished")


@sync.command()
@with_appcontext
def scores():
    """Update final scores and grade picks"""
    try:
        click.echo("Updating scores...")
        updated = get_context().engine.update_game_scores()
        click.echo(f"✅ {updated} games finalized")
    except StoreFailure as e:
        click.echo(f"❌ Error updating scores: {e}")


@sync.command()
@with_appcontext
def results():
    """Grade pending picks and refresh standings"""
    try:
        graded = get_context().engine.calculate_pick_results()
        click.echo(f"✅ Graded {graded} picks")
    except StoreFailure as e:
        click.echo(f"❌ Error calculating results: {e}")


# Provider Usage Commands
@cli.group()
def usage():
    """Provider usage commands"""
    pass


@usage.command()
@with_appcontext
def status():
    """Show call counts and remaining credits per provider"""
    monitor = get_context().usage_monitor
    for service in ("cfbd", "odds", "espn", "scrape"):
        stats = monitor.get_usage_stats(service)
        skip = monitor.should_skip(service)
        click.echo(
            f"{'⏸️ ' if skip else '✅'} {service}: {stats['total_calls']} calls in window, "
            f"{stats['failed_calls']} failed, credits {stats['last_credits_remaining']}"
        )


@usage.command()
@with_appcontext
def cleanup():
    """Delete old usage log entries"""
    try:
        removed = get_context().usage_monitor.cleanup()
        click.echo(f"✅ Removed {removed} old entries")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error cleaning usage log: {e}")


@cli.command()
@with_appcontext
def sources():
    """Check which data sources are usable right now"""
    click.echo(json.dumps(get_context().fetcher.get_data_source_status(), indent=2, default=str))


@cli.command(name="status")
@with_appcontext
def pool_status():
    """Active week, weekly scores and season standings as JSON"""
    summary = get_context().engine.get_week_summary()
    report = {"week": summary, "weekly_scores": [], "season_standings": []}

    if summary:
        week_id = summary["week"]["id"]
        report["weekly_scores"] = [
            score.to_dict()
            for score in WeeklyScore.query.filter_by(week_id=week_id).order_by(
                WeeklyScore.weekly_rank
            )
        ]
        season_year = summary["week"]["season_year"]
        report["season_standings"] = [
            dict(standing.to_dict(), user=standing.user.name)
            for standing in SeasonStanding.query.filter_by(season_year=season_year).order_by(
                SeasonStanding.season_rank
            )
        ]

    click.echo(json.dumps(report, indent=2, default=str))


# Scheduler Commands
@cli.group()
def jobs():
    """Scheduled job commands"""
    pass


@jobs.command(name="list")
def list_jobs():
    """List scheduled jobs"""
    for task in default_tasks():
        click.echo(f"{task.id:<24} {task.name:<28} {task.trigger}")


@jobs.command()
@click.argument("task_id")
@with_appcontext
def run(task_id):
    """Run a scheduled job once, now"""
    from flask import current_app

    service = SchedulerService(current_app._get_current_object())
    success, message = service.force_sync(task_id)
    click.echo(f"{'✅' if success else '❌'} {message}")


# User Management Commands
@cli.group()
def user():
    """User management commands"""
    pass


@user.command()
@click.argument("name")
@click.option("--email", help="Email address")
@click.option("--admin", is_flag=True, help="Grant admin rights")
@with_appcontext
def create(name, email, admin):
    """Create a pool member"""
    try:
        db.session.add(User(name=name, email=email, is_admin=admin))
        db.session.commit()
        click.echo(f"✅ Created user {name}")
    except IntegrityError:
        db.session.rollback()
        click.echo(f"❌ User {name} already exists!")


@user.command(name="list")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON")
@with_appcontext
def list_users(as_json):
    """List pool members"""
    members = User.query.order_by(User.name).all()
    if as_json:
        click.echo(json.dumps([member.to_dict() for member in members], indent=2))
        return

    for member in members:
        click.echo(f"{member.id:>4} {member.name}{' (admin)' if member.is_admin else ''}")


# Database Commands
@cli.group()
def db_cmd():
    """Database commands"""
    pass


@db_cmd.command(name="init")
@with_appcontext
def init_db():
    """Initialize database tables"""
    try:
        db.create_all()
        click.echo("✅ Database tables created successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error initializing database: {str(e)}")


@db_cmd.command()
@with_appcontext
def reset():
    """⚠️  DANGER: Drop and recreate all tables"""
    if not click.confirm("This will DELETE ALL DATA. Are you sure?"):
        click.echo("Cancelled.")
        return

    try:
        db.drop_all()
        db.create_all()
        click.echo("✅ Database reset successfully!")
    except SQLAlchemyError as e:
        click.echo(f"❌ Error resetting database: {str(e)}")


if __name__ == "__main__":
    cli()
