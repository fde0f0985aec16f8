"""
Wiring of clients, fetcher and settlement engine for one application
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.orm import sessionmaker

from cfb_pickem import db
from cfb_pickem.providers.cfbd import CfbdClient
from cfb_pickem.providers.espn import EspnClient
from cfb_pickem.providers.odds import OddsApiClient
from cfb_pickem.providers.scraper import ScoreboardScraper
from cfb_pickem.providers.spread_scraper import SpreadScraper
from cfb_pickem.services.data_fetcher import HybridDataFetcher
from cfb_pickem.services.settlement import SettlementEngine
from cfb_pickem.services.usage_monitor import UsageMonitor
from cfb_pickem.utils.season_calendar import (
    current_season_week,
    local_today,
    parse_season_start,
    week_deadline,
)

logger = logging.getLogger(__name__)


def utc_now():
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class SeasonSettings:
    season_start: object
    season_year: int
    max_week: int = 15
    bootstrap_weeks: int = 12
    games_per_week: int = 8
    score_lookback_weeks: int = 4
    deadline_hour: int = 20
    timezone: str = "UTC"
    favorite_teams: frozenset = frozenset()

    @classmethod
    def from_config(cls, config):
        season_start = parse_season_start(config["SEASON_START_DATE"])
        return cls(
            season_start=season_start,
            season_year=int(config.get("SEASON_YEAR") or season_start.year),
            max_week=config.get("MAX_WEEK", 15),
            bootstrap_weeks=config.get("BOOTSTRAP_WEEKS", 12),
            games_per_week=config.get("GAMES_PER_WEEK", 8),
            score_lookback_weeks=config.get("SCORE_LOOKBACK_WEEKS", 4),
            deadline_hour=config.get("DEADLINE_HOUR", 20),
            timezone=config.get("TIMEZONE", "UTC"),
            favorite_teams=frozenset(config.get("FAVORITE_TEAMS") or ()),
        )

    def current_week(self, now):
        """(season_year, week_number) for an instant"""
        today = local_today(now, self.timezone)
        return self.season_year, current_season_week(today, self.season_start, self.max_week)

    def deadline_for(self, week_number):
        return week_deadline(self.season_start, week_number, self.deadline_hour, self.timezone)


@dataclass
class ServiceContext:
    settings: SeasonSettings
    usage_monitor: UsageMonitor
    cfbd: CfbdClient
    espn: EspnClient
    odds: OddsApiClient
    scraper: ScoreboardScraper
    spread_scraper: SpreadScraper
    fetcher: HybridDataFetcher
    engine: SettlementEngine


def build_context(app, http_session=None, clock=None):
    """Build every service from app config; must run inside an app context"""
    config = app.config
    clock = clock or utc_now
    settings = SeasonSettings.from_config(config)

    usage_monitor = UsageMonitor(
        sessionmaker(bind=db.engine),
        clock=clock,
        min_credits=config.get("USAGE_MIN_CREDITS", 50),
        max_error_rate=config.get("USAGE_MAX_ERROR_RATE", 0.5),
        min_calls=config.get("USAGE_MIN_CALLS", 10),
        window_hours=config.get("USAGE_WINDOW_HOURS", 24),
        retention_days=config.get("USAGE_RETENTION_DAYS", 30),
    )

    client_options = {
        "usage_monitor": usage_monitor,
        "session": http_session,
        "max_retries": config.get("PROVIDER_MAX_RETRIES", 3),
        "retry_delay": config.get("PROVIDER_RETRY_DELAY", 1.0),
    }
    api_options = dict(client_options, min_request_interval=config.get("API_REQUEST_INTERVAL", 0.5))
    scrape_options = dict(
        client_options, min_request_interval=config.get("SCRAPE_REQUEST_INTERVAL", 1.0)
    )

    cfbd = CfbdClient(
        api_key=config.get("CFBD_API_KEY"),
        base_url=config["CFBD_API_BASE_URL"],
        favorite_teams=settings.favorite_teams,
        **api_options,
    )
    espn = EspnClient(base_url=config["ESPN_API_BASE_URL"], **api_options)
    odds = OddsApiClient(
        api_key=config.get("ODDS_API_KEY"), base_url=config["ODDS_API_BASE_URL"], **api_options
    )
    scraper = ScoreboardScraper(settings.season_start, clock=clock, **scrape_options)
    spread_scraper = SpreadScraper(**scrape_options)

    fetcher = HybridDataFetcher(
        cfbd,
        espn,
        scraper,
        odds,
        spread_scraper,
        usage_monitor=usage_monitor,
        games_per_week=settings.games_per_week,
        is_current_week=lambda year, week: settings.current_week(clock()) == (year, week),
    )
    engine = SettlementEngine(db.session, fetcher, settings, clock=clock)

    return ServiceContext(
        settings=settings,
        usage_monitor=usage_monitor,
        cfbd=cfbd,
        espn=espn,
        odds=odds,
        scraper=scraper,
        spread_scraper=spread_scraper,
        fetcher=fetcher,
        engine=engine,
    )


def get_context(app=None):
    """Services of the given (or current) application"""
    app = app or current_app
    return app.extensions["cfb_pickem"]
