from datetime import date, datetime, timezone

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from cfb_pickem import create_app, db
from cfb_pickem.providers.types import ProviderGame
from cfb_pickem.services.context import SeasonSettings, build_context

# Wednesday of week 3 of the 2025 season (week 1 starts Monday 2025-08-25)
WEEK_3_NOW = datetime(2025, 9, 10, 18, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code=200, json_data=None, text="", headers=None):
        self.status_code = status_code
        self._json = json_data
        self.text = text
        self.headers = CaseInsensitiveDict(headers or {})

    def json(self):
        if self._json is None:
            raise ValueError("No JSON object could be decoded")
        return self._json


class FakeSession:
    """Routes GET requests by URL fragment; unknown URLs fail like a dead host"""

    def __init__(self, routes=None):
        self.routes = routes or {}
        self.calls = []
        self.headers = {}

    def get(self, url, params=None, headers=None, timeout=None):
        self.calls.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        for fragment, result in self.routes.items():
            if fragment in url:
                if callable(result):
                    result = result(url, params)
                if isinstance(result, Exception):
                    raise result
                return result
        raise requests.exceptions.ConnectionError(f"No route for {url}")

    def calls_to(self, fragment):
        return [call for call in self.calls if fragment in call["url"]]


class FixedClock:
    def __init__(self, now=WEEK_3_NOW):
        self.now = now

    def __call__(self):
        return self.now


class StubFetcher:
    """Stands in for HybridDataFetcher in engine tests"""

    def __init__(self, games=None, scores=None):
        self.games = games or {}
        self.scores = scores or {}
        self.calls = []

    def acquire_week_games(self, year, week, force_refresh=False):
        self.calls.append(("games", week, force_refresh))
        return list(self.games.get(week, []))

    def refresh_game_data(self, year, week, preferred_source="api"):
        self.calls.append(("refresh", week, preferred_source))
        return list(self.games.get(week, []))

    def fetch_scores_with_fallback(self, year, week):
        self.calls.append(("scores", week))
        return list(self.scores.get(week, []))


def make_game(home, away, start=None, **kwargs):
    kwargs.setdefault("source", "cfbd")
    return ProviderGame(
        home_team=home,
        away_team=away,
        start_date=start or datetime(2025, 9, 13, 17, 0, tzinfo=timezone.utc),
        **kwargs,
    )


@pytest.fixture
def app(tmp_path, monkeypatch):
    # File database so the usage log's own session sees a separate connection
    monkeypatch.setenv("TEST_DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    app = create_app("testing")

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    return SeasonSettings(
        season_start=date(2025, 8, 25),
        season_year=2025,
        max_week=15,
        bootstrap_weeks=3,
        games_per_week=8,
        score_lookback_weeks=4,
        deadline_hour=20,
        timezone="America/Denver",
        favorite_teams=frozenset({"colorado", "nebraska"}),
    )


@pytest.fixture
def http():
    return FakeSession()


@pytest.fixture
def context(app, http, clock):
    ctx = build_context(app, http_session=http, clock=clock)
    app.extensions["cfb_pickem"] = ctx
    return ctx
