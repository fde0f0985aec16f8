"""
ESPN public scoreboard API client (no key required)
"""

import logging

from cfb_pickem.exceptions import ProviderError
from cfb_pickem.providers.base import ProviderClient
from cfb_pickem.providers.types import ProviderGame
from cfb_pickem.utils.timezone_utils import parse_iso_datetime

logger = logging.getLogger(__name__)

REGULAR_SEASON = 2


def _score(competitor):
    value = competitor.get("score")
    if value in (None, ""):
        return None
    if isinstance(value, dict):
        value = value.get("value")
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def parse_event(event):
    """Map one scoreboard event to a ProviderGame, None if it lacks two teams"""
    competition = (event.get("competitions") or [{}])[0]
    competitors = competition.get("competitors") or []
    home = next((c for c in competitors if c.get("homeAway") == "home"), None)
    away = next((c for c in competitors if c.get("homeAway") == "away"), None)
    if not home or not away:
        return None

    home_name = (home.get("team") or {}).get("displayName")
    away_name = (away.get("team") or {}).get("displayName")
    if not home_name or not away_name:
        return None

    spread = None
    favorite = None
    odds = competition.get("odds") or []
    if odds and isinstance(odds[0].get("spread"), (int, float)):
        point = float(odds[0]["spread"])
        spread = abs(point)
        favorite = home_name if point < 0 else away_name

    completed = bool(((event.get("status") or {}).get("type") or {}).get("completed"))

    return ProviderGame(
        id=str(event["id"]) if event.get("id") is not None else None,
        home_team=home_name,
        away_team=away_name,
        start_date=parse_iso_datetime(event.get("date")),
        completed=completed,
        home_score=_score(home),
        away_score=_score(away),
        spread=spread,
        favorite_team=favorite,
        spread_source="espn" if spread is not None else None,
        source="espn",
    )


def parse_scoreboard(data):
    games = []
    for event in data.get("events") or []:
        try:
            game = parse_event(event)
        except (AttributeError, KeyError, IndexError, TypeError, ValueError) as e:
            logger.debug(f"Skipping unreadable ESPN event: {e}")
            continue
        if game:
            games.append(game)
    return games


class EspnClient(ProviderClient):
    service = "espn"
    timeout = 10
    probe_timeout = 5

    def __init__(
        self,
        base_url="https://site.api.espn.com/apis/site/v2/sports/football/college-football",
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.base_url = base_url.rstrip("/")

    def is_available(self):
        """Liveness probe against the scoreboard endpoint"""
        try:
            self._call("/scoreboard/probe", f"{self.base_url}/scoreboard", timeout=self.probe_timeout)
            return True
        except ProviderError as e:
            logger.info(f"ESPN unavailable: {e}")
            return False

    def get_scoreboard(self, year, week):
        """Scoreboard JSON for a week; ESPN week numbering varies so two query forms are tried"""
        endpoint = f"/scoreboard/week/{week}"
        variants = [
            {"seasontype": REGULAR_SEASON, "week": week, "year": year},
            {"week": week, "year": year},
        ]

        last_error = None
        for params in variants:
            try:
                return self._get_json(
                    endpoint, f"{self.base_url}/scoreboard", params=params, expect=dict
                )
            except ProviderError as e:
                last_error = e
        raise last_error

    def fetch_games(self, year, week):
        games = parse_scoreboard(self.get_scoreboard(year, week))
        logger.info(f"ESPN: {len(games)} games for {year} week {week}")
        return games

    def fetch_scores(self, year, week):
        return [
            game
            for game in self.fetch_games(year, week)
            if game.completed and game.home_score is not None and game.away_score is not None
        ]
