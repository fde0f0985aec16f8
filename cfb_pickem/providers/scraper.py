"""
HTML scoreboard scraping, the last resort when both APIs come back empty

Page layouts drift without notice, so every parser tries several selectors and
returns an empty list rather than raising when nothing fits.
"""

import logging
import re
from datetime import datetime, time, timezone

from bs4 import BeautifulSoup

from cfb_pickem.exceptions import ProviderError
from cfb_pickem.providers.base import ProviderClient
from cfb_pickem.providers.types import ProviderGame
from cfb_pickem.utils.season_calendar import game_days_for_week
from cfb_pickem.utils.team_names import dedupe_by_matchup

logger = logging.getLogger(__name__)

ESPN_SCOREBOARD_URL = "https://www.espn.com/college-football/scoreboard/_/date/{date}"
CBS_SCOREBOARD_URL = "https://www.cbssports.com/college-football/scoreboard/"

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
}

ESPN_GAME_SELECTORS = [
    ".Scoreboard__Row",
    ".GameCard",
    ".scoreboard-card",
    ".game-strip",
    '[data-testid="scoreboard-card"]',
    ".ScoreCell",
]
ESPN_TEAM_SELECTOR = (
    ".ScoreCell__TeamName, .team-name, .sb-team-short, .competitors .team, .team-displayname"
)
ESPN_SCORE_SELECTOR = ".ScoreCell__Score, .score, .team-score, .final-score"
ESPN_STATUS_SELECTOR = ".ScoreCell__Status, .game-status, .status, .game-state"

CBS_GAME_SELECTOR = ".live-update, .game-item, .in-progress-table"
CBS_TEAM_SELECTORS = [".team-name", ".team"]
CBS_SCORE_SELECTOR = ".score, .team-score"
CBS_STATUS_SELECTOR = ".status, .game-status"

_LEADING_INT = re.compile(r"-?\d+")


def _texts(element, selector):
    return [node.get_text(strip=True) for node in element.select(selector) if node.get_text(strip=True)]


def _parse_int(text):
    match = _LEADING_INT.search(text or "")
    return int(match.group()) if match else None


def _start_of_day(game_date):
    # Scoreboard cards carry no reliable kickoff time
    return datetime.combine(game_date, time(0), tzinfo=timezone.utc)


def _build_game(teams, scores, status, game_date, source):
    # Scoreboards list the visiting team first
    away, home = teams[0], teams[1]
    completed = "final" in status
    away_score = scores[0] if len(scores) > 0 else None
    home_score = scores[1] if len(scores) > 1 else None
    if away_score is None or home_score is None:
        completed = False

    return ProviderGame(
        home_team=home,
        away_team=away,
        start_date=_start_of_day(game_date),
        completed=completed,
        home_score=home_score if completed else None,
        away_score=away_score if completed else None,
        source=source,
    )


def parse_espn_scoreboard(html, game_date):
    """Games from an ESPN scoreboard page for one date"""
    soup = BeautifulSoup(html, "html.parser")

    for selector in ESPN_GAME_SELECTORS:
        games = []
        for card in soup.select(selector):
            teams = _texts(card, ESPN_TEAM_SELECTOR)
            if len(teams) < 2:
                continue
            scores = [_parse_int(text) for text in _texts(card, ESPN_SCORE_SELECTOR)]
            scores = [score for score in scores if score is not None]
            status = " ".join(_texts(card, ESPN_STATUS_SELECTOR)).lower()
            games.append(_build_game(teams, scores, status, game_date, "espn_scrape"))

        if games:
            return dedupe_by_matchup(games)

    return []


def parse_cbs_scoreboard(html, game_date):
    """Games from the CBS Sports live scoreboard"""
    soup = BeautifulSoup(html, "html.parser")
    games = []

    for card in soup.select(CBS_GAME_SELECTOR):
        teams = []
        for selector in CBS_TEAM_SELECTORS:
            teams = _texts(card, selector)
            if len(teams) >= 2:
                break
        if len(teams) < 2:
            continue

        scores = [_parse_int(text) for text in _texts(card, CBS_SCORE_SELECTOR)]
        scores = [score for score in scores if score is not None]
        status = " ".join(_texts(card, CBS_STATUS_SELECTOR)).lower()
        games.append(_build_game(teams, scores, status, game_date, "cbs_scrape"))

    return dedupe_by_matchup(games)


class ScoreboardScraper(ProviderClient):
    service = "scrape"
    user_agent = BROWSER_USER_AGENT
    timeout = 15

    def __init__(self, season_start, clock=None, **kwargs):
        super().__init__(**kwargs)
        self.season_start = season_start
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def scrape_espn_date(self, game_date):
        date_key = game_date.strftime("%Y%m%d")
        html = self._get_text(
            f"/espn/scoreboard/{date_key}",
            ESPN_SCOREBOARD_URL.format(date=date_key),
            headers=BROWSER_HEADERS,
        )
        return parse_espn_scoreboard(html, game_date)

    def scrape_cbs(self):
        html = self._get_text("/cbs/scoreboard", CBS_SCOREBOARD_URL, headers=BROWSER_HEADERS)
        return parse_cbs_scoreboard(html, self.clock().date())

    def scrape_games_for_week(self, year, week, include_live=False):
        """
        Thursday through Sunday of the week from ESPN, plus CBS when include_live

        CBS only shows the live slate, so callers pass include_live for the
        current calendar week. Never raises for fetch or layout problems.
        """
        games = []
        for game_date in game_days_for_week(self.season_start, week):
            try:
                games.extend(self.scrape_espn_date(game_date))
            except ProviderError as e:
                logger.warning(f"ESPN scoreboard scrape failed for {game_date}: {e}")

        if include_live:
            try:
                games.extend(self.scrape_cbs())
            except ProviderError as e:
                logger.warning(f"CBS scoreboard scrape failed: {e}")

        unique = dedupe_by_matchup(games)
        logger.info(f"Scraped {len(unique)} games for {year} week {week}")
        return unique

    def scrape_scores_for_week(self, year, week, include_live=False):
        return [game for game in self.scrape_games_for_week(year, week, include_live) if game.completed]
