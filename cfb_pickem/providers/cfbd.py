"""
CollegeFootballData.com client

Picks the most interesting games of a week for the pool: favorite teams first,
then ranked matchups, then well-known programs.
"""

import logging

from cfb_pickem.exceptions import ProviderError, ProviderUnavailable
from cfb_pickem.providers.base import ProviderClient
from cfb_pickem.providers.types import ProviderGame
from cfb_pickem.utils.team_names import is_favorite_team
from cfb_pickem.utils.timezone_utils import parse_iso_datetime

logger = logging.getLogger(__name__)

AP_POLL = "AP Top 25"
UNRANKED = 99
TOP_GAMES_LIMIT = 20

POPULAR_PROGRAMS = frozenset(
    [
        # Traditional powers
        "Alabama", "Georgia", "Texas", "Oklahoma", "USC", "Notre Dame", "Michigan",
        "Ohio State", "Penn State", "Florida", "LSU", "Auburn", "Tennessee",
        "Florida State", "Miami", "Clemson",
        # Big programs
        "Oregon", "Washington", "UCLA", "Stanford", "Wisconsin", "Iowa",
        "Michigan State", "Nebraska", "Colorado", "Colorado State", "Utah",
        "Arizona State", "Arizona", "BYU", "TCU", "Baylor", "Texas A&M", "Ole Miss",
        "Mississippi State", "Arkansas", "Kentucky", "Vanderbilt", "South Carolina",
        "North Carolina", "NC State", "Duke", "Wake Forest", "Virginia",
        "Virginia Tech", "Louisville",
        # Other notable programs
        "Kansas", "Kansas State", "Oklahoma State", "Texas Tech", "Houston",
        "Cincinnati", "UCF", "West Virginia", "Pittsburgh", "Syracuse",
        "Boston College", "Maryland", "Rutgers",
    ]
)

MAJOR_CONFERENCES = frozenset(
    ["SEC", "Big Ten", "Big 12", "ACC", "Pac-12", "American Athletic"]
)


def _field(raw, *names):
    """CFBD has served both camelCase and snake_case keys"""
    for name in names:
        value = raw.get(name)
        if value is not None:
            return value
    return None


def _to_int(value):
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def is_fbs_game(raw):
    """Both teams FBS, or classification missing (older seasons)"""
    home_class = _field(raw, "homeClassification", "home_classification")
    away_class = _field(raw, "awayClassification", "away_classification")
    return (not home_class or home_class == "fbs") and (not away_class or away_class == "fbs")


def ap_poll_ranks(rankings):
    """Map school -> AP rank from a /rankings payload"""
    ranks = {}
    for entry in rankings or []:
        if not isinstance(entry, dict):
            continue
        # Current API nests polls per week; older payloads were flat poll objects
        polls = entry.get("polls") or [entry]
        if not isinstance(polls, list):
            continue
        for poll in polls:
            if not isinstance(poll, dict) or poll.get("poll") != AP_POLL:
                continue
            entries = poll.get("ranks")
            if not isinstance(entries, list):
                continue
            for rank in entries:
                if not isinstance(rank, dict):
                    continue
                school = rank.get("school")
                if isinstance(school, str) and school and school not in ranks:
                    ranks[school] = _to_int(rank.get("rank")) or UNRANKED
    return ranks


def selection_score(raw, ranks, favorite_teams):
    """Priority of a game for the weekly slate"""
    home = _field(raw, "homeTeam", "home_team")
    away = _field(raw, "awayTeam", "away_team")
    score = 0

    if is_favorite_team(home, favorite_teams) or is_favorite_team(away, favorite_teams):
        score += 10000

    home_ranked = home in ranks
    away_ranked = away in ranks
    if home_ranked and away_ranked:
        score += 5000
    elif home_ranked or away_ranked:
        ranked, unranked = (home, away) if home_ranked else (away, home)
        score += max(500, 1000 - ranks[ranked] * 20)
        if unranked in POPULAR_PROGRAMS:
            score += 300
    elif home in POPULAR_PROGRAMS and away in POPULAR_PROGRAMS:
        score += 400
    elif home in POPULAR_PROGRAMS or away in POPULAR_PROGRAMS:
        score += 200

    if _field(raw, "conferenceGame", "conference_game"):
        score += 50

    home_conf = _field(raw, "homeConference", "home_conference")
    away_conf = _field(raw, "awayConference", "away_conference")
    if home_conf in MAJOR_CONFERENCES or away_conf in MAJOR_CONFERENCES:
        score += 100

    return score


def to_provider_game(raw, score=None):
    home = _field(raw, "homeTeam", "home_team")
    away = _field(raw, "awayTeam", "away_team")
    if not isinstance(home, str) or not isinstance(away, str) or not home or not away:
        return None

    game_id = raw.get("id")
    return ProviderGame(
        id=str(game_id) if game_id is not None else None,
        home_team=home,
        away_team=away,
        start_date=parse_iso_datetime(_field(raw, "startDate", "start_date")),
        completed=bool(raw.get("completed")),
        home_score=_to_int(_field(raw, "homePoints", "home_points")),
        away_score=_to_int(_field(raw, "awayPoints", "away_points")),
        source="cfbd",
        selection_score=score,
    )


class CfbdClient(ProviderClient):
    service = "cfbd"
    credits_header = "X-CallLimit-Remaining"
    timeout = 15

    def __init__(
        self,
        api_key=None,
        base_url="https://api.collegefootballdata.com",
        favorite_teams=(),
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.favorite_teams = frozenset(favorite_teams)

    def _auth_headers(self, endpoint):
        if not self.api_key:
            raise ProviderUnavailable(self.service, "CFBD_API_KEY is not set", endpoint)
        return {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}

    def get_games(self, year, week):
        """Raw regular-season games for a week"""
        endpoint = "/games"
        return self._get_json(
            endpoint,
            f"{self.base_url}{endpoint}",
            params={"year": year, "week": week, "seasonType": "regular"},
            headers=self._auth_headers(endpoint),
            expect=list,
        )

    def get_rankings(self, year, week):
        """Poll rankings; optional, so failures yield an empty list"""
        endpoint = "/rankings"
        try:
            return self._get_json(
                endpoint,
                f"{self.base_url}{endpoint}",
                params={"year": year, "week": week, "seasonType": "regular"},
                headers=self._auth_headers(endpoint),
                expect=list,
            )
        except ProviderError as e:
            logger.warning(f"Rankings unavailable for {year} week {week}: {e}")
            return []

    def fetch_games(self, year, week):
        """Top FBS games of the week, best first"""
        raw_games = self.get_games(year, week)
        ranks = ap_poll_ranks(self.get_rankings(year, week))

        fbs_games = [
            raw
            for raw in raw_games
            if isinstance(raw, dict)
            and isinstance(_field(raw, "homeTeam", "home_team"), str)
            and isinstance(_field(raw, "awayTeam", "away_team"), str)
            and is_fbs_game(raw)
        ]
        logger.info(
            f"CFBD: {len(raw_games)} games for {year} week {week}, {len(fbs_games)} FBS"
        )

        scored = []
        for raw in fbs_games:
            try:
                game = to_provider_game(raw, selection_score(raw, ranks, self.favorite_teams))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping unreadable CFBD game {raw.get('id')}: {e}")
                continue
            if game:
                scored.append(game)

        scored.sort(key=lambda game: game.selection_score, reverse=True)
        return scored[:TOP_GAMES_LIMIT]

    def fetch_scores(self, year, week):
        """Completed games with final points"""
        games = []
        for raw in self.get_games(year, week):
            if not isinstance(raw, dict) or not raw.get("completed"):
                continue
            try:
                game = to_provider_game(raw)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping unreadable CFBD result {raw.get('id')}: {e}")
                continue
            if game and game.home_score is not None and game.away_score is not None:
                games.append(game)
        return games
