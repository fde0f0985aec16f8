"""
The Odds API client for NCAAF point spreads
"""

import logging

from cfb_pickem.exceptions import ProviderUnavailable
from cfb_pickem.providers.base import ProviderClient
from cfb_pickem.providers.types import OddsLine
from cfb_pickem.utils.timezone_utils import parse_iso_datetime

logger = logging.getLogger(__name__)

SPORT_KEY = "americanfootball_ncaaf"
PREFERRED_BOOKMAKERS = ("draftkings", "fanduel", "betmgm")


def choose_bookmaker(bookmakers):
    """First preferred book that quotes a spread, else the first book with one"""
    with_spreads = [
        book
        for book in bookmakers or []
        if any(market.get("key") == "spreads" for market in book.get("markets") or [])
    ]
    for key in PREFERRED_BOOKMAKERS:
        for book in with_spreads:
            if book.get("key") == key:
                return book
    return with_spreads[0] if with_spreads else None


def parse_odds_event(event):
    """Home-side spread for one event, None when no book quotes it"""
    home = event.get("home_team")
    away = event.get("away_team")
    if not home or not away:
        return None

    book = choose_bookmaker(event.get("bookmakers"))
    if not book:
        return None

    market = next(m for m in book["markets"] if m.get("key") == "spreads")
    point = None
    for outcome in market.get("outcomes") or []:
        if outcome.get("point") is None:
            continue
        if outcome.get("name") == home:
            point = float(outcome["point"])
            break
        if outcome.get("name") == away:
            point = -float(outcome["point"])
    if point is None:
        return None

    return OddsLine(
        home_team=home,
        away_team=away,
        point=point,
        source=f"odds_api:{book.get('key')}",
        external_id=event.get("id"),
        commence_time=parse_iso_datetime(event.get("commence_time")),
    )


class OddsApiClient(ProviderClient):
    service = "odds"
    credits_header = "x-requests-remaining"
    timeout = 10

    def __init__(self, api_key=None, base_url="https://api.the-odds-api.com/v4", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")

    def fetch_odds(self):
        """Current spreads for upcoming NCAAF games"""
        endpoint = f"/sports/{SPORT_KEY}/odds"
        if not self.api_key:
            raise ProviderUnavailable(self.service, "ODDS_API_KEY is not set", endpoint)

        events = self._get_json(
            endpoint,
            f"{self.base_url}{endpoint}",
            params={
                "apiKey": self.api_key,
                "regions": "us",
                "markets": "h2h,spreads,totals",
                "oddsFormat": "american",
            },
            expect=list,
        )

        lines = []
        for event in events:
            try:
                line = parse_odds_event(event)
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"Skipping unreadable odds event: {e}")
                continue
            if line:
                lines.append(line)

        logger.info(f"Odds API: {len(lines)} spreads from {len(events)} events")
        return lines
