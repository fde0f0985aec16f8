"""
Betting-line scraping, used when The Odds API is skipped or returns nothing
"""

import logging
import re

from bs4 import BeautifulSoup

from cfb_pickem.exceptions import ProviderError
from cfb_pickem.providers.base import ProviderClient
from cfb_pickem.providers.scraper import BROWSER_HEADERS, BROWSER_USER_AGENT
from cfb_pickem.providers.types import OddsLine
from cfb_pickem.utils.team_names import matchup_key

logger = logging.getLogger(__name__)

ESPN_LINES_URL = "https://www.espn.com/college-football/lines"
SPORTS_REFERENCE_URL = "https://www.sports-reference.com/cfb/years/{year}-games.html"

# Lower is preferred when two sources quote the same game
SOURCE_PRIORITY = {"sports-reference": 0, "espn": 1}

ESPN_LINE_SELECTORS = [
    ".oddsgame",
    ".Table__TR",
    ".betting-odds-row",
    ".odds-row",
    '[data-testid="odds-row"]',
    ".game-odds",
]
ESPN_TEAM_SELECTOR = ".team-name, .AnchorLink, .Table__Team, .team-displayname, .competitor-name"
ESPN_SPREAD_SELECTOR = ".line, .spread, .Table__TD, .betting-line, .point-spread"

_SIGNED_SPREAD = re.compile(r"([-+])(\d+(?:\.\d+)?)")
_ANY_NUMBER = re.compile(r"[-+]?\d+(?:\.\d+)?")


def parse_espn_lines(html):
    """Lines from the ESPN betting page; a negative number favors the first-listed (away) team"""
    soup = BeautifulSoup(html, "html.parser")

    for selector in ESPN_LINE_SELECTORS:
        lines = []
        for row in soup.select(selector):
            teams = [n.get_text(strip=True) for n in row.select(ESPN_TEAM_SELECTOR)]
            teams = [team for team in teams if team]
            if len(teams) < 2:
                continue
            away, home = teams[0], teams[1]

            for node in row.select(ESPN_SPREAD_SELECTOR):
                match = _SIGNED_SPREAD.search(node.get_text(strip=True))
                if not match:
                    continue
                value = float(match.group(2))
                away_favored = match.group(1) == "-"
                lines.append(
                    OddsLine(
                        home_team=home,
                        away_team=away,
                        point=value if away_favored else -value,
                        source="espn",
                    )
                )
                break

        if lines:
            return lines

    return []


def parse_sports_reference_spreads(html):
    """Lines from the Sports Reference season games table (home-side spread in column 8)"""
    soup = BeautifulSoup(html, "html.parser")
    lines = []

    for row in soup.select("#games tbody tr"):
        cells = row.find_all("td")
        if len(cells) < 8:
            continue

        away = cells[1].get_text(strip=True)
        home = cells[5].get_text(strip=True)
        match = _ANY_NUMBER.search(cells[7].get_text(strip=True))
        if not (away and home and match):
            continue

        lines.append(
            OddsLine(home_team=home, away_team=away, point=float(match.group()), source="sports-reference")
        )

    return lines


def merge_lines(lines):
    """One line per team pair, keeping the preferred source"""
    best = {}
    order = []
    for line in lines:
        key = matchup_key(line.home_team, line.away_team)
        current = best.get(key)
        if current is None:
            best[key] = line
            order.append(key)
        elif SOURCE_PRIORITY.get(line.source, 99) < SOURCE_PRIORITY.get(current.source, 99):
            best[key] = line
    return [best[key] for key in order]


class SpreadScraper(ProviderClient):
    service = "scrape"
    user_agent = BROWSER_USER_AGENT
    timeout = 15

    def scrape_espn_lines(self):
        html = self._get_text("/espn/lines", ESPN_LINES_URL, headers=BROWSER_HEADERS)
        return parse_espn_lines(html)

    def scrape_sports_reference(self, year):
        html = self._get_text(
            f"/sports-reference/{year}-games",
            SPORTS_REFERENCE_URL.format(year=year),
            headers=BROWSER_HEADERS,
        )
        return parse_sports_reference_spreads(html)

    def scrape_all_spreads(self, year):
        """Every scraped line, deduplicated; never raises for fetch or layout problems"""
        lines = []
        for name, scrape in (
            ("ESPN lines", self.scrape_espn_lines),
            ("Sports Reference", lambda: self.scrape_sports_reference(year)),
        ):
            try:
                found = scrape()
            except ProviderError as e:
                logger.warning(f"{name} spread scrape failed: {e}")
                continue
            logger.info(f"{name}: {len(found)} spreads")
            lines.extend(found)

        return merge_lines(lines)
