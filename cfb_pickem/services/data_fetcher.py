"""
Multi-source game acquisition with ordered fallback

CFBD first, then ESPN, then HTML scraping; spreads from The Odds API with
scraped betting lines as the backstop. Nothing here touches the database
apart from provider call accounting.
"""

import logging

from cfb_pickem.exceptions import ProviderError
from cfb_pickem.utils.odds_matching import attach_odds

logger = logging.getLogger(__name__)


class HybridDataFetcher:
    def __init__(
        self,
        cfbd,
        espn,
        scraper,
        odds,
        spread_scraper,
        usage_monitor=None,
        games_per_week=8,
        is_current_week=None,
    ):
        self.cfbd = cfbd
        self.espn = espn
        self.scraper = scraper
        self.odds = odds
        self.spread_scraper = spread_scraper
        self.usage_monitor = usage_monitor
        self.games_per_week = games_per_week
        self.is_current_week = is_current_week or (lambda year, week: False)

    def _should_skip(self, service, force_refresh=False):
        if self.usage_monitor is None:
            return False
        return self.usage_monitor.should_skip(service, ignore_error_rate=force_refresh)

    def _acquire_games(self, year, week, force_refresh=False):
        """Ordered fallback; returns (games, source)"""
        if self._should_skip("cfbd", force_refresh):
            logger.info("Skipping CFBD due to usage limits")
        else:
            try:
                games = self.cfbd.fetch_games(year, week)
                if games:
                    return games, "cfbd"
                logger.info(f"CFBD returned no games for {year} week {week}")
            except ProviderError as e:
                logger.warning(f"CFBD failed, falling back: {e}")

        if self.espn.is_available():
            try:
                games = self.espn.fetch_games(year, week)
                if games:
                    return games, "espn"
                logger.info(f"ESPN returned no games for {year} week {week}")
            except ProviderError as e:
                logger.warning(f"ESPN failed, falling back to scraping: {e}")

        games = self.scraper.scrape_games_for_week(
            year, week, include_live=self.is_current_week(year, week)
        )
        return games, "scrape"

    def _fetch_spread_lines(self, year, force_refresh=False):
        lines = []
        if self._should_skip("odds", force_refresh):
            logger.info("Skipping Odds API due to usage limits")
        else:
            try:
                lines = self.odds.fetch_odds()
            except ProviderError as e:
                logger.warning(f"Odds API failed: {e}")

        if not lines:
            lines = self.spread_scraper.scrape_all_spreads(year)
        return lines

    def _attach_spreads(self, year, games, force_refresh=False):
        if not games:
            return games

        lines = self._fetch_spread_lines(year, force_refresh)
        if not lines:
            logger.warning("No spread source available, games keep provider spreads only")
            return games
        return attach_odds(games, lines)

    def _finalize(self, games):
        complete = [game for game in games if game.has_required_fields()]
        if len(complete) < len(games):
            logger.info(f"Dropped {len(games) - len(complete)} games missing teams or start time")
        return complete[: self.games_per_week]

    def acquire_week_games(self, year, week, force_refresh=False):
        """
        Candidate games for a week, best first, with spreads where available

        force_refresh ignores the error-rate breaker for this attempt; the
        low-credit guard still applies. Never raises for provider failures.
        """
        games, source = self._acquire_games(year, week, force_refresh)
        games = self._attach_spreads(year, games, force_refresh)
        selected = self._finalize(games)

        with_spreads = sum(1 for game in selected if game.spread is not None)
        logger.info(
            f"Acquired {len(selected)} games for {year} week {week} from {source} "
            f"({with_spreads} with spreads)"
        )
        return selected

    def refresh_game_data(self, year, week, preferred_source="api"):
        """Manual refresh; preferred_source="scrape" goes straight to the scrapers"""
        if preferred_source != "scrape":
            return self.acquire_week_games(year, week, force_refresh=True)

        games = self.scraper.scrape_games_for_week(
            year, week, include_live=self.is_current_week(year, week)
        )
        games = self._attach_spreads(year, games, force_refresh=True)
        return self._finalize(games)

    def fetch_scores_with_fallback(self, year, week):
        """Completed games for a week from the first source that has any"""
        if self._should_skip("cfbd"):
            logger.info("Skipping CFBD scores due to usage limits")
        else:
            try:
                scores = self.cfbd.fetch_scores(year, week)
                if scores:
                    return scores
            except ProviderError as e:
                logger.warning(f"CFBD scores failed, falling back: {e}")

        if self.espn.is_available():
            try:
                scores = self.espn.fetch_scores(year, week)
                if scores:
                    return scores
            except ProviderError as e:
                logger.warning(f"ESPN scores failed, falling back to scraping: {e}")

        return self.scraper.scrape_scores_for_week(
            year, week, include_live=self.is_current_week(year, week)
        )

    def get_data_source_status(self):
        """Availability and recent usage of each source"""
        status = {
            "espn": {"available": self.espn.is_available()},
            "scrape": {"available": True},
        }
        for service, client in (("cfbd", self.cfbd), ("odds", self.odds)):
            entry = {
                "configured": bool(getattr(client, "api_key", None)),
                "skipped": self._should_skip(service),
            }
            if self.usage_monitor is not None:
                entry["usage"] = self.usage_monitor.get_usage_stats(service)
            status[service] = entry
        return status
