"""
Week lifecycle, game ingestion and settlement against the spread

Every mutating operation takes the engine lock, so overlapping scheduler
triggers and manual CLI runs serialize instead of interleaving writes.
"""

import logging
import threading
from datetime import datetime, timezone

from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from cfb_pickem.exceptions import NoMatchFound, StoreFailure
from cfb_pickem.models import Game, Pick, SeasonStanding, Week, WeeklyScore
from cfb_pickem.utils.scoring import (
    calculate_spread_winner,
    competition_ranks,
    grade_pick,
    percentage,
)
from cfb_pickem.utils.team_names import (
    find_exact_match,
    find_matching_game,
    is_favorite_team,
    matchup_key,
)
from cfb_pickem.utils.timezone_utils import ensure_utc

logger = logging.getLogger(__name__)


class SettlementEngine:
    def __init__(self, session, fetcher, settings, clock=None):
        self.session = session
        self.fetcher = fetcher
        self.settings = settings
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._lock = threading.RLock()

    def current_season_week(self):
        """(season_year, week_number) right now"""
        return self.settings.current_week(self.clock())

    def _get_week(self, season_year, week_number):
        return (
            self.session.query(Week)
            .filter_by(season_year=season_year, week_number=week_number)
            .first()
        )

    def _create_week(self, season_year, week_number):
        """Insert an upcoming week; a concurrent insert of the same week wins and is re-read"""
        week = Week(
            week_number=week_number,
            season_year=season_year,
            deadline=self.settings.deadline_for(week_number),
            is_active=False,
            spreads_locked=False,
            status="upcoming",
        )
        self.session.add(week)
        try:
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            week = self._get_week(season_year, week_number)
            if week is None:
                raise StoreFailure(f"Week {week_number} ({season_year}) could not be created")
            logger.info(f"Week {week_number} ({season_year}) was created concurrently, reusing it")
            return week

        logger.info(f"Created week {week_number} ({season_year})")
        return week

    def ensure_current_week(self):
        """Make sure the calendar's current week exists and is the only active one"""
        with self._lock:
            season_year, week_number = self.current_season_week()
            try:
                week = self._get_week(season_year, week_number)
                if week is None:
                    week = self._create_week(season_year, week_number)

                changed = False
                others = (
                    self.session.query(Week)
                    .filter(Week.is_active.is_(True), Week.id != week.id)
                    .all()
                )
                for other in others:
                    other.is_active = False
                    changed = True

                if not week.is_active:
                    week.is_active = True
                    changed = True
                if week.status == "upcoming":
                    week.status = "active"
                    changed = True

                if changed:
                    self.session.commit()
                    logger.info(f"Active week is now {week_number} ({season_year})")
                return week

            except SQLAlchemyError as e:
                self.session.rollback()
                raise StoreFailure(f"Could not ensure week {week_number}: {e}") from e

    def _dedupe_candidates(self, candidates):
        """Unique by external id, falling back to the normalized team pair"""
        seen_ids = set()
        seen_pairs = set()
        unique = []
        for candidate in candidates:
            pair = matchup_key(candidate.home_team, candidate.away_team)
            if (candidate.id and candidate.id in seen_ids) or pair in seen_pairs:
                continue
            if candidate.id:
                seen_ids.add(candidate.id)
            seen_pairs.add(pair)
            unique.append(candidate)
        return unique

    def _replace_week_games(self, week, candidates):
        """Swap a week's games (and their picks) for new candidates in one transaction"""
        unique = self._dedupe_candidates(candidates)
        favorites = self.settings.favorite_teams

        try:
            old_ids = [
                game_id
                for (game_id,) in self.session.query(Game.id).filter(Game.week_id == week.id)
            ]
            if old_ids:
                removed_picks = (
                    self.session.query(Pick)
                    .filter(Pick.game_id.in_(old_ids))
                    .delete(synchronize_session=False)
                )
                self.session.query(Game).filter(Game.id.in_(old_ids)).delete(
                    synchronize_session=False
                )
                logger.info(
                    f"Replacing {len(old_ids)} games and {removed_picks} picks in week {week.week_number}"
                )

            for candidate in unique:
                self.session.add(
                    Game(
                        week_id=week.id,
                        external_id=candidate.id,
                        source=candidate.source,
                        home_team=candidate.home_team,
                        away_team=candidate.away_team,
                        spread=candidate.spread,
                        favorite_team=candidate.favorite_team,
                        start_time=candidate.start_date,
                        status="scheduled",
                        is_favorite_team_game=is_favorite_team(candidate.home_team, favorites)
                        or is_favorite_team(candidate.away_team, favorites),
                    )
                )

            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreFailure(f"Could not store games for week {week.week_number}: {e}") from e

        logger.info(f"Stored {len(unique)} games for week {week.week_number} ({week.season_year})")
        return len(unique)

    def _fetch_games_for_week(self, week, force_refresh=False, preferred_source="api"):
        existing = week.games.count()
        if existing >= self.settings.games_per_week and not force_refresh:
            logger.info(
                f"Week {week.week_number} already has {existing} games, skipping fetch"
            )
            return 0

        if preferred_source == "scrape":
            candidates = self.fetcher.refresh_game_data(
                week.season_year, week.week_number, preferred_source="scrape"
            )
        else:
            candidates = self.fetcher.acquire_week_games(
                week.season_year, week.week_number, force_refresh=force_refresh
            )
        if not candidates:
            logger.warning(
                f"No games found for week {week.week_number}, keeping {existing} existing games"
            )
            return 0

        return self._replace_week_games(week, candidates)

    def fetch_weekly_games(self, force_refresh=False, preferred_source="api"):
        """Load the current week's games; returns how many were stored"""
        with self._lock:
            week = self.ensure_current_week()
            return self._fetch_games_for_week(
                week, force_refresh=force_refresh, preferred_source=preferred_source
            )

    def fetch_all_season_games(self):
        """Bootstrap every week up to the configured horizon; one bad week does not stop the rest"""
        with self._lock:
            self.ensure_current_week()
            season_year = self.settings.season_year
            results = {}

            for week_number in range(1, self.settings.bootstrap_weeks + 1):
                try:
                    week = self._get_week(season_year, week_number) or self._create_week(
                        season_year, week_number
                    )
                    results[week_number] = self._fetch_games_for_week(week)
                except Exception as e:
                    self.session.rollback()
                    logger.error(f"Failed to load games for week {week_number}: {e}")
                    results[week_number] = None

            loaded = sum(1 for count in results.values() if count)
            logger.info(f"Season bootstrap finished: {loaded} weeks loaded")
            return results

    def _apply_final_score(self, game, swapped, result):
        if swapped:
            game.home_score, game.away_score = result.away_score, result.home_score
        else:
            game.home_score, game.away_score = result.home_score, result.away_score
        game.status = "completed"
        game.spread_winner = calculate_spread_winner(game)
        logger.info(
            f"Final: {game.away_team} {game.away_score} @ {game.home_team} {game.home_score}, "
            f"spread winner {game.spread_winner}"
        )

    def _update_week_scores(self, week):
        games = week.games.all()
        if not games or all(game.is_completed for game in games):
            return 0

        results = [
            result
            for result in self.fetcher.fetch_scores_with_fallback(week.season_year, week.week_number)
            if result.home_score is not None and result.away_score is not None
        ]
        claimed = set()
        pending = []
        updated = 0
        unmatched = 0

        # Exact pass over every record first, so a fuzzy hit cannot take a game
        # that a later record names exactly
        for result in results:
            match = find_exact_match(games, result)
            if match is None:
                pending.append(result)
                continue
            game, swapped = match
            if game.id in claimed:
                continue
            claimed.add(game.id)
            if not game.is_completed:
                self._apply_final_score(game, swapped, result)
                updated += 1

        for result in pending:
            try:
                game, swapped = find_matching_game(
                    [candidate for candidate in games if candidate.id not in claimed], result
                )
            except NoMatchFound as e:
                unmatched += 1
                logger.debug(str(e))
                continue
            claimed.add(game.id)
            if not game.is_completed:
                self._apply_final_score(game, swapped, result)
                updated += 1

        if updated:
            try:
                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                raise StoreFailure(f"Could not save scores for week {week.week_number}: {e}") from e

        logger.info(
            f"Week {week.week_number}: {updated} games finalized, "
            f"{unmatched} provider games not in the pool"
        )
        return updated

    def _mark_completed_weeks(self, season_year):
        weeks = (
            self.session.query(Week)
            .filter(Week.season_year == season_year, Week.status != "completed")
            .all()
        )
        finished = []
        for week in weeks:
            games = week.games.all()
            if games and all(game.is_completed for game in games):
                week.status = "completed"
                finished.append(week.week_number)

        if finished:
            self.session.commit()
            logger.info(f"Marked weeks {finished} completed")
        return finished

    def update_game_scores(self):
        """Settle finished games for the current week and the lookback window"""
        with self._lock:
            season_year, current = self.current_season_week()
            first = max(1, current - self.settings.score_lookback_weeks)
            updated = 0

            for week_number in range(current, first - 1, -1):
                week = self._get_week(season_year, week_number)
                if week is None:
                    continue
                try:
                    updated += self._update_week_scores(week)
                except Exception as e:
                    self.session.rollback()
                    logger.error(f"Score update failed for week {week_number}: {e}")

            try:
                self._mark_completed_weeks(season_year)
            except SQLAlchemyError as e:
                self.session.rollback()
                logger.error(f"Could not update week statuses: {e}")

            self.calculate_pick_results()
            return updated

    def _recompute_weekly_scores(self, week_id):
        rows = (
            self.session.query(
                Pick.user_id,
                func.sum(case((Pick.is_correct.isnot(None), 1), else_=0)),
                func.sum(case((Pick.is_correct.is_(True), 1), else_=0)),
            )
            .join(Game, Pick.game_id == Game.id)
            .filter(Game.week_id == week_id)
            .group_by(Pick.user_id)
            .all()
        )
        existing = {
            score.user_id: score
            for score in self.session.query(WeeklyScore).filter_by(week_id=week_id)
        }

        ranks = competition_ranks([int(correct or 0) for _, _, correct in rows])

        for (user_id, graded, correct), rank in zip(rows, ranks):
            score = existing.pop(user_id, None)
            if score is None:
                score = WeeklyScore(user_id=user_id, week_id=week_id)
                self.session.add(score)
            score.total_picks = int(graded or 0)
            score.correct_picks = int(correct or 0)
            score.percentage = percentage(score.correct_picks, score.total_picks)
            score.weekly_rank = rank

        # Users whose picks went away with a replaced slate
        for stale in existing.values():
            self.session.delete(stale)

    def _recompute_season_standings(self, season_year):
        self.session.flush()
        rows = (
            self.session.query(
                WeeklyScore.user_id,
                func.sum(WeeklyScore.correct_picks),
                func.sum(WeeklyScore.total_picks),
            )
            .join(Week, WeeklyScore.week_id == Week.id)
            .filter(Week.season_year == season_year)
            .group_by(WeeklyScore.user_id)
            .all()
        )
        existing = {
            standing.user_id: standing
            for standing in self.session.query(SeasonStanding).filter_by(season_year=season_year)
        }

        ranks = competition_ranks([int(correct or 0) for _, correct, _ in rows])
        for (user_id, correct, total), rank in zip(rows, ranks):
            standing = existing.pop(user_id, None)
            if standing is None:
                standing = SeasonStanding(user_id=user_id, season_year=season_year)
                self.session.add(standing)
            standing.total_correct = int(correct or 0)
            standing.total_picks = int(total or 0)
            standing.season_percentage = percentage(standing.total_correct, standing.total_picks)
            standing.season_rank = rank

        for stale in existing.values():
            self.session.delete(stale)

    def calculate_pick_results(self):
        """
        Grade every ungraded pick on a settled game, then refresh standings

        Grading is one-way: a pick that already has is_correct is never
        revisited. Returns the number of picks graded in this pass.
        """
        with self._lock:
            try:
                pending = (
                    self.session.query(Pick)
                    .join(Game, Pick.game_id == Game.id)
                    .filter(
                        Pick.is_correct.is_(None),
                        Game.status == "completed",
                        Game.spread_winner.isnot(None),
                    )
                    .all()
                )

                touched_weeks = set()
                for pick in pending:
                    pick.is_correct = grade_pick(pick)
                    touched_weeks.add(pick.game.week_id)

                active = self.session.query(Week).filter_by(is_active=True).first()
                if active is not None:
                    touched_weeks.add(active.id)

                for week_id in touched_weeks:
                    self._recompute_weekly_scores(week_id)

                if touched_weeks:
                    seasons = {
                        season_year
                        for (season_year,) in self.session.query(Week.season_year).filter(
                            Week.id.in_(touched_weeks)
                        )
                    }
                    for season_year in seasons:
                        self._recompute_season_standings(season_year)

                self.session.commit()
            except SQLAlchemyError as e:
                self.session.rollback()
                raise StoreFailure(f"Could not calculate pick results: {e}") from e

            if pending:
                logger.info(f"Graded {len(pending)} picks across {len(touched_weeks)} weeks")
            return len(pending)

    def auto_lock_spreads(self):
        """Lock spreads for every week whose first game has kicked off; returns locked week numbers"""
        with self._lock:
            now = ensure_utc(self.clock())
            try:
                rows = (
                    self.session.query(Week, func.min(Game.start_time))
                    .join(Game, Game.week_id == Week.id)
                    .filter(Week.spreads_locked.is_(False))
                    .group_by(Week.id)
                    .all()
                )

                locked = []
                for week, first_kickoff in rows:
                    if first_kickoff is not None and ensure_utc(first_kickoff) <= now:
                        week.spreads_locked = True
                        locked.append(week.week_number)

                if locked:
                    self.session.commit()
                    logger.info(f"Locked spreads for weeks {locked}")
                return locked
            except SQLAlchemyError as e:
                self.session.rollback()
                raise StoreFailure(f"Could not lock spreads: {e}") from e

    def get_week_summary(self):
        """Snapshot of the active week for status output"""
        week = self.session.query(Week).filter_by(is_active=True).first()
        if week is None:
            return None

        games = week.games.all()
        return {
            "week": week.to_dict(),
            "games": len(games),
            "completed_games": sum(1 for game in games if game.is_completed),
            "games_with_spreads": sum(1 for game in games if game.spread is not None),
        }
