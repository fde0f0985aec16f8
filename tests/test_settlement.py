from datetime import datetime, timezone

import pytest

from conftest import StubFetcher, make_game
from cfb_pickem import db
from cfb_pickem.exceptions import StoreFailure
from cfb_pickem.models import Game, Pick, SeasonStanding, User, Week, WeeklyScore
from cfb_pickem.services.settlement import SettlementEngine

KICKOFF = datetime(2025, 9, 13, 17, 0, tzinfo=timezone.utc)


@pytest.fixture
def fetcher():
    return StubFetcher()


@pytest.fixture
def engine(app, fetcher, settings, clock):
    return SettlementEngine(db.session, fetcher, settings, clock=clock)


def slate(count, prefix="Team"):
    return [make_game(f"{prefix} Home {i}", f"{prefix} Away {i}") for i in range(count)]


def add_game(week, home, away, spread, favorite, start=KICKOFF):
    game = Game(
        week_id=week.id,
        home_team=home,
        away_team=away,
        spread=spread,
        favorite_team=favorite,
        start_time=start,
        status="scheduled",
    )
    db.session.add(game)
    db.session.commit()
    return game


def add_picks(game, picks):
    for name, team in picks.items():
        user = User.query.filter_by(name=name).first()
        if user is None:
            user = User(name=name)
            db.session.add(user)
            db.session.flush()
        db.session.add(Pick(user_id=user.id, game_id=game.id, selected_team=team))
    db.session.commit()


@pytest.fixture
def settled_week(engine, fetcher):
    """Week 3 with two lined games and four players"""
    week = engine.ensure_current_week()
    alabama = add_game(week, "Alabama", "Georgia", 7.0, "Alabama")
    oregon = add_game(week, "Oregon", "USC", 3.0, "USC")
    add_picks(alabama, {"ann": "Alabama", "bob": "Georgia", "cat": "Georgia", "dan": "Alabama"})
    add_picks(oregon, {"ann": "Oregon", "bob": "Oregon", "cat": "USC", "dan": "USC"})

    fetcher.scores[3] = [
        # Provider lists this one with home and away reversed
        make_game("Georgia Bulldogs", "Alabama Crimson Tide", completed=True, home_score=20, away_score=28),
        make_game("Oregon Ducks", "USC Trojans", completed=True, home_score=24, away_score=21),
        make_game("Iowa State", "Iowa", completed=True, home_score=13, away_score=10),
    ]
    return week


def test_current_season_week(engine):
    assert engine.current_season_week() == (2025, 3)


def test_ensure_current_week_is_idempotent(engine):
    first = engine.ensure_current_week()
    second = engine.ensure_current_week()

    assert first.id == second.id
    assert Week.query.count() == 1
    assert second.is_active is True
    assert second.status == "active"
    assert second.deadline_utc == datetime(2025, 9, 14, 2, 0, tzinfo=timezone.utc)


def test_ensure_current_week_moves_active_flag(engine, clock):
    clock.now = datetime(2025, 9, 3, 18, 0, tzinfo=timezone.utc)
    week_two = engine.ensure_current_week()
    clock.now = datetime(2025, 9, 10, 18, 0, tzinfo=timezone.utc)
    week_three = engine.ensure_current_week()

    assert week_three.week_number == 3
    assert Week.query.filter_by(is_active=True).all() == [week_three]
    db.session.refresh(week_two)
    assert week_two.is_active is False


def test_concurrent_week_creation_reuses_row(engine, monkeypatch):
    engine.ensure_current_week()
    real_get_week = engine._get_week
    misses = []

    def racing_get_week(season_year, week_number):
        if not misses:
            misses.append(week_number)
            return None
        return real_get_week(season_year, week_number)

    monkeypatch.setattr(engine, "_get_week", racing_get_week)
    week = engine.ensure_current_week()

    assert week.week_number == 3
    assert Week.query.count() == 1


def test_fetch_weekly_games_stores_slate(engine, fetcher):
    fetcher.games[3] = slate(7) + [make_game("Colorado", "Nebraska", spread=3.5, favorite_team="Colorado")]

    stored = engine.fetch_weekly_games()

    assert stored == 8
    week = Week.query.filter_by(week_number=3).one()
    assert week.games.count() == 8
    colorado = Game.query.filter_by(home_team="Colorado").one()
    assert colorado.is_favorite_team_game is True
    assert colorado.spread == 3.5
    assert colorado.status == "scheduled"
    assert Game.query.filter_by(is_favorite_team_game=True).count() == 1


def test_full_week_is_not_refetched(engine, fetcher):
    fetcher.games[3] = slate(8)
    engine.fetch_weekly_games()
    ids = sorted(game_id for (game_id,) in db.session.query(Game.id))

    assert engine.fetch_weekly_games() == 0
    assert sorted(game_id for (game_id,) in db.session.query(Game.id)) == ids
    assert fetcher.calls == [("games", 3, False)]


def test_force_refresh_replaces_games_and_picks(engine, fetcher):
    fetcher.games[3] = slate(8)
    engine.fetch_weekly_games()
    add_picks(Game.query.first(), {"ann": "Team Home 0"})

    fetcher.games[3] = slate(8, prefix="New")
    stored = engine.fetch_weekly_games(force_refresh=True)

    assert stored == 8
    assert Game.query.count() == 8
    assert Game.query.filter(Game.home_team.like("New%")).count() == 8
    assert Pick.query.count() == 0


def test_empty_fetch_keeps_existing_games(engine, fetcher):
    fetcher.games[3] = slate(3)
    engine.fetch_weekly_games()

    fetcher.games[3] = []
    assert engine.fetch_weekly_games(force_refresh=True) == 0
    assert Game.query.count() == 3


def test_scrape_source_uses_refresh(engine, fetcher):
    fetcher.games[3] = slate(2)

    assert engine.fetch_weekly_games(force_refresh=True, preferred_source="scrape") == 2
    assert fetcher.calls == [("refresh", 3, "scrape")]


def test_duplicate_candidates_are_stored_once(engine, fetcher):
    fetcher.games[3] = [
        make_game("Alabama", "Georgia"),
        make_game("Georgia", "Alabama"),
        make_game("Oregon", "USC", id="77"),
        make_game("Utah", "BYU", id="77"),
    ]

    assert engine.fetch_weekly_games() == 2
    assert Game.query.count() == 2


def test_fetch_all_season_games_isolates_failures(engine, fetcher):
    class FlakyFetcher(StubFetcher):
        def acquire_week_games(self, year, week, force_refresh=False):
            if week == 2:
                raise StoreFailure("week 2 exploded")
            return super().acquire_week_games(year, week, force_refresh)

    flaky = FlakyFetcher(games={1: slate(2, "W1"), 3: slate(4, "W3")})
    engine.fetcher = flaky

    results = engine.fetch_all_season_games()

    assert results == {1: 2, 2: None, 3: 4}
    assert Week.query.count() == 3
    assert [w.week_number for w in Week.query.filter_by(is_active=True)] == [3]


def test_fetch_all_season_games_survives_unexpected_errors(engine):
    class BrokenFetcher(StubFetcher):
        def acquire_week_games(self, year, week, force_refresh=False):
            if week == 2:
                raise AttributeError("'list' object has no attribute 'get'")
            return super().acquire_week_games(year, week, force_refresh)

    engine.fetcher = BrokenFetcher(games={1: slate(2, "W1"), 3: slate(4, "W3")})

    results = engine.fetch_all_season_games()

    assert results == {1: 2, 2: None, 3: 4}
    assert Game.query.count() == 6


def test_exact_score_match_beats_earlier_fuzzy_record(engine, fetcher):
    week = engine.ensure_current_week()
    texas = add_game(week, "Texas", "Oklahoma", 3.0, "Texas")
    fetcher.scores[3] = [
        make_game("North Texas", "Oklahoma State", completed=True, home_score=10, away_score=45),
        make_game("Texas", "Oklahoma", completed=True, home_score=31, away_score=14),
    ]

    assert engine.update_game_scores() == 1

    db.session.refresh(texas)
    assert (texas.home_score, texas.away_score) == (31, 14)
    assert texas.spread_winner == "Texas"


def test_update_game_scores_settles_and_grades(engine, fetcher, settled_week):
    updated = engine.update_game_scores()

    assert updated == 2
    alabama = Game.query.filter_by(home_team="Alabama").one()
    assert (alabama.home_score, alabama.away_score) == (28, 20)
    assert alabama.status == "completed"
    assert alabama.spread_winner == "Alabama"
    oregon = Game.query.filter_by(home_team="Oregon").one()
    assert oregon.spread_winner == "Oregon"

    db.session.refresh(settled_week)
    assert settled_week.status == "completed"
    assert Pick.query.filter(Pick.is_correct.is_(None)).count() == 0

    weekly = {
        score.user_id: score
        for score in WeeklyScore.query.filter_by(week_id=settled_week.id)
    }
    users = {user.name: user.id for user in User.query}
    assert weekly[users["ann"]].correct_picks == 2
    assert weekly[users["ann"]].total_picks == 2
    assert weekly[users["ann"]].percentage == 100.0
    assert [weekly[users[name]].weekly_rank for name in ("ann", "bob", "dan", "cat")] == [1, 2, 2, 4]

    standings = {s.user_id: s for s in SeasonStanding.query.filter_by(season_year=2025)}
    assert standings[users["bob"]].total_correct == 1
    assert standings[users["bob"]].season_percentage == 50.0
    assert standings[users["cat"]].season_rank == 4


def test_completed_weeks_are_not_refetched(engine, fetcher, settled_week):
    engine.update_game_scores()
    engine.update_game_scores()

    assert fetcher.calls.count(("scores", 3)) == 1


def test_grading_is_one_way(engine, settled_week):
    engine.update_game_scores()
    ann = User.query.filter_by(name="ann").one()
    alabama = Game.query.filter_by(home_team="Alabama").one()

    assert engine.calculate_pick_results() == 0

    alabama.spread_winner = "Georgia"
    db.session.commit()
    assert engine.calculate_pick_results() == 0

    pick = Pick.query.filter_by(user_id=ann.id, game_id=alabama.id).one()
    assert pick.is_correct is True


def test_games_without_line_stay_ungraded(engine, fetcher):
    week = engine.ensure_current_week()
    game = add_game(week, "Kansas", "Houston", None, None)
    add_picks(game, {"ann": "Kansas"})
    fetcher.scores[3] = [make_game("Kansas", "Houston", completed=True, home_score=30, away_score=3)]

    engine.update_game_scores()

    db.session.refresh(game)
    assert game.status == "completed"
    assert game.spread_winner is None
    assert Pick.query.one().is_correct is None


def test_auto_lock_spreads_at_first_kickoff(engine, clock):
    week = engine.ensure_current_week()
    add_game(week, "Alabama", "Georgia", 7.0, "Alabama")
    add_game(week, "Oregon", "USC", 3.0, "USC", start=datetime(2025, 9, 14, 2, 0, tzinfo=timezone.utc))

    assert engine.auto_lock_spreads() == []

    clock.now = datetime(2025, 9, 13, 17, 30, tzinfo=timezone.utc)
    assert engine.auto_lock_spreads() == [3]
    assert engine.auto_lock_spreads() == []

    db.session.refresh(week)
    assert week.spreads_locked is True


def test_week_summary(engine, fetcher):
    assert engine.get_week_summary() is None

    fetcher.games[3] = [make_game("Colorado", "Nebraska", spread=3.5, favorite_team="Colorado")] + slate(2)
    engine.fetch_weekly_games()
    summary = engine.get_week_summary()

    assert summary["week"]["week_number"] == 3
    assert summary["games"] == 3
    assert summary["games_with_spreads"] == 1
    assert summary["completed_games"] == 0
