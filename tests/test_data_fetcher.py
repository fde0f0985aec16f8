from conftest import FakeResponse
from cfb_pickem.models import ApiUsageLog

ESPN_TEAMS = [
    ("Alabama Crimson Tide", "Georgia Bulldogs"),
    ("Oregon Ducks", "USC Trojans"),
    ("Colorado Buffaloes", "Nebraska Cornhuskers"),
    ("Texas Longhorns", "Oklahoma Sooners"),
    ("Michigan Wolverines", "Ohio State Buckeyes"),
]


def espn_event(index, home, away, spread=None):
    competition = {
        "competitors": [
            {"homeAway": "home", "team": {"displayName": home}, "score": "0"},
            {"homeAway": "away", "team": {"displayName": away}, "score": "0"},
        ]
    }
    if spread is not None:
        competition["odds"] = [{"spread": spread}]
    return {
        "id": str(500 + index),
        "date": "2025-09-13T18:00Z",
        "status": {"type": {"completed": False}},
        "competitions": [competition],
    }


def espn_scoreboard():
    events = [espn_event(i, home, away) for i, (home, away) in enumerate(ESPN_TEAMS)]
    return FakeResponse(json_data={"events": events})


def cfbd_game(index, home, away, completed=False, home_points=None, away_points=None):
    return {
        "id": 900 + index,
        "homeTeam": home,
        "awayTeam": away,
        "startDate": "2025-09-13T19:00:00.000Z",
        "completed": completed,
        "homePoints": home_points,
        "awayPoints": away_points,
    }


def test_falls_back_to_espn_when_cfbd_fails(context, http):
    http.routes.update(
        {
            "collegefootballdata.com": FakeResponse(status_code=500),
            "site.api.espn.com": espn_scoreboard(),
        }
    )

    games = context.fetcher.acquire_week_games(2025, 3)

    assert len(games) == 5
    assert {game.source for game in games} == {"espn"}
    assert ApiUsageLog.query.filter_by(service="cfbd", success=False).count() >= 1
    assert ApiUsageLog.query.filter_by(service="espn", success=True).count() >= 1


def test_cfbd_slate_is_capped_and_gets_odds(context, http):
    raw = [cfbd_game(i, f"Home {i}", f"Away {i}") for i in range(10)]
    raw.append(cfbd_game(10, "Colorado", "Kansas State"))
    odds = [
        {
            "id": "o1",
            "home_team": "Colorado Buffaloes",
            "away_team": "Kansas State Wildcats",
            "bookmakers": [
                {
                    "key": "draftkings",
                    "markets": [
                        {
                            "key": "spreads",
                            "outcomes": [
                                {"name": "Colorado Buffaloes", "point": 2.5},
                                {"name": "Kansas State Wildcats", "point": -2.5},
                            ],
                        }
                    ],
                }
            ],
        }
    ]
    http.routes.update(
        {
            "collegefootballdata.com/games": FakeResponse(json_data=raw),
            "collegefootballdata.com/rankings": FakeResponse(json_data=[]),
            "the-odds-api.com": FakeResponse(json_data=odds),
        }
    )

    games = context.fetcher.acquire_week_games(2025, 3)

    assert len(games) == 8
    assert games[0].home_team == "Colorado"
    assert games[0].spread == 2.5
    assert games[0].favorite_team == "Kansas State"
    assert games[0].spread_source == "odds_api:draftkings"
    assert all(game.source == "cfbd" for game in games)
    assert http.calls_to("site.api.espn.com") == []


def test_games_without_kickoff_are_dropped(context, http):
    raw = [cfbd_game(0, "Alabama", "Georgia"), cfbd_game(1, "Oregon", "USC")]
    raw[1]["startDate"] = None
    http.routes.update(
        {
            "collegefootballdata.com/games": FakeResponse(json_data=raw),
            "collegefootballdata.com/rankings": FakeResponse(json_data=[]),
        }
    )

    games = context.fetcher.acquire_week_games(2025, 3)

    assert [game.home_team for game in games] == ["Alabama"]


def test_malformed_cfbd_rows_do_not_abort_acquisition(context, http):
    raw = [cfbd_game(0, "Alabama", "Georgia"), cfbd_game(1, ["Oregon"], "USC"), "not a game"]
    rankings = [
        {"polls": [{"poll": "AP Top 25", "ranks": [None, {"school": {"name": "Alabama"}}]}]}
    ]
    http.routes.update(
        {
            "collegefootballdata.com/games": FakeResponse(json_data=raw),
            "collegefootballdata.com/rankings": FakeResponse(json_data=rankings),
        }
    )

    games = context.fetcher.acquire_week_games(2025, 3)

    assert [(game.home_team, game.source) for game in games] == [("Alabama", "cfbd")]
    assert http.calls_to("site.api.espn.com") == []


def test_low_credits_skip_cfbd(context, http):
    context.usage_monitor.log_call("cfbd", "/games", True, credits_remaining=10)
    http.routes.update({"site.api.espn.com": espn_scoreboard()})

    games = context.fetcher.acquire_week_games(2025, 3)

    assert len(games) == 5
    assert http.calls_to("collegefootballdata.com") == []


def test_force_refresh_ignores_error_rate(context, http):
    for _ in range(11):
        context.usage_monitor.log_call("cfbd", "/games", False, error="HTTP error 500")
    http.routes.update(
        {
            "collegefootballdata.com/games": FakeResponse(
                json_data=[cfbd_game(0, "Alabama", "Georgia")]
            ),
            "collegefootballdata.com/rankings": FakeResponse(json_data=[]),
            "site.api.espn.com": espn_scoreboard(),
        }
    )

    skipped = context.fetcher.acquire_week_games(2025, 3)
    assert http.calls_to("collegefootballdata.com") == []
    assert len(skipped) == 5

    forced = context.fetcher.acquire_week_games(2025, 3, force_refresh=True)
    assert len(http.calls_to("collegefootballdata.com/games")) == 1
    assert [game.source for game in forced] == ["cfbd"]


def test_everything_down_returns_empty(context, http):
    assert context.fetcher.acquire_week_games(2025, 3) == []


def test_scrape_refresh_skips_apis(context, http):
    html = (
        '<div class="Scoreboard__Row"><div class="ScoreCell__TeamName">Georgia</div>'
        '<div class="ScoreCell__TeamName">Alabama</div></div>'
    )
    http.routes.update({"scoreboard/_/date/20250913": FakeResponse(text=html)})

    games = context.fetcher.refresh_game_data(2025, 3, preferred_source="scrape")

    assert [(g.home_team, g.away_team) for g in games] == [("Alabama", "Georgia")]
    assert http.calls_to("collegefootballdata.com") == []
    assert http.calls_to("site.api.espn.com") == []


def test_scores_come_from_first_source_with_results(context, http):
    raw = [
        cfbd_game(0, "Alabama", "Georgia", completed=True, home_points=28, away_points=20),
        cfbd_game(1, "Oregon", "USC"),
    ]
    http.routes.update({"collegefootballdata.com/games": FakeResponse(json_data=raw)})

    scores = context.fetcher.fetch_scores_with_fallback(2025, 3)

    assert [(s.home_team, s.home_score, s.away_score) for s in scores] == [("Alabama", 28, 20)]
    assert http.calls_to("site.api.espn.com") == []


def test_data_source_status(context, http):
    context.usage_monitor.log_call("odds", "/odds", True, credits_remaining=12)

    status = context.fetcher.get_data_source_status()

    assert status["espn"] == {"available": False}
    assert status["cfbd"]["configured"] is True
    assert status["cfbd"]["skipped"] is False
    assert status["odds"]["skipped"] is True
    assert status["odds"]["usage"]["last_credits_remaining"] == 12
