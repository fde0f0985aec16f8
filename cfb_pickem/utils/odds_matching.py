"""
Attach point spreads from an odds feed to acquired games
"""

import logging
from dataclasses import replace

from cfb_pickem.utils.team_names import normalize_team_name, teams_match

logger = logging.getLogger(__name__)


def _exact_match(game, lines):
    home = normalize_team_name(game.home_team)
    away = normalize_team_name(game.away_team)

    for line in lines:
        line_home = normalize_team_name(line.home_team)
        line_away = normalize_team_name(line.away_team)
        if (line_home, line_away) == (home, away):
            return line, False
        if (line_home, line_away) == (away, home):
            return line, True
    return None, False


def _fuzzy_match(game, lines):
    for line in lines:
        if teams_match(game.home_team, game.away_team, line.home_team, line.away_team):
            return line, False
        if teams_match(game.home_team, game.away_team, line.away_team, line.home_team):
            return line, True
    return None, False


def attach_odds(games, odds_lines):
    """
    Return copies of games with spread and favorite_team filled from odds_lines

    Pure and idempotent: exact normalized pairs win over fuzzy matches, the
    favorite is written with the game's own spelling, and games without a
    matching line come back unchanged.
    """
    lines = list(odds_lines or [])
    if not lines:
        return list(games)

    result = []
    matched = 0
    for game in games:
        line, swapped = _exact_match(game, lines)
        if line is None:
            line, swapped = _fuzzy_match(game, lines)

        if line is None:
            result.append(game)
            continue

        home_favored = line.point < 0
        if swapped:
            home_favored = not home_favored

        result.append(
            replace(
                game,
                spread=abs(line.point),
                favorite_team=game.home_team if home_favored else game.away_team,
                spread_source=line.source,
            )
        )
        matched += 1

    logger.debug(f"Attached odds to {matched}/{len(result)} games")
    return result
