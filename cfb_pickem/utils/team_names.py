"""
Team-name normalization and fuzzy matching across provider spellings

Providers disagree on how to spell a school ("Ohio State Buckeyes", "Ohio St.",
"Ohio State University"). Everything that lines up records from two sources goes
through these helpers.
"""

import logging
import re

from cfb_pickem.exceptions import NoMatchFound

logger = logging.getLogger(__name__)

_SEPARATORS = re.compile(r"[-/]")
_PUNCTUATION = re.compile(r"[^\w\s]")
_FILLER_WORDS = re.compile(r"\b(university|college|state|tech)\b")


def normalize_team_name(name):
    """
    Reduce a team name to a comparison key

    Lossy on purpose: "Ohio State" and "Ohio" both become "ohio".
    """
    if not name:
        return ""

    text = _SEPARATORS.sub(" ", name.lower())
    text = _PUNCTUATION.sub("", text)
    text = _FILLER_WORDS.sub(" ", text)
    return " ".join(text.split())


def _first_token(normalized):
    parts = normalized.split()
    return parts[0] if parts else ""


def team_names_match(name_a, name_b):
    """Either normalized name contains the first token of the other"""
    norm_a = normalize_team_name(name_a)
    norm_b = normalize_team_name(name_b)
    if not norm_a or not norm_b:
        return False

    return _first_token(norm_b) in norm_a or _first_token(norm_a) in norm_b


def teams_match(game_home, game_away, candidate_home, candidate_away):
    """Both sides must match, in the given orientation"""
    return team_names_match(game_home, candidate_home) and team_names_match(
        game_away, candidate_away
    )


def matchup_key(home_team, away_team):
    """Orientation-free key for a pair of teams"""
    return "|".join(sorted([normalize_team_name(home_team), normalize_team_name(away_team)]))


def dedupe_by_matchup(items):
    """Keep the first record for each team pair, preserving order"""
    seen = set()
    unique = []
    for item in items:
        key = matchup_key(item.home_team, item.away_team)
        if key in seen:
            continue
        seen.add(key)
        unique.append(item)
    return unique


def is_favorite_team(team_name, favorite_teams):
    """Exact, case-insensitive membership in the configured favorites"""
    if not team_name or not isinstance(team_name, str):
        return False
    return team_name.strip().lower() in favorite_teams


def find_exact_match(games, provider_game):
    """
    Match by provider id, then by identical normalized team pair

    Returns (game, swapped) or None.
    """
    home = provider_game.home_team
    away = provider_game.away_team

    provider_id = getattr(provider_game, "id", None)
    if provider_id:
        for game in games:
            if game.external_id and str(game.external_id) == str(provider_id):
                straight = teams_match(game.home_team, game.away_team, home, away)
                reverse = teams_match(game.home_team, game.away_team, away, home)
                if not straight and not reverse:
                    logger.warning(
                        f"External id {provider_id} belongs to {game.away_team} @ {game.home_team} "
                        f"but the provider sent {away} @ {home}"
                    )
                return game, not straight and reverse

    norm_home = normalize_team_name(home)
    norm_away = normalize_team_name(away)
    exact_keys = ((False, norm_home, norm_away), (True, norm_away, norm_home))

    for swapped, want_home, want_away in exact_keys:
        for game in games:
            if (
                normalize_team_name(game.home_team) == want_home
                and normalize_team_name(game.away_team) == want_away
            ):
                return game, swapped
    return None


def find_fuzzy_match(games, provider_game):
    """First-token containment, straight orientation before swapped; (game, swapped) or None"""
    home = provider_game.home_team
    away = provider_game.away_team

    for game in games:
        if teams_match(game.home_team, game.away_team, home, away):
            return game, False

    for game in games:
        if teams_match(game.home_team, game.away_team, away, home):
            return game, True
    return None


def find_matching_game(games, provider_game):
    """
    Find the stored game a provider record refers to

    Returns (game, swapped) where swapped means the provider listed the teams in
    the opposite home/away orientation. Exact pairs beat fuzzy ones ("Texas" vs
    "North Texas"). Raises NoMatchFound otherwise.
    """
    match = find_exact_match(games, provider_game) or find_fuzzy_match(games, provider_game)
    if match is None:
        raise NoMatchFound(provider_game.home_team, provider_game.away_team)
    return match
