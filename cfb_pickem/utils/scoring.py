"""
Scoring rules for CFB Pick'em

This module handles settlement of a single game against the spread and the
grading of individual picks. Weekly and season aggregation lives in
cfb_pickem/services/settlement.py.
"""


def calculate_spread_winner(game):
    """
    Decide which team covered the spread.

    The favorite covers only when it wins by strictly more than the spread;
    any other result, a push included, goes to the underdog.

    Returns:
        The team name that covered, or None when the game has no final score,
        no line, or a favorite that is not one of its two teams

    Args:
        game: object with home/away team names and scores, spread and favorite_team
    """
    if game.home_score is None or game.away_score is None:
        return None
    if game.spread is None or not game.favorite_team:
        return None

    if game.favorite_team == game.home_team:
        favorite_score, underdog_score = game.home_score, game.away_score
        underdog = game.away_team
    elif game.favorite_team == game.away_team:
        favorite_score, underdog_score = game.away_score, game.home_score
        underdog = game.home_team
    else:
        return None

    margin = favorite_score - underdog_score
    if margin > abs(game.spread):
        return game.favorite_team
    return underdog


def grade_pick(pick):
    """
    Grade a single pick.

    Returns:
        True or False once the game is completed with a spread winner,
        None while it cannot be graded yet

    Args:
        pick: Pick object with game relationship loaded
    """
    game = pick.game
    if not game or game.status != "completed" or not game.spread_winner:
        return None

    return pick.selected_team == game.spread_winner


def percentage(correct, total):
    """Correct picks as a percentage, 0 when nothing was graded"""
    if not total:
        return 0.0
    return round(correct / total * 100, 2)


def competition_ranks(values):
    """
    Standard competition ranking ("1224") for a list of scores, highest first.

    Returns a list of ranks aligned with the input order.
    """
    ordered = sorted(values, reverse=True)
    first_position = {}
    for position, value in enumerate(ordered, start=1):
        first_position.setdefault(value, position)
    return [first_position[value] for value in values]
