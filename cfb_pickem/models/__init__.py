from cfb_pickem import db  # noqa: F401 - imported for model imports

from .api_usage_log import ApiUsageLog
from .game import Game
from .pick import Pick
from .season_standing import SeasonStanding
from .user import User
from .week import Week
from .weekly_score import WeeklyScore

__all__ = [
    "User",
    "Week",
    "Game",
    "Pick",
    "WeeklyScore",
    "SeasonStanding",
    "ApiUsageLog",
]
