"""Plain records passed between the provider clients and the fetch pipeline"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class ProviderGame:
    home_team: str
    away_team: str
    start_date: Optional[datetime]
    source: str
    id: Optional[str] = None
    completed: bool = False
    home_score: Optional[int] = None
    away_score: Optional[int] = None
    spread: Optional[float] = None  # >= 0
    favorite_team: Optional[str] = None
    spread_source: Optional[str] = None
    selection_score: Optional[int] = None

    def has_required_fields(self):
        return bool(self.home_team and self.away_team and self.start_date)


@dataclass(frozen=True)
class OddsLine:
    """A point spread quoted from the home team's side: negative means home is favored"""

    home_team: str
    away_team: str
    point: float
    source: str
    external_id: Optional[str] = None
    commence_time: Optional[datetime] = None

    @property
    def favorite_team(self):
        return self.home_team if self.point < 0 else self.away_team
