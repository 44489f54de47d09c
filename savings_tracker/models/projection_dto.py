from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional


@dataclass
class ProjectionPoint:
    month: date
    amount: float
    projected: bool


@dataclass
class SavingsProjectionForecast:
    pot_id: str
    data: List[ProjectionPoint] = field(default_factory=list)
    monthly_contribution: Optional[float] = None
    target_date: Optional[date] = None
