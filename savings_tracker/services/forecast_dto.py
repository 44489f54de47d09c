from dataclasses import dataclass
from typing import List, Optional

from savings_tracker.models.domain import RealEntry
from savings_tracker.utils.money import round_money


@dataclass
class ProjectionPointDTO:
    """Single month in the projection chart."""
    month: str  # ISO format YYYY-MM-DD, first of month
    amount: float
    projected: bool


@dataclass
class ProjectionResponseDTO:
    """Projection for one pot."""
    pot_id: str
    monthly_contribution: float
    target_date: Optional[str]  # ISO format
    data: List[ProjectionPointDTO]

    @classmethod
    def from_forecast(cls, forecast):
        """Convert SavingsProjectionForecast to JSON-serializable DTO."""
        return cls(
            pot_id=forecast.pot_id,
            monthly_contribution=round_money(forecast.monthly_contribution or 0.0),
            target_date=forecast.target_date.isoformat() if forecast.target_date else None,
            data=[
                ProjectionPointDTO(
                    month=point.month.isoformat(),
                    amount=round_money(point.amount),
                    projected=point.projected,
                )
                for point in forecast.data
            ]
        )


@dataclass
class CalendarEntryDTO:
    """Real or virtual transaction on the calendar; only real ones are editable."""
    id: str
    kind: str
    editable: bool
    pot_id: str
    user_id: str
    amount: float
    date: str  # ISO format
    description: Optional[str]
    recurrence: str
    rule_id: Optional[str] = None

    @classmethod
    def from_entry(cls, entry):
        if isinstance(entry, RealEntry):
            tx = entry.transaction
            return cls(
                id=tx.id,
                kind=entry.kind,
                editable=entry.editable,
                pot_id=tx.pot_id,
                user_id=tx.user_id,
                amount=tx.amount,
                date=tx.date.isoformat(),
                description=tx.description,
                recurrence=tx.recurrence,
                rule_id=tx.recurring_origin_id,
            )
        occ = entry.occurrence
        return cls(
            id=occ.id,
            kind=entry.kind,
            editable=entry.editable,
            pot_id=occ.pot_id,
            user_id=occ.user_id,
            amount=occ.amount,
            date=occ.date.isoformat(),
            description=occ.description,
            recurrence=occ.frequency,
            rule_id=occ.rule_id,
        )
