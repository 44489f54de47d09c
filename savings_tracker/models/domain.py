from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Union

from savings_tracker.utils.dates import as_date


class Frequency:
    NONE = "none"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    RECURRING = (WEEKLY, MONTHLY)
    ALL = (NONE, WEEKLY, MONTHLY)


class InvalidRuleError(ValueError):
    """A recurring rule that cannot be scheduled (bad frequency, anchor or amount)."""


class NotFoundError(LookupError):
    pass


# default for update fields left out by the caller; None clears an optional field
UNCHANGED = object()


@dataclass
class Pot:
    id: str
    user_id: str
    name: str
    current_total: float
    color: str = "#1976d2"
    description: Optional[str] = None
    target_amount: Optional[float] = None
    interest_rate: Optional[float] = None  # annual percentage
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class LedgerTransaction:
    id: str
    user_id: str
    pot_id: str
    amount: float
    date: date
    description: Optional[str] = None
    recurrence: str = Frequency.NONE
    recurring_origin_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def is_recurring_origin(self) -> bool:
        return self.recurrence in Frequency.RECURRING


@dataclass
class RecurringRule:
    """A recurring ledger row viewed as a schedule template.

    ``anchor_date`` fixes the day-of-month (monthly) or weekday (weekly) and is
    itself the first occurrence, already present in the ledger.
    """
    id: str
    pot_id: str
    user_id: str
    amount: float
    anchor_date: Optional[date]
    frequency: str
    description: Optional[str] = None
    pot_name: Optional[str] = None
    user_name: Optional[str] = None

    @classmethod
    def from_transaction(cls, tx: LedgerTransaction) -> "RecurringRule":
        return cls(
            id=tx.id,
            pot_id=tx.pot_id,
            user_id=tx.user_id,
            amount=tx.amount,
            anchor_date=tx.date,
            frequency=tx.recurrence,
            description=tx.description,
        )

    def validate(self) -> "RecurringRule":
        if self.frequency not in Frequency.RECURRING:
            raise InvalidRuleError(f"rule {self.id}: unknown frequency {self.frequency!r}")
        if self.anchor_date is None:
            raise InvalidRuleError(f"rule {self.id}: missing anchor date")
        try:
            self.anchor_date = as_date(self.anchor_date)
        except (TypeError, ValueError) as exc:
            raise InvalidRuleError(f"rule {self.id}: invalid anchor date {self.anchor_date!r}") from exc
        if isinstance(self.amount, bool) or not isinstance(self.amount, (int, float)):
            raise InvalidRuleError(f"rule {self.id}: amount must be numeric")
        return self


@dataclass(frozen=True)
class ProcessedMarker:
    rule_id: str
    occurrence_date: date
    materialized_transaction_id: str


@dataclass(frozen=True)
class ForecastOccurrence:
    """A future instance of a recurring rule. Never persisted."""
    id: str
    rule_id: str
    pot_id: str
    user_id: str
    amount: float
    date: date
    frequency: str
    description: Optional[str] = None


@dataclass(frozen=True)
class RealEntry:
    transaction: LedgerTransaction
    kind: str = "real"

    @property
    def date(self) -> date:
        return self.transaction.date

    @property
    def editable(self) -> bool:
        return True


@dataclass(frozen=True)
class VirtualEntry:
    occurrence: ForecastOccurrence
    kind: str = "virtual"

    @property
    def date(self) -> date:
        return self.occurrence.date

    @property
    def editable(self) -> bool:
        return False


CalendarEntry = Union[RealEntry, VirtualEntry]
