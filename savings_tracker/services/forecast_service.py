### Forecast service looks ahead in recurring rules and lists their future occurrences for the calendar.
import logging
from datetime import date
from math import ceil

from savings_tracker.models.domain import (
    ForecastOccurrence,
    Frequency,
    RealEntry,
    VirtualEntry,
)
from savings_tracker.repositories.transactions_repository import (
    get_all_transactions,
    get_recurring_rules,
)
from savings_tracker.services.projection_service import valid_rules
from savings_tracker.utils.dates import (
    add_months,
    advance_by_weeks_preserving_weekday,
    months_between,
    start_of_month,
)


def _already_in_ledger(rule, occ_date, ledger):
    """Is there a real row for this pot on ``occ_date`` that stands for the rule's occurrence?"""
    for tx in ledger:
        if tx.pot_id != rule.pot_id or tx.date != occ_date:
            continue
        if tx.is_recurring_origin or tx.recurring_origin_id == rule.id:
            return True
    return False


def _virtual(rule, occ_date, n):
    return VirtualEntry(ForecastOccurrence(
        id=f"projected-{rule.frequency}-{rule.id}-{n}",
        rule_id=rule.id,
        pot_id=rule.pot_id,
        user_id=rule.user_id,
        amount=rule.amount,
        date=occ_date,
        frequency=rule.frequency,
        description=rule.description,
    ))


def get_monthly_occurrences(rule, ledger, month_start, horizon_months=6):
    # first candidate lands in the current month (or the month after a future anchor)
    first = max(1, months_between(rule.anchor_date, month_start))
    occurrences = []
    for n in range(first, first + horizon_months):
        # computed from the anchor each time so a 31st does not drift to the 28th
        occ_date = add_months(rule.anchor_date, n)
        if _already_in_ledger(rule, occ_date, ledger):
            continue
        occurrences.append(_virtual(rule, occ_date, n))
    return occurrences


def get_weekly_occurrences(rule, month_start, horizon_weeks=26):
    # TODO: suppress weekly occurrences that the scheduler has already materialized, as monthly ones are
    days_since_anchor = (month_start - rule.anchor_date).days
    n = max(1, ceil(days_since_anchor / 7))
    occurrences = []
    for k in range(n, n + horizon_weeks):
        occ_date = advance_by_weeks_preserving_weekday(rule.anchor_date, k)
        occurrences.append(_virtual(rule, occ_date, k))
    return occurrences


def forecast_occurrences(recurring_rules, existing_ledger, today=None,
                         horizon_months=6, horizon_weeks=26):
    """Virtual future instances of every recurring rule.

    Occurrences from the start of the current month onwards are included, so
    the rest of this month still shows. Malformed rules are logged and skipped.
    """
    today = today or date.today()
    month_start = start_of_month(today)
    ledger = list(existing_ledger)

    projected = []
    for rule in valid_rules(recurring_rules):
        if rule.frequency == Frequency.MONTHLY:
            projected.extend(get_monthly_occurrences(rule, ledger, month_start, horizon_months))
        elif rule.frequency == Frequency.WEEKLY:
            projected.extend(get_weekly_occurrences(rule, month_start, horizon_weeks))

    return sorted(projected, key=lambda e: (e.date, e.occurrence.id))


def build_calendar(ledger, recurring_rules, today=None):
    """Real ledger rows and virtual occurrences in one date-ordered list."""
    ledger = list(ledger)
    entries = [RealEntry(tx) for tx in ledger]
    entries.extend(forecast_occurrences(recurring_rules, ledger, today=today))
    return sorted(entries, key=lambda e: (e.date, e.kind))


def upcoming_occurrences(conn, user_id, today=None):
    """Calendar for one user, falling back to an empty calendar on storage errors."""
    try:
        ledger = get_all_transactions(conn, user_id=user_id)
        rules = get_recurring_rules(conn, user_id=user_id)
    except Exception as e:
        logging.error(f"Calendar load failed for {user_id}: {e}")
        return []
    return build_calendar(ledger, rules, today=today)
