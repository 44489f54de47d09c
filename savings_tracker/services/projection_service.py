"""
Monthly balance projection for savings pots.

``project`` is a pure function of a pot, its recurring rules and ``today``:
no storage access, no side effects. Month 0 is the stored balance verbatim;
every later month compounds the carried balance by the pot's monthly growth
multiplier and only then adds that month's recurring contributions.
"""
import logging
from datetime import date, timedelta

from savings_tracker.models.domain import Frequency, InvalidRuleError
from savings_tracker.models.projection_dto import ProjectionPoint, SavingsProjectionForecast
from savings_tracker.repositories.pots_repository import list_pots
from savings_tracker.repositories.transactions_repository import get_recurring_rules
from savings_tracker.utils.dates import (
    add_months,
    count_weekday_occurrences,
    end_of_month,
    occurrence_in_month,
    start_of_month,
    weekday_of,
)
from savings_tracker.utils.money import format_money

# Only ever used for summary text, never in balance arithmetic.
WEEKS_PER_MONTH_APPROX = 4.3


def valid_rules(rules, pot_id=None):
    """Yield well-formed rules (optionally for one pot); log and drop the rest."""
    for rule in rules:
        if pot_id is not None and rule.pot_id != pot_id:
            continue
        try:
            yield rule.validate()
        except InvalidRuleError as e:
            logging.warning(f"Skipping recurring rule {rule.id}: {e}")


def monthly_growth_multiplier(annual_rate_pct) -> float:
    if not annual_rate_pct:
        return 1.0
    return (1 + annual_rate_pct / 100) ** (1 / 12)


def _monthly_occurs(rule, window_start: date, window_end: date) -> bool:
    """Does the monthly rule fall inside a window lying within one month, after its anchor?"""
    occurrence = occurrence_in_month(rule.anchor_date, window_start)
    return window_start <= occurrence <= window_end and occurrence > rule.anchor_date


def _weekly_amount(rule, window_start: date, window_end: date) -> float:
    # the anchor day itself is the origin ledger row, so counting starts after it
    start = max(window_start, rule.anchor_date + timedelta(days=1))
    return rule.amount * count_weekday_occurrences(start, window_end, weekday_of(rule.anchor_date))


def monthly_total_for(monthly_rules, month_start: date) -> float:
    month_end = end_of_month(month_start)
    return sum(r.amount for r in monthly_rules if _monthly_occurs(r, month_start, month_end))


def outstanding_this_month(monthly_rules, today: date) -> float:
    """Monthly amounts whose day-of-month is still ahead of ``today`` this month."""
    tomorrow = today + timedelta(days=1)
    month_end = end_of_month(today)
    if tomorrow > month_end:
        return 0.0
    return sum(r.amount for r in monthly_rules if _monthly_occurs(r, tomorrow, month_end))


def weekly_total_for(weekly_rules, window_start: date, window_end: date) -> float:
    return sum(_weekly_amount(r, window_start, window_end) for r in weekly_rules)


def project(pot, recurring_rules, months_ahead=12, today=None) -> SavingsProjectionForecast:
    """Project ``pot``'s balance month by month.

    Args:
        pot: the pot whose ``current_total`` seeds month 0.
        recurring_rules: rules for any pots; only this pot's are used.
        months_ahead: number of future months after the current one.
        today: reference date, defaults to ``date.today()``.

    Returns:
        SavingsProjectionForecast with ``months_ahead + 1`` points (one when
        ``months_ahead <= 0``).
    """
    today = today or date.today()
    rules = list(valid_rules(recurring_rules, pot_id=pot.id))
    monthly_rules = [r for r in rules if r.frequency == Frequency.MONTHLY]
    weekly_rules = [r for r in rules if r.frequency == Frequency.WEEKLY]

    multiplier = monthly_growth_multiplier(pot.interest_rate)
    current_month = start_of_month(today)

    running = pot.current_total
    data = [ProjectionPoint(month=current_month, amount=running, projected=False)]
    target_date = None

    for i in range(1, max(months_ahead, 0) + 1):
        month_start = add_months(current_month, i)
        month_end = end_of_month(month_start)

        # growth accrues on the balance carried in, before new deposits
        running *= multiplier
        running += monthly_total_for(monthly_rules, month_start)
        running += weekly_total_for(weekly_rules, month_start, month_end)

        if i == 1:
            # catch-up for what is still due in the rest of the current month
            running += outstanding_this_month(monthly_rules, today)
            running += weekly_total_for(weekly_rules, today + timedelta(days=1), end_of_month(today))

        data.append(ProjectionPoint(month=month_start, amount=running, projected=True))

        if target_date is None and pot.target_amount and running >= pot.target_amount:
            target_date = month_start

    next_month = add_months(current_month, 1)
    monthly_contribution = (
        monthly_total_for(monthly_rules, next_month)
        + weekly_total_for(weekly_rules, next_month, end_of_month(next_month))
    )

    return SavingsProjectionForecast(
        pot_id=pot.id,
        data=data,
        monthly_contribution=monthly_contribution,
        target_date=target_date,
    )


def calculate_all_projections(pots, recurring_rules, months_ahead=12, today=None):
    return [project(pot, recurring_rules, months_ahead, today=today) for pot in pots]


def describe_recurring_commitment(recurring_rules) -> str:
    """Human-readable summary such as "£100.00 monthly + £20.00 weekly (≈ £186.00/month)"."""
    rules = list(valid_rules(recurring_rules))
    monthly = sum(r.amount for r in rules if r.frequency == Frequency.MONTHLY)
    weekly = sum(r.amount for r in rules if r.frequency == Frequency.WEEKLY)

    if not monthly and not weekly:
        return "No recurring contributions"

    parts = []
    if monthly:
        parts.append(f"{format_money(monthly)} monthly")
    if weekly:
        parts.append(f"{format_money(weekly)} weekly")
    approx = monthly + weekly * WEEKS_PER_MONTH_APPROX
    return f"{' + '.join(parts)} (≈ {format_money(approx)}/month)"


def load_projections(conn, user_id, months_ahead=12, today=None):
    """Read pots and rules for a user and project each pot.

    Storage failures are logged and yield an empty result so the UI can
    render an empty chart instead of an error page.
    """
    try:
        pots = list_pots(conn, user_id=user_id)
        rules = get_recurring_rules(conn, user_id=user_id)
    except Exception as e:
        logging.error(f"Projection load failed for {user_id}: {e}")
        return {"pots": [], "projections": []}

    return {
        "pots": pots,
        "projections": calculate_all_projections(pots, rules, months_ahead, today=today),
        "summary": describe_recurring_commitment(rules),
    }
