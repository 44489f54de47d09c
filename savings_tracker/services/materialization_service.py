"""
Materialization of due recurring rules.

Once per scheduler tick every recurring rule that falls due today becomes a
real ledger row. For each rule the ledger insert, the pot balance update and
the processed marker are written in one DuckDB transaction, and the marker
keyed by ``(rule id, date)`` makes any re-run for the same day a no-op.
"""
import logging
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List

from savings_tracker.db import get_db, transaction
from savings_tracker.models.domain import Frequency, LedgerTransaction
from savings_tracker.repositories.pots_repository import apply_pot_delta
from savings_tracker.repositories.processed_repository import (
    get_processed_marker,
    insert_processed_marker,
)
from savings_tracker.repositories.transactions_repository import (
    get_recurring_rules,
    insert_transaction,
)
from savings_tracker.utils.dates import as_date, occurrence_in_month, weekday_of
from savings_tracker.utils.money import format_money


@dataclass
class ProcessedItem:
    transaction_id: str
    rule_id: str
    user_id: str
    user_name: str
    pot_id: str
    pot_name: str
    amount: float
    description: str
    frequency: str
    new_total: float


@dataclass
class MaterializationResult:
    date: date
    processed: List[ProcessedItem] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)
    notifications: List[dict] = field(default_factory=list)

    def to_dict(self):
        return {
            "date": self.date.isoformat(),
            "processed": [vars(p) for p in self.processed],
            "errors": list(self.errors),
            "notifications": list(self.notifications),
        }


def is_due(rule, today: date) -> bool:
    """Weekly rules fall due on the anchor's weekday, monthly rules on its
    day-of-month (the last day for anchors past the end of a short month).
    Nothing is due on or before the anchor date: that occurrence is the rule's
    own ledger row.
    """
    if today <= rule.anchor_date:
        return False
    if rule.frequency == Frequency.WEEKLY:
        return weekday_of(today) == weekday_of(rule.anchor_date)
    if rule.frequency == Frequency.MONTHLY:
        return today == occurrence_in_month(rule.anchor_date, today)
    return False


def auto_description(rule):
    if rule.description:
        return f"{rule.description} (auto)"
    return "Auto-processed recurring payment"


def materialize_rule(conn, rule, today: date):
    """Write one occurrence of ``rule`` for ``today``; return its ProcessedItem.

    Returns None when the marker shows the occurrence was already handled.
    """
    if get_processed_marker(conn, rule.id, today) is not None:
        logging.info(f"Already processed: {rule.description or 'Payment'} ({rule.id})")
        return None

    tx = LedgerTransaction(
        id=str(uuid.uuid4()),
        user_id=rule.user_id,
        pot_id=rule.pot_id,
        amount=rule.amount,
        date=today,
        description=auto_description(rule),
        recurrence=Frequency.NONE,
        recurring_origin_id=rule.id,
        created_at=datetime.now(),
    )

    with transaction(conn):
        insert_transaction(conn, tx)
        new_total = apply_pot_delta(conn, rule.pot_id, rule.amount)
        insert_processed_marker(conn, rule.id, today, tx.id)

    logging.info(f"Processed: {format_money(rule.amount)} -> {rule.pot_name or rule.pot_id}")
    return ProcessedItem(
        transaction_id=tx.id,
        rule_id=rule.id,
        user_id=rule.user_id,
        user_name=rule.user_name or rule.user_id,
        pot_id=rule.pot_id,
        pot_name=rule.pot_name or rule.pot_id,
        amount=rule.amount,
        description=rule.description,
        frequency=rule.frequency,
        new_total=new_total,
    )


def process_recurring_transactions(conn, today=None):
    """Materialize every rule due on ``today``. One failing rule never stops the rest."""
    today = as_date(today) if today is not None else date.today()
    result = MaterializationResult(date=today)

    logging.info(f"Processing recurring transactions for {today.isoformat()} "
                 f"(weekday {weekday_of(today)}, day {today.day})")

    try:
        rules = get_recurring_rules(conn)
    except Exception as e:
        logging.error(f"Error loading recurring rules: {e}")
        result.errors.append({"rule_id": None, "error": str(e)})
        return result

    logging.info(f"Found {len(rules)} recurring rule(s)")

    for rule in rules:
        try:
            rule.validate()
            if not is_due(rule, today):
                continue
            logging.info(f"{rule.frequency.capitalize()} match: {rule.description or 'Payment'} ({rule.pot_name})")
            item = materialize_rule(conn, rule, today)
            if item is not None:
                result.processed.append(item)
        except Exception as e:
            logging.error(f"Error processing recurring rule {rule.id}: {e}")
            result.errors.append({"rule_id": rule.id, "error": str(e)})

    return result


def group_by_user(processed):
    grouped = OrderedDict()
    for item in processed:
        grouped.setdefault(item.user_id, []).append(item)
    return grouped


def build_notification(items):
    """Title and message summarising one user's materialized payments."""
    title = "Savings Updated"
    total = sum(i.amount for i in items)
    if len(items) == 1:
        item = items[0]
        message = (f"{format_money(item.amount)} added to {item.pot_name}\n"
                   f"New total: {format_money(item.new_total)}")
    else:
        details = "\n".join(f"• {format_money(i.amount)} → {i.pot_name} (now {format_money(i.new_total)})"
                            for i in items)
        message = f"{len(items)} recurring payments processed\nTotal: {format_money(total)}\n\n{details}"
    return title, message


def notify_processed_transactions(result, notifier):
    if not result.processed:
        logging.info("No transactions to notify about")
        return []

    outcomes = []
    for user_id, items in group_by_user(result.processed).items():
        title, message = build_notification(items)
        try:
            outcome = notifier.send_notification(user_id, title, message)
        except Exception as e:
            logging.error(f"Notification to {user_id} failed: {e}")
            outcome = {"success": False, "error": str(e)}
        outcomes.append({"user_id": user_id, **(outcome or {})})
    return outcomes


def run_materialization_cycle(conn=None, today=None, notifier=None, db_path=None):
    """Process all due rules, then notify each affected user once.

    Safe to call repeatedly for the same day; only the first call writes.
    """
    own_conn = conn is None
    if own_conn:
        conn = get_db(db_path)

    logging.info("Starting scheduled processing cycle")
    try:
        result = process_recurring_transactions(conn, today=today)
    finally:
        if own_conn:
            conn.close()

    logging.info(f"Processing summary: processed={len(result.processed)} errors={len(result.errors)}")

    if notifier is not None:
        result.notifications = notify_processed_transactions(result, notifier)

    logging.info("Processing cycle complete")
    return result
