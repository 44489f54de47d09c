import logging
import uuid
from datetime import datetime

from savings_tracker.db import transaction
from savings_tracker.models.domain import UNCHANGED, Frequency, LedgerTransaction, NotFoundError
from savings_tracker.repositories.pots_repository import apply_pot_delta, get_pot
from savings_tracker.repositories.processed_repository import delete_markers_for_rule
from savings_tracker.repositories.transactions_repository import (
    delete_transaction as repo_delete_transaction,
    get_all_transactions as repo_get_all_transactions,
    get_transaction_by_id as repo_get_transaction_by_id,
    insert_transaction as repo_insert_transaction,
    sum_pot_transactions,
    update_transaction as repo_update_transaction,
)
from savings_tracker.utils.dates import as_date
from savings_tracker.utils.money import parse_money


def _clean_recurrence(recurrence):
    recurrence = (recurrence or Frequency.NONE).lower()
    if recurrence not in Frequency.ALL:
        raise ValueError(f"recurrence must be one of {', '.join(Frequency.ALL)}")
    return recurrence


def get_all_transactions(conn, user_id=None, pot_id=None, start_date=None, end_date=None, limit=None):
    return repo_get_all_transactions(
        conn, user_id=user_id, pot_id=pot_id,
        start_date=start_date, end_date=end_date, limit=limit,
    )


def get_transaction(conn, transaction_id, user_id=None):
    tx = repo_get_transaction_by_id(conn, transaction_id, user_id=user_id)
    if tx is None:
        raise NotFoundError(f"Transaction not found: {transaction_id}")
    return tx


def add_transaction(conn, *, user_id, pot_id, amount, date,
                    description=None, recurrence=Frequency.NONE, recurring_origin_id=None):
    """Insert a ledger row and move the pot balance by its amount, atomically.

    A row with a weekly or monthly ``recurrence`` doubles as a recurring rule
    anchored on ``date``.
    """
    tx = LedgerTransaction(
        id=str(uuid.uuid4()),
        user_id=user_id,
        pot_id=pot_id,
        amount=float(parse_money(amount)),
        date=as_date(date),
        description=description or None,
        recurrence=_clean_recurrence(recurrence),
        recurring_origin_id=recurring_origin_id,
        created_at=datetime.now(),
    )

    with transaction(conn):
        if get_pot(conn, pot_id, user_id=user_id) is None:
            raise NotFoundError(f"Pot not found: {pot_id}")
        repo_insert_transaction(conn, tx)
        apply_pot_delta(conn, pot_id, tx.amount)

    logging.info(f"Transaction {tx.id} added to pot {pot_id} ({tx.amount:+.2f}, {tx.recurrence})")
    return tx


def update_transaction(conn, transaction_id, user_id, *, pot_id=None, amount=None,
                       date=None, description=UNCHANGED, recurrence=None):
    """Edit a ledger row; ``None`` leaves a field unchanged, except that a
    ``None`` description clears it.

    The balance change is applied as a delta: on the same pot it is
    ``new - old``; when the row moves pots the old pot loses the old amount
    and the new pot gains the new amount.
    """
    existing = get_transaction(conn, transaction_id, user_id=user_id)

    updated = LedgerTransaction(
        id=existing.id,
        user_id=existing.user_id,
        pot_id=pot_id or existing.pot_id,
        amount=float(parse_money(amount)) if amount is not None else existing.amount,
        date=as_date(date) if date is not None else existing.date,
        description=existing.description if description is UNCHANGED else (description or None),
        recurrence=_clean_recurrence(recurrence) if recurrence is not None else existing.recurrence,
        recurring_origin_id=existing.recurring_origin_id,
        created_at=existing.created_at,
    )

    with transaction(conn):
        if updated.pot_id != existing.pot_id:
            if get_pot(conn, updated.pot_id, user_id=user_id) is None:
                raise NotFoundError(f"Pot not found: {updated.pot_id}")
            repo_update_transaction(conn, updated)
            apply_pot_delta(conn, existing.pot_id, -existing.amount)
            apply_pot_delta(conn, updated.pot_id, updated.amount)
        else:
            repo_update_transaction(conn, updated)
            apply_pot_delta(conn, existing.pot_id, updated.amount - existing.amount)

    return updated


def delete_transaction(conn, transaction_id, user_id):
    """Remove a ledger row and take its amount back out of the pot.

    Deleting a recurring rule also drops its processed markers; rows it
    already materialized stay in the ledger.
    """
    existing = get_transaction(conn, transaction_id, user_id=user_id)

    with transaction(conn):
        if existing.is_recurring_origin:
            delete_markers_for_rule(conn, existing.id)
        repo_delete_transaction(conn, existing.id)
        apply_pot_delta(conn, existing.pot_id, -existing.amount)

    logging.info(f"Transaction {existing.id} deleted from pot {existing.pot_id}")
    return existing


def check_balance_invariant(conn, pot_id):
    """Compare a pot's running balance with the sum of its ledger rows."""
    pot = get_pot(conn, pot_id)
    if pot is None:
        raise NotFoundError(f"Pot not found: {pot_id}")
    ledger_total = sum_pot_transactions(conn, pot_id)
    return {
        "pot_id": pot_id,
        "current_total": pot.current_total,
        "ledger_total": ledger_total,
        "consistent": abs(pot.current_total - ledger_total) < 0.005,
    }


def recalculate_pot_total(conn, pot_id):
    """Bring a pot's running balance back in line with its ledger rows."""
    with transaction(conn):
        check = check_balance_invariant(conn, pot_id)
        drift = round(check["ledger_total"] - check["current_total"], 2)
        if drift:
            logging.warning(f"Pot {pot_id} balance drifted by {drift:+.2f}; correcting")
            apply_pot_delta(conn, pot_id, drift)
    return get_pot(conn, pot_id).current_total
