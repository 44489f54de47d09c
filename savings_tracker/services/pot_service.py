import logging
import uuid
from datetime import datetime

from savings_tracker.db import transaction
from savings_tracker.models.domain import UNCHANGED, LedgerTransaction, NotFoundError, Pot
from savings_tracker.repositories.pots_repository import (
    apply_pot_delta,
    delete_pot as repo_delete_pot,
    get_pot as repo_get_pot,
    insert_pot,
    list_pots as repo_list_pots,
    update_pot_details,
)
from savings_tracker.repositories.processed_repository import delete_markers_for_pot
from savings_tracker.repositories.transactions_repository import (
    delete_pot_transactions,
    insert_transaction,
)
from savings_tracker.utils.money import parse_money

DEFAULT_COLOR = "#1976d2"


def _validate_rate(interest_rate):
    if interest_rate is None:
        return None
    rate = float(interest_rate)
    if rate < 0 or rate > 100:
        raise ValueError("interest rate must be between 0 and 100")
    return rate


def _validate_target(target_amount):
    if target_amount is None:
        return None
    target = float(parse_money(target_amount))
    if target < 0:
        raise ValueError("target amount cannot be negative")
    return target


def _record_adjustment(conn, pot, amount, description):
    insert_transaction(conn, LedgerTransaction(
        id=str(uuid.uuid4()),
        user_id=pot.user_id,
        pot_id=pot.id,
        amount=amount,
        date=datetime.now().date(),
        description=description,
        created_at=datetime.now(),
    ))
    return apply_pot_delta(conn, pot.id, amount)


def list_pots(conn, user_id=None):
    return repo_list_pots(conn, user_id=user_id)


def get_pot(conn, pot_id, user_id=None):
    pot = repo_get_pot(conn, pot_id, user_id=user_id)
    if pot is None:
        raise NotFoundError(f"Pot not found: {pot_id}")
    return pot


def create_pot(conn, *, user_id, name, current_total=0, color=None, description=None,
               target_amount=None, interest_rate=None):
    """Create a pot. A non-zero opening balance is booked as an opening ledger row."""
    if not name or not name.strip():
        raise ValueError("pot name is required")

    opening = float(parse_money(current_total))
    now = datetime.now()
    pot = Pot(
        id=str(uuid.uuid4()),
        user_id=user_id,
        name=name.strip(),
        current_total=0.0,
        color=color or DEFAULT_COLOR,
        description=description or None,
        target_amount=_validate_target(target_amount),
        interest_rate=_validate_rate(interest_rate),
        created_at=now,
        updated_at=now,
    )

    with transaction(conn):
        insert_pot(conn, pot)
        if opening:
            pot.current_total = _record_adjustment(conn, pot, opening, "Opening balance")

    logging.info(f"Pot {pot.id} created for {user_id} with opening balance {opening:.2f}")
    return pot


def update_pot(conn, pot_id, user_id, *, name=None, description=UNCHANGED, target_amount=UNCHANGED,
               interest_rate=UNCHANGED, color=None, current_total=None):
    """Update pot details.

    Description, target and interest rate are cleared by passing None and
    kept by leaving them out.

    A new ``current_total`` is never written directly: the difference is
    booked as a "Balance adjustment" ledger row.
    """
    pot = get_pot(conn, pot_id, user_id=user_id)

    with transaction(conn):
        update_pot_details(
            conn,
            pot_id,
            name=(name.strip() if name else pot.name),
            description=pot.description if description is UNCHANGED else (description or None),
            target_amount=pot.target_amount if target_amount is UNCHANGED else _validate_target(target_amount),
            interest_rate=pot.interest_rate if interest_rate is UNCHANGED else _validate_rate(interest_rate),
            color=color or pot.color,
        )
        if current_total is not None:
            delta = float(parse_money(current_total)) - pot.current_total
            if delta:
                _record_adjustment(conn, pot, round(delta, 2), "Balance adjustment")

    return get_pot(conn, pot_id)


def delete_pot(conn, pot_id, user_id):
    pot = get_pot(conn, pot_id, user_id=user_id)
    with transaction(conn):
        delete_markers_for_pot(conn, pot_id)
        delete_pot_transactions(conn, pot_id)
        repo_delete_pot(conn, pot_id)
    logging.info(f"Pot {pot_id} deleted with its transactions")
    return pot
