from datetime import date

import pytest

from savings_tracker.models.domain import NotFoundError
from savings_tracker.repositories.processed_repository import list_processed_markers
from savings_tracker.services.materialization_service import run_materialization_cycle
from savings_tracker.services.pot_service import create_pot, delete_pot, get_pot, update_pot
from savings_tracker.services.transaction_service import (
    add_transaction,
    check_balance_invariant,
    delete_transaction,
    get_all_transactions,
    recalculate_pot_total,
    update_transaction,
)


@pytest.fixture
def holiday(conn):
    return create_pot(conn, user_id="alex", name="Holiday", current_total=250)


def assert_consistent(conn, *pots):
    for pot in pots:
        assert check_balance_invariant(conn, pot.id)["consistent"]


def test_opening_balance_is_a_ledger_row(conn, holiday):
    rows = get_all_transactions(conn, pot_id=holiday.id)

    assert holiday.current_total == 250.0
    assert [r.description for r in rows] == ["Opening balance"]
    assert_consistent(conn, holiday)


def test_empty_pot_has_no_ledger_rows(conn):
    pot = create_pot(conn, user_id="alex", name="  Spare  ")
    assert pot.name == "Spare"
    assert get_all_transactions(conn, pot_id=pot.id) == []


def test_add_edit_delete_keep_balance_in_step(conn, holiday):
    tx = add_transaction(conn, user_id="alex", pot_id=holiday.id, amount="40.50", date="2026-03-02")
    assert get_pot(conn, holiday.id).current_total == 290.5

    update_transaction(conn, tx.id, "alex", amount=-10)
    assert get_pot(conn, holiday.id).current_total == 240.0
    assert_consistent(conn, holiday)

    delete_transaction(conn, tx.id, "alex")
    assert get_pot(conn, holiday.id).current_total == 250.0
    assert_consistent(conn, holiday)


def test_moving_a_transaction_between_pots(conn, holiday):
    car = create_pot(conn, user_id="alex", name="Car", current_total=100)
    tx = add_transaction(conn, user_id="alex", pot_id=holiday.id, amount=30, date=date(2026, 3, 2))

    update_transaction(conn, tx.id, "alex", pot_id=car.id, amount=45)

    assert get_pot(conn, holiday.id).current_total == 250.0
    assert get_pot(conn, car.id).current_total == 145.0
    assert_consistent(conn, holiday, car)


def test_balance_adjustment_is_booked(conn, holiday):
    pot = update_pot(conn, holiday.id, "alex", current_total=300, target_amount=1000)

    assert pot.current_total == 300.0
    assert pot.target_amount == 1000.0
    assert "Balance adjustment" in [r.description for r in get_all_transactions(conn, pot_id=pot.id)]
    assert_consistent(conn, pot)


def test_pot_validation(conn):
    with pytest.raises(ValueError):
        create_pot(conn, user_id="alex", name="Rate", interest_rate=150)
    with pytest.raises(ValueError):
        create_pot(conn, user_id="alex", name="Target", target_amount=-5)
    with pytest.raises(ValueError):
        create_pot(conn, user_id="alex", name=" ")


def test_invalid_recurrence_is_rejected(conn, holiday):
    with pytest.raises(ValueError):
        add_transaction(conn, user_id="alex", pot_id=holiday.id, amount=5,
                        date="2026-03-02", recurrence="yearly")


def test_other_users_pot_is_not_found(conn, holiday):
    with pytest.raises(NotFoundError):
        add_transaction(conn, user_id="beth", pot_id=holiday.id, amount=5, date="2026-03-02")
    assert get_pot(conn, holiday.id).current_total == 250.0


def test_other_users_transaction_cannot_be_deleted(conn, holiday):
    tx = add_transaction(conn, user_id="alex", pot_id=holiday.id, amount=5, date="2026-03-02")
    with pytest.raises(NotFoundError):
        delete_transaction(conn, tx.id, "beth")


def test_deleting_pot_removes_rows_and_markers(conn, holiday):
    rule = add_transaction(conn, user_id="alex", pot_id=holiday.id, amount=20,
                           date=date(2026, 1, 15), recurrence="monthly")
    run_materialization_cycle(conn, today=date(2026, 2, 15))
    assert len(list_processed_markers(conn, rule.id)) == 1

    delete_pot(conn, holiday.id, "alex")

    assert get_all_transactions(conn, pot_id=holiday.id) == []
    assert list_processed_markers(conn, rule.id) == []
    with pytest.raises(NotFoundError):
        get_pot(conn, holiday.id)


def test_recalculate_repairs_drifted_balance(conn, holiday):
    conn.execute("UPDATE savings_pots SET current_total = 999 WHERE id = ?", (holiday.id,))
    assert not check_balance_invariant(conn, holiday.id)["consistent"]

    assert recalculate_pot_total(conn, holiday.id) == 250.0
    assert_consistent(conn, holiday)


def test_optional_pot_fields_can_be_cleared(conn):
    pot = create_pot(conn, user_id="alex", name="House", description="Deposit",
                     target_amount=20000, interest_rate=4.5)

    pot = update_pot(conn, pot.id, "alex", target_amount=None)

    assert pot.target_amount is None
    assert pot.interest_rate == 4.5
    assert pot.description == "Deposit"


def test_transaction_description_can_be_cleared(conn, holiday):
    tx = add_transaction(conn, user_id="alex", pot_id=holiday.id, amount=5,
                         date="2026-03-02", description="Birthday money")

    assert update_transaction(conn, tx.id, "alex", amount=6).description == "Birthday money"
    assert update_transaction(conn, tx.id, "alex", description=None).description is None
