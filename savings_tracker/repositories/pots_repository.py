from datetime import datetime

from savings_tracker.models.domain import NotFoundError, Pot

# -----------------------------
# Savings Pots Repository
# -----------------------------

POT_COLUMNS = """
    id, user_id, name, description, current_total,
    target_amount, interest_rate, color, created_at, updated_at
"""


def _row_to_pot(row):
    return Pot(
        id=row[0],
        user_id=row[1],
        name=row[2],
        description=row[3],
        current_total=row[4],
        target_amount=row[5],
        interest_rate=row[6],
        color=row[7],
        created_at=row[8],
        updated_at=row[9],
    )


def get_pot(conn, pot_id, user_id=None):
    """
    Returns the pot with the given id, or None.
    - user_id: optional, restricts the lookup to pots owned by that user
    """
    query = f"SELECT {POT_COLUMNS} FROM savings_pots WHERE id = ?"
    params = [pot_id]
    if user_id is not None:
        query += " AND user_id = ?"
        params.append(user_id)

    row = conn.execute(query, params).fetchone()
    return _row_to_pot(row) if row else None


def list_pots(conn, user_id=None):
    query = f"SELECT {POT_COLUMNS} FROM savings_pots"
    params = []
    if user_id is not None:
        query += " WHERE user_id = ?"
        params.append(user_id)
    query += " ORDER BY created_at DESC"
    return [_row_to_pot(r) for r in conn.execute(query, params).fetchall()]


def insert_pot(conn, pot: Pot):
    conn.execute(
        f"INSERT INTO savings_pots ({POT_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
        (pot.id, pot.user_id, pot.name, pot.description, pot.current_total,
         pot.target_amount, pot.interest_rate, pot.color, pot.created_at, pot.updated_at)
    )


def update_pot_details(conn, pot_id, name, description, target_amount, interest_rate, color):
    """
    Updates the descriptive fields of a pot. ``current_total`` is deliberately
    not settable here: balances only move through ``apply_pot_delta``.
    """
    conn.execute(
        """
        UPDATE savings_pots
        SET name = ?, description = ?, target_amount = ?, interest_rate = ?, color = ?, updated_at = ?
        WHERE id = ?
        """,
        (name, description, target_amount, interest_rate, color, datetime.now(), pot_id)
    )


def apply_pot_delta(conn, pot_id, delta):
    """
    Adds a signed ``delta`` to the pot's running balance and returns the new total.

    Every write path that changes the ledger (create, edit, delete, materialize)
    goes through this function so that ``current_total`` stays equal to the
    sum of the pot's ledger rows.
    """
    row = conn.execute("SELECT current_total FROM savings_pots WHERE id = ?", (pot_id,)).fetchone()
    if row is None:
        raise NotFoundError(f"Pot not found: {pot_id}")

    if delta:
        conn.execute(
            "UPDATE savings_pots SET current_total = current_total + ?, updated_at = ? WHERE id = ?",
            (delta, datetime.now(), pot_id)
        )
        row = conn.execute("SELECT current_total FROM savings_pots WHERE id = ?", (pot_id,)).fetchone()

    return row[0]


def delete_pot(conn, pot_id):
    conn.execute("DELETE FROM savings_pots WHERE id = ?", (pot_id,))
