from savings_tracker.models.domain import Frequency, LedgerTransaction, RecurringRule

# -----------------------------
# Transactions Repository
# -----------------------------

TX_COLUMNS = """
    t.id, t.user_id, t.pot_id, t.amount, t.date,
    t.description, t.recurrence, t.recurring_origin_id, t.created_at
"""


def _row_to_transaction(row):
    return LedgerTransaction(
        id=row[0],
        user_id=row[1],
        pot_id=row[2],
        amount=row[3],
        date=row[4],
        description=row[5],
        recurrence=row[6],
        recurring_origin_id=row[7],
        created_at=row[8],
    )


def insert_transaction(conn, tx: LedgerTransaction):
    """
    Inserts a ledger row. Balance adjustment is the caller's job
    (see ``pots_repository.apply_pot_delta``).
    """
    conn.execute(
        """
        INSERT INTO transactions
        (id, user_id, pot_id, amount, date, description, recurrence, recurring_origin_id, created_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (tx.id, tx.user_id, tx.pot_id, tx.amount, tx.date, tx.description,
         tx.recurrence, tx.recurring_origin_id, tx.created_at)
    )
    return tx.id


def get_transaction_by_id(conn, transaction_id, user_id=None):
    query = f"SELECT {TX_COLUMNS} FROM transactions t WHERE t.id = ?"
    params = [transaction_id]
    if user_id is not None:
        query += " AND t.user_id = ?"
        params.append(user_id)
    row = conn.execute(query, params).fetchone()
    return _row_to_transaction(row) if row else None


def get_all_transactions(conn, user_id=None, pot_id=None, start_date=None, end_date=None, limit=None):
    """
    Returns ledger rows, newest first.
    - user_id / pot_id: optional filters
    - start_date / end_date: optional inclusive date range
    - limit: optional, max number of rows
    """
    query = f"SELECT {TX_COLUMNS} FROM transactions t"
    clauses = []
    params = []

    if user_id is not None:
        clauses.append("t.user_id = ?")
        params.append(user_id)
    if pot_id is not None:
        clauses.append("t.pot_id = ?")
        params.append(pot_id)
    if start_date is not None:
        clauses.append("t.date >= ?")
        params.append(start_date)
    if end_date is not None:
        clauses.append("t.date <= ?")
        params.append(end_date)

    if clauses:
        query += " WHERE " + " AND ".join(clauses)

    query += " ORDER BY t.date DESC, t.created_at DESC"

    if limit:
        query += " LIMIT ?"
        params.append(limit)

    rows = conn.execute(query, params).fetchall()
    return [_row_to_transaction(r) for r in rows]


def get_recurring_rules(conn, pot_id=None, user_id=None):
    """
    Returns every recurring rule joined with its pot and user names.
    Rows whose pot no longer exists are dropped by the join.
    """
    query = f"""
    SELECT {TX_COLUMNS}, sp.name AS pot_name, u.name AS user_name
    FROM transactions t
    JOIN savings_pots sp ON t.pot_id = sp.id
    LEFT JOIN users u ON t.user_id = u.id
    WHERE t.recurrence IN (?, ?)
    """
    params = [Frequency.WEEKLY, Frequency.MONTHLY]

    if pot_id is not None:
        query += " AND t.pot_id = ?"
        params.append(pot_id)
    if user_id is not None:
        query += " AND t.user_id = ?"
        params.append(user_id)

    query += " ORDER BY t.date, t.id"

    rules = []
    for row in conn.execute(query, params).fetchall():
        rule = RecurringRule.from_transaction(_row_to_transaction(row))
        rule.pot_name = row[9]
        rule.user_name = row[10]
        rules.append(rule)
    return rules


def update_transaction(conn, tx: LedgerTransaction):
    conn.execute(
        """
        UPDATE transactions
        SET pot_id = ?, amount = ?, date = ?, description = ?, recurrence = ?
        WHERE id = ?
        """,
        (tx.pot_id, tx.amount, tx.date, tx.description, tx.recurrence, tx.id)
    )


def delete_transaction(conn, transaction_id):
    conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))


def delete_pot_transactions(conn, pot_id):
    conn.execute("DELETE FROM transactions WHERE pot_id = ?", (pot_id,))


def sum_pot_transactions(conn, pot_id):
    return conn.execute(
        "SELECT COALESCE(SUM(amount), 0) FROM transactions WHERE pot_id = ?", (pot_id,)
    ).fetchone()[0]
