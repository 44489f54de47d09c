import uuid
from datetime import datetime

from savings_tracker.models.domain import ProcessedMarker

# -----------------------------
# Processed Recurring Repository
# -----------------------------


def get_processed_marker(conn, rule_id, occurrence_date):
    """
    Returns the marker for ``(rule_id, occurrence_date)`` or None.
    """
    row = conn.execute(
        """
        SELECT original_transaction_id, instance_date, new_transaction_id
        FROM processed_recurring
        WHERE original_transaction_id = ? AND instance_date = ?
        """,
        (rule_id, occurrence_date)
    ).fetchone()

    if row:
        return ProcessedMarker(
            rule_id=row[0],
            occurrence_date=row[1],
            materialized_transaction_id=row[2]
        )
    return None


def insert_processed_marker(conn, rule_id, occurrence_date, transaction_id):
    """
    Records that the rule's occurrence on ``occurrence_date`` has been
    materialized. The table's UNIQUE constraint rejects a second marker.
    """
    conn.execute(
        """
        INSERT INTO processed_recurring
        (id, original_transaction_id, instance_date, new_transaction_id, processed_at)
        VALUES (?, ?, ?, ?, ?)
        """,
        (str(uuid.uuid4()), rule_id, occurrence_date, transaction_id, datetime.now())
    )


def list_processed_markers(conn, rule_id=None):
    query = """
        SELECT original_transaction_id, instance_date, new_transaction_id
        FROM processed_recurring
    """
    params = []
    if rule_id is not None:
        query += " WHERE original_transaction_id = ?"
        params.append(rule_id)
    query += " ORDER BY instance_date"

    return [
        ProcessedMarker(rule_id=r[0], occurrence_date=r[1], materialized_transaction_id=r[2])
        for r in conn.execute(query, params).fetchall()
    ]


def delete_markers_for_rule(conn, rule_id):
    conn.execute("DELETE FROM processed_recurring WHERE original_transaction_id = ?", (rule_id,))


def delete_markers_for_pot(conn, pot_id):
    conn.execute(
        """
        DELETE FROM processed_recurring
        WHERE original_transaction_id IN (SELECT id FROM transactions WHERE pot_id = ?)
        """,
        (pot_id,)
    )
