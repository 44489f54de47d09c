# -----------------------------
# Users Repository
# -----------------------------


def get_user(conn, user_id):
    """Return the user row as a dict, or None when the id is unknown."""
    row = conn.execute(
        "SELECT id, name, email FROM users WHERE id = ?",
        (user_id,)
    ).fetchone()
    if row:
        return {"id": row[0], "name": row[1], "email": row[2]}
    return None


def list_users(conn):
    """Return a list of all users as dicts."""
    rows = conn.execute("SELECT id, name, email FROM users ORDER BY name").fetchall()
    return [{"id": r[0], "name": r[1], "email": r[2]} for r in rows]
