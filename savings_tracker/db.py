import logging
from contextlib import contextmanager
from datetime import datetime

import duckdb

from savings_tracker.config import DEFAULT_DB_PATH, DEFAULT_USERS

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(message)s"


# -----------------------------
# Logging
# -----------------------------
def configure_logging(level="INFO", filename=None):
    # replaces any handler installed by messages logged before startup
    logging.basicConfig(
        filename=filename,
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        force=True,
    )


def log_info(msg):
    logging.info(msg)


def log_error(msg):
    logging.error(msg)


# -----------------------------
# Get a DB connection
# -----------------------------
def get_db(path=None):
    """
    Returns a new DuckDB connection.
    """
    return duckdb.connect(path or DEFAULT_DB_PATH)


@contextmanager
def transaction(conn):
    """Run the enclosed statements as one unit: commit on success, roll back on any error."""
    conn.begin()
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


# -----------------------------
# Initialize database schema
# -----------------------------
def init_db(conn=None, seed_users=None, path=None):
    own_conn = conn is None
    if own_conn:
        conn = get_db(path)
    try:
        # Users table
        conn.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id VARCHAR PRIMARY KEY,
            name VARCHAR NOT NULL,
            email VARCHAR,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """)
        log_info("Users table ensured.")

        # Savings pots table
        conn.execute("""
        CREATE TABLE IF NOT EXISTS savings_pots (
            id VARCHAR PRIMARY KEY,
            user_id VARCHAR NOT NULL,
            name VARCHAR NOT NULL,
            description VARCHAR,
            current_total DOUBLE NOT NULL DEFAULT 0,
            target_amount DOUBLE,
            interest_rate DOUBLE,
            color VARCHAR NOT NULL,
            created_at TIMESTAMP NOT NULL,
            updated_at TIMESTAMP NOT NULL
        );
        """)
        log_info("Savings pots table ensured.")

        # Transactions table (recurring rules are transactions with a recurrence)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS transactions (
            id VARCHAR PRIMARY KEY,
            user_id VARCHAR NOT NULL,
            pot_id VARCHAR NOT NULL,
            amount DOUBLE NOT NULL,
            date DATE NOT NULL,
            description VARCHAR,
            recurrence VARCHAR NOT NULL DEFAULT 'none'
                CHECK(recurrence IN ('none','weekly','monthly')),
            recurring_origin_id VARCHAR,
            created_at TIMESTAMP NOT NULL
        );
        """)
        log_info("Transactions table ensured.")

        # Processed markers
        conn.execute("""
        CREATE TABLE IF NOT EXISTS processed_recurring (
            id VARCHAR PRIMARY KEY,
            original_transaction_id VARCHAR NOT NULL,
            instance_date DATE NOT NULL,
            new_transaction_id VARCHAR NOT NULL,
            processed_at TIMESTAMP NOT NULL,
            UNIQUE(original_transaction_id, instance_date)
        );
        """)
        log_info("Processed recurring table ensured.")

        # Indexes
        # pot_id and date are updated in place and must stay unindexed
        conn.execute("CREATE INDEX IF NOT EXISTS idx_tx_user ON transactions(user_id);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_pots_user ON savings_pots(user_id);")
        log_info("Indexes created/ensured.")

        for user in (seed_users if seed_users is not None else DEFAULT_USERS):
            conn.execute(
                """
                INSERT INTO users (id, name, email, created_at)
                SELECT ?, ?, ?, ?
                WHERE NOT EXISTS (SELECT 1 FROM users WHERE id = ?)
                """,
                (user["id"], user["name"], user.get("email"), datetime.now(), user["id"])
            )
        log_info("Seed users ensured.")

    except Exception as e:
        log_error(f"Error initializing DB: {e}")
        raise
    finally:
        if own_conn:
            conn.close()
            log_info("Database setup complete and connection closed.")
