import logging
from datetime import date

import pytest

from savings_tracker.db import get_db, init_db
from savings_tracker.models.domain import Pot, RecurringRule


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "savings.duckdb")


@pytest.fixture
def conn(db_path):
    conn = get_db(db_path)
    init_db(conn)
    yield conn
    conn.close()


@pytest.fixture
def app_logging():
    """Drop the root handlers installed by app startup once the test is done."""
    root = logging.getLogger()
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)


def make_pot(current_total=500.0, interest_rate=None, target_amount=None, pot_id="p1"):
    return Pot(
        id=pot_id,
        user_id="alex",
        name="Holiday",
        current_total=current_total,
        interest_rate=interest_rate,
        target_amount=target_amount,
    )


def make_rule(amount, anchor, frequency="monthly", rule_id="r1", pot_id="p1", description=None):
    return RecurringRule(
        id=rule_id,
        pot_id=pot_id,
        user_id="alex",
        amount=amount,
        anchor_date=anchor,
        frequency=frequency,
        description=description,
    )


class RecordingNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def send_notification(self, user_id, title, message, extra_data=None):
        if self.fail:
            raise RuntimeError("notify service unreachable")
        self.sent.append((user_id, title, message))
        return {"success": True}


# 2026-03-20 is a Friday
FRIDAY = date(2026, 3, 20)
