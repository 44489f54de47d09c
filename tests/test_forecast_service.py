import logging
from datetime import date

from conftest import make_rule
from savings_tracker.models.domain import LedgerTransaction, RealEntry, VirtualEntry
from savings_tracker.services.forecast_dto import CalendarEntryDTO
from savings_tracker.services.forecast_service import build_calendar, forecast_occurrences, upcoming_occurrences

TODAY = date(2026, 3, 20)


def ledger_row(tx_id, on, pot_id="p1", recurrence="none", origin=None, amount=100.0):
    return LedgerTransaction(
        id=tx_id, user_id="alex", pot_id=pot_id, amount=amount, date=on,
        recurrence=recurrence, recurring_origin_id=origin,
    )


def dates(entries):
    return [e.date for e in entries]


def test_monthly_rule_surfaces_six_occurrences_from_current_month():
    rules = [make_rule(100.0, date(2026, 1, 15))]

    entries = forecast_occurrences(rules, [], today=TODAY)

    assert dates(entries) == [date(2026, m, 15) for m in range(3, 9)]
    assert entries[0].occurrence.id == "projected-monthly-r1-2"
    assert all(isinstance(e, VirtualEntry) and not e.editable for e in entries)


def test_old_anchor_still_surfaces_future_occurrences():
    rules = [make_rule(50.0, date(2024, 7, 5))]

    entries = forecast_occurrences(rules, [], today=TODAY)

    assert dates(entries) == [date(2026, m, 5) for m in range(3, 9)]


def test_future_anchor_starts_the_month_after():
    rules = [make_rule(50.0, date(2026, 5, 10))]

    entries = forecast_occurrences(rules, [], today=TODAY)

    assert dates(entries)[0] == date(2026, 6, 10)
    assert len(entries) == 6


def test_materialized_monthly_occurrence_is_not_shown_twice():
    rules = [make_rule(100.0, date(2026, 1, 15))]
    ledger = [
        ledger_row("auto-1", date(2026, 3, 15), origin="r1"),
        ledger_row("manual", date(2026, 4, 15)),
        ledger_row("other-pot", date(2026, 5, 15), pot_id="p2", origin="r1"),
    ]

    entries = forecast_occurrences(rules, ledger, today=TODAY)

    assert date(2026, 3, 15) not in dates(entries)
    assert date(2026, 4, 15) in dates(entries)
    assert date(2026, 5, 15) in dates(entries)
    assert len(entries) == 5


def test_recurring_flagged_row_on_same_day_suppresses():
    rules = [make_rule(100.0, date(2026, 1, 15))]
    ledger = [ledger_row("r9", date(2026, 6, 15), recurrence="monthly")]

    entries = forecast_occurrences(rules, ledger, today=TODAY)

    assert date(2026, 6, 15) not in dates(entries)


def test_weekly_rule_surfaces_26_occurrences_on_the_same_weekday():
    rules = [make_rule(10.0, date(2026, 1, 2), frequency="weekly")]
    ledger = [ledger_row("auto-1", date(2026, 3, 6), origin="r1")]

    entries = forecast_occurrences(rules, ledger, today=TODAY)

    assert len(entries) == 26
    assert entries[0].date == date(2026, 3, 6)
    assert all(e.date.weekday() == 4 for e in entries)
    assert entries[0].occurrence.id == "projected-weekly-r1-9"


def test_malformed_rules_are_skipped():
    rules = [
        make_rule(10.0, None, rule_id="broken"),
        make_rule(10.0, date(2026, 1, 2), frequency="daily", rule_id="daily"),
        make_rule(100.0, date(2026, 1, 15)),
    ]

    entries = forecast_occurrences(rules, [], today=TODAY)

    assert {e.occurrence.rule_id for e in entries} == {"r1"}


def test_calendar_mixes_real_and_virtual_entries():
    rules = [make_rule(100.0, date(2026, 1, 15))]
    ledger = [
        ledger_row("r1", date(2026, 1, 15), recurrence="monthly"),
        ledger_row("t2", date(2026, 3, 18), amount=25.0),
    ]

    calendar = build_calendar(ledger, rules, today=TODAY)

    assert isinstance(calendar[0], RealEntry)
    assert calendar[0].editable
    assert dates(calendar) == sorted(dates(calendar))
    dto = CalendarEntryDTO.from_entry(calendar[-1])
    assert dto.kind == "virtual"
    assert dto.editable is False
    assert dto.rule_id == "r1"


def test_calendar_falls_back_to_empty_on_storage_error(conn, caplog):
    conn.close()
    with caplog.at_level(logging.ERROR):
        entries = upcoming_occurrences(conn, "alex", today=TODAY)
    assert entries == []
    assert "Calendar load failed" in caplog.text
