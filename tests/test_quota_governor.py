from datetime import date

import pytest

from pipescout.core.config import QuotaConfig
from pipescout.core.quota.governor import (
    LIMIT_DAILY_COST,
    LIMIT_DAILY_REQUESTS,
    LIMIT_MINUTE_RATE,
    LIMIT_SESSION_REQUESTS,
    QuotaGovernor,
)
from pipescout.core.quota.ledger import InMemoryLedgerStore, QuotaLedger


class FakeClock:
    def __init__(self, now=1_000_000.0, day=date(2024, 5, 1)):
        self.now = now
        self.day = day
        self.sleeps = []

    def time(self):
        return self.now

    def today(self):
        return self.day

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def _governor(clock, store=None, **limits):
    config = QuotaConfig(**limits)
    return QuotaGovernor(
        config,
        store if store is not None else InMemoryLedgerStore(),
        clock=clock.time,
        today=clock.today,
        sleep=clock.sleep,
    )


def test_fresh_governor_allows():
    gov = _governor(FakeClock())
    decision = gov.check()
    assert decision.allowed
    assert decision.snapshot["daily"]["requests"] == 0


def test_minute_window_denies_26th_then_recovers():
    clock = FakeClock()
    gov = _governor(clock)
    for _ in range(25):
        assert gov.check().allowed
        gov.record(100, 50)

    denied = gov.check()
    assert not denied.allowed
    assert denied.limit == LIMIT_MINUTE_RATE
    assert denied.wait_seconds == 60

    decision = gov.await_capacity()
    assert clock.sleeps == [60]
    assert decision.allowed


def test_minute_window_wait_counts_from_oldest_call():
    clock = FakeClock()
    gov = _governor(clock, requests_per_minute=2)
    gov.record()
    clock.now += 45
    gov.record()
    denied = gov.check()
    assert denied.limit == LIMIT_MINUTE_RATE
    assert denied.wait_seconds == 15


def test_minute_window_slides():
    clock = FakeClock()
    gov = _governor(clock, requests_per_minute=2)
    gov.record()
    clock.now += 30
    gov.record()
    clock.now += 31
    assert gov.check().allowed
    assert gov.stats()["minute_window"]["requests"] == 1


def test_limits_evaluated_in_priority_order():
    clock = FakeClock()
    gov = _governor(clock, requests_per_day=2, requests_per_session=2, requests_per_minute=2)
    gov.record()
    gov.record()
    assert gov.check().limit == LIMIT_DAILY_REQUESTS

    clock = FakeClock()
    gov = _governor(clock, cost_per_day_usd=0.001, requests_per_session=1)
    gov.record(10_000, 0)
    assert gov.check().limit == LIMIT_DAILY_COST

    clock = FakeClock()
    gov = _governor(clock, requests_per_session=1, requests_per_minute=1)
    gov.record()
    assert gov.check().limit == LIMIT_SESSION_REQUESTS


def test_non_minute_denials_are_not_waited_out():
    clock = FakeClock()
    gov = _governor(clock, requests_per_session=1)
    gov.record()
    decision = gov.await_capacity()
    assert not decision.allowed
    assert decision.limit == LIMIT_SESSION_REQUESTS
    assert clock.sleeps == []


def test_daily_window_rolls_over_on_new_date():
    clock = FakeClock()
    gov = _governor(clock, requests_per_day=1)
    gov.record(1000, 1000)
    assert gov.check().limit == LIMIT_DAILY_REQUESTS

    clock.day = date(2024, 5, 2)
    clock.now += 120
    decision = gov.check()
    assert decision.allowed
    assert decision.snapshot["daily"]["date"] == "2024-05-02"
    assert decision.snapshot["daily"]["requests"] == 0
    assert decision.snapshot["daily"]["estimated_cost_usd"] == 0


def test_cost_model():
    gov = _governor(FakeClock())
    assert gov.estimate_cost(1000, 1000) == pytest.approx(0.00075)
    gov.record(2000, 500)
    assert gov.stats()["daily"]["estimated_cost_usd"] == pytest.approx(0.0006)


def test_state_persists_but_session_starts_fresh():
    clock = FakeClock()
    store = InMemoryLedgerStore()
    gov = _governor(clock, store)
    gov.record(100, 100)
    gov.record(100, 100)
    assert store.saves == 2

    reloaded = _governor(clock, store)
    stats = reloaded.stats()
    assert stats["daily"]["requests"] == 2
    assert stats["session"]["requests"] == 0
    assert stats["minute_window"]["requests"] == 2


def test_reset_session_clears_session_counter():
    clock = FakeClock()
    store = InMemoryLedgerStore()
    gov = _governor(clock, store, requests_per_session=1)
    gov.record()
    assert gov.check().limit == LIMIT_SESSION_REQUESTS
    gov.reset_session()
    assert gov.check().allowed
    assert store.payload["session"]["request_count"] == 0


def test_snapshot_shape():
    stats = _governor(FakeClock()).stats()
    assert set(stats) == {"daily", "session", "minute_window", "limits"}
    assert stats["limits"] == {
        "requests_per_minute": 25,
        "requests_per_day": 500,
        "requests_per_session": 100,
        "cost_per_day_usd": 10.0,
    }


def test_stored_ledger_from_yesterday_starts_a_new_day():
    ledger = QuotaLedger()
    ledger.daily.reset("2024-04-30")
    ledger.daily.request_count = 500
    ledger.daily.estimated_cost_usd = 9.99
    store = InMemoryLedgerStore(ledger)

    gov = _governor(FakeClock(day=date(2024, 5, 1)), store)
    decision = gov.check()
    assert decision.allowed
    assert decision.snapshot["daily"]["requests"] == 0
    assert decision.snapshot["daily"]["date"] == "2024-05-01"


def test_stored_ledger_from_today_keeps_daily_limit():
    ledger = QuotaLedger()
    ledger.daily.reset("2024-05-01")
    ledger.daily.request_count = 500
    gov = _governor(FakeClock(day=date(2024, 5, 1)), InMemoryLedgerStore(ledger))
    assert gov.check().limit == LIMIT_DAILY_REQUESTS
