import json

import pytest

from pipescout.core.errors import QuotaPersistenceError
from pipescout.core.quota.ledger import JsonLedgerStore, MinuteWindow, QuotaLedger


def test_json_store_round_trip(tmp_path):
    store = JsonLedgerStore(tmp_path / "state" / "ledger.json")
    ledger = QuotaLedger()
    ledger.daily.reset("2024-05-01")
    ledger.daily.request_count = 7
    ledger.daily.estimated_cost_usd = 0.0123
    ledger.minute.timestamps = [10.0, 5.0]
    store.save(ledger)

    loaded = store.load()
    assert loaded is not None
    assert loaded.daily.date == "2024-05-01"
    assert loaded.daily.request_count == 7
    assert loaded.daily.estimated_cost_usd == pytest.approx(0.0123)
    assert loaded.minute.timestamps == [5.0, 10.0]
    assert loaded.last_updated
    assert not (tmp_path / "state" / "ledger.json.tmp").exists()


def test_json_store_missing_file_returns_none(tmp_path):
    assert JsonLedgerStore(tmp_path / "absent.json").load() is None


def test_json_store_corrupt_file_returns_none(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text("{not json", encoding="utf-8")
    assert JsonLedgerStore(path).load() is None
    path.write_text(json.dumps({"daily": {"request_count": "many"}}), encoding="utf-8")
    assert JsonLedgerStore(path).load() is None


def test_json_store_write_failure_is_raised(tmp_path):
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")
    store = JsonLedgerStore(blocker / "ledger.json")
    with pytest.raises(QuotaPersistenceError):
        store.save(QuotaLedger())


def test_minute_window_prune_is_strict():
    window = MinuteWindow(timestamps=[100.0, 130.0, 160.0])
    window.prune(160.0)
    assert window.timestamps == [130.0, 160.0]
    window.prune(190.0)
    assert window.timestamps == [160.0]
