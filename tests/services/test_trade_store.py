# tests/services/test_trade_store.py
import json
import logging
from unittest.mock import MagicMock, patch

import pytest
from pydantic import ValidationError

from core.csv_codec import decode, encode
from db.kv_repository import KeyValueRepository
from schemas.trade_record import TradeDirection, TradeRecord, TradeRecordCreate
from services.trade_store import TradeStore, format_fixed

def _create(symbol="BTCUSDT", direction="Long", pnl=10.0, **kwargs) -> TradeRecordCreate:
    return TradeRecordCreate(symbol=symbol, direction=direction, entry_price=100, exit_price=110, pnl=pnl, roi=1.0, **kwargs)

def _raw_slot(session_factory, key="test_trades"):
    db = session_factory()
    try:
        return KeyValueRepository(db=db).get_value(key)
    finally:
        db.close()

def _write_slot(session_factory, value, key="test_trades"):
    db = session_factory()
    try:
        KeyValueRepository(db=db).put(key, value)
    finally:
        db.close()

# --- add ---
def test_add_prepends_and_generates_id_and_timestamp(trade_store):
    first = trade_store.add(_create(symbol="BTCUSDT"))
    second = trade_store.add(_create(symbol="ETHUSDT"))

    trades = trade_store.list_trades()
    assert [t.symbol for t in trades] == ["ETHUSDT", "BTCUSDT"]
    assert first.id and second.id and first.id != second.id
    assert second.timestamp >= first.timestamp > 0

def test_add_coerces_invalid_numbers_to_zero(trade_store):
    record = trade_store.add(TradeRecordCreate(symbol="SOLUSDT", direction="Short",
                                               entry_price="abc", exit_price="", pnl=None, roi="2.5"))
    assert record.entry_price == 0.0
    assert record.exit_price == 0.0
    assert record.pnl == 0.0
    assert record.roi == 2.5
    assert record.direction == TradeDirection.SHORT

@pytest.mark.parametrize("payload", [
    {"symbol": "", "direction": "Long"},
    {"symbol": "   ", "direction": "Long"},
    {"symbol": "BTCUSDT", "direction": "Up"},
])
def test_create_schema_rejects_invalid_symbol_or_direction(payload):
    with pytest.raises(ValidationError):
        TradeRecordCreate(**payload)

def test_records_are_immutable(trade_store):
    record = trade_store.add(_create())
    with pytest.raises(ValidationError):
        record.pnl = 999

def test_add_is_persisted(trade_store, session_factory):
    record = trade_store.add(_create(symbol="BTCUSDT"))

    reloaded = TradeStore(session_factory=session_factory, storage_key="test_trades")
    assert reloaded.load() == 1
    assert reloaded.list_trades() == [record]

    # Formato del slot: lista JSON con claves camelCase
    stored = json.loads(_raw_slot(session_factory))
    assert stored[0]["entryPrice"] == 100
    assert stored[0]["id"] == record.id

# --- delete ---
def test_delete_removes_only_matching_record(trade_store):
    keep = trade_store.add(_create(symbol="KEEP"))
    drop = trade_store.add(_create(symbol="DROP"))

    assert trade_store.delete(drop.id) is True
    assert trade_store.list_trades() == [keep]

def test_delete_absent_id_is_noop(trade_store, session_factory):
    trade_store.add(_create())
    before = trade_store.list_trades()
    raw_before = _raw_slot(session_factory)

    assert trade_store.delete("does-not-exist") is False
    assert trade_store.list_trades() == before
    assert _raw_slot(session_factory) == raw_before

# --- import ---
def test_import_batch_prepends_preserving_order(trade_store, btc_record):
    existing = trade_store.add(_create(symbol="OLD"))
    batch = decode(encode([btc_record, btc_record.model_copy(update={"id": "other", "symbol": "ETHUSDT"})]))

    assert trade_store.import_batch(batch) == 2
    assert [t.symbol for t in trade_store.list_trades()] == ["BTCUSDT", "ETHUSDT", "OLD"]
    assert trade_store.list_trades()[-1] == existing

def test_ids_unique_after_import_and_add(trade_store, btc_record):
    trade_store.add(_create(symbol="A"))
    trade_store.add(_create(symbol="B"))
    trade_store.import_batch(decode(encode([btc_record] * 5)))
    trade_store.add(_create(symbol="C"))

    ids = [t.id for t in trade_store.list_trades()]
    assert len(ids) == 8
    assert len(set(ids)) == len(ids)

def test_import_batch_reassigns_colliding_ids(trade_store, btc_record, caplog):
    existing = trade_store.add(_create())
    clash = btc_record.model_copy(update={"id": existing.id})

    with caplog.at_level(logging.WARNING):
        trade_store.import_batch([clash, clash])

    ids = [t.id for t in trade_store.list_trades()]
    assert len(set(ids)) == 3
    assert ids[-1] == existing.id
    assert "Id duplicado" in caplog.text

# --- reset ---
def test_reset_declined_leaves_everything_untouched(trade_store, session_factory):
    for symbol in ("A", "B", "C"):
        trade_store.add(_create(symbol=symbol))
    before = trade_store.list_trades()
    raw_before = _raw_slot(session_factory)
    confirm = MagicMock(return_value=False)

    assert trade_store.reset(confirm=confirm) is False
    confirm.assert_called_once()
    assert trade_store.list_trades() == before
    assert _raw_slot(session_factory) == raw_before

def test_reset_accepted_empties_store_and_slot(trade_store, session_factory):
    trade_store.add(_create())
    trade_store.add(_create())

    assert trade_store.reset(confirm=lambda: True) is True
    assert trade_store.list_trades() == []
    assert json.loads(_raw_slot(session_factory)) == []

    reloaded = TradeStore(session_factory=session_factory, storage_key="test_trades")
    assert reloaded.load() == 0

# --- stats ---
def test_stats_empty_store(trade_store):
    stats = trade_store.compute_stats()
    assert stats.total_trades == 0
    assert stats.win_rate == "0.0"
    assert stats.cumulative_profit == "0.00"

def test_stats_all_winners(trade_store):
    for pnl in (10, 20.5, 0.01):
        trade_store.add(_create(pnl=pnl))
    stats = trade_store.compute_stats()
    assert stats.win_rate == "100.0"
    assert stats.wins == 3
    assert stats.cumulative_profit == "30.51"

def test_stats_mixed_and_idempotent(trade_store):
    for pnl in (100, -50, 0):  # pnl == 0 no cuenta como ganadora
        trade_store.add(_create(pnl=pnl))

    first = trade_store.compute_stats()
    assert first.total_trades == 3
    assert first.wins == 1
    assert first.win_rate == "33.3"
    assert first.cumulative_profit == "50.00"
    assert trade_store.compute_stats() == first

def test_stats_serialize_with_camel_case_keys(trade_store):
    trade_store.add(_create(pnl=-12.346))
    data = trade_store.compute_stats().model_dump(by_alias=True)
    assert data == {"totalTrades": 1, "wins": 0, "winRate": "0.0", "cumulativeProfit": "-12.35"}

@pytest.mark.parametrize("value, places, expected", [
    (0.125, 2, "0.13"),
    (-0.125, 2, "-0.13"),
    (200 / 3, 1, "66.7"),
    (100.0, 1, "100.0"),
    (0.0, 2, "0.00"),
    (1e20, 2, "100000000000000000000.00"),
    (1e21, 2, "1e+21"),
    (float("inf"), 2, "inf"),
])
def test_format_fixed(value, places, expected):
    assert format_fixed(value, places) == expected

def test_stats_with_huge_pnl_does_not_crash(trade_store):
    trade_store.add(_create(pnl=1e30))
    stats = trade_store.compute_stats()
    assert stats.win_rate == "100.0"
    assert stats.cumulative_profit == "1e+30"

def test_stats_with_overflowing_sum_does_not_crash(trade_store):
    trade_store.add(_create(pnl=1.7e308))
    trade_store.add(_create(pnl=1.7e308))
    stats = trade_store.compute_stats()
    assert stats.total_trades == 2
    assert stats.cumulative_profit == "inf"

# --- load (fail-open) ---
def test_load_without_slot_starts_empty(trade_store):
    assert trade_store.list_trades() == []

@pytest.mark.parametrize("raw", ["{not json", '{"a": 1}', '[{"id": "x"}]', '[{"id": "x", "symbol": "B", "direction": "Up", "timestamp": 1}]'])
def test_load_corrupt_slot_starts_empty_and_logs(session_factory, raw, caplog):
    _write_slot(session_factory, raw)
    store = TradeStore(session_factory=session_factory, storage_key="test_trades")

    with caplog.at_level(logging.WARNING):
        assert store.load() == 0
    assert store.list_trades() == []
    assert "descartado" in caplog.text

def test_load_database_error_starts_empty():
    broken_factory = MagicMock(side_effect=None)
    broken_factory.return_value.query.side_effect = Exception("Simulated DB Error!")
    store = TradeStore(session_factory=broken_factory, storage_key="test_trades")

    assert store.load() == 0
    broken_factory.return_value.close.assert_called_once()

def test_load_accepts_browser_format_and_repairs_nulls(session_factory):
    raw = json.dumps([
        {"id": "a", "symbol": "BTCUSDT", "direction": "Long", "entryPrice": 60000, "exitPrice": 61000,
         "pnl": 100, "roi": 1.67, "timestamp": 1717000000000},
        {"id": "b", "symbol": "ETHUSDT", "direction": "Short", "entryPrice": None, "exitPrice": 3000,
         "pnl": None, "roi": 0, "timestamp": 1716000000000},
    ])
    _write_slot(session_factory, raw)
    store = TradeStore(session_factory=session_factory, storage_key="test_trades")

    assert store.load() == 2
    first, second = store.list_trades()
    assert first.entry_price == 60000.0 and first.roi == 1.67
    assert second.entry_price == 0.0 and second.pnl == 0.0

def test_load_repairs_duplicate_persisted_ids(session_factory):
    record = {"id": "dup", "symbol": "BTCUSDT", "direction": "Long", "entryPrice": 1, "exitPrice": 2,
              "pnl": 1, "roi": 1, "timestamp": 1}
    _write_slot(session_factory, json.dumps([record, record]))
    store = TradeStore(session_factory=session_factory, storage_key="test_trades")

    store.load()
    ids = [t.id for t in store.list_trades()]
    assert ids[0] == "dup"
    assert len(set(ids)) == 2

# --- flush ---
def test_failed_flush_keeps_memory_state_and_logs(trade_store, caplog):
    with patch('services.trade_store.KeyValueRepository') as MockRepo:
        MockRepo.return_value.put.side_effect = Exception("Simulated DB Error!")
        with caplog.at_level(logging.ERROR):
            record = trade_store.add(_create(symbol="MEMONLY"))

    assert trade_store.list_trades() == [record]
    assert "divergen" in caplog.text

def test_load_keeps_records_with_long_symbols(session_factory):
    long_symbol = "1000PEPEUSDT-PERPETUAL-QUARTERLY-CONTRACT"
    record = {"id": "long", "symbol": long_symbol, "direction": "Short", "entryPrice": 1, "exitPrice": 2,
              "pnl": -1, "roi": -1, "timestamp": 1}
    _write_slot(session_factory, json.dumps([record]))
    store = TradeStore(session_factory=session_factory, storage_key="test_trades")

    assert store.load() == 1
    assert store.list_trades()[0].symbol == long_symbol
