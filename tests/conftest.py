# tests/conftest.py
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models.kv_slot_model import Base
from schemas.trade_record import TradeRecord
from services.trade_store import TradeStore

@pytest.fixture
def session_factory():
    """SQLite en memoria compartida entre sesiones (StaticPool) con las tablas creadas."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()

@pytest.fixture
def trade_store(session_factory):
    store = TradeStore(session_factory=session_factory, storage_key="test_trades")
    store.load()
    return store

@pytest.fixture
def btc_record():
    return TradeRecord(
        id="btc-1", symbol="BTCUSDT", direction="Long",
        entry_price=60000, exit_price=61000, pnl=100, roi=1.67,
        timestamp=1717000000000,
    )
