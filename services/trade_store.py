# services/trade_store.py
import json
import logging
import uuid
import math
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Callable, Iterable, List, Optional, Set

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from core.coercion import now_ms
from core.config import settings
from core.exceptions import PersistenceLoadError
from db.kv_repository import KeyValueRepository
from db.session import SessionLocal
from schemas.trade_record import TradeRecord, TradeRecordCreate, TradeStats

logger = logging.getLogger(__name__)

_records_adapter = TypeAdapter(List[TradeRecord])


def format_fixed(value: float, places: int) -> str:
    """
    Redondeo a `places` decimales, mitad hacia fuera de cero (como toFixed en la UI).
    Igual que toFixed, a partir de 1e21 (o con inf) se devuelve la representación por defecto.
    """
    if not math.isfinite(value) or abs(value) >= 1e21:
        return repr(value)
    exact = Decimal(value)
    quantum = Decimal(1).scaleb(-places)
    with localcontext() as ctx:
        # Dígitos suficientes para la parte entera más los decimales pedidos
        ctx.prec = max(ctx.prec, exact.adjusted() + places + 2)
        return str(exact.quantize(quantum, rounding=ROUND_HALF_UP))


class TradeStore:
    """
    Diario de operaciones: colección ordenada (más reciente primero) con espejo
    persistente en un único slot clave-valor.

    Cada mutación reescribe el slot completo (write-through). Si esa escritura
    falla se loguea y la memoria manda hasta la siguiente escritura correcta.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal,
                 storage_key: str = settings.TRADES_STORAGE_KEY):
        self._session_factory = session_factory
        self.storage_key = storage_key
        self._trades: List[TradeRecord] = []
        logger.debug(f"TradeStore creado para slot '{storage_key}' (sin cargar).")

    # --- Persistencia ---
    def load(self) -> int:
        """
        Carga el slot al arrancar. Un estado corrupto o ilegible se descarta:
        el diario arranca vacío y solo queda constancia en el log.
        """
        try:
            self._trades = self._read_persisted()
        except PersistenceLoadError as e:
            logger.warning(f"Estado persistido descartado, el diario arranca vacío: {e}")
            self._trades = []
        logger.info(f"Diario cargado desde slot '{self.storage_key}': {len(self._trades)} operaciones.")
        return len(self._trades)

    def _read_persisted(self) -> List[TradeRecord]:
        db = self._session_factory()
        try:
            raw = KeyValueRepository(db=db).get_value(self.storage_key)
        except Exception as e:
            raise PersistenceLoadError(f"No se pudo leer el slot '{self.storage_key}': {e}") from e
        finally:
            db.close()

        if raw is None:
            return []
        try:
            records = _records_adapter.validate_json(raw)
        except ValidationError as e:
            raise PersistenceLoadError(f"Contenido inválido en '{self.storage_key}': {e.error_count()} errores de validación") from e
        return self._with_unique_ids(records, taken=set())

    def _flush(self) -> bool:
        """Reescribe la colección completa en el slot. Devuelve False si la escritura falló."""
        payload = json.dumps([t.model_dump(mode="json", by_alias=True) for t in self._trades])
        db = self._session_factory()
        try:
            KeyValueRepository(db=db).put(self.storage_key, payload)
            return True
        except Exception as e:
            logger.error(f"No se pudo persistir el diario ({len(self._trades)} operaciones); memoria y BD divergen: {e}")
            return False
        finally:
            db.close()

    # --- Lectura ---
    def list_trades(self) -> List[TradeRecord]:
        """Copia de la colección, más reciente primero."""
        return list(self._trades)

    def get(self, trade_id: str) -> Optional[TradeRecord]:
        return next((t for t in self._trades if t.id == trade_id), None)

    def __len__(self) -> int:
        return len(self._trades)

    # --- Mutaciones ---
    def add(self, partial: TradeRecordCreate) -> TradeRecord:
        """Alta manual: genera id y timestamp y antepone el registro."""
        record = TradeRecord(
            id=self._new_id(),
            timestamp=now_ms(),
            **partial.model_dump(),
        )
        self._trades = [record] + self._trades
        logger.info(f"Operación añadida: {record.symbol} {record.direction.value} PnL={record.pnl} (id={record.id})")
        self._flush()
        return record

    def delete(self, trade_id: str) -> bool:
        """Elimina por id. Si no existe no hace nada (no es un error)."""
        remaining = [t for t in self._trades if t.id != trade_id]
        if len(remaining) == len(self._trades):
            logger.info(f"Eliminar: id {trade_id} no está en el diario, nada que hacer.")
            return False
        self._trades = remaining
        logger.info(f"Operación eliminada: {trade_id}")
        self._flush()
        return True

    def import_batch(self, records: Iterable[TradeRecord]) -> int:
        """Antepone un lote ya construido manteniendo su orden interno."""
        taken = {t.id for t in self._trades}
        batch = self._with_unique_ids(list(records), taken=taken)
        self._trades = batch + self._trades
        logger.info(f"Importadas {len(batch)} operaciones. Total en diario: {len(self._trades)}")
        self._flush()
        return len(batch)

    def reset(self, confirm: Callable[[], bool]) -> bool:
        """
        Borra todo el diario solo si `confirm()` devuelve True.
        Si se rechaza, la colección (y su orden) queda intacta y no se escribe nada.
        """
        if not confirm():
            logger.info("Reset del diario cancelado por el usuario.")
            return False
        removed = len(self._trades)
        self._trades = []
        logger.warning(f"Diario reiniciado: {removed} operaciones eliminadas.")
        self._flush()
        return True

    # --- Estadísticas ---
    def compute_stats(self) -> TradeStats:
        total = len(self._trades)
        wins = len([t for t in self._trades if t.pnl > 0])
        win_rate_pct = (wins / total * 100) if total > 0 else 0.0
        total_pnl = sum((t.pnl for t in self._trades), 0.0)
        return TradeStats(
            total_trades=total,
            wins=wins,
            win_rate=format_fixed(win_rate_pct, 1),
            cumulative_profit=format_fixed(total_pnl, 2),
        )

    # --- Ids ---
    @staticmethod
    def _new_id() -> str:
        return str(uuid.uuid4())

    def _with_unique_ids(self, records: List[TradeRecord], taken: Set[str]) -> List[TradeRecord]:
        """Sustituye cualquier id repetido (contra `taken` o dentro del lote) por uno nuevo."""
        result = []
        for record in records:
            if record.id in taken:
                new_id = self._new_id()
                logger.warning(f"Id duplicado '{record.id}' reasignado a '{new_id}'.")
                record = record.model_copy(update={"id": new_id})
            taken.add(record.id)
            result.append(record)
        return result


# --- Instancia Singleton Global ---
trade_store_instance = TradeStore()

# --- Dependencia para FastAPI ---
def get_trade_store() -> TradeStore:
    return trade_store_instance

# --- Funciones de Ciclo de Vida para FastAPI ---
def startup_trade_store():
    """Función a llamar desde el lifespan startup de FastAPI."""
    logger.info("Cargando diario de operaciones desde el almacenamiento persistente...")
    trade_store_instance.load()
