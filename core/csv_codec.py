# core/csv_codec.py
"""
Codec CSV del diario de operaciones.

Formato de intercambio:

    Symbol,Direction,EntryPrice,ExitPrice,PnL,ROI,Timestamp
    BTCUSDT,Long,60000,61000,100,1.67,1717000000000

Sin comillas ni escapado: un campo con comas corrompe la fila. Se mantiene así
por compatibilidad con los ficheros ya exportados y solo se avisa en el log.
Ambas direcciones son funciones puras; leer/escribir ficheros es cosa del endpoint.
"""
import logging
import uuid
from datetime import date
from typing import List, Optional, Sequence

from pydantic import ValidationError

from core.coercion import coerce_number, coerce_timestamp, now_ms
from core.exceptions import ExportPreconditionError, FormatError
from schemas.trade_record import TradeRecord

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["Symbol", "Direction", "EntryPrice", "ExitPrice", "PnL", "ROI", "Timestamp"]
CSV_HEADER = ",".join(CSV_COLUMNS)
MIN_ROW_FIELDS = len(CSV_COLUMNS)
DEFAULT_EXPORT_PREFIX = "cryptoguard_trades_"


def format_number(value: float) -> str:
    """Conversión número -> texto por defecto: 60000.0 se escribe '60000', 1.67 queda '1.67'."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value)


def _encode_row(record: TradeRecord) -> str:
    fields = [
        record.symbol,
        record.direction.value,
        format_number(record.entry_price),
        format_number(record.exit_price),
        format_number(record.pnl),
        format_number(record.roi),
        str(record.timestamp),
    ]
    if "," in record.symbol:
        logger.warning(f"El símbolo '{record.symbol}' (id={record.id}) contiene comas; la fila exportada no se podrá reimportar.")
    return ",".join(fields)


def encode(records: Sequence[TradeRecord]) -> str:
    """Serializa el diario a CSV. Un diario vacío no es exportable."""
    if not records:
        raise ExportPreconditionError("No hay operaciones registradas para exportar.")
    rows = [CSV_HEADER] + [_encode_row(r) for r in records]
    return "\n".join(rows)


def decode(text: str, now: Optional[int] = None) -> List[TradeRecord]:
    """
    Interpreta un CSV exportado y devuelve los registros en el orden del fichero.

    Cada fila recibe un id nuevo (nunca se confía en ids ajenos). La importación
    es todo-o-nada: cualquier fila inválida aborta con FormatError.
    """
    rows = [row.strip() for row in text.split("\n")]
    rows = [row for row in rows if row]

    # Cabecera + al menos una fila de datos
    if len(rows) < 2:
        raise FormatError("El fichero CSV está vacío o tiene un formato incorrecto.")

    header = rows[0].split(",")
    if len(header) < 5 or header[0] != "Symbol" or header[4] != "PnL":
        raise FormatError("La cabecera del CSV no coincide. Importa un fichero exportado por esta aplicación.")

    import_time = now if now is not None else now_ms()
    records: List[TradeRecord] = []
    for line_no, row in enumerate(rows[1:], start=2):
        cols = row.split(",")
        if len(cols) < MIN_ROW_FIELDS:
            raise FormatError(f"Faltan datos en la fila {line_no}: se esperaban {MIN_ROW_FIELDS} campos y hay {len(cols)}.")
        try:
            records.append(TradeRecord(
                id=str(uuid.uuid4()), # Id nuevo para evitar colisiones con el diario actual
                symbol=cols[0],
                direction=cols[1],
                entry_price=coerce_number(cols[2]),
                exit_price=coerce_number(cols[3]),
                pnl=coerce_number(cols[4]),
                roi=coerce_number(cols[5]),
                timestamp=coerce_timestamp(cols[6], now=import_time),
            ))
        except ValidationError as e:
            logger.warning(f"Fila {line_no} inválida en la importación CSV: {e.errors()}")
            raise FormatError(f"Fila {line_no} inválida: el fichero puede estar dañado.") from e

    logger.info(f"CSV interpretado: {len(records)} operaciones.")
    return records


def export_filename(today: Optional[date] = None, prefix: str = DEFAULT_EXPORT_PREFIX) -> str:
    """Nombre del fichero exportado: prefijo fijo + fecha YYYY-MM-DD."""
    today = today or date.today()
    return f"{prefix}{today.isoformat()}.csv"
