# core/coercion.py
"""
Conversión numérica "best-effort" usada por el diario y por el codec CSV.
Un valor no numérico nunca rechaza el registro: se sustituye por un valor por defecto.
"""
import math
import time
from typing import Any, Optional


def coerce_number(value: Any, default: float = 0.0) -> float:
    """
    Convierte `value` a float finito. None, cadenas vacías o no numéricas,
    NaN e infinitos devuelven `default`.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if not math.isfinite(number):
        return default
    return number


def now_ms() -> int:
    """Marca de tiempo actual en milisegundos epoch."""
    return int(time.time() * 1000)


def coerce_timestamp(value: Any, now: Optional[int] = None) -> int:
    """Timestamp en ms epoch. Valores inválidos o cero caen a la hora actual."""
    number = coerce_number(value, default=0.0)
    if number == 0:
        return now if now is not None else now_ms()
    return int(number)
