# schemas/trade_record.py
from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import List
import enum

from core.coercion import coerce_number, coerce_timestamp

class TradeDirection(str, enum.Enum):
    LONG = "Long"
    SHORT = "Short"

NUMERIC_FIELDS = ("entry_price", "exit_price", "pnl", "roi")

class TradeRecordBase(BaseModel):
    """Campos comunes. En JSON se exponen en camelCase (entryPrice, exitPrice...)."""
    symbol: str = Field(..., description="Instrumento (ej. 'BTCUSDT')", min_length=1)
    direction: TradeDirection = Field(default=TradeDirection.LONG, description="Long o Short")
    entry_price: float = Field(default=0.0, description="Precio de entrada")
    exit_price: float = Field(default=0.0, description="Precio de salida")
    pnl: float = Field(default=0.0, description="Beneficio/pérdida realizado en USDT")
    roi: float = Field(default=0.0, description="ROI en porcentaje")

    # Política best-effort: un número inválido se convierte en 0 en vez de rechazar el registro
    @field_validator(*NUMERIC_FIELDS, mode="before")
    @classmethod
    def numbers_best_effort(cls, v):
        return coerce_number(v)

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class TradeRecordCreate(TradeRecordBase):
    """Schema para el alta manual: id y timestamp los genera el diario."""

    @field_validator('symbol', mode="before")
    @classmethod
    def symbol_stripped(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v

class TradeRecord(TradeRecordBase):
    """Operación cerrada tal y como se guarda en el diario. Inmutable."""
    id: str
    timestamp: int = Field(..., description="Momento de creación en ms epoch")

    @field_validator('timestamp', mode="before")
    @classmethod
    def timestamp_best_effort(cls, v):
        return coerce_timestamp(v)

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        frozen = True
        json_schema_extra = { # Ejemplo OpenAPI
            "example": {
                "id": "0b6f3f7e-9a43-4c55-8d0e-2f1c7a1d2b9e",
                "symbol": "BTCUSDT",
                "direction": "Long",
                "entryPrice": 60000,
                "exitPrice": 61000,
                "pnl": 100,
                "roi": 1.67,
                "timestamp": 1717000000000,
            }
        }

class TradeListResponse(BaseModel):
    trades: List[TradeRecord]

class TradeStats(BaseModel):
    """Estadísticas agregadas. winRate y cumulativeProfit van formateados como en la UI."""
    total_trades: int
    wins: int
    win_rate: str = Field(..., description="Porcentaje con un decimal, '0.0' si no hay trades")
    cumulative_profit: str = Field(..., description="Suma de PnL con dos decimales")

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class ImportResponse(BaseModel):
    imported: int
    message: str

class ResetResponse(BaseModel):
    reset: bool
    total_trades: int

    class Config:
        alias_generator = to_camel
        populate_by_name = True
