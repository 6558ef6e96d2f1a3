# schemas/analysis.py
from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
import enum

class SignalType(str, enum.Enum):
    LONG = "LONG"
    SHORT = "SHORT"
    WAIT = "WAIT"

class RiskLevel(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

class TradePlan(BaseModel):
    """Plan sugerido. Texto libre: no se garantiza que sean números."""
    entry: str = ""
    sl: str = ""
    tp1: str = ""
    tp2: str = ""
    logic: str = ""

class AnalysisResult(BaseModel):
    """Señal estructurada devuelta por el modelo. El diario nunca la guarda automáticamente."""
    summary: str
    signal: SignalType
    plan: Optional[TradePlan] = None
    risk_level: Optional[RiskLevel] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True

class SessionInputRequest(BaseModel):
    text: str = Field(default="", description="Datos de mercado o descripción del gráfico")

class SessionStateResponse(BaseModel):
    """Vista del estado de la sesión para la UI (las imágenes se resumen)."""
    input_text: str
    image_count: int
    max_images: int
    media_types: List[str] = []
    is_analyzing: bool
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None

    class Config:
        alias_generator = to_camel
        populate_by_name = True
