# core/exceptions.py
"""Errores de dominio. Los endpoints los traducen a HTTPException con el mensaje visible."""


class TradingAssistantError(Exception):
    """Base de todos los errores del asistente."""


class PersistenceLoadError(TradingAssistantError):
    """El slot persistido no se pudo leer o interpretar. Se recupera con un diario vacío."""


class FormatError(TradingAssistantError):
    """El CSV importado no respeta el formato de intercambio."""


class ExportPreconditionError(TradingAssistantError):
    """Se intentó exportar un diario vacío."""


class AnalysisRequestError(TradingAssistantError):
    """Falló la llamada al modelo (red, respuesta vacía, cuota, clave API...)."""


class ImageLimitError(TradingAssistantError):
    """La selección supera el máximo de imágenes por análisis."""

    def __init__(self, message: str, current: int = 0, attempted: int = 0, limit: int = 0):
        super().__init__(message)
        self.current = current
        self.attempted = attempted
        self.limit = limit


class AnalysisInProgressError(TradingAssistantError):
    """Ya hay un análisis en curso (single-flight)."""
