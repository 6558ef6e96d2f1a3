# services/analysis_session.py
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from core.config import settings
from core.exceptions import AnalysisInProgressError, AnalysisRequestError, ImageLimitError
from schemas.analysis import AnalysisResult, SessionStateResponse
from services.analysis_client import AnalysisClient, analysis_client_instance, split_data_url

logger = logging.getLogger(__name__)

DEFAULT_ANALYSIS_ERROR = "El análisis falló, inténtalo de nuevo."


@dataclass
class SessionState:
    """Estado de la sesión de análisis. Un único escritor: el AnalysisSession que lo contiene."""
    input_text: str = ""
    images: List[str] = field(default_factory=list) # data URLs
    is_analyzing: bool = False
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None # Único hueco de mensaje visible para el usuario


class AnalysisSession:
    """
    Controlador de la sesión: posee el SessionState y expone las transiciones
    explícitas (set_input, add_images, clear_images, begin/complete_analysis).
    """

    def __init__(self, client: AnalysisClient, max_images: Optional[int] = None):
        self.client = client
        self.max_images = max_images if max_images is not None else settings.MAX_IMAGES
        self.state = SessionState()

    # --- Transiciones ---
    def set_input(self, text: str) -> None:
        self.state.input_text = text or ""

    def ensure_capacity(self, count: int) -> None:
        """Lanza ImageLimitError (y lo deja en state.error) si no caben `count` imágenes más."""
        current = len(self.state.images)
        if current + count > self.max_images:
            message = (f"Máximo {self.max_images} imágenes. Tienes {current} seleccionadas e intentas "
                       f"añadir {count}, lo que supera el límite.")
            self.state.error = message
            logger.warning(message)
            raise ImageLimitError(message, current=current, attempted=count, limit=self.max_images)

    def add_images(self, images: List[str]) -> int:
        """Añade imágenes a la selección. Si se supera el máximo no se añade ninguna."""
        self.ensure_capacity(len(images))
        self.state.error = None
        self.state.images = self.state.images + list(images)
        logger.info(f"Imágenes seleccionadas: {len(self.state.images)}/{self.max_images}")
        return len(self.state.images)

    def remove_image(self, index: int) -> bool:
        if index < 0 or index >= len(self.state.images):
            return False
        self.state.images = [img for i, img in enumerate(self.state.images) if i != index]
        return True

    def clear_images(self) -> None:
        self.state.images = []
        self.state.error = None

    def begin_analysis(self) -> None:
        if self.state.is_analyzing:
            raise AnalysisInProgressError("Ya hay un análisis en curso.")
        self.state.is_analyzing = True
        self.state.error = None
        self.state.result = None

    def complete_analysis(self, result: Optional[AnalysisResult] = None, error: Optional[str] = None) -> None:
        self.state.result = result
        self.state.error = error
        self.state.is_analyzing = False

    # --- Flujo completo ---
    def has_input(self) -> bool:
        return bool(self.state.input_text) or bool(self.state.images)

    async def analyze(self) -> Optional[AnalysisResult]:
        """
        Lanza el análisis con la entrada actual (single-flight). Sin texto ni
        imágenes no hace nada. Los errores de la llamada quedan en state.error
        y se relanzan como AnalysisRequestError para el endpoint.
        """
        if not self.has_input():
            logger.debug("analyze() llamado sin texto ni imágenes. Ignorado.")
            return None

        self.begin_analysis()
        try:
            result = await self.client.analyze_chart(self.state.input_text, self.state.images)
        except (AnalysisRequestError, ImageLimitError) as e:
            self.complete_analysis(error=str(e) or DEFAULT_ANALYSIS_ERROR)
            raise
        except Exception as e:
            logger.exception("Error inesperado durante el análisis")
            self.complete_analysis(error=str(e) or DEFAULT_ANALYSIS_ERROR)
            raise AnalysisRequestError(self.state.error) from e
        self.complete_analysis(result=result)
        return result

    def snapshot(self) -> SessionStateResponse:
        return SessionStateResponse(
            input_text=self.state.input_text,
            image_count=len(self.state.images),
            max_images=self.max_images,
            media_types=[split_data_url(img)[0] for img in self.state.images],
            is_analyzing=self.state.is_analyzing,
            result=self.state.result,
            error=self.state.error,
        )


# --- Instancia Singleton Global ---
analysis_session_instance = AnalysisSession(client=analysis_client_instance)

# --- Dependencia para FastAPI ---
def get_analysis_session() -> AnalysisSession:
    return analysis_session_instance
