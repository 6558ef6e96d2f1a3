# services/analysis_client.py
"""
Cliente del modelo para el análisis de gráficos.

Una única petición estructurada por análisis: prompt + imágenes (data URLs) +
instrucción de sistema fija. La respuesta se fuerza a través de una herramienta
cuyo input_schema es el de AnalysisResult. Sin reintentos automáticos.
"""
import json
import logging
import re
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

import anthropic
from anthropic import AsyncAnthropic
from pydantic import ValidationError

from core.config import settings
from core.exceptions import AnalysisRequestError, ImageLimitError
from schemas.analysis import AnalysisResult

logger = logging.getLogger(__name__)

DATA_URL_PATTERN = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,")
DEFAULT_MEDIA_TYPE = "image/png"
DEFAULT_PROMPT = "Analiza este gráfico siguiendo el marco proporcionado."

SYSTEM_INSTRUCTION = """Eres CryptoGuard, un analista técnico de futuros de criptomonedas.
Analiza los gráficos y datos de mercado que te envíe el usuario y responde SIEMPRE
mediante la herramienta report_chart_analysis.

Marco de análisis:
1. Estructura de mercado (tendencia, máximos/mínimos relevantes, rupturas).
2. Zonas de soporte/resistencia y liquidez visibles.
3. Confirmación por volumen y momentum si se aprecian.
4. Solo propones LONG o SHORT si hay una configuración clara con stop loss definido;
   en caso contrario la señal es WAIT y no hace falta plan.
5. El plan (entry, sl, tp1, tp2) se expresa como texto con precios o rangos concretos
   y 'logic' resume en pocas frases por qué.
6. riskLevel refleja el riesgo de la configuración: LOW, MEDIUM o HIGH.

Responde en el idioma del usuario. No es asesoramiento financiero."""

ANALYSIS_TOOL: Dict[str, Any] = {
    "name": "report_chart_analysis",
    "description": "Devuelve el análisis estructurado del gráfico con la señal operativa.",
    "input_schema": {
        "type": "object",
        "properties": {
            "summary": {"type": "string"},
            "signal": {"type": "string", "enum": ["LONG", "SHORT", "WAIT"]},
            "plan": {
                "type": "object",
                "properties": {
                    "entry": {"type": "string"},
                    "sl": {"type": "string"},
                    "tp1": {"type": "string"},
                    "tp2": {"type": "string"},
                    "logic": {"type": "string"},
                },
            },
            "riskLevel": {"type": "string", "enum": ["LOW", "MEDIUM", "HIGH"]},
        },
        "required": ["summary", "signal", "riskLevel"],
    },
}


def split_data_url(image: str) -> Tuple[str, str]:
    """Devuelve (media_type, base64) de una data URL. Sin prefijo reconocible se asume PNG."""
    match = DATA_URL_PATTERN.match(image)
    media_type = match.group(1) if match else DEFAULT_MEDIA_TYPE
    return media_type, DATA_URL_PATTERN.sub("", image, count=1)


def build_message_content(prompt: str, images: Sequence[str]) -> List[Dict[str, Any]]:
    """Bloques del mensaje de usuario: primero las imágenes, después el texto."""
    content: List[Dict[str, Any]] = []
    for image in images:
        media_type, data = split_data_url(image)
        content.append({
            "type": "image",
            "source": {"type": "base64", "media_type": media_type, "data": data},
        })
    content.append({"type": "text", "text": prompt or DEFAULT_PROMPT})
    return content


class AnalysisClient:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None,
                 max_images: Optional[int] = None):
        self.api_key = api_key if api_key is not None else settings.ANTHROPIC_API_KEY
        self.model = model or settings.ANALYSIS_MODEL
        self.max_images = max_images if max_images is not None else settings.MAX_IMAGES
        self.max_tokens = settings.ANALYSIS_MAX_TOKENS
        self.temperature = settings.ANALYSIS_TEMPERATURE
        self._client: Optional[AsyncAnthropic] = None
        logger.info(f"AnalysisClient creado. Modelo: {self.model}. API Key presente: {'Sí' if self.api_key else 'No'}")

    def _get_client(self) -> AsyncAnthropic:
        if not self.api_key:
            raise AnalysisRequestError("Clave API no configurada. Define ANTHROPIC_API_KEY en el .env.")
        if self._client is None:
            # max_retries=0: un fallo se muestra al usuario, no se reintenta
            self._client = AsyncAnthropic(api_key=self.api_key, max_retries=0,
                                          timeout=settings.ANALYSIS_TIMEOUT_SECONDS)
        return self._client

    async def analyze_chart(self, prompt: str, images: Optional[Sequence[str]] = None) -> AnalysisResult:
        images = list(images or [])
        if len(images) > self.max_images:
            raise ImageLimitError(
                f"Máximo {self.max_images} imágenes por análisis; se recibieron {len(images)}.",
                current=0, attempted=len(images), limit=self.max_images,
            )

        client = self._get_client()
        content = build_message_content(prompt, images)

        logger.info(f"Enviando análisis al modelo {self.model}: {len(images)} imágenes, prompt de {len(prompt or '')} caracteres.")
        start_time = time.time()
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=SYSTEM_INSTRUCTION,
                tools=[ANALYSIS_TOOL],
                tool_choice={"type": "tool", "name": ANALYSIS_TOOL["name"]},
                messages=[{"role": "user", "content": content}],
            )
        except anthropic.APIError as e:
            logger.error(f"Fallo en la llamada de análisis: {type(e).__name__}: {e}", exc_info=True)
            raise AnalysisRequestError(str(e) or "La llamada al modelo falló.") from e

        logger.info(f"Respuesta recibida en {time.time() - start_time:.2f}s")
        payload = self._extract_payload(response)
        if not payload:
            raise AnalysisRequestError("El modelo devolvió una respuesta vacía.")

        try:
            result = AnalysisResult.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Respuesta del modelo con estructura inválida: {e.errors()}")
            raise AnalysisRequestError("La respuesta del modelo no tiene el formato esperado.") from e

        logger.info(f"Análisis completado: señal={result.signal.value}, riesgo={result.risk_level.value if result.risk_level else 'N/A'}")
        return result

    @staticmethod
    def _extract_payload(response) -> Optional[Dict[str, Any]]:
        """Busca el bloque tool_use; si el modelo respondió en texto, intenta leerlo como JSON."""
        text_parts = []
        for block in getattr(response, "content", None) or []:
            block_type = getattr(block, "type", None)
            if block_type == "tool_use" and block.input:
                return dict(block.input)
            if block_type == "text" and block.text:
                text_parts.append(block.text)

        text = "".join(text_parts).strip()
        if not text:
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise AnalysisRequestError("La respuesta del modelo no es JSON válido.") from e
        return data if isinstance(data, dict) else None


# --- Instancia Singleton Global ---
analysis_client_instance = AnalysisClient()