# api/api_v1/endpoints/session.py
from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status as http_status
import base64
import logging
from typing import List

from core.exceptions import AnalysisInProgressError, AnalysisRequestError, ImageLimitError
from schemas.analysis import SessionInputRequest, SessionStateResponse
from services.analysis_session import AnalysisSession, get_analysis_session

router = APIRouter()
logger = logging.getLogger(__name__)

async def _to_data_url(upload: UploadFile) -> str:
    """Convierte un fichero subido en data URL (lo mismo que produce FileReader en el navegador)."""
    raw = await upload.read()
    media_type = upload.content_type
    return f"data:{media_type};base64,{base64.b64encode(raw).decode('ascii')}"

@router.get("", response_model=SessionStateResponse, summary="Estado de la Sesión de Análisis")
async def read_session(session: AnalysisSession = Depends(get_analysis_session)):
    return session.snapshot()

@router.put("/input", response_model=SessionStateResponse, summary="Actualizar Texto de Entrada")
async def set_input(
    body: SessionInputRequest,
    session: AnalysisSession = Depends(get_analysis_session)
):
    session.set_input(body.text)
    return session.snapshot()

@router.post(
    "/images",
    response_model=SessionStateResponse,
    summary="Añadir Imágenes de Gráficos",
    description="Añade capturas a la selección actual. Máximo 9 en total.",
    responses={400: {"description": "Se supera el máximo de imágenes o algún fichero no es una imagen"}}
)
async def add_images(
    files: List[UploadFile] = File(..., description="Capturas de gráficos"),
    session: AnalysisSession = Depends(get_analysis_session)
):
    logger.info(f"Endpoint POST /session/images llamado con {len(files)} ficheros.")
    try:
        # Comprobar el límite antes de leer ningún fichero
        session.ensure_capacity(len(files))
        rejected = [f.filename for f in files if not (f.content_type or "").startswith("image/")]
        if rejected:
            raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST,
                                detail=f"Solo se admiten imágenes. Ficheros rechazados: {', '.join(str(n) for n in rejected)}.")
        images = [await _to_data_url(f) for f in files]
        session.add_images(images)
    except ImageLimitError as e:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))
    return session.snapshot()

@router.delete("/images", response_model=SessionStateResponse, summary="Quitar Todas las Imágenes")
async def clear_images(session: AnalysisSession = Depends(get_analysis_session)):
    session.clear_images()
    return session.snapshot()

@router.delete(
    "/images/{index}",
    response_model=SessionStateResponse,
    summary="Quitar Una Imagen",
    responses={404: {"description": "Índice fuera de rango"}}
)
async def remove_image(index: int, session: AnalysisSession = Depends(get_analysis_session)):
    if not session.remove_image(index):
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=f"No hay imagen en la posición {index}.")
    return session.snapshot()

@router.post(
    "/analyze",
    response_model=SessionStateResponse,
    summary="Analizar Gráfico",
    description="Envía el texto y las imágenes seleccionadas al modelo y devuelve la señal estructurada.",
    responses={
        400: {"description": "Sin texto ni imágenes que analizar"},
        409: {"description": "Ya hay un análisis en curso"},
        502: {"description": "Falló la llamada al modelo"},
    }
)
async def analyze(session: AnalysisSession = Depends(get_analysis_session)):
    logger.info("Endpoint POST /session/analyze llamado.")
    if not session.has_input():
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail="Escribe un texto o añade una imagen antes de analizar.")
    try:
        await session.analyze()
    except AnalysisInProgressError as e:
        raise HTTPException(status_code=http_status.HTTP_409_CONFLICT, detail=str(e))
    except (AnalysisRequestError, ImageLimitError) as e:
        raise HTTPException(status_code=http_status.HTTP_502_BAD_GATEWAY, detail=session.state.error or str(e))
    return session.snapshot()
