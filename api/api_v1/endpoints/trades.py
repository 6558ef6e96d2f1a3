# api/api_v1/endpoints/trades.py
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status as http_status
from fastapi.responses import Response
import logging

from core import csv_codec
from core.config import settings
from core.exceptions import ExportPreconditionError, FormatError
from schemas.trade_record import (
    ImportResponse, ResetResponse, TradeListResponse, TradeRecord, TradeRecordCreate, TradeStats,
)
from services.trade_store import TradeStore, get_trade_store

router = APIRouter()
logger = logging.getLogger(__name__)

@router.get(
    "",
    response_model=TradeListResponse,
    summary="Listar Operaciones del Diario",
    description="Devuelve todas las operaciones registradas, de la más reciente a la más antigua."
)
async def list_trades(store: TradeStore = Depends(get_trade_store)):
    logger.info("Endpoint GET /trades llamado.")
    return TradeListResponse(trades=store.list_trades())

@router.post(
    "",
    response_model=TradeRecord,
    status_code=http_status.HTTP_201_CREATED,
    summary="Registrar Operación Manual",
    description="Añade una operación cerrada. Los campos numéricos no válidos se guardan como 0."
)
async def add_trade(
    trade_in: TradeRecordCreate,
    store: TradeStore = Depends(get_trade_store)
):
    logger.info(f"Endpoint POST /trades llamado para {trade_in.symbol}.")
    try:
        return store.add(trade_in)
    except Exception as e:
        logger.exception(f"Error inesperado al registrar operación {trade_in.symbol}")
        raise HTTPException(status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al registrar la operación.")

@router.delete(
    "",
    response_model=ResetResponse,
    summary="Reiniciar el Diario",
    description="Elimina TODAS las operaciones. Requiere confirm=true; sin confirmación no se toca nada."
)
async def reset_trades(
    confirm: bool = Query(False, description="Confirmación explícita del usuario"),
    store: TradeStore = Depends(get_trade_store)
):
    logger.info(f"Endpoint DELETE /trades llamado (confirm={confirm}).")
    done = store.reset(confirm=lambda: confirm)
    return ResetResponse(reset=done, total_trades=len(store))

@router.get(
    "/stats",
    response_model=TradeStats,
    summary="Estadísticas del Diario",
    description="Total de operaciones, tasa de acierto (%) y PnL acumulado en USDT."
)
async def read_stats(store: TradeStore = Depends(get_trade_store)):
    return store.compute_stats()

@router.get(
    "/export",
    summary="Exportar Diario a CSV",
    responses={
        200: {"content": {"text/csv": {}}, "description": "Fichero CSV"},
        400: {"description": "No hay operaciones para exportar"},
    }
)
async def export_trades(store: TradeStore = Depends(get_trade_store)):
    logger.info("Endpoint GET /trades/export llamado.")
    try:
        content = csv_codec.encode(store.list_trades())
    except ExportPreconditionError as e:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))

    filename = csv_codec.export_filename(prefix=settings.EXPORT_FILENAME_PREFIX)
    logger.info(f"Exportando {len(store)} operaciones como {filename}")
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

@router.post(
    "/import",
    response_model=ImportResponse,
    summary="Importar Operaciones desde CSV",
    description="Importa un CSV exportado por esta aplicación. Si alguna fila es inválida no se importa nada.",
    responses={400: {"description": "Fichero no CSV o con formato inválido"}}
)
async def import_trades(
    file: UploadFile = File(..., description="Fichero .csv"),
    store: TradeStore = Depends(get_trade_store)
):
    logger.info(f"Endpoint POST /trades/import llamado con fichero '{file.filename}'.")
    if not (file.filename or "").lower().endswith(".csv"):
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail="Selecciona un fichero .csv.")

    raw = await file.read()
    try:
        text = raw.decode("utf-8-sig")
        records = csv_codec.decode(text)
    except UnicodeDecodeError:
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail="El fichero no es texto UTF-8 válido.")
    except FormatError as e:
        logger.warning(f"Importación CSV rechazada: {e}")
        raise HTTPException(status_code=http_status.HTTP_400_BAD_REQUEST, detail=str(e))

    imported = store.import_batch(records)
    return ImportResponse(imported=imported, message=f"Importadas {imported} operaciones correctamente.")

@router.get(
    "/{trade_id}",
    response_model=TradeRecord,
    summary="Obtener Operación",
    responses={404: {"description": "Operación no encontrada"}}
)
async def get_trade(trade_id: str, store: TradeStore = Depends(get_trade_store)):
    record = store.get(trade_id)
    if record is None:
        raise HTTPException(status_code=http_status.HTTP_404_NOT_FOUND, detail=f"Operación '{trade_id}' no encontrada.")
    return record

@router.delete(
    "/{trade_id}",
    status_code=http_status.HTTP_204_NO_CONTENT, # No devuelve contenido en éxito
    summary="Eliminar Operación",
    description="Elimina una operación por id. Si no existe no es un error."
)
async def delete_trade(trade_id: str, store: TradeStore = Depends(get_trade_store)):
    logger.info(f"Endpoint DELETE /trades/{trade_id} llamado.")
    store.delete(trade_id)
    return Response(status_code=http_status.HTTP_204_NO_CONTENT)
