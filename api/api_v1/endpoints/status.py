from fastapi import APIRouter, Depends
from datetime import datetime, timezone
import logging

from schemas.status import StatusResponse
from db.session import check_db_connection
from services.trade_store import TradeStore, get_trade_store
from services.analysis_session import AnalysisSession, get_analysis_session

router = APIRouter()

@router.get("", response_model=StatusResponse)
def get_status(
    store: TradeStore = Depends(get_trade_store),
    session: AnalysisSession = Depends(get_analysis_session)
):
    """
    Endpoint para verificar el estado básico del backend, la conexión a BD
    y si el análisis de gráficos tiene clave API.
    """
    # Intenta verificar la conexión a BD (no bloquea si falla)
    db_ok = check_db_connection()

    logging.info(f"Status endpoint called. DB Connection OK: {db_ok}")

    return StatusResponse(
        status="ok",
        timestamp=datetime.now(timezone.utc),
        db_connection_ok=db_ok,
        trades_loaded=len(store),
        analysis_configured=bool(session.client.api_key)
    )
