# api/api_v1/api.py
from fastapi import APIRouter
from api.api_v1.endpoints import status
from api.api_v1.endpoints import trades
from api.api_v1.endpoints import session

api_router = APIRouter()

# Incluir los routers
api_router.include_router(status.router, prefix="/status", tags=["Status"])
api_router.include_router(trades.router, prefix="/trades", tags=["Trade Journal"])
api_router.include_router(session.router, prefix="/session", tags=["Chart Analysis"])
