# main.py
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

# Importar configuración, router principal, y dependencias de ciclo de vida
from core.config import settings
from api.api_v1.api import api_router
from services.trade_store import startup_trade_store
from db.session import check_db_connection
from models.kv_slot_model import Base as KeyValueBase

# --- Configuración de logging ---
logging.basicConfig(
    level=logging.INFO, # Cambia a DEBUG para ver más detalles
    format='%(asctime)s | %(levelname)-8s | %(name)-25s | %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("httpx").setLevel(logging.WARNING) # El SDK del modelo loguea cada petición HTTP
# --------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Código que se ejecuta ANTES de que la aplicación empiece a aceptar peticiones (Startup)
    logger = logging.getLogger("main.lifespan")
    logger.info("=== Aplicación Iniciando (Lifespan) ===")

    # Crear tablas DB (si aún no existen)
    from db.session import engine
    def create_db_tables():
        logger.info("Creando/Verificando tablas de base de datos...")
        try:
            KeyValueBase.metadata.create_all(bind=engine)
            logger.info("Tablas verificadas/creadas.")
        except Exception as e: logger.error(f"Error creando tablas: {e}", exc_info=True)
    create_db_tables()

    # Verificar conexión BD
    logger.info("Verificando conexión a BD...")
    if not check_db_connection(): logger.warning("La conexión inicial a la base de datos falló.")

    # Cargar el diario (un estado corrupto arranca vacío, nunca tumba la app)
    startup_trade_store()

    logger.info("=== Startup vía Lifespan Finalizado ===")

    yield # La aplicación se ejecuta aquí

    logger.info("=== Cierre (Lifespan) Finalizado ===")


# Crear la aplicación FastAPI usando el lifespan manager
app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    version="0.1.0",
    lifespan=lifespan
)

app.include_router(api_router, prefix=settings.API_V1_STR)

@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.PROJECT_NAME} - v0.1.0"}
