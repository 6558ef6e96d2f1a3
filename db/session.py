from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker
import logging

from core.config import settings

if not settings.SQLALCHEMY_DATABASE_URI:
    # Sin PostgreSQL configurado el diario vive en un fichero SQLite local
    logging.info(f"SQLALCHEMY_DATABASE_URI no configurada. Usando URI de fallback: {settings.SQLITE_FALLBACK_URI}")
    engine = create_engine(settings.SQLITE_FALLBACK_URI, connect_args={"check_same_thread": False}) # SQLite necesita check_same_thread
else:
     engine = create_engine(settings.SQLALCHEMY_DATABASE_URI, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def check_db_connection():
    """Intenta conectar a la BD para verificar la configuración."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logging.info("Verificación de conexión a BD exitosa.")
        return True
    except Exception as e:
        logging.error(f"Fallo en la verificación de conexión a BD: {e}")
        return False
