# core/config.py
import os
from pydantic_settings import BaseSettings
from dotenv import load_dotenv
from typing import Optional

# Cargar explícitamente .env si existe
load_dotenv()

# --- Definición de la Clase de Configuración ---
class Settings(BaseSettings):
    """
    Configuraciones de la aplicación cargadas desde variables de entorno
    y/o el archivo .env.
    """
    PROJECT_NAME: str = "CryptoGuard Trading Assistant"
    API_V1_STR: str = "/api/v1"

    # --- Database settings ---
    # Si no se definen todas las variables DB_* se usa SQLite local
    DB_HOST: Optional[str] = os.getenv("DB_HOST")
    DB_PORT: Optional[int] = int(os.getenv("DB_PORT", "5432")) if os.getenv("DB_PORT") else 5432
    DB_NAME: Optional[str] = os.getenv("DB_NAME")
    DB_USER: Optional[str] = os.getenv("DB_USER")
    DB_PASSWORD: Optional[str] = os.getenv("DB_PASSWORD")
    SQLALCHEMY_DATABASE_URI: Optional[str] = None
    SQLITE_FALLBACK_URI: str = os.getenv("SQLITE_FALLBACK_URI", "sqlite:///./cryptoguard.db")

    # --- Diario de operaciones ---
    # Nombre del slot clave-valor donde vive toda la colección serializada
    TRADES_STORAGE_KEY: str = os.getenv("TRADES_STORAGE_KEY", "cryptoGuard_trades")
    EXPORT_FILENAME_PREFIX: str = os.getenv("EXPORT_FILENAME_PREFIX", "cryptoguard_trades_")

    # --- Análisis de gráficos (LLM) ---
    ANTHROPIC_API_KEY: Optional[str] = os.getenv("ANTHROPIC_API_KEY")
    ANALYSIS_MODEL: str = os.getenv("ANALYSIS_MODEL", "claude-sonnet-4-5")
    ANALYSIS_MAX_TOKENS: int = int(os.getenv("ANALYSIS_MAX_TOKENS", 2048))
    ANALYSIS_TEMPERATURE: float = float(os.getenv("ANALYSIS_TEMPERATURE", 0.2)) # Baja para salidas consistentes
    ANALYSIS_TIMEOUT_SECONDS: float = float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", 120))
    MAX_IMAGES: int = int(os.getenv("MAX_IMAGES", 9))

    # --- Configuración interna de Pydantic ---
    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"

# --- Creación de la instancia global (Fuera de la clase Settings) ---
settings = Settings()

# --- Verificación de URI de BD (Fuera de la clase Settings) ---
# Solo se construye la URI de PostgreSQL si el .env trae todos los datos
if settings.DB_USER and settings.DB_PASSWORD and settings.DB_HOST and settings.DB_NAME and settings.DB_PORT:
     settings.SQLALCHEMY_DATABASE_URI = f"postgresql+psycopg2://{settings.DB_USER}:{settings.DB_PASSWORD}@{settings.DB_HOST}:{settings.DB_PORT}/{settings.DB_NAME}"
