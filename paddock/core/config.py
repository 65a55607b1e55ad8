import logging
import os

# ==============================================================================
# CONFIGURACIÓN (Variables de entorno, se leen una sola vez)
# ==============================================================================

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./paddock.db")

LOG_LEVEL = os.getenv("PADDOCK_LOG_LEVEL", "INFO").upper()

# Nº de hilos para sincronizar insignias tras un cambio masivo de resultados.
# 1 = secuencial (lo normal con SQLite)
SYNC_WORKERS = max(1, int(os.getenv("PADDOCK_SYNC_WORKERS", "1")))

CORS_ORIGINS = [
    o.strip()
    for o in os.getenv(
        "PADDOCK_CORS_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173",
    ).split(",")
    if o.strip()
]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(level: str = LOG_LEVEL):
    """Configura el logging raíz. Se llama una vez al arrancar la app."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # SQLAlchemy es muy ruidoso en DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
