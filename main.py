from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from paddock.core.config import CORS_ORIGINS, configure_logging

# IMPORTANTE: Importar Base y Engine para que funcione la creación de tablas
from paddock.db.session import engine, Base, SessionLocal

# Importar modelos para que SQLAlchemy los "vea" antes de crear las tablas
from paddock.db.models import _all

# Importar las rutas (los routers)
from paddock.api.results import router as results_router
from paddock.api.badges import router as badges_router
from paddock.api.tiers import router as tiers_router
from paddock.services.badge_catalog import seed_badges

configure_logging()

app = FastAPI(
    title="Paddock - Reconciliación de insignias y tiers",
    version="1.0.0"
)


def init_db(bind=engine):
    """Crea las tablas y deja el catálogo de insignias al día."""
    Base.metadata.create_all(bind=bind)
    db = SessionLocal(bind=bind)
    try:
        seed_badges(db)
    finally:
        db.close()


# Sin catálogo sembrado no se concede ninguna insignia
init_db()

# Conectamos las piezas (routers)
app.include_router(results_router)
app.include_router(badges_router)
app.include_router(tiers_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
def read_root():
    return {"message": "Paddock API funcionando 🏁"}
