from pydantic import BaseModel, Field
from typing import Optional


# Esquemas del libro de resultados
class ResultIn(BaseModel):
    driver_id: int
    position: int = Field(ge=1)
    qualifying_position: Optional[int] = Field(default=None, ge=1)
    points: int = 0
    race_time: Optional[str] = None


class ResultOut(ResultIn):
    id: int
    race_id: int

    class Config:
        from_attributes = True


class SyncResultOut(BaseModel):
    awarded: list[str] = []
    revoked: list[str] = []


class ReconciliationOut(BaseModel):
    """Resumen de lo que ha hecho el motor tras el cambio."""
    badges: dict[int, SyncResultOut] = {}
    shuffles: list[dict] = []
    season_end: dict[int, dict[int, SyncResultOut]] = {}
    failures: list[str] = []


class RaceResultsOut(BaseModel):
    race_id: int
    results: list[ResultOut]
    reconciliation: ReconciliationOut
