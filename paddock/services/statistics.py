from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from paddock.db.models.result import Result
from paddock.db.models.race import Race
from paddock.db.models.league import Competition

# ==============================================================================
# AGREGADOR DE ESTADÍSTICAS
# ==============================================================================
# Sin caché y sin contadores incrementales: siempre se recalcula desde el libro
# de resultados. Mismas filas de entrada = mismo snapshot = mismas insignias.


@dataclass(frozen=True)
class RaceRecord:
    race_id: int
    position: int
    points: int
    qualifying_position: Optional[int]
    race_date: datetime
    league_id: int
    field_size: int  # Nº de participantes en esa carrera


@dataclass(frozen=True)
class DriverStatisticsSnapshot:
    total_races: int = 0
    total_points: int = 0
    wins: int = 0
    podiums: int = 0
    results: List[RaceRecord] = field(default_factory=list)

    def chronological(self) -> List[RaceRecord]:
        """Más antigua primero. Empates de fecha por race_id."""
        return sorted(self.results, key=lambda r: (r.race_date, r.race_id))

    def league_ids(self) -> List[int]:
        return sorted({r.league_id for r in self.results})

    def for_league(self, league_id: int) -> List[RaceRecord]:
        return [r for r in self.results if r.league_id == league_id]

    @property
    def has_qualifying_data(self) -> bool:
        return any(r.qualifying_position is not None for r in self.results)


def build_snapshot(records) -> DriverStatisticsSnapshot:
    """Parte pura: lista de RaceRecord -> snapshot."""
    records = list(records)
    return DriverStatisticsSnapshot(
        total_races=len(records),
        total_points=sum(r.points for r in records),
        wins=sum(1 for r in records if r.position == 1),
        podiums=sum(1 for r in records if r.position <= 3),
        results=records,
    )


def get_driver_statistics(db: Session, driver_id: int) -> DriverStatisticsSnapshot:
    """
    Recorre TODOS los resultados del piloto (con fecha y liga de la carrera)
    y anota cada uno con el tamaño de parrilla. Sin resultados -> snapshot a cero.
    """
    field_sizes = (
        db.query(Result.race_id, func.count(Result.id).label("field_size"))
        .group_by(Result.race_id)
        .subquery()
    )

    rows = (
        db.query(
            Result.race_id,
            Result.position,
            Result.points,
            Result.qualifying_position,
            Race.date,
            Competition.league_id,
            field_sizes.c.field_size,
        )
        .join(Race, Race.id == Result.race_id)
        .join(Competition, Competition.id == Race.competition_id)
        .join(field_sizes, field_sizes.c.race_id == Result.race_id)
        .filter(Result.driver_id == driver_id)
        .order_by(Race.date.desc(), Result.race_id.desc())
        .all()
    )

    return build_snapshot(
        RaceRecord(
            race_id=r.race_id,
            position=r.position,
            points=r.points or 0,
            qualifying_position=r.qualifying_position,
            race_date=r.date,
            league_id=r.league_id,
            field_size=int(r.field_size or 1),
        )
        for r in rows
    )
