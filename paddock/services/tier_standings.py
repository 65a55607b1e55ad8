from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from paddock.core.errors import NotFoundError
from paddock.db.models.race import Race
from paddock.db.models.result import Result
from paddock.db.models.tiered_league import TieredLeague, TierAssignment, TierSettledRace


@dataclass(frozen=True)
class TierConfig:
    """Vista de sólo lectura de la configuración de una liga escalonada."""
    id: int
    number_of_tiers: int
    drivers_per_tier: int
    races_before_shuffle: int
    promotion_spots: int
    relegation_spots: int
    parent_competition_id: int
    tier_names: List[str]

    def tier_name(self, tier_number: int) -> str:
        if 1 <= tier_number <= len(self.tier_names):
            return self.tier_names[tier_number - 1]
        return f"Tier {tier_number}"


@dataclass(frozen=True)
class DriverPoints:
    driver_id: int
    points: int


@dataclass
class TierStanding:
    tier_number: int
    tier_name: str
    standings: List[DriverPoints] = field(default_factory=list)


def get_tier_config(db: Session, tiered_league_id: int) -> TierConfig:
    tl = db.get(TieredLeague, tiered_league_id)
    if not tl:
        raise NotFoundError(f"Liga escalonada {tiered_league_id} no encontrada")
    names = {t.tier_number: t.name for t in tl.tier_names}
    return TierConfig(
        id=tl.id,
        number_of_tiers=tl.number_of_tiers,
        drivers_per_tier=tl.drivers_per_tier,
        races_before_shuffle=tl.races_before_shuffle,
        promotion_spots=tl.promotion_spots,
        relegation_spots=tl.relegation_spots,
        parent_competition_id=tl.parent_competition_id,
        tier_names=[names.get(n, f"Tier {n}") for n in range(1, tl.number_of_tiers + 1)],
    )


def count_completed_races(db: Session, competition_id: int) -> int:
    """Carreras distintas de la competición con al menos un resultado."""
    return (
        db.query(func.count(func.distinct(Result.race_id)))
        .join(Race, Race.id == Result.race_id)
        .filter(Race.competition_id == competition_id)
        .scalar()
    ) or 0


def completed_race_ids(db: Session, competition_id: int) -> Set[int]:
    return {
        race_id for (race_id,) in db.query(Result.race_id)
        .join(Race, Race.id == Result.race_id)
        .filter(Race.competition_id == competition_id)
        .distinct()
        .all()
    }


def settled_races(db: Session, tiered_league_id: int) -> Tuple[Set[int], Dict[int, Set[int]]]:
    """(carreras cerradas por shuffles, carreras anteriores a la asignación de cada piloto)"""
    shared: Set[int] = set()
    per_driver: Dict[int, Set[int]] = {}
    rows = db.query(TierSettledRace.race_id, TierSettledRace.driver_id).filter(
        TierSettledRace.tiered_league_id == tiered_league_id
    ).all()
    for race_id, driver_id in rows:
        if driver_id is None:
            shared.add(race_id)
        else:
            per_driver.setdefault(driver_id, set()).add(race_id)
    return shared, per_driver


def open_cycle_race_ids(db: Session, tiered_league_id: int) -> Set[int]:
    """Carreras completadas que todavía no ha cerrado ningún shuffle."""
    config = get_tier_config(db, tiered_league_id)
    shared, _ = settled_races(db, tiered_league_id)
    return completed_race_ids(db, config.parent_competition_id) - shared


def cycle_points(db: Session, config: TierConfig) -> Dict[int, int]:
    """Puntos por piloto en las carreras del ciclo abierto."""
    shared, per_driver = settled_races(db, config.id)
    rows = (
        db.query(Result.driver_id, Result.race_id, Result.points)
        .join(Race, Race.id == Result.race_id)
        .filter(Race.competition_id == config.parent_competition_id)
        .all()
    )
    points: Dict[int, int] = {}
    for driver_id, race_id, pts in rows:
        if race_id in shared or race_id in per_driver.get(driver_id, ()):
            continue
        points[driver_id] = points.get(driver_id, 0) + (pts or 0)
    return points


def sort_standings(points: Dict[int, int]) -> List[DriverPoints]:
    # Empate a puntos: el id de piloto más bajo va delante
    return [
        DriverPoints(driver_id=d, points=p)
        for d, p in sorted(points.items(), key=lambda kv: (-kv[1], kv[0]))
    ]


def get_tier_standings(db: Session, tiered_league_id: int) -> List[TierStanding]:
    """
    Clasificación de cada tier con los puntos acumulados desde el último
    shuffle, de más a menos puntos.
    """
    config = get_tier_config(db, tiered_league_id)
    totals = cycle_points(db, config)
    assignments = db.query(TierAssignment).filter(TierAssignment.tiered_league_id == tiered_league_id).all()

    by_tier: Dict[int, Dict[int, int]] = {n: {} for n in range(1, config.number_of_tiers + 1)}
    for a in assignments:
        by_tier.setdefault(a.tier_number, {})[a.driver_id] = totals.get(a.driver_id, 0)

    return [
        TierStanding(tier_number=n, tier_name=config.tier_name(n), standings=sort_standings(by_tier[n]))
        for n in sorted(by_tier)
    ]


def settle_open_cycle(db: Session, tiered_league_id: int, shuffle_id: int) -> int:
    """Cierra el ciclo: sus carreras dejan de sumar puntos de tier (no hace commit)."""
    races = open_cycle_race_ids(db, tiered_league_id)
    for race_id in sorted(races):
        db.add(TierSettledRace(tiered_league_id=tiered_league_id, race_id=race_id, shuffle_id=shuffle_id))
    return len(races)


def settle_for_driver(db: Session, tiered_league_id: int, driver_id: int):
    """Al asignar a un piloto, lo ya corrido en el ciclo no le cuenta (no hace commit)."""
    for race_id in sorted(open_cycle_race_ids(db, tiered_league_id)):
        db.add(TierSettledRace(tiered_league_id=tiered_league_id, race_id=race_id, driver_id=driver_id))
