import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from paddock.core.errors import NotFoundError, PaddockError
from paddock.db.models import _all  # noqa: F401  (relaciones entre modelos)
from paddock.db.models.badge import BadgeNotification, DriverBadge
from paddock.db.models.driver import Driver
from paddock.db.models.league import Competition, League
from paddock.db.models.race import Race, RaceStatus
from paddock.db.models.result import Result
from paddock.db.models.tiered_league import (
    TierAssignment,
    TieredLeague,
    TierMovement,
    TierMovementNotification,
    TierName,
    TierSettledRace,
    TierShuffle,
    TierShuffleStanding,
)
from paddock.schemas.results import ResultIn
from paddock.services.badge_sync import BatchSyncReport, SyncResult, sync_drivers
from paddock.services.season_badges import sync_season_end_badges
from paddock.services.tier_shuffle import ShuffleReport, check_tier_shuffles

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. RECONCILIACIÓN TRAS UN CAMBIO EN EL LIBRO
# ==============================================================================


@dataclass
class ReconciliationReport:
    badges: BatchSyncReport = field(default_factory=BatchSyncReport)
    shuffles: ShuffleReport = field(default_factory=ShuffleReport)
    season_end: Dict[int, Dict[int, SyncResult]] = field(default_factory=dict)
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures and self.badges.ok and not self.shuffles.failures


def reconcile(
    db: Session,
    driver_ids: Iterable[int],
    competition_ids: Iterable[int] = (),
    league_ids: Iterable[int] = (),
    check_shuffles: bool = False,
) -> ReconciliationReport:
    """
    Se ejecuta DESPUÉS del commit del libro de resultados. Nada de lo que pase
    aquí deshace ese commit: los fallos se registran para re-sincronizar a mano.
    """
    report = ReconciliationReport()

    report.badges = sync_drivers(db, driver_ids)
    for driver_id, error in report.badges.failures.items():
        report.failures.append(f"badge_sync:{driver_id}:{error}")

    if check_shuffles:
        report.shuffles = check_tier_shuffles(db, competition_ids=list(competition_ids))
        for tl_id, error in report.shuffles.failures.items():
            report.failures.append(f"tier_shuffle:{tl_id}:{error}")

    for league_id in sorted(set(league_ids)):
        try:
            report.season_end[league_id] = sync_season_end_badges(db, league_id)
        except Exception as exc:
            db.rollback()
            logger.exception("❌ Fallo re-sincronizando el fin de temporada de la liga %s", league_id)
            report.failures.append(f"season_end:{league_id}:{exc!r}")

    if report.failures:
        logger.error("⚠️ Reconciliación incompleta, requiere re-sync manual: %s", report.failures)
    return report


# ==============================================================================
# 2. LECTURA
# ==============================================================================


def list_results_for_driver(db: Session, driver_id: int) -> List[Result]:
    return (
        db.query(Result)
        .join(Race, Race.id == Result.race_id)
        .filter(Result.driver_id == driver_id)
        .order_by(Race.date.desc(), Result.race_id.desc())
        .all()
    )


def list_results_for_race(db: Session, race_id: int) -> List[Result]:
    return db.query(Result).filter(Result.race_id == race_id).order_by(Result.position).all()


# ==============================================================================
# 3. ESCRITURA
# ==============================================================================


def _validate(race_id: int, new_results: List[ResultIn]):
    driver_ids = [r.driver_id for r in new_results]
    if len(driver_ids) != len(set(driver_ids)):
        raise PaddockError(f"Piloto repetido en los resultados de la carrera {race_id}")
    positions = [r.position for r in new_results]
    if len(positions) != len(set(positions)):
        raise PaddockError(f"Posición repetida en los resultados de la carrera {race_id}")


def replace_results_for_race(db: Session, race_id: int, new_results: List[ResultIn]):
    """
    Sustituye el bloque completo de resultados de una carrera y reconcilia
    insignias, shuffles y fin de temporada de todos los pilotos afectados.
    Devuelve (resultados guardados, informe de reconciliación).
    """
    race = db.get(Race, race_id)
    if not race:
        raise NotFoundError(f"Carrera {race_id} no encontrada")
    _validate(race_id, new_results)

    missing = {r.driver_id for r in new_results} - {
        d.id for d in db.query(Driver.id).filter(Driver.id.in_([r.driver_id for r in new_results])).all()
    }
    if missing:
        raise NotFoundError(f"Pilotos no encontrados: {sorted(missing)}")

    previous = {r.driver_id for r in db.query(Result.driver_id).filter(Result.race_id == race_id).all()}

    db.query(Result).filter(Result.race_id == race_id).delete(synchronize_session="fetch")
    for r in new_results:
        db.add(Result(
            race_id=race_id,
            driver_id=r.driver_id,
            position=r.position,
            qualifying_position=r.qualifying_position,
            points=r.points,
            race_time=r.race_time,
        ))
    race.status = RaceStatus.COMPLETED if new_results else RaceStatus.SCHEDULED
    competition_id = race.competition_id
    league_id = race.competition.league_id
    db.commit()

    logger.info("📝 Resultados de la carrera %s guardados (%s pilotos)", race_id, len(new_results))

    affected = previous | {r.driver_id for r in new_results}
    report = reconcile(
        db,
        affected,
        competition_ids=[competition_id],
        league_ids=[league_id],
        check_shuffles=True,
    )
    return list_results_for_race(db, race_id), report


def delete_race(db: Session, race_id: int) -> ReconciliationReport:
    race = db.get(Race, race_id)
    if not race:
        raise NotFoundError(f"Carrera {race_id} no encontrada")

    affected = {r.driver_id for r in db.query(Result.driver_id).filter(Result.race_id == race_id).all()}
    league_id = race.competition.league_id

    db.query(TierSettledRace).filter(TierSettledRace.race_id == race_id).delete(synchronize_session="fetch")
    db.query(Result).filter(Result.race_id == race_id).delete(synchronize_session="fetch")
    db.delete(race)
    db.commit()
    logger.info("🗑️ Carrera %s eliminada (%s pilotos afectados)", race_id, len(affected))

    return reconcile(db, affected, league_ids=[league_id])


def _delete_tiered_league_rows(db: Session, tiered_league_ids: List[int]):
    if not tiered_league_ids:
        return
    movement_ids = [
        m.id for m in db.query(TierMovement.id).filter(TierMovement.tiered_league_id.in_(tiered_league_ids)).all()
    ]
    if movement_ids:
        db.query(TierMovementNotification).filter(
            TierMovementNotification.movement_id.in_(movement_ids)
        ).delete(synchronize_session="fetch")
    shuffle_ids = [
        s.id for s in db.query(TierShuffle.id).filter(TierShuffle.tiered_league_id.in_(tiered_league_ids)).all()
    ]
    if shuffle_ids:
        db.query(TierShuffleStanding).filter(
            TierShuffleStanding.shuffle_id.in_(shuffle_ids)
        ).delete(synchronize_session="fetch")
    for model in (TierSettledRace, TierShuffle, TierMovement, TierAssignment, TierName):
        db.query(model).filter(model.tiered_league_id.in_(tiered_league_ids)).delete(synchronize_session="fetch")
    db.query(TieredLeague).filter(TieredLeague.id.in_(tiered_league_ids)).delete(synchronize_session="fetch")


def delete_league(db: Session, league_id: int) -> ReconciliationReport:
    """Borra la liga en cascada (competiciones, carreras, resultados, tiers, insignias de la liga)."""
    league = db.get(League, league_id)
    if not league:
        raise NotFoundError(f"Liga {league_id} no encontrada")

    competition_ids = [c.id for c in db.query(Competition.id).filter(Competition.league_id == league_id).all()]
    race_ids = [
        r.id for r in db.query(Race.id).filter(Race.competition_id.in_(competition_ids)).all()
    ] if competition_ids else []
    affected = {
        r.driver_id for r in db.query(Result.driver_id).filter(Result.race_id.in_(race_ids)).all()
    } if race_ids else set()

    tl_ids = [
        t.id for t in db.query(TieredLeague.id).filter(TieredLeague.parent_competition_id.in_(competition_ids)).all()
    ] if competition_ids else []
    _delete_tiered_league_rows(db, tl_ids)

    db.query(BadgeNotification).filter(BadgeNotification.league_id == league_id).delete(synchronize_session="fetch")
    db.query(DriverBadge).filter(DriverBadge.league_id == league_id).delete(synchronize_session="fetch")
    if race_ids:
        db.query(Result).filter(Result.race_id.in_(race_ids)).delete(synchronize_session="fetch")
        db.query(Race).filter(Race.id.in_(race_ids)).delete(synchronize_session="fetch")
    if competition_ids:
        db.query(Competition).filter(Competition.id.in_(competition_ids)).delete(synchronize_session="fetch")
    db.delete(league)
    db.commit()
    logger.info("🗑️ Liga %s eliminada (%s carreras, %s pilotos afectados)", league_id, len(race_ids), len(affected))

    return reconcile(db, affected)


def delete_driver(db: Session, driver_id: int) -> ReconciliationReport:
    """
    Borra un perfil y todo lo que cuelga de él. Los demás pilotos de sus
    carreras se re-sincronizan: cambia el tamaño de parrilla (último puesto,
    mitad alta...).
    """
    driver = db.get(Driver, driver_id)
    if not driver:
        raise NotFoundError(f"Piloto {driver_id} no encontrado")

    race_ids = [r.race_id for r in db.query(Result.race_id).filter(Result.driver_id == driver_id).all()]
    rivals = {
        r.driver_id for r in db.query(Result.driver_id).filter(Result.race_id.in_(race_ids)).all()
    } - {driver_id} if race_ids else set()
    league_ids = {
        c.league_id for c in db.query(Competition.league_id)
        .join(Race, Race.competition_id == Competition.id)
        .filter(Race.id.in_(race_ids))
        .all()
    } if race_ids else set()

    db.query(TierMovementNotification).filter(TierMovementNotification.driver_id == driver_id).delete(synchronize_session="fetch")
    db.query(TierMovement).filter(TierMovement.driver_id == driver_id).delete(synchronize_session="fetch")
    db.query(TierAssignment).filter(TierAssignment.driver_id == driver_id).delete(synchronize_session="fetch")
    db.query(TierShuffleStanding).filter(TierShuffleStanding.driver_id == driver_id).delete(synchronize_session="fetch")
    db.query(TierSettledRace).filter(TierSettledRace.driver_id == driver_id).delete(synchronize_session="fetch")
    db.query(BadgeNotification).filter(BadgeNotification.driver_id == driver_id).delete(synchronize_session="fetch")
    db.query(DriverBadge).filter(DriverBadge.driver_id == driver_id).delete(synchronize_session="fetch")
    db.query(Result).filter(Result.driver_id == driver_id).delete(synchronize_session="fetch")
    db.delete(driver)
    db.commit()
    logger.info("🗑️ Piloto %s eliminado", driver_id)

    return reconcile(db, rivals, league_ids=league_ids)


def resync_driver(db: Session, driver_id: int) -> Optional[SyncResult]:
    """Re-sincronización manual (para operadores tras un fallo registrado)."""
    if not db.get(Driver, driver_id):
        raise NotFoundError(f"Piloto {driver_id} no encontrado")
    report = sync_drivers(db, [driver_id])
    if report.failures:
        raise PaddockError(report.failures[driver_id])
    return report.results[driver_id]
