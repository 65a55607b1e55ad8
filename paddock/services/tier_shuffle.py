import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from paddock.core.errors import ConfigurationError, NotFoundError, PaddockError, TierCapacityError
from paddock.core.locks import acquire_advisory_lock, keyed_lock
from paddock.db.models.race import Race
from paddock.db.models.tiered_league import (
    AUTOMATIC_MOVEMENTS,
    MovementType,
    TierAssignment,
    TieredLeague,
    TierMovement,
    TierShuffle,
    TierShuffleStanding,
)
from paddock.services.notifications import DbNotificationSink, NotificationSink
from paddock.services.tier_badges import award_tier_badges_after_shuffle
from paddock.services.tier_standings import (
    TierConfig,
    TierStanding,
    count_completed_races,
    get_tier_config,
    get_tier_standings,
    settle_for_driver,
    settle_open_cycle,
)

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. MOTOR DE MOVIMIENTOS (parte pura)
# ==============================================================================


@dataclass(frozen=True)
class PlannedMovement:
    driver_id: int
    from_tier: int
    to_tier: int
    movement_type: MovementType


@dataclass
class ShuffleResult:
    tiered_league_id: int
    after_race_count: int
    movements: List[PlannedMovement] = field(default_factory=list)
    badges: Dict[int, List[str]] = field(default_factory=dict)


def plan_movements(config: TierConfig, standings: List[TierStanding]) -> List[PlannedMovement]:
    """
    Recorre los pares de tiers adyacentes de arriba abajo: los últimos
    `relegation_spots` del tier superior bajan y los primeros
    `promotion_spots` del inferior suben.
    Las clasificaciones vienen ordenadas por puntos (empate: id más bajo
    delante). Un piloto se mueve como mucho una vez por shuffle.
    """
    tiers = {s.tier_number: s for s in standings}
    numbers = sorted(tiers)
    movements: List[PlannedMovement] = []
    moved = set()

    for upper, lower in zip(numbers, numbers[1:]):
        upper_drivers = tiers[upper].standings
        lower_drivers = tiers[lower].standings

        to_relegate = upper_drivers[-config.relegation_spots:] if config.relegation_spots > 0 else []
        to_promote = lower_drivers[:config.promotion_spots] if config.promotion_spots > 0 else []

        for d in to_relegate:
            if d.driver_id in moved:
                continue
            moved.add(d.driver_id)
            movements.append(PlannedMovement(d.driver_id, upper, lower, MovementType.AUTOMATIC_RELEGATION))

        for d in to_promote:
            if d.driver_id in moved:
                continue
            moved.add(d.driver_id)
            movements.append(PlannedMovement(d.driver_id, lower, upper, MovementType.AUTOMATIC_PROMOTION))

    return movements


def apply_shuffle(
    db: Session,
    tiered_league_id: int,
    at_race_count: int,
    standings: List[TierStanding],
    sink: Optional[NotificationSink] = None,
) -> ShuffleResult:
    """
    Registra el shuffle con la foto de la clasificación, aplica los
    movimientos (asignación + historial), notifica y cierra el ciclo para que
    los puntos de tier vuelvan a cero. No hace commit: el llamante cierra la
    transacción.
    """
    sink = sink or DbNotificationSink(db)
    config = get_tier_config(db, tiered_league_id)
    planned = plan_movements(config, standings)

    shuffle = TierShuffle(tiered_league_id=tiered_league_id, after_race_count=at_race_count)
    db.add(shuffle)
    db.flush()
    for tier in standings:
        for rank, entry in enumerate(tier.standings, start=1):
            db.add(TierShuffleStanding(shuffle_id=shuffle.id, driver_id=entry.driver_id,
                                       tier_number=tier.tier_number, rank=rank, points=entry.points))

    assignments = {
        a.driver_id: a
        for a in db.query(TierAssignment).filter(TierAssignment.tiered_league_id == tiered_league_id).all()
    }

    rows = []
    for p in planned:
        assignments[p.driver_id].tier_number = p.to_tier
        movement = TierMovement(
            tiered_league_id=tiered_league_id,
            driver_id=p.driver_id,
            from_tier=p.from_tier,
            to_tier=p.to_tier,
            movement_type=p.movement_type,
            after_race_count=at_race_count,
        )
        db.add(movement)
        rows.append(movement)

    db.flush()
    for movement in rows:
        sink.tier_moved(movement)

    settle_open_cycle(db, tiered_league_id, shuffle.id)
    return ShuffleResult(tiered_league_id=tiered_league_id, after_race_count=at_race_count, movements=planned)


# ==============================================================================
# 2. PROGRAMADOR DE SHUFFLES
# ==============================================================================


def shuffle_due(completed_races: int, races_before_shuffle: int) -> bool:
    return completed_races > 0 and completed_races % races_before_shuffle == 0


def shuffle_already_processed(db: Session, tiered_league_id: int, race_count: int) -> bool:
    """Si hay registro de shuffle o movimientos automáticos en ese nº de carreras, ya se hizo."""
    recorded = db.query(TierShuffle.id).filter(
        TierShuffle.tiered_league_id == tiered_league_id,
        TierShuffle.after_race_count == race_count,
    ).first()
    if recorded is not None:
        return True
    return db.query(TierMovement.id).filter(
        TierMovement.tiered_league_id == tiered_league_id,
        TierMovement.after_race_count == race_count,
        TierMovement.movement_type.in_(AUTOMATIC_MOVEMENTS),
    ).first() is not None


def process_tiered_league(db: Session, tiered_league_id: int, sink: Optional[NotificationSink] = None) -> Optional[ShuffleResult]:
    """Comprueba una liga escalonada y, si toca, aplica el shuffle en una transacción."""
    with keyed_lock("tier_shuffle", tiered_league_id):
        try:
            acquire_advisory_lock(db, "tier_shuffle", tiered_league_id)
            tl = db.get(TieredLeague, tiered_league_id)
            if tl is None:
                raise NotFoundError(f"Liga escalonada {tiered_league_id} no encontrada")

            if tl.races_before_shuffle <= 0 or tl.number_of_tiers < 2:
                logger.warning("⚠️ Liga escalonada %s mal configurada (tiers=%s, cada %s carreras), se omite.",
                               tl.id, tl.number_of_tiers, tl.races_before_shuffle)
                db.rollback()
                return None

            completed = count_completed_races(db, tl.parent_competition_id)
            if completed == 0:
                logger.warning("⚠️ La competición %s de la liga escalonada %s no tiene carreras completadas.",
                               tl.parent_competition_id, tl.id)
                db.rollback()
                return None

            if not shuffle_due(completed, tl.races_before_shuffle):
                db.rollback()
                return None

            if shuffle_already_processed(db, tl.id, completed):
                logger.debug("Shuffle de %s tras %s carreras ya procesado, se omite.", tl.id, completed)
                db.rollback()
                return None

            standings = get_tier_standings(db, tl.id)
            result = apply_shuffle(db, tl.id, completed, standings, sink)
            db.commit()
            logger.info("🔀 Shuffle liga escalonada %s tras %s carreras: %s movimientos",
                        tl.id, completed, len(result.movements))
        except Exception:
            db.rollback()
            raise

    # Las insignias van aparte: si fallan, el shuffle ya aplicado se queda
    try:
        result.badges = award_tier_badges_after_shuffle(db, tl, completed, standings, sink)
    except Exception:
        logger.exception("❌ Fallo concediendo insignias de tier tras el shuffle de %s", tl.id)

    return result


@dataclass
class ShuffleReport:
    results: List[ShuffleResult] = field(default_factory=list)
    failures: Dict[int, str] = field(default_factory=dict)


def check_tier_shuffles(
    db: Session,
    race_id: Optional[int] = None,
    competition_ids: Optional[Iterable[int]] = None,
    sink: Optional[NotificationSink] = None,
) -> ShuffleReport:
    """
    Se llama tras reemplazar los resultados de una carrera. Revisa todas las
    ligas escalonadas cuya competición padre incluye esa carrera. Un fallo en
    una liga no impide procesar las demás.
    """
    report = ShuffleReport()

    if competition_ids is None:
        race = db.get(Race, race_id) if race_id is not None else None
        if race is None:
            return report
        competition_ids = [race.competition_id]

    competition_ids = list(competition_ids)
    if not competition_ids:
        return report

    tl_ids = [
        t.id for t in db.query(TieredLeague.id)
        .filter(TieredLeague.parent_competition_id.in_(competition_ids))
        .order_by(TieredLeague.id)
        .all()
    ]

    for tl_id in tl_ids:
        try:
            result = process_tiered_league(db, tl_id, sink)
            if result is not None:
                report.results.append(result)
        except Exception as exc:
            logger.exception("❌ Fallo evaluando el shuffle de la liga escalonada %s", tl_id)
            report.failures[tl_id] = repr(exc)

    return report


# ==============================================================================
# 3. ASIGNACIONES MANUALES (inicial y admin)
# ==============================================================================


def _check_capacity(db: Session, tl: TieredLeague, tier_number: int):
    if not 1 <= tier_number <= tl.number_of_tiers:
        raise ConfigurationError(f"El tier {tier_number} no existe (hay {tl.number_of_tiers})")
    in_tier = db.query(TierAssignment).filter(
        TierAssignment.tiered_league_id == tl.id, TierAssignment.tier_number == tier_number
    ).count()
    if in_tier >= tl.drivers_per_tier:
        raise TierCapacityError(f"El tier {tier_number} está completo ({tl.drivers_per_tier} pilotos)")


def _record_manual_movement(db, tl, driver_id, from_tier, to_tier, movement_type, sink) -> TierMovement:
    movement = TierMovement(
        tiered_league_id=tl.id,
        driver_id=driver_id,
        from_tier=from_tier,
        to_tier=to_tier,
        movement_type=movement_type,
        after_race_count=count_completed_races(db, tl.parent_competition_id),
    )
    db.add(movement)
    db.flush()
    sink.tier_moved(movement)
    return movement


def assign_driver_to_tier(db: Session, tiered_league_id: int, driver_id: int, tier_number: int,
                          sink: Optional[NotificationSink] = None) -> TierMovement:
    """Asignación inicial. Las carreras ya corridas del ciclo no le suman."""
    sink = sink or DbNotificationSink(db)
    with keyed_lock("tier_shuffle", tiered_league_id):
        try:
            tl = db.get(TieredLeague, tiered_league_id)
            if tl is None:
                raise NotFoundError(f"Liga escalonada {tiered_league_id} no encontrada")
            existing = db.query(TierAssignment).filter_by(tiered_league_id=tl.id, driver_id=driver_id).first()
            if existing:
                raise PaddockError(f"El piloto {driver_id} ya está en el tier {existing.tier_number}")
            _check_capacity(db, tl, tier_number)

            db.add(TierAssignment(tiered_league_id=tl.id, driver_id=driver_id, tier_number=tier_number))
            settle_for_driver(db, tl.id, driver_id)
            movement = _record_manual_movement(db, tl, driver_id, 0, tier_number,
                                               MovementType.INITIAL_ASSIGNMENT, sink)
            db.commit()
        except Exception:
            db.rollback()
            raise
    return movement


def admin_move_driver(db: Session, tiered_league_id: int, driver_id: int, to_tier: int,
                      sink: Optional[NotificationSink] = None) -> TierMovement:
    """Ascenso/descenso manual. No cuenta para la deduplicación de shuffles."""
    sink = sink or DbNotificationSink(db)
    with keyed_lock("tier_shuffle", tiered_league_id):
        try:
            tl = db.get(TieredLeague, tiered_league_id)
            if tl is None:
                raise NotFoundError(f"Liga escalonada {tiered_league_id} no encontrada")
            assignment = db.query(TierAssignment).filter_by(tiered_league_id=tl.id, driver_id=driver_id).first()
            if assignment is None:
                raise NotFoundError(f"El piloto {driver_id} no tiene tier en la liga {tl.id}")
            if assignment.tier_number == to_tier:
                raise PaddockError(f"El piloto {driver_id} ya está en el tier {to_tier}")
            _check_capacity(db, tl, to_tier)

            from_tier = assignment.tier_number
            movement_type = MovementType.ADMIN_PROMOTION if to_tier < from_tier else MovementType.ADMIN_RELEGATION
            assignment.tier_number = to_tier
            movement = _record_manual_movement(db, tl, driver_id, from_tier, to_tier, movement_type, sink)
            db.commit()
        except Exception:
            db.rollback()
            raise
    return movement
