import logging
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session

from paddock.db.models.badge import DriverBadge
from paddock.db.models.league import Competition
from paddock.db.models.tiered_league import (
    AUTOMATIC_MOVEMENTS,
    PROMOTIONS,
    RELEGATIONS,
    MovementType,
    TierAssignment,
    TieredLeague,
    TierMovement,
    TierShuffle,
)
from paddock.services.badge_catalog import TIER_SEASON_BADGE_SLUGS, badges_by_slug, ordered, tier_champion_slug
from paddock.services.notifications import DbNotificationSink, NotificationSink
from paddock.services.tier_standings import TierStanding, get_tier_standings, open_cycle_race_ids

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. REGLAS TRAS UN SHUFFLE (puras, sobre el historial de movimientos)
# ==============================================================================


def shuffle_badges(
    history: List[TierMovement],
    at_race_count: int,
    races_before_shuffle: int,
    rank_in_tier: int,
    tier_size: int,
    relegation_spots: int,
) -> Set[str]:
    """
    history: TODOS los movimientos del piloto en esta liga escalonada.
    rank_in_tier / tier_size: posición en su tier justo antes de aplicar el shuffle.
    """
    unlocks = set()
    now = [m for m in history if m.movement_type in AUTOMATIC_MOVEMENTS and m.after_race_count == at_race_count]
    before = [
        m for m in history
        if m.movement_type != MovementType.INITIAL_ASSIGNMENT and m.after_race_count < at_race_count
    ]
    previous_shuffle = at_race_count - races_before_shuffle

    promotion = next((m for m in now if m.movement_type == MovementType.AUTOMATIC_PROMOTION), None)
    relegated_now = any(m.movement_type == MovementType.AUTOMATIC_RELEGATION for m in now)

    if promotion:
        if any(m.movement_type in RELEGATIONS for m in before):
            unlocks.add("back_on_the_up")
        if any(m.movement_type == MovementType.AUTOMATIC_PROMOTION and m.after_race_count == previous_shuffle for m in before):
            unlocks.add("double_jump")
        if any(m.movement_type == MovementType.AUTOMATIC_RELEGATION and m.after_race_count == previous_shuffle for m in before):
            unlocks.add("bounced_back")
        if promotion.to_tier == 1:
            unlocks.add("summit")

    if not now and before:
        unlocks.add("held_the_line")

    if rank_in_tier == 1 and tier_size >= 2:
        unlocks.add("tier_leader")

    in_danger = relegation_spots > 0 and rank_in_tier > tier_size - relegation_spots
    if in_danger and not relegated_now and tier_size > relegation_spots:
        unlocks.add("great_escape")

    return unlocks


# ==============================================================================
# 2. REGLAS DE FIN DE TEMPORADA (puras)
# ==============================================================================


def season_tier_badges(
    history: List[TierMovement],
    final_tier: int,
    shuffles_held: int,
    champion_of: Optional[int] = None,
) -> Set[str]:
    """
    champion_of: tier que el piloto ganó en el último ciclo de la temporada
    (puede no ser su tier actual si el ciclo acabó en shuffle).
    """
    unlocks = set()

    if champion_of is not None:
        champion = tier_champion_slug(champion_of)
        if champion:
            unlocks.add(champion)

    if shuffles_held == 0:
        return unlocks

    relegated = any(m.movement_type in RELEGATIONS for m in history)
    promoted = any(m.movement_type in PROMOTIONS for m in history)

    if not relegated:
        unlocks.add("safe_hands")
    if not relegated and final_tier == 1 and all(m.to_tier == 1 for m in history):
        unlocks.add("untouchable")
    if promoted and relegated:
        unlocks.add("elevator_operator")

    return unlocks


# ==============================================================================
# 3. ORQUESTACIÓN
# ==============================================================================


def _ranks(standings: Iterable[TierStanding]) -> Dict[int, tuple]:
    """driver_id -> (tier, posición en el tier, tamaño del tier)"""
    out = {}
    for tier in standings:
        for i, entry in enumerate(tier.standings):
            out[entry.driver_id] = (tier.tier_number, i + 1, len(tier.standings))
    return out


def movement_history(db: Session, tiered_league_id: int, driver_id: Optional[int] = None) -> Dict[int, List[TierMovement]]:
    q = db.query(TierMovement).filter(TierMovement.tiered_league_id == tiered_league_id)
    if driver_id is not None:
        q = q.filter(TierMovement.driver_id == driver_id)
    history: Dict[int, List[TierMovement]] = {}
    for m in q.order_by(TierMovement.after_race_count, TierMovement.id).all():
        history.setdefault(m.driver_id, []).append(m)
    return history


def award_tier_badges_after_shuffle(
    db: Session,
    tiered_league: TieredLeague,
    at_race_count: int,
    pre_shuffle_standings: List[TierStanding],
    sink: Optional[NotificationSink] = None,
) -> Dict[int, List[str]]:
    """
    Concede (nunca revoca: el historial sólo crece) las insignias de tier a
    cada piloto que estaba en la clasificación del shuffle.
    """
    sink = sink or DbNotificationSink(db)
    history = movement_history(db, tiered_league.id)
    ranks = _ranks(pre_shuffle_standings)

    eligible: Dict[int, Set[str]] = {}
    for driver_id, (tier, rank, size) in ranks.items():
        # Del último tier no baja nadie: no hay zona de descenso
        relegation_spots = tiered_league.relegation_spots if tier < tiered_league.number_of_tiers else 0
        slugs = shuffle_badges(
            history.get(driver_id, []),
            at_race_count,
            tiered_league.races_before_shuffle,
            rank,
            size,
            relegation_spots,
        )
        if slugs:
            eligible[driver_id] = slugs

    catalog = badges_by_slug(db, set().union(*eligible.values()) if eligible else set())
    awarded: Dict[int, List[str]] = {}
    try:
        for driver_id, slugs in sorted(eligible.items()):
            held = {
                row.badge.slug
                for row in db.query(DriverBadge).filter(
                    DriverBadge.driver_id == driver_id, DriverBadge.league_id.is_(None)
                ).all()
            }
            for slug in ordered(slugs - held):
                badge = catalog.get(slug)
                if not badge:
                    continue
                db.add(DriverBadge(driver_id=driver_id, badge_id=badge.id))
                sink.badge_awarded(driver_id, badge)
                awarded.setdefault(driver_id, []).append(slug)
                logger.info("🏆 Tier: %s (piloto %s)", slug, driver_id)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return awarded


def final_cycle_champions(db: Session, tiered_league_id: int) -> Dict[int, int]:
    """
    driver_id -> tier ganado en el último ciclo. Si hay carreras desde el
    último shuffle manda la clasificación actual; si la temporada acabó justo
    en un shuffle, la foto guardada antes de aplicarlo. Sin puntos no hay
    campeón.
    """
    if open_cycle_race_ids(db, tiered_league_id):
        final = [
            (entry.driver_id, tier.tier_number, rank, entry.points)
            for tier in get_tier_standings(db, tiered_league_id)
            for rank, entry in enumerate(tier.standings, start=1)
        ]
    else:
        last = (
            db.query(TierShuffle)
            .filter(TierShuffle.tiered_league_id == tiered_league_id)
            .order_by(TierShuffle.after_race_count.desc(), TierShuffle.id.desc())
            .first()
        )
        if last is None:
            return {}
        final = [(s.driver_id, s.tier_number, s.rank, s.points) for s in last.standings]

    return {driver_id: tier for driver_id, tier, rank, points in final if rank == 1 and points > 0}


def season_tier_eligibility(db: Session, league_id: int) -> Dict[str, Set[int]]:
    """slug -> pilotos que la merecen, para todas las ligas escalonadas de la liga."""
    eligible: Dict[str, Set[int]] = {slug: set() for slug in TIER_SEASON_BADGE_SLUGS}

    tiered_leagues = (
        db.query(TieredLeague)
        .join(Competition, Competition.id == TieredLeague.parent_competition_id)
        .filter(Competition.league_id == league_id)
        .all()
    )
    for tl in tiered_leagues:
        history = movement_history(db, tl.id)
        shuffles_held = db.query(TierShuffle).filter(TierShuffle.tiered_league_id == tl.id).count()
        champions = final_cycle_champions(db, tl.id)
        for a in db.query(TierAssignment).filter(TierAssignment.tiered_league_id == tl.id).all():
            champion_of = champions.get(a.driver_id)
            for slug in season_tier_badges(history.get(a.driver_id, []), a.tier_number, shuffles_held, champion_of):
                eligible.setdefault(slug, set()).add(a.driver_id)

    return eligible
