import logging
import math
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session, joinedload

from paddock.db.models.badge import Badge, DriverBadge
from paddock.db.models.league import Competition, League, LeagueStatus
from paddock.db.models.race import Race
from paddock.db.models.result import Result
from paddock.services.badge_catalog import (
    SEASON_END_BADGE_SLUGS,
    TIER_SEASON_BADGE_SLUGS,
    badges_by_slug,
    ordered,
)
from paddock.services.badge_sync import SyncResult
from paddock.services.notifications import DbNotificationSink, NotificationSink
from paddock.services.tier_badges import season_tier_eligibility

logger = logging.getLogger(__name__)

NEVER_QUIT_FLOOR = 8  # "Never Quit": siempre P8 o peor

# ==============================================================================
# 1. CLASIFICACIÓN DE TEMPORADA (puro)
# ==============================================================================


@dataclass(frozen=True)
class SeasonResultRow:
    driver_id: int
    race_id: int
    position: int
    points: int
    qualifying_position: Optional[int] = None


@dataclass
class SeasonLine:
    driver_id: int
    races: Set[int] = field(default_factory=set)
    points: int = 0
    wins: int = 0
    podiums: int = 0
    finishes: List[tuple] = field(default_factory=list)  # (race_id, position)
    poles: int = 0
    quali_ahead_of_finish: int = 0
    best_grid_climb: int = 0


def build_season_standings(rows: List[SeasonResultRow]) -> List[SeasonLine]:
    """Agregado por piloto sobre TODAS las carreras de la liga, ordenado por puntos (empate: id)."""
    lines: Dict[int, SeasonLine] = {}
    for r in rows:
        line = lines.setdefault(r.driver_id, SeasonLine(driver_id=r.driver_id))
        line.races.add(r.race_id)
        line.points += r.points
        line.finishes.append((r.race_id, r.position))
        if r.position == 1: line.wins += 1
        if r.position <= 3: line.podiums += 1
        if r.qualifying_position is not None:
            if r.qualifying_position == 1: line.poles += 1
            if r.qualifying_position < r.position: line.quali_ahead_of_finish += 1
            line.best_grid_climb = max(line.best_grid_climb, r.qualifying_position - r.position)
    return sorted(lines.values(), key=lambda l: (-l.points, l.driver_id))


def season_end_eligibility(rows: List[SeasonResultRow], race_ids: Set[int]) -> Dict[str, Set[int]]:
    """slug -> pilotos que la merecen en esta liga."""
    eligible: Dict[str, Set[int]] = {slug: set() for slug in SEASON_END_BADGE_SLUGS}
    standings = build_season_standings(rows)
    field_sizes = Counter(r.race_id for r in rows)

    for i, line in enumerate(standings):
        full_attendance = bool(race_ids) and line.races >= race_ids

        if full_attendance:
            eligible["season_complete"].add(line.driver_id)
            eligible["iron_driver"].add(line.driver_id)
            if all(pos >= NEVER_QUIT_FLOOR for _, pos in line.finishes):
                eligible["never_quit"].add(line.driver_id)
            if all(pos > math.ceil(field_sizes[race] / 2) for race, pos in line.finishes):
                eligible["league_laughs_never_quit"].add(line.driver_id)

        if i == 0: eligible["league_champion"].add(line.driver_id)
        if i == 1: eligible["runner_up"].add(line.driver_id)
        if i == 2: eligible["third_overall"].add(line.driver_id)
        if i == 3: eligible["best_of_rest"].add(line.driver_id)

    if standings:
        last = standings[-1]
        if race_ids and last.races >= race_ids:
            eligible["last_but_loyal"].add(last.driver_id)

    # Superlativos: TODOS los empatados en el máximo
    for slug, attr in (
        ("dominator", "wins"),
        ("podium_king", "podiums"),
        ("the_flash", "poles"),
        ("quali_merchant", "quali_ahead_of_finish"),
        ("most_dramatic_swing", "best_grid_climb"),
    ):
        best = max((getattr(l, attr) for l in standings), default=0)
        if best > 0:
            eligible[slug].update(l.driver_id for l in standings if getattr(l, attr) == best)

    return eligible


# ==============================================================================
# 2. SINCRONIZACIÓN (por liga, revocación sólo dentro de la liga)
# ==============================================================================


def league_race_ids(db: Session, league_id: int) -> Set[int]:
    return {
        r.id for r in db.query(Race.id)
        .join(Competition, Competition.id == Race.competition_id)
        .filter(Competition.league_id == league_id)
        .all()
    }


def sync_season_end_badges(db: Session, league_id: int, sink: Optional[NotificationSink] = None) -> Dict[int, SyncResult]:
    """
    Recalcula las insignias de fin de temporada de una liga COMPLETADA y
    aplica la diferencia. Las insignias de otras ligas no se tocan.
    """
    sink = sink or DbNotificationSink(db)
    league = db.get(League, league_id)
    if not league or league.status != LeagueStatus.COMPLETED:
        return {}

    logger.info("🏁 Evaluando insignias de fin de temporada de la liga %s", league_id)

    race_ids = league_race_ids(db, league_id)
    rows = [
        SeasonResultRow(r.driver_id, r.race_id, r.position, r.points or 0, r.qualifying_position)
        for r in db.query(Result).filter(Result.race_id.in_(race_ids)).all()
    ] if race_ids else []

    eligible = season_end_eligibility(rows, race_ids)
    for slug, drivers in season_tier_eligibility(db, league_id).items():
        eligible.setdefault(slug, set()).update(drivers)

    slugs = SEASON_END_BADGE_SLUGS + TIER_SEASON_BADGE_SLUGS
    catalog = badges_by_slug(db, [s for s in slugs if eligible.get(s)])

    held_rows = (
        db.query(DriverBadge)
        .options(joinedload(DriverBadge.badge))
        .join(Badge, Badge.id == DriverBadge.badge_id)
        .filter(DriverBadge.league_id == league_id, Badge.slug.in_(slugs))
        .all()
    )
    held: Dict[int, Dict[str, DriverBadge]] = {}
    for row in held_rows:
        held.setdefault(row.driver_id, {})[row.badge.slug] = row

    drivers = {r.driver_id for r in rows} | set(held)
    for ds in eligible.values():
        drivers |= ds

    outcome: Dict[int, SyncResult] = {}
    for driver_id in sorted(drivers):
        should_have = {slug for slug, ds in eligible.items() if driver_id in ds}
        has = held.get(driver_id, {})
        result = SyncResult()
        try:
            for slug in ordered(should_have - set(has)):
                badge = catalog.get(slug)
                if not badge:
                    continue
                db.add(DriverBadge(driver_id=driver_id, badge_id=badge.id, league_id=league_id))
                sink.badge_awarded(driver_id, badge, league_id)
                result.awarded.append(slug)
                logger.info("🏆 FIN DE TEMPORADA: %s (piloto %s, liga %s)", slug, driver_id, league_id)

            for slug in ordered(set(has) - should_have):
                row = has[slug]
                db.delete(row)
                sink.badge_revoked(driver_id, row.badge, league_id)
                result.revoked.append(slug)
                logger.info("🚫 REVOCADA: %s (piloto %s, liga %s)", slug, driver_id, league_id)

            db.commit()
        except Exception:
            db.rollback()
            logger.exception("❌ Fallo con las insignias de fin de temporada del piloto %s (liga %s)",
                             driver_id, league_id)
            continue

        if result.awarded or result.revoked:
            outcome[driver_id] = result

    return outcome
