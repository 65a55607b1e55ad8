import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from sqlalchemy.orm import Session, joinedload

from paddock.core.config import SYNC_WORKERS
from paddock.core.locks import acquire_advisory_lock, keyed_lock
from paddock.db.models.badge import Badge, DriverBadge
from paddock.services.badge_catalog import REVOCABLE_BADGE_SLUGS, badges_by_slug, ordered
from paddock.services.badge_rules import eligible_badges
from paddock.services.notifications import DbNotificationSink, NotificationSink
from paddock.services.statistics import get_driver_statistics

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. DIFF PURO
# ==============================================================================


@dataclass(frozen=True)
class BadgeDiff:
    to_award: Set[str]
    to_revoke: Set[str]


def diff_badges(eligible: Set[str], held: Set[str], revocable: Iterable[str] = REVOCABLE_BADGE_SLUGS) -> BadgeDiff:
    """
    Elegibles que no se tienen -> conceder.
    Tenidas que ya no son elegibles -> revocar, pero SÓLO si están en la lista
    de revocables (las manuales y las de fin de temporada no se tocan aquí).
    """
    revocable = set(revocable)
    return BadgeDiff(
        to_award=eligible - held,
        to_revoke={slug for slug in held - eligible if slug in revocable},
    )


# ==============================================================================
# 2. SINCRONIZADOR (un piloto, una transacción)
# ==============================================================================


@dataclass
class SyncResult:
    awarded: List[str] = field(default_factory=list)
    revoked: List[str] = field(default_factory=list)

    def to_dict(self):
        return {"awarded": self.awarded, "revoked": self.revoked}


def get_held_badges(db: Session, driver_id: int) -> Dict[str, List[DriverBadge]]:
    """Insignias globales (sin liga) que tiene el piloto, agrupadas por slug."""
    rows = (
        db.query(DriverBadge)
        .options(joinedload(DriverBadge.badge))
        .filter(DriverBadge.driver_id == driver_id, DriverBadge.league_id.is_(None))
        .all()
    )
    held: Dict[str, List[DriverBadge]] = {}
    for row in rows:
        held.setdefault(row.badge.slug, []).append(row)
    return held


def sync_driver_badges(db: Session, driver_id: int, sink: Optional[NotificationSink] = None) -> SyncResult:
    """
    Recalcula desde el libro de resultados y aplica sólo la diferencia.
    Llamarlo dos veces seguidas sin cambios en los resultados no hace nada.
    Cualquier error deshace TODO lo de este piloto.
    """
    sink = sink or DbNotificationSink(db)
    result = SyncResult()

    with keyed_lock("badge_sync", driver_id):
        try:
            acquire_advisory_lock(db, "badge_sync", driver_id)

            stats = get_driver_statistics(db, driver_id)
            held = get_held_badges(db, driver_id)
            diff = diff_badges(eligible_badges(stats), set(held))

            catalog = badges_by_slug(db, diff.to_award)
            for slug in ordered(diff.to_award):
                badge = catalog.get(slug)
                if not badge:
                    continue
                db.add(DriverBadge(driver_id=driver_id, badge_id=badge.id))
                sink.badge_awarded(driver_id, badge)
                result.awarded.append(slug)
                logger.info("🏆 DESBLOQUEADA: %s (piloto %s)", slug, driver_id)

            for slug in ordered(diff.to_revoke):
                rows = held[slug]
                badge: Badge = rows[0].badge
                for row in rows:
                    db.delete(row)
                sink.badge_revoked(driver_id, badge)
                result.revoked.append(slug)
                logger.info("🚫 REVOCADA: %s (piloto %s)", slug, driver_id)

            db.commit()
        except Exception:
            db.rollback()
            raise

    return result


# ==============================================================================
# 3. LOTES (un fallo no bloquea al resto)
# ==============================================================================


@dataclass
class BatchSyncReport:
    results: Dict[int, SyncResult] = field(default_factory=dict)
    failures: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def _sync_isolated(db: Session, driver_id: int):
    try:
        return driver_id, sync_driver_badges(db, driver_id), None
    except Exception as exc:
        logger.exception("❌ Fallo sincronizando insignias del piloto %s (requiere re-sync manual)", driver_id)
        return driver_id, None, repr(exc)


def _sync_in_own_session(bind, driver_id: int):
    with Session(bind=bind, autoflush=False, expire_on_commit=False) as session:
        return _sync_isolated(session, driver_id)


def sync_drivers(db: Session, driver_ids: Iterable[int], workers: int = SYNC_WORKERS) -> BatchSyncReport:
    """
    Sincroniza varios pilotos. Cada uno es independiente: los fallos se
    recogen en el informe en vez de lanzarse.
    Con workers > 1 cada hilo abre su propia sesión contra el mismo engine.
    """
    report = BatchSyncReport()
    driver_ids = sorted(set(driver_ids))
    if not driver_ids:
        return report

    if workers <= 1 or len(driver_ids) == 1:
        outcomes = [_sync_isolated(db, d) for d in driver_ids]
    else:
        bind = db.get_bind()
        with ThreadPoolExecutor(max_workers=workers) as pool:
            outcomes = list(pool.map(lambda d: _sync_in_own_session(bind, d), driver_ids))

    for driver_id, outcome, error in outcomes:
        if error is not None:
            report.failures[driver_id] = error
        else:
            report.results[driver_id] = outcome
    return report
