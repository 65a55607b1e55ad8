import logging
from typing import Dict

from sqlalchemy.orm import Session

from paddock.core.errors import NotFoundError
from paddock.db.models.league import League, LeagueStatus
from paddock.services.badge_sync import SyncResult
from paddock.services.season_badges import sync_season_end_badges

logger = logging.getLogger(__name__)


def complete_league(db: Session, league_id: int) -> Dict[int, SyncResult]:
    """
    Cierra la temporada: estado 'completed' + evaluación de fin de temporada
    (posiciones, asistencia, superlativos y campeones de tier).
    Llamarlo otra vez sobre una liga ya cerrada simplemente re-sincroniza.
    """
    league = db.get(League, league_id)
    if not league:
        raise NotFoundError(f"Liga {league_id} no encontrada")

    if league.status != LeagueStatus.COMPLETED:
        league.status = LeagueStatus.COMPLETED
        db.commit()
        logger.info("🏁 Liga %s marcada como completada", league_id)

    return sync_season_end_badges(db, league_id)


def reopen_league(db: Session, league_id: int) -> League:
    """Vuelve a 'active'. Las insignias de fin de temporada ya concedidas se quedan."""
    league = db.get(League, league_id)
    if not league:
        raise NotFoundError(f"Liga {league_id} no encontrada")
    league.status = LeagueStatus.ACTIVE
    db.commit()
    return league
