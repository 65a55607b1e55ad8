from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session, joinedload

from paddock.api.common import to_http
from paddock.core.errors import PaddockError
from paddock.db.models.badge import Badge, DriverBadge
from paddock.db.session import get_db
from paddock.schemas.badges import BadgeNotificationOut, BadgeOut, DriverBadgeOut
from paddock.schemas.results import SyncResultOut
from paddock.services import notifications
from paddock.services.badge_catalog import BADGE_DEFINITIONS, BADGE_ORDER, seed_badges
from paddock.services.results_ledger import resync_driver

router = APIRouter(tags=["Badges"])


@router.get("/badges", response_model=list[BadgeOut])
def list_badges(db: Session = Depends(get_db)):
    all_badges = db.query(Badge).all()

    # Si la base de datos está vacía (o faltan insignias), ejecutamos la semilla
    if len(all_badges) < len(BADGE_DEFINITIONS):
        seed_badges(db)
        all_badges = db.query(Badge).all()

    return sorted(all_badges, key=lambda b: BADGE_ORDER.get(b.slug, len(BADGE_ORDER)))


@router.get("/drivers/{driver_id}/badges", response_model=list[DriverBadgeOut])
def get_driver_badges(driver_id: int, db: Session = Depends(get_db)):
    rows = (
        db.query(DriverBadge)
        .options(joinedload(DriverBadge.badge))
        .filter(DriverBadge.driver_id == driver_id)
        .order_by(DriverBadge.awarded_at, DriverBadge.id)
        .all()
    )
    return [
        {
            "slug": r.badge.slug,
            "name": r.badge.name,
            "icon": r.badge.icon,
            "rarity": r.badge.rarity.value,
            "category": r.badge.category.value,
            "league_id": r.league_id,
            "awarded_at": r.awarded_at,
        }
        for r in rows
    ]


@router.post("/drivers/{driver_id}/badges/sync", response_model=SyncResultOut)
def sync_driver(driver_id: int, db: Session = Depends(get_db)):
    """Re-sync manual de un piloto (tras un fallo registrado en los logs)."""
    try:
        return resync_driver(db, driver_id).to_dict()
    except PaddockError as exc:
        raise to_http(exc)


# -----------------------
# Notificaciones
# -----------------------
@router.get("/drivers/{driver_id}/notifications/badges", response_model=list[BadgeNotificationOut])
def unread_badge_notifications(driver_id: int, db: Session = Depends(get_db)):
    return [
        {
            "id": n.id,
            "badge_slug": n.badge.slug,
            "badge_name": n.badge.name,
            "league_id": n.league_id,
            "is_read": n.is_read,
            "created_at": n.created_at,
        }
        for n in notifications.unread_badge_notifications(db, driver_id)
    ]


@router.patch("/notifications/badges/{notification_id}/read")
def read_badge_notification(notification_id: int, db: Session = Depends(get_db)):
    if not notifications.mark_badge_notification_read(db, notification_id):
        raise HTTPException(404, "Notificación no encontrada")
    return {"message": "Notificación marcada como leída"}


@router.post("/drivers/{driver_id}/notifications/badges/read-all")
def read_all_badge_notifications(driver_id: int, db: Session = Depends(get_db)):
    return {"updated": notifications.mark_all_badge_notifications_read(db, driver_id)}
