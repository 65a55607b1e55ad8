from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from paddock.api.common import to_http
from paddock.core.errors import PaddockError
from paddock.db.models.tiered_league import TierMovement
from paddock.db.session import get_db
from paddock.schemas.tiers import (
    TierAssignIn,
    TierMoveIn,
    TierMovementOut,
    TierNotificationOut,
    TierStandingOut,
)
from paddock.services import notifications
from paddock.services.tier_shuffle import admin_move_driver, assign_driver_to_tier
from paddock.services.tier_standings import get_tier_standings

router = APIRouter(tags=["Tiered Leagues"])


@router.get("/tiered-leagues/{tiered_league_id}/standings", response_model=list[TierStandingOut])
def tier_standings(tiered_league_id: int, db: Session = Depends(get_db)):
    try:
        return get_tier_standings(db, tiered_league_id)
    except PaddockError as exc:
        raise to_http(exc)


@router.get("/tiered-leagues/{tiered_league_id}/movements", response_model=list[TierMovementOut])
def tier_movements(tiered_league_id: int, db: Session = Depends(get_db)):
    return (
        db.query(TierMovement)
        .filter(TierMovement.tiered_league_id == tiered_league_id)
        .order_by(TierMovement.after_race_count, TierMovement.id)
        .all()
    )


@router.post("/tiered-leagues/{tiered_league_id}/assignments", response_model=TierMovementOut, status_code=201)
def assign_driver(tiered_league_id: int, data: TierAssignIn, db: Session = Depends(get_db)):
    try:
        return assign_driver_to_tier(db, tiered_league_id, data.driver_id, data.tier_number)
    except PaddockError as exc:
        raise to_http(exc)


@router.post("/tiered-leagues/{tiered_league_id}/assignments/{driver_id}/move", response_model=TierMovementOut)
def move_driver(tiered_league_id: int, driver_id: int, data: TierMoveIn, db: Session = Depends(get_db)):
    try:
        return admin_move_driver(db, tiered_league_id, driver_id, data.to_tier)
    except PaddockError as exc:
        raise to_http(exc)


# -----------------------
# Notificaciones
# -----------------------
@router.get("/drivers/{driver_id}/notifications/tiers", response_model=list[TierNotificationOut])
def unread_tier_notifications(driver_id: int, db: Session = Depends(get_db)):
    return notifications.unread_tier_notifications(db, driver_id)


@router.patch("/notifications/tiers/{notification_id}/read")
def read_tier_notification(notification_id: int, db: Session = Depends(get_db)):
    if not notifications.mark_tier_notification_read(db, notification_id):
        raise HTTPException(404, "Notificación no encontrada")
    return {"message": "Notificación marcada como leída"}


@router.post("/drivers/{driver_id}/notifications/tiers/read-all")
def read_all_tier_notifications(driver_id: int, db: Session = Depends(get_db)):
    return {"updated": notifications.mark_all_tier_notifications_read(db, driver_id)}
