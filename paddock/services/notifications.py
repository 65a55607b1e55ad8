from typing import List, Optional, Protocol

from sqlalchemy.orm import Session, joinedload

from paddock.db.models.badge import Badge, BadgeNotification
from paddock.db.models.tiered_league import TierMovement, TierMovementNotification

# ==============================================================================
# SUMIDERO DE NOTIFICACIONES
# ==============================================================================
# El sincronizador y el motor de tiers lo reciben como dependencia; no importan
# la tabla de notificaciones por su cuenta.


class NotificationSink(Protocol):
    def badge_awarded(self, driver_id: int, badge: Badge, league_id: Optional[int] = None) -> None: ...

    def badge_revoked(self, driver_id: int, badge: Badge, league_id: Optional[int] = None) -> None: ...

    def tier_moved(self, movement: TierMovement) -> None: ...


class DbNotificationSink:
    """Escribe las notificaciones en la misma sesión (y transacción) que el cambio."""

    def __init__(self, db: Session):
        self.db = db

    def badge_awarded(self, driver_id: int, badge: Badge, league_id: Optional[int] = None):
        self.db.add(BadgeNotification(driver_id=driver_id, badge_id=badge.id, league_id=league_id))

    def badge_revoked(self, driver_id: int, badge: Badge, league_id: Optional[int] = None):
        # Nunca dejamos un aviso de una insignia que ya no se tiene
        self.db.query(BadgeNotification).filter(
            BadgeNotification.driver_id == driver_id,
            BadgeNotification.badge_id == badge.id,
            BadgeNotification.league_id.is_(None) if league_id is None
            else BadgeNotification.league_id == league_id,
        ).delete(synchronize_session="fetch")

    def tier_moved(self, movement: TierMovement):
        self.db.add(TierMovementNotification(driver_id=movement.driver_id, movement_id=movement.id))


# ==============================================================================
# LECTURA (lo que consume la UI)
# ==============================================================================

def unread_badge_notifications(db: Session, driver_id: int) -> List[BadgeNotification]:
    return (
        db.query(BadgeNotification)
        .options(joinedload(BadgeNotification.badge))
        .filter(BadgeNotification.driver_id == driver_id, BadgeNotification.is_read.is_(False))
        .order_by(BadgeNotification.created_at.desc(), BadgeNotification.id.desc())
        .all()
    )


def unread_tier_notifications(db: Session, driver_id: int) -> List[TierMovementNotification]:
    return (
        db.query(TierMovementNotification)
        .options(joinedload(TierMovementNotification.movement))
        .filter(TierMovementNotification.driver_id == driver_id, TierMovementNotification.is_read.is_(False))
        .order_by(TierMovementNotification.created_at.desc(), TierMovementNotification.id.desc())
        .all()
    )


def mark_badge_notification_read(db: Session, notification_id: int) -> Optional[BadgeNotification]:
    notification = db.get(BadgeNotification, notification_id)
    if notification:
        notification.is_read = True
        db.commit()
    return notification


def mark_tier_notification_read(db: Session, notification_id: int) -> Optional[TierMovementNotification]:
    notification = db.get(TierMovementNotification, notification_id)
    if notification:
        notification.is_read = True
        db.commit()
    return notification


def mark_all_badge_notifications_read(db: Session, driver_id: int) -> int:
    count = db.query(BadgeNotification).filter(
        BadgeNotification.driver_id == driver_id, BadgeNotification.is_read.is_(False)
    ).update({BadgeNotification.is_read: True}, synchronize_session="fetch")
    db.commit()
    return count


def mark_all_tier_notifications_read(db: Session, driver_id: int) -> int:
    count = db.query(TierMovementNotification).filter(
        TierMovementNotification.driver_id == driver_id, TierMovementNotification.is_read.is_(False)
    ).update({TierMovementNotification.is_read: True}, synchronize_session="fetch")
    db.commit()
    return count
