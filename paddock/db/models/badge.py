# paddock/db/models/badge.py
from sqlalchemy import String, Integer, Boolean, ForeignKey, DateTime, Index, UniqueConstraint, text, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
import enum
from typing import TYPE_CHECKING
from paddock.db.session import Base

if TYPE_CHECKING:
    from .driver import Driver
    from .league import League


# --- ENUMS PARA CATEGORIZACIÓN ---
class BadgeRarity(str, enum.Enum):
    COMMON = "COMMON"
    RARE = "RARE"
    EPIC = "EPIC"
    LEGENDARY = "LEGENDARY"
    HIDDEN = "HIDDEN"


class BadgeCategory(str, enum.Enum):
    RESULT = "RESULT"          # Recalculable desde los resultados (revocable)
    SEASON_END = "SEASON_END"  # Al cerrar una liga, una por liga
    TIER = "TIER"              # Historial de ascensos/descensos
    MANUAL = "MANUAL"          # Concedida a mano por un admin, el motor no la toca


class Badge(Base):
    __tablename__ = "badges"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    slug: Mapped[str] = mapped_column(String, unique=True, index=True)  # Ej: "first_win"
    name: Mapped[str] = mapped_column(String)
    description: Mapped[str] = mapped_column(String)
    icon: Mapped[str] = mapped_column(String)  # Ej: "Trophy", "Zap"
    rarity: Mapped[BadgeRarity] = mapped_column(SqEnum(BadgeRarity), default=BadgeRarity.COMMON)
    category: Mapped[BadgeCategory] = mapped_column(SqEnum(BadgeCategory), default=BadgeCategory.RESULT)


class DriverBadge(Base):
    """
    Insignia en posesión de un piloto.
    league_id sólo se rellena en insignias de fin de temporada: así un piloto
    puede tener el mismo slug una vez por liga completada.
    """
    __tablename__ = "driver_badges"
    __table_args__ = (
        UniqueConstraint("driver_id", "badge_id", "league_id", name="uq_driver_badge_league"),
        # Con league_id nulo la restricción de arriba no actúa (NULL != NULL)
        Index(
            "uq_driver_badge_global", "driver_id", "badge_id", unique=True,
            sqlite_where=text("league_id IS NULL"), postgresql_where=text("league_id IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    driver_id: Mapped[int] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id"), nullable=False)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id"), nullable=True)
    awarded_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    driver: Mapped["Driver"] = relationship("Driver")
    badge: Mapped["Badge"] = relationship("Badge")
    league: Mapped["League"] = relationship("League")


class BadgeNotification(Base):
    __tablename__ = "badge_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    driver_id: Mapped[int] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    badge_id: Mapped[int] = mapped_column(Integer, ForeignKey("badges.id"), nullable=False)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id"), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    badge: Mapped["Badge"] = relationship("Badge")
