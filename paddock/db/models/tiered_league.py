# paddock/db/models/tiered_league.py
from sqlalchemy import String, Integer, Boolean, ForeignKey, DateTime, UniqueConstraint, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import List, Optional, TYPE_CHECKING
import enum
from paddock.db.session import Base

if TYPE_CHECKING:
    from .league import Competition
    from .driver import Driver


class MovementType(str, enum.Enum):
    INITIAL_ASSIGNMENT = "initial_assignment"
    AUTOMATIC_PROMOTION = "automatic_promotion"
    AUTOMATIC_RELEGATION = "automatic_relegation"
    ADMIN_PROMOTION = "admin_promotion"
    ADMIN_RELEGATION = "admin_relegation"


AUTOMATIC_MOVEMENTS = (MovementType.AUTOMATIC_PROMOTION, MovementType.AUTOMATIC_RELEGATION)
PROMOTIONS = (MovementType.AUTOMATIC_PROMOTION, MovementType.ADMIN_PROMOTION)
RELEGATIONS = (MovementType.AUTOMATIC_RELEGATION, MovementType.ADMIN_RELEGATION)


class TieredLeague(Base):
    """Capa de tiers sobre la clasificación de una competición 'padre'."""
    __tablename__ = "tiered_leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    parent_competition_id: Mapped[int] = mapped_column(Integer, ForeignKey("competitions.id"), nullable=False)
    number_of_tiers: Mapped[int] = mapped_column(Integer, default=2)
    drivers_per_tier: Mapped[int] = mapped_column(Integer, default=10)
    races_before_shuffle: Mapped[int] = mapped_column(Integer, default=3)
    promotion_spots: Mapped[int] = mapped_column(Integer, default=1)
    relegation_spots: Mapped[int] = mapped_column(Integer, default=1)

    parent_competition: Mapped["Competition"] = relationship("Competition")
    tier_names: Mapped[List["TierName"]] = relationship(
        "TierName", back_populates="tiered_league", order_by="TierName.tier_number"
    )
    assignments: Mapped[List["TierAssignment"]] = relationship("TierAssignment", back_populates="tiered_league")


class TierName(Base):
    __tablename__ = "tier_names"
    __table_args__ = (
        UniqueConstraint("tiered_league_id", "tier_number", name="uq_tier_name"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tiered_league_id: Mapped[int] = mapped_column(Integer, ForeignKey("tiered_leagues.id"), nullable=False)
    tier_number: Mapped[int] = mapped_column(Integer, nullable=False)  # 1 = el más alto
    name: Mapped[str] = mapped_column(String, nullable=False)

    tiered_league: Mapped["TieredLeague"] = relationship("TieredLeague", back_populates="tier_names")


class TierAssignment(Base):
    """
    Tier actual de un piloto. Los puntos del tier no se guardan: salen de las
    carreras de la competición padre que ningún shuffle ha cerrado todavía
    (ver TierSettledRace).
    """
    __tablename__ = "tier_assignments"
    __table_args__ = (
        UniqueConstraint("tiered_league_id", "driver_id", name="uq_tier_assignment"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tiered_league_id: Mapped[int] = mapped_column(Integer, ForeignKey("tiered_leagues.id"), nullable=False)
    driver_id: Mapped[int] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=False)
    tier_number: Mapped[int] = mapped_column(Integer, nullable=False)

    tiered_league: Mapped["TieredLeague"] = relationship("TieredLeague", back_populates="assignments")
    driver: Mapped["Driver"] = relationship("Driver")


class TierMovement(Base):
    """Historial inmutable. También sirve de clave anti-duplicados de shuffles."""
    __tablename__ = "tier_movements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tiered_league_id: Mapped[int] = mapped_column(Integer, ForeignKey("tiered_leagues.id"), nullable=False, index=True)
    driver_id: Mapped[int] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=False)
    from_tier: Mapped[int] = mapped_column(Integer, default=0)  # 0 = sin tier
    to_tier: Mapped[int] = mapped_column(Integer, nullable=False)
    movement_type: Mapped[MovementType] = mapped_column(SqEnum(MovementType), nullable=False)
    after_race_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)


class TierMovementNotification(Base):
    __tablename__ = "tier_movement_notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    driver_id: Mapped[int] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    movement_id: Mapped[int] = mapped_column(Integer, ForeignKey("tier_movements.id"), nullable=False)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    movement: Mapped["TierMovement"] = relationship("TierMovement")


class TierShuffle(Base):
    """Un shuffle aplicado, tenga o no movimientos."""
    __tablename__ = "tier_shuffles"
    __table_args__ = (
        UniqueConstraint("tiered_league_id", "after_race_count", name="uq_tier_shuffle"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tiered_league_id: Mapped[int] = mapped_column(Integer, ForeignKey("tiered_leagues.id"), nullable=False, index=True)
    after_race_count: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    standings: Mapped[List["TierShuffleStanding"]] = relationship(
        "TierShuffleStanding", back_populates="shuffle",
        order_by=lambda: [TierShuffleStanding.tier_number, TierShuffleStanding.rank],
    )


class TierShuffleStanding(Base):
    """Foto de la clasificación de cada tier justo antes de aplicar el shuffle."""
    __tablename__ = "tier_shuffle_standings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    shuffle_id: Mapped[int] = mapped_column(Integer, ForeignKey("tier_shuffles.id"), nullable=False, index=True)
    driver_id: Mapped[int] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=False)
    tier_number: Mapped[int] = mapped_column(Integer, nullable=False)
    rank: Mapped[int] = mapped_column(Integer, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0)

    shuffle: Mapped["TierShuffle"] = relationship("TierShuffle", back_populates="standings")


class TierSettledRace(Base):
    """
    Carrera que ya no suma puntos de tier. Con driver_id nulo la cerró un
    shuffle para todos; con driver_id, es anterior a la asignación de ese
    piloto.
    """
    __tablename__ = "tier_settled_races"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    tiered_league_id: Mapped[int] = mapped_column(Integer, ForeignKey("tiered_leagues.id"), nullable=False, index=True)
    race_id: Mapped[int] = mapped_column(Integer, ForeignKey("races.id"), nullable=False)
    driver_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=True)
    shuffle_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("tier_shuffles.id"), nullable=True)
