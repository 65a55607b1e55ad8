# paddock/db/models/league.py
from sqlalchemy import Integer, String, DateTime, ForeignKey, JSON, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import List, TYPE_CHECKING
import enum
from paddock.db.session import Base

if TYPE_CHECKING:
    from paddock.db.models.race import Race


class LeagueStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"   # Dispara la evaluación de fin de temporada


class CompetitionType(str, enum.Enum):
    SERIES = "series"
    SINGLE_EVENT = "single_event"
    HEAD_TO_HEAD = "head_to_head"
    TIME_ATTACK = "time_attack"


class League(Base):
    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(String, nullable=True)
    season_start: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    season_end: Mapped[datetime] = mapped_column(DateTime, nullable=True)
    status: Mapped[LeagueStatus] = mapped_column(SqEnum(LeagueStatus), default=LeagueStatus.ACTIVE)

    competitions: Mapped[List["Competition"]] = relationship("Competition", back_populates="league")


class Competition(Base):
    __tablename__ = "competitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    league_id: Mapped[int] = mapped_column(Integer, ForeignKey("leagues.id"), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    type: Mapped[CompetitionType] = mapped_column(SqEnum(CompetitionType), default=CompetitionType.SERIES)
    # Ej: {"1": 25, "2": 18, "3": 15}
    points_system: Mapped[dict] = mapped_column(JSON, default=dict)

    league: Mapped["League"] = relationship("League", back_populates="competitions")
    races: Mapped[List["Race"]] = relationship("Race", back_populates="competition")
