# paddock/db/models/race.py
from sqlalchemy import Integer, String, DateTime, ForeignKey, Enum as SqEnum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import datetime
from typing import List, TYPE_CHECKING
import enum
from paddock.db.session import Base

if TYPE_CHECKING:
    from paddock.db.models.league import Competition
    from paddock.db.models.result import Result


class RaceStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Race(Base):
    __tablename__ = "races"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    competition_id: Mapped[int] = mapped_column(Integer, ForeignKey("competitions.id"), nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    location: Mapped[str] = mapped_column(String, nullable=True)
    status: Mapped[RaceStatus] = mapped_column(SqEnum(RaceStatus), default=RaceStatus.SCHEDULED)

    competition: Mapped["Competition"] = relationship("Competition", back_populates="races")
    results: Mapped[List["Result"]] = relationship("Result", back_populates="race")
