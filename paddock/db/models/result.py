# paddock/db/models/result.py
from sqlalchemy import Integer, String, ForeignKey, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from paddock.db.session import Base


class Result(Base):
    """Fila del libro de resultados. Fuente de verdad de todo lo derivado."""
    __tablename__ = "results"
    __table_args__ = (
        UniqueConstraint("race_id", "driver_id", name="uq_result_race_driver"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    race_id: Mapped[int] = mapped_column(Integer, ForeignKey("races.id"), nullable=False, index=True)
    driver_id: Mapped[int] = mapped_column(Integer, ForeignKey("drivers.id"), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    qualifying_position: Mapped[int] = mapped_column(Integer, nullable=True)
    points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    race_time: Mapped[str] = mapped_column(String, nullable=True)  # Ej: "32:14.512"

    race: Mapped["Race"] = relationship("Race", back_populates="results")
    driver: Mapped["Driver"] = relationship("Driver", back_populates="results")
