# paddock/db/models/driver.py
from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from typing import List, TYPE_CHECKING
from paddock.db.session import Base

if TYPE_CHECKING:
    from paddock.db.models.result import Result


class Driver(Base):
    """Perfil de piloto. Todo lo demás (insignias, tiers) cuelga de aquí."""
    __tablename__ = "drivers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String, nullable=True)
    driver_name: Mapped[str] = mapped_column(String, nullable=False)

    results: Mapped[List["Result"]] = relationship("Result", back_populates="driver")
