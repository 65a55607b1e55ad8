from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from paddock.db.models.tiered_league import MovementType


class DriverPointsOut(BaseModel):
    driver_id: int
    points: int


class TierStandingOut(BaseModel):
    tier_number: int
    tier_name: str
    standings: list[DriverPointsOut]


class TierAssignIn(BaseModel):
    driver_id: int
    tier_number: int = Field(ge=1)


class TierMoveIn(BaseModel):
    to_tier: int = Field(ge=1)


class TierMovementOut(BaseModel):
    id: int
    tiered_league_id: int
    driver_id: int
    from_tier: int
    to_tier: int
    movement_type: MovementType
    after_race_count: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class TierNotificationOut(BaseModel):
    id: int
    is_read: bool
    created_at: Optional[datetime] = None
    movement: TierMovementOut

    class Config:
        from_attributes = True
