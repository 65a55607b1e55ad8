from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from paddock.db.models.badge import BadgeRarity, BadgeCategory


class BadgeOut(BaseModel):
    id: int
    slug: str
    name: str
    description: str
    icon: str
    rarity: BadgeRarity
    category: BadgeCategory

    class Config:
        from_attributes = True


class DriverBadgeOut(BaseModel):
    slug: str
    name: str
    icon: str
    rarity: str
    category: str
    league_id: Optional[int] = None
    awarded_at: Optional[datetime] = None


class BadgeNotificationOut(BaseModel):
    id: int
    badge_slug: str
    badge_name: str
    league_id: Optional[int] = None
    is_read: bool
    created_at: Optional[datetime] = None
