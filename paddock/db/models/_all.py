# Importa todos los modelos para que Base.metadata los conozca
from paddock.db.models.driver import Driver
from paddock.db.models.league import League, Competition
from paddock.db.models.race import Race
from paddock.db.models.result import Result
from paddock.db.models.badge import Badge, DriverBadge, BadgeNotification
from paddock.db.models.tiered_league import (
    TieredLeague,
    TierName,
    TierAssignment,
    TierMovement,
    TierMovementNotification,
    TierShuffle,
    TierShuffleStanding,
    TierSettledRace,
)
