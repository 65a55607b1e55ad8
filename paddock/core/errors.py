class PaddockError(Exception):
    """Error base del motor de reconciliación."""


class NotFoundError(PaddockError):
    """La entidad pedida (carrera, liga, piloto...) no existe."""


class ConfigurationError(PaddockError):
    """Configuración incoherente: liga escalonada sin tiers, insignia sin catálogo..."""


class TierCapacityError(PaddockError):
    """El tier de destino ya tiene drivers_per_tier pilotos."""
