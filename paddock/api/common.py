from fastapi import HTTPException

from paddock.core.errors import ConfigurationError, NotFoundError, PaddockError, TierCapacityError


def to_http(exc: PaddockError) -> HTTPException:
    """Traduce los errores del motor a respuestas HTTP."""
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, TierCapacityError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, ConfigurationError):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def report_out(report) -> dict:
    """ReconciliationReport -> dict serializable"""
    return {
        "badges": {d: r.to_dict() for d, r in report.badges.results.items() if r.awarded or r.revoked},
        "shuffles": [
            {
                "tiered_league_id": s.tiered_league_id,
                "after_race_count": s.after_race_count,
                "movements": [
                    {
                        "driver_id": m.driver_id,
                        "from_tier": m.from_tier,
                        "to_tier": m.to_tier,
                        "movement_type": m.movement_type.value,
                    }
                    for m in s.movements
                ],
            }
            for s in report.shuffles.results
        ],
        "season_end": {
            league_id: {d: r.to_dict() for d, r in per_driver.items()}
            for league_id, per_driver in report.season_end.items()
        },
        "failures": report.failures,
    }
