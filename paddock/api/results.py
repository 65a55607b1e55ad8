from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from paddock.api.common import report_out, to_http
from paddock.core.errors import PaddockError
from paddock.db.session import get_db
from paddock.schemas.results import RaceResultsOut, ReconciliationOut, ResultIn, ResultOut
from paddock.services import results_ledger
from paddock.services.leagues import complete_league, reopen_league

router = APIRouter(tags=["Race Results"])


@router.post("/races/{race_id}/results", response_model=RaceResultsOut)
def submit_race_results(race_id: int, results: list[ResultIn], db: Session = Depends(get_db)):
    """
    Reemplaza TODOS los resultados de la carrera.
    Las insignias, shuffles y fin de temporada se recalculan en la misma petición.
    """
    try:
        saved, report = results_ledger.replace_results_for_race(db, race_id, results)
    except PaddockError as exc:
        raise to_http(exc)

    return {"race_id": race_id, "results": saved, "reconciliation": report_out(report)}


@router.get("/races/{race_id}/results", response_model=list[ResultOut])
def get_race_results(race_id: int, db: Session = Depends(get_db)):
    return results_ledger.list_results_for_race(db, race_id)


@router.get("/drivers/{driver_id}/results", response_model=list[ResultOut])
def get_driver_results(driver_id: int, db: Session = Depends(get_db)):
    return results_ledger.list_results_for_driver(db, driver_id)


@router.delete("/races/{race_id}", response_model=ReconciliationOut)
def delete_race(race_id: int, db: Session = Depends(get_db)):
    try:
        report = results_ledger.delete_race(db, race_id)
    except PaddockError as exc:
        raise to_http(exc)
    return report_out(report)


@router.delete("/leagues/{league_id}", response_model=ReconciliationOut)
def delete_league(league_id: int, db: Session = Depends(get_db)):
    try:
        report = results_ledger.delete_league(db, league_id)
    except PaddockError as exc:
        raise to_http(exc)
    return report_out(report)


@router.delete("/drivers/{driver_id}", response_model=ReconciliationOut)
def delete_driver(driver_id: int, db: Session = Depends(get_db)):
    try:
        report = results_ledger.delete_driver(db, driver_id)
    except PaddockError as exc:
        raise to_http(exc)
    return report_out(report)


@router.post("/leagues/{league_id}/complete")
def close_league(league_id: int, db: Session = Depends(get_db)):
    try:
        outcome = complete_league(db, league_id)
    except PaddockError as exc:
        raise to_http(exc)
    return {
        "league_id": league_id,
        "status": "completed",
        "badges": {d: r.to_dict() for d, r in outcome.items()},
    }


@router.post("/leagues/{league_id}/reopen")
def reopen(league_id: int, db: Session = Depends(get_db)):
    try:
        league = reopen_league(db, league_id)
    except PaddockError as exc:
        raise to_http(exc)
    return {"league_id": league.id, "status": league.status.value}
