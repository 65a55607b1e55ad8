import pytest

from paddock.core.errors import NotFoundError, PaddockError
from paddock.db.models.badge import BadgeNotification, DriverBadge
from paddock.db.models.league import League
from paddock.db.models.race import Race, RaceStatus
from paddock.db.models.result import Result
from paddock.db.models.tiered_league import TierAssignment, TieredLeague, TierMovement
from paddock.schemas.results import ResultIn
from paddock.services import results_ledger
from paddock.services.badge_sync import get_held_badges
from paddock.services.leagues import complete_league
from paddock.services.tier_shuffle import assign_driver_to_tier


def held(db, driver_id):
    return set(get_held_badges(db, driver_id))


def test_replace_results_reconciles(db, factory):
    _, competition = factory.league()
    d1, d2 = factory.drivers(2)
    race = factory.race(competition)

    saved, report = results_ledger.replace_results_for_race(db, race.id, [
        ResultIn(driver_id=d1.id, position=1, points=25, qualifying_position=1),
        ResultIn(driver_id=d2.id, position=2, points=18),
    ])

    assert [r.driver_id for r in saved] == [d1.id, d2.id]
    assert report.ok
    assert {"first_race", "first_win", "pole_position", "perfect_weekend"} <= held(db, d1.id)
    assert db.get(Race, race.id).status == RaceStatus.COMPLETED


def test_replace_is_a_full_replacement(db, factory):
    _, competition = factory.league()
    d1, d2 = factory.drivers(2)
    race = factory.race(competition)
    results_ledger.replace_results_for_race(db, race.id, [ResultIn(driver_id=d1.id, position=1)])

    results_ledger.replace_results_for_race(db, race.id, [ResultIn(driver_id=d2.id, position=1)])

    assert [r.driver_id for r in results_ledger.list_results_for_race(db, race.id)] == [d2.id]
    # d1 se queda sin resultados: pierde lo que tenía
    assert held(db, d1.id) == set()
    assert "first_win" in held(db, d2.id)


def test_replace_rejects_bad_payloads(db, factory):
    _, competition = factory.league()
    d1, d2 = factory.drivers(2)
    race = factory.race(competition)

    with pytest.raises(PaddockError):
        results_ledger.replace_results_for_race(db, race.id, [
            ResultIn(driver_id=d1.id, position=1), ResultIn(driver_id=d1.id, position=2),
        ])
    with pytest.raises(PaddockError):
        results_ledger.replace_results_for_race(db, race.id, [
            ResultIn(driver_id=d1.id, position=1), ResultIn(driver_id=d2.id, position=1),
        ])
    with pytest.raises(NotFoundError):
        results_ledger.replace_results_for_race(db, race.id, [ResultIn(driver_id=999, position=1)])
    with pytest.raises(NotFoundError):
        results_ledger.replace_results_for_race(db, 999, [])


def test_points_scorer_follows_the_league_that_earned_it(db, factory):
    _, comp_a = factory.league("A")
    _, comp_b = factory.league("B")
    driver = factory.driver()
    a1, a2 = factory.race(comp_a), factory.race(comp_a)
    b1 = factory.race(comp_b)

    results_ledger.replace_results_for_race(db, a1.id, [ResultIn(driver_id=driver.id, position=1, points=50)])
    results_ledger.replace_results_for_race(db, a2.id, [ResultIn(driver_id=driver.id, position=1, points=50)])
    results_ledger.replace_results_for_race(db, b1.id, [ResultIn(driver_id=driver.id, position=1, points=50)])
    assert "points_scorer" in held(db, driver.id)

    report = results_ledger.delete_race(db, a2.id)

    assert "points_scorer" in report.badges.results[driver.id].revoked
    assert "points_scorer" not in held(db, driver.id)


def test_delete_league_cascades(db, factory):
    league, competition = factory.league()
    other_league, other_competition = factory.league("Other")
    d1, d2 = factory.drivers(2)
    tl = factory.tiered_league(competition, tiers=2, per_tier=2)
    assign_driver_to_tier(db, tl.id, d1.id, 1)
    race = factory.race(competition)
    results_ledger.replace_results_for_race(db, race.id, [
        ResultIn(driver_id=d1.id, position=1), ResultIn(driver_id=d2.id, position=2),
    ])
    results_ledger.replace_results_for_race(db, factory.race(other_competition).id, [
        ResultIn(driver_id=d2.id, position=1),
    ])
    complete_league(db, league.id)

    report = results_ledger.delete_league(db, league.id)

    assert report.ok
    assert db.get(League, league.id) is None
    assert db.query(Result).filter(Result.race_id == race.id).count() == 0
    assert db.query(TieredLeague).count() == 0
    assert db.query(TierAssignment).count() == 0
    assert db.query(TierMovement).count() == 0
    assert db.query(DriverBadge).filter(DriverBadge.league_id == league.id).count() == 0
    assert db.query(BadgeNotification).filter(BadgeNotification.league_id == league.id).count() == 0
    # d1 ya no tiene resultados; d2 conserva lo ganado en la otra liga
    assert held(db, d1.id) == set()
    assert "first_win" in held(db, d2.id)


def test_delete_driver_resyncs_rivals(db, factory):
    _, competition = factory.league()
    leaver, stayer = factory.drivers(2)
    races = [factory.race(competition) for _ in range(3)]
    for race in races:
        results_ledger.replace_results_for_race(db, race.id, [
            ResultIn(driver_id=leaver.id, position=1), ResultIn(driver_id=stayer.id, position=2),
        ])
    # Último en las tres carreras de 2 pilotos
    assert "plum_tomato_champion" in held(db, stayer.id)

    report = results_ledger.delete_driver(db, leaver.id)

    # Ahora corre solo: ya no es el último de una parrilla de 2
    assert "plum_tomato_champion" in report.badges.results[stayer.id].revoked
    assert db.query(Result).filter(Result.driver_id == leaver.id).count() == 0
    assert db.query(DriverBadge).filter(DriverBadge.driver_id == leaver.id).count() == 0
    with pytest.raises(NotFoundError):
        results_ledger.delete_driver(db, leaver.id)


def test_list_results_for_driver_newest_first(db, factory):
    _, competition = factory.league()
    driver = factory.driver()
    first, second = factory.race(competition), factory.race(competition)
    factory.result(first, driver, 3)
    factory.result(second, driver, 1)

    assert [r.race_id for r in results_ledger.list_results_for_driver(db, driver.id)] == [second.id, first.id]


def test_resync_unknown_driver(db):
    with pytest.raises(NotFoundError):
        results_ledger.resync_driver(db, 12345)
