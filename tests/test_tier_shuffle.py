import pytest

from paddock.core.errors import ConfigurationError, PaddockError, TierCapacityError
from paddock.db.models.tiered_league import (
    MovementType,
    TierAssignment,
    TierMovement,
    TierMovementNotification,
    TierShuffle,
)
from paddock.schemas.results import ResultIn
from paddock.services.results_ledger import delete_race, replace_results_for_race
from paddock.services.tier_shuffle import (
    admin_move_driver,
    assign_driver_to_tier,
    check_tier_shuffles,
    plan_movements,
    shuffle_due,
)
from paddock.services.tier_standings import DriverPoints, TierConfig, TierStanding, get_tier_standings


def tier_of(db, tl, driver):
    return db.query(TierAssignment).filter_by(tiered_league_id=tl.id, driver_id=driver.id).one().tier_number


def automatic_movements(db, tl):
    return db.query(TierMovement).filter(
        TierMovement.tiered_league_id == tl.id,
        TierMovement.movement_type.in_([MovementType.AUTOMATIC_PROMOTION, MovementType.AUTOMATIC_RELEGATION]),
    ).all()


@pytest.fixture()
def two_tiers(db, factory):
    """2 tiers x 2 pilotos, shuffle cada 3 carreras. d1,d2 arriba; d3,d4 abajo."""
    _, competition = factory.league()
    drivers = factory.drivers(4)
    tl = factory.tiered_league(competition, tiers=2, per_tier=2, every=3)
    for i, d in enumerate(drivers):
        assign_driver_to_tier(db, tl.id, d.id, 1 if i < 2 else 2)
    races = [factory.race(competition) for _ in range(9)]
    return tl, drivers, races


def submit(db, race, order, points=(25, 18, 15, 12)):
    """order: pilotos de primero a último."""
    results = [ResultIn(driver_id=d.id, position=i + 1, points=points[i]) for i, d in enumerate(order)]
    return replace_results_for_race(db, race.id, results)[1]


# ------------------------------------------------------------------
# Parte pura
# ------------------------------------------------------------------

def config(promote=1, relegate=1):
    return TierConfig(id=1, number_of_tiers=3, drivers_per_tier=3, races_before_shuffle=3,
                      promotion_spots=promote, relegation_spots=relegate,
                      parent_competition_id=1, tier_names=["S", "A", "B"])


def standing(n, *driver_points):
    return TierStanding(n, f"T{n}", [DriverPoints(d, p) for d, p in driver_points])


def test_plan_swaps_adjacent_tiers():
    standings = [
        standing(1, (1, 30), (2, 20), (3, 10)),
        standing(2, (4, 40), (5, 5), (6, 1)),
        standing(3, (7, 50), (8, 0), (9, 0)),
    ]
    moves = {(m.driver_id, m.from_tier, m.to_tier, m.movement_type) for m in plan_movements(config(), standings)}
    assert moves == {
        (3, 1, 2, MovementType.AUTOMATIC_RELEGATION),
        (4, 2, 1, MovementType.AUTOMATIC_PROMOTION),
        (6, 2, 3, MovementType.AUTOMATIC_RELEGATION),
        (7, 3, 2, MovementType.AUTOMATIC_PROMOTION),
    }


def test_driver_moves_at_most_once():
    # Tier 2 de un solo piloto: sube y no puede además bajar
    standings = [standing(1, (1, 10), (2, 5)), standing(2, (3, 40)), standing(3, (4, 9))]
    moves = plan_movements(config(), standings)
    assert [m.driver_id for m in moves].count(3) == 1


def test_shuffle_due():
    assert [n for n in range(10) if shuffle_due(n, 3)] == [3, 6, 9]


# ------------------------------------------------------------------
# Programador + motor contra la base de datos
# ------------------------------------------------------------------

def test_shuffle_cadence(db, two_tiers):
    tl, (d1, d2, d3, d4), races = two_tiers
    order = [d3, d1, d4, d2]

    reports = [submit(db, race, order) for race in races[:3]]
    assert [len(r.shuffles.results) for r in reports] == [0, 0, 1]

    # Corregir la 3ª carrera no cambia el nº de carreras completadas
    again = submit(db, races[2], order)
    assert again.shuffles.results == []
    assert len(automatic_movements(db, tl)) == 2

    reports = [submit(db, race, order) for race in races[3:6]]
    assert [len(r.shuffles.results) for r in reports] == [0, 0, 1]
    assert {m.after_race_count for m in automatic_movements(db, tl)} == {3, 6}


def test_swap_and_points_reset(db, two_tiers):
    tl, (d1, d2, d3, d4), races = two_tiers
    for race in races[:3]:
        submit(db, race, [d3, d1, d4, d2])

    assert tier_of(db, tl, d2) == 2
    assert tier_of(db, tl, d3) == 1
    assert tier_of(db, tl, d1) == 1
    assert tier_of(db, tl, d4) == 2

    for tier in get_tier_standings(db, tl.id):
        assert all(entry.points == 0 for entry in tier.standings)

    notified = {n.driver_id for n in db.query(TierMovementNotification).all()
                if n.movement.movement_type != MovementType.INITIAL_ASSIGNMENT}
    assert notified == {d2.id, d3.id}


def tier_points(db, tl):
    return {e.driver_id: e.points for tier in get_tier_standings(db, tl.id) for e in tier.standings}


def test_correcting_a_settled_race_keeps_points_at_zero(db, two_tiers):
    tl, (d1, d2, d3, d4), races = two_tiers
    for race in races[:3]:
        submit(db, race, [d3, d1, d4, d2])

    # Se corrige la 1ª carrera (anterior al shuffle): d1 se queda sin puntos
    report = submit(db, races[0], [d2, d4, d3, d1], points=(25, 18, 15, 0))

    assert report.shuffles.results == []
    assert set(tier_points(db, tl).values()) == {0}

    # Lo nuevo sólo cuenta lo corrido después del shuffle
    submit(db, races[3], [d1, d2, d3, d4])
    assert tier_points(db, tl) == {d1.id: 25, d2.id: 18, d3.id: 15, d4.id: 12}


def test_shuffle_snapshot_keeps_cycle_points(db, two_tiers):
    tl, (d1, d2, d3, d4), races = two_tiers
    for race in races[:3]:
        submit(db, race, [d4, d2, d3, d1])

    shuffle = db.query(TierShuffle).filter_by(tiered_league_id=tl.id).one()
    assert shuffle.after_race_count == 3
    assert [(s.tier_number, s.rank, s.driver_id, s.points) for s in shuffle.standings] == [
        (1, 1, d2.id, 54), (1, 2, d1.id, 36), (2, 1, d4.id, 75), (2, 2, d3.id, 45),
    ]


def test_resubmitted_race_does_not_repeat_boundary(db, two_tiers):
    tl, (d1, d2, d3, d4), races = two_tiers
    order = [d3, d1, d4, d2]
    for race in races[:3]:
        submit(db, race, order)

    # Vaciar y volver a meter la 3ª carrera: se vuelve a 3, ya procesado
    replace_results_for_race(db, races[2].id, [])
    assert submit(db, races[2], order).shuffles.results == []

    # Borrar una carrera baja el contador: el 3 no se repite, el 6 sí llega
    delete_race(db, races[0].id)
    reports = [submit(db, race, order) for race in races[3:7]]
    assert [len(r.shuffles.results) for r in reports] == [0, 0, 0, 1]
    assert reports[-1].shuffles.results[0].after_race_count == 6
    assert [s.after_race_count for s in db.query(TierShuffle).order_by(TierShuffle.id).all()] == [3, 6]


def test_shuffle_without_movements_is_recorded_once(db, factory):
    _, competition = factory.league()
    d1, d2 = factory.drivers(2)
    tl = factory.tiered_league(competition, tiers=2, per_tier=2, every=1, promote=0, relegate=0)
    assign_driver_to_tier(db, tl.id, d1.id, 1)
    assign_driver_to_tier(db, tl.id, d2.id, 2)
    race = factory.race(competition)

    first = replace_results_for_race(db, race.id, [ResultIn(driver_id=d2.id, position=1, points=25)])[1]
    again = replace_results_for_race(db, race.id, [ResultIn(driver_id=d2.id, position=1, points=25)])[1]

    assert first.shuffles.results[0].movements == []
    assert again.shuffles.results == []
    assert db.query(TierShuffle).count() == 1
    assert tier_points(db, tl) == {d1.id: 0, d2.id: 0}


def test_tie_break_lowest_driver_id_first(db, two_tiers):
    tl, (d1, d2, d3, d4), races = two_tiers
    for race in races[:3]:
        submit(db, race, [d1, d3, d2, d4], points=(10, 10, 10, 10))

    # Todos empatados: arriba baja d2 (id más alto), abajo sube d3 (id más bajo)
    assert tier_of(db, tl, d2) == 2
    assert tier_of(db, tl, d3) == 1


def test_tier_badges_after_shuffle(db, two_tiers):
    from paddock.services.badge_sync import get_held_badges

    tl, (d1, d2, d3, d4), races = two_tiers
    reports = [submit(db, race, [d3, d1, d4, d2]) for race in races[:3]]

    shuffle = reports[-1].shuffles.results[0]
    assert "summit" in shuffle.badges[d3.id]
    assert "tier_leader" in shuffle.badges[d1.id]
    assert "summit" in get_held_badges(db, d3.id)
    # En el último tier no hay zona de descenso
    assert "great_escape" not in shuffle.badges.get(d4.id, [])


def test_check_without_tiered_league_is_noop(db, factory):
    _, competition = factory.league()
    race = factory.race(competition)
    report = check_tier_shuffles(db, race_id=race.id)
    assert report.results == [] and report.failures == {}


def test_misconfigured_league_is_skipped(db, factory):
    _, competition = factory.league()
    driver = factory.driver()
    factory.tiered_league(competition, tiers=2, every=0)
    race = factory.race(competition)
    factory.result(race, driver, 1)

    report = check_tier_shuffles(db, race_id=race.id)
    assert report.results == [] and report.failures == {}


# ------------------------------------------------------------------
# Asignaciones manuales
# ------------------------------------------------------------------

def test_assign_twice_fails(db, two_tiers):
    tl, (d1, *_), _ = two_tiers
    with pytest.raises(PaddockError):
        assign_driver_to_tier(db, tl.id, d1.id, 2)


def test_assign_respects_capacity(db, two_tiers, factory):
    tl, _, _ = two_tiers
    extra = factory.driver("EXTRA")
    with pytest.raises(TierCapacityError):
        assign_driver_to_tier(db, tl.id, extra.id, 1)
    with pytest.raises(ConfigurationError):
        assign_driver_to_tier(db, tl.id, extra.id, 5)


def test_assignment_starts_at_zero_points(db, factory):
    _, competition = factory.league()
    driver = factory.driver()
    factory.result(factory.race(competition), driver, 1, points=25)
    tl = factory.tiered_league(competition)

    assign_driver_to_tier(db, tl.id, driver.id, 1)

    tier_one = get_tier_standings(db, tl.id)[0]
    assert tier_one.standings == [DriverPoints(driver.id, 0)]


def test_admin_move_does_not_count_as_shuffle(db, factory):
    _, competition = factory.league()
    d1, d2 = factory.drivers(2)
    tl = factory.tiered_league(competition, tiers=2, per_tier=2)
    assign_driver_to_tier(db, tl.id, d1.id, 1)
    assign_driver_to_tier(db, tl.id, d2.id, 1)

    movement = admin_move_driver(db, tl.id, d2.id, 2)

    assert movement.movement_type == MovementType.ADMIN_RELEGATION
    assert tier_of(db, tl, d2) == 2
    assert automatic_movements(db, tl) == []
