import random
from datetime import datetime, timedelta

# --- DB & MODELOS ---
from paddock.core.config import configure_logging
from paddock.db.session import SessionLocal, engine, Base
from paddock.db.models import _all  # noqa: F401
from paddock.db.models.driver import Driver
from paddock.db.models.league import League, Competition, CompetitionType
from paddock.db.models.race import Race
from paddock.db.models.tiered_league import TieredLeague, TierName

from paddock.schemas.results import ResultIn
from paddock.services.badge_catalog import seed_badges
from paddock.services.results_ledger import replace_results_for_race
from paddock.services.tier_shuffle import assign_driver_to_tier

# --- CONFIGURACIÓN ---
NUM_DRIVERS = 12
TOTAL_RACES = 9
COMPLETED_RACES = 6   # Simulamos media temporada (2 shuffles)
POINTS_SYSTEM = {1: 25, 2: 18, 3: 15, 4: 12, 5: 10, 6: 8, 7: 6, 8: 4, 9: 2, 10: 1}
TIER_NAMES = ["S Rank", "A Rank", "B Rank"]
# ---------------------


def reset_db():
    print("🗑️  Borrando base de datos antigua...")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    print("✅ Tablas creadas.")


def create_league(db):
    league = League(
        name="Championship 2026",
        description="La serie principal del año.",
        season_start=datetime(2026, 3, 1),
        season_end=datetime(2026, 11, 30),
    )
    db.add(league)
    db.flush()

    competition = Competition(
        league_id=league.id,
        name="Summer Series",
        type=CompetitionType.SERIES,
        points_system={str(k): v for k, v in POINTS_SYSTEM.items()},
    )
    db.add(competition)
    db.flush()

    races = []
    for i in range(TOTAL_RACES):
        race = Race(
            competition_id=competition.id,
            name=f"Round {i + 1}",
            date=league.season_start + timedelta(weeks=2 * i),
            location=random.choice(["Karting Center A", "Karting Center B", "Indoor Arena"]),
        )
        db.add(race)
        races.append(race)

    db.commit()
    print(f"✅ Liga '{league.name}' con {TOTAL_RACES} carreras.")
    return league, competition, races


def create_drivers(db):
    drivers = [Driver(full_name=f"Driver {i}", driver_name=f"DRV{i:02d}") for i in range(1, NUM_DRIVERS + 1)]
    db.add_all(drivers)
    db.commit()
    print(f"✅ {len(drivers)} pilotos creados.")
    return drivers


def create_tiered_league(db, competition, drivers):
    tl = TieredLeague(
        name="Summer Tiers",
        parent_competition_id=competition.id,
        number_of_tiers=len(TIER_NAMES),
        drivers_per_tier=NUM_DRIVERS // len(TIER_NAMES),
        races_before_shuffle=3,
        promotion_spots=1,
        relegation_spots=1,
    )
    db.add(tl)
    db.flush()
    for n, name in enumerate(TIER_NAMES, start=1):
        db.add(TierName(tiered_league_id=tl.id, tier_number=n, name=name))
    db.commit()

    for i, driver in enumerate(drivers):
        assign_driver_to_tier(db, tl.id, driver.id, i // tl.drivers_per_tier + 1)
    print(f"✅ Liga escalonada con {len(TIER_NAMES)} tiers.")
    return tl


def simulate_races(db, races, drivers):
    for race in races[:COMPLETED_RACES]:
        order = random.sample(drivers, len(drivers))
        grid = random.sample(range(1, len(drivers) + 1), len(drivers))
        results = [
            ResultIn(
                driver_id=d.id,
                position=pos,
                qualifying_position=grid[pos - 1],
                points=POINTS_SYSTEM.get(pos, 0),
            )
            for pos, d in enumerate(order, start=1)
        ]
        _, report = replace_results_for_race(db, race.id, results)
        shuffles = sum(len(s.movements) for s in report.shuffles.results)
        print(f"   ⟳ {race.name}: {len(results)} resultados, {shuffles} movimientos de tier")


def main():
    configure_logging("WARNING")
    reset_db()
    db = SessionLocal()
    try:
        seed_badges(db)
        league, competition, races = create_league(db)
        drivers = create_drivers(db)
        create_tiered_league(db, competition, drivers)
        simulate_races(db, races, drivers)
        print("✅ SEMILLA COMPLETADA.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
