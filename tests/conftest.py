import os
from datetime import datetime, timedelta

import pytest

# Antes de importar nada de paddock: la app no debe tocar un fichero real
os.environ["DATABASE_URL"] = "sqlite://"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from paddock.db.session import Base
from paddock.db.models import _all  # noqa: F401
from paddock.db.models.driver import Driver
from paddock.db.models.league import League, Competition
from paddock.db.models.race import Race
from paddock.db.models.result import Result
from paddock.db.models.tiered_league import TieredLeague, TierName
from paddock.services.badge_catalog import seed_badges


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    session = Session()
    seed_badges(session)
    yield session
    session.close()


class Factory:
    """Atajos para montar ligas, carreras y resultados en los tests."""

    def __init__(self, db):
        self.db = db
        self._day = datetime(2026, 3, 1)

    def driver(self, name="DRV"):
        d = Driver(driver_name=name, full_name=name)
        self.db.add(d)
        self.db.commit()
        return d

    def drivers(self, n):
        return [self.driver(f"DRV{i}") for i in range(1, n + 1)]

    def league(self, name="League"):
        league = League(name=name)
        self.db.add(league)
        self.db.flush()
        competition = Competition(league_id=league.id, name=f"{name} Series")
        self.db.add(competition)
        self.db.commit()
        return league, competition

    def race(self, competition, name=None, date=None):
        self._day += timedelta(days=7)
        race = Race(competition_id=competition.id, name=name or f"Race {self._day:%m%d}", date=date or self._day)
        self.db.add(race)
        self.db.commit()
        return race

    def result(self, race, driver, position, points=0, qualifying_position=None):
        """Inserta directamente en el libro, SIN disparar la reconciliación."""
        r = Result(race_id=race.id, driver_id=driver.id, position=position,
                   points=points, qualifying_position=qualifying_position)
        self.db.add(r)
        self.db.commit()
        return r

    def tiered_league(self, competition, tiers=2, per_tier=4, every=3, promote=1, relegate=1, names=None):
        tl = TieredLeague(
            name="Tiers",
            parent_competition_id=competition.id,
            number_of_tiers=tiers,
            drivers_per_tier=per_tier,
            races_before_shuffle=every,
            promotion_spots=promote,
            relegation_spots=relegate,
        )
        self.db.add(tl)
        self.db.flush()
        for n, name in enumerate(names or [f"Tier {i}" for i in range(1, tiers + 1)], start=1):
            self.db.add(TierName(tiered_league_id=tl.id, tier_number=n, name=name))
        self.db.commit()
        return tl


@pytest.fixture()
def file_db(tmp_path):
    """Base en fichero: varias conexiones de verdad, para los hilos."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'paddock.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    seed_badges(session)
    yield session
    session.close()
    engine.dispose()


@pytest.fixture()
def factory(db):
    return Factory(db)


@pytest.fixture()
def file_factory(file_db):
    return Factory(file_db)


@pytest.fixture()
def client(engine, db):
    from fastapi.testclient import TestClient
    from main import app
    from paddock.db.session import get_db

    Session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)

    def override_get_db():
        session = Session()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
