from __future__ import annotations

import datetime as dt

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from coach_engine.db import init_db
from coach_engine.repositories.sql import SqlTrainingRepository


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    sess = factory()
    try:
        yield sess
    finally:
        sess.rollback()
        sess.close()


@pytest.fixture
def repo(session):
    return SqlTrainingRepository(session)


@pytest.fixture
def bench_plan(repo):
    """One plan day (Monday) with bench press 3x8 @ 100, increment 5."""
    bench = repo.create_exercise("Bench Press", weight_increment=5.0)
    day = repo.create_plan_day(plan_id=1, day_of_week=0, name="Push")
    pde = repo.create_plan_day_exercise(
        day.id, bench.id, sets=3, reps=8, weight=100.0, rest_seconds=90, sort_order=0
    )
    return {"exercise": bench, "plan_day": day, "pde": pde}


@pytest.fixture
def active_mesocycle(repo, bench_plan):
    """Started 7-week mesocycle beginning Monday 2024-01-15."""
    from coach_engine.services.mesocycles import MesocycleService

    service = MesocycleService(repo)
    meso = service.create_mesocycle(plan_id=1, start_date=dt.date(2024, 1, 15))
    return service.start_mesocycle(meso.id)
