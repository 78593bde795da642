"""Seed a demo exercise catalog, a three-day plan and an active mesocycle."""
from __future__ import annotations

from datetime import date, timedelta

from alembic import command
from alembic.config import Config
from sqlalchemy import select

from coach_engine.db import db_session
from coach_engine.logging_config import get_logger, log_context, setup_logging
from coach_engine.models import Exercise
from coach_engine.repositories.sql import SqlTrainingRepository
from coach_engine.services.mesocycles import MesocycleService

logger = get_logger(__name__)

DEMO_PLAN_ID = 1

# name -> weight increment
EXERCISES = {
    "Bench Press": 5.0,
    "Overhead Press": 2.5,
    "Barbell Row": 5.0,
    "Back Squat": 10.0,
    "Romanian Deadlift": 10.0,
    "Pull-up": 2.5,
}

# day_of_week -> (name, [(exercise, sets, reps, weight)])
PLAN_DAYS = {
    0: ("Push", [("Bench Press", 3, 8, 80.0), ("Overhead Press", 3, 8, 45.0)]),
    2: ("Pull", [("Barbell Row", 3, 8, 70.0), ("Pull-up", 3, 6, 0.0)]),
    4: ("Legs", [("Back Squat", 4, 6, 110.0), ("Romanian Deadlift", 3, 8, 90.0)]),
}


def run_migrations() -> None:
    cfg = Config("alembic.ini")
    command.upgrade(cfg, "head")


def seed_plan(repo: SqlTrainingRepository) -> bool:
    """Create the exercise catalog and demo plan. Returns False if already seeded."""
    if repo.find_plan_days(DEMO_PLAN_ID):
        logger.info("Demo plan already seeded", extra=log_context(plan_id=DEMO_PLAN_ID))
        return False

    existing = {row.name: row.id for row in repo.session.scalars(select(Exercise))}
    ids = {}
    for name, increment in EXERCISES.items():
        ids[name] = existing.get(name) or repo.create_exercise(name, weight_increment=increment).id

    for order, (day_of_week, (day_name, prescriptions)) in enumerate(sorted(PLAN_DAYS.items())):
        day = repo.create_plan_day(DEMO_PLAN_ID, day_of_week, name=day_name, sort_order=order)
        for position, (name, sets, reps, weight) in enumerate(prescriptions):
            repo.create_plan_day_exercise(
                day.id, ids[name], sets=sets, reps=reps, weight=weight, sort_order=position
            )
    logger.info(
        "Seeded %d exercises and %d plan days", len(ids), len(PLAN_DAYS),
        extra=log_context(plan_id=DEMO_PLAN_ID),
    )
    return True


def seed_mesocycle(repo: SqlTrainingRepository, today: date | None = None) -> None:
    """Start a mesocycle on the most recent Monday unless one is already active."""
    if repo.find_active_mesocycles():
        logger.info("Active mesocycle exists, not seeding another")
        return
    today = today or date.today()
    service = MesocycleService(repo)
    mesocycle = service.create_mesocycle(DEMO_PLAN_ID, today - timedelta(days=today.weekday()))
    service.start_mesocycle(mesocycle.id)


def main() -> None:
    setup_logging()
    run_migrations()
    with db_session() as session:
        repo = SqlTrainingRepository(session)
        seed_plan(repo)
        seed_mesocycle(repo)
    print("Seeding complete")


if __name__ == "__main__":
    main()
