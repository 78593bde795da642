"""initial training schema"""

from alembic import op
import sqlalchemy as sa


revision = "20241001_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "exercises",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("weight_increment", sa.Float(), nullable=False, server_default="5.0"),
        sa.Column("is_custom", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("weight_increment > 0"),
    )

    op.create_table(
        "plan_days",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False, server_default=""),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.CheckConstraint("day_of_week between 0 and 6"),
    )
    op.create_index("ix_plan_days_plan_id", "plan_days", ["plan_id"])

    op.create_table(
        "plan_day_exercises",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_day_id", sa.Integer(), sa.ForeignKey("plan_days.id"), nullable=False),
        sa.Column("exercise_id", sa.Integer(), sa.ForeignKey("exercises.id"), nullable=False),
        sa.Column("sets", sa.Integer(), nullable=False),
        sa.Column("reps", sa.Integer(), nullable=False),
        sa.Column("weight", sa.Float(), nullable=False),
        sa.Column("rest_seconds", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("min_reps", sa.Integer(), nullable=False, server_default="8"),
        sa.Column("max_reps", sa.Integer(), nullable=False, server_default="12"),
        sa.UniqueConstraint("plan_day_id", "exercise_id", name="uq_plan_day_exercise"),
        sa.CheckConstraint("sets >= 1"),
        sa.CheckConstraint("reps >= 1"),
        sa.CheckConstraint("weight >= 0"),
    )
    op.create_index("ix_plan_day_exercises_plan_day_id", "plan_day_exercises", ["plan_day_id"])

    op.create_table(
        "mesocycles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("plan_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.CheckConstraint("status in ('pending','active','completed','cancelled')"),
    )
    op.create_index("ix_mesocycles_plan_id", "mesocycles", ["plan_id"])

    op.create_table(
        "workouts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mesocycle_id", sa.Integer(), sa.ForeignKey("mesocycles.id"), nullable=False),
        sa.Column("plan_day_id", sa.Integer(), sa.ForeignKey("plan_days.id"), nullable=False),
        sa.Column("week_number", sa.Integer(), nullable=False),
        sa.Column("scheduled_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("started_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("status in ('pending','in_progress','completed','skipped')"),
        sa.CheckConstraint("week_number >= 0"),
    )
    op.create_index("ix_workouts_mesocycle_id", "workouts", ["mesocycle_id"])
    op.create_index("ix_workouts_meso_plan_day", "workouts", ["mesocycle_id", "plan_day_id"])

    op.create_table(
        "workout_sets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("workout_id", sa.Integer(), sa.ForeignKey("workouts.id"), nullable=False),
        sa.Column("exercise_id", sa.Integer(), sa.ForeignKey("exercises.id"), nullable=False),
        sa.Column("set_number", sa.Integer(), nullable=False),
        sa.Column("target_reps", sa.Integer(), nullable=False),
        sa.Column("target_weight", sa.Float(), nullable=False),
        sa.Column("actual_reps", sa.Integer(), nullable=True),
        sa.Column("actual_weight", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.CheckConstraint("status in ('pending','completed','skipped')"),
        sa.CheckConstraint("set_number >= 1"),
        sa.CheckConstraint(
            "(status = 'completed' and actual_reps is not null and actual_weight is not null)"
            " or (status != 'completed' and actual_reps is null and actual_weight is null)",
            name="ck_workout_sets_actuals_match_status",
        ),
    )
    op.create_index("ix_workout_sets_workout_id", "workout_sets", ["workout_id"])


def downgrade() -> None:
    op.drop_table("workout_sets")
    op.drop_table("workouts")
    op.drop_table("mesocycles")
    op.drop_table("plan_day_exercises")
    op.drop_table("plan_days")
    op.drop_table("exercises")
