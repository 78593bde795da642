"""Pydantic validation models for the engine's data entry points."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from coach_engine.errors import ValidationError


class LogSetInput(BaseModel):
    actual_reps: int = Field(ge=0)
    actual_weight: float = Field(ge=0.0)


class TargetOverrides(BaseModel):
    """New base values for an exercise; omitted fields keep the plan's value."""

    reps: Optional[int] = Field(default=None, ge=1)
    weight: Optional[float] = Field(default=None, ge=0.0)
    sets: Optional[int] = Field(default=None, ge=1)


class PlanDayExerciseInput(BaseModel):
    exercise_id: int = Field(gt=0)
    sets: int = Field(ge=1, le=20)
    reps: int = Field(ge=1, le=100)
    weight: float = Field(ge=0.0)
    rest_seconds: int = Field(default=90, ge=0)
    sort_order: int = Field(default=0, ge=0)
    min_reps: int = Field(default=8, ge=1)
    max_reps: int = Field(default=12, ge=1)

    @model_validator(mode="after")
    def rep_range_ordered(self):
        if self.max_reps < self.min_reps:
            raise ValueError("max_reps must be >= min_reps")
        return self


def parse_input(model: type[BaseModel], data):
    """Validate ``data`` against ``model``, raising the engine's ValidationError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        messages = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'input'}: {err['msg']}" for err in exc.errors()
        )
        raise ValidationError(messages) from exc
