"""
Calculation method variants for per-component final scores.

Each appraisal template component names exactly one method. The variants
form a pydantic discriminated union on ``method`` so configuration coming
from the record store is rejected up front if it names an unknown method.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Annotated, List, Literal, Union


class ProgressBand(BaseModel):
    """Lower bound of a progress band and the rating it earns."""

    min_progress: float = Field(..., ge=0)
    rating: float = Field(..., gt=0)


# 0–50 → 1, 51–70 → 2, 71–90 → 3, 91–100 → 4, 101+ → 5
DEFAULT_PROGRESS_BANDS: List[ProgressBand] = [
    ProgressBand(min_progress=0, rating=1),
    ProgressBand(min_progress=51, rating=2),
    ProgressBand(min_progress=71, rating=3),
    ProgressBand(min_progress=91, rating=4),
    ProgressBand(min_progress=101, rating=5),
]


def _sorted_bands(bands: List[ProgressBand]) -> List[ProgressBand]:
    if not bands:
        raise ValueError("progress_bands must contain at least one band")
    return sorted(bands, key=lambda b: b.min_progress)


class RatingWeights(BaseModel):
    """Percentage weights of the rating inputs blended by a weighted average."""

    self_weight: float = Field(default=0, ge=0, le=100)
    manager_weight: float = Field(default=100, ge=0, le=100)
    progress_weight: float = Field(default=0, ge=0, le=100)
    peer_weight: float = Field(default=0, ge=0, le=100)


class AutoCalculated(BaseModel):
    method: Literal["auto_calculated"] = "auto_calculated"
    progress_bands: List[ProgressBand] = Field(
        default_factory=lambda: list(DEFAULT_PROGRESS_BANDS)
    )

    @field_validator("progress_bands")
    @classmethod
    def sort_bands(cls, v: List[ProgressBand]) -> List[ProgressBand]:
        return _sorted_bands(v)


class ManagerEntered(BaseModel):
    method: Literal["manager_entered"] = "manager_entered"


class WeightedAverage(BaseModel):
    method: Literal["weighted_average"] = "weighted_average"
    weights: RatingWeights = Field(default_factory=RatingWeights)
    progress_bands: List[ProgressBand] = Field(
        default_factory=lambda: list(DEFAULT_PROGRESS_BANDS)
    )

    @field_validator("progress_bands")
    @classmethod
    def sort_bands(cls, v: List[ProgressBand]) -> List[ProgressBand]:
        return _sorted_bands(v)


class Calibrated(BaseModel):
    """Self/manager blend whose result awaits a calibration session."""

    method: Literal["calibrated"] = "calibrated"
    weights: RatingWeights = Field(default_factory=RatingWeights)


CalculationMethod = Annotated[
    Union[AutoCalculated, ManagerEntered, WeightedAverage, Calibrated],
    Field(discriminator="method"),
]
