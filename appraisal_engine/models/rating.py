from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from appraisal_engine.models.enumerations import ComponentType, MilestoneStatus, SourceType


class RatingScale(BaseModel):
    """
    Closed numeric interval plus the granularity of valid values.

    Bound ordering is checked by the normalizer rather than here, so a
    defective scale coming from the record store can still be loaded and
    reported as an InvalidScaleError at the point of use.
    """

    model_config = ConfigDict(frozen=True)

    min_value: float = Field(..., description="Lowest value on the scale")
    max_value: float = Field(..., description="Highest value on the scale")
    step: Optional[float] = Field(
        default=None,
        gt=0,
        description="Granularity of valid values; None means continuous"
    )

    @property
    def span(self) -> float:
        return self.max_value - self.min_value

    @property
    def midpoint(self) -> float:
        return (self.min_value + self.max_value) / 2


FIVE_POINT_SCALE = RatingScale(min_value=1, max_value=5, step=0.5)


class RawRating(BaseModel):
    """A single recorded rating. Immutable once recorded."""

    model_config = ConfigDict(frozen=True)

    value: float
    scale: RatingScale
    source_type: SourceType


class WeightedComponent(BaseModel):
    """A scoring component with its percentage weight and (optional) score."""

    component_type: ComponentType
    weight_percent: float = Field(..., ge=0, le=100)
    score: Optional[float] = None


class Milestone(BaseModel):
    """Goal milestone used for progress roll-up."""

    title: Optional[str] = Field(default=None, max_length=255)
    status: MilestoneStatus = MilestoneStatus.NOT_STARTED
    weight: Optional[float] = Field(
        default=None,
        ge=0,
        description="Relative weight; None counts as 0 (unset)"
    )

    @property
    def is_completed(self) -> bool:
        return self.status == MilestoneStatus.COMPLETED
