from pydantic import BaseModel, Field
from uuid import uuid4
from datetime import datetime, timezone
from typing import List, Optional

from appraisal_engine.models.enumerations import ComponentType, PerformanceCategory


class ComponentScore(BaseModel):
    """Final score for one weighted component of one employee."""

    component_type: ComponentType
    weight_percent: float = Field(..., ge=0, le=100)
    score: Optional[float] = None
    self_rating: Optional[float] = None
    manager_rating: Optional[float] = None
    progress_percentage: Optional[float] = None
    pending_calibration: bool = False


class OverallScoreRecord(BaseModel):
    """
    Overall performance index for one employee in one cycle.

    Created once after aggregation. A calibration adjustment never edits a
    record in place: it produces a superseding copy whose ``supersedes``
    points at the previous record_id.
    """

    record_id: str = Field(default_factory=lambda: str(uuid4()))
    employee_id: str
    cycle_id: str
    manager_id: Optional[str] = None
    overall_score: Optional[float] = None
    component_scores: List[ComponentScore] = Field(default_factory=list)
    category: Optional[PerformanceCategory] = None
    self_rating: Optional[float] = None
    manager_rating: Optional[float] = None
    has_justification: bool = False
    calibration_delta: Optional[float] = None
    supersedes: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Record creation timestamp (UTC)"
    )

    @property
    def is_no_data(self) -> bool:
        return self.overall_score is None
