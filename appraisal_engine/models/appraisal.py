from pydantic import BaseModel, Field, model_validator
from typing import List, Optional

from appraisal_engine.models.calculation import CalculationMethod, ManagerEntered
from appraisal_engine.models.enumerations import ComponentType, SourceType
from appraisal_engine.models.rating import FIVE_POINT_SCALE, Milestone, RatingScale, RawRating


class TemplateComponent(BaseModel):
    """One weighted component of an appraisal template."""

    component_type: ComponentType
    weight_percent: float = Field(..., ge=0, le=100)
    calculation: CalculationMethod = Field(default_factory=ManagerEntered)


class AppraisalTemplate(BaseModel):
    """
    Weighted component configuration for one appraisal cycle.

    Weights are validated (WeightAllocationValidator), never silently
    corrected, so a template whose weights do not total 100 still loads.
    """

    template_id: str
    canonical_scale: RatingScale = FIVE_POINT_SCALE
    components: List[TemplateComponent] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_components(self):
        """Each component type may appear at most once per template."""
        seen = set()
        for component in self.components:
            if component.component_type in seen:
                raise ValueError(
                    f"Duplicate component type in template: {component.component_type.value}"
                )
            seen.add(component.component_type)
        return self

    @property
    def weights(self) -> List[float]:
        return [c.weight_percent for c in self.components]


class ComponentRating(BaseModel):
    """Raw inputs recorded for one employee against one template component."""

    component_type: ComponentType
    ratings: List[RawRating] = Field(default_factory=list)
    milestones: List[Milestone] = Field(default_factory=list)
    progress_percentage: Optional[float] = Field(default=None, ge=0)

    def ratings_from(self, source_type: SourceType) -> List[RawRating]:
        return [r for r in self.ratings if r.source_type == source_type]


class EmployeeAppraisal(BaseModel):
    """All recorded inputs for one employee in one cycle."""

    employee_id: str
    manager_id: Optional[str] = None
    ratings: List[ComponentRating] = Field(default_factory=list)
    justification: Optional[str] = Field(
        default=None,
        description="Free-text justification recorded alongside an extreme rating"
    )

    def for_component(self, component_type: ComponentType) -> Optional[ComponentRating]:
        for rating in self.ratings:
            if rating.component_type == component_type:
                return rating
        return None

    @property
    def has_justification(self) -> bool:
        return bool(self.justification and self.justification.strip())


class CohortSnapshot(BaseModel):
    """Read-only snapshot of a cohort handed over by the record store."""

    cycle_id: str
    template: AppraisalTemplate
    employees: List[EmployeeAppraisal] = Field(default_factory=list)
