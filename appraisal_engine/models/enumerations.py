from enum import Enum

class SourceType(str, Enum):
    SELF = "self"
    MANAGER = "manager"
    PROGRESS = "progress"
    PEER = "peer"

class ComponentType(str, Enum):
    GOALS = "goals"
    COMPETENCIES = "competencies"
    RESPONSIBILITIES = "responsibilities"
    PEER_FEEDBACK = "peer_feedback"
    VALUES = "values"
    MILESTONES = "milestones"

class MilestoneStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"

class CalculationMethodType(str, Enum):
    AUTO_CALCULATED = "auto_calculated"    # progress → rating via band table
    MANAGER_ENTERED = "manager_entered"    # manager rating verbatim
    WEIGHTED_AVERAGE = "weighted_average"  # self / manager / progress / peer blend
    CALIBRATED = "calibrated"              # self / manager blend, pending calibration

class PerformanceCategory(str, Enum):
    # Ordered highest → lowest; "adjacent lower" follows this order
    EXCEPTIONAL = "exceptional"
    EXCEEDS = "exceeds"
    MEETS = "meets"
    NEEDS_IMPROVEMENT = "needs_improvement"
    UNSATISFACTORY = "unsatisfactory"

class WeightStatus(str, Enum):
    COMPLETE = "complete"
    UNDER = "under"
    OVER = "over"

class SessionStatus(str, Enum):
    PENDING = "pending"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class AdjustmentStatus(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"
    REVERTED = "reverted"

class AnomalyType(str, Enum):
    RATING_GAP = "rating_gap"
    EXTREME_RATING = "extreme_rating"

class Severity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"

class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


CATEGORY_LABELS = {
    PerformanceCategory.EXCEPTIONAL: "Exceptional",
    PerformanceCategory.EXCEEDS: "Exceeds",
    PerformanceCategory.MEETS: "Meets",
    PerformanceCategory.NEEDS_IMPROVEMENT: "Needs Improvement",
    PerformanceCategory.UNSATISFACTORY: "Unsatisfactory",
}

PRIORITY_RANK = {
    Priority.HIGH: 0,
    Priority.MEDIUM: 1,
    Priority.LOW: 2,
}

class DriftPattern(str, Enum):
    ALIGNED = "aligned"
    CONSISTENTLY_LOW = "consistently_low"      # calibration mostly raised scores
    CONSISTENTLY_HIGH = "consistently_high"    # calibration mostly lowered scores
    VARIABLE = "variable"

class ManagerFlagType(str, Enum):
    EXTREME_LENIENCY = "extreme_leniency"
    EXTREME_SEVERITY = "extreme_severity"
    CALIBRATION_DRIFT = "calibration_drift"
