#!/usr/bin/env python3
"""
DATA MODELS - Pydantic schemas for honor qualification
Type-safe reference data, raw grades, aggregates and qualification results

COMPREHENSIVE DATA VALIDATION:
✅ Academic Levels: Elementary, Junior High, Senior High, College
✅ Grade Scales: Polarity (higher/lower is better) and numeric bounds per level
✅ Grading Periods: Leaf quarters/midterms and calculated semesters
✅ Subject Grades: Raw per-subject, per-period grades from the grading system
✅ Honor Types & Criteria: Configurable thresholds per academic level
✅ Aggregates & Results: Derived averages and explained qualification outcomes

VALIDATION RULES:
- School years must be in "YYYY-YYYY" format
- Grades must be finite numbers (out-of-range values pass through, flagged later)
- Unset thresholds are None, never a sentinel number (0 is a valid threshold)
- A criterion's embedded honor type must match its honor_type_id

Priority: CRITICAL - Foundation for all honor evaluation
Dependencies: Pydantic for validation
"""

import math
import re
from enum import Enum
from typing import Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .exceptions import ConfigurationError

PeriodId = Union[int, str]
SubjectId = Union[int, str]
StudentId = Union[int, str]
RecordId = Union[int, str]


class AcademicLevel(str, Enum):
    """Organizational tier governing grading scale and aggregation rules"""
    ELEMENTARY = "elementary"
    JUNIOR_HIGH_SCHOOL = "junior_highschool"
    SENIOR_HIGH_SCHOOL = "senior_highschool"
    COLLEGE = "college"

    @property
    def uses_semester_hierarchy(self) -> bool:
        """College averages sub-periods into semesters before the year"""
        return self is AcademicLevel.COLLEGE


class BetterDirection(str, Enum):
    """Which numeric direction represents better performance"""
    HIGHER = "higher"
    LOWER = "lower"


class PeriodType(str, Enum):
    QUARTER = "quarter"
    SEMESTER = "semester"


class HonorScope(str, Enum):
    """Levels an honor type may be awarded at"""
    BASIC = "basic"
    ADVANCED = "advanced"
    COLLEGE = "college"


SCOPE_LEVELS = {
    HonorScope.BASIC: frozenset({
        AcademicLevel.ELEMENTARY,
        AcademicLevel.JUNIOR_HIGH_SCHOOL,
        AcademicLevel.SENIOR_HIGH_SCHOOL,
    }),
    HonorScope.ADVANCED: frozenset({
        AcademicLevel.ELEMENTARY,
        AcademicLevel.JUNIOR_HIGH_SCHOOL,
        AcademicLevel.SENIOR_HIGH_SCHOOL,
    }),
    HonorScope.COLLEGE: frozenset({AcademicLevel.COLLEGE}),
}

# Registrar keys for specific year levels
YEAR_LEVEL_KEYS = {
    'first_year': 1,
    'second_year': 2,
    'third_year': 3,
    'fourth_year': 4,
    'fifth_year': 5,
    **{f'grade_{n}': n for n in range(1, 13)},
}


def coerce_text(v):
    """CSV readers type all-numeric columns as numbers: section 101 -> '101'"""
    if isinstance(v, bool):
        return v
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float) and math.isfinite(v):
        return str(int(v)) if v.is_integer() else str(v)
    return v


class GradeScale(BaseModel):
    """Grading scale polarity and bounds for an academic level"""

    model_config = ConfigDict(frozen=True)

    better_direction: BetterDirection = Field(..., description="Direction of better grades")
    min_value: float = Field(..., description="Lowest numeric grade on the scale")
    max_value: float = Field(..., description="Highest numeric grade on the scale")

    @model_validator(mode='after')
    def validate_bounds(self):
        """Scale bounds must describe a non-empty range"""
        if self.min_value >= self.max_value:
            raise ValueError(
                f'Scale min_value {self.min_value} must be below max_value {self.max_value}'
            )
        return self

    @property
    def higher_is_better(self) -> bool:
        return self.better_direction is BetterDirection.HIGHER

    def is_at_least_as_good(self, value: float, threshold: float) -> bool:
        """True when value meets or beats threshold in this scale's direction"""
        if self.higher_is_better:
            return value >= threshold
        return value <= threshold

    def is_better(self, value: float, other: float) -> bool:
        """True when value is strictly better than other"""
        if self.higher_is_better:
            return value > other
        return value < other

    def best(self, values: List[float]) -> Optional[float]:
        if not values:
            return None
        return max(values) if self.higher_is_better else min(values)

    def worst(self, values: List[float]) -> Optional[float]:
        if not values:
            return None
        return min(values) if self.higher_is_better else max(values)

    def contains(self, value: float) -> bool:
        return self.min_value <= value <= self.max_value


DEFAULT_GRADE_SCALES: Dict[AcademicLevel, GradeScale] = {
    AcademicLevel.ELEMENTARY: GradeScale(
        better_direction=BetterDirection.HIGHER, min_value=0.0, max_value=100.0
    ),
    AcademicLevel.JUNIOR_HIGH_SCHOOL: GradeScale(
        better_direction=BetterDirection.HIGHER, min_value=0.0, max_value=100.0
    ),
    AcademicLevel.SENIOR_HIGH_SCHOOL: GradeScale(
        better_direction=BetterDirection.HIGHER, min_value=0.0, max_value=100.0
    ),
    AcademicLevel.COLLEGE: GradeScale(
        better_direction=BetterDirection.LOWER, min_value=1.0, max_value=5.0
    ),
}


def get_grade_scale(
    level: AcademicLevel,
    grade_scales: Optional[Mapping[AcademicLevel, GradeScale]] = None,
) -> GradeScale:
    """
    Look up the grading scale for a level

    Raises:
        ConfigurationError: if the level has no scale defined
    """
    scales = DEFAULT_GRADE_SCALES if grade_scales is None else grade_scales
    scale = scales.get(level)
    if scale is None:
        raise ConfigurationError(f"No grade scale defined for academic level '{level.value}'")
    return scale


class GradingPeriod(BaseModel):
    """Leaf (quarter, midterm, pre-final) or calculated (semester) grading period"""

    model_config = ConfigDict(frozen=True)

    id: PeriodId = Field(..., description="Grading period identifier")
    academic_level: AcademicLevel = Field(..., description="Level this period belongs to")
    type: PeriodType = Field(..., description="Quarter (leaf) or semester (composite)")
    parent_id: Optional[PeriodId] = Field(None, description="Parent semester for sub-periods")
    sort_order: int = Field(..., ge=0, description="Chronological position within the year")
    is_calculated: bool = Field(False, description="Calculated from child periods, never entered")

    name: Optional[str] = Field(None, description="Display name (e.g. 'First Quarter')")
    code: Optional[str] = Field(None, description="Short code (e.g. 'Q1', 'S2-MT')")

    @field_validator('name', 'code', mode='before')
    @classmethod
    def coerce_text_columns(cls, v):
        return coerce_text(v)

    @property
    def is_leaf(self) -> bool:
        """Leaf periods carry entered grades"""
        return self.type is PeriodType.QUARTER and not self.is_calculated

    @property
    def display_name(self) -> str:
        return self.name or self.code or str(self.id)


class SubjectGrade(BaseModel):
    """Individual subject grade for one leaf grading period"""

    model_config = ConfigDict(frozen=True)

    student_id: StudentId = Field(..., description="Student ID")
    subject_id: SubjectId = Field(..., description="Subject ID")
    period_id: PeriodId = Field(..., description="Leaf grading period ID")
    grade: float = Field(..., description="Numeric grade on the level's scale")
    school_year: str = Field(..., description="Academic year (e.g., '2024-2025')")

    subject_name: Optional[str] = Field(None, description="Subject name for display")

    @field_validator('subject_name', mode='before')
    @classmethod
    def coerce_text_columns(cls, v):
        return coerce_text(v)

    @field_validator('school_year')
    @classmethod
    def validate_school_year(cls, v):
        """Validate school year format"""
        pattern = r'^\d{4}\s*-\s*\d{4}$'
        if not re.match(pattern, v.strip()):
            raise ValueError(f'School year must be in format "YYYY-YYYY", got: {v}')
        return re.sub(r'\s+', '', v)

    @field_validator('grade')
    @classmethod
    def validate_grade(cls, v):
        if math.isnan(v) or math.isinf(v):
            raise ValueError(f'Grade must be a finite number, got: {v}')
        return v


class HonorType(BaseModel):
    """Named distinction (e.g. 'With Honors', "Dean's Lister")"""

    model_config = ConfigDict(frozen=True)

    id: RecordId = Field(..., description="Honor type ID")
    name: str = Field(..., description="Display name")
    key: str = Field(..., description="Stable machine key (e.g. 'with_honors')")
    scope: HonorScope = Field(..., description="Levels this honor may be awarded at")
    precedence: Optional[int] = Field(
        None, description="Rank among honor types; higher ranks are more distinguished"
    )

    def applies_to(self, level: AcademicLevel) -> bool:
        return level in SCOPE_LEVELS[self.scope]


class HonorCriterion(BaseModel):
    """Configurable thresholds qualifying a student for an honor type at a level"""

    model_config = ConfigDict(frozen=True)

    id: RecordId = Field(..., description="Criterion ID")
    academic_level: AcademicLevel = Field(..., description="Level the criterion belongs to")
    honor_type_id: RecordId = Field(..., description="Honor type awarded when satisfied")
    honor_type: Optional[HonorType] = Field(None, description="Pre-loaded honor type, if any")

    # Average band - both bounds read in the level's scale direction
    min_gpa: Optional[float] = Field(None, description="Average must be at least this good")
    max_gpa: Optional[float] = Field(None, description="Average must be no better than this")

    # Grade floors
    min_grade: Optional[float] = Field(None, description="At least one grade this good")
    min_grade_all: Optional[float] = Field(None, description="Every grade this good")

    # Year-level applicability (inclusive)
    min_year: Optional[int] = Field(None, ge=1, description="Lowest eligible year level")
    max_year: Optional[int] = Field(None, ge=1, description="Highest eligible year level")

    require_consistent_honor: bool = Field(
        False, description="Honor standing required in every prior period"
    )

    @model_validator(mode='after')
    def validate_honor_type_link(self):
        """Embedded honor type must be the one referenced by id"""
        if self.honor_type is not None and self.honor_type.id != self.honor_type_id:
            raise ValueError(
                f'Criterion {self.id} references honor type {self.honor_type_id} '
                f'but embeds honor type {self.honor_type.id}'
            )
        return self

    @property
    def has_thresholds(self) -> bool:
        return any(
            value is not None
            for value in (
                self.min_gpa, self.max_gpa, self.min_grade,
                self.min_grade_all, self.min_year, self.max_year,
            )
        )

    @property
    def is_unconstrained(self) -> bool:
        """No thresholds and no consistency requirement - satisfied by anyone"""
        return not self.has_thresholds and not self.require_consistent_honor


class StudentRecord(BaseModel):
    """Roster entry for batch evaluation"""

    model_config = ConfigDict(frozen=True)

    student_id: StudentId = Field(..., description="Student ID")
    name: Optional[str] = Field(None, description="Student display name")
    academic_level: Optional[AcademicLevel] = Field(None, description="Enrolled academic level")
    year_level: Optional[int] = Field(None, ge=1, description="Numeric year/grade level")

    section: Optional[str] = Field(None, description="Section")
    department: Optional[str] = Field(None, description="Department (college)")
    course: Optional[str] = Field(None, description="Course/program (college)")

    @field_validator('name', 'section', 'department', 'course', mode='before')
    @classmethod
    def coerce_text_columns(cls, v):
        return coerce_text(v)

    @field_validator('year_level', mode='before')
    @classmethod
    def parse_year_level(cls, v):
        """Accept registrar keys like 'second_year' or 'grade_7'"""
        if v is None or isinstance(v, int):
            return v
        if isinstance(v, str):
            key = v.strip().lower().replace(' ', '_').replace('-', '_')
            if key == '':
                return None
            if key in YEAR_LEVEL_KEYS:
                return YEAR_LEVEL_KEYS[key]
            if key.isdigit():
                return int(key)
            raise ValueError(f'Unknown year level: {v}')
        return v


class ScaleViolation(BaseModel):
    """Grade found outside the level's declared bounds"""

    model_config = ConfigDict(frozen=True)

    student_id: StudentId
    subject_id: SubjectId
    period_id: PeriodId
    grade: float
    min_value: float
    max_value: float

    @property
    def message(self) -> str:
        return (
            f"Grade {self.grade} for subject {self.subject_id} in period {self.period_id} "
            f"is outside the scale [{self.min_value}, {self.max_value}]"
        )


class StudentAggregate(BaseModel):
    """Derived per-student summary consumed by criterion matching"""

    model_config = ConfigDict(frozen=True)

    student_id: Optional[StudentId] = Field(None, description="Student ID")
    school_year: Optional[str] = Field(None, description="Academic year")
    academic_level: AcademicLevel = Field(..., description="Level the aggregate was built for")
    evaluated_period_id: Optional[PeriodId] = Field(
        None, description="Period whose own average is overall_average (per-period evaluation)"
    )

    quarter_averages: List[float] = Field(
        default_factory=list, description="Mean grade per leaf period with grades, in period order"
    )
    period_averages: Dict[PeriodId, float] = Field(
        default_factory=dict, description="Leaf period ID -> mean grade"
    )
    semester_averages: Optional[Dict[PeriodId, float]] = Field(
        None, description="Semester period ID -> semester average (College)"
    )
    subject_semester_averages: Optional[Dict[SubjectId, Dict[PeriodId, float]]] = Field(
        None, description="Subject -> semester -> subject semester average (College)"
    )

    overall_average: Optional[float] = Field(None, description="Year (or evaluated period) average; None when no grades recorded")
    min_grade: Optional[float] = Field(None, description="Lowest numeric grade observed")
    max_grade: Optional[float] = Field(None, description="Highest numeric grade observed")

    total_subjects: int = Field(0, ge=0, description="Distinct subjects with grades")
    total_periods_with_grades: int = Field(0, ge=0, description="Leaf periods with at least one grade")

    per_subject_breakdown: Dict[SubjectId, Dict[PeriodId, float]] = Field(
        default_factory=dict, description="Subject -> leaf period -> grade"
    )
    scale_violations: List[ScaleViolation] = Field(default_factory=list)

    @property
    def has_grades(self) -> bool:
        return self.total_subjects > 0

    @property
    def total_quarters(self) -> int:
        return self.total_periods_with_grades

    @property
    def all_grades(self) -> List[float]:
        """Every recorded subject grade"""
        return [
            grade
            for periods in self.per_subject_breakdown.values()
            for grade in periods.values()
        ]


class CriterionCheck(str, Enum):
    AVERAGE_BAND = "average_band"
    ANY_SUBJECT_FLOOR = "any_subject_floor"
    ALL_SUBJECTS_FLOOR = "all_subjects_floor"
    YEAR_LEVEL = "year_level"
    CONSISTENT_HONOR = "consistent_honor"


class CheckFailure(BaseModel):
    """One failed sub-check of a criterion"""

    model_config = ConfigDict(frozen=True)

    check: CriterionCheck
    message: str
    actual: Optional[float] = None
    required: Optional[float] = None


class MatchOutcome(BaseModel):
    """Result of evaluating one criterion against one aggregate"""

    model_config = ConfigDict(frozen=True)

    criterion_id: RecordId
    honor_type_id: RecordId
    satisfied: bool
    passed_checks: List[CriterionCheck] = Field(default_factory=list)
    failed_checks: List[CheckFailure] = Field(default_factory=list)

    @property
    def first_failure(self) -> Optional[CheckFailure]:
        return self.failed_checks[0] if self.failed_checks else None


class Qualification(BaseModel):
    """A satisfied criterion paired with its honor type"""

    model_config = ConfigDict(frozen=True)

    honor_type: HonorType
    criterion: HonorCriterion
    computed_gpa: float
    min_grade: float
    quarter_averages: List[float] = Field(default_factory=list)


class CriterionDiagnostic(BaseModel):
    """Criterion skipped during resolution and why"""

    model_config = ConfigDict(frozen=True)

    criterion_id: RecordId
    honor_type_id: RecordId
    message: str


class QualificationResult(BaseModel):
    """Explained honor qualification outcome for one student and school year"""

    model_config = ConfigDict(frozen=True)

    student_id: Optional[StudentId] = None
    school_year: Optional[str] = None
    academic_level: AcademicLevel
    period_id: Optional[PeriodId] = Field(None, description="Evaluated period for per-period honors")

    qualified: bool
    qualifications: List[Qualification] = Field(
        default_factory=list, description="Ascending by honor precedence; last is the headline honor"
    )

    average_grade: Optional[float] = None
    min_grade: Optional[float] = None
    max_grade: Optional[float] = None
    quarter_averages: List[float] = Field(default_factory=list)
    semester_averages: Optional[Dict[PeriodId, float]] = None
    total_subjects: int = 0
    total_quarters: int = 0

    reason: str

    match_outcomes: List[MatchOutcome] = Field(default_factory=list)
    diagnostics: List[CriterionDiagnostic] = Field(default_factory=list)
    scale_violations: List[ScaleViolation] = Field(default_factory=list)

    @property
    def headline_qualification(self) -> Optional[Qualification]:
        return self.qualifications[-1] if self.qualifications else None

    @property
    def headline_honor(self) -> Optional[HonorType]:
        headline = self.headline_qualification
        return headline.honor_type if headline else None


class RosterFilter(BaseModel):
    """Roster narrowing applied before (or after) batch evaluation"""

    model_config = ConfigDict(frozen=True)

    section: Optional[str] = None
    department: Optional[str] = None
    course: Optional[str] = None
    year_level: Optional[int] = None

    def matches(self, student: StudentRecord) -> bool:
        if self.section is not None and student.section != self.section:
            return False
        if self.department is not None and student.department != self.department:
            return False
        if self.course is not None and student.course != self.course:
            return False
        if self.year_level is not None and student.year_level != self.year_level:
            return False
        return True


class PendingHonorRecord(BaseModel):
    """Payload handed to the approval workflow for one qualifying honor"""

    model_config = ConfigDict(frozen=True)

    student_id: StudentId
    honor_type_id: RecordId
    academic_level: AcademicLevel
    school_year: str
    gpa: float
    is_pending_approval: bool = True
    is_approved: bool = False


class HonorStatistics(BaseModel):
    """Summary of one roster evaluation"""

    total_evaluated: int = Field(..., ge=0)
    total_qualified: int = Field(..., ge=0)
    average_gpa: Optional[float] = Field(None, description="Mean average of qualified students")
    best_gpa: Optional[float] = Field(None, description="Best average among qualified students")
    by_honor_type: Dict[str, int] = Field(default_factory=dict, description="Headline honor counts")


# Export all models
__all__ = [
    'AcademicLevel',
    'BetterDirection',
    'PeriodType',
    'HonorScope',
    'SCOPE_LEVELS',
    'YEAR_LEVEL_KEYS',
    'GradeScale',
    'DEFAULT_GRADE_SCALES',
    'get_grade_scale',
    'GradingPeriod',
    'SubjectGrade',
    'HonorType',
    'HonorCriterion',
    'StudentRecord',
    'ScaleViolation',
    'StudentAggregate',
    'CriterionCheck',
    'CheckFailure',
    'MatchOutcome',
    'Qualification',
    'CriterionDiagnostic',
    'QualificationResult',
    'RosterFilter',
    'PendingHonorRecord',
    'HonorStatistics',
]
