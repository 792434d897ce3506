"""
Honor Tracker - academic honor qualification for basic education and college
"""

from .config import HonorSettings, UnconstrainedCriterionPolicy, settings
from .criterion_matcher import CriterionMatcher
from .data_models import (
    DEFAULT_GRADE_SCALES,
    AcademicLevel,
    GradeScale,
    GradingPeriod,
    HonorCriterion,
    HonorScope,
    HonorType,
    PeriodType,
    QualificationResult,
    RosterFilter,
    StudentAggregate,
    StudentRecord,
    SubjectGrade,
)
from .exceptions import (
    ConfigurationError,
    HonorEvaluationError,
    InvalidCriterionError,
    MissingDataError,
    ScaleViolationWarning,
)
from .grade_aggregator import GradeAggregator
from .grade_source import DataFrameGradeSource, HonorDataProcessor
from .qualification_resolver import HonorTypeRegistry, QualificationResolver
from .roster_evaluator import RosterEvaluation, RosterEvaluator

__version__ = "1.0.0"

__all__ = [
    'HonorSettings',
    'UnconstrainedCriterionPolicy',
    'settings',
    'CriterionMatcher',
    'DEFAULT_GRADE_SCALES',
    'AcademicLevel',
    'GradeScale',
    'GradingPeriod',
    'HonorCriterion',
    'HonorScope',
    'HonorType',
    'PeriodType',
    'QualificationResult',
    'RosterFilter',
    'StudentAggregate',
    'StudentRecord',
    'SubjectGrade',
    'ConfigurationError',
    'HonorEvaluationError',
    'InvalidCriterionError',
    'MissingDataError',
    'ScaleViolationWarning',
    'GradeAggregator',
    'DataFrameGradeSource',
    'HonorDataProcessor',
    'HonorTypeRegistry',
    'QualificationResolver',
    'RosterEvaluation',
    'RosterEvaluator',
]
