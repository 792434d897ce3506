"""
Error taxonomy for honor evaluation

- ConfigurationError: broken external contract (missing grade scale, dangling
  honor type or grading period). Always propagates.
- InvalidCriterionError: one criterion with contradictory bounds. The resolver
  skips it and records a diagnostic.
- MissingDataError: no usable grades for a student. Absorbed per student.
- ScaleViolationWarning: a grade outside the level's declared bounds.
"""


class HonorEvaluationError(Exception):
    """Base class for honor evaluation errors"""


class ConfigurationError(HonorEvaluationError):
    """Structural problem in reference data - halts evaluation for the level"""


class InvalidCriterionError(HonorEvaluationError):
    """Honor criterion whose bounds can never be satisfied together"""

    def __init__(self, criterion_id, message: str):
        super().__init__(message)
        self.criterion_id = criterion_id
        self.message = message


class MissingDataError(HonorEvaluationError):
    """No grade data available for a student in the requested year/level"""

    def __init__(self, student_id, message: str = "Insufficient data"):
        super().__init__(message)
        self.student_id = student_id


class ScaleViolationWarning(UserWarning):
    """Grade observed outside the level's declared numeric bounds"""


__all__ = [
    'HonorEvaluationError',
    'ConfigurationError',
    'InvalidCriterionError',
    'MissingDataError',
    'ScaleViolationWarning',
]
