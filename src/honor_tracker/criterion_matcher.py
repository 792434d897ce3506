#!/usr/bin/env python3
"""
Criterion Matcher
Evaluates one honor criterion against a student aggregate

Every configured sub-check runs, even after an earlier one fails, so the
outcome lists all blocking reasons together:
- Average band: min_gpa / max_gpa read in the level's scale direction
- Any-subject floor (min_grade): at least one grade at least as good
- All-subjects floor (min_grade_all): every grade at least as good
- Year level (min_year / max_year): inclusive band
- Consistent honor: prior-period honor standing supplied by the caller
"""

import logging
from typing import Any, List, Mapping, Optional, Sequence, Union

from .data_models import (
    AcademicLevel,
    CheckFailure,
    CriterionCheck,
    GradeScale,
    HonorCriterion,
    MatchOutcome,
    StudentAggregate,
    get_grade_scale,
)
from .exceptions import InvalidCriterionError

logger = logging.getLogger(__name__)

# Pre-resolved flag, or one flag per prior grading period
ConsistencyInput = Optional[Union[bool, Sequence[bool], Mapping[Any, bool]]]


def _fmt(value: float) -> str:
    return f"{value:g}"


class CriterionMatcher:
    """Match HonorCriterion records against StudentAggregate objects"""

    def __init__(self, grade_scales: Optional[Mapping[AcademicLevel, GradeScale]] = None):
        self.grade_scales = grade_scales

    def validate(self, criterion: HonorCriterion, scale: GradeScale) -> None:
        """
        Reject criteria whose bounds can never hold together

        Raises:
            InvalidCriterionError: min_gpa better than max_gpa, or min_year above max_year
        """
        if (
            criterion.min_gpa is not None
            and criterion.max_gpa is not None
            and scale.is_better(criterion.min_gpa, criterion.max_gpa)
        ):
            direction = "higher" if scale.higher_is_better else "lower"
            raise InvalidCriterionError(
                criterion.id,
                f"min_gpa {_fmt(criterion.min_gpa)} is better than max_gpa "
                f"{_fmt(criterion.max_gpa)} on a {direction}-is-better scale",
            )

        if (
            criterion.min_year is not None
            and criterion.max_year is not None
            and criterion.min_year > criterion.max_year
        ):
            raise InvalidCriterionError(
                criterion.id,
                f"min_year {criterion.min_year} is above max_year {criterion.max_year}",
            )

    def matches(
        self,
        criterion: HonorCriterion,
        aggregate: StudentAggregate,
        student_year_level: Optional[int] = None,
        consistency: ConsistencyInput = None,
    ) -> MatchOutcome:
        """
        Evaluate every configured check of a criterion

        Args:
            criterion: Criterion to evaluate
            aggregate: Student aggregate for the criterion's level
            student_year_level: Numeric year level, needed only for year-bounded criteria
            consistency: Prior honor standing, needed only when require_consistent_honor is set

        Returns:
            MatchOutcome with passed checks and ordered failures
        """
        scale = get_grade_scale(aggregate.academic_level, self.grade_scales)

        passed: List[CriterionCheck] = []
        failures: List[CheckFailure] = []

        checks = (
            (criterion.min_gpa is not None or criterion.max_gpa is not None,
             CriterionCheck.AVERAGE_BAND, self._check_average_band),
            (criterion.min_grade is not None,
             CriterionCheck.ANY_SUBJECT_FLOOR, self._check_any_subject_floor),
            (criterion.min_grade_all is not None,
             CriterionCheck.ALL_SUBJECTS_FLOOR, self._check_all_subjects_floor),
        )
        for applies, check, evaluate in checks:
            if not applies:
                continue
            found = evaluate(criterion, aggregate, scale)
            if found:
                failures.extend(found)
            else:
                passed.append(check)

        if criterion.min_year is not None or criterion.max_year is not None:
            failure = self._check_year_level(criterion, student_year_level)
            if failure:
                failures.append(failure)
            else:
                passed.append(CriterionCheck.YEAR_LEVEL)

        if criterion.require_consistent_honor:
            failure = self._check_consistency(consistency)
            if failure:
                failures.append(failure)
            else:
                passed.append(CriterionCheck.CONSISTENT_HONOR)

        outcome = MatchOutcome(
            criterion_id=criterion.id,
            honor_type_id=criterion.honor_type_id,
            satisfied=not failures,
            passed_checks=passed,
            failed_checks=failures,
        )
        logger.debug(
            f"Criterion {criterion.id} for student {aggregate.student_id}: "
            f"{'satisfied' if outcome.satisfied else f'{len(failures)} failed check(s)'}"
        )
        return outcome

    def _check_average_band(
        self, criterion: HonorCriterion, aggregate: StudentAggregate, scale: GradeScale
    ) -> List[CheckFailure]:
        average = aggregate.overall_average
        if average is None:
            return [CheckFailure(
                check=CriterionCheck.AVERAGE_BAND,
                message="No average grade available",
                required=criterion.min_gpa if criterion.min_gpa is not None else criterion.max_gpa,
            )]

        failures = []
        if criterion.min_gpa is not None and not scale.is_at_least_as_good(average, criterion.min_gpa):
            failures.append(CheckFailure(
                check=CriterionCheck.AVERAGE_BAND,
                message=f"Average grade {_fmt(average)} does not meet minimum {_fmt(criterion.min_gpa)}",
                actual=average,
                required=criterion.min_gpa,
            ))
        # max_gpa caps the band: the average may not be better than it
        if criterion.max_gpa is not None and scale.is_better(average, criterion.max_gpa):
            failures.append(CheckFailure(
                check=CriterionCheck.AVERAGE_BAND,
                message=f"Average grade {_fmt(average)} exceeds maximum {_fmt(criterion.max_gpa)}",
                actual=average,
                required=criterion.max_gpa,
            ))
        return failures

    def _check_any_subject_floor(
        self, criterion: HonorCriterion, aggregate: StudentAggregate, scale: GradeScale
    ) -> List[CheckFailure]:
        grades = aggregate.all_grades
        threshold = criterion.min_grade
        if not grades:
            return [CheckFailure(
                check=CriterionCheck.ANY_SUBJECT_FLOOR,
                message="No subject grades recorded",
                required=threshold,
            )]

        if any(scale.is_at_least_as_good(grade, threshold) for grade in grades):
            return []

        best = scale.best(grades)
        return [CheckFailure(
            check=CriterionCheck.ANY_SUBJECT_FLOOR,
            message=f"No subject grade meets minimum {_fmt(threshold)} (best grade {_fmt(best)})",
            actual=best,
            required=threshold,
        )]

    def _check_all_subjects_floor(
        self, criterion: HonorCriterion, aggregate: StudentAggregate, scale: GradeScale
    ) -> List[CheckFailure]:
        grades = aggregate.all_grades
        threshold = criterion.min_grade_all
        if not grades:
            return [CheckFailure(
                check=CriterionCheck.ALL_SUBJECTS_FLOOR,
                message="No subject grades recorded",
                required=threshold,
            )]

        failing = [grade for grade in grades if not scale.is_at_least_as_good(grade, threshold)]
        if not failing:
            return []

        worst = scale.worst(failing)
        return [CheckFailure(
            check=CriterionCheck.ALL_SUBJECTS_FLOOR,
            message=(
                f"{len(failing)} subject grade(s) do not meet required {_fmt(threshold)} "
                f"for all subjects (worst grade {_fmt(worst)})"
            ),
            actual=worst,
            required=threshold,
        )]

    def _check_year_level(
        self, criterion: HonorCriterion, student_year_level: Optional[int]
    ) -> Optional[CheckFailure]:
        """
        Inclusive year band. Each bound is enforced on its own when the other is
        unset, so min_year=2 alone means "second year or above". A student whose
        year level is unknown fails any year-bounded criterion.
        """
        low, high = criterion.min_year, criterion.max_year
        if low is not None and high is not None:
            band = f"{low}-{high}"
        elif low is not None:
            band = f"{low} or above"
        else:
            band = f"{high} or below"

        if student_year_level is None:
            return CheckFailure(
                check=CriterionCheck.YEAR_LEVEL,
                message=f"Student year level unknown (required {band})",
            )

        if (low is not None and student_year_level < low) or (high is not None and student_year_level > high):
            return CheckFailure(
                check=CriterionCheck.YEAR_LEVEL,
                message=f"Student year level {student_year_level} not within required range {band}",
                actual=float(student_year_level),
            )
        return None

    def _check_consistency(self, consistency: ConsistencyInput) -> Optional[CheckFailure]:
        if consistency is None:
            return CheckFailure(
                check=CriterionCheck.CONSISTENT_HONOR,
                message="Consistent honor history not provided",
            )

        if isinstance(consistency, bool):
            if consistency:
                return None
            return CheckFailure(
                check=CriterionCheck.CONSISTENT_HONOR,
                message="Student does not have consistent honor performance",
            )

        flags = list(consistency.values()) if isinstance(consistency, Mapping) else list(consistency)
        if not flags:
            return CheckFailure(
                check=CriterionCheck.CONSISTENT_HONOR,
                message="No prior honor standing on record",
            )

        missing = sum(1 for flag in flags if not flag)
        if missing:
            return CheckFailure(
                check=CriterionCheck.CONSISTENT_HONOR,
                message=f"Honor standing missing in {missing} of {len(flags)} prior period(s)",
            )
        return None
