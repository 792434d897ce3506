#!/usr/bin/env python3
"""
GRADE AGGREGATOR - Level-aware averages from raw subject grades
Turns a student's per-subject, per-period grades into the aggregate that
honor criteria are matched against

AGGREGATION TYPES:
✅ Flat (Elementary, Junior High, Senior High): quarter average = mean of the
   quarter's subject grades, overall = mean of quarters that have grades
✅ Hierarchical (College): subject semester average = mean of its sub-period
   grades (Midterm, Pre-Final), semester average = mean of subject averages,
   overall = mean of semester averages (semesters weighted equally)
✅ Cumulative: optional cut-off period restricts the aggregate to periods up to
   and including it
✅ Per-period: the cut-off period's own average, grade floors still cumulative

EDGE CASES HANDLED:
- Periods without grades are excluded, never zero-filled
- No grades at all: overall_average is None and total_subjects is 0
- Duplicate subject/period records: first record wins, duplicate logged
- Out-of-range grades: passed through, flagged as scale violations

Priority: CRITICAL - Core academic calculations
Dependencies: data_models.py for type definitions
"""

import logging
import warnings
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .config import HonorSettings, settings as default_settings
from .data_models import (
    AcademicLevel,
    GradeScale,
    GradingPeriod,
    PeriodId,
    PeriodType,
    ScaleViolation,
    StudentAggregate,
    SubjectGrade,
    SubjectId,
    get_grade_scale,
)
from .exceptions import ConfigurationError, ScaleViolationWarning

logger = logging.getLogger(__name__)


def _mean(values: List[float]) -> float:
    return sum(values) / len(values)


class GradeAggregator:
    """Build StudentAggregate objects from raw SubjectGrade records"""

    def __init__(
        self,
        grading_periods: Iterable[GradingPeriod],
        grade_scales: Optional[Mapping[AcademicLevel, GradeScale]] = None,
        settings: Optional[HonorSettings] = None,
    ):
        """
        Initialize aggregator with the grading period catalogue

        Args:
            grading_periods: Every grading period (leaf and calculated) for the levels evaluated
            grade_scales: Scale per level; defaults to DEFAULT_GRADE_SCALES
            settings: Runtime settings; defaults to the module-level settings
        """
        self.grading_periods: Dict[PeriodId, GradingPeriod] = {}
        for period in grading_periods:
            if period.id in self.grading_periods:
                raise ConfigurationError(f"Duplicate grading period id: {period.id}")
            self.grading_periods[period.id] = period
        self.grade_scales = grade_scales
        self.settings = settings or default_settings

    def aggregate(
        self,
        level: AcademicLevel,
        subject_grades: Iterable[SubjectGrade],
        student_id=None,
        school_year: Optional[str] = None,
        through_period_id: Optional[PeriodId] = None,
        period_only: bool = False,
    ) -> StudentAggregate:
        """
        Aggregate one student's grades for one school year

        Args:
            level: Academic level whose scale and hierarchy apply
            subject_grades: Grades for a single student and school year
            student_id: Expected student (taken from the grades when omitted)
            school_year: Expected school year (taken from the grades when omitted)
            through_period_id: Only include periods up to and including this one
            period_only: overall_average is the cut-off period's own average, while
                grade floors and min/max still cover every period up to it

        Returns:
            StudentAggregate; overall_average is None when no grades were recorded

        Raises:
            ConfigurationError: missing scale, unknown/non-leaf period, broken semester hierarchy
            ValueError: grades belonging to several students or school years
        """
        if period_only and through_period_id is None:
            raise ValueError("period_only requires through_period_id")

        scale = get_grade_scale(level, self.grade_scales)
        grades = list(subject_grades)
        student_id, school_year = self._resolve_key(grades, student_id, school_year)

        cutoff = None
        if through_period_id is not None:
            cutoff = self._cutoff_sort_order(level, through_period_id)
        evaluated_period_id = through_period_id if period_only else None

        tagged = self._tag_grades(level, grades, cutoff)
        if not tagged:
            logger.debug(f"No grades recorded for student {student_id} in {school_year}")
            return StudentAggregate(
                student_id=student_id,
                school_year=school_year,
                academic_level=level,
                evaluated_period_id=evaluated_period_id,
                semester_averages={} if level.uses_semester_hierarchy else None,
                subject_semester_averages={} if level.uses_semester_hierarchy else None,
            )

        violations = []
        if self.settings.validate_scale_bounds:
            violations = self._check_scale_bounds(scale, tagged)

        # Subject -> period -> grade, and period -> grades, both in period order
        breakdown: Dict[SubjectId, Dict[PeriodId, float]] = {}
        grades_by_period: Dict[PeriodId, List[float]] = {}
        for grade, period in tagged:
            breakdown.setdefault(grade.subject_id, {})[period.id] = grade.grade
            grades_by_period.setdefault(period.id, []).append(grade.grade)

        raw_period_averages = {
            period_id: _mean(values) for period_id, values in grades_by_period.items()
        }
        for period_id, average in raw_period_averages.items():
            logger.debug(
                f"Student {student_id} period {self.grading_periods[period_id].display_name}: "
                f"{average:.3f} over {len(grades_by_period[period_id])} grades"
            )

        semester_averages = None
        subject_semester_averages = None
        raw_semesters: Dict[PeriodId, float] = {}
        if level.uses_semester_hierarchy:
            raw_subject_semesters, raw_semesters = self._semester_averages(tagged)
            overall = _mean(list(raw_semesters.values()))
            semester_averages = {
                semester_id: self._round(average) for semester_id, average in raw_semesters.items()
            }
            subject_semester_averages = {
                subject_id: {sem_id: self._round(avg) for sem_id, avg in semesters.items()}
                for subject_id, semesters in raw_subject_semesters.items()
            }
        else:
            overall = _mean(list(raw_period_averages.values()))

        if period_only:
            overall = self._own_period_average(through_period_id, raw_period_averages, raw_semesters)
            if overall is None:
                logger.debug(
                    f"No grades recorded for student {student_id} in period "
                    f"{self.grading_periods[through_period_id].display_name}"
                )

        all_values = [grade.grade for grade, _ in tagged]

        return StudentAggregate(
            student_id=student_id,
            school_year=school_year,
            academic_level=level,
            evaluated_period_id=evaluated_period_id,
            quarter_averages=[self._round(avg) for avg in raw_period_averages.values()],
            period_averages={
                period_id: self._round(avg) for period_id, avg in raw_period_averages.items()
            },
            semester_averages=semester_averages,
            subject_semester_averages=subject_semester_averages,
            overall_average=self._round(overall) if overall is not None else None,
            min_grade=min(all_values),
            max_grade=max(all_values),
            total_subjects=len(breakdown),
            total_periods_with_grades=len(raw_period_averages),
            per_subject_breakdown=breakdown,
            scale_violations=violations,
        )

    def aggregate_period(
        self,
        level: AcademicLevel,
        subject_grades: Iterable[SubjectGrade],
        period_id: PeriodId,
        student_id=None,
        school_year: Optional[str] = None,
    ) -> StudentAggregate:
        """
        Per-period honor aggregate: the period's own average, with grade floors
        checked across this period and every earlier one

        A period without grades of its own yields overall_average None.
        """
        return self.aggregate(
            level,
            subject_grades,
            student_id=student_id,
            school_year=school_year,
            through_period_id=period_id,
            period_only=True,
        )

    def _own_period_average(
        self,
        period_id: PeriodId,
        raw_period_averages: Dict[PeriodId, float],
        raw_semesters: Dict[PeriodId, float],
    ) -> Optional[float]:
        """Unrounded average of one period: leaf mean, or semester average"""
        if period_id in raw_period_averages:
            return raw_period_averages[period_id]
        if period_id in raw_semesters:
            return raw_semesters[period_id]

        # Calculated period outside the college hierarchy: mean of its sub-periods
        children = [
            raw_period_averages[p.id] for p in self.grading_periods.values()
            if p.parent_id == period_id and p.id in raw_period_averages
        ]
        return _mean(children) if children else None

    def _resolve_key(
        self, grades: List[SubjectGrade], student_id, school_year: Optional[str]
    ) -> Tuple[object, Optional[str]]:
        """Check every grade belongs to one student and one school year"""
        student_ids = {grade.student_id for grade in grades}
        school_years = {grade.school_year for grade in grades}

        if len(student_ids) > 1:
            raise ValueError(f"Grades belong to several students: {sorted(map(str, student_ids))}")
        if len(school_years) > 1:
            raise ValueError(f"Grades span several school years: {sorted(school_years)}")

        if student_ids:
            found = next(iter(student_ids))
            if student_id is not None and found != student_id:
                raise ValueError(f"Grades are for student {found}, expected {student_id}")
            student_id = found
        if school_years:
            found_year = next(iter(school_years))
            if school_year is not None and found_year != school_year.replace(' ', ''):
                raise ValueError(f"Grades are for school year {found_year}, expected {school_year}")
            school_year = found_year

        return student_id, school_year

    def _cutoff_sort_order(self, level: AcademicLevel, period_id: PeriodId) -> int:
        period = self.grading_periods.get(period_id)
        if period is None or period.academic_level is not level:
            raise ConfigurationError(
                f"Cut-off period {period_id} is not a grading period of level '{level.value}'"
            )
        if period.is_leaf:
            return period.sort_order

        # Calculated period: include all of its sub-periods
        children = [p.sort_order for p in self.grading_periods.values() if p.parent_id == period.id]
        return max(children) if children else period.sort_order

    def _tag_grades(
        self, level: AcademicLevel, grades: List[SubjectGrade], cutoff: Optional[int]
    ) -> List[Tuple[SubjectGrade, GradingPeriod]]:
        """Pair grades with their leaf period, dropping duplicates and post-cutoff periods"""
        tagged = []
        seen = set()

        for grade in grades:
            period = self.grading_periods.get(grade.period_id)
            if period is None:
                raise ConfigurationError(
                    f"Grade for subject {grade.subject_id} references unknown grading period {grade.period_id}"
                )
            if period.academic_level is not level:
                raise ConfigurationError(
                    f"Grading period {period.display_name} belongs to '{period.academic_level.value}', "
                    f"not '{level.value}'"
                )
            if not period.is_leaf:
                raise ConfigurationError(
                    f"Grade for subject {grade.subject_id} recorded against calculated period {period.display_name}"
                )

            if cutoff is not None and period.sort_order > cutoff:
                continue

            key = (grade.subject_id, period.id)
            if key in seen:
                logger.warning(
                    f"⚠️ Duplicate grade for student {grade.student_id}, subject {grade.subject_id}, "
                    f"period {period.display_name} - keeping the first record"
                )
                continue
            seen.add(key)
            tagged.append((grade, period))

        # Stable: period order first, input order within a period
        tagged.sort(key=lambda item: item[1].sort_order)
        return tagged

    def _semester_averages(
        self, tagged: List[Tuple[SubjectGrade, GradingPeriod]]
    ) -> Tuple[Dict[SubjectId, Dict[PeriodId, float]], Dict[PeriodId, float]]:
        """
        College hierarchy: subject semester averages, then semester averages

        Returns:
            Tuple of (subject -> semester -> average, semester -> average), unrounded
        """
        grades_by_semester: Dict[PeriodId, Dict[SubjectId, List[float]]] = {}

        for grade, period in tagged:
            semester = self._parent_semester(period)
            subjects = grades_by_semester.setdefault(semester.id, {})
            subjects.setdefault(grade.subject_id, []).append(grade.grade)

        ordered_semesters = sorted(
            grades_by_semester, key=lambda sem_id: self.grading_periods[sem_id].sort_order
        )

        subject_semesters: Dict[SubjectId, Dict[PeriodId, float]] = {}
        semester_averages: Dict[PeriodId, float] = {}
        for semester_id in ordered_semesters:
            subject_averages = []
            for subject_id, values in grades_by_semester[semester_id].items():
                subject_average = _mean(values)
                subject_semesters.setdefault(subject_id, {})[semester_id] = subject_average
                subject_averages.append(subject_average)
            semester_averages[semester_id] = _mean(subject_averages)

        return subject_semesters, semester_averages

    def _parent_semester(self, period: GradingPeriod) -> GradingPeriod:
        parent = self.grading_periods.get(period.parent_id) if period.parent_id is not None else None
        if parent is None or parent.type is not PeriodType.SEMESTER:
            raise ConfigurationError(
                f"Grading period {period.display_name} has no parent semester"
            )
        return parent

    def _check_scale_bounds(
        self, scale: GradeScale, tagged: List[Tuple[SubjectGrade, GradingPeriod]]
    ) -> List[ScaleViolation]:
        """Flag grades outside the scale - they still count toward averages"""
        violations = []
        for grade, period in tagged:
            if scale.contains(grade.grade):
                continue
            violation = ScaleViolation(
                student_id=grade.student_id,
                subject_id=grade.subject_id,
                period_id=period.id,
                grade=grade.grade,
                min_value=scale.min_value,
                max_value=scale.max_value,
            )
            logger.warning(f"⚠️ {violation.message}")
            warnings.warn(violation.message, ScaleViolationWarning, stacklevel=3)
            violations.append(violation)
        return violations

    def _round(self, value: float) -> float:
        """Half away from zero (92.125 -> 92.13), not the banker's rounding of round()"""
        precision = self.settings.average_precision
        if precision is None:
            return value
        quantum = Decimal(1).scaleb(-precision)
        return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))
