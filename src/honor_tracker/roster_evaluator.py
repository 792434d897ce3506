#!/usr/bin/env python3
"""
ROSTER EVALUATOR - Batch honor qualification for a level and school year
Evaluate every student on a roster and partition into qualified/unqualified

EVALUATION METHODOLOGY:
✅ Roster Filter: section, department, course, year level - applied before evaluation
✅ Per Student: grade source -> aggregate -> resolve
✅ Degraded Students: grade source failures become "Insufficient data", batch continues
✅ Configuration Errors: propagate and halt the level
✅ Deterministic: roster order preserved, no random tie-breaking

OUTPUT FORMATS:
- Partition: qualified / unqualified (student, result) pairs
- Statistics: totals, qualifying averages, headline honor counts
- Pending honor records for the approval workflow
- DataFrame / CSV report

Priority: HIGH - Honor roll generation
Dependencies: pandas, tqdm, grade_aggregator, qualification_resolver
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd
from pydantic import BaseModel, Field
from tqdm import tqdm

from .config import HonorSettings, settings as default_settings
from .criterion_matcher import ConsistencyInput
from .data_models import (
    AcademicLevel,
    GradeScale,
    HonorCriterion,
    HonorStatistics,
    PendingHonorRecord,
    PeriodId,
    QualificationResult,
    RosterFilter,
    StudentRecord,
    SubjectGrade,
    get_grade_scale,
)
from .exceptions import ConfigurationError
from .grade_aggregator import GradeAggregator
from .qualification_resolver import QualificationResolver

logger = logging.getLogger(__name__)

INSUFFICIENT_DATA_REASON = "Insufficient data"

GradeSource = Callable[[StudentRecord, str, AcademicLevel], Iterable[SubjectGrade]]
ConsistencySource = Callable[[StudentRecord, str, AcademicLevel], ConsistencyInput]

EvaluatedStudent = Tuple[StudentRecord, QualificationResult]


class RosterEvaluation(BaseModel):
    """Partitioned outcome of one roster evaluation"""

    academic_level: AcademicLevel
    school_year: str
    qualified: List[EvaluatedStudent] = Field(default_factory=list)
    unqualified: List[EvaluatedStudent] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.qualified) + len(self.unqualified)

    def filter(self, roster_filter: RosterFilter) -> "RosterEvaluation":
        """Narrow the partition without re-evaluating anyone"""
        return RosterEvaluation(
            academic_level=self.academic_level,
            school_year=self.school_year,
            qualified=[pair for pair in self.qualified if roster_filter.matches(pair[0])],
            unqualified=[pair for pair in self.unqualified if roster_filter.matches(pair[0])],
        )

    def statistics(
        self, grade_scales: Optional[Mapping[AcademicLevel, GradeScale]] = None
    ) -> HonorStatistics:
        """Honor statistics for the qualified students"""
        scale = get_grade_scale(self.academic_level, grade_scales)
        averages = [
            result.average_grade for _, result in self.qualified
            if result.average_grade is not None
        ]

        by_honor_type = {}
        for _, result in self.qualified:
            headline = result.headline_honor
            if headline is not None:
                by_honor_type[headline.name] = by_honor_type.get(headline.name, 0) + 1

        return HonorStatistics(
            total_evaluated=self.total,
            total_qualified=len(self.qualified),
            average_gpa=sum(averages) / len(averages) if averages else None,
            best_gpa=scale.best(averages),
            by_honor_type=by_honor_type,
        )

    def pending_honor_records(self) -> List[PendingHonorRecord]:
        """One pending record per qualified student and honor type"""
        records = []
        for student, result in self.qualified:
            seen = set()
            for qualification in result.qualifications:
                honor_type_id = qualification.honor_type.id
                if honor_type_id in seen:
                    continue
                seen.add(honor_type_id)
                records.append(PendingHonorRecord(
                    student_id=student.student_id,
                    honor_type_id=honor_type_id,
                    academic_level=self.academic_level,
                    school_year=self.school_year,
                    gpa=qualification.computed_gpa,
                ))
        return records

    def to_dataframe(self, output_path: Optional[Path] = None) -> pd.DataFrame:
        """
        Tabular report, qualified students first

        Args:
            output_path: Optional path to save CSV report

        Returns:
            DataFrame with one row per evaluated student
        """
        records = []
        for student, result in self.qualified + self.unqualified:
            headline = result.headline_honor
            records.append({
                'Student ID': student.student_id,
                'Name': student.name,
                'Section': student.section,
                'Department': student.department,
                'Course': student.course,
                'Year Level': student.year_level,
                'Qualified': result.qualified,
                'Headline Honor': headline.name if headline else None,
                'Honors': ', '.join(dict.fromkeys(q.honor_type.name for q in result.qualifications)),
                'Average Grade': result.average_grade,
                'Min Grade': result.min_grade,
                'Max Grade': result.max_grade,
                'Total Subjects': result.total_subjects,
                'Total Quarters': result.total_quarters,
                'Reason': result.reason,
            })

        df = pd.DataFrame(records, columns=[
            'Student ID', 'Name', 'Section', 'Department', 'Course', 'Year Level',
            'Qualified', 'Headline Honor', 'Honors', 'Average Grade', 'Min Grade',
            'Max Grade', 'Total Subjects', 'Total Quarters', 'Reason',
        ])

        if output_path:
            df.to_csv(output_path, index=False)
            logger.info(f"Honor report saved to: {output_path}")

        return df


class RosterEvaluator:
    """Evaluate honor qualification for whole rosters"""

    def __init__(
        self,
        aggregator: GradeAggregator,
        resolver: QualificationResolver,
        settings: Optional[HonorSettings] = None,
    ):
        self.aggregator = aggregator
        self.resolver = resolver
        self.settings = settings or default_settings
        self.evaluation_log: List[str] = []

    def evaluate_student(
        self,
        student: StudentRecord,
        level: AcademicLevel,
        school_year: str,
        criteria: Sequence[HonorCriterion],
        grade_source: GradeSource,
        consistency_source: Optional[ConsistencySource] = None,
        period_id: Optional[PeriodId] = None,
    ) -> QualificationResult:
        """
        Aggregate and resolve one student

        Failures raised while fetching or aggregating the student's grades
        degrade to an unqualified "Insufficient data" result.
        ConfigurationError always propagates.

        With period_id set, the student is judged on that grading period's own
        average; grade floors still cover every earlier period.
        """
        try:
            grades = list(grade_source(student, school_year, level))
            if period_id is None:
                aggregate = self.aggregator.aggregate(
                    level, grades, student_id=student.student_id, school_year=school_year
                )
            else:
                aggregate = self.aggregator.aggregate_period(
                    level, grades, period_id, student_id=student.student_id, school_year=school_year
                )
            consistency = None
            if consistency_source is not None and any(c.require_consistent_honor for c in criteria):
                consistency = consistency_source(student, school_year, level)
        except ConfigurationError:
            raise
        except Exception as e:
            logger.warning(f"⚠️ Insufficient data for student {student.student_id}: {e}")
            return QualificationResult(
                student_id=student.student_id,
                school_year=school_year,
                academic_level=level,
                period_id=period_id,
                qualified=False,
                reason=INSUFFICIENT_DATA_REASON,
            )

        return self.resolver.resolve(
            level,
            criteria,
            aggregate,
            student_year_level=student.year_level,
            consistency_inputs=consistency,
        )

    def evaluate_roster(
        self,
        level: AcademicLevel,
        school_year: str,
        students: Iterable[StudentRecord],
        criteria: Iterable[HonorCriterion],
        grade_source: GradeSource,
        roster_filter: Optional[RosterFilter] = None,
        consistency_source: Optional[ConsistencySource] = None,
        period_id: Optional[PeriodId] = None,
    ) -> RosterEvaluation:
        """
        Evaluate every student on a roster

        Args:
            level: Academic level being evaluated
            school_year: School year (e.g. '2024-2025')
            students: Roster for the level
            criteria: Honor criteria; only those for `level` are used
            grade_source: Callable returning a student's grades for the year and level
            roster_filter: Optional section/department/course/year-level filter
            consistency_source: Callable returning prior honor standing
            period_id: Evaluate per-period honors for this grading period

        Returns:
            RosterEvaluation partitioning the (filtered) roster
        """
        self.evaluation_log = []
        students = list(students)
        level_criteria = [c for c in criteria if c.academic_level is level]

        roster = []
        for student in students:
            if student.academic_level is not None and student.academic_level is not level:
                logger.warning(
                    f"⚠️ Student {student.student_id} is enrolled in "
                    f"'{student.academic_level.value}', not '{level.value}' - skipped"
                )
                continue
            if roster_filter is not None and not roster_filter.matches(student):
                continue
            roster.append(student)

        self.evaluation_log.append(
            f"🏆 Evaluating {len(roster)} of {len(students)} students "
            f"({level.value}, {school_year}) against {len(level_criteria)} criteria"
        )
        logger.info(self.evaluation_log[-1])

        def evaluate(student: StudentRecord) -> QualificationResult:
            return self.evaluate_student(
                student, level, school_year, level_criteria, grade_source, consistency_source, period_id
            )

        workers = self.settings.batch_max_workers
        progress = dict(
            total=len(roster), desc="Evaluating", unit="student",
            disable=not self.settings.show_progress,
        )
        if workers > 1:
            with ThreadPoolExecutor(max_workers=workers) as executor:
                results = list(tqdm(executor.map(evaluate, roster), **progress))
        else:
            results = [evaluate(student) for student in tqdm(roster, **progress)]

        evaluation = RosterEvaluation(academic_level=level, school_year=school_year)
        degraded = 0
        for student, result in zip(roster, results):
            if result.qualified:
                evaluation.qualified.append((student, result))
            else:
                evaluation.unqualified.append((student, result))
                if result.reason == INSUFFICIENT_DATA_REASON:
                    degraded += 1

        self.evaluation_log.append(
            f"✅ {len(evaluation.qualified)} qualified, {len(evaluation.unqualified)} not qualified"
        )
        if degraded:
            self.evaluation_log.append(f"⚠️ {degraded} student(s) had insufficient data")
        for entry in self.evaluation_log[1:]:
            logger.info(entry)

        return evaluation

    def get_evaluation_log(self) -> List[str]:
        """Get summary log of the last roster evaluation"""
        return self.evaluation_log
