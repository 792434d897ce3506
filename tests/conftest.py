"""
Pytest Configuration and Fixtures

Provides common fixtures for all tests including:
- Grading period catalogues (quarters and college semesters)
- Honor types and criteria
- Grade factories
- Isolated settings
"""

import pytest

from honor_tracker.config import HonorSettings
from honor_tracker.data_models import (
    AcademicLevel,
    GradingPeriod,
    HonorCriterion,
    HonorScope,
    HonorType,
    PeriodType,
    StudentRecord,
    SubjectGrade,
)
from honor_tracker.grade_aggregator import GradeAggregator
from honor_tracker.qualification_resolver import HonorTypeRegistry, QualificationResolver

SCHOOL_YEAR = "2024-2025"

JHS = AcademicLevel.JUNIOR_HIGH_SCHOOL
COLLEGE = AcademicLevel.COLLEGE

# College period ids: semesters 10/20, midterms 11/21, pre-finals 12/22
S1, S1_MIDTERM, S1_PREFINAL = 10, 11, 12
S2, S2_MIDTERM, S2_PREFINAL = 20, 21, 22


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and any .env file"""
    return HonorSettings(_env_file=None)


@pytest.fixture
def quarter_periods():
    """Four junior high quarters, ids 1-4"""
    return [
        GradingPeriod(
            id=n,
            academic_level=JHS,
            type=PeriodType.QUARTER,
            sort_order=n,
            name=f"Quarter {n}",
            code=f"Q{n}",
        )
        for n in range(1, 5)
    ]


@pytest.fixture
def college_periods():
    """Two semesters, each with Midterm and Pre-Final sub-periods"""
    periods = []
    for semester_id in (S1, S2):
        periods.append(GradingPeriod(
            id=semester_id,
            academic_level=COLLEGE,
            type=PeriodType.SEMESTER,
            sort_order=semester_id,
            is_calculated=True,
            code=f"S{semester_id // 10}",
        ))
        for offset, code in ((1, "MT"), (2, "PF")):
            periods.append(GradingPeriod(
                id=semester_id + offset,
                academic_level=COLLEGE,
                type=PeriodType.QUARTER,
                parent_id=semester_id,
                sort_order=semester_id + offset,
                code=f"S{semester_id // 10}-{code}",
            ))
    return periods


@pytest.fixture
def all_periods(quarter_periods, college_periods):
    return quarter_periods + college_periods


@pytest.fixture
def honor_types():
    return [
        HonorType(id=1, name="With Honors", key="with_honors", scope=HonorScope.BASIC, precedence=1),
        HonorType(id=2, name="With High Honors", key="with_high_honors", scope=HonorScope.BASIC, precedence=2),
        HonorType(id=3, name="With Highest Honors", key="with_highest_honors", scope=HonorScope.ADVANCED, precedence=3),
        HonorType(id=10, name="Dean's Lister", key="deans_list", scope=HonorScope.COLLEGE, precedence=1),
        HonorType(id=11, name="President's Lister", key="presidents_list", scope=HonorScope.COLLEGE, precedence=2),
    ]


@pytest.fixture
def registry(honor_types):
    return HonorTypeRegistry(honor_types)


@pytest.fixture
def jhs_criteria():
    """Banded basic-education honors"""
    return [
        HonorCriterion(id=101, academic_level=JHS, honor_type_id=1, min_gpa=90, max_gpa=94.99),
        HonorCriterion(id=102, academic_level=JHS, honor_type_id=2, min_gpa=95, max_gpa=97.99),
        HonorCriterion(id=103, academic_level=JHS, honor_type_id=3, min_gpa=98, min_grade_all=93),
    ]


@pytest.fixture
def college_criteria():
    """Cumulative college honors on the lower-is-better scale"""
    return [
        HonorCriterion(id=201, academic_level=COLLEGE, honor_type_id=10, min_gpa=1.75, min_grade_all=2.5),
        HonorCriterion(id=202, academic_level=COLLEGE, honor_type_id=11, min_gpa=1.25, min_grade_all=1.75),
    ]


@pytest.fixture
def make_grades():
    """Build SubjectGrade records from {subject: {period: grade}}"""

    def _make(table, student_id=1001, school_year=SCHOOL_YEAR):
        return [
            SubjectGrade(
                student_id=student_id,
                subject_id=subject_id,
                period_id=period_id,
                grade=grade,
                school_year=school_year,
            )
            for subject_id, periods in table.items()
            for period_id, grade in periods.items()
        ]

    return _make


@pytest.fixture
def aggregator(all_periods, test_settings):
    return GradeAggregator(all_periods, settings=test_settings)


@pytest.fixture
def resolver(registry, test_settings):
    return QualificationResolver(registry, settings=test_settings)


@pytest.fixture
def jhs_students():
    return [
        StudentRecord(student_id=1001, name="Ana Reyes", academic_level=JHS, year_level="grade_8", section="Rizal"),
        StudentRecord(student_id=1002, name="Ben Cruz", academic_level=JHS, year_level=8, section="Rizal"),
        StudentRecord(student_id=1003, name="Carla Santos", academic_level=JHS, year_level=8, section="Mabini"),
    ]
