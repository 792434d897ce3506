"""
Unit Tests for Roster Evaluator

Tests for:
- Partition completeness and roster order
- Degraded students ("Insufficient data")
- Configuration errors halting the batch
- Roster filters, statistics, pending records and reports
"""

import pandas as pd
import pytest

from honor_tracker.config import HonorSettings
from honor_tracker.data_models import (
    AcademicLevel,
    HonorCriterion,
    RosterFilter,
    StudentRecord,
)
from honor_tracker.exceptions import ConfigurationError, MissingDataError
from honor_tracker.grade_aggregator import GradeAggregator
from honor_tracker.qualification_resolver import QualificationResolver
from honor_tracker.roster_evaluator import INSUFFICIENT_DATA_REASON, RosterEvaluator

JHS = AcademicLevel.JUNIOR_HIGH_SCHOOL
SCHOOL_YEAR = "2024-2025"


@pytest.fixture
def grade_tables():
    """Quarter grades per student; 1003 has none on file"""
    return {
        1001: {'MATH': {1: 96, 2: 97}, 'ENG': {1: 95, 2: 96}},
        1002: {'MATH': {1: 84, 2: 86}, 'ENG': {1: 85, 2: 85}},
    }


@pytest.fixture
def grade_source(grade_tables, make_grades):
    def _source(student, school_year, level):
        if student.student_id not in grade_tables:
            raise MissingDataError(student.student_id)
        return make_grades(grade_tables[student.student_id], student_id=student.student_id)

    return _source


@pytest.fixture
def evaluator(aggregator, resolver, test_settings):
    return RosterEvaluator(aggregator, resolver, settings=test_settings)


class TestRosterEvaluation:

    def test_partition_is_complete(self, evaluator, jhs_students, jhs_criteria, grade_source):
        evaluation = evaluator.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source)

        assert evaluation.total == len(jhs_students)
        assert [s.student_id for s, _ in evaluation.qualified] == [1001]
        assert [s.student_id for s, _ in evaluation.unqualified] == [1002, 1003]

    def test_insufficient_data_does_not_stop_batch(self, evaluator, jhs_students, jhs_criteria, grade_source):
        evaluation = evaluator.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source)

        _, degraded = evaluation.unqualified[1]
        assert degraded.reason == INSUFFICIENT_DATA_REASON
        assert degraded.qualified is False
        assert any("insufficient data" in entry for entry in evaluator.get_evaluation_log())

    def test_unexpected_grade_source_failure_degrades(self, evaluator, jhs_students, jhs_criteria):
        def broken_source(student, school_year, level):
            raise RuntimeError("grading service unavailable")

        evaluation = evaluator.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, broken_source)

        assert evaluation.qualified == []
        assert all(r.reason == INSUFFICIENT_DATA_REASON for _, r in evaluation.unqualified)

    def test_configuration_error_halts_level(self, evaluator, jhs_students, jhs_criteria, make_grades):
        def source_with_unknown_period(student, school_year, level):
            return make_grades({'MATH': {99: 90}}, student_id=student.student_id)

        with pytest.raises(ConfigurationError):
            evaluator.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, source_with_unknown_period)

    def test_only_level_criteria_are_used(self, evaluator, jhs_students, jhs_criteria, college_criteria, grade_source):
        """College criteria would raise a scope error if they reached the resolver"""
        evaluation = evaluator.evaluate_roster(
            JHS, SCHOOL_YEAR, jhs_students, jhs_criteria + college_criteria, grade_source
        )

        assert evaluation.total == 3

    def test_students_from_other_levels_are_skipped(self, evaluator, jhs_students, jhs_criteria, grade_source):
        college_student = StudentRecord(student_id=5001, academic_level=AcademicLevel.COLLEGE, year_level=2)

        evaluation = evaluator.evaluate_roster(
            JHS, SCHOOL_YEAR, jhs_students + [college_student], jhs_criteria, grade_source
        )

        assert evaluation.total == 3

    def test_roster_filter(self, evaluator, jhs_students, jhs_criteria, grade_source):
        evaluation = evaluator.evaluate_roster(
            JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source,
            roster_filter=RosterFilter(section="Rizal"),
        )

        assert evaluation.total == 2
        assert {s.student_id for s, _ in evaluation.qualified + evaluation.unqualified} == {1001, 1002}

    def test_thread_pool_matches_sequential(self, aggregator, resolver, jhs_students, jhs_criteria, grade_source):
        sequential = RosterEvaluator(aggregator, resolver, settings=HonorSettings(_env_file=None))
        threaded = RosterEvaluator(
            aggregator, resolver, settings=HonorSettings(_env_file=None, batch_max_workers=4)
        )

        expected = sequential.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source)
        actual = threaded.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source)

        assert actual == expected

    def test_consistency_source_only_called_when_needed(self, evaluator, jhs_students, jhs_criteria, grade_source):
        calls = []

        def consistency_source(student, school_year, level):
            calls.append(student.student_id)
            return True

        evaluator.evaluate_roster(
            JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source,
            consistency_source=consistency_source,
        )
        assert calls == []

        consistent = [HonorCriterion(id=1, academic_level=JHS, honor_type_id=1, min_gpa=90, require_consistent_honor=True)]
        evaluation = evaluator.evaluate_roster(
            JHS, SCHOOL_YEAR, jhs_students, consistent, grade_source,
            consistency_source=consistency_source,
        )
        assert calls == [1001, 1002]
        assert [s.student_id for s, _ in evaluation.qualified] == [1001]

    def test_evaluation_log_resets(self, evaluator, jhs_students, jhs_criteria, grade_source):
        evaluator.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source)
        evaluator.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students[:1], jhs_criteria, grade_source)

        log = evaluator.get_evaluation_log()
        assert log[0].startswith("🏆 Evaluating 1 of 1 students")
        assert "✅ 1 qualified, 0 not qualified" in log

    def test_per_period_evaluation(self, evaluator, jhs_students, jhs_criteria, grade_source):
        """Each student is judged on the Q2 average alone"""
        evaluation = evaluator.evaluate_roster(
            JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source, period_id=2
        )

        ((student, result),) = evaluation.qualified
        assert student.student_id == 1001
        assert result.average_grade == 96.5
        assert result.period_id == 2
        assert all(r.period_id == 2 for _, r in evaluation.unqualified)


class TestEvaluationReports:

    @pytest.fixture
    def evaluation(self, evaluator, jhs_students, jhs_criteria, grade_source):
        return evaluator.evaluate_roster(JHS, SCHOOL_YEAR, jhs_students, jhs_criteria, grade_source)

    def test_filter_after_evaluation(self, evaluation):
        narrowed = evaluation.filter(RosterFilter(section="Mabini"))

        assert narrowed.qualified == []
        assert [s.student_id for s, _ in narrowed.unqualified] == [1003]

    def test_statistics(self, evaluation):
        stats = evaluation.statistics()

        assert stats.total_evaluated == 3
        assert stats.total_qualified == 1
        assert stats.average_gpa == 96.0
        assert stats.best_gpa == 96.0
        assert stats.by_honor_type == {"With High Honors": 1}

    def test_pending_honor_records(self, evaluation):
        records = evaluation.pending_honor_records()

        assert len(records) == 1
        assert records[0].student_id == 1001
        assert records[0].honor_type_id == 2
        assert records[0].school_year == SCHOOL_YEAR
        assert records[0].is_pending_approval
        assert not records[0].is_approved

    def test_dataframe_report(self, evaluation, tmp_path):
        output = tmp_path / "honor_report.csv"

        df = evaluation.to_dataframe(output)

        assert list(df['Student ID']) == [1001, 1002, 1003]
        assert list(df['Qualified']) == [True, False, False]
        assert df.loc[0, 'Headline Honor'] == "With High Honors"
        assert df.loc[2, 'Reason'] == INSUFFICIENT_DATA_REASON
        assert output.exists()
        assert len(pd.read_csv(output)) == 3
