"""
Unit Tests for the DataFrame grade source
"""

import pandas as pd
import pytest

from honor_tracker.data_models import AcademicLevel, StudentRecord
from honor_tracker.exceptions import MissingDataError
from honor_tracker.grade_source import DataFrameGradeSource, normalize_columns


@pytest.fixture
def grades_df():
    return pd.DataFrame({
        'Student ID': [1001, 1001, 1001, 1002, 1001],
        'Subject ID': ['MATH', 'ENG', 'MATH', 'MATH', 'ALG'],
        'Period ID': [1, 1, 2, 1, 11],
        'Grade': [95.0, 93.0, None, 88.0, 1.5],
        'School Year': ['2024-2025', '2024 - 2025', '2024-2025', '2024-2025', '2024-2025'],
        'Academic Level': [
            'junior_highschool', 'junior_highschool', 'junior_highschool',
            'junior_highschool', 'college',
        ],
    })


class TestDataFrameGradeSource:

    def test_column_names_are_normalized(self, grades_df):
        assert list(normalize_columns(grades_df).columns) == [
            'student_id', 'subject_id', 'period_id', 'grade', 'school_year', 'academic_level',
        ]

    def test_grades_for_student_and_year(self, grades_df):
        source = DataFrameGradeSource(grades_df)

        grades = source.get_grades(1001, "2024-2025", AcademicLevel.JUNIOR_HIGH_SCHOOL)

        assert sorted((g.subject_id, g.period_id, g.grade) for g in grades) == [
            ('ENG', 1, 93.0),
            ('MATH', 1, 95.0),
        ]

    def test_level_filter(self, grades_df):
        source = DataFrameGradeSource(grades_df)

        grades = source.get_grades(1001, "2024-2025", AcademicLevel.COLLEGE)

        assert [g.subject_id for g in grades] == ['ALG']
        assert len(source.get_grades(1001, "2024-2025")) == 3

    def test_callable_interface(self, grades_df):
        source = DataFrameGradeSource(grades_df)
        student = StudentRecord(student_id=1002)

        grades = source(student, "2024-2025", AcademicLevel.JUNIOR_HIGH_SCHOOL)

        assert [g.grade for g in grades] == [88.0]

    def test_unknown_student_is_empty(self, grades_df):
        assert DataFrameGradeSource(grades_df).get_grades(9999, "2024-2025") == []

    def test_strict_mode_raises(self, grades_df):
        source = DataFrameGradeSource(grades_df, strict=True)

        with pytest.raises(MissingDataError):
            source.get_grades(9999, "2024-2025")

    def test_invalid_rows_are_reported(self, grades_df):
        grades_df.loc[3, 'School Year'] = '2024'

        source = DataFrameGradeSource(grades_df)

        assert len(source.validation_errors) == 1
        assert source.get_grades(1002, "2024-2025") == []

    def test_missing_required_column(self, grades_df):
        with pytest.raises(ValueError):
            DataFrameGradeSource(grades_df.drop(columns=['Grade']))
