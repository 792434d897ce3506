#!/usr/bin/env python3
"""
DATA PROCESSOR - CSV loading and validation for honor evaluation
Load reference data, roster and grades from CSV into validated models

DATA SOURCES:
✅ Grading Periods CSV - id, academic_level, type, parent_id, sort_order, is_calculated
✅ Honor Types CSV - id, name, key, scope, precedence
✅ Honor Criteria CSV - thresholds per academic level and honor type
✅ Students CSV - roster with section, department, course, year level
✅ Grades CSV - student_id, subject_id, period_id, grade, school_year

VALIDATION STRATEGY:
1. Schema Validation: Required columns present (header names are normalized)
2. Reference rows (periods, honor types, criteria, students): a row that fails its
   pydantic model is an ERROR. It is skipped and load_all_data() returns False,
   since a dropped criterion or student would silently change who qualifies
3. Grade rows: a row that fails SubjectGrade is a WARNING. It is skipped, listed
   in validation_warnings, and the load still succeeds
4. Blank grades: rows without a grade contribute nothing

Priority: HIGH - Input boundary for batch evaluation
Dependencies: pandas, pydantic
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Type

import pandas as pd
from pydantic import BaseModel, ValidationError

from .data_models import (
    AcademicLevel,
    GradingPeriod,
    HonorCriterion,
    HonorType,
    StudentId,
    StudentRecord,
    SubjectGrade,
)
from .exceptions import MissingDataError

logger = logging.getLogger(__name__)

REQUIRED_GRADE_COLUMNS = ['student_id', 'subject_id', 'period_id', 'grade', 'school_year']

COLUMN_ALIASES = {
    'user_id': 'student_id',
    'grading_period_id': 'period_id',
    'academic_level_id': 'academic_level',
    'level': 'academic_level',
}


def normalize_columns(df: pd.DataFrame) -> pd.DataFrame:
    """'Student ID' -> 'student_id', plus a few registrar aliases"""
    renamed = {}
    for column in df.columns:
        key = str(column).strip().lower().replace(' ', '_').replace('-', '_')
        renamed[column] = COLUMN_ALIASES.get(key, key)
    return df.rename(columns=renamed)


def frame_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """Row dicts with NaN replaced by None"""
    return df.astype(object).where(df.notna(), None).to_dict('records')


def _require_columns(df: pd.DataFrame, columns: List[str], source: str) -> None:
    missing = [column for column in columns if column not in df.columns]
    if missing:
        raise ValueError(f"{source} is missing required column(s): {', '.join(missing)}")


class DataFrameGradeSource:
    """Serve a student's SubjectGrade records from a grades table"""

    def __init__(self, grades: pd.DataFrame, strict: bool = False):
        """
        Args:
            grades: Table with REQUIRED_GRADE_COLUMNS (optional academic_level, subject_name)
            strict: Raise MissingDataError for students without any grade rows
        """
        grades = normalize_columns(grades)
        _require_columns(grades, REQUIRED_GRADE_COLUMNS, "Grades table")

        self.strict = strict
        self.validation_errors: List[str] = []
        self._index: Dict[Tuple[StudentId, str], List[Tuple[Optional[str], SubjectGrade]]] = {}

        skipped_blank = 0
        for row_number, row in enumerate(frame_records(grades), start=1):
            if row['grade'] is None:
                skipped_blank += 1
                continue
            try:
                grade = SubjectGrade(
                    student_id=row['student_id'],
                    subject_id=row['subject_id'],
                    period_id=row['period_id'],
                    grade=row['grade'],
                    school_year=str(row['school_year']),
                    subject_name=row.get('subject_name'),
                )
            except ValidationError as e:
                self.validation_errors.append(f"Grade row {row_number}: {e.errors()[0]['msg']}")
                continue

            level = row.get('academic_level')
            self._index.setdefault((grade.student_id, grade.school_year), []).append(
                (str(level) if level is not None else None, grade)
            )

        if skipped_blank:
            logger.info(f"Skipped {skipped_blank} grade row(s) without a grade")
        for error in self.validation_errors:
            logger.warning(f"⚠️ {error}")

    @classmethod
    def from_csv(cls, path: Path, strict: bool = False) -> "DataFrameGradeSource":
        return cls(pd.read_csv(path, encoding="utf-8-sig"), strict=strict)

    def get_grades(
        self, student_id: StudentId, school_year: str, level: Optional[AcademicLevel] = None
    ) -> List[SubjectGrade]:
        """
        Grades for one student and school year

        Raises:
            MissingDataError: in strict mode, when the student has no grades
        """
        rows = self._index.get((student_id, school_year.replace(' ', '')), [])
        grades = [
            grade for row_level, grade in rows
            if level is None or row_level is None or row_level == level.value
        ]
        if not grades and self.strict:
            raise MissingDataError(student_id, f"No grades found for student {student_id} in {school_year}")
        return grades

    def __call__(self, student: StudentRecord, school_year: str, level: AcademicLevel) -> List[SubjectGrade]:
        return self.get_grades(student.student_id, school_year, level)


class HonorDataProcessor:
    """Load and validate every CSV data source for a roster evaluation"""

    def __init__(self, data_dir: Path = None):
        if data_dir is None:
            self.data_dir = Path.cwd() / "data"
        else:
            self.data_dir = Path(data_dir)

        self.grading_periods: List[GradingPeriod] = []
        self.honor_types: List[HonorType] = []
        self.criteria: List[HonorCriterion] = []
        self.students: List[StudentRecord] = []
        self.grade_source: Optional[DataFrameGradeSource] = None

        self.validation_errors: List[str] = []
        self.validation_warnings: List[str] = []

    def load_all_data(self, strict_grades: bool = False) -> bool:
        """
        Load all CSV data sources with validation

        Returns:
            False when a file is missing or any reference row is invalid.
            Invalid grade rows only add validation_warnings.
        """

        logger.info("🔍 LOADING HONOR DATA SOURCES")

        try:
            self.grading_periods = self._load_models("grading_periods.csv", GradingPeriod)
            self.honor_types = self._load_models("honor_types.csv", HonorType)
            self.criteria = self._load_models("honor_criteria.csv", HonorCriterion)
            self.students = self._load_models("students.csv", StudentRecord)

            grades_path = self.data_dir / "grades.csv"
            self.grade_source = DataFrameGradeSource.from_csv(grades_path, strict=strict_grades)
            self.validation_warnings.extend(self.grade_source.validation_errors)
        except (FileNotFoundError, ValueError) as e:
            self.validation_errors.append(str(e))
            logger.error(f"❌ {e}")
            return False

        logger.info(
            f"✅ Loaded {len(self.grading_periods)} periods, {len(self.honor_types)} honor types, "
            f"{len(self.criteria)} criteria, {len(self.students)} students"
        )
        return not self.validation_errors

    def _load_models(self, filename: str, model: Type[BaseModel]) -> List[Any]:
        path = self.data_dir / filename
        if not path.exists():
            raise FileNotFoundError(f"Required data file not found: {path}")

        # Invalid rows here are errors, unlike grade rows
        df = normalize_columns(pd.read_csv(path, encoding="utf-8-sig"))
        loaded = []
        for row_number, row in enumerate(frame_records(df), start=1):
            try:
                loaded.append(model(**{k: v for k, v in row.items() if v is not None}))
            except ValidationError as e:
                self.validation_errors.append(f"{filename} row {row_number}: {e.errors()[0]['msg']}")
        return loaded

    def generate_validation_report(self) -> str:
        """Human-readable summary of load problems"""
        lines = ["📋 DATA VALIDATION REPORT"]
        if not self.validation_errors and not self.validation_warnings:
            lines.append("✅ No problems found")
        for error in self.validation_errors:
            lines.append(f"❌ {error}")
        for warning in self.validation_warnings:
            lines.append(f"⚠️ {warning}")
        return "\n".join(lines)
