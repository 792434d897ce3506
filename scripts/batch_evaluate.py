#!/usr/bin/env python3
"""
BATCH HONOR EVALUATOR
Evaluates a whole roster for one academic level and school year and writes
the honor report.

Input directory (CSV):
data/
├── grading_periods.csv
├── honor_types.csv
├── honor_criteria.csv
├── students.csv
└── grades.csv

Output: honor_report_<level>_<school year>.csv
"""

import argparse
import logging
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from honor_tracker.config import settings
from honor_tracker.data_models import AcademicLevel, RosterFilter
from honor_tracker.exceptions import HonorEvaluationError
from honor_tracker.grade_aggregator import GradeAggregator
from honor_tracker.grade_source import HonorDataProcessor
from honor_tracker.qualification_resolver import HonorTypeRegistry, QualificationResolver
from honor_tracker.roster_evaluator import RosterEvaluator

logger = logging.getLogger("batch_evaluate")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Evaluate honor qualification for a roster")
    parser.add_argument("level", choices=[level.value for level in AcademicLevel],
                        help="Academic level to evaluate")
    parser.add_argument("school_year", help="School year, e.g. 2024-2025")
    parser.add_argument("--data-dir", type=Path, default=Path.cwd() / "data",
                        help="Directory holding the input CSV files")
    parser.add_argument("--output", type=Path, default=None,
                        help="Report CSV path (default: honor_report_<level>_<year>.csv)")
    parser.add_argument("--section")
    parser.add_argument("--department")
    parser.add_argument("--course")
    parser.add_argument("--year-level", type=int)
    parser.add_argument("--period", type=int, default=None,
                        help="Grading period id for per-period honors (default: whole year)")
    parser.add_argument("--strict", action="store_true",
                        help="Treat students without grade rows as insufficient data")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    processor = HonorDataProcessor(args.data_dir)
    if not processor.load_all_data(strict_grades=args.strict):
        print(processor.generate_validation_report())
        return 1
    if processor.validation_warnings:
        print(processor.generate_validation_report())

    level = AcademicLevel(args.level)
    roster_filter = RosterFilter(
        section=args.section,
        department=args.department,
        course=args.course,
        year_level=args.year_level,
    )

    evaluator = RosterEvaluator(
        GradeAggregator(processor.grading_periods),
        QualificationResolver(HonorTypeRegistry(processor.honor_types)),
    )

    try:
        evaluation = evaluator.evaluate_roster(
            level,
            args.school_year,
            processor.students,
            processor.criteria,
            processor.grade_source,
            roster_filter=roster_filter,
            period_id=args.period,
        )
    except HonorEvaluationError as e:
        logger.error(f"❌ Evaluation halted: {e}")
        return 2

    output = args.output or Path(f"honor_report_{level.value}_{args.school_year}.csv")
    evaluation.to_dataframe(output)

    stats = evaluation.statistics()
    print(f"\n🏆 {stats.total_qualified} of {stats.total_evaluated} students qualified")
    for honor_name, count in stats.by_honor_type.items():
        print(f"   {honor_name}: {count}")
    for entry in evaluator.get_evaluation_log():
        print(entry)
    print(f"📄 Report: {output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
