#!/usr/bin/env python3
"""
QUALIFICATION RESOLVER - Combine criterion outcomes into one honor result
Runs every criterion for a level, keeps the satisfied ones in honor precedence
order and explains the outcome

RESOLUTION RULES:
✅ Honor types resolved from the criterion or, failing that, the registry
✅ Precedence comes from configuration, never inferred from thresholds
✅ Qualifications ascend by precedence - the last one is the headline honor
✅ Contradictory criteria are skipped and reported as diagnostics
✅ No grades at all short-circuits to "not qualified" before any criterion runs

Priority: CRITICAL - Final qualification decision
Dependencies: criterion_matcher.py, data_models.py
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .config import HonorSettings, UnconstrainedCriterionPolicy, settings as default_settings
from .criterion_matcher import ConsistencyInput, CriterionMatcher
from .data_models import (
    AcademicLevel,
    CriterionDiagnostic,
    GradeScale,
    HonorCriterion,
    HonorType,
    MatchOutcome,
    Qualification,
    QualificationResult,
    RecordId,
    StudentAggregate,
    get_grade_scale,
)
from .exceptions import ConfigurationError, InvalidCriterionError

logger = logging.getLogger(__name__)

NO_GRADES_REASON = "No grades recorded for this school year"
NO_CRITERIA_REASON = "No honor criteria configured for this academic level"
NO_VALID_CRITERIA_REASON = "No valid honor criteria for this academic level"
NO_AVERAGE_REASON = "No average grade available"
NO_PERIOD_GRADES_REASON = "No grades recorded for this grading period"


class HonorTypeRegistry:
    """Honor type lookup and precedence ranking"""

    def __init__(
        self,
        honor_types: Iterable[HonorType],
        precedence: Optional[Union[Sequence[str], Mapping[str, int]]] = None,
    ):
        """
        Args:
            honor_types: Every known honor type
            precedence: Optional override keyed by honor type key - either a
                mapping key -> rank, or keys ordered from lowest to highest honor
        """
        self._by_id: Dict[RecordId, HonorType] = {}
        for honor_type in honor_types:
            if honor_type.id in self._by_id:
                raise ConfigurationError(f"Duplicate honor type id: {honor_type.id}")
            self._by_id[honor_type.id] = honor_type

        if precedence is None:
            self._precedence: Dict[str, int] = {}
        elif isinstance(precedence, Mapping):
            self._precedence = dict(precedence)
        else:
            self._precedence = {key: rank for rank, key in enumerate(precedence)}

    def __contains__(self, honor_type_id) -> bool:
        return honor_type_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, honor_type_id: RecordId) -> HonorType:
        honor_type = self._by_id.get(honor_type_id)
        if honor_type is None:
            raise ConfigurationError(f"Unknown honor type id: {honor_type_id}")
        return honor_type

    def rank(self, honor_type: HonorType) -> int:
        """Precedence rank; higher means more distinguished"""
        if honor_type.key in self._precedence:
            return self._precedence[honor_type.key]
        if honor_type.precedence is not None:
            return honor_type.precedence
        raise ConfigurationError(f"No precedence configured for honor type '{honor_type.key}'")


def resolve_honor_type(criterion: HonorCriterion, registry: HonorTypeRegistry) -> HonorType:
    """Honor type attached to the criterion, else the registry entry for its id"""
    if criterion.honor_type is not None:
        return criterion.honor_type
    return registry.get(criterion.honor_type_id)


class QualificationResolver:
    """Resolve a student's honor qualification from criteria and aggregate"""

    def __init__(
        self,
        honor_types: HonorTypeRegistry,
        grade_scales: Optional[Mapping[AcademicLevel, GradeScale]] = None,
        settings: Optional[HonorSettings] = None,
    ):
        self.honor_types = honor_types
        self.grade_scales = grade_scales
        self.settings = settings or default_settings
        self.matcher = CriterionMatcher(grade_scales)

    def resolve(
        self,
        level: AcademicLevel,
        criteria: Iterable[HonorCriterion],
        aggregate: StudentAggregate,
        student_year_level: Optional[int] = None,
        consistency_inputs: ConsistencyInput = None,
    ) -> QualificationResult:
        """
        Resolve honor qualification for one student

        Args:
            level: Academic level being evaluated
            criteria: Criteria for this level (caller has already filtered by level)
            aggregate: Student aggregate built for this level
            student_year_level: Numeric year level for year-bounded criteria
            consistency_inputs: Prior honor standing for consistency criteria

        Returns:
            QualificationResult with ordered qualifications and reason text

        Raises:
            ConfigurationError: missing scale, dangling honor type, scope mismatch,
                missing precedence, or an all-null criterion under the reject policy
        """
        scale = get_grade_scale(level, self.grade_scales)
        criteria = list(criteria)

        summary = dict(
            student_id=aggregate.student_id,
            school_year=aggregate.school_year,
            academic_level=level,
            period_id=aggregate.evaluated_period_id,
            average_grade=aggregate.overall_average,
            min_grade=aggregate.min_grade,
            max_grade=aggregate.max_grade,
            quarter_averages=aggregate.quarter_averages,
            semester_averages=aggregate.semester_averages,
            total_subjects=aggregate.total_subjects,
            total_quarters=aggregate.total_periods_with_grades,
            scale_violations=aggregate.scale_violations,
        )

        if aggregate.total_subjects == 0:
            return QualificationResult(qualified=False, reason=NO_GRADES_REASON, **summary)

        ranked = []
        for position, criterion in enumerate(criteria):
            honor_type = resolve_honor_type(criterion, self.honor_types)
            if not honor_type.applies_to(level):
                raise ConfigurationError(
                    f"Criterion {criterion.id} awards '{honor_type.name}' "
                    f"(scope {honor_type.scope.value}) at level '{level.value}'"
                )
            ranked.append((self.honor_types.rank(honor_type), position, criterion, honor_type))
        ranked.sort(key=lambda item: (item[0], item[1]))

        outcomes: List[MatchOutcome] = []
        qualifications: List[Qualification] = []
        diagnostics: List[CriterionDiagnostic] = []
        first_failure = None

        for _, _, criterion, honor_type in ranked:
            try:
                self._check_policy(criterion)
                self.matcher.validate(criterion, scale)
            except InvalidCriterionError as e:
                logger.warning(f"⚠️ Skipping criterion {criterion.id} ({honor_type.name}): {e.message}")
                diagnostics.append(CriterionDiagnostic(
                    criterion_id=criterion.id,
                    honor_type_id=honor_type.id,
                    message=e.message,
                ))
                continue

            outcome = self.matcher.matches(
                criterion, aggregate, student_year_level, consistency_inputs
            )
            outcomes.append(outcome)

            if outcome.satisfied:
                qualifications.append(Qualification(
                    honor_type=honor_type,
                    criterion=criterion,
                    computed_gpa=aggregate.overall_average,
                    min_grade=aggregate.min_grade,
                    quarter_averages=aggregate.quarter_averages,
                ))
            elif first_failure is None:
                first_failure = f"{outcome.first_failure.message} for {honor_type.name}"

        qualified = bool(qualifications) and aggregate.overall_average is not None

        if qualified:
            names = list(dict.fromkeys(q.honor_type.name for q in qualifications))
            reason = f"Qualified for {', '.join(names)}"
        elif aggregate.overall_average is None and aggregate.evaluated_period_id is not None:
            reason = NO_PERIOD_GRADES_REASON
        elif aggregate.overall_average is None:
            reason = NO_AVERAGE_REASON
        elif first_failure is not None:
            reason = first_failure
        elif diagnostics:
            reason = NO_VALID_CRITERIA_REASON
        else:
            reason = NO_CRITERIA_REASON

        return QualificationResult(
            qualified=qualified,
            qualifications=qualifications if qualified else [],
            reason=reason,
            match_outcomes=outcomes,
            diagnostics=diagnostics,
            **summary,
        )

    def _check_policy(self, criterion: HonorCriterion) -> None:
        """Apply the configured policy to criteria without any threshold"""
        if not criterion.is_unconstrained:
            return

        policy = self.settings.unconstrained_criterion_policy
        if policy is UnconstrainedCriterionPolicy.REJECT:
            raise ConfigurationError(f"Criterion {criterion.id} has no thresholds configured")
        if policy is UnconstrainedCriterionPolicy.SKIP:
            raise InvalidCriterionError(criterion.id, "Criterion has no thresholds configured")
