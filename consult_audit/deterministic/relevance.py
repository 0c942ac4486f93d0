"""
Relevance classifier.

Runs BEFORE the judge: decides, per record and per criterion, whether the
criterion applies at all. Inapplicable criteria are settled here with a fixed
explanation and never reach the judgment capability. This both saves calls
and encodes clinical exceptions (no examination by phone, no medicines review
when nothing was prescribed).
"""

from dataclasses import dataclass

from consult_audit.criteria import CRITERIA
from consult_audit.deterministic.signals import TextSignalDetector
from consult_audit.models import (
    AssessmentSource,
    Criterion,
    CriterionAssessment,
    Rating,
    RelevanceRule,
)


FAILED_ENCOUNTER_EXPLANATION = (
    "Not relevant: the consultation did not take place (did not attend / no contact). "
    "Only continuing care and safety-netting is assessed for failed encounters."
)
TELEPHONE_EXPLANATION = (
    "Not relevant: telephone consultation, so no physical examination was possible."
)
NO_PRESCRIBING_EXPLANATION = (
    "Not relevant: no medication was prescribed or changed in this consultation."
)
NO_TEST_RESULTS_EXPLANATION = (
    "Not relevant: no radiology or pathology results were present in this consultation."
)
PROBLEM_FIELD_EXPLANATION = (
    "Acceptable: a structured Problem field is recorded ({problem})."
)


@dataclass(frozen=True)
class RelevanceSignals:
    """The signal values a record was classified with."""
    failed_encounter: bool
    telephone: bool
    prescribing: bool
    test_results: bool
    problem: str | None


@dataclass(frozen=True)
class RelevanceDecision:
    """Either a settled assessment or a request for judgment."""
    criterion: Criterion
    assessment: CriterionAssessment | None = None

    @property
    def needs_judgment(self) -> bool:
        return self.assessment is None


class RelevanceClassifier:
    def __init__(self, detector: TextSignalDetector | None = None):
        self.detector = detector or TextSignalDetector()

    def signals(self, text: str) -> RelevanceSignals:
        d = self.detector
        return RelevanceSignals(
            failed_encounter=d.is_failed_encounter(text),
            telephone=d.is_telephone_encounter(text),
            prescribing=d.has_prescribing_evidence(text),
            test_results=d.has_test_result_evidence(text),
            problem=d.problem_field(text),
        )

    def classify(
        self,
        text: str,
        criteria: tuple[Criterion, ...] = CRITERIA,
    ) -> list[RelevanceDecision]:
        """One decision per criterion, in rubric order."""
        signals = self.signals(text)
        return [self._decide(criterion, signals) for criterion in criteria]

    def _decide(self, criterion: Criterion, signals: RelevanceSignals) -> RelevanceDecision:
        rule = criterion.relevance_rule

        if signals.failed_encounter:
            if rule is RelevanceRule.SAFETY_NET:
                return RelevanceDecision(criterion)
            return self._settle(criterion, Rating.NOT_RELEVANT, FAILED_ENCOUNTER_EXPLANATION)

        if rule is RelevanceRule.NOT_TELEPHONE and signals.telephone:
            return self._settle(criterion, Rating.NOT_RELEVANT, TELEPHONE_EXPLANATION)

        if rule is RelevanceRule.PRESCRIBING and not signals.prescribing:
            return self._settle(criterion, Rating.NOT_RELEVANT, NO_PRESCRIBING_EXPLANATION)

        if rule is RelevanceRule.TEST_RESULTS and not signals.test_results:
            return self._settle(criterion, Rating.NOT_RELEVANT, NO_TEST_RESULTS_EXPLANATION)

        if rule is RelevanceRule.PROBLEM_FIELD and signals.problem:
            return self._settle(
                criterion,
                Rating.ACCEPTABLE,
                PROBLEM_FIELD_EXPLANATION.format(problem=signals.problem[:80]),
            )

        return RelevanceDecision(criterion)

    @staticmethod
    def _settle(criterion: Criterion, rating: Rating, explanation: str) -> RelevanceDecision:
        return RelevanceDecision(
            criterion,
            CriterionAssessment(
                criterion_id=criterion.id,
                criterion_title=criterion.title,
                rating=rating,
                explanation=explanation,
                source=AssessmentSource.RULE,
            ),
        )
