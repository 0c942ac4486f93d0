"""
Criterion judge - asks the judgment capability to rate one criterion.

Design decisions:
- One call per applicable criterion; applicability is settled beforehand
- Answer format drift never fails the pipeline: no parseable tag means Concern
- N is still accepted from the capability and mapped to not-relevant
- The evidence snippet is a bounded excerpt of the record, attached whatever the rating
- The per-record summary is a narrative extra: a failed call falls back to a fixed text
"""

import logging
import re

from consult_audit import config
from consult_audit.llm_judge.capability import JudgmentCapability
from consult_audit.llm_judge.prompts import (
    SUMMARY_SYSTEM,
    SYSTEM_PROMPTS,
    build_criterion_prompt,
    build_summary_prompt,
)
from consult_audit.models import AssessmentSource, Criterion, CriterionAssessment, Rating, ScoreSummary

logger = logging.getLogger(__name__)


# "RATING: A", "**Rating:** C", "RATING: [U]", "Rating - Acceptable"
RATING_PATTERN = re.compile(
    r"RATING[\s:*_`#\-]*\[?\s*(UNACCEPTABLE|ACCEPTABLE|CONCERN|NOT[\s_-]?RELEVANT|[ACUN])\b",
    re.IGNORECASE,
)
EXPLANATION_PATTERN = re.compile(r"EXPLANATION[\s:*_`#\-]*(.+?)(?=\n\n|$)", re.IGNORECASE | re.DOTALL)

SUMMARY_UNAVAILABLE = "Overall assessment summary unavailable."

RATING_WORDS = {
    "ACCEPTABLE": Rating.ACCEPTABLE,
    "CONCERN": Rating.CONCERN,
    "UNACCEPTABLE": Rating.UNACCEPTABLE,
}


def extract_rating(response_text: str) -> Rating | None:
    """Pull the rating tag out of a free-form answer. None when absent."""
    match = RATING_PATTERN.search(response_text)
    if not match:
        return None
    token = re.sub(r"[\s_-]", "", match.group(1).upper())
    if token == "NOTRELEVANT":
        return Rating.NOT_RELEVANT
    if token in RATING_WORDS:
        return RATING_WORDS[token]
    return Rating.from_tag(token)


def extract_explanation(response_text: str) -> str:
    match = EXPLANATION_PATTERN.search(response_text)
    return match.group(1).strip() if match else response_text.strip()


def extract_evidence(text: str, limit: int = config.EVIDENCE_SNIPPET_CHARS) -> str:
    """Leading excerpt of the record for context."""
    return text[:limit] + "..." if len(text) > limit else text


class CriterionJudge:
    def __init__(
        self,
        capability: JudgmentCapability,
        guidance_policy: str = config.GUIDANCE_POLICY,
        evidence_chars: int = config.EVIDENCE_SNIPPET_CHARS,
    ):
        if guidance_policy not in SYSTEM_PROMPTS:
            raise ValueError(
                f"Unknown guidance policy {guidance_policy!r}; expected one of {sorted(SYSTEM_PROMPTS)}"
            )
        self.capability = capability
        self.guidance_policy = guidance_policy
        self.evidence_chars = evidence_chars

    async def judge(self, consultation_text: str, criterion: Criterion) -> CriterionAssessment:
        """
        Rate one criterion for one record.

        Capability failures propagate (they abort the review); unparseable
        answers default to Concern.
        """
        prompt = build_criterion_prompt(consultation_text, criterion, self.guidance_policy)
        response_text = await self.capability.complete(SYSTEM_PROMPTS[self.guidance_policy], prompt)

        rating = extract_rating(response_text)
        if rating is None:
            logger.warning(
                "No rating tag in judge answer for criterion %d; defaulting to concern",
                criterion.id,
            )
            rating = Rating.CONCERN

        return CriterionAssessment(
            criterion_id=criterion.id,
            criterion_title=criterion.title,
            rating=rating,
            explanation=extract_explanation(response_text),
            evidence_snippet=extract_evidence(consultation_text, self.evidence_chars),
            source=AssessmentSource.JUDGE,
        )

    async def summarize(
        self,
        consultation_text: str,
        assessments: list[CriterionAssessment],
        score: ScoreSummary,
    ) -> str:
        """Short narrative over a scored record. Never fails: the fallback text stands in."""
        prompt = build_summary_prompt(consultation_text, assessments, score)
        try:
            summary = (await self.capability.complete(SUMMARY_SYSTEM, prompt)).strip()
        except Exception:
            logger.warning("Overall summary generation failed", exc_info=True)
            return SUMMARY_UNAVAILABLE
        return summary or SUMMARY_UNAVAILABLE
