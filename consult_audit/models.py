"""
Pydantic data models for the consultation audit engine.

Records flow parser -> PII guard -> relevance/judge -> scoring -> patterns.
Every stage produces typed output conforming to these models. The final
AuditReport is what gets serialized to report.json and handed back to callers.
"""

from __future__ import annotations

from enum import Enum
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Ratings and bands
# ---------------------------------------------------------------------------

class Rating(str, Enum):
    ACCEPTABLE = "acceptable"
    CONCERN = "concern"
    UNACCEPTABLE = "unacceptable"
    NOT_RELEVANT = "not-relevant"

    @property
    def tag(self) -> str:
        return _RATING_TAGS[self]

    @property
    def weight(self) -> float | None:
        """Score contribution; None means excluded from scoring."""
        return _RATING_WEIGHTS[self]

    @classmethod
    def from_tag(cls, tag: str) -> "Rating":
        return _TAG_RATINGS[tag.upper()]


_RATING_TAGS = {
    Rating.ACCEPTABLE: "A",
    Rating.CONCERN: "C",
    Rating.UNACCEPTABLE: "U",
    Rating.NOT_RELEVANT: "N",
}
_TAG_RATINGS = {tag: rating for rating, tag in _RATING_TAGS.items()}
_RATING_WEIGHTS = {
    Rating.ACCEPTABLE: 1.0,
    Rating.CONCERN: 0.6,
    Rating.UNACCEPTABLE: 0.0,
    Rating.NOT_RELEVANT: None,
}


class RAGBand(str, Enum):
    GREEN = "GREEN"
    YELLOW = "YELLOW"
    AMBER = "AMBER"
    RED = "RED"


class RAGRating(BaseModel):
    """A band plus its fixed description and escalation action."""
    rating: RAGBand
    score: float
    description: str
    action: str


class ReviewType(str, Enum):
    RAPID = "Rapid Review"
    FULL = "Full Review"


# ---------------------------------------------------------------------------
# Rubric
# ---------------------------------------------------------------------------

class RelevanceRule(str, Enum):
    """When a criterion applies. Conditional rules name the signal they depend on."""
    ALWAYS = "always"
    NOT_TELEPHONE = "not_telephone"
    PRESCRIBING = "prescribing"
    TEST_RESULTS = "test_results"
    PROBLEM_FIELD = "problem_field"
    SAFETY_NET = "safety_net"


class RubricText(BaseModel):
    acceptable: str
    concern: str | None = None  # criterion 2 has no middle tier
    unacceptable: str


class Criterion(BaseModel):
    """One of the twelve fixed rubric items. Loaded once, never mutated."""
    id: int = Field(ge=1, le=12)
    title: str
    rubric: RubricText
    relevance_rule: RelevanceRule = RelevanceRule.ALWAYS

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Input / parsing
# ---------------------------------------------------------------------------

class NameReplacement(BaseModel):
    original: str
    replacement: str


class ConsultationRecord(BaseModel):
    """A single consultation parsed out of the bulk text."""
    ordinal: int = Field(ge=1)
    date: str
    header: str = ""
    raw_text: str
    anonymized_text: str | None = None
    replacements: list[NameReplacement] = []

    @property
    def text(self) -> str:
        """The text judgment should see: anonymized when the guard has run."""
        return self.anonymized_text if self.anonymized_text is not None else self.raw_text


class AuditMetadata(BaseModel):
    doctor_identifier: str | None = None
    reference_number: str | None = None


# ---------------------------------------------------------------------------
# PII guard
# ---------------------------------------------------------------------------

class PIIType(str, Enum):
    NHS_NUMBER = "NHS_NUMBER"
    DATE_OF_BIRTH = "DATE_OF_BIRTH"
    POSTCODE = "POSTCODE"
    PHONE_NUMBER = "PHONE_NUMBER"
    EMAIL = "EMAIL"
    PERSON_NAMES = "PERSON_NAMES"


class PIISeverity(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"


class PIIIssue(BaseModel):
    type: PIIType
    severity: PIISeverity
    count: int = Field(ge=0)
    message: str
    replacements: list[NameReplacement] | None = None


class PIIScreenResult(BaseModel):
    """Outcome of both guard phases over one submission."""
    issues: list[PIIIssue] = []
    blocked: bool = False
    records: list[ConsultationRecord] = []


# ---------------------------------------------------------------------------
# Per-criterion assessment and scoring
# ---------------------------------------------------------------------------

class AssessmentSource(str, Enum):
    RULE = "rule"      # settled by the relevance classifier
    JUDGE = "judge"    # settled by the judgment capability


class CriterionAssessment(BaseModel):
    criterion_id: int = Field(ge=1, le=12)
    criterion_title: str
    rating: Rating
    explanation: str
    evidence_snippet: str = ""
    source: AssessmentSource = AssessmentSource.JUDGE


class ScoreSummary(BaseModel):
    acceptable: int = 0
    concern: int = 0
    unacceptable: int = 0
    not_relevant: int = 0
    total: int = 12
    total_relevant: int = Field(ge=0)
    score: float = 0.0
    percentage: float = Field(ge=0, le=100)
    rag_rating: RAGRating


class RecordResult(BaseModel):
    """Everything produced for one consultation."""
    record: ConsultationRecord
    assessments: list[CriterionAssessment]
    score: ScoreSummary
    recommendations: list[str] = []
    overall_summary: str = ""


# ---------------------------------------------------------------------------
# Cross-record analysis
# ---------------------------------------------------------------------------

class CriterionStatistics(BaseModel):
    criterion_id: int
    criterion_title: str
    acceptable: int = 0
    concern: int = 0
    unacceptable: int = 0
    not_relevant: int = 0
    total: int = 0
    acceptable_percentage: int = 0
    concern_percentage: int = 0
    unacceptable_percentage: int = 0
    not_relevant_percentage: int = 0


class RecordHighlight(BaseModel):
    ordinal: int
    date: str
    score: float
    rag: RAGBand


class ConcernOccurrence(BaseModel):
    ordinal: int
    rating: Rating


class ConcernArea(BaseModel):
    criterion_id: int
    criterion_title: str
    count: int
    occurrences: list[ConcernOccurrence] = []


class Strength(BaseModel):
    criterion_id: int
    criterion_title: str
    count: int
    rate: float = Field(ge=0, le=1)


class Recommendation(BaseModel):
    priority: str = Field(description="HIGH | POSITIVE")
    area: str
    details: list[str]


class PatternAnalysis(BaseModel):
    """Full-review-only cross-record findings."""
    best_performing: RecordHighlight
    worst_performing: RecordHighlight
    concern_areas: list[ConcernArea] = []
    strengths: list[Strength] = []
    recommendations: list[Recommendation] = []


# ---------------------------------------------------------------------------
# Review report
# ---------------------------------------------------------------------------

class ReviewSummary(BaseModel):
    """Aggregate rollup across all records of one review."""
    average_score: float = 0.0
    overall_rag: RAGBand
    highest_score: float = 0.0
    lowest_score: float = 0.0
    rag_distribution: dict[str, int] = Field(default_factory=dict)
    criteria_statistics: list[CriterionStatistics] = []


class AuditReport(BaseModel):
    """Complete output of one review invocation."""
    review_type: ReviewType
    total_records: int
    excluded_records: int = 0
    completed_at: str
    processing_seconds: float = 0.0
    audit_metadata: AuditMetadata = Field(default_factory=AuditMetadata)
    records: list[RecordResult]
    summary: ReviewSummary
    pii_issues: list[PIIIssue] = []
    analysis: PatternAnalysis | None = None

    model_config = {"frozen": True}
