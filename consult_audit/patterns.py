"""
Cross-record statistics.

Criteria statistics and the review summary are computed for every review;
the pattern analysis (best/worst record, recurring concerns, strengths,
recommendations) only for full reviews.

Criterion-level percentages are taken against the number of records, not
against totalRelevant: this view is about how often a rating occurs, not
about any one record's score.
"""

from consult_audit.criteria import CRITERIA
from consult_audit.models import (
    ConcernArea,
    ConcernOccurrence,
    CriterionStatistics,
    PatternAnalysis,
    RAGBand,
    Rating,
    Recommendation,
    RecordHighlight,
    RecordResult,
    ReviewSummary,
    Strength,
)
from consult_audit.scoring import rag_band

TOP_N = 5
STRENGTH_RATE = 0.8


def _percent(count: int, total: int) -> int:
    return round(count / total * 100) if total else 0


def calculate_criteria_statistics(results: list[RecordResult]) -> list[CriterionStatistics]:
    """Per-criterion rating counts and prevalence across all records."""
    stats = {
        c.id: CriterionStatistics(criterion_id=c.id, criterion_title=c.title)
        for c in CRITERIA
    }
    field_for = {
        Rating.ACCEPTABLE: "acceptable",
        Rating.CONCERN: "concern",
        Rating.UNACCEPTABLE: "unacceptable",
        Rating.NOT_RELEVANT: "not_relevant",
    }

    for result in results:
        for a in result.assessments:
            stat = stats[a.criterion_id]
            stat.total += 1
            field = field_for[a.rating]
            setattr(stat, field, getattr(stat, field) + 1)

    total_records = len(results)
    for stat in stats.values():
        stat.acceptable_percentage = _percent(stat.acceptable, total_records)
        stat.concern_percentage = _percent(stat.concern, total_records)
        stat.unacceptable_percentage = _percent(stat.unacceptable, total_records)
        stat.not_relevant_percentage = _percent(stat.not_relevant, total_records)

    return list(stats.values())


def calculate_review_summary(results: list[RecordResult]) -> ReviewSummary:
    scores = [r.score.percentage for r in results]
    average = round(sum(scores) / len(scores), 2) if scores else 0.0

    distribution = {band.value: 0 for band in RAGBand}
    for r in results:
        distribution[r.score.rag_rating.rating.value] += 1

    return ReviewSummary(
        average_score=average,
        overall_rag=rag_band(average),
        highest_score=max(scores, default=0.0),
        lowest_score=min(scores, default=0.0),
        rag_distribution=distribution,
        criteria_statistics=calculate_criteria_statistics(results),
    )


def _highlight(result: RecordResult) -> RecordHighlight:
    return RecordHighlight(
        ordinal=result.record.ordinal,
        date=result.record.date,
        score=result.score.percentage,
        rag=result.score.rag_rating.rating,
    )


def identify_common_concerns(results: list[RecordResult], top_n: int = TOP_N) -> list[ConcernArea]:
    """Criteria ranked by combined concern + unacceptable occurrences."""
    areas: dict[int, ConcernArea] = {}
    for result in results:
        for a in result.assessments:
            if a.rating not in (Rating.CONCERN, Rating.UNACCEPTABLE):
                continue
            area = areas.setdefault(a.criterion_id, ConcernArea(
                criterion_id=a.criterion_id,
                criterion_title=a.criterion_title,
                count=0,
            ))
            area.count += 1
            area.occurrences.append(ConcernOccurrence(ordinal=result.record.ordinal, rating=a.rating))

    ordered = sorted(areas.values(), key=lambda area: area.criterion_id)
    return sorted(ordered, key=lambda area: area.count, reverse=True)[:top_n]


def identify_strengths(
    results: list[RecordResult],
    top_n: int = TOP_N,
    min_rate: float = STRENGTH_RATE,
) -> list[Strength]:
    """Criteria rated acceptable in at least `min_rate` of records."""
    if not results:
        return []
    counts: dict[int, tuple[str, int]] = {}
    for result in results:
        for a in result.assessments:
            if a.rating == Rating.ACCEPTABLE:
                title, count = counts.get(a.criterion_id, (a.criterion_title, 0))
                counts[a.criterion_id] = (title, count + 1)

    total = len(results)
    strengths = [
        Strength(criterion_id=cid, criterion_title=title, count=count, rate=count / total)
        for cid, (title, count) in sorted(counts.items())
        if count / total >= min_rate
    ]
    return sorted(strengths, key=lambda s: s.count, reverse=True)[:top_n]


def generate_recommendations(
    concern_areas: list[ConcernArea],
    strengths: list[Strength],
) -> list[Recommendation]:
    recommendations = []
    if concern_areas:
        recommendations.append(Recommendation(
            priority="HIGH",
            area="Areas requiring immediate attention",
            details=[c.criterion_title for c in concern_areas],
        ))
    if strengths:
        recommendations.append(Recommendation(
            priority="POSITIVE",
            area="Consistent strengths to maintain",
            details=[s.criterion_title for s in strengths],
        ))
    return recommendations


class PatternAnalyzer:
    def __init__(self, top_n: int = TOP_N, strength_rate: float = STRENGTH_RATE):
        self.top_n = top_n
        self.strength_rate = strength_rate

    def analyze(self, results: list[RecordResult]) -> PatternAnalysis:
        """
        Cross-record findings for a full review.

        Best/worst ties go to the lowest record ordinal.
        """
        if not results:
            raise ValueError("Pattern analysis needs at least one record")

        by_ordinal = sorted(results, key=lambda r: r.record.ordinal)
        best = by_ordinal[0]
        worst = by_ordinal[0]
        for result in by_ordinal[1:]:
            if result.score.percentage > best.score.percentage:
                best = result
            if result.score.percentage < worst.score.percentage:
                worst = result

        concerns = identify_common_concerns(results, self.top_n)
        strengths = identify_strengths(results, self.top_n, self.strength_rate)

        return PatternAnalysis(
            best_performing=_highlight(best),
            worst_performing=_highlight(worst),
            concern_areas=concerns,
            strengths=strengths,
            recommendations=generate_recommendations(concerns, strengths),
        )
