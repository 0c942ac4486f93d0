"""
Scoring engine.

Turns a record's twelve ratings into a percentage and a RAG band.

Weights: acceptable 1.0, concern 0.6 (partial credit), unacceptable 0.0.
Not-relevant criteria are excluded from both numerator and denominator, so a
telephone consultation is not penalised for having no examination.
"""

from collections.abc import Iterable

from consult_audit.models import RAGBand, RAGRating, Rating, ScoreSummary


# Fixed ladder, highest first: (lower bound, band)
RAG_THRESHOLDS = (
    (90.0, RAGBand.GREEN),
    (70.0, RAGBand.YELLOW),
    (50.0, RAGBand.AMBER),
)

RAG_DESCRIPTIONS = {
    RAGBand.GREEN: (
        "Excellent. Consultation notes are of a high standard.",
        "Clinician progresses to 3 monthly review",
    ),
    RAGBand.YELLOW: (
        "Good. Minor errors/omissions are present but consultation notes are generally good "
        "and of an acceptable standard.",
        "Clinician progresses to 3 monthly review",
    ),
    RAGBand.AMBER: (
        "Below Standards. Consultations contain more errors/omissions and generally need "
        "improvement. Clinicians will be provided with feedback and expected to show "
        "improvement for the next review.",
        "Clinician progresses to 1 month review. If no improvement in the next month "
        "(RAG yellow or above) face to face review with Partner.",
    ),
    RAGBand.RED: (
        "Unacceptable. Consultations are of a poor quality with poor/absent documentation",
        "Inform Management Partner / HR Lead. Face to face review with clinician. "
        "Consider additional training/support.",
    ),
}


def rag_band(percentage: float) -> RAGBand:
    """Pure function of the percentage."""
    for lower_bound, band in RAG_THRESHOLDS:
        if percentage >= lower_bound:
            return band
    return RAGBand.RED


def calculate_rag_rating(percentage: float) -> RAGRating:
    band = rag_band(percentage)
    description, action = RAG_DESCRIPTIONS[band]
    return RAGRating(rating=band, score=percentage, description=description, action=action)


def calculate_score(ratings: Iterable[Rating]) -> ScoreSummary:
    """
    Aggregate per-criterion ratings into a ScoreSummary.

    totalRelevant = total - notRelevant; percentage is 0 when nothing is
    relevant, otherwise weighted sum / totalRelevant * 100 rounded to 2 dp.
    The band is taken from the rounded percentage.
    """
    ratings = list(ratings)
    counts = {rating: 0 for rating in Rating}
    for rating in ratings:
        counts[Rating(rating)] += 1

    total = len(ratings)
    total_relevant = total - counts[Rating.NOT_RELEVANT]
    score = sum(
        counts[rating] * rating.weight
        for rating in Rating
        if rating.weight is not None
    )
    percentage = round((score / total_relevant) * 100, 2) if total_relevant > 0 else 0.0

    return ScoreSummary(
        acceptable=counts[Rating.ACCEPTABLE],
        concern=counts[Rating.CONCERN],
        unacceptable=counts[Rating.UNACCEPTABLE],
        not_relevant=counts[Rating.NOT_RELEVANT],
        total=total,
        total_relevant=total_relevant,
        score=round(score, 4),
        percentage=percentage,
        rag_rating=calculate_rag_rating(percentage),
    )
