"""
Prompts for the criterion judge, the record summary and the name detector.

Key design decisions:

1. One criterion per call (not holistic) - each rating is traceable to a single rubric row
2. The rubric's tiered text is given verbatim so the judge rates against the audit framework, not its own idea of quality
3. Guidance policies change only the instructions, never the answer format: every policy asks for the same RATING/EXPLANATION lines
4. Name detection asks for JSON and explicitly excludes drug and condition vocabulary
5. The per-record summary sees only a short excerpt plus the score and the concern/unacceptable explanations
"""

from consult_audit.models import Criterion, CriterionAssessment, Rating, ScoreSummary


STRICT = "strict"
LENIENT = "lenient"

SYSTEM_PROMPTS = {
    STRICT: (
        "You are an expert medical auditor assessing GP consultation notes according to established "
        "clinical documentation standards. Apply rigorous professional standards and be thorough in your "
        "assessments. Documentation must clearly demonstrate safe clinical practice and comprehensive "
        "record-keeping. Missing or inadequate documentation should be highlighted even if it does not pose "
        "immediate safety risk. Only rate as \"acceptable\" when documentation clearly meets professional "
        "standards. When uncertain between ratings, apply the more critical assessment to encourage higher "
        "documentation standards."
    ),
    LENIENT: (
        "You are an experienced medical auditor assessing GP consultation notes according to established "
        "clinical documentation standards. Judge the notes as a busy but careful colleague would: brief "
        "entries are fine when the problem is routine and the key facts are present. Reserve \"unacceptable\" "
        "for documentation failures that could affect patient care. When uncertain between ratings, give "
        "the clinician the benefit of the doubt."
    ),
}

GUIDANCE = {
    STRICT: """- Apply rigorous professional documentation standards
- Assess what IS documented but also critically evaluate gaps and omissions
- Consider clinical context but maintain high standards for documentation quality
- Rate as "Unacceptable" for clear patient safety concerns or major documentation failures
- Rate as "Concern" for missing information, inadequate detail, or documentation that falls short of best practice
- Rate as "Acceptable" only when documentation clearly meets comprehensive professional standards
- When deciding between two ratings, apply the more critical assessment to encourage higher standards
- Brief notes are acceptable only for truly routine matters with no complexity""",
    LENIENT: """- Assess whether the documentation is adequate for safe continuity of care
- Consider the clinical context: routine problems need less detail than complex ones
- Rate as "Unacceptable" only for clear patient safety concerns or absent documentation
- Rate as "Concern" when a key feature is missing or the entry is hard to follow
- Rate as "Acceptable" when a colleague could safely pick up care from this note
- When deciding between two ratings, choose the more favourable one unless safety is affected""",
}

CRITERION_PROMPT = """You are assessing a GP consultation note against the following criterion:

CRITERION {criterion_id}: {title}

RATING DEFINITIONS:{ratings}

CONSULTATION NOTE TO ASSESS:
\"\"\"
{consultation}
\"\"\"

ASSESSMENT GUIDANCE:
{guidance}

Please provide your assessment in the following format:

RATING: [A/C/U]
EXPLANATION: [Explanation of why you gave this rating, with specific evidence from the consultation note.]

Be specific and quote relevant parts of the consultation note where appropriate."""


SUMMARY_SYSTEM = (
    "You are an expert medical auditor providing constructive feedback on GP consultation documentation."
)

SUMMARY_EXCERPT_CHARS = 500

SUMMARY_PROMPT = """Based on this GP consultation assessment:

CONSULTATION NOTE:
\"\"\"
{excerpt}
\"\"\"

SCORE: {percentage}% ({band})
- Acceptable: {acceptable}/{total}
- Concern: {concern}/{total}
- Unacceptable: {unacceptable}/{total}

KEY ISSUES IDENTIFIED:
{issues}

Provide a brief overall assessment summary (2-3 sentences) highlighting the main strengths and areas for improvement."""


NAME_DETECTION_SYSTEM = (
    "You are a privacy officer checking clinical notes for personal names before they are shared "
    "for audit. You only report the names of people."
)

NAME_DETECTION_PROMPT = """Find every personal name (patients, relatives, carers, staff) in the clinical text below.

Rules:
- Return people's names only
- Do NOT return medication names, drug brands, conditions, diseases, anatomy, tests, places or organisations
- Do NOT return job titles on their own (e.g. "Dr", "Nurse")
- Return each name once, exactly as it is written in the text

TEXT:
\"\"\"
{text}
\"\"\"

Respond in this exact JSON format:
{{"names": [{{"name": "<name as written>"}}]}}

If there are no names, respond with {{"names": []}}"""


def format_rubric(criterion: Criterion) -> str:
    rubric = criterion.rubric
    ratings = f"\n- ACCEPTABLE (A): {rubric.acceptable}"
    if rubric.concern:
        ratings += f"\n- CAUSE FOR CONCERN (C): {rubric.concern}"
    ratings += f"\n- UNACCEPTABLE (U): {rubric.unacceptable}"
    return ratings


def build_summary_prompt(
    consultation: str,
    assessments: list[CriterionAssessment],
    score: ScoreSummary,
) -> str:
    issues = [
        f"- {a.criterion_title}: {a.explanation}"
        for a in assessments
        if a.rating in (Rating.CONCERN, Rating.UNACCEPTABLE)
    ]
    excerpt = consultation[:SUMMARY_EXCERPT_CHARS]
    if len(consultation) > SUMMARY_EXCERPT_CHARS:
        excerpt += "..."
    return SUMMARY_PROMPT.format(
        excerpt=excerpt,
        percentage=score.percentage,
        band=score.rag_rating.rating.value,
        acceptable=score.acceptable,
        concern=score.concern,
        unacceptable=score.unacceptable,
        total=score.total,
        issues="\n".join(issues) if issues else "- None",
    )


def build_criterion_prompt(consultation: str, criterion: Criterion, policy: str = STRICT) -> str:
    return CRITERION_PROMPT.format(
        criterion_id=criterion.id,
        title=criterion.title,
        ratings=format_rubric(criterion),
        consultation=consultation,
        guidance=GUIDANCE[policy],
    )
