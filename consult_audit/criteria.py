"""
The twelve-criterion consultation notes audit rubric.

Loaded once at import time as process-wide configuration. Each criterion
carries its tiered rubric text (fed to the judge verbatim) and the relevance
rule the classifier applies before any judgment is requested.
"""

from consult_audit.models import Criterion, RelevanceRule, RubricText

_SECTION_RUBRIC = dict(
    acceptable="Should be appropriate to the problem. The whole entry should be understandable without reliance on other entries.",
    concern="Text difficult to follow or omits a key feature.",
    unacceptable="No entry or omits key features likely to impact on patient care.",
)

CRITERIA: tuple[Criterion, ...] = (
    Criterion(
        id=1,
        title="Are the notes coherent and well-structured and include all contacts?",
        rubric=RubricText(
            acceptable="Consultation recorded logically and coherently using either appropriate fields or templates. All contacts recorded",
            concern="Consultation recorded logically and coherently using either appropriate fields or templates but not all contacts recorded",
            unacceptable="Consultation poorly recorded using neither appropriate fields nor templates. Key contacts and information missing",
        ),
    ),
    Criterion(
        id=2,
        title="Problem appropriately summarised and Read coded",
        rubric=RubricText(
            acceptable="Problem appropriately summarised and Read coded",
            unacceptable="Problem not appropriately summarised or Read coded",
        ),
        relevance_rule=RelevanceRule.PROBLEM_FIELD,
    ),
    Criterion(
        id=3,
        title="Is there a record of the history of the presenting complaint with documentation of relevant positive features?",
        rubric=RubricText(**_SECTION_RUBRIC),
    ),
    Criterion(
        id=4,
        title="Is there a record of the history of the presenting complaint with documentation of relevant negative features?",
        rubric=RubricText(**_SECTION_RUBRIC),
    ),
    Criterion(
        id=5,
        title="Is there a record of any relevant clinical examination findings?",
        rubric=RubricText(**_SECTION_RUBRIC),
        relevance_rule=RelevanceRule.NOT_TELEPHONE,
    ),
    Criterion(
        id=6,
        title="Makes appropriate diagnostic decisions based on the information acquired, including referral, with a recording of the working diagnosis",
        rubric=RubricText(
            acceptable="Makes appropriate diagnostic and referral decisions based on the information acquired with a recording of the working diagnosis",
            concern="Makes appropriate diagnostic and referral decisions based on the information acquired but fails to record the working diagnosis or consider alternatives",
            unacceptable="Makes inappropriate diagnostic and referral decisions based on the information acquired with either no recording of the working diagnosis",
        ),
    ),
    Criterion(
        id=7,
        title="Is the prescribing for this consultation within current acceptable guidelines?",
        rubric=RubricText(
            acceptable="Indication is clear and if prescribing is outside guidelines, then this is documented.",
            concern="Choice of drug is in current guideline but not first line and no documentation present to support choice",
            unacceptable="Drug choice is either outside current guidelines, is inappropriate to problem or is unsafe either in relation to co-prescribed drugs or within case setting. No documentation given to support choice.",
        ),
        relevance_rule=RelevanceRule.PRESCRIBING,
    ),
    Criterion(
        id=8,
        title="Appropriate advice given regarding common side effects/interactions?",
        rubric=RubricText(
            acceptable="Expected aspects all clearly recorded if and when appropriate.",
            concern="Omits a key discussion point.",
            unacceptable="No entry therefore likely to impact on patient management",
        ),
        relevance_rule=RelevanceRule.PRESCRIBING,
    ),
    Criterion(
        id=9,
        title="Has there been an up to date medicines review?",
        rubric=RubricText(
            acceptable="Evidence that current medication is reviewed at the time of consultation",
            concern="No evidence that current medication is reviewed at the time of consultation",
            unacceptable="No evidence that current medication is reviewed at the time of consultation when a new medication is prescribed",
        ),
        relevance_rule=RelevanceRule.PRESCRIBING,
    ),
    Criterion(
        id=10,
        title="Follows formally agreed clinical practice guidelines & procedures (national & local) including appropriate referrals made?",
        rubric=RubricText(
            acceptable="Follows recognised guidance and if outside guidelines, then this is documented.",
            concern="Does not follow current guidelines but there is no or little risk to patient safety",
            unacceptable="Does not follow current guidelines, is inappropriate to problem or is unsafe either in relation to the need for referral or other investigations required. No documentation given to support choice of pathway if outside guidance. Risk to patient safety.",
        ),
    ),
    Criterion(
        id=11,
        title="Is there a record in sufficient detail of the continuing care arrangements and / or safety net plan?",
        rubric=RubricText(
            acceptable="Appropriate management plan clearly recorded if and when appropriate.",
            concern="Omits a key aspect of management plan",
            unacceptable="No entry therefore likely to impact on patient management.",
        ),
        relevance_rule=RelevanceRule.SAFETY_NET,
    ),
    Criterion(
        id=12,
        title="Have all the recent and relevant radiology and pathology results been acted on appropriately?",
        rubric=RubricText(
            acceptable="Management in accordance with guidelines. Clear documentation of reasoning and diagnosis.",
            concern="Management not in accordance with guidelines but unlikely to affect outcome",
            unacceptable="No comment recorded or management plan evidenced",
        ),
        relevance_rule=RelevanceRule.TEST_RESULTS,
    ),
)

CRITERIA_BY_ID = {c.id: c for c in CRITERIA}
TOTAL_CRITERIA = len(CRITERIA)
