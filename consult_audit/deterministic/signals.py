"""
Deterministic text signals.

Keyword and pattern predicates shared by the relevance classifier and the PII
guard. These are tunable word lists, not an NLP classifier: everything that
inspects free text with heuristics lives behind TextSignalDetector so it can
be swapped for a stronger classifier without touching orchestration.
"""

import re

from consult_audit.models import PIIType


TELEPHONE_KEYWORDS = (
    "telephone consultation", "telephone consult", "telephone call",
    "telephone encounter", "telephone review", "telephone triage",
    "phone consultation", "phone call", "spoke on the phone",
    "tel consultation", "tel con", "t/c",
)

FAILED_ENCOUNTER_KEYWORDS = (
    "did not attend", "dna", "did not answer", "no answer",
    "unable to contact", "unable to reach", "failed encounter",
    "not answering", "no reply", "left voicemail", "left a voicemail",
    "patient not present", "no show",
)

PRESCRIBING_KEYWORDS = (
    "prescribed", "prescribe", "prescription", "prescribing", "rx",
    "started on", "start on", "commenced", "issued", "repeat medication",
    "dose", "dosage", "tablet", "tablets", "capsule", "capsules",
    "mg", "mcg", "ml", "od", "bd", "tds", "qds", "prn",
    "increase to", "reduce to", "switch to", "medication changed",
    "antibiotic", "antibiotics", "inhaler", "cream", "ointment",
)

TEST_RESULT_KEYWORDS = (
    "blood test", "blood result", "lab result", "laboratory",
    "x-ray", "xray", "scan", "mri", "ct scan", "ultrasound",
    "radiology", "pathology", "biopsy", "culture",
    "test result", "investigation result", "ecg", "ekg",
)

PROBLEM_FIELD = re.compile(r"^[ \t]*Problem(?:[ \t]*:|\t)[ \t]*(\S.*)$", re.IGNORECASE | re.MULTILINE)

# "500mg", "2.5 ml", "10 units": a quantity glued to a unit counts as prescribing
DOSE = re.compile(r"\b\d+(?:\.\d+)?\s*(?:mg|mcg|micrograms?|ml|g|units?)\b", re.IGNORECASE)

# ---------------------------------------------------------------------------
# Identifiable-information patterns
# ---------------------------------------------------------------------------

NHS_NUMBER = re.compile(r"\b\d{3}[\s-]?\d{3}[\s-]?\d{4}\b")

DATE_OF_BIRTH = (
    re.compile(r"\bDOB[:\s]+\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}", re.IGNORECASE),
    re.compile(r"\bDate of Birth[:\s]+\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}", re.IGNORECASE),
    re.compile(r"\bBorn[:\s]+\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}", re.IGNORECASE),
)

# Outward and inward code separated by whitespace
POSTCODE = re.compile(r"\b([A-Z]{1,2}\d{1,2}[A-Z]?)\s+(\d[A-Z]{2})\b")

# "B12 1MG", "D3 2ML": a product name followed by a dose, not an inward code
_DOSE_INWARD = re.compile(r"^\d(?:MG|ML|IU|UG|KG|GM|MU|DL)$")
# B12, D3, E45 and similar vitamin/product names
_SINGLE_LETTER_DIGITS = re.compile(r"^[A-Z]\d+$")
_VITAMIN_BEFORE = re.compile(r"\b(?:vit|vitamin)\.?\s*$", re.IGNORECASE)


def _is_postcode(match: re.Match, text: str) -> bool:
    """Reject dose-shaped inward codes and vitamin names that happen to look like outward codes."""
    outward, inward = match.group(1), match.group(2)
    if _DOSE_INWARD.match(inward):
        return False
    preceding = text[max(0, match.start() - 12):match.start()]
    if _SINGLE_LETTER_DIGITS.match(outward) and _VITAMIN_BEFORE.search(preceding):
        return False
    return True


PHONE_NUMBER = re.compile(r"\b0\d{2,4}[\s-]?\d{3,4}[\s-]?\d{4}\b")

EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


def _keyword_pattern(keywords: tuple[str, ...]) -> re.Pattern:
    # Whole-word match so short tokens like "dna" or "mg" don't fire inside words
    alternatives = "|".join(re.escape(k) for k in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"(?<![\w/])(?:{alternatives})(?![\w/])", re.IGNORECASE)


class TextSignalDetector:
    """Boolean predicates and pattern scans over consultation text."""

    def __init__(
        self,
        telephone_keywords: tuple[str, ...] = TELEPHONE_KEYWORDS,
        failed_encounter_keywords: tuple[str, ...] = FAILED_ENCOUNTER_KEYWORDS,
        prescribing_keywords: tuple[str, ...] = PRESCRIBING_KEYWORDS,
        test_result_keywords: tuple[str, ...] = TEST_RESULT_KEYWORDS,
    ):
        self._telephone = _keyword_pattern(telephone_keywords)
        self._failed = _keyword_pattern(failed_encounter_keywords)
        self._prescribing = _keyword_pattern(prescribing_keywords)
        self._test_results = _keyword_pattern(test_result_keywords)

    # -- relevance signals --------------------------------------------------

    def is_telephone_encounter(self, text: str) -> bool:
        return bool(self._telephone.search(text))

    def is_failed_encounter(self, text: str) -> bool:
        """Did-not-attend, unanswered call and similar."""
        return bool(self._failed.search(text))

    def has_prescribing_evidence(self, text: str) -> bool:
        return bool(self._prescribing.search(text) or DOSE.search(text))

    def has_test_result_evidence(self, text: str) -> bool:
        return bool(self._test_results.search(text))

    def problem_field(self, text: str) -> str | None:
        """Text following a structural 'Problem:' field, if non-empty."""
        match = PROBLEM_FIELD.search(text)
        return match.group(1).strip() if match else None

    # -- identifiable information ------------------------------------------

    def find_pii(self, text: str) -> dict[PIIType, list[str]]:
        """Regex scan for identifier-shaped tokens, keyed by type. Empty types omitted."""
        found: dict[PIIType, list[str]] = {}

        nhs = NHS_NUMBER.findall(text)
        if nhs:
            found[PIIType.NHS_NUMBER] = nhs

        dob = [m for pattern in DATE_OF_BIRTH for m in pattern.findall(text)]
        if dob:
            found[PIIType.DATE_OF_BIRTH] = dob

        postcodes = [m.group(0) for m in POSTCODE.finditer(text) if _is_postcode(m, text)]
        if postcodes:
            found[PIIType.POSTCODE] = postcodes

        phones = PHONE_NUMBER.findall(text)
        if phones:
            found[PIIType.PHONE_NUMBER] = phones

        emails = EMAIL.findall(text)
        if emails:
            found[PIIType.EMAIL] = emails

        return found
