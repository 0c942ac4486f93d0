"""
PII guard: detects and anonymizes identifiable information before judgment.

Two independent phases over one submission:
1. Deterministic regex scan of the bulk text (NHS numbers, DOBs, postcodes,
   phone numbers, emails) via the TextSignalDetector.
2. Capability-assisted person-name detection over a bounded prefix of the
   bulk text. Each name is replaced by its initials, whole-word and
   case-insensitively, longest names first, in every record.

Any HIGH issue blocks the submission (fail closed) and no anonymized text is
released. MEDIUM issues are reported only.
"""

import json
import logging
import re

from consult_audit import config
from consult_audit.deterministic.signals import TextSignalDetector
from consult_audit.llm_judge.capability import JudgmentCapability
from consult_audit.llm_judge.prompts import NAME_DETECTION_PROMPT, NAME_DETECTION_SYSTEM
from consult_audit.models import (
    ConsultationRecord,
    NameReplacement,
    PIIIssue,
    PIIScreenResult,
    PIISeverity,
    PIIType,
)

logger = logging.getLogger(__name__)


SEVERITY = {
    PIIType.NHS_NUMBER: PIISeverity.HIGH,
    PIIType.DATE_OF_BIRTH: PIISeverity.HIGH,
    PIIType.POSTCODE: PIISeverity.MEDIUM,
    PIIType.PHONE_NUMBER: PIISeverity.MEDIUM,
    PIIType.EMAIL: PIISeverity.MEDIUM,
    PIIType.PERSON_NAMES: PIISeverity.HIGH,
}

MESSAGES = {
    PIIType.NHS_NUMBER: "{n} potential NHS number(s) detected (10-digit numbers)",
    PIIType.DATE_OF_BIRTH: "{n} date of birth reference(s) detected",
    PIIType.POSTCODE: "{n} potential postcode(s) detected",
    PIIType.PHONE_NUMBER: "{n} potential phone number(s) detected",
    PIIType.EMAIL: "{n} email address(es) detected",
    PIIType.PERSON_NAMES: "{n} person name(s) detected and replaced with initials",
}


# ---------------------------------------------------------------------------
# Phase 1: pattern scan
# ---------------------------------------------------------------------------

def scan_patterns(text: str, detector: TextSignalDetector | None = None) -> list[PIIIssue]:
    detector = detector or TextSignalDetector()
    issues = []
    for pii_type, matches in detector.find_pii(text).items():
        issues.append(PIIIssue(
            type=pii_type,
            severity=SEVERITY[pii_type],
            count=len(matches),
            message=MESSAGES[pii_type].format(n=len(matches)),
        ))
    return issues


# ---------------------------------------------------------------------------
# Phase 2: names
# ---------------------------------------------------------------------------

def _parse_names_response(response_text: str) -> list[str]:
    """Extract names from the detector's JSON answer, tolerating code fences and prose."""
    text = response_text.strip()

    # Strip markdown code fences if present
    if text.startswith("```"):
        first_newline = text.index("\n") if "\n" in text else len(text)
        last_fence = text.rfind("```")
        if last_fence > first_newline:
            text = text[first_newline + 1:last_fence]

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        text = text[start:end + 1]

    data = json.loads(text)
    names = []
    for entry in data.get("names", []):
        name = entry.get("name", "") if isinstance(entry, dict) else str(entry)
        if name.strip():
            names.append(" ".join(name.split()))
    return names


async def detect_names(
    capability: JudgmentCapability,
    text: str,
    char_limit: int = config.NAME_DETECTION_CHAR_LIMIT,
) -> list[str]:
    """Ask the capability for person names in a bounded prefix of `text`."""
    prompt = NAME_DETECTION_PROMPT.format(text=text[:char_limit])
    response_text = await capability.complete(NAME_DETECTION_SYSTEM, prompt)
    try:
        return _parse_names_response(response_text)
    except (json.JSONDecodeError, AttributeError, ValueError) as e:
        logger.warning("Name detection answer could not be parsed; no names applied: %s", e)
        return []


def to_initials(name: str) -> str:
    """'John Smith' -> 'JS'."""
    return "".join(token[0].upper() for token in name.split())


def _name_pattern(name: str) -> re.Pattern:
    return re.compile(rf"(?<!\w){re.escape(name)}(?!\w)", re.IGNORECASE)


def anonymize_text(text: str, names: list[str]) -> tuple[str, list[NameReplacement]]:
    """
    Replace each name with its initials throughout `text`.

    Longest names go first so "John Smith" is not half-replaced by an
    earlier "John". Only names actually substituted are reported.
    """
    unique: dict[str, str] = {}
    for name in names:
        unique.setdefault(name.lower(), name)

    replacements = []
    for name in sorted(unique.values(), key=len, reverse=True):
        initials = to_initials(name)
        text, substitutions = _name_pattern(name).subn(initials, text)
        if substitutions:
            replacements.append(NameReplacement(original=name, replacement=initials))
    return text, replacements


# ---------------------------------------------------------------------------
# Guard
# ---------------------------------------------------------------------------

def has_high_severity_issues(issues: list[PIIIssue]) -> bool:
    return any(issue.severity == PIISeverity.HIGH for issue in issues)


def format_issues(issues: list[PIIIssue]) -> str:
    if not issues:
        return "No PII detected"
    return "; ".join(f"{issue.severity.value}: {issue.message}" for issue in issues)


class PIIGuard:
    def __init__(
        self,
        capability: JudgmentCapability | None = None,
        detector: TextSignalDetector | None = None,
        name_char_limit: int = config.NAME_DETECTION_CHAR_LIMIT,
        auto_anonymize_names: bool = config.AUTO_ANONYMIZE_NAMES,
    ):
        self.capability = capability
        self.detector = detector or TextSignalDetector()
        self.name_char_limit = name_char_limit
        self.auto_anonymize_names = auto_anonymize_names

    async def screen(self, bulk_text: str, records: list[ConsultationRecord]) -> PIIScreenResult:
        """
        Run both phases. Returns anonymized records unless blocked.

        Without a capability only the pattern scan runs.
        """
        issues = scan_patterns(bulk_text, self.detector)

        names: list[str] = []
        if self.capability is not None:
            names = await detect_names(self.capability, bulk_text, self.name_char_limit)

        anonymized = []
        all_replacements: dict[str, NameReplacement] = {}
        for record in records:
            text, replacements = anonymize_text(record.raw_text, names)
            for r in replacements:
                all_replacements.setdefault(r.original.lower(), r)
            anonymized.append(record.model_copy(update={
                "anonymized_text": text,
                "replacements": replacements,
            }))

        if all_replacements:
            found = list(all_replacements.values())
            issues.append(PIIIssue(
                type=PIIType.PERSON_NAMES,
                severity=SEVERITY[PIIType.PERSON_NAMES],
                count=len(found),
                message=MESSAGES[PIIType.PERSON_NAMES].format(n=len(found)),
                replacements=found,
            ))

        blocking = [
            issue for issue in issues
            if not (self.auto_anonymize_names and issue.type == PIIType.PERSON_NAMES)
        ]
        blocked = has_high_severity_issues(blocking)

        if issues:
            logger.warning("PII validation issues: %s", format_issues(issues))

        if blocked:
            # fail closed: nothing anonymized is released
            return PIIScreenResult(issues=issues, blocked=True, records=records)
        return PIIScreenResult(issues=issues, blocked=False, records=anonymized)
