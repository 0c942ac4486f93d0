"""
Consultation parser.

Splits one bulk block of pasted clinical-system text into ordered
consultation records. Each line is classified on its own into one of three
shapes; the only state carried between lines is the currently open record.
"""

import re
from dataclasses import dataclass
from enum import Enum

from consult_audit.models import ConsultationRecord


# DD-MMM-YYYY HH:MM followed by free text
STANDARD_LINE = re.compile(r"^(\d{1,2}-[A-Za-z]{3}-\d{4}\s+\d{1,2}:\d{2})\s+(.+)")

# <uuid> DD-MMM-YYYY followed by free text (no time component)
UUID_LINE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}\s+"
    r"(\d{1,2}-[A-Za-z]{3}-\d{4})\s+(.+)",
    re.IGNORECASE,
)

DEFAULT_TIME = "00:00"


class LineKind(Enum):
    NEW_RECORD_STANDARD = "standard"
    NEW_RECORD_UUID = "uuid"
    CONTINUATION = "continuation"
    SKIP = "skip"


@dataclass(frozen=True)
class ClassifiedLine:
    kind: LineKind
    text: str
    date: str | None = None
    header: str | None = None


def _is_table_header(line: str) -> bool:
    return line.startswith("Date") and "Consultation Text" in line


def classify_line(line: str) -> ClassifiedLine:
    """Classify a single stripped line."""
    if not line or _is_table_header(line):
        return ClassifiedLine(LineKind.SKIP, line)

    match = UUID_LINE.match(line)
    if match:
        return ClassifiedLine(
            LineKind.NEW_RECORD_UUID,
            line,
            date=f"{match.group(1)} {DEFAULT_TIME}",
            header=match.group(2),
        )

    match = STANDARD_LINE.match(line)
    if match:
        return ClassifiedLine(
            LineKind.NEW_RECORD_STANDARD,
            line,
            date=match.group(1),
            header=match.group(2),
        )

    return ClassifiedLine(LineKind.CONTINUATION, line)


def parse_consultations(bulk_text: str) -> list[ConsultationRecord]:
    """
    Parse bulk text into consultation records in input order.

    A record's raw_text is its opening line joined with its continuation
    lines by newlines. Continuation lines seen before any record has opened
    are dropped. No date-stamped line anywhere means an empty list.
    """
    records: list[ConsultationRecord] = []
    current: dict | None = None

    def flush():
        if current is not None:
            records.append(ConsultationRecord(
                ordinal=len(records) + 1,
                date=current["date"],
                header=current["header"],
                raw_text="\n".join(current["lines"]),
            ))

    for raw_line in bulk_text.strip().split("\n"):
        line = classify_line(raw_line.strip())

        if line.kind in (LineKind.NEW_RECORD_STANDARD, LineKind.NEW_RECORD_UUID):
            flush()
            current = {"date": line.date, "header": line.header, "lines": [line.text]}
        elif line.kind is LineKind.CONTINUATION and current is not None:
            current["lines"].append(line.text)

    flush()
    return records
