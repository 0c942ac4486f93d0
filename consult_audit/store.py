"""
Assessment store: append-only persistence of one document per assessed record.

The review pipeline only needs "insert many, best effort". Reads (history
grouped by audit reference) are a convenience for scripts.
"""

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from consult_audit import config
from consult_audit.models import AuditMetadata, RecordResult, ReviewType
from consult_audit.scoring import rag_band

logger = logging.getLogger(__name__)

DOCUMENT_TYPE = "gp_consultation_assessment"


class AssessmentStore(Protocol):
    def insert_many(self, documents: list[dict]) -> None:
        ...


def build_documents(
    results: list[RecordResult],
    review_type: ReviewType,
    metadata: AuditMetadata,
) -> list[dict]:
    """One storable document per record."""
    created_at = datetime.now(timezone.utc).isoformat()
    return [
        {
            "type": DOCUMENT_TYPE,
            "review_type": review_type.value,
            "audit_metadata": metadata.model_dump(),
            "record_ordinal": r.record.ordinal,
            "record_date": r.record.date,
            "rag_rating": r.score.rag_rating.rating.value,
            "score": r.score.percentage,
            "assessment": r.model_dump(mode="json"),
            "created_at": created_at,
        }
        for r in results
    ]


class JsonlAssessmentStore:
    """Appends documents to a JSON-lines file."""

    def __init__(self, path: Path = config.ASSESSMENT_STORE_PATH):
        self.path = Path(path)
        self._lock = threading.Lock()

    def insert_many(self, documents: list[dict]) -> None:
        if not documents:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock, open(self.path, "a", encoding="utf-8") as f:
            for doc in documents:
                f.write(json.dumps(doc) + "\n")
        logger.info("Saved %d assessments to %s", len(documents), self.path)

    def read_all(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path, encoding="utf-8") as f:
            return [json.loads(line) for line in f if line.strip()]

    def audits_by_reference(self) -> list[dict]:
        """
        Group stored assessments by audit reference number, newest audit first.

        Each audit carries its records (ordered by ordinal), the average score
        and the band of that average.
        """
        audits: dict[str, dict] = {}
        for doc in self.read_all():
            meta = doc.get("audit_metadata") or {}
            ref = meta.get("reference_number")
            if doc.get("type") != DOCUMENT_TYPE or not ref:
                continue
            audit = audits.setdefault(ref, {
                "reference_number": ref,
                "doctor_identifier": meta.get("doctor_identifier"),
                "review_type": doc.get("review_type"),
                "created_at": doc.get("created_at"),
                "records": [],
            })
            audit["records"].append({
                "ordinal": doc.get("record_ordinal"),
                "date": doc.get("record_date"),
                "score": doc.get("score", 0.0),
                "rag_rating": doc.get("rag_rating"),
            })

        for audit in audits.values():
            audit["records"].sort(key=lambda r: r["ordinal"] or 0)
            scores = [r["score"] for r in audit["records"]]
            audit["overall_score"] = round(sum(scores) / len(scores), 2)
            audit["overall_rag"] = rag_band(audit["overall_score"]).value

        return sorted(audits.values(), key=lambda a: a["created_at"] or "", reverse=True)
