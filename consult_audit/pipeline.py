"""
Review pipeline orchestrator.

Ties together all layers:
1. Parsing (bulk text -> ordered consultation records)
2. Validation (record count for the review type; nothing else runs on failure)
3. PII guard (pattern scan + name anonymization; HIGH issues block)
4. Per record: relevance classifier -> criterion judge -> scoring -> overall summary
5. Batch scheduling (bounded concurrency, order preserved, best-effort persistence)
6. Cross-record statistics, plus pattern analysis for full reviews

Rapid Review is two records in a single batch of two. Full Review needs at
least ten records, caps at a configured ceiling, and reports how many records
were left out.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone

from consult_audit import config
from consult_audit.criteria import CRITERIA
from consult_audit.deterministic.parser import parse_consultations
from consult_audit.deterministic.relevance import RelevanceClassifier
from consult_audit.deterministic.signals import TextSignalDetector
from consult_audit.exceptions import AuditValidationError, PIIBlockedError
from consult_audit.llm_judge.capability import JudgmentCapability
from consult_audit.llm_judge.judge import CriterionJudge, extract_evidence
from consult_audit.models import (
    AuditMetadata,
    AuditReport,
    ConsultationRecord,
    CriterionAssessment,
    Rating,
    RecordResult,
    ReviewType,
)
from consult_audit.patterns import PatternAnalyzer, calculate_review_summary
from consult_audit.pii_guard import PIIGuard
from consult_audit.scheduler import BatchScheduler, gather_in_order
from consult_audit.scoring import calculate_score
from consult_audit.store import AssessmentStore, build_documents

logger = logging.getLogger(__name__)


def record_recommendations(assessments: list[CriterionAssessment]) -> list[str]:
    """Improvement points for one record, most serious rating first."""
    issues = [a for a in assessments if a.rating in (Rating.CONCERN, Rating.UNACCEPTABLE)]
    if not issues:
        return ["Excellent work. Continue maintaining high documentation standards."]

    issues.sort(key=lambda a: a.rating != Rating.UNACCEPTABLE)
    return [
        f"[{'HIGH PRIORITY' if a.rating == Rating.UNACCEPTABLE else 'IMPORTANT'}] "
        f"{a.criterion_title}: {a.explanation}"
        for a in issues
    ]


class AuditEngine:
    """Runs rapid and full reviews against an injected judgment capability."""

    def __init__(
        self,
        capability: JudgmentCapability,
        batch_size: int = config.BATCH_SIZE,
        guidance_policy: str = config.GUIDANCE_POLICY,
        store: AssessmentStore | None = None,
        detector: TextSignalDetector | None = None,
        rapid_records: int = config.RAPID_REVIEW_RECORDS,
        full_min_records: int = config.FULL_REVIEW_MIN_RECORDS,
        full_max_records: int = config.FULL_REVIEW_MAX_RECORDS,
        name_char_limit: int = config.NAME_DETECTION_CHAR_LIMIT,
        auto_anonymize_names: bool = config.AUTO_ANONYMIZE_NAMES,
        evidence_chars: int = config.EVIDENCE_SNIPPET_CHARS,
        persistence_timeout: float | None = config.PERSISTENCE_TIMEOUT_SECONDS,
    ):
        detector = detector or TextSignalDetector()
        self.capability = capability
        self.batch_size = batch_size
        self.store = store
        self.rapid_records = rapid_records
        self.full_min_records = full_min_records
        self.full_max_records = full_max_records
        self.evidence_chars = evidence_chars
        self.persistence_timeout = persistence_timeout
        self.classifier = RelevanceClassifier(detector)
        self.judge = CriterionJudge(capability, guidance_policy, evidence_chars)
        self.guard = PIIGuard(
            capability,
            detector,
            name_char_limit=name_char_limit,
            auto_anonymize_names=auto_anonymize_names,
        )
        self.analyzer = PatternAnalyzer()

    # ------------------------------------------------------------------
    # Single record
    # ------------------------------------------------------------------

    async def assess_record(self, record: ConsultationRecord) -> RecordResult:
        """Relevance -> judge -> score -> summary for one record. Criteria are judged concurrently."""
        text = record.text
        start = time.time()
        decisions = self.classifier.classify(text, CRITERIA)

        judged = await gather_in_order([
            self.judge.judge(text, d.criterion) for d in decisions if d.needs_judgment
        ])
        judged_iter = iter(judged)

        evidence = extract_evidence(text, self.evidence_chars)
        assessments = []
        for decision in decisions:
            if decision.needs_judgment:
                assessments.append(next(judged_iter))
            else:
                assessments.append(decision.assessment.model_copy(update={"evidence_snippet": evidence}))

        score = calculate_score(a.rating for a in assessments)
        overall_summary = await self.judge.summarize(text, assessments, score)
        logger.info(
            "Record %d assessed in %.1fs (%d judged, %d settled by rule): %s %.2f%%",
            record.ordinal, time.time() - start, len(judged), len(decisions) - len(judged),
            score.rag_rating.rating.value, score.percentage,
        )
        return RecordResult(
            record=record,
            assessments=assessments,
            score=score,
            recommendations=record_recommendations(assessments),
            overall_summary=overall_summary,
        )

    # ------------------------------------------------------------------
    # Reviews
    # ------------------------------------------------------------------

    def _parse_and_validate(self, bulk_text: str, review_type: ReviewType) -> tuple[list[ConsultationRecord], int]:
        """Validation happens before anything touches the capability or the store."""
        if not bulk_text or not bulk_text.strip():
            raise AuditValidationError("Consultation data is required", found=0)

        records = parse_consultations(bulk_text)
        found = len(records)

        if review_type == ReviewType.RAPID:
            if found != self.rapid_records:
                raise AuditValidationError(
                    f"Rapid Review requires exactly {self.rapid_records} consultations. Found: {found}",
                    found=found,
                    expected=f"exactly {self.rapid_records}",
                )
            return records, 0

        if found < self.full_min_records:
            raise AuditValidationError(
                f"Full Review requires at least {self.full_min_records} consultations. Found: {found}",
                found=found,
                expected=f"at least {self.full_min_records}",
            )
        excluded = max(0, found - self.full_max_records)
        if excluded:
            logger.warning(
                "Full Review capped at %d consultations; %d excluded", self.full_max_records, excluded
            )
        return records[:self.full_max_records], excluded

    async def _review(
        self,
        bulk_text: str,
        review_type: ReviewType,
        metadata: AuditMetadata | None,
        progress_callback=None,
    ) -> AuditReport:
        metadata = metadata or AuditMetadata()
        start = time.time()

        records, excluded = self._parse_and_validate(bulk_text, review_type)
        logger.info("Starting %s of %d consultations", review_type.value, len(records))

        screen = await self.guard.screen(bulk_text, records)
        if screen.blocked:
            raise PIIBlockedError(screen.issues)

        batch_size = self.rapid_records if review_type == ReviewType.RAPID else self.batch_size
        scheduler = BatchScheduler(
            batch_size=batch_size,
            completion_hook=self._persistence_hook(review_type, metadata),
            hook_timeout=self.persistence_timeout,
        )
        results = await scheduler.run(screen.records, self.assess_record, progress_callback)

        summary = calculate_review_summary(results)
        analysis = self.analyzer.analyze(results) if review_type == ReviewType.FULL else None

        elapsed = round(time.time() - start, 1)
        logger.info(
            "%s complete in %.1fs: %.2f%% (%s)",
            review_type.value, elapsed, summary.average_score, summary.overall_rag.value,
        )
        return AuditReport(
            review_type=review_type,
            total_records=len(results),
            excluded_records=excluded,
            completed_at=datetime.now(timezone.utc).isoformat(),
            processing_seconds=elapsed,
            audit_metadata=metadata,
            records=results,
            summary=summary,
            pii_issues=screen.issues,
            analysis=analysis,
        )

    def _persistence_hook(self, review_type: ReviewType, metadata: AuditMetadata):
        if self.store is None:
            return None
        store = self.store

        async def persist(results: list[RecordResult]) -> None:
            documents = build_documents(results, review_type, metadata)
            await asyncio.to_thread(store.insert_many, documents)

        return persist

    async def conduct_rapid_review(
        self,
        bulk_text: str,
        metadata: AuditMetadata | None = None,
        progress_callback=None,
    ) -> AuditReport:
        return await self._review(bulk_text, ReviewType.RAPID, metadata, progress_callback)

    async def conduct_full_review(
        self,
        bulk_text: str,
        metadata: AuditMetadata | None = None,
        progress_callback=None,
    ) -> AuditReport:
        return await self._review(bulk_text, ReviewType.FULL, metadata, progress_callback)


def build_summary(report: AuditReport) -> dict:
    """Build a human-readable summary for the report header."""
    summary = {
        "review_type": report.review_type.value,
        "total_records": report.total_records,
        "excluded_records": report.excluded_records,
        "average_score": report.summary.average_score,
        "overall_rag": report.summary.overall_rag.value,
        "rag_distribution": report.summary.rag_distribution,
        "highest_score": report.summary.highest_score,
        "lowest_score": report.summary.lowest_score,
        "processing_seconds": report.processing_seconds,
    }
    if report.analysis:
        summary["best_performing"] = report.analysis.best_performing.ordinal
        summary["worst_performing"] = report.analysis.worst_performing.ordinal
        summary["recommendations"] = [r.model_dump() for r in report.analysis.recommendations]
    return summary
