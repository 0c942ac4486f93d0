"""End-to-end tests for rapid and full reviews against a canned capability."""

import asyncio
import logging
import sys
import time
from collections import Counter
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from consult_audit.exceptions import AuditValidationError, PIIBlockedError
from consult_audit.models import (
    AssessmentSource,
    AuditMetadata,
    CriterionAssessment,
    RAGBand,
    Rating,
    ReviewType,
)
from consult_audit.pipeline import AuditEngine, build_summary, record_recommendations
from consult_audit.store import JsonlAssessmentStore


class MemoryStore:
    def __init__(self, fail=False):
        self.documents = []
        self.fail = fail

    def insert_many(self, documents):
        if self.fail:
            raise OSError("store offline")
        self.documents.extend(documents)


def routine_note(block, day):
    """Face to face, prescribing and results present: all twelve criteria go to the judge."""
    return block(
        f"{day:02d}-Dec-2024 09:00", "Face to face consultation",
        "History: cough for 5 days, no fever",
        "Examination: chest clear",
        "Plan: amoxicillin 500mg TDS, blood test results reviewed, return if worse",
    )


def bulk(block, count, start_day=1):
    return "\n".join(routine_note(block, start_day + i) for i in range(count))


# ---------------------------------------------------------------------------
# Rapid review
# ---------------------------------------------------------------------------

def test_rapid_review_report_shape(block, fake_capability):
    capability = fake_capability()
    engine = AuditEngine(capability)
    report = asyncio.run(engine.conduct_rapid_review(bulk(block, 2)))

    assert report.review_type == ReviewType.RAPID
    assert report.total_records == 2
    assert report.excluded_records == 0
    assert report.analysis is None
    assert [r.record.ordinal for r in report.records] == [1, 2]
    for result in report.records:
        assert [a.criterion_id for a in result.assessments] == list(range(1, 13))
        assert result.score.percentage == 100.0
        assert result.score.rag_rating.rating == RAGBand.GREEN
    assert report.summary.average_score == 100.0
    assert len(capability.criterion_calls) == 24
    assert capability.name_calls == 1


def test_rapid_review_needs_exactly_two(block, fake_capability):
    capability = fake_capability()
    with pytest.raises(AuditValidationError, match="exactly 2") as excinfo:
        asyncio.run(AuditEngine(capability).conduct_rapid_review(bulk(block, 3)))
    assert excinfo.value.found == 3
    assert capability.total_calls == 0


def test_each_record_gets_overall_summary(block, fake_capability):
    capability = fake_capability(
        answers={4: "RATING: C\nEXPLANATION: Plan lacks follow-up interval."},
        summary="Good history; plan needs a follow-up interval.",
    )
    report = asyncio.run(AuditEngine(capability).conduct_rapid_review(bulk(block, 2)))

    assert [r.overall_summary for r in report.records] == [
        "Good history; plan needs a follow-up interval.",
    ] * 2
    assert len(capability.summary_prompts) == 2
    assert all("Plan lacks follow-up interval." in p for p in capability.summary_prompts)


def test_summary_failure_does_not_fail_review(block, fake_capability):
    capability = fake_capability(fail_summary=True)
    report = asyncio.run(AuditEngine(capability).conduct_rapid_review(bulk(block, 2)))

    assert report.total_records == 2
    assert all(r.overall_summary == "Overall assessment summary unavailable." for r in report.records)
    assert report.summary.average_score == 100.0


def test_telephone_record_never_asks_about_examination(block, fake_capability):
    phone = block(
        "02-Dec-2024 10:00", "Telephone consultation",
        "History: sore throat",
        "Plan: amoxicillin 500mg TDS, blood test results reviewed",
    )
    capability = fake_capability()
    report = asyncio.run(AuditEngine(capability).conduct_rapid_review(routine_note(block, 1) + "\n" + phone))

    assert Counter(capability.criterion_calls)[5] == 1
    examination = report.records[1].assessments[4]
    assert examination.rating == Rating.NOT_RELEVANT
    assert examination.source == AssessmentSource.RULE
    assert examination.evidence_snippet.startswith("02-Dec-2024 10:00")
    assert report.records[1].score.total_relevant == 11


def test_failed_encounter_only_judges_safety_net(block, fake_capability):
    dna = block("02-Dec-2024 11:00", "Telephone consultation", "Did not answer, left voicemail")
    capability = fake_capability()
    report = asyncio.run(AuditEngine(capability).conduct_rapid_review(routine_note(block, 1) + "\n" + dna))

    calls = Counter(capability.criterion_calls)
    assert calls[11] == 2
    assert sum(calls.values()) == 13
    dna_result = report.records[1]
    assert dna_result.score.total_relevant == 1
    assert dna_result.score.not_relevant == 11


# ---------------------------------------------------------------------------
# Full review
# ---------------------------------------------------------------------------

def test_full_review_rejects_fewer_than_ten(block, fake_capability):
    capability = fake_capability()
    store = MemoryStore()
    with pytest.raises(AuditValidationError, match="at least 10") as excinfo:
        asyncio.run(AuditEngine(capability, store=store).conduct_full_review(bulk(block, 9)))
    assert excinfo.value.found == 9
    assert capability.total_calls == 0
    assert store.documents == []


def test_empty_submission_rejected(fake_capability):
    capability = fake_capability()
    with pytest.raises(AuditValidationError, match="required"):
        asyncio.run(AuditEngine(capability).conduct_full_review("   \n"))
    assert capability.total_calls == 0


def test_full_review_caps_at_twenty(block, fake_capability):
    capability = fake_capability()
    report = asyncio.run(AuditEngine(capability).conduct_full_review(bulk(block, 25)))

    assert report.total_records == 20
    assert report.excluded_records == 5
    assert [r.record.ordinal for r in report.records] == list(range(1, 21))
    assert len(capability.criterion_calls) == 20 * 12
    assert report.analysis is not None


def test_full_review_batches_and_progress(block, fake_capability):
    seen = []
    engine = AuditEngine(fake_capability(), batch_size=4)
    report = asyncio.run(engine.conduct_full_review(
        bulk(block, 10),
        progress_callback=lambda start, end, total: seen.append((start, end, total)),
    ))
    assert seen == [(1, 4, 10), (5, 8, 10), (9, 10, 10)]
    assert [r.record.ordinal for r in report.records] == list(range(1, 11))


def test_full_review_analysis(block, fake_capability):
    """Criterion 4 is always a concern: it tops the concern areas; the rest are strengths."""
    capability = fake_capability(answers={4: "RATING: C\nEXPLANATION: Negatives not recorded."})
    report = asyncio.run(AuditEngine(capability).conduct_full_review(bulk(block, 10)))

    analysis = report.analysis
    assert analysis.concern_areas[0].criterion_id == 4
    assert analysis.concern_areas[0].count == 10
    assert analysis.best_performing.ordinal == 1
    assert analysis.worst_performing.ordinal == 1
    assert [r.priority for r in analysis.recommendations] == ["HIGH", "POSITIVE"]
    # 11 + 0.6 over 12
    assert report.summary.average_score == pytest.approx(96.67)
    assert report.records[0].recommendations[0].startswith("[IMPORTANT]")

    summary = build_summary(report)
    assert summary["review_type"] == "Full Review"
    assert summary["best_performing"] == 1


def test_judgment_failure_aborts_review(block, fake_capability):
    store = MemoryStore()
    capability = fake_capability(fail_on={3})
    with pytest.raises(RuntimeError):
        asyncio.run(AuditEngine(capability, store=store).conduct_full_review(bulk(block, 10)))
    assert store.documents == []


def test_pii_block_stops_before_judgment(block, fake_capability):
    text = bulk(block, 10) + "\nNHS 943 476 5919"
    capability = fake_capability()
    with pytest.raises(PIIBlockedError) as excinfo:
        asyncio.run(AuditEngine(capability).conduct_full_review(text))
    assert excinfo.value.issues[0].type.value == "NHS_NUMBER"
    assert capability.criterion_calls == []


def test_names_auto_anonymized_before_judgment(block, fake_capability):
    seen_prompts = []
    capability = fake_capability(names=["Mary Jones"])
    original_complete = capability.complete

    async def recording_complete(system, prompt):
        seen_prompts.append(prompt)
        return await original_complete(system, prompt)

    capability.complete = recording_complete
    text = bulk(block, 2).replace("no fever", "seen with Mary Jones", 1)
    report = asyncio.run(
        AuditEngine(capability, auto_anonymize_names=True).conduct_rapid_review(text)
    )

    judged = [p for p in seen_prompts if "CRITERION" in p]
    assert judged and all("Mary Jones" not in p for p in judged)
    assert report.records[0].record.replacements[0].replacement == "MJ"
    assert report.pii_issues[0].type.value == "PERSON_NAMES"


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def test_persistence_failure_is_swallowed(block, fake_capability):
    engine = AuditEngine(fake_capability(), store=MemoryStore(fail=True))
    report = asyncio.run(engine.conduct_rapid_review(bulk(block, 2)))
    assert report.total_records == 2


class SlowStore(MemoryStore):
    def insert_many(self, documents):
        time.sleep(0.3)
        super().insert_many(documents)


def test_slow_persistence_is_abandoned_after_timeout(block, fake_capability, caplog):
    engine = AuditEngine(fake_capability(), store=SlowStore(), persistence_timeout=0.05)
    with caplog.at_level(logging.ERROR, logger="consult_audit.scheduler"):
        report = asyncio.run(engine.conduct_rapid_review(bulk(block, 2)))

    assert report.total_records == 2
    assert "Completion hook timed out" in caplog.text


def test_jsonl_store_and_history(block, fake_capability, tmp_path):
    store = JsonlAssessmentStore(tmp_path / "assessments.jsonl")
    engine = AuditEngine(
        fake_capability(answers={12: "RATING: U\nEXPLANATION: Results not actioned."}),
        store=store,
    )
    metadata = AuditMetadata(doctor_identifier="GI", reference_number="AUD-001")
    asyncio.run(engine.conduct_full_review(bulk(block, 10), metadata=metadata))

    documents = store.read_all()
    assert len(documents) == 10
    assert documents[0]["type"] == "gp_consultation_assessment"
    assert documents[0]["review_type"] == "Full Review"
    assert documents[0]["audit_metadata"]["reference_number"] == "AUD-001"
    assert documents[0]["assessment"]["assessments"][11]["rating"] == "unacceptable"

    audits = store.audits_by_reference()
    assert len(audits) == 1
    assert audits[0]["reference_number"] == "AUD-001"
    assert [r["ordinal"] for r in audits[0]["records"]] == list(range(1, 11))
    assert audits[0]["overall_score"] == pytest.approx(91.67)
    assert audits[0]["overall_rag"] == "GREEN"


def test_store_skips_audits_without_reference(tmp_path):
    store = JsonlAssessmentStore(tmp_path / "a.jsonl")
    store.insert_many([{"type": "gp_consultation_assessment", "audit_metadata": {}, "score": 50.0}])
    assert store.audits_by_reference() == []
    assert len(store.read_all()) == 1


# ---------------------------------------------------------------------------
# Per-record recommendations
# ---------------------------------------------------------------------------

def _assessment(cid, rating, explanation="x"):
    return CriterionAssessment(criterion_id=cid, criterion_title=f"Criterion {cid}", rating=rating, explanation=explanation)


def test_record_recommendations_most_serious_first():
    recs = record_recommendations([
        _assessment(1, Rating.CONCERN, "thin"),
        _assessment(2, Rating.ACCEPTABLE),
        _assessment(3, Rating.UNACCEPTABLE, "missing"),
    ])
    assert recs == ["[HIGH PRIORITY] Criterion 3: missing", "[IMPORTANT] Criterion 1: thin"]


def test_record_recommendations_all_good():
    recs = record_recommendations([_assessment(1, Rating.ACCEPTABLE), _assessment(5, Rating.NOT_RELEVANT)])
    assert recs == ["Excellent work. Continue maintaining high documentation standards."]
