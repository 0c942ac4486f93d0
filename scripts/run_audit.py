"""
Run a consultation notes audit on a text file of pasted consultations.

Usage:
    python scripts/run_audit.py --mode rapid --input data/rapid.txt
    python scripts/run_audit.py --mode full --input data/full.txt --batch-size 5
    python scripts/run_audit.py --mode full --input data/full.txt --policy lenient
    python scripts/run_audit.py --mode full --input data/full.txt --doctor GI --reference AUD-001
    python scripts/run_audit.py --history              # list stored audits
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from consult_audit import config
from consult_audit.exceptions import AuditValidationError, PIIBlockedError
from consult_audit.llm_judge.capability import AnthropicCapability
from consult_audit.models import AuditMetadata
from consult_audit.pipeline import AuditEngine, build_summary
from consult_audit.pii_guard import format_issues
from consult_audit.store import JsonlAssessmentStore


def print_history(store: JsonlAssessmentStore):
    audits = store.audits_by_reference()
    if not audits:
        print("No stored audits.")
        return
    for audit in audits:
        print(
            f"{audit['reference_number']:<16} {audit['doctor_identifier'] or '-':<8} "
            f"{audit['review_type']:<12} {len(audit['records']):>3} records  "
            f"{audit['overall_score']:>6.2f}%  {audit['overall_rag']}"
        )


def main():
    parser = argparse.ArgumentParser(description="Audit GP consultation notes")
    parser.add_argument("--mode", choices=["rapid", "full"], default="rapid", help="Review type")
    parser.add_argument("--input", type=str, help="Path to the pasted consultations text file")
    parser.add_argument("--output", type=str, default="output", help="Output directory")
    parser.add_argument("--batch-size", type=int, default=config.BATCH_SIZE, help="Records judged concurrently per batch")
    parser.add_argument("--policy", choices=["strict", "lenient"], default=config.GUIDANCE_POLICY, help="Judge guidance policy")
    parser.add_argument("--doctor", type=str, default=None, help="Doctor identifier for the audit record")
    parser.add_argument("--reference", type=str, default=None, help="Audit reference number")
    parser.add_argument("--no-store", action="store_true", help="Do not persist assessments")
    parser.add_argument("--history", action="store_true", help="List stored audits and exit")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    store = JsonlAssessmentStore()
    if args.history:
        print_history(store)
        return

    if not args.input:
        parser.error("--input is required unless --history is given")

    input_path = Path(args.input)
    bulk_text = input_path.read_text(encoding="utf-8")
    print(f"Loaded {len(bulk_text)} characters from {input_path}")

    engine = AuditEngine(
        capability=AnthropicCapability(),
        batch_size=args.batch_size,
        guidance_policy=args.policy,
        store=None if args.no_store else store,
    )
    metadata = AuditMetadata(doctor_identifier=args.doctor, reference_number=args.reference)

    def progress(first, last, total):
        print(f"  Assessing consultations {first}-{last} of {total}...", flush=True)

    review = engine.conduct_rapid_review if args.mode == "rapid" else engine.conduct_full_review
    try:
        report = asyncio.run(review(bulk_text, metadata, progress_callback=progress))
    except AuditValidationError as e:
        print(f"ERROR: {e}")
        sys.exit(2)
    except PIIBlockedError as e:
        print("BLOCKED: identifiable information must be removed before audit")
        print(f"  {format_issues(e.issues)}")
        for issue in e.issues:
            for r in issue.replacements or []:
                print(f"    {r.original} -> {r.replacement}")
        sys.exit(3)

    output_dir = project_root / args.output
    output_dir.mkdir(parents=True, exist_ok=True)

    report_path = output_dir / "report.json"
    with open(report_path, "w", encoding="utf-8") as f:
        f.write(report.model_dump_json(indent=2))
    print(f"\nReport saved to {report_path}")

    summary = build_summary(report)
    summary_path = output_dir / "summary.json"
    with open(summary_path, "w", encoding="utf-8") as f:
        json.dump(summary, f, indent=2)
    print(f"Summary saved to {summary_path}")

    # Print summary
    print("\n" + "=" * 60)
    print(f"{report.review_type.value.upper()} COMPLETE")
    print("=" * 60)
    print(f"Consultations:  {report.total_records}")
    if report.excluded_records:
        print(f"Excluded:       {report.excluded_records} (over the {config.FULL_REVIEW_MAX_RECORDS}-record ceiling)")
    print(f"Average score:  {report.summary.average_score:.2f}%")
    print(f"Overall RAG:    {report.summary.overall_rag.value}")
    print(f"Distribution:   {report.summary.rag_distribution}")
    for r in report.records:
        print(
            f"  #{r.record.ordinal} {r.record.date}: {r.score.percentage:.2f}% "
            f"{r.score.rag_rating.rating.value} ({r.score.not_relevant} not relevant)"
        )
        if r.overall_summary:
            print(f"      {r.overall_summary}")

    if report.analysis:
        print(f"\nBest:  #{report.analysis.best_performing.ordinal} ({report.analysis.best_performing.score:.2f}%)")
        print(f"Worst: #{report.analysis.worst_performing.ordinal} ({report.analysis.worst_performing.score:.2f}%)")
        for rec in report.analysis.recommendations:
            print(f"\n[{rec.priority}] {rec.area}")
            for detail in rec.details:
                print(f"  - {detail}")


if __name__ == "__main__":
    main()
