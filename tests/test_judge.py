"""Tests for the criterion judge, answer parsing, and the Anthropic-backed capability."""

import asyncio
import sys
from pathlib import Path
from types import SimpleNamespace

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from consult_audit.criteria import CRITERIA_BY_ID
from consult_audit.exceptions import JudgmentError
from consult_audit.llm_judge.capability import AnthropicCapability
from consult_audit.llm_judge.judge import (
    SUMMARY_UNAVAILABLE,
    CriterionJudge,
    extract_evidence,
    extract_explanation,
    extract_rating,
)
from consult_audit.llm_judge.prompts import (
    LENIENT,
    STRICT,
    SYSTEM_PROMPTS,
    build_criterion_prompt,
    build_summary_prompt,
)
from consult_audit.models import AssessmentSource, CriterionAssessment, Rating
from consult_audit.scoring import calculate_score

NOTE = "17-Dec-2024 09:15 Face to face\nHistory: cough 3 days\nPlan: self-care, return if worse"


# ---------------------------------------------------------------------------
# Answer parsing
# ---------------------------------------------------------------------------

def test_extract_rating_plain_tags():
    assert extract_rating("RATING: A\nEXPLANATION: fine") == Rating.ACCEPTABLE
    assert extract_rating("RATING: C\nEXPLANATION: thin") == Rating.CONCERN
    assert extract_rating("RATING: U\nEXPLANATION: missing") == Rating.UNACCEPTABLE
    assert extract_rating("RATING: N\nEXPLANATION: n/a") == Rating.NOT_RELEVANT


def test_extract_rating_tolerates_markup_and_words():
    """Models drift into markdown and full words; both still parse."""
    assert extract_rating("**Rating:** C\n**Explanation:** ...") == Rating.CONCERN
    assert extract_rating("RATING: [U]") == Rating.UNACCEPTABLE
    assert extract_rating("Rating - Acceptable") == Rating.ACCEPTABLE
    assert extract_rating("rating: not relevant") == Rating.NOT_RELEVANT


def test_extract_rating_missing():
    assert extract_rating("I think the notes are mostly fine.") is None


def test_extract_explanation():
    assert extract_explanation("RATING: A\nEXPLANATION: History is clear.") == "History is clear."
    # no explanation line: the whole answer is kept
    assert extract_explanation("  Looks fine  ") == "Looks fine"


def test_extract_evidence_bounds_length():
    assert extract_evidence("short", 200) == "short"
    long_text = "x" * 250
    snippet = extract_evidence(long_text, 200)
    assert snippet == "x" * 200 + "..."


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

def test_prompt_carries_rubric_and_note():
    criterion = CRITERIA_BY_ID[1]
    prompt = build_criterion_prompt(NOTE, criterion)
    assert "CRITERION 1:" in prompt
    assert criterion.rubric.acceptable in prompt
    assert NOTE in prompt
    assert "RATING: [A/C/U]" in prompt


def test_prompt_omits_missing_concern_tier():
    """Criterion 2 has no middle tier, so no concern definition is offered."""
    prompt = build_criterion_prompt(NOTE, CRITERIA_BY_ID[2])
    assert "CAUSE FOR CONCERN (C)" not in prompt


def test_policies_share_answer_format():
    strict = build_criterion_prompt(NOTE, CRITERIA_BY_ID[3], STRICT)
    lenient = build_criterion_prompt(NOTE, CRITERIA_BY_ID[3], LENIENT)
    assert strict != lenient
    assert "RATING: [A/C/U]" in strict and "RATING: [A/C/U]" in lenient


def test_prompt_does_not_offer_not_relevant():
    """Applicability is settled before judgment; the judge is only offered A, C and U."""
    for policy in (STRICT, LENIENT):
        prompt = build_criterion_prompt(NOTE, CRITERIA_BY_ID[3], policy)
        assert "A/C/U/N" not in prompt
        assert "not relevant" not in prompt.lower()


def test_judge_still_maps_unexpected_n_answer(fake_capability):
    capability = fake_capability(default="RATING: N\nEXPLANATION: Does not apply.")
    assessment = asyncio.run(CriterionJudge(capability).judge(NOTE, CRITERIA_BY_ID[3]))
    assert assessment.rating == Rating.NOT_RELEVANT


# ---------------------------------------------------------------------------
# CriterionJudge
# ---------------------------------------------------------------------------

def test_judge_returns_judge_sourced_assessment(fake_capability):
    capability = fake_capability(answers={4: "RATING: U\nEXPLANATION: No plan recorded."})
    judge = CriterionJudge(capability)

    assessment = asyncio.run(judge.judge(NOTE, CRITERIA_BY_ID[4]))

    assert assessment.criterion_id == 4
    assert assessment.rating == Rating.UNACCEPTABLE
    assert assessment.explanation == "No plan recorded."
    assert assessment.source == AssessmentSource.JUDGE
    assert assessment.evidence_snippet == NOTE
    assert capability.criterion_calls == [4]


def test_judge_defaults_to_concern_on_unparseable_answer(fake_capability):
    capability = fake_capability(default="The note is hard to evaluate.")
    assessment = asyncio.run(CriterionJudge(capability).judge(NOTE, CRITERIA_BY_ID[1]))
    assert assessment.rating == Rating.CONCERN


def test_judge_uses_policy_system_prompt():
    seen = []

    class Recording:
        async def complete(self, system, prompt):
            seen.append(system)
            return "RATING: A\nEXPLANATION: ok"

    asyncio.run(CriterionJudge(Recording(), guidance_policy=LENIENT).judge(NOTE, CRITERIA_BY_ID[1]))
    assert seen == [SYSTEM_PROMPTS[LENIENT]]


def test_judge_rejects_unknown_policy(fake_capability):
    with pytest.raises(ValueError, match="Unknown guidance policy"):
        CriterionJudge(fake_capability(), guidance_policy="generous")


def test_judge_propagates_capability_failure(fake_capability):
    capability = fake_capability(fail_on={6})
    with pytest.raises(RuntimeError):
        asyncio.run(CriterionJudge(capability).judge(NOTE, CRITERIA_BY_ID[6]))


# ---------------------------------------------------------------------------
# Record summary
# ---------------------------------------------------------------------------

def _assessments():
    ratings = {1: Rating.UNACCEPTABLE, 4: Rating.CONCERN}
    return [
        CriterionAssessment(
            criterion_id=c.id,
            criterion_title=c.title,
            rating=ratings.get(c.id, Rating.ACCEPTABLE),
            explanation=f"Explanation {c.id}",
        )
        for c in CRITERIA_BY_ID.values()
    ]


def test_summary_prompt_lists_only_problem_criteria():
    assessments = _assessments()
    score = calculate_score(a.rating for a in assessments)
    prompt = build_summary_prompt(NOTE, assessments, score)

    assert f"- {CRITERIA_BY_ID[1].title}: Explanation 1" in prompt
    assert f"- {CRITERIA_BY_ID[4].title}: Explanation 4" in prompt
    assert "Explanation 2" not in prompt
    assert f"Unacceptable: 1/{score.total}" in prompt
    assert NOTE in prompt


def test_summary_prompt_truncates_long_note():
    assessments = [a.model_copy(update={"rating": Rating.ACCEPTABLE}) for a in _assessments()]
    score = calculate_score(a.rating for a in assessments)
    prompt = build_summary_prompt("y" * 800, assessments, score)

    assert "y" * 500 + "..." in prompt
    assert "y" * 501 not in prompt
    assert "- None" in prompt


def test_summarize_returns_capability_text(fake_capability):
    capability = fake_capability(summary="  Clear history; safety-netting missing.  ")
    assessments = _assessments()
    score = calculate_score(a.rating for a in assessments)

    summary = asyncio.run(CriterionJudge(capability).summarize(NOTE, assessments, score))

    assert summary == "Clear history; safety-netting missing."
    assert len(capability.summary_prompts) == 1
    assert capability.criterion_calls == []


def test_summarize_falls_back_when_capability_fails(fake_capability):
    capability = fake_capability(fail_summary=True)
    assessments = _assessments()
    score = calculate_score(a.rating for a in assessments)

    summary = asyncio.run(CriterionJudge(capability).summarize(NOTE, assessments, score))
    assert summary == SUMMARY_UNAVAILABLE


def test_summarize_falls_back_on_empty_answer(fake_capability):
    capability = fake_capability(summary="   ")
    assessments = _assessments()
    score = calculate_score(a.rating for a in assessments)

    summary = asyncio.run(CriterionJudge(capability).summarize(NOTE, assessments, score))
    assert summary == SUMMARY_UNAVAILABLE


# ---------------------------------------------------------------------------
# AnthropicCapability (client stubbed, no network)
# ---------------------------------------------------------------------------

def _response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


def _client(create):
    return SimpleNamespace(messages=SimpleNamespace(create=create))


def test_capability_joins_text_blocks():
    calls = []

    async def create(**kwargs):
        calls.append(kwargs)
        return SimpleNamespace(content=[
            SimpleNamespace(type="text", text="RATING: A\n"),
            SimpleNamespace(type="text", text="EXPLANATION: ok"),
        ])

    capability = AnthropicCapability(client=_client(create), requests_per_minute=60000, temperature=0)
    text = asyncio.run(capability.complete("system", "prompt"))

    assert text == "RATING: A\nEXPLANATION: ok"
    assert calls[0]["system"] == "system"
    assert calls[0]["temperature"] == 0
    assert calls[0]["messages"] == [{"role": "user", "content": "prompt"}]


def test_capability_retries_once_after_timeout():
    attempts = []

    async def create(**kwargs):
        attempts.append(1)
        if len(attempts) == 1:
            raise asyncio.TimeoutError()
        return _response("RATING: C")

    capability = AnthropicCapability(client=_client(create), requests_per_minute=60000, max_retries=1)
    assert asyncio.run(capability.complete("s", "p")) == "RATING: C"
    assert len(attempts) == 2


def test_capability_raises_judgment_error_when_retries_exhausted():
    attempts = []

    async def create(**kwargs):
        attempts.append(1)
        await asyncio.sleep(1)
        return _response("never")

    capability = AnthropicCapability(
        client=_client(create), requests_per_minute=60000, timeout=0.01, max_retries=1,
    )
    with pytest.raises(JudgmentError, match="after 2 attempts"):
        asyncio.run(capability.complete("s", "p"))
    assert len(attempts) == 2
