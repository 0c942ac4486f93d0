"""Shared fixtures: an in-process stand-in for the judgment capability."""

import asyncio
import json
import re
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from consult_audit.llm_judge.prompts import NAME_DETECTION_SYSTEM, SUMMARY_SYSTEM


class FakeCapability:
    """
    Canned judgment capability.

    answers: criterion id -> answer text; anything missing gets `default`.
    names: returned by the name detector.
    summary: returned for record summaries; fail_summary makes those calls raise.
    fail_on: criterion ids whose calls raise RuntimeError.
    """

    def __init__(self, answers=None, default="RATING: A\nEXPLANATION: Meets the standard.",
                 names=None, fail_on=(), delay=0.0,
                 summary="Well documented consultation.", fail_summary=False):
        self.answers = answers or {}
        self.default = default
        self.names = names or []
        self.fail_on = set(fail_on)
        self.delay = delay
        self.summary = summary
        self.fail_summary = fail_summary
        self.criterion_calls: list[int] = []
        self.name_calls = 0
        self.summary_prompts: list[str] = []

    @property
    def total_calls(self) -> int:
        return len(self.criterion_calls) + self.name_calls + len(self.summary_prompts)

    async def complete(self, system: str, prompt: str) -> str:
        if self.delay:
            await asyncio.sleep(self.delay)
        if system == NAME_DETECTION_SYSTEM:
            self.name_calls += 1
            return json.dumps({"names": [{"name": n} for n in self.names]})
        if system == SUMMARY_SYSTEM:
            self.summary_prompts.append(prompt)
            if self.fail_summary:
                raise RuntimeError("summary unavailable")
            return self.summary

        criterion_id = int(re.search(r"CRITERION (\d+):", prompt).group(1))
        self.criterion_calls.append(criterion_id)
        if criterion_id in self.fail_on:
            raise RuntimeError(f"capability down for criterion {criterion_id}")
        return self.answers.get(criterion_id, self.default)


@pytest.fixture
def fake_capability():
    """Factory for FakeCapability instances."""
    return FakeCapability


def make_block(date: str, header: str, *lines: str) -> str:
    return "\n".join([f"{date} {header}", *lines])


@pytest.fixture
def block():
    return make_block
