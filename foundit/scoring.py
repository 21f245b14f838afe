"""
Applicant scoring against an item's verification questions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from foundit.db import ClaimRecord, Question

MIN_CORRECT_CHOICES = (0, 1, 2, 3)


@dataclass(frozen=True)
class Score:
    correct: int
    total: int


def score_claim(
    questions: Optional[Sequence[Question]],
    answers: Optional[Sequence[Optional[int]]],
) -> Score:
    """
    Count the answers that match each question's correct option.

    Missing or null answers count as incorrect; answers past the last question
    are ignored, so ``0 <= correct <= total`` always holds.
    """
    qs = list(questions or [])
    given = list(answers or [])
    correct = 0
    for i, question in enumerate(qs):
        if i >= len(given):
            break
        answer = given[i]
        # bool is an int subclass; a stray True must not match index 1
        if isinstance(answer, int) and not isinstance(answer, bool):
            if answer == question.correct_index:
                correct += 1
    return Score(correct=correct, total=len(qs))


def filter_applicants(
    claims: Iterable[ClaimRecord],
    questions: Optional[Sequence[Question]],
    min_correct: int = 0,
) -> list[tuple[ClaimRecord, Score]]:
    """Score every claim and keep those with at least ``min_correct`` right."""
    scored = []
    for claim in claims:
        score = score_claim(questions, claim.answers)
        if score.correct >= min_correct:
            scored.append((claim, score))
    return scored
