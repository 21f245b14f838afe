import unittest

from foundit.db import ClaimRecord, Question
from foundit.scoring import Score, filter_applicants, score_claim


def _questions():
    return [
        Question(question="Color?", options=["A", "B", "C"], correct_index=1),
        Question(question="Brand?", options=["X", "Y", "Z"], correct_index=0),
    ]


class ScoreClaimTests(unittest.TestCase):
    def test_partial_match(self):
        self.assertEqual(score_claim(_questions(), [1, 2]), Score(correct=1, total=2))

    def test_all_correct(self):
        self.assertEqual(score_claim(_questions(), [1, 0]), Score(correct=2, total=2))

    def test_no_answers_counts_as_incorrect(self):
        self.assertEqual(score_claim(_questions(), []), Score(correct=0, total=2))

    def test_missing_questions(self):
        self.assertEqual(score_claim(None, [0, 1]), Score(correct=0, total=0))
        self.assertEqual(score_claim([], None), Score(correct=0, total=0))

    def test_null_and_extra_answers(self):
        score = score_claim(_questions(), [None, 0, 2, 2])
        self.assertEqual(score, Score(correct=1, total=2))

    def test_bool_is_not_an_index(self):
        self.assertEqual(score_claim(_questions(), [True, 0]).correct, 1)

    def test_correct_never_exceeds_total(self):
        questions = _questions() + [
            Question(question="Size?", options=["S", "M", "L"], correct_index=2)
        ]
        for answers in ([], [0], [1, 0], [1, 0, 2], [2, 2, 2, 2, 2], [None] * 3):
            score = score_claim(questions, answers)
            self.assertGreaterEqual(score.correct, 0)
            self.assertLessEqual(score.correct, score.total)
            self.assertEqual(score.total, 3)


class FilterApplicantsTests(unittest.TestCase):
    def test_threshold_keeps_only_matching_claims(self):
        claims = [
            ClaimRecord(id="full", item_id="i", seeker_id="a", answers=[1, 0]),
            ClaimRecord(id="half", item_id="i", seeker_id="b", answers=[1, 2]),
            ClaimRecord(id="none", item_id="i", seeker_id="c", answers=[0, 2]),
        ]
        kept = filter_applicants(claims, _questions(), min_correct=2)
        self.assertEqual([c.id for c, _ in kept], ["full"])
        self.assertEqual(kept[0][1], Score(correct=2, total=2))

    def test_zero_threshold_keeps_everyone(self):
        claims = [
            ClaimRecord(id="x", item_id="i", seeker_id="a", answers=[]),
            ClaimRecord(id="y", item_id="i", seeker_id="b", answers=[1, 0]),
        ]
        self.assertEqual(len(filter_applicants(claims, _questions(), 0)), 2)


if __name__ == "__main__":
    unittest.main()
