import pytest

from placement_cell.exam.answers import ChoiceSet, NO_ANSWER, TextAnswer, normalize_answer
from placement_cell.exam.scoring import (
    is_passed, score_exam, score_question, section_breakdown, unknown_question_ids,
)

MCQ = {"question_id": "q1", "type": "MCQ", "options": ["1", "2", "3", "4"],
       "correct_answer": "2", "marks": 1, "negative_marks": 0.25}
MULTI = {"question_id": "q2", "type": "MultiSelect", "options": ["A", "B", "C", "D"],
         "correct_answer": ["A", "B"], "marks": 4}


@pytest.mark.parametrize("answer", ["2", 2, "1", ["2"]])
def test_mcq_value_and_index_match(answer):
    result = score_question(MCQ, answer)
    assert result.correct
    assert result.score == 1


def test_mcq_wrong_answer_pays_negative_marks():
    result = score_question(MCQ, "3")
    assert not result.correct
    assert result.score == -0.25


def test_mcq_negative_marking_can_be_disabled():
    assert score_question(MCQ, "3", negative_marking=False).score == 0


def test_unanswered_is_never_penalized():
    result = score_question(MCQ, None)
    assert not result.attempted
    assert result.score == 0
    assert score_question(MCQ, "   ").score == 0


def test_multi_select_partial_credit():
    result = score_question(MULTI, ["A", "C"])
    assert result.score == pytest.approx(0.25 * 4)
    assert not result.correct


@pytest.mark.parametrize("answer", [["A", "B"], ["B", "A"], "A,B", {"A": True, "B": True, "C": False}, [0, 1]])
def test_multi_select_answer_shapes(answer):
    result = score_question(MULTI, answer)
    assert result.correct
    assert result.score == 4


def test_multi_select_never_negative():
    assert score_question(MULTI, ["C", "D"]).score == 0


def test_multiple_select_alias():
    question = {**MULTI, "type": "MultipleSelect"}
    assert score_question(question, ["A", "B"]).score == 4


def test_true_false_case_insensitive():
    question = {"question_id": "q3", "type": "TrueFalse", "options": ["True", "False"],
                "correct_answer": "True", "marks": 1}
    assert score_question(question, True).correct
    assert score_question(question, "true").correct
    assert not score_question(question, "False").correct


def test_short_answer_trimmed_case_insensitive():
    question = {"question_id": "q4", "type": "ShortAnswer", "correct_answer": "Paris", "marks": 3}
    assert score_question(question, "  paris ").score == 3
    assert score_question(question, "Lyon").score == 0


def test_coding_is_not_auto_graded():
    question = {"question_id": "q5", "type": "Coding", "correct_answer": "print(1)", "marks": 5}
    result = score_question(question, "print(1)")
    assert result.score == 0
    assert not result.auto_graded


def test_normalize_answer_tagged_union():
    assert normalize_answer(MCQ, None) is NO_ANSWER
    assert normalize_answer(MCQ, 2.0) == TextAnswer("2")
    assert normalize_answer(MULTI, "B, A, B") == ChoiceSet(("B", "A"))


def test_score_exam_uses_question_marks_not_total_marks():
    exam = {"total_marks": 100, "sections": [{"name": "S", "questions": [MCQ, MULTI]}]}
    sheet = score_exam(exam, [{"question_id": "q1", "answer": "2"}])
    assert sheet.max_score == 5
    assert sheet.total_score == 1
    assert sheet.percentage_score == pytest.approx(20)


def test_score_exam_total_floored_at_zero():
    exam = {"sections": [{"name": "S", "questions": [MCQ]}]}
    sheet = score_exam(exam, [{"question_id": "q1", "answer": "4"}])
    assert sheet.total_score == 0
    assert sheet.percentage_score == 0


def test_percentage_zero_when_no_marks():
    sheet = score_exam({"sections": []}, [])
    assert sheet.max_score == 0
    assert sheet.percentage_score == 0


def test_later_response_for_same_question_wins():
    exam = {"sections": [{"name": "S", "questions": [MCQ]}]}
    sheet = score_exam(exam, [{"question_id": "q1", "answer": "3"}, {"question_id": "q1", "answer": "2"}])
    assert sheet.total_score == 1


def test_pass_boundary_is_inclusive():
    assert is_passed(40.0, {"passing_percentage": 40})
    assert not is_passed(39.99, {"passing_percentage": 40})


def test_unknown_question_ids():
    exam = {"sections": [{"name": "S", "questions": [MCQ]}]}
    assert unknown_question_ids(exam, [{"question_id": "q1"}, {"question_id": "nope"}]) == ["nope"]


def test_section_breakdown_follows_exam_order():
    exam = {"sections": [
        {"name": "Quant", "questions": [MCQ]},
        {"name": "Verbal", "questions": [MULTI]},
    ]}
    sheet = score_exam(exam, [{"question_id": "q2", "answer": ["A", "B"]}, {"question_id": "q1", "answer": "3"}])
    sections = section_breakdown(exam, sheet.responses_as_dicts())
    assert [s["name"] for s in sections] == ["Quant", "Verbal"]
    assert sections[0]["incorrect"] == 1
    assert sections[1]["correct"] == 1
    assert sections[1]["score"] == 4
