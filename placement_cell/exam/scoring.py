"""
Scoring Engine

Scores a submission against an exam definition:

- MCQ / TrueFalse: all-or-nothing. Matches on the trimmed value, on an
  option index, or on the option position. Wrong answers lose the
  question's negative_marks when negative marking is enabled.
- MultiSelect: partial credit. Each missed option costs its share of the
  marks, each wrong pick costs half a share. Never below zero.
- ShortAnswer: case-insensitive exact match.
- Coding: not auto-graded, scores 0 until reviewed.

Every question of every section is scored, answered or not, so max_score
is always the sum of question marks at scoring time. The exam's stored
total_marks is never used here.
"""

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple

from placement_cell.exam.answers import (
    Answer, ChoiceSet, NoAnswer, TextAnswer,
    normalize_answer, normalize_answer_key, parse_index, question_type,
)
from placement_cell.schemas.schemas import QuestionType

logger = logging.getLogger(__name__)

# Weight of one wrong MultiSelect pick relative to one correct pick
WRONG_SELECTION_PENALTY = 0.5


@dataclass
class ScoredResponse:
    question_id: str
    section: str
    answer: Any
    score: float
    max_score: float
    correct: bool
    attempted: bool
    auto_graded: bool = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ScoreSheet:
    total_score: float
    max_score: float
    percentage_score: float
    scored_responses: List[ScoredResponse] = field(default_factory=list)

    def responses_as_dicts(self) -> List[dict]:
        return [r.to_dict() for r in self.scored_responses]


def iter_questions(exam: dict) -> Iterator[Tuple[dict, dict]]:
    """Yield (section, question) for every question in section order."""
    for section in exam.get("sections") or []:
        for question in section.get("questions") or []:
            yield section, question


def question_marks(question: dict) -> float:
    marks = question.get("marks")
    return float(marks) if marks is not None else 1.0


def percentage(score: float, max_score: float) -> float:
    if not max_score:
        return 0.0
    return score / max_score * 100


def passing_percentage(exam: dict) -> float:
    return float(exam.get("passing_percentage") or 0)


def is_passed(percentage_score: float, exam: dict) -> bool:
    return percentage_score >= passing_percentage(exam)


# ------------------------------------------------------------
# Per question type
# ------------------------------------------------------------

def match_choice(question: dict, answer: TextAnswer, key: Answer) -> bool:
    """MCQ / TrueFalse matching."""
    if not isinstance(key, TextAnswer):
        return False
    student, correct = answer.value, key.value
    options = [str(o).strip() for o in question.get("options") or []]
    if question_type(question) == QuestionType.true_false.value:
        # Keys stored as booleans normalize to "true"/"false"
        student, correct = student.casefold(), correct.casefold()
        options = [o.casefold() for o in options]

    if student == correct:
        return True

    index = parse_index(student)
    if index is not None and 0 <= index < len(options) and options[index] == correct:
        return True

    # Same position in the option list
    if student in options and correct in options:
        return options.index(student) == options.index(correct)
    return False


def score_multi_select(answer: ChoiceSet, key: Answer, max_marks: float) -> Tuple[float, bool]:
    correct_set = key.values if isinstance(key, ChoiceSet) else ()
    if not correct_set:
        return 0.0, False

    correct_count = sum(1 for v in answer.values if v in correct_set)
    incorrect_count = len(answer.values) - correct_count

    if correct_count == len(correct_set) and incorrect_count == 0:
        return max_marks, True

    earned = (correct_count / len(correct_set)) * max_marks
    penalty = (incorrect_count / len(correct_set)) * max_marks * WRONG_SELECTION_PENALTY
    return max(0.0, earned - penalty), False


def match_short_answer(answer: TextAnswer, key: Answer) -> bool:
    if not isinstance(key, TextAnswer):
        return False
    return answer.value.casefold() == key.value.casefold()


def score_question(
    question: dict,
    raw_answer: Any,
    section_name: str = "",
    negative_marking: bool = True
) -> ScoredResponse:
    max_marks = question_marks(question)
    qtype = question_type(question)
    answer = normalize_answer(question, raw_answer)
    key = normalize_answer_key(question)

    result = ScoredResponse(
        question_id=str(question.get("question_id")),
        section=section_name,
        answer=raw_answer,
        score=0.0,
        max_score=max_marks,
        correct=False,
        attempted=not isinstance(answer, NoAnswer),
    )
    if isinstance(answer, NoAnswer):
        return result

    if qtype in (QuestionType.mcq.value, QuestionType.true_false.value):
        result.correct = isinstance(answer, TextAnswer) and match_choice(question, answer, key)
        if result.correct:
            result.score = max_marks
        elif negative_marking:
            result.score = -float(question.get("negative_marks") or 0)
    elif qtype == QuestionType.multi_select.value:
        result.score, result.correct = score_multi_select(answer, key, max_marks)
    elif qtype == QuestionType.short_answer.value:
        result.correct = isinstance(answer, TextAnswer) and match_short_answer(answer, key)
        result.score = max_marks if result.correct else 0.0
    else:
        result.auto_graded = False

    return result


def index_responses(responses: Iterable[Any]) -> Dict[str, Any]:
    """Map question_id -> raw answer. Later entries win."""
    answers = {}
    for response in responses or []:
        if hasattr(response, "question_id"):
            answers[str(response.question_id)] = response.answer
        else:
            answers[str(response.get("question_id"))] = response.get("answer")
    return answers


def score_exam(exam: dict, responses: Iterable[Any], negative_marking: bool = True) -> ScoreSheet:
    """
    Score every question of the exam against the submitted responses.

    Args:
        exam: exam document (sections -> questions with answer keys)
        responses: [{"question_id": ..., "answer": ...}] or ResponseItem objects
        negative_marking: subtract negative_marks for wrong MCQ/TrueFalse answers

    Returns:
        ScoreSheet with the per-question breakdown. total_score is floored
        at 0 so heavy negative marking cannot produce a negative percentage.
    """
    answers = index_responses(responses)
    scored = [
        score_question(question, answers.get(str(question.get("question_id"))),
                       section.get("name", ""), negative_marking)
        for section, question in iter_questions(exam)
    ]

    total = max(0.0, sum(r.score for r in scored))
    max_score = sum(r.max_score for r in scored)
    pct = percentage(total, max_score)

    logger.debug(
        "Scored exam %s: %s/%s (%.2f%%) over %d questions",
        exam.get("_id"), total, max_score, pct, len(scored)
    )
    return ScoreSheet(total_score=total, max_score=max_score, percentage_score=pct, scored_responses=scored)


def unknown_question_ids(exam: dict, responses: Iterable[Any]) -> List[str]:
    known = {str(q.get("question_id")) for _, q in iter_questions(exam)}
    return [qid for qid in index_responses(responses) if qid not in known]


def section_breakdown(exam: dict, scored_responses: List[dict]) -> List[dict]:
    """Group scored responses by section, in the exam's section order."""
    order = [s.get("name", "") for s in exam.get("sections") or []]
    groups: Dict[str, dict] = {}
    for response in scored_responses:
        name = response.get("section") or ""
        group = groups.setdefault(name, {
            "name": name, "score": 0.0, "max_score": 0.0,
            "correct": 0, "incorrect": 0, "attempted": 0, "responses": []
        })
        group["score"] += response.get("score", 0)
        group["max_score"] += response.get("max_score", 0)
        if response.get("attempted"):
            group["attempted"] += 1
            if response.get("correct"):
                group["correct"] += 1
            else:
                group["incorrect"] += 1
        group["responses"].append(response)

    def position(name: str) -> int:
        return order.index(name) if name in order else len(order)

    return sorted(groups.values(), key=lambda g: position(g["name"]))


def find_question(exam: dict, question_id: str) -> Optional[Tuple[dict, dict]]:
    for section, question in iter_questions(exam):
        if str(question.get("question_id")) == str(question_id):
            return section, question
    return None
