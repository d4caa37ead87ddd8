"""
Answer normalization.

Submitted answers (and answer keys) arrive in whatever shape the client or
the question file used: a string, a number, a bool, a list, a comma
separated string, or a {"option": true} selection map. They are turned
into exactly one of three variants here, once, before any scoring:

    NoAnswer    - nothing was submitted
    TextAnswer  - single value (MCQ, TrueFalse, ShortAnswer, Coding)
    ChoiceSet   - ordered, de-duplicated selection (MultiSelect)
"""

import math
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple, Union

from placement_cell.schemas.schemas import QuestionType


@dataclass(frozen=True)
class NoAnswer:
    pass


@dataclass(frozen=True)
class TextAnswer:
    value: str


@dataclass(frozen=True)
class ChoiceSet:
    values: Tuple[str, ...]


Answer = Union[NoAnswer, TextAnswer, ChoiceSet]

NO_ANSWER = NoAnswer()

MULTI_SELECT_TYPES = {QuestionType.multi_select.value, "MultipleSelect"}


def question_type(question: dict) -> str:
    qtype = question.get("type") or QuestionType.mcq.value
    if qtype in MULTI_SELECT_TYPES:
        return QuestionType.multi_select.value
    return qtype


def to_text(value: Any) -> str:
    """String form of a scalar, matching what the exam page sends (true, 2, 2.5)."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join(to_text(v) for v in value)
    return str(value)


def parse_index(text: str) -> Optional[int]:
    """Option index encoded in text ("2", "2.0"), or None when not numeric."""
    try:
        number = float(text)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return int(number)


def split_choices(raw: Any) -> List[str]:
    if isinstance(raw, dict):
        return [str(key).strip() for key, selected in raw.items() if selected is True]
    if isinstance(raw, (list, tuple, set)):
        return [to_text(v).strip() for v in raw if v is not None]
    return [part.strip() for part in to_text(raw).split(",")]


def _dedupe(values: Sequence[str]) -> Tuple[str, ...]:
    seen = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


def resolve_option_indices(values: Sequence[str], options: Sequence[str]) -> Tuple[str, ...]:
    """
    Translate an all-numeric selection into option values.
    Out of range indices are dropped. Mixed selections are returned as-is.
    """
    if not options or not values:
        return tuple(values)
    indices = [parse_index(v) for v in values]
    if any(i is None for i in indices):
        return tuple(values)
    return _dedupe([str(options[i]).strip() for i in indices if 0 <= i < len(options)])


def _normalize(qtype: str, raw: Any) -> Answer:
    if raw is None:
        return NO_ANSWER
    if qtype == QuestionType.multi_select.value:
        values = _dedupe(split_choices(raw))
        return ChoiceSet(values) if values else NO_ANSWER
    if isinstance(raw, (list, tuple)) and len(raw) == 1:
        raw = raw[0]
    text = to_text(raw).strip()
    return TextAnswer(text) if text else NO_ANSWER


def normalize_answer(question: dict, raw: Any) -> Answer:
    """Normalize a student's raw answer for this question."""
    answer = _normalize(question_type(question), raw)
    if isinstance(answer, ChoiceSet):
        return ChoiceSet(resolve_option_indices(answer.values, question.get("options") or []))
    return answer


def normalize_answer_key(question: dict) -> Answer:
    """Normalize the stored correct answer for this question."""
    return _normalize(question_type(question), question.get("correct_answer"))
