"""Validation of submitted answers against an assessment's questions.

Pure functions, no I/O. Errors accumulate rather than failing fast so the
caller can report every problem with a submission in one response.
"""

from dataclasses import dataclass, field
import math
from typing import Dict, List, Optional, Sequence

from app.models.question import (
    BaseQuestion,
    LongTextQuestion,
    MultiChoiceQuestion,
    NumericQuestion,
    RatingFrequencyQuestion,
    RatingLikertQuestion,
    RatingNumericQuestion,
    RatingSliderQuestion,
    SingleChoiceQuestion,
)
from app.models.response import Answer, ValueKind


@dataclass
class ValidationResult:
    valid: bool
    errors: List[str] = field(default_factory=list)


def _check_bounds(question: BaseQuestion, value: float, noun: str) -> Optional[str]:
    if not math.isfinite(value):
        return f"{noun} for {question.id} must be a finite number"
    if question.min is not None and value < question.min:
        return f"{noun} for {question.id} must be at least {question.min}"
    if question.max is not None and value > question.max:
        return f"{noun} for {question.id} must be at most {question.max}"
    return None


def _check_single_option(answer: Answer, question: BaseQuestion, noun: str) -> Optional[str]:
    if answer.value_kind not in (ValueKind.TEXT, ValueKind.NUMBER):
        return f"Answer for {question.id} must be a single option"
    if question.options and str(answer.value) not in question.option_values:
        return f"Invalid {noun} for {question.id}"
    return None


def validate_answer(answer: Answer, question: BaseQuestion) -> Optional[str]:
    """Check one answer against its question. Returns an error message or None."""
    if answer.question_id != question.id:
        return "Answer question ID does not match"

    if answer.question_type != question.type:
        return f"Answer type mismatch for question {question.id}"

    kind = answer.value_kind

    if isinstance(question, LongTextQuestion):
        if kind is not ValueKind.TEXT:
            return f"Answer for {question.id} must be a string"
        if question.required and not answer.value.strip():
            return f"Answer for {question.id} is required"
        return None

    if isinstance(question, SingleChoiceQuestion):
        return _check_single_option(answer, question, "option")

    if isinstance(question, MultiChoiceQuestion):
        if kind is not ValueKind.LIST:
            return f"Answer for {question.id} must be an array"
        if question.required and not answer.value:
            return f"At least one option required for {question.id}"
        if question.options:
            allowed = question.option_values
            for item in answer.value:
                if str(item) not in allowed:
                    return f"Invalid option in {question.id}"
        return None

    if isinstance(question, (NumericQuestion, RatingNumericQuestion)):
        if kind is not ValueKind.NUMBER:
            return f"Answer for {question.id} must be a number"
        return _check_bounds(question, answer.value, "Answer")

    if isinstance(question, (RatingLikertQuestion, RatingFrequencyQuestion)):
        return _check_single_option(answer, question, "rating")

    if isinstance(question, RatingSliderQuestion):
        if kind is not ValueKind.NUMBER:
            return f"Answer for {question.id} must be a number"
        return _check_bounds(question, answer.value, "Slider value")

    return f"Unknown question type: {getattr(question, 'type', None)}"


def validate_answers(
    answers: Sequence[Answer], questions: Sequence[BaseQuestion]
) -> ValidationResult:
    """Validate a full submission against an assessment's questions."""
    errors: List[str] = []
    answered_ids = {answer.question_id for answer in answers}
    by_id: Dict[str, BaseQuestion] = {question.id: question for question in questions}

    for question in questions:
        if question.required and question.id not in answered_ids:
            errors.append(f"Required question not answered: {question.id}")

    for answer in answers:
        question = by_id.get(answer.question_id)
        if question is None:
            errors.append(f"Answer provided for unknown question: {answer.question_id}")
            continue

        error = validate_answer(answer, question)
        if error:
            errors.append(error)

    return ValidationResult(valid=not errors, errors=errors)
