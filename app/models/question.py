"""Question models for generated assessments.

A generated questionnaire is an ordered list of questions of eight kinds:

  Free input:
    - long_text: multi-line narrative answer
    - numeric: number input bounded by min/max

  Option based (``options`` required and non-empty):
    - single_choice: pick exactly one option
    - multi_choice: pick any number of options
    - rating_likert: discrete labelled intensity scale
    - rating_frequency: never/rarely/sometimes/often/always style scale

  Bounded scales (``min`` and ``max`` required):
    - rating_numeric: integer scale such as 0-10 pain
    - rating_slider: continuous slider with optional step

Every variant shares the same superset of fields so that the persisted
shape of a question and the JSON the LLM is asked to produce stay identical.
``Question`` is a discriminated union keyed by ``type``; per-variant
requirements are enforced when the model is constructed, so a numeric
question without bounds or a choice question without options never
validates.
"""

from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import Field, TypeAdapter, field_validator, model_validator

from app.models.base import CamelModel
from app.models.enums import ConditionOperator, QuestionType

Number = Union[int, float]
OptionValue = Union[str, int, float]


class QuestionOption(CamelModel):
    """A selectable option. ``value`` keeps the type the generator gave it."""

    id: str
    label: str
    value: OptionValue


class QuestionCondition(CamelModel):
    """Show the owning question only when a prior answer satisfies this."""

    question_id: str
    operator: ConditionOperator
    value: Any


# --- Base question type ---


class BaseQuestion(CamelModel):
    """Fields shared by all question types."""

    id: str = Field(..., min_length=1)
    label: str = Field(..., min_length=1)
    description: Optional[str] = None
    required: bool = True
    options: Optional[List[QuestionOption]] = None
    min: Optional[Number] = None
    max: Optional[Number] = None
    step: Optional[Number] = None
    conditions: List[QuestionCondition] = Field(default_factory=list)

    @field_validator("conditions", mode="before")
    @classmethod
    def _none_conditions(cls, value):
        return [] if value is None else value

    @property
    def question_type(self) -> QuestionType:
        return QuestionType(self.type)  # type: ignore[attr-defined]

    @property
    def option_values(self) -> List[str]:
        """Option values as text, the form answers are compared in."""
        return [str(opt.value) for opt in self.options or []]


class _OptionQuestion(BaseQuestion):
    options: List[QuestionOption] = Field(..., min_length=1)


class _BoundedQuestion(BaseQuestion):
    min: Number
    max: Number

    @model_validator(mode="after")
    def _check_bounds(self):
        if self.min > self.max:
            raise ValueError(f"min must be <= max for question {self.id}")
        return self


# --- Concrete question types ---


class LongTextQuestion(BaseQuestion):
    type: Literal["long_text"] = "long_text"


class SingleChoiceQuestion(_OptionQuestion):
    type: Literal["single_choice"] = "single_choice"


class MultiChoiceQuestion(_OptionQuestion):
    type: Literal["multi_choice"] = "multi_choice"


class RatingLikertQuestion(_OptionQuestion):
    type: Literal["rating_likert"] = "rating_likert"


class RatingFrequencyQuestion(_OptionQuestion):
    type: Literal["rating_frequency"] = "rating_frequency"


class NumericQuestion(_BoundedQuestion):
    type: Literal["numeric"] = "numeric"


class RatingNumericQuestion(_BoundedQuestion):
    type: Literal["rating_numeric"] = "rating_numeric"


class RatingSliderQuestion(_BoundedQuestion):
    type: Literal["rating_slider"] = "rating_slider"


Question = Annotated[
    Union[
        LongTextQuestion,
        SingleChoiceQuestion,
        MultiChoiceQuestion,
        NumericQuestion,
        RatingLikertQuestion,
        RatingNumericQuestion,
        RatingSliderQuestion,
        RatingFrequencyQuestion,
    ],
    Field(discriminator="type"),
]

question_list_adapter: TypeAdapter[List[Question]] = TypeAdapter(List[Question])


def parse_questions(raw: List[dict]) -> List[Question]:
    """Build typed questions from plain dicts (LLM output or a stored document)."""
    return question_list_adapter.validate_python(raw)
