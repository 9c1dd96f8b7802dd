"""
Question type registry.

Maps each question type to an immutable handler bundle: display name,
the prompt fragment used when asking an AI to write such a question, whether
its answers are free text, and a pure answer validator.

The mapping is built once and passed to the components that need it
(data generator, sentiment analyzer, answer validation).
"""

import json
import re
from dataclasses import dataclass
from datetime import date
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence

SCALE_MIN = 1
SCALE_MAX = 10

EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)*$")
URL_PATTERN = re.compile(r"^https?://\S+$")
NUMBER_PATTERN = re.compile(r"^-?\d+(\.\d+)?$")


class QuestionType(str, Enum):
    text = "text"
    scale = "scale"
    pick_one = "pick_one"
    pick_any = "pick_any"
    email = "email"
    url = "url"
    number = "number"
    date = "date"


# validator(value, options) -> error message, or None when valid
Validator = Callable[[str, Sequence[str]], Optional[str]]


@dataclass(frozen=True)
class QuestionTypeHandler:
    type: QuestionType
    display_name: str
    ai_prompt: str
    free_text: bool
    validate: Validator


def _accept_any(value: str, options: Sequence[str]) -> Optional[str]:
    return None


def _validate_scale(value: str, options: Sequence[str]) -> Optional[str]:
    try:
        number = int(str(value).strip())
    except ValueError:
        return f"must be a whole number from {SCALE_MIN} to {SCALE_MAX}"
    if not SCALE_MIN <= number <= SCALE_MAX:
        return f"must be between {SCALE_MIN} and {SCALE_MAX}"
    return None


def _validate_pick_one(value: str, options: Sequence[str]) -> Optional[str]:
    if value not in options:
        return "must be one of the question's options"
    return None


def _validate_pick_any(value: str, options: Sequence[str]) -> Optional[str]:
    try:
        picked = json.loads(value)
    except (TypeError, json.JSONDecodeError):
        return "must be a JSON list of options"
    if not isinstance(picked, list):
        return "must be a JSON list of options"
    unknown = [item for item in picked if item not in options]
    if unknown:
        return f"contains unknown options: {', '.join(map(str, unknown))}"
    return None


def _validate_email(value: str, options: Sequence[str]) -> Optional[str]:
    return None if EMAIL_PATTERN.match(value) else "must be a valid email"


def _validate_url(value: str, options: Sequence[str]) -> Optional[str]:
    return None if URL_PATTERN.match(value) else "must be a valid URL"


def _validate_number(value: str, options: Sequence[str]) -> Optional[str]:
    return None if NUMBER_PATTERN.match(str(value)) else "must be a number"


def _validate_date(value: str, options: Sequence[str]) -> Optional[str]:
    try:
        date.fromisoformat(str(value))
    except ValueError:
        return "must be a valid date"
    return None


QUESTION_TYPES: Mapping[QuestionType, QuestionTypeHandler] = MappingProxyType({
    QuestionType.text: QuestionTypeHandler(
        QuestionType.text, "Open Ended",
        "Create an open-ended question that invites a written answer", True, _accept_any,
    ),
    QuestionType.scale: QuestionTypeHandler(
        QuestionType.scale, "Sliding Scale",
        "Create a question answered on a 1-10 scale and describe both ends in the text", False, _validate_scale,
    ),
    QuestionType.pick_one: QuestionTypeHandler(
        QuestionType.pick_one, "Single Choice",
        "Create a question suitable for single choice (select one)", False, _validate_pick_one,
    ),
    QuestionType.pick_any: QuestionTypeHandler(
        QuestionType.pick_any, "Multiple Choice",
        "Create a question suitable for multiple choice (select any that apply)", False, _validate_pick_any,
    ),
    QuestionType.email: QuestionTypeHandler(
        QuestionType.email, "Email", "Ask for an email address", False, _validate_email,
    ),
    QuestionType.url: QuestionTypeHandler(
        QuestionType.url, "Website", "Ask for a web address", False, _validate_url,
    ),
    QuestionType.number: QuestionTypeHandler(
        QuestionType.number, "Number", "Ask for a numeric value", False, _validate_number,
    ),
    QuestionType.date: QuestionTypeHandler(
        QuestionType.date, "Date", "Ask for a calendar date", False, _validate_date,
    ),
})


def handler_for(
    question_type: str,
    registry: Mapping[QuestionType, QuestionTypeHandler] = QUESTION_TYPES,
) -> QuestionTypeHandler:
    """Look up the handler for a stored type string.

    Raises:
        ValueError: if the type is unknown to ``registry``
    """
    try:
        return registry[QuestionType(question_type)]
    except (KeyError, ValueError):
        raise ValueError(f"Unknown question type: {question_type}") from None


def is_free_text(
    question_type: str,
    registry: Mapping[QuestionType, QuestionTypeHandler] = QUESTION_TYPES,
) -> bool:
    try:
        return handler_for(question_type, registry).free_text
    except ValueError:
        return False
