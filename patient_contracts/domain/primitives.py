"""Primitive value validators.

Atoms every other schema is built from: bounded strings, ISO dates and
timestamps, identifiers, and the ``ContractModel`` base class that fixes the
wire conventions (camelCase keys, unknown keys rejected, immutable output).

Architecture:
    - Pure domain module, depends only on pydantic
    - Constraints are expressed as ``Annotated`` metadata so that projections
      copying a field also copy its constraints
"""

import re
from datetime import date, datetime, timezone
from typing import Annotated, Any, Literal

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    Strict,
    StringConstraints,
)
from pydantic_core import PydanticCustomError


def to_camel(value: str) -> str:
    """Return ``value`` converted from snake_case to camelCase."""
    first, *rest = value.split("_")
    return first + "".join(token.capitalize() for token in rest)


class ContractModel(BaseModel):
    """Base model for every node of the patient contract.

    Wire keys are camelCase; snake_case field names are accepted too so that
    Python callers can build models directly. Unknown keys are rejected and
    normalized nodes are immutable.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
        str_strip_whitespace=True,
    )


# ============================================================================
# Format patterns
# ============================================================================

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
PHONE_PATTERN = r"^\+?[0-9(][0-9\s().-]{5,18}[0-9]$"
EMAIL_PATTERN = r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$"
TAG_PATTERN = r"^[a-z0-9-_]+$"
LANGUAGE_PATTERN = r"^[a-z]{2}(-[A-Z]{2})?$"
SSN_PATTERN = r"^\d{3}-\d{2}-\d{4}$"
TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"
URL_PATTERN = r"^https?://\S+$"
NAME_PATTERN = r"^[A-Za-zÀ-ÿ\s'-]+$"
OPTIONAL_NAME_PATTERN = r"^[A-Za-zÀ-ÿ\s'-]*$"


# ============================================================================
# Dates and timestamps
# ============================================================================

def _iso_date_only(value: Any) -> Any:
    """Reject anything that is not a ``date`` or a ``YYYY-MM-DD`` string.

    Pydantic would otherwise accept unix timestamps and full datetimes.
    """
    if isinstance(value, datetime):
        raise ValueError("Expected a calendar date (YYYY-MM-DD), got a timestamp")
    if isinstance(value, date):
        return value
    if isinstance(value, str) and ISO_DATE_PATTERN.match(value.strip()):
        return value.strip()
    raise ValueError("Date must be in ISO format YYYY-MM-DD")


def _iso_timestamp(value: Any) -> Any:
    if isinstance(value, (datetime, str)):
        return value
    raise ValueError("Timestamp must be an ISO 8601 string")


def _assume_utc(value: datetime) -> datetime:
    # Naive and aware timestamps must stay comparable
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


DateOnly = Annotated[date, BeforeValidator(_iso_date_only)]
IsoDateTime = Annotated[datetime, BeforeValidator(_iso_timestamp), AfterValidator(_assume_utc)]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def years_before(day: date, years: int) -> date:
    """Return the same calendar day ``years`` earlier (Feb 29 falls back to Feb 28)."""
    try:
        return day.replace(year=day.year - years)
    except ValueError:
        return day.replace(year=day.year - years, day=28)


def age_on(date_of_birth: date, day: date) -> int:
    """Whole years between ``date_of_birth`` and ``day``."""
    had_birthday = (day.month, day.day) >= (date_of_birth.month, date_of_birth.day)
    return day.year - date_of_birth.year - (0 if had_birthday else 1)


# ============================================================================
# Strings and identifiers
# ============================================================================

NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]
PhoneNumber = Annotated[str, StringConstraints(min_length=7, max_length=20, pattern=PHONE_PATTERN)]
EmailAddress = Annotated[str, StringConstraints(max_length=254, pattern=EMAIL_PATTERN)]
Tag = Annotated[str, StringConstraints(max_length=50, pattern=TAG_PATTERN)]
LanguageCode = Annotated[str, StringConstraints(max_length=10, pattern=LANGUAGE_PATTERN)]
SocialSecurityNumber = Annotated[str, StringConstraints(pattern=SSN_PATTERN)]
TimeOfDay = Annotated[str, StringConstraints(pattern=TIME_OF_DAY_PATTERN)]
Url = Annotated[str, StringConstraints(max_length=2048, pattern=URL_PATTERN)]
# Booleans and counts are never coerced from strings or other numbers
Flag = Annotated[bool, Strict()]
NonNegativeInt = Annotated[int, Field(ge=0), Strict()]
PositiveInt = Annotated[int, Field(ge=1), Strict()]


def text(max_length: int):
    """Optional-content string bounded to ``max_length`` characters."""
    return Annotated[str, StringConstraints(max_length=max_length)]


def required_text(max_length: int):
    """Non-empty string bounded to ``max_length`` characters."""
    return Annotated[str, StringConstraints(min_length=1, max_length=max_length)]


def unique_in_order(values: list) -> list:
    """Drop repeated entries while keeping first-seen order."""
    seen = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


Tags = Annotated[list[Tag], Field(max_length=20), AfterValidator(unique_in_order)]


# ============================================================================
# Guards
# ============================================================================

def _require_literal_true(value: Any) -> Any:
    if value is not True:
        raise PydanticCustomError(
            "guard_violation",
            "Must explicitly confirm this operation with the literal value true",
        )
    return value


# Use with ``Field(default=None, validate_default=True)`` so that an absent
# confirmation is reported as a guard violation rather than a missing key.
ConfirmationFlag = Annotated[Literal[True], BeforeValidator(_require_literal_true)]
