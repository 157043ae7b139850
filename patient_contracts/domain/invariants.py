"""Collection and cross-field invariants.

Rules that cannot be expressed as a single field's constraint. Most checks
receive an already-normalized node (defaults applied, children validated)
and either return it, possibly adjusted, or raise a ``PydanticCustomError``
that the error layer classifies as an invariant violation. The
``doNotContact`` cascade is the exception: it rewrites the raw input.

Architecture:
    - Plain functions, wired into models as ``AfterValidator`` metadata or
      ``model_validator`` hooks
    - Policy-dependent behaviour reads ``ValidationPolicy`` from the
      validation context, never from module state
"""

import logging
from datetime import date
from typing import Any, Callable, Optional, Sequence

from pydantic import ValidationInfo
from pydantic_core import PydanticCustomError

from patient_contracts.domain.policy import policy_from
from patient_contracts.domain.primitives import to_camel, utc_now, years_before

logger = logging.getLogger(__name__)

TIER_SLOTS = ("primary", "secondary", "tertiary")
MAX_AGE_YEARS = 150

REMINDER_FLAGS = (
    "appointment_reminders",
    "recall_reminders",
    "treatment_updates",
    "marketing_communications",
    "educational_content",
    "survey_requests",
)
REMINDER_ALIASES = tuple(to_camel(flag) for flag in REMINDER_FLAGS)


# ============================================================================
# Primary designation
# ============================================================================

def check_single_primary(items: Sequence[Any], label: str) -> None:
    """Raise if more than one element of ``items`` is marked primary.

    Parameters:
        items: Normalized elements exposing ``is_primary``
        label: Collection name used in the message (``phones``, ...)

    Raises:
        PydanticCustomError: ``invariant_violation`` listing the duplicate indices
    """
    indices = [index for index, item in enumerate(items) if item.is_primary]
    if len(indices) > 1:
        raise PydanticCustomError(
            "invariant_violation",
            "At most one {label} entry may be primary; found primary at indices {indices}",
            {"label": label, "indices": indices},
        )


def promote_first_primary(items: list) -> list:
    """Mark the first element primary when a non-empty list has none."""
    if not items or any(item.is_primary for item in items):
        return items
    return [items[0].model_copy(update={"is_primary": True}), *items[1:]]


def single_primary(label: str) -> Callable[[list, ValidationInfo], list]:
    """Build the list validator enforcing the primary rule for ``label``.

    Promotion of the first element only happens when the active
    ``ValidationPolicy`` enables ``auto_promote_primary``.
    """

    def validate(items: list, info: ValidationInfo) -> list:
        check_single_primary(items, label)
        if policy_from(info).auto_promote_primary:
            promoted = promote_first_primary(items)
            if promoted is not items:
                logger.debug(f"Promoted first {label} entry to primary")
            return promoted
        return items

    return validate


# ============================================================================
# Insurance tiers
# ============================================================================

def check_tier_ordering(insurance: Any) -> None:
    """Raise unless populated coverage slots form a gap-free prefix.

    A slot may be populated only if every lower-ordered slot is populated.
    The error points at the first slot that breaks the ordering.
    """
    missing: Optional[str] = None
    for slot in TIER_SLOTS:
        if getattr(insurance, slot) is None:
            missing = missing or slot
        elif missing is not None:
            raise PydanticCustomError(
                "invalid_tier_ordering",
                "{field} coverage requires {missing} coverage to be present",
                {"field": slot, "missing": missing},
            )


def check_slot_coverage_types(insurance: Any) -> None:
    """Raise if a slot holds a coverage declared for a different slot."""
    for slot in TIER_SLOTS:
        coverage = getattr(insurance, slot)
        if coverage is not None and coverage.coverage_type.value != slot:
            raise PydanticCustomError(
                "invariant_violation",
                "coverageType '{declared}' does not match the {field} slot",
                {"field": slot, "declared": coverage.coverage_type.value},
            )


# ============================================================================
# Communication preferences
# ============================================================================

def cascade_do_not_contact(data: Any) -> Any:
    """Force every reminder, marketing, education and survey flag off under doNotContact.

    Runs on the raw mapping before field validation, so it holds however the
    model is built. Keys may be wire (camelCase) or field (snake_case) names.
    """
    if not isinstance(data, dict):
        return data
    if data.get("doNotContact", data.get("do_not_contact")) is not True:
        return data
    cascaded = dict(data)
    for name, alias in zip(REMINDER_FLAGS, REMINDER_ALIASES):
        value = cascaded.pop(name, cascaded.get(alias))
        # Wrong-typed values are left for the type check to report
        cascaded[alias] = False if value is None or isinstance(value, bool) else value
    return cascaded


def check_channel_enabled(preferences: Any) -> None:
    """Raise unless the preferred channel is one of the enabled channels."""
    if preferences.preferred_channel not in preferences.enabled_channels:
        raise PydanticCustomError(
            "invariant_violation",
            "Preferred channel '{channel}' must be one of the enabled channels",
            {"field": "preferredChannel", "channel": preferences.preferred_channel.value},
        )


# ============================================================================
# Date ordering
# ============================================================================

def check_not_before(earlier: Any, later: Any, field: str, message: str) -> None:
    """Raise if both values are present and ``later`` precedes ``earlier``."""
    if earlier is not None and later is not None and later < earlier:
        raise PydanticCustomError("invariant_violation", message, {"field": field})


# ============================================================================
# Submitted dates of birth
# ============================================================================

def check_birth_date_plausible(demographics: Any, today: Optional[date] = None) -> None:
    """Raise if a submitted date of birth is more than ``MAX_AGE_YEARS`` ago.

    Applied to create and update requests only. Stored records are not
    re-checked, so a record accepted once stays valid as its subject ages.
    """
    if demographics is None:
        return
    today = today or utc_now().date()
    if demographics.date_of_birth < years_before(today, MAX_AGE_YEARS):
        raise PydanticCustomError(
            "constraint_violation",
            "Date of birth cannot be more than {max_age} years ago",
            {"field": "demographics.dateOfBirth", "max_age": MAX_AGE_YEARS},
        )
