"""The raw-to-normalized step shared by every entry point.

Security Impact:
    - Failures are logged with paths and counts only, never field values

Architecture:
    - ``normalize`` is the only place pydantic validation is invoked
    - The active ``ValidationPolicy`` travels in the validation context
"""

import logging
from typing import Any, Optional, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from patient_contracts.domain.errors import translate_pydantic_errors
from patient_contracts.domain.policy import POLICY_CONTEXT_KEY, ValidationPolicy
from patient_contracts.domain.ports import Result

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


def normalize(
    model_cls: type[M],
    raw: Any,
    *,
    policy: Optional[ValidationPolicy] = None,
) -> Result[M]:
    """Validate ``raw`` against ``model_cls`` and apply defaults and invariants.

    Parameters:
        model_cls: Target model (``Patient`` or any DTO)
        raw: Untrusted JSON-shaped input
        policy: Policy switches; the default policy when None

    Returns:
        Result[M]: The normalized model, or every violation found
    """
    context = {POLICY_CONTEXT_KEY: policy or ValidationPolicy()}
    try:
        value = model_cls.model_validate(raw, context=context)
    except PydanticValidationError as e:
        errors = translate_pydantic_errors(e)
        logger.debug(
            f"{model_cls.__name__} rejected with {len(errors)} violation(s) at {errors.paths}"
        )
        return Result.failure_result(errors, error_type="ValidationErrors")
    return Result.success_result(value)


def validate_or_raise(model_cls: type[M], raw: Any, *, policy: Optional[ValidationPolicy] = None) -> M:
    """Like ``normalize`` but raises ``ValidationErrors`` on failure."""
    return normalize(model_cls, raw, policy=policy).unwrap()


def to_payload(model: BaseModel) -> dict[str, Any]:
    """Dump a normalized model as the camelCase JSON payload collaborators consume."""
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)
