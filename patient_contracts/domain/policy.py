"""Validation policy switches.

The schema itself is immutable process-wide state. Behaviour that deployments
disagree on is not baked into it; it travels with each validation call as a
``ValidationPolicy`` in the pydantic validation context.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo

POLICY_CONTEXT_KEY = "policy"


class ValidationPolicy(BaseModel):
    """Deployment-level switches for normalization.

    Parameters:
        auto_promote_primary: When True, a non-empty phone/email/address/
            emergency-contact sequence with no primary element gets its first
            element marked primary during normalization. When False (default)
            such sequences are accepted unchanged and consumers fall back to
            the first element themselves.
        require_revocation_details: When True, a consent with ``granted=false``
            must carry ``revokedAt`` and ``revokedBy``. When False (default)
            the gap is only logged.
    """

    auto_promote_primary: bool = Field(default=False)
    require_revocation_details: bool = Field(default=False)

    model_config = ConfigDict(frozen=True)


DEFAULT_POLICY = ValidationPolicy()


def policy_from(info: Optional[ValidationInfo]) -> ValidationPolicy:
    """Return the policy carried by a validator's context, or the default."""
    context: Any = info.context if info is not None else None
    if isinstance(context, dict):
        policy = context.get(POLICY_CONTEXT_KEY)
        if isinstance(policy, ValidationPolicy):
            return policy
    return DEFAULT_POLICY
