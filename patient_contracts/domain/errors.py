"""Validation error taxonomy.

Translates pydantic's flat error list into the contract's own vocabulary so
that callers never depend on pydantic error codes directly.

Security Impact:
    - Offending input values are dropped during translation; a violation only
      carries the path, kind, code and message, never the PHI that failed
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Sequence, Union

from pydantic import ValidationError as PydanticValidationError


class ViolationKind(str, Enum):
    """Category of a single validation failure."""

    STRUCTURAL = "StructuralError"
    CONSTRAINT = "ConstraintError"
    INVARIANT = "InvariantViolation"
    TIER_ORDERING = "InvalidTierOrdering"
    GUARD = "GuardViolation"

    @property
    def is_invariant(self) -> bool:
        """Tier ordering is reported separately but is an invariant violation."""
        return self in (ViolationKind.INVARIANT, ViolationKind.TIER_ORDERING)


# Error types that mean the shape of the tree is wrong, not a value in it
STRUCTURAL_ERROR_TYPES = frozenset({
    "missing",
    "extra_forbidden",
    "model_type",
    "model_attributes_type",
    "dict_type",
    "list_type",
    "tuple_type",
    "set_type",
    "is_instance_of",
})

CUSTOM_ERROR_KINDS = {
    "constraint_violation": ViolationKind.CONSTRAINT,
    "invariant_violation": ViolationKind.INVARIANT,
    "invalid_tier_ordering": ViolationKind.TIER_ORDERING,
    "guard_violation": ViolationKind.GUARD,
}


def classify_error_type(error_type: str) -> ViolationKind:
    """Map a pydantic error type to a ``ViolationKind``."""
    if error_type in CUSTOM_ERROR_KINDS:
        return CUSTOM_ERROR_KINDS[error_type]
    if error_type in STRUCTURAL_ERROR_TYPES:
        return ViolationKind.STRUCTURAL
    return ViolationKind.CONSTRAINT


def format_path(loc: Sequence[Union[str, int]]) -> str:
    """Render a pydantic location tuple as ``contacts.phones[2].number``."""
    path = ""
    for part in loc:
        if isinstance(part, int):
            path += f"[{part}]"
        elif path:
            path += f".{part}"
        else:
            path = str(part)
    return path


@dataclass(frozen=True)
class Violation:
    """One broken rule at one location of the input tree.

    Parameters:
        path: Dotted path with list indices, empty for the root node
        kind: Taxonomy category
        message: Human-readable explanation
        code: Underlying error type (``missing``, ``string_too_long``, ...)
    """

    path: str
    kind: ViolationKind
    message: str
    code: str

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "kind": self.kind.value,
            "message": self.message,
            "code": self.code,
        }


class ContractError(Exception):
    """Base exception for every error raised by this package."""


class ValidationErrors(ContractError):
    """Aggregate of every violation found in one validation pass.

    Raised only by ``validate_or_raise``; the ``validate_*`` entry points
    return it inside a failed ``Result`` instead.
    """

    def __init__(self, violations: Iterable[Violation], model_name: str = ""):
        self.violations = tuple(violations)
        self.model_name = model_name
        noun = "violation" if len(self.violations) == 1 else "violations"
        prefix = f"{model_name}: " if model_name else ""
        super().__init__(f"{prefix}{len(self.violations)} {noun}")

    def __len__(self) -> int:
        return len(self.violations)

    def __iter__(self):
        return iter(self.violations)

    @property
    def kinds(self) -> set:
        return {violation.kind for violation in self.violations}

    @property
    def paths(self) -> list:
        return [violation.path for violation in self.violations]

    def has_kind(self, kind: ViolationKind) -> bool:
        return any(violation.kind is kind for violation in self.violations)

    def at(self, path: str) -> list:
        """Return the violations reported at exactly ``path``."""
        return [violation for violation in self.violations if violation.path == path]

    def prefixed(self, prefix: str) -> "ValidationErrors":
        """Return a copy with every path re-rooted under ``prefix``."""
        rerooted = []
        for violation in self.violations:
            if not violation.path:
                path = prefix
            elif violation.path.startswith("["):
                path = f"{prefix}{violation.path}"
            else:
                path = f"{prefix}.{violation.path}"
            rerooted.append(Violation(path, violation.kind, violation.message, violation.code))
        return ValidationErrors(rerooted, self.model_name)

    def to_list(self) -> list[dict]:
        return [violation.to_dict() for violation in self.violations]


def _translate_one(error: dict[str, Any]) -> Violation:
    loc = list(error.get("loc", ()))
    ctx = error.get("ctx") or {}
    # Custom errors may point below the node whose validator raised them
    if error["type"] in CUSTOM_ERROR_KINDS and ctx.get("field"):
        loc.append(ctx["field"])
    return Violation(
        path=format_path(loc),
        kind=classify_error_type(error["type"]),
        message=error.get("msg", ""),
        code=error["type"],
    )


def translate_pydantic_errors(exc: PydanticValidationError) -> ValidationErrors:
    """Convert a pydantic ``ValidationError`` into ``ValidationErrors``.

    Parameters:
        exc: The error raised by ``model_validate``

    Returns:
        ValidationErrors: One ``Violation`` per pydantic error, input values omitted
    """
    violations = [
        _translate_one(error)
        for error in exc.errors(include_url=False, include_input=False)
    ]
    return ValidationErrors(violations, model_name=exc.title)
