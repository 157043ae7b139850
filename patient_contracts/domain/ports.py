"""Domain Ports - Contracts for the collaborators of the validation layer.

The domain defines what it needs from persistence, delivery, export and
audit; adapters provide it. Nothing in this module performs I/O.

Security Impact:
    - Stores only ever receive normalized, invariant-satisfying records
    - Audit events carry ``performed_by`` and ``reason`` for every
      destructive operation (merge, anonymize, archive)

Architecture:
    - Pure abstract interfaces with zero infrastructure dependencies
    - ``Result`` communicates validation outcomes without exceptions
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Generic, Iterator, Optional, TypeVar, Union
from uuid import UUID

from patient_contracts.domain.errors import ContractError, ValidationErrors

T = TypeVar('T')


# ============================================================================
# Result Type for Success/Failure Communication
# ============================================================================

@dataclass(frozen=True)
class Result(Generic[T]):
    """Result type for communicating success or failure without exceptions.

    Attributes:
        success: True if the operation succeeded, False otherwise
        value: The normalized value (only present if success=True)
        errors: Every violation found (only present if success=False)
        error: Summary message of the failure
        error_type: Name of the failure category
        error_details: Additional context (source, record_index, etc.)

    Example:
        ```python
        result = validate_patient(raw)
        if result.is_success():
            store.save(result.value)
        else:
            for violation in result.errors:
                print(violation.path, violation.kind, violation.message)
        ```
    """

    success: bool
    value: Optional[T] = None
    errors: Optional[ValidationErrors] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    error_details: Optional[dict] = None

    @classmethod
    def success_result(cls, value: T) -> 'Result[T]':
        """Create a successful result.

        Parameters:
            value: The successful result value

        Returns:
            Result: Success result with the value
        """
        return cls(success=True, value=value)

    @classmethod
    def failure_result(
        cls,
        error: Union[str, Exception],
        error_type: Optional[str] = None,
        error_details: Optional[dict] = None
    ) -> 'Result[T]':
        """Create a failure result.

        Parameters:
            error: Error message or exception; a ``ValidationErrors`` is kept
                whole in ``errors``
            error_type: Type of error (defaults to the exception class name)
            error_details: Additional context (source, record_index, etc.)

        Returns:
            Result: Failure result with error information
        """
        error_message = str(error) if isinstance(error, Exception) else error
        error_type_name = error_type or (type(error).__name__ if isinstance(error, Exception) else "UnknownError")

        return cls(
            success=False,
            value=None,
            errors=error if isinstance(error, ValidationErrors) else None,
            error=error_message,
            error_type=error_type_name,
            error_details=error_details or {}
        )

    def is_success(self) -> bool:
        """Check if result is successful."""
        return self.success

    def is_failure(self) -> bool:
        """Check if result is a failure."""
        return not self.success

    def unwrap(self) -> T:
        """Return the value, raising the carried errors on failure."""
        if self.success:
            return self.value
        if self.errors is not None:
            raise self.errors
        raise ContractError(self.error or "Operation failed")


# ============================================================================
# Custom Exception Hierarchy
# ============================================================================

class NotFoundError(ContractError):
    """Raised by a store when no record has the requested identifier.

    Attributes:
        patient_id: The identifier that was looked up
    """

    def __init__(self, message: str, patient_id: Optional[UUID] = None):
        super().__init__(message)
        self.patient_id = patient_id


class VersionConflictError(ContractError):
    """Raised by a store when an update carries a stale version.

    Attributes:
        patient_id: The record being updated
        expected: Version held by the store
        actual: Version carried by the update
    """

    def __init__(self, message: str, patient_id: Optional[UUID] = None,
                 expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(message)
        self.patient_id = patient_id
        self.expected = expected
        self.actual = actual


class SourceNotFoundError(ContractError):
    """Raised when an input file cannot be found or opened.

    Attributes:
        source: The source identifier that was not found
    """

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message)
        self.source = source


class UnsupportedSourceError(ContractError):
    """Raised when no reader handles the given source format.

    Attributes:
        source: The source identifier that is unsupported
        adapter: The adapter that cannot handle the source
    """

    def __init__(self, message: str, source: Optional[str] = None, adapter: Optional[str] = None):
        super().__init__(message)
        self.source = source
        self.adapter = adapter


# ============================================================================
# Ports
# ============================================================================

class PatientSourcePort(ABC):
    """Reads raw, untrusted patient payloads from a file-like source.

    Payloads are yielded unvalidated; validation is the caller's job so that
    per-record failures stay isolated.
    """

    @abstractmethod
    def read(self, source: str) -> Iterator[dict[str, Any]]:
        """Yield one raw payload per record.

        Raises:
            SourceNotFoundError: If the source does not exist
            UnsupportedSourceError: If the content cannot be parsed
        """

    @abstractmethod
    def can_read(self, source: str) -> bool:
        """Check if this reader handles the given source."""

    def get_source_info(self, source: str) -> Optional[dict]:
        """Metadata about the source, or None when it cannot be determined."""
        return None


class PatientStorePort(ABC):
    """Persistence collaborator.

    Accepts and returns canonical ``Patient`` records and owns identity,
    audit timestamps and the version counter.
    """

    @abstractmethod
    def create(self, request: Any, performed_by: UUID) -> Any:
        """Persist a ``CreatePatientDto``; return the stored ``Patient`` at version 0."""

    @abstractmethod
    def get(self, patient_id: UUID) -> Any:
        """Return the stored ``Patient``.

        Raises:
            NotFoundError: If no record has ``patient_id``
        """

    @abstractmethod
    def update(self, patient_id: UUID, request: Any, performed_by: UUID) -> Any:
        """Apply an ``UpdatePatientDto``; return the record at the next version.

        Raises:
            NotFoundError: If no record has ``patient_id``
            VersionConflictError: If ``request.version`` is not the stored version
        """

    @abstractmethod
    def archive(self, request: Any) -> Any:
        """Soft-delete per an ``ArchivePatientDto``."""

    @abstractmethod
    def restore(self, request: Any) -> Any:
        """Reverse an archive per a ``RestorePatientDto``."""

    @abstractmethod
    def find_by_number(self, organization_id: UUID, patient_number: str) -> Optional[Any]:
        """Return the record with ``patient_number`` in the organization, if any."""


class CommunicationSenderPort(ABC):
    """Delivers a validated ``SendPatientCommunicationDto`` on its channel."""

    @abstractmethod
    def send(self, request: Any) -> None:
        ...


class ExportGeneratorPort(ABC):
    """Renders patients per an ``ExportPatientDto`` in its requested format."""

    @abstractmethod
    def generate(self, request: Any, patients: list) -> bytes:
        ...


class AuditLogPort(ABC):
    """Receives lifecycle actions for the audit trail."""

    @abstractmethod
    def record(
        self,
        action: str,
        *,
        subject_id: UUID,
        performed_by: UUID,
        reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Record one action.

        Parameters:
            action: ``merge``, ``anonymize``, ``archive``, ``restore``, ...
            subject_id: Patient the action applies to
            performed_by: Acting user
            reason: Free-text justification supplied with the request
            details: Identifiers only, never PHI
        """
