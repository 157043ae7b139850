"""In-Memory Patient Store.

Reference implementation of ``PatientStorePort`` that keeps normalized
``Patient`` records in a dictionary. It owns identity, patient numbers, audit
timestamps and the version counter, and re-validates every record it writes
so nothing that breaks an invariant is ever stored.

Security Impact:
    - Optimistic concurrency: updates carrying a stale version are rejected
    - Destructive operations (archive, merge, anonymize) are recorded on the
      audit log with ``performed_by`` and ``reason``

Architecture:
    - Implements PatientStorePort (Hexagonal Architecture)
    - Suitable for tests, dry runs and single-process tools
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, Optional
from uuid import UUID

from patient_contracts.domain.batch import plan_merge
from patient_contracts.domain.dtos import (
    AnonymizePatientDto,
    ArchivePatientDto,
    MergePatientsDto,
    RestorePatientDto,
)
from patient_contracts.domain.enums import PatientStatus
from patient_contracts.domain.errors import ValidationErrors, Violation, ViolationKind
from patient_contracts.domain.golden_record import Patient
from patient_contracts.domain.normalization import to_payload, validate_or_raise
from patient_contracts.domain.policy import ValidationPolicy
from patient_contracts.domain.ports import (
    AuditLogPort,
    NotFoundError,
    PatientStorePort,
    VersionConflictError,
)
from patient_contracts.domain.primitives import unique_in_order, utc_now
from patient_contracts.domain.services import AnonymizationService

logger = logging.getLogger(__name__)

MEDICAL_SECTIONS = ("allergies", "medications", "conditions", "alerts")


def _guard(path: str, message: str, code: str) -> ValidationErrors:
    return ValidationErrors([Violation(path, ViolationKind.GUARD, message, code)], "PatientStore")


class InMemoryPatientStore(PatientStorePort):
    """Dictionary-backed patient store.

    Parameters:
        audit_log: Receives one event per write, optional
        policy: Policy applied when re-validating written records
        clock: Returns the current UTC time; injectable for tests

    Example Usage:
        ```python
        store = InMemoryPatientStore(audit_log=LoggingAuditLog())
        patient = store.create(validate_create(raw).unwrap(), performed_by=user_id)
        patient = store.update(patient.id, validate_update(change).unwrap(), performed_by=user_id)
        ```
    """

    NUMBER_PREFIX = "P"

    def __init__(
        self,
        audit_log: Optional[AuditLogPort] = None,
        policy: Optional[ValidationPolicy] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._records: Dict[UUID, Patient] = {}
        self._sequence = 0
        self.audit_log = audit_log
        self.policy = policy
        self.clock = clock

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, patient_id: UUID) -> bool:
        return patient_id in self._records

    # ------------------------------------------------------------------
    # PatientStorePort
    # ------------------------------------------------------------------

    def create(self, request: Any, performed_by: UUID) -> Patient:
        """Persist a validated ``CreatePatientDto``.

        Raises:
            ValidationErrors: If the patient number is already taken in the
                organization
        """
        payload = to_payload(request)
        number = payload.get("patientNumber") or self._next_number(request.organization_id)
        if self.find_by_number(request.organization_id, number) is not None:
            raise ValidationErrors(
                [Violation("patientNumber", ViolationKind.INVARIANT,
                           "A patient with this number already exists", "existing_record")],
                "PatientStore",
            )

        now = self.clock().isoformat()
        payload.update({
            "id": str(uuid.uuid4()),
            "patientNumber": number,
            "createdAt": now,
            "updatedAt": now,
            "createdBy": str(performed_by),
            "updatedBy": str(performed_by),
            "version": 0,
        })
        patient = self._save(payload)
        self._audit("create", patient.id, performed_by)
        return patient

    def get(self, patient_id: UUID) -> Patient:
        try:
            return self._records[patient_id]
        except KeyError:
            raise NotFoundError(f"Patient not found: {patient_id}", patient_id=patient_id)

    def update(self, patient_id: UUID, request: Any, performed_by: UUID) -> Patient:
        """Apply a validated ``UpdatePatientDto``.

        Raises:
            NotFoundError: If the record does not exist
            VersionConflictError: If ``request.version`` is stale
            ValidationErrors: If the record is archived, or the merged result
                breaks an invariant of the canonical record
        """
        current = self.get(patient_id)
        if request.version != current.version:
            raise VersionConflictError(
                f"Patient {patient_id} is at version {current.version}, update carries {request.version}",
                patient_id=patient_id,
                expected=current.version,
                actual=request.version,
            )
        if current.is_deleted:
            raise _guard("", "Archived records cannot be updated", "archived")

        changes = request.changes()
        payload = self._next_revision(current, performed_by)
        payload.update(changes)
        patient = self._save(payload)
        self._audit("update", patient.id, performed_by, details={"fields": sorted(changes)})
        return patient

    def archive(self, request: ArchivePatientDto) -> Patient:
        current = self._scoped(request.patient_id, request.organization_id)
        if current.is_deleted:
            raise _guard("patientId", "Record is already archived", "already_archived")

        payload = self._next_revision(current, request.performed_by)
        payload.update({
            "status": PatientStatus.ARCHIVED.value,
            "deletedAt": payload["updatedAt"],
            "deletedBy": str(request.performed_by),
        })
        patient = self._save(payload)
        self._audit("archive", patient.id, request.performed_by, reason=request.reason)
        return patient

    def restore(self, request: RestorePatientDto) -> Patient:
        current = self._scoped(request.patient_id, request.organization_id)
        if not current.is_deleted:
            raise _guard("patientId", "Record is not archived", "not_archived")
        if current.status is PatientStatus.MERGED:
            raise _guard("patientId", "Merged records cannot be restored", "merged")

        payload = self._next_revision(current, request.performed_by)
        for key in ("deletedAt", "deletedBy"):
            payload.pop(key, None)
        payload["status"] = PatientStatus.ACTIVE.value
        patient = self._save(payload)
        self._audit("restore", patient.id, request.performed_by, reason=request.reason)
        return patient

    def find_by_number(self, organization_id: UUID, patient_number: str) -> Optional[Patient]:
        wanted = patient_number.lower()
        for patient in self._records.values():
            if patient.organization_id == organization_id and patient.patient_number.lower() == wanted:
                return patient
        return None

    # ------------------------------------------------------------------
    # Destructive operations
    # ------------------------------------------------------------------

    def merge(self, request: MergePatientsDto) -> Patient:
        """Fold the source record into the target.

        The target survives at its next version; the source is marked
        ``merged`` and soft-deleted.

        Returns:
            Patient: The surviving target record

        Raises:
            NotFoundError: If either record does not exist
            ValidationErrors: If the records cannot be merged or the merged
                record breaks an invariant
        """
        source = self.get(request.source_patient_id)
        target = self.get(request.target_patient_id)
        plan = plan_merge(request, source, target).unwrap()

        payload = self._next_revision(target, request.performed_by)
        source_payload = to_payload(source)
        if plan.demographics_from == "source":
            payload["name"] = source_payload["name"]
            payload["demographics"] = source_payload["demographics"]
        if plan.contacts_from == "source":
            payload["contacts"] = source_payload["contacts"]
        if "insurance" in plan.accumulated and "insurance" not in payload and "insurance" in source_payload:
            payload["insurance"] = source_payload["insurance"]
        if "medical_history" in plan.accumulated and "medical" in source_payload:
            payload["medical"] = self._merged_medical(payload.get("medical", {}), source_payload["medical"])
        if "tags" in plan.accumulated:
            payload["tags"] = unique_in_order(payload.get("tags", []) + source_payload.get("tags", []))
        survivor = validate_or_raise(Patient, payload, policy=self.policy)

        retired = self._next_revision(source, request.performed_by)
        retired.update({
            "status": PatientStatus.MERGED.value,
            "deletedAt": retired["updatedAt"],
            "deletedBy": str(request.performed_by),
        })
        retired_patient = validate_or_raise(Patient, retired, policy=self.policy)

        self._records[survivor.id] = survivor
        self._records[retired_patient.id] = retired_patient
        self._audit(
            "merge", survivor.id, request.performed_by, reason=request.reason,
            details={"source_patient_id": str(source.id), "accumulated": plan.accumulated},
        )
        return survivor

    def anonymize(self, request: AnonymizePatientDto) -> Patient:
        """Irreversibly scrub a stored record in place.

        Raises:
            NotFoundError: If the record does not exist
            ValidationErrors: If the request does not target the record
        """
        current = self.get(request.patient_id)
        scrubbed = AnonymizationService.anonymize_patient(current, request, now=self.clock()).unwrap()
        payload = to_payload(scrubbed)
        payload["version"] = current.version + 1
        patient = self._save(payload)
        self._audit(
            "anonymize", patient.id, request.performed_by, reason=request.reason,
            details={
                "legal_basis": request.legal_basis,
                "retained": [field.value for field in request.retain_fields],
            },
        )
        return patient

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _scoped(self, patient_id: UUID, organization_id: UUID) -> Patient:
        patient = self.get(patient_id)
        if patient.organization_id != organization_id:
            raise NotFoundError(f"Patient not found: {patient_id}", patient_id=patient_id)
        return patient

    def _next_number(self, organization_id: UUID) -> str:
        while True:
            self._sequence += 1
            number = f"{self.NUMBER_PREFIX}{self._sequence:06d}"
            if self.find_by_number(organization_id, number) is None:
                return number

    def _next_revision(self, patient: Patient, performed_by: UUID) -> dict[str, Any]:
        payload = to_payload(patient)
        payload["version"] = patient.version + 1
        payload["updatedAt"] = self.clock().isoformat()
        payload["updatedBy"] = str(performed_by)
        return payload

    @staticmethod
    def _merged_medical(target: dict[str, Any], source: dict[str, Any]) -> dict[str, Any]:
        return {
            section: target.get(section, []) + source.get(section, [])
            for section in MEDICAL_SECTIONS
        }

    def _save(self, payload: dict[str, Any]) -> Patient:
        patient = validate_or_raise(Patient, payload, policy=self.policy)
        self._records[patient.id] = patient
        logger.debug(f"Stored patient {patient.id} at version {patient.version}")
        return patient

    def _audit(
        self,
        action: str,
        subject_id: UUID,
        performed_by: UUID,
        reason: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        if self.audit_log is not None:
            self.audit_log.record(
                action,
                subject_id=subject_id,
                performed_by=performed_by,
                reason=reason,
                details=details,
            )
