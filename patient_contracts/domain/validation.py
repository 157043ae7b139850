"""Validation entry points, one per request shape.

Every ``validate_*`` function turns a raw JSON-shaped mapping into a
``Result`` holding either the normalized model or a ``ValidationErrors``
aggregate with every violation found in one pass. None of them raise for
invalid input.
"""

from typing import Any, Mapping, Optional

from patient_contracts.domain.batch import BulkImportReport, validate_bulk_import as _validate_batch
from patient_contracts.domain.dtos import (
    AnonymizePatientDto,
    ArchivePatientDto,
    BulkImportPatientDto,
    CreatePatientDto,
    CreateRelationshipDto,
    ExportPatientDto,
    MergePatientsDto,
    PatientQueryDto,
    RestorePatientDto,
    SendPatientCommunicationDto,
    UpdatePatientDto,
)
from patient_contracts.domain.golden_record import Patient
from patient_contracts.domain.normalization import normalize, to_payload, validate_or_raise
from patient_contracts.domain.policy import ValidationPolicy
from patient_contracts.domain.ports import Result

__all__ = [
    "normalize",
    "to_payload",
    "validate_or_raise",
    "validate_patient",
    "validate_create",
    "validate_update",
    "validate_query",
    "validate_merge",
    "validate_export",
    "validate_anonymize",
    "validate_archive",
    "validate_restore",
    "validate_bulk_import",
    "validate_send_communication",
    "validate_relationship",
    "VALIDATORS",
    "MODELS",
]


def validate_patient(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result[Patient]:
    """Validate a full canonical record."""
    return normalize(Patient, raw, policy=policy)


def validate_create(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result:
    return normalize(CreatePatientDto, raw, policy=policy)


def validate_update(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result:
    """Validate a partial update; ``version`` is mandatory."""
    return normalize(UpdatePatientDto, raw, policy=policy)


def validate_query(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result[PatientQueryDto]:
    return normalize(PatientQueryDto, raw, policy=policy)


def validate_merge(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result[MergePatientsDto]:
    return normalize(MergePatientsDto, raw, policy=policy)


def validate_export(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result[ExportPatientDto]:
    return normalize(ExportPatientDto, raw, policy=policy)


def validate_anonymize(
    raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None
) -> Result[AnonymizePatientDto]:
    """Validate an anonymization request; ``confirmIrreversible`` must be literally true."""
    return normalize(AnonymizePatientDto, raw, policy=policy)


def validate_archive(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result[ArchivePatientDto]:
    return normalize(ArchivePatientDto, raw, policy=policy)


def validate_restore(raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None) -> Result[RestorePatientDto]:
    return normalize(RestorePatientDto, raw, policy=policy)


def validate_send_communication(
    raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None
) -> Result[SendPatientCommunicationDto]:
    return normalize(SendPatientCommunicationDto, raw, policy=policy)


def validate_relationship(
    raw: Mapping[str, Any], *, policy: Optional[ValidationPolicy] = None
) -> Result[CreateRelationshipDto]:
    return normalize(CreateRelationshipDto, raw, policy=policy)


def validate_bulk_import(
    raw: Mapping[str, Any],
    *,
    policy: Optional[ValidationPolicy] = None,
    existing_numbers: Optional[set] = None,
) -> Result[BulkImportReport]:
    """Validate a bulk import envelope and each of its patients in isolation.

    Only an invalid envelope yields a failed ``Result``; per-patient failures
    are reported inside the ``BulkImportReport``.
    """
    return _validate_batch(raw, policy=policy, existing_numbers=existing_numbers)


VALIDATORS = {
    "patient": validate_patient,
    "create": validate_create,
    "update": validate_update,
    "query": validate_query,
    "merge": validate_merge,
    "export": validate_export,
    "anonymize": validate_anonymize,
    "archive": validate_archive,
    "restore": validate_restore,
    "bulk-import": validate_bulk_import,
    "send-communication": validate_send_communication,
    "relationship": validate_relationship,
}

MODELS = {
    "patient": Patient,
    "create": CreatePatientDto,
    "update": UpdatePatientDto,
    "query": PatientQueryDto,
    "merge": MergePatientsDto,
    "export": ExportPatientDto,
    "anonymize": AnonymizePatientDto,
    "archive": ArchivePatientDto,
    "restore": RestorePatientDto,
    "bulk-import": BulkImportPatientDto,
    "send-communication": SendPatientCommunicationDto,
    "relationship": CreateRelationshipDto,
}
