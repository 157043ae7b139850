"""Bulk import and merge request validation.

Batch-level policy on top of the per-record pipeline: every patient in an
import is validated on its own so one bad record never prevents the others
from being checked, and duplicate, skip and update decisions are computed
without touching any store.

Security Impact:
    - Outcomes carry paths and kinds only; PHI stays in the normalized models
    - Duplicate detection keys are compared in memory and never logged

Architecture:
    - Pure domain logic; the store is represented only by the set of patient
      numbers the caller already knows to exist
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional

from patient_contracts.domain.dtos import BulkImportPatientDto, CreatePatientDto, MergePatientsDto
from patient_contracts.domain.enums import PatientStatus
from patient_contracts.domain.errors import ValidationErrors, Violation, ViolationKind
from patient_contracts.domain.golden_record import Patient
from patient_contracts.domain.normalization import normalize
from patient_contracts.domain.policy import ValidationPolicy
from patient_contracts.domain.ports import Result

logger = logging.getLogger(__name__)


class ItemStatus(str, Enum):
    VALID = "valid"
    FAILED = "failed"
    SKIPPED = "skipped"


class ImportAction(str, Enum):
    """What a committing import would do with one record."""
    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"


@dataclass(frozen=True)
class ImportItemOutcome:
    """Result of validating one element of ``patients``.

    Attributes:
        index: Position in the submitted array
        status: valid, failed or skipped
        action: Planned action; None for failures and in validate-only mode
        patient: The normalized create payload when it validated
        errors: Violations, paths rooted at ``patients[index]``
        duplicate_of: Index of the earlier record this one duplicates
    """
    index: int
    status: ItemStatus
    action: Optional[ImportAction] = None
    patient: Optional[Any] = None
    errors: Optional[ValidationErrors] = None
    duplicate_of: Optional[int] = None


@dataclass(frozen=True)
class BulkImportReport:
    """Per-item outcomes of one bulk import request."""
    request: BulkImportPatientDto
    outcomes: tuple

    @property
    def succeeded(self) -> list[ImportItemOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is ItemStatus.VALID]

    @property
    def failed(self) -> list[ImportItemOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is ItemStatus.FAILED]

    @property
    def skipped(self) -> list[ImportItemOutcome]:
        return [outcome for outcome in self.outcomes if outcome.status is ItemStatus.SKIPPED]

    @property
    def commits(self) -> bool:
        """True only when the request asks for a real, side-effecting import."""
        return not (self.request.validate_only or self.request.dry_run)

    @property
    def all_valid(self) -> bool:
        return not self.failed

    def planned_actions(self) -> dict[str, int]:
        counts = {action.value: 0 for action in ImportAction}
        for outcome in self.outcomes:
            if outcome.action is not None:
                counts[outcome.action.value] += 1
        return counts

    def summary(self) -> dict:
        return {
            "total": len(self.outcomes),
            "valid": len(self.succeeded),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
            "validate_only": self.request.validate_only,
            "dry_run": self.request.dry_run,
            "actions": self.planned_actions(),
        }


def _duplicate_keys(dto: Any) -> list[tuple]:
    keys = []
    if dto.patient_number:
        keys.append(("number", dto.patient_number.lower()))
    keys.append((
        "identity",
        dto.name.first_name.lower(),
        dto.name.last_name.lower(),
        dto.demographics.date_of_birth,
    ))
    return keys


def _item_violation(index: int, message: str, code: str, subpath: str = "") -> ValidationErrors:
    path = f"patients[{index}]{'.' + subpath if subpath else ''}"
    return ValidationErrors([Violation(path, ViolationKind.INVARIANT, message, code)])


def validate_bulk_import(
    raw: Mapping[str, Any],
    *,
    policy: Optional[ValidationPolicy] = None,
    existing_numbers: Optional[set] = None,
) -> Result[BulkImportReport]:
    """Validate an import envelope, then each patient independently.

    Parameters:
        raw: ``BulkImportPatientDto`` payload
        policy: Policy applied to each patient
        existing_numbers: Patient numbers already present in the target
            organization; lets a dry run report update and skip decisions

    Returns:
        Result[BulkImportReport]: Failure only when the envelope itself is
        invalid; otherwise a report with one outcome per submitted patient
    """
    envelope = normalize(BulkImportPatientDto, raw, policy=policy)
    if envelope.is_failure():
        return envelope
    request = envelope.value
    existing = {number.lower() for number in (existing_numbers or ())}

    outcomes = []
    seen: dict[tuple, int] = {}
    for index, payload in enumerate(request.patients):
        result = normalize(CreatePatientDto, payload, policy=policy)
        if result.is_failure():
            outcomes.append(ImportItemOutcome(
                index=index,
                status=ItemStatus.FAILED,
                errors=result.errors.prefixed(f"patients[{index}]"),
            ))
            continue

        dto = result.value
        if dto.organization_id != request.organization_id:
            outcomes.append(ImportItemOutcome(
                index=index,
                status=ItemStatus.FAILED,
                patient=dto,
                errors=_item_violation(
                    index, "Patient belongs to a different organization than the import",
                    "organization_mismatch", "organizationId",
                ),
            ))
            continue

        keys = _duplicate_keys(dto)
        earlier = next((seen[key] for key in keys if key in seen), None)
        if earlier is not None:
            # Validate-only makes no import decisions; the duplicate is only noted
            if request.validate_only:
                outcomes.append(ImportItemOutcome(
                    index=index, status=ItemStatus.VALID, patient=dto, duplicate_of=earlier,
                ))
            elif request.skip_duplicates:
                outcomes.append(ImportItemOutcome(
                    index=index,
                    status=ItemStatus.SKIPPED,
                    action=ImportAction.SKIP,
                    patient=dto,
                    duplicate_of=earlier,
                ))
            else:
                outcomes.append(ImportItemOutcome(
                    index=index,
                    status=ItemStatus.FAILED,
                    patient=dto,
                    errors=_item_violation(
                        index, f"Duplicate of patients[{earlier}] in the same import", "duplicate_record",
                    ),
                    duplicate_of=earlier,
                ))
            continue
        for key in keys:
            seen[key] = index

        outcomes.append(_decide(index, dto, request, existing))

    report = BulkImportReport(request=request, outcomes=tuple(outcomes))
    logger.info(f"Bulk import from {request.source.value} validated: {report.summary()}")
    return Result.success_result(report)


def _decide(index: int, dto: Any, request: BulkImportPatientDto, existing: set) -> ImportItemOutcome:
    if request.validate_only:
        return ImportItemOutcome(index=index, status=ItemStatus.VALID, patient=dto)
    number = dto.patient_number.lower() if dto.patient_number else None
    if number is None or number not in existing:
        return ImportItemOutcome(index=index, status=ItemStatus.VALID, action=ImportAction.CREATE, patient=dto)
    if request.update_existing:
        return ImportItemOutcome(index=index, status=ItemStatus.VALID, action=ImportAction.UPDATE, patient=dto)
    if request.skip_duplicates:
        return ImportItemOutcome(index=index, status=ItemStatus.SKIPPED, action=ImportAction.SKIP, patient=dto)
    return ImportItemOutcome(
        index=index,
        status=ItemStatus.FAILED,
        patient=dto,
        errors=_item_violation(
            index, "A patient with this number already exists", "existing_record", "patientNumber",
        ),
    )


# ============================================================================
# Merge
# ============================================================================

@dataclass(frozen=True)
class MergePlan:
    """Where each section of the surviving record comes from.

    Attributes:
        request: The validated merge request
        demographics_from: ``source`` or ``target``
        contacts_from: ``source`` or ``target``
        accumulated: Sections combined from both records
        differing: Canonical sections whose values differ between the records
    """
    request: MergePatientsDto
    demographics_from: str
    contacts_from: str
    accumulated: list = field(default_factory=list)
    differing: list = field(default_factory=list)


def validate_merge_request(raw: Mapping[str, Any]) -> Result[MergePatientsDto]:
    """Validate and canonicalize a merge request (defaults applied)."""
    return normalize(MergePatientsDto, raw)


_COMPARED_SECTIONS = ("name", "demographics", "contacts", "insurance", "medical", "tags")


def plan_merge(request: MergePatientsDto, source: Patient, target: Patient) -> Result[MergePlan]:
    """Check a merge request against the two stored records and plan it.

    Both records must be the ones the request names, belong to the request's
    organization, and still be mergeable (not deleted, not already merged).
    """
    violations = []
    for label, patient, expected_id in (
        ("sourcePatientId", source, request.source_patient_id),
        ("targetPatientId", target, request.target_patient_id),
    ):
        if patient.id != expected_id:
            violations.append(Violation(label, ViolationKind.INVARIANT,
                                        "Record does not match the requested identifier", "record_mismatch"))
        elif patient.organization_id != request.organization_id:
            violations.append(Violation(label, ViolationKind.INVARIANT,
                                        "Record belongs to a different organization", "organization_mismatch"))
        elif patient.is_deleted or patient.status is PatientStatus.MERGED:
            violations.append(Violation(label, ViolationKind.GUARD,
                                        "Record is archived or already merged", "not_mergeable"))
    if violations:
        return Result.failure_result(ValidationErrors(violations, "MergePlan"), error_type="ValidationErrors")

    options = request.conflict_resolution
    differing = [
        section for section in _COMPARED_SECTIONS
        if getattr(source, section) != getattr(target, section)
    ]
    return Result.success_result(MergePlan(
        request=request,
        demographics_from="source" if options.prefer_source_demographics else "target",
        contacts_from="source" if options.prefer_source_contacts else "target",
        accumulated=options.merged_sections(),
        differing=differing,
    ))
