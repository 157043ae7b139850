"""Operation-specific request shapes.

Create and update requests are projections of the canonical ``Patient``;
the remaining requests are small shapes of their own that reuse canonical
fields by composition.

Architecture:
    - Projections come from ``projections``; refinements belong to the base
      class handed to the combinator, never to ``Patient``
    - Cross-field rules raise ``invariant_violation``; unmet operation
      preconditions raise ``guard_violation``
"""

from datetime import date, timedelta
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import AfterValidator, Field, model_validator
from pydantic_core import PydanticCustomError

from patient_contracts.domain.enums import (
    CommunicationChannel,
    CommunicationPriority,
    ExportFieldCategory,
    ExportFormat,
    ImportSource,
    PatientStatus,
    RelationshipType,
    RetainableField,
    SortField,
    SortOrder,
)
from patient_contracts.domain.golden_record import Patient
from patient_contracts.domain.invariants import check_birth_date_plausible
from patient_contracts.domain.primitives import (
    ConfirmationFlag,
    ContractModel,
    DateOnly,
    EmailAddress,
    Flag,
    IsoDateTime,
    NonNegativeInt,
    PhoneNumber,
    PositiveInt,
    required_text,
    text,
    unique_in_order,
    utc_now,
    years_before,
)
from patient_contracts.domain.projections import extend, field_of, omit, partial, pick

MAX_BATCH_SIZE = 1000
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

Reason = required_text(500)

SERVER_ASSIGNED_FIELDS = (
    "id",
    "created_at",
    "updated_at",
    "deleted_at",
    "created_by",
    "updated_by",
    "deleted_by",
    "version",
    "status",
    "metadata",
)

UPDATABLE_FIELDS = (
    "name",
    "demographics",
    "contacts",
    "emergency_contacts",
    "insurance",
    "medical",
    "communication_preferences",
    "consents",
    "status",
    "assigned_provider_id",
    "referral_source",
    "tags",
    "notes",
)


# ============================================================================
# Create
# ============================================================================

class _CreatePatientRules(ContractModel):
    @model_validator(mode="after")
    def _reachable(self):
        if not (self.contacts.phones or self.contacts.emails):
            raise PydanticCustomError(
                "invariant_violation",
                "At least one email or phone contact is required",
                {"field": "contacts"},
            )
        return self

    @model_validator(mode="after")
    def _plausible_birth_date(self):
        check_birth_date_plausible(self.demographics)
        return self


CreatePatientDto = omit(
    Patient,
    *SERVER_ASSIGNED_FIELDS,
    name="CreatePatientDto",
    base=_CreatePatientRules,
    optional={"patient_number"},
    doc="New patient as submitted by a client; the store assigns identity and audit fields.",
)


# ============================================================================
# Update
# ============================================================================

class _PatchRules(ContractModel):
    @model_validator(mode="after")
    def _not_empty(self):
        if not self.model_fields_set - {"version"}:
            raise PydanticCustomError(
                "guard_violation",
                "At least one field must be provided for update",
            )
        return self

    @model_validator(mode="after")
    def _plausible_birth_date(self):
        check_birth_date_plausible(self.demographics)
        return self

    def changes(self) -> dict[str, Any]:
        """Provided fields only, as a camelCase JSON payload.

        An explicit ``null`` (only accepted where the field is nullable)
        is kept so that it clears the stored value.
        """
        return self.model_dump(
            mode="json",
            by_alias=True,
            include=self.model_fields_set - {"version"},
        )


PatientPatch = partial(
    Patient,
    *UPDATABLE_FIELDS,
    name="PatientPatch",
    base=_PatchRules,
    nullable={"assigned_provider_id"},
    doc="Partial patient change set; absent fields are left unchanged.",
)

UpdatePatientDto = extend(
    PatientPatch,
    name="UpdatePatientDto",
    doc="Patient change set carrying the version it was computed against.",
    version=field_of(Patient, "version", required=True),
)


# ============================================================================
# Query
# ============================================================================

class PatientQueryDto(ContractModel):
    """Flat filter, sort and pagination shape for listing patients."""

    tenant_id: Optional[required_text(100)] = None
    organization_id: UUID
    clinic_id: Optional[UUID] = None
    include_all_clinics: Flag = False

    search: Optional[text(200)] = None
    patient_number: Optional[text(50)] = None
    first_name: Optional[text(100)] = None
    last_name: Optional[text(100)] = None
    email: Optional[EmailAddress] = None
    phone: Optional[PhoneNumber] = None
    date_of_birth: Optional[DateOnly] = None

    created_after: Optional[IsoDateTime] = None
    created_before: Optional[IsoDateTime] = None
    updated_after: Optional[IsoDateTime] = None
    updated_before: Optional[IsoDateTime] = None

    status: Optional[list[PatientStatus]] = None
    has_insurance: Optional[Flag] = None
    has_active_consent: Optional[Flag] = None
    assigned_provider_id: Optional[UUID] = None

    tags: Optional[list[text(50)]] = None
    match_all_tags: Flag = False

    min_age: Optional[NonNegativeInt] = None
    max_age: Optional[NonNegativeInt] = None

    page: PositiveInt = 1
    page_size: Annotated[int, Field(ge=1, le=MAX_PAGE_SIZE, strict=True)] = DEFAULT_PAGE_SIZE
    sort_by: SortField = SortField.LAST_NAME
    sort_order: SortOrder = SortOrder.ASC

    include_deleted: Flag = False
    include_inactive: Flag = False

    @model_validator(mode="after")
    def _ranges_ordered(self) -> "PatientQueryDto":
        for after, before, field in (
            (self.created_after, self.created_before, "createdAfter"),
            (self.updated_after, self.updated_before, "updatedAfter"),
        ):
            if after is not None and before is not None and after >= before:
                raise PydanticCustomError(
                    "invariant_violation",
                    "{field} must be before the matching upper bound",
                    {"field": field},
                )
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise PydanticCustomError(
                "invariant_violation",
                "minAge must be less than or equal to maxAge",
                {"field": "minAge"},
            )
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def age_bounds_to_birth_dates(self, today: Optional[date] = None) -> tuple[Optional[date], Optional[date]]:
        """Translate ``minAge``/``maxAge`` into an inclusive date-of-birth window.

        Parameters:
            today: Reference day, defaults to the current UTC date

        Returns:
            tuple: ``(earliest, latest)`` birth dates; either is None when the
            matching age bound is absent
        """
        today = today or utc_now().date()
        latest = years_before(today, self.min_age) if self.min_age is not None else None
        earliest = None
        if self.max_age is not None:
            earliest = years_before(today, self.max_age + 1) + timedelta(days=1)
        return earliest, latest


# ============================================================================
# Lifecycle requests
# ============================================================================

OrganizationScopedRequest = pick(
    Patient,
    "organization_id",
    name="OrganizationScopedRequest",
    doc="Request issued within one organization.",
)


class _LifecycleRequest(OrganizationScopedRequest):
    patient_id: UUID
    reason: Reason
    performed_by: UUID


class ArchivePatientDto(_LifecycleRequest):
    """Soft-delete request; the store sets deletedAt/deletedBy and status archived."""


class RestorePatientDto(_LifecycleRequest):
    """Reverses an archive."""


class ConflictResolution(ContractModel):
    """Merge options. Each flag is independent; no combination is invalid.

    The defaults keep the target's identity fields and accumulate list-like
    data from both records.
    """

    prefer_source_demographics: Flag = False
    prefer_source_contacts: Flag = False
    merge_insurance: Flag = True
    merge_medical_history: Flag = True
    merge_appointments: Flag = True
    merge_treatments: Flag = True
    merge_documents: Flag = True
    merge_tags: Flag = True

    def merged_sections(self) -> list[str]:
        """Names of the sections accumulated from both records."""
        return [
            field_name[len("merge_"):]
            for field_name in type(self).model_fields
            if field_name.startswith("merge_") and getattr(self, field_name)
        ]


class MergePatientsDto(OrganizationScopedRequest):
    source_patient_id: UUID
    target_patient_id: UUID
    conflict_resolution: ConflictResolution = Field(default_factory=ConflictResolution)
    reason: Reason
    performed_by: UUID

    @model_validator(mode="after")
    def _distinct_records(self) -> "MergePatientsDto":
        if self.source_patient_id == self.target_patient_id:
            raise PydanticCustomError(
                "invariant_violation",
                "Cannot merge a patient with itself",
                {"field": "targetPatientId"},
            )
        return self


class ExportPatientDto(OrganizationScopedRequest):
    patient_ids: Annotated[
        list[UUID],
        Field(min_length=1, max_length=MAX_BATCH_SIZE),
        AfterValidator(unique_in_order),
    ]
    format: ExportFormat = ExportFormat.JSON
    include_fields: Optional[Annotated[list[ExportFieldCategory], Field(min_length=1)]] = None
    exclude_fields: Optional[list[text(100)]] = None
    anonymize: Flag = False
    include_audit_trail: Flag = False
    requested_by: UUID
    purpose: Reason


class AnonymizePatientDto(OrganizationScopedRequest):
    """Irreversible scrubbing request.

    ``confirmIrreversible`` must be the literal ``true``; absent or any other
    value is a guard violation.
    """

    patient_id: UUID
    reason: Reason
    requested_by: UUID
    retain_fields: Annotated[list[RetainableField], AfterValidator(unique_in_order)] = Field(
        default_factory=list
    )
    performed_by: UUID
    legal_basis: required_text(200)
    confirm_irreversible: ConfirmationFlag = Field(default=None, validate_default=True)


class BulkImportPatientDto(OrganizationScopedRequest):
    """Batch envelope.

    ``patients`` holds raw create payloads; each one is validated on its own
    by ``batch.validate_bulk_import`` so that one bad record cannot sink the
    batch.
    """

    clinic_id: Optional[UUID] = None
    source: ImportSource
    patients: Annotated[list[Any], Field(min_length=1, max_length=MAX_BATCH_SIZE)]
    imported_by: UUID
    validate_only: Flag = False
    skip_duplicates: Flag = True
    update_existing: Flag = False
    dry_run: Flag = False


class SendPatientCommunicationDto(OrganizationScopedRequest):
    patient_id: UUID
    channel: CommunicationChannel
    subject: Optional[required_text(200)] = None
    message: required_text(5000)
    template_id: Optional[UUID] = None
    send_at: Optional[IsoDateTime] = None
    priority: CommunicationPriority = CommunicationPriority.NORMAL
    requires_consent: Flag = True
    sent_by: UUID

    @model_validator(mode="after")
    def _email_has_subject(self) -> "SendPatientCommunicationDto":
        if self.channel is CommunicationChannel.EMAIL and not self.subject and self.template_id is None:
            raise PydanticCustomError(
                "invariant_violation",
                "Email communications require a subject or template",
                {"field": "subject"},
            )
        return self


class CreateRelationshipDto(ContractModel):
    patient_id: UUID
    related_patient_id: UUID
    relationship_type: RelationshipType
    is_primary_contact: Flag = False
    is_emergency_contact: Flag = False
    can_access_records: Flag = False
    notes: Optional[text(500)] = None

    @model_validator(mode="after")
    def _distinct_patients(self) -> "CreateRelationshipDto":
        if self.patient_id == self.related_patient_id:
            raise PydanticCustomError(
                "invariant_violation",
                "Patient cannot have a relationship with themselves",
                {"field": "relatedPatientId"},
            )
        return self
