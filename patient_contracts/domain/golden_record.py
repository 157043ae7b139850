"""Canonical patient record.

The ``Patient`` model is the single source of truth for the contract: every
DTO in ``dtos`` is derived from its fields by the combinators in
``projections`` rather than declared by hand.

Security Impact:
    - The record carries PHI across nearly every branch; it is immutable once
      normalized so no layer can alter it after validation
    - ``metadata`` is free-form and must not be used to smuggle PHI past the
      field-level constraints

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Field-level rules (including collection invariants) are ``Annotated``
      metadata so that projections copying a field keep them
    - Rules reading several fields of the root are ``model_validator`` hooks
      and apply to the canonical record only
"""

from datetime import datetime
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import AfterValidator, Field, model_validator
from pydantic_core import PydanticCustomError

from patient_contracts.domain.enums import ContactMethod, PatientStatus
from patient_contracts.domain.invariants import (
    TIER_SLOTS,
    check_not_before,
    check_slot_coverage_types,
    check_tier_ordering,
    single_primary,
)
from patient_contracts.domain.primitives import (
    ContractModel,
    IsoDateTime,
    NonNegativeInt,
    Tags,
    required_text,
    text,
)
from patient_contracts.domain.value_objects import (
    CommunicationPreferences,
    ConsentRecord,
    Demographics,
    EmailContact,
    EmergencyContact,
    InsuranceCoverage,
    MedicalAlert,
    MedicalFlags,
    PersonName,
    PhoneContact,
    PhysicalAddress,
)

MAX_EMERGENCY_CONTACTS = 5


class PatientContacts(ContractModel):
    """Ordered contact points with at most one primary per kind.

    A non-empty sequence without a primary is valid; the ``primary_*``
    helpers then fall back to the first element.
    """

    phones: Annotated[list[PhoneContact], AfterValidator(single_primary("phone"))] = Field(default_factory=list)
    emails: Annotated[list[EmailContact], AfterValidator(single_primary("email"))] = Field(default_factory=list)
    addresses: Annotated[list[PhysicalAddress], AfterValidator(single_primary("address"))] = Field(
        default_factory=list
    )
    preferred_contact_method: ContactMethod = ContactMethod.EMAIL

    @staticmethod
    def _primary_or_first(items: list) -> Optional[Any]:
        for item in items:
            if item.is_primary:
                return item
        return items[0] if items else None

    def primary_phone(self) -> Optional[PhoneContact]:
        return self._primary_or_first(self.phones)

    def primary_email(self) -> Optional[EmailContact]:
        return self._primary_or_first(self.emails)

    def primary_address(self) -> Optional[PhysicalAddress]:
        return self._primary_or_first(self.addresses)

    @property
    def is_reachable(self) -> bool:
        return bool(self.phones or self.emails)


class PatientInsurance(ContractModel):
    """Up to three coverage slots populated without gaps.

    A coverage that omits ``coverageType`` takes the name of its slot.
    """

    primary: Optional[InsuranceCoverage] = None
    secondary: Optional[InsuranceCoverage] = None
    tertiary: Optional[InsuranceCoverage] = None

    @model_validator(mode="before")
    @classmethod
    def _default_coverage_type_from_slot(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        filled = dict(data)
        for slot in TIER_SLOTS:
            coverage = filled.get(slot)
            if isinstance(coverage, dict) and "coverageType" not in coverage and "coverage_type" not in coverage:
                filled[slot] = {**coverage, "coverageType": slot}
        return filled

    @model_validator(mode="after")
    def _tiers_in_order(self) -> "PatientInsurance":
        check_tier_ordering(self)
        check_slot_coverage_types(self)
        return self

    def coverages(self) -> list[InsuranceCoverage]:
        """Populated slots in tier order."""
        return [getattr(self, slot) for slot in TIER_SLOTS if getattr(self, slot) is not None]


EmergencyContacts = Annotated[
    list[EmergencyContact],
    Field(max_length=MAX_EMERGENCY_CONTACTS),
    AfterValidator(single_primary("emergency contact")),
]


class Patient(ContractModel):
    """Golden record for a patient as stored.

    Parameters:
        id: Server-assigned identifier
        tenant_id: Tenant partition key
        organization_id: Owning organization
        clinic_id: Home clinic, absent for organization-wide patients
        patient_number: Human-facing number, unique per organization
        name: Structured name
        demographics: Birth date, gender and related attributes
        contacts: Phones, emails and addresses
        emergency_contacts: Up to five, at most one primary
        insurance: Gap-free primary/secondary/tertiary coverage
        medical: Allergy, medication, condition and alert annotations
        communication_preferences: Channels and reminder switches
        consents: Consent history
        status: Lifecycle status
        assigned_provider_id: Responsible provider
        referral_source: How the patient found the practice
        tags: Lowercase labels, de-duplicated in order
        notes: Free text
        metadata: Free-form map owned by integrations
        created_at, created_by, updated_at, updated_by: Audit trail
        deleted_at, deleted_by: Soft-delete marker, both or neither
        version: Optimistic-concurrency token, incremented by the store
    """

    id: UUID
    tenant_id: required_text(100)
    organization_id: UUID
    clinic_id: Optional[UUID] = None
    patient_number: required_text(50)
    name: PersonName
    demographics: Demographics
    contacts: PatientContacts
    emergency_contacts: EmergencyContacts = Field(default_factory=list)
    insurance: Optional[PatientInsurance] = None
    medical: Optional[MedicalFlags] = None
    communication_preferences: CommunicationPreferences
    consents: list[ConsentRecord] = Field(default_factory=list)
    status: PatientStatus = PatientStatus.ACTIVE
    assigned_provider_id: Optional[UUID] = None
    referral_source: Optional[text(200)] = None
    tags: Tags = Field(default_factory=list)
    notes: Optional[text(5000)] = None
    metadata: Optional[dict[str, Any]] = None
    created_at: IsoDateTime
    updated_at: IsoDateTime
    deleted_at: Optional[IsoDateTime] = None
    created_by: UUID
    updated_by: UUID
    deleted_by: Optional[UUID] = None
    version: NonNegativeInt = 0

    @model_validator(mode="after")
    def _audit_timestamps_ordered(self) -> "Patient":
        check_not_before(
            self.created_at, self.updated_at, "updatedAt",
            "updatedAt cannot precede createdAt",
        )
        return self

    @model_validator(mode="after")
    def _soft_delete_marker_complete(self) -> "Patient":
        if (self.deleted_at is None) != (self.deleted_by is None):
            missing = "deletedBy" if self.deleted_by is None else "deletedAt"
            raise PydanticCustomError(
                "invariant_violation",
                "deletedAt and deletedBy must be set together",
                {"field": missing},
            )
        return self

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def active_alerts(self, now: Optional[datetime] = None) -> list[MedicalAlert]:
        """Medical alerts that have not expired at ``now``."""
        if self.medical is None:
            return []
        return self.medical.active_alerts(now)

    def consents_in_effect(self, now: Optional[datetime] = None) -> list[ConsentRecord]:
        return [consent for consent in self.consents if consent.is_in_effect(now)]
