"""Value-object schemas.

Composite but locally consistent shapes owned by a patient record: names,
contact points, demographics, medical annotations, insurance coverage,
consents and communication preferences. Each model applies its own defaults
and node-scoped refinements; rules spanning a whole collection live in
``invariants`` and are attached where the collection is declared.

Security Impact:
    - Most models here carry PHI; validators never echo offending values
      into error messages
    - Medical annotations are validated for shape only, no clinical logic

Architecture:
    - Pure domain models with zero infrastructure dependencies
    - Models are immutable (``frozen=True``) once normalized
"""

import logging
from datetime import date, datetime
from typing import Annotated, Any, Optional
from uuid import UUID

from pydantic import AfterValidator, Field, StringConstraints, ValidationInfo, model_validator
from pydantic_core import PydanticCustomError

from patient_contracts.domain.enums import (
    AddressType,
    AlertType,
    CommunicationChannel,
    ConditionStatus,
    ConsentType,
    CoverageType,
    EmailType,
    Ethnicity,
    Gender,
    MaritalStatus,
    MedicalSeverity,
    PhoneType,
    RelationshipToSubscriber,
    SignatureType,
)
from patient_contracts.domain.invariants import (
    cascade_do_not_contact,
    check_channel_enabled,
    check_not_before,
)
from patient_contracts.domain.policy import policy_from
from patient_contracts.domain.primitives import (
    NAME_PATTERN,
    OPTIONAL_NAME_PATTERN,
    ContractModel,
    DateOnly,
    EmailAddress,
    Flag,
    IsoDateTime,
    LanguageCode,
    PhoneNumber,
    SocialSecurityNumber,
    TimeOfDay,
    Url,
    required_text,
    text,
    unique_in_order,
    utc_now,
)

logger = logging.getLogger(__name__)


# ============================================================================
# Names
# ============================================================================

class PersonName(ContractModel):
    """Structured person name.

    Single-character, hyphenated and apostrophe names are valid, as are
    Latin-1 accented letters.
    """

    first_name: Annotated[str, StringConstraints(min_length=1, max_length=100, pattern=NAME_PATTERN)]
    last_name: Annotated[str, StringConstraints(min_length=1, max_length=100, pattern=NAME_PATTERN)]
    middle_name: Optional[Annotated[str, StringConstraints(max_length=100, pattern=OPTIONAL_NAME_PATTERN)]] = None
    preferred_name: Optional[Annotated[str, StringConstraints(max_length=100, pattern=OPTIONAL_NAME_PATTERN)]] = None
    suffix: Optional[Annotated[str, StringConstraints(max_length=20, pattern=r"^[A-Za-z., ]*$")]] = None
    title: Optional[Annotated[str, StringConstraints(max_length=20, pattern=r"^[A-Za-z. ]*$")]] = None

    @property
    def display_name(self) -> str:
        first = self.preferred_name or self.first_name
        return f"{first} {self.last_name}"


# ============================================================================
# Contact points
# ============================================================================

class PhoneContact(ContractModel):
    type: PhoneType = PhoneType.MOBILE
    number: PhoneNumber
    extension: Optional[Annotated[str, StringConstraints(max_length=10, pattern=r"^\d+$")]] = None
    is_primary: Flag = False
    is_verified: Flag = False
    verified_at: Optional[IsoDateTime] = None
    notes: Optional[text(200)] = None


class EmailContact(ContractModel):
    type: EmailType = EmailType.PERSONAL
    address: EmailAddress
    is_primary: Flag = False
    is_verified: Flag = False
    verified_at: Optional[IsoDateTime] = None
    notes: Optional[text(200)] = None


class PhysicalAddress(ContractModel):
    """Postal address.

    ``state`` and ``postal_code`` are optional to admit military, PO box and
    international addresses.
    """

    type: AddressType = AddressType.HOME
    street1: required_text(200)
    street2: Optional[text(200)] = None
    city: required_text(100)
    state: Optional[text(100)] = None
    postal_code: Optional[text(20)] = None
    country: required_text(100) = "USA"
    is_primary: Flag = False
    notes: Optional[text(200)] = None


class EmergencyContact(ContractModel):
    name: required_text(200)
    relationship: required_text(100)
    phone_number: PhoneNumber
    alternate_phone_number: Optional[PhoneNumber] = None
    email: Optional[EmailAddress] = None
    address: Optional[PhysicalAddress] = None
    is_primary: Flag = False
    notes: Optional[text(500)] = None


# ============================================================================
# Demographics
# ============================================================================

def _not_in_future(value: date) -> date:
    if value > utc_now().date():
        raise ValueError("Date of birth cannot be in the future")
    return value


# The 150-year bound applies to submitted requests only, see dtos
BirthDate = Annotated[DateOnly, AfterValidator(_not_in_future)]


class Demographics(ContractModel):
    date_of_birth: BirthDate
    gender: Gender
    marital_status: Optional[MaritalStatus] = None
    ethnicity: Optional[Ethnicity] = None
    race: list[text(100)] = Field(default_factory=list)
    preferred_language: LanguageCode = "en"
    occupation: Optional[text(200)] = None
    employer: Optional[text(200)] = None
    social_security_number: Optional[SocialSecurityNumber] = None
    photo_url: Optional[Url] = None


# ============================================================================
# Medical annotations
# ============================================================================

class Allergy(ContractModel):
    allergen: required_text(200)
    severity: Optional[MedicalSeverity] = None
    reaction: Optional[text(500)] = None
    verified_date: Optional[DateOnly] = None
    notes: Optional[text(1000)] = None


class Medication(ContractModel):
    name: required_text(200)
    dosage: Optional[text(100)] = None
    frequency: Optional[text(100)] = None
    start_date: Optional[DateOnly] = None
    end_date: Optional[DateOnly] = None
    prescribed_by: Optional[text(200)] = None
    notes: Optional[text(1000)] = None

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "Medication":
        check_not_before(
            self.start_date, self.end_date, "endDate",
            "Medication end date cannot be before its start date",
        )
        return self


class Condition(ContractModel):
    name: required_text(200)
    diagnosed_date: Optional[DateOnly] = None
    status: Optional[ConditionStatus] = None
    severity: Optional[MedicalSeverity] = None
    notes: Optional[text(1000)] = None


class MedicalAlert(ContractModel):
    """Alert shown to staff opening the record.

    An alert is active while ``expires_at`` is absent or in the future.
    """

    type: AlertType
    message: required_text(500)
    severity: MedicalSeverity = MedicalSeverity.MODERATE
    created_at: IsoDateTime
    created_by: UUID
    expires_at: Optional[IsoDateTime] = None

    def is_active(self, now: Optional[datetime] = None) -> bool:
        if self.expires_at is None:
            return True
        return self.expires_at > (now or utc_now())


class MedicalFlags(ContractModel):
    """Four independent annotation lists; entries never reference each other."""

    allergies: list[Allergy] = Field(default_factory=list, max_length=50)
    medications: list[Medication] = Field(default_factory=list, max_length=100)
    conditions: list[Condition] = Field(default_factory=list, max_length=50)
    alerts: list[MedicalAlert] = Field(default_factory=list, max_length=20)

    def active_alerts(self, now: Optional[datetime] = None) -> list[MedicalAlert]:
        return [alert for alert in self.alerts if alert.is_active(now)]


# ============================================================================
# Insurance
# ============================================================================

class InsuranceCoverage(ContractModel):
    """One insurance policy.

    When used inside ``PatientInsurance`` the ``coverage_type`` defaults to
    the slot it occupies; standalone it defaults to primary.
    """

    provider: required_text(200)
    policy_number: required_text(100)
    group_number: Optional[text(100)] = None
    subscriber_name: required_text(200)
    subscriber_date_of_birth: Optional[DateOnly] = None
    relationship_to_subscriber: RelationshipToSubscriber = RelationshipToSubscriber.SELF
    effective_date: Optional[DateOnly] = None
    termination_date: Optional[DateOnly] = None
    coverage_type: CoverageType = CoverageType.PRIMARY
    is_active: Flag = True
    plan_name: Optional[text(200)] = None
    plan_type: Optional[text(100)] = None
    insurance_phone: Optional[PhoneNumber] = None
    notes: Optional[text(1000)] = None

    @model_validator(mode="after")
    def _termination_not_before_effective(self) -> "InsuranceCoverage":
        check_not_before(
            self.effective_date, self.termination_date, "terminationDate",
            "Termination date cannot be before the effective date",
        )
        return self


# ============================================================================
# Communication and consent
# ============================================================================

class ContactTimeWindow(ContractModel):
    start: TimeOfDay
    end: TimeOfDay


class CommunicationPreferences(ContractModel):
    """How, and whether, the practice may reach the patient.

    ``do_not_contact`` forces every reminder, marketing, education and survey
    flag to False during normalization, whatever the input said.
    """

    preferred_channel: CommunicationChannel = CommunicationChannel.EMAIL
    enabled_channels: Annotated[
        list[CommunicationChannel],
        Field(min_length=1),
        AfterValidator(unique_in_order),
    ]
    appointment_reminders: Flag = True
    recall_reminders: Flag = True
    treatment_updates: Flag = True
    marketing_communications: Flag = False
    educational_content: Flag = True
    survey_requests: Flag = True
    preferred_contact_time: Optional[ContactTimeWindow] = None
    do_not_contact: Flag = False

    @model_validator(mode="before")
    @classmethod
    def _apply_do_not_contact(cls, data: Any) -> Any:
        return cascade_do_not_contact(data)

    @model_validator(mode="after")
    def _preferred_channel_enabled(self) -> "CommunicationPreferences":
        check_channel_enabled(self)
        return self

    @property
    def allows_reminders(self) -> bool:
        return not self.do_not_contact and self.appointment_reminders


class ConsentRecord(ContractModel):
    type: ConsentType
    granted: Flag
    granted_at: IsoDateTime
    granted_by: UUID
    revoked_at: Optional[IsoDateTime] = None
    revoked_by: Optional[UUID] = None
    expires_at: Optional[IsoDateTime] = None
    signature_type: SignatureType = SignatureType.DIGITAL
    signature_data: Optional[str] = None
    document_url: Optional[Url] = None
    notes: Optional[text(1000)] = None
    version: required_text(20) = "1.0"

    @model_validator(mode="after")
    def _revocation_has_actor(self) -> "ConsentRecord":
        if self.revoked_at is not None and self.revoked_by is None:
            raise PydanticCustomError(
                "invariant_violation",
                "A revoked consent must identify who revoked it",
                {"field": "revokedBy"},
            )
        return self

    @model_validator(mode="after")
    def _revocation_after_grant(self) -> "ConsentRecord":
        check_not_before(
            self.granted_at, self.revoked_at, "revokedAt",
            "Revocation cannot precede the grant",
        )
        return self

    @model_validator(mode="after")
    def _declined_consent_details(self, info: ValidationInfo) -> "ConsentRecord":
        if self.granted or self.revoked_at is not None:
            return self
        if policy_from(info).require_revocation_details:
            raise PydanticCustomError(
                "invariant_violation",
                "A consent with granted=false must record revokedAt and revokedBy",
                {"field": "revokedAt"},
            )
        logger.debug(f"Consent of type {self.type.value} is not granted and has no revocation details")
        return self

    def is_in_effect(self, now: Optional[datetime] = None) -> bool:
        """True while granted, not revoked and not expired."""
        now = now or utc_now()
        if not self.granted or self.revoked_at is not None:
            return False
        return self.expires_at is None or self.expires_at > now
