"""Anonymization Service.

Applies an ``AnonymizePatientDto`` to a normalized ``Patient``: direct
identifiers are removed or replaced by fixed masks, quasi-identifiers are
generalized unless the request asks to retain them, and clinical annotations
are kept without their free text.

Security Impact:
    - The transformation is irreversible; nothing removed is kept anywhere
    - The scrubbed record is re-validated so it still satisfies every
      invariant of the canonical schema
    - Nothing about the original values is logged

Architecture:
    - Pure domain service with zero infrastructure dependencies
    - Works on the JSON payload of the record and re-normalizes it
"""

import logging
from datetime import datetime
from typing import Any, Optional

from patient_contracts.domain.dtos import AnonymizePatientDto
from patient_contracts.domain.enums import Gender, PatientStatus, RetainableField
from patient_contracts.domain.errors import ValidationErrors, Violation, ViolationKind
from patient_contracts.domain.golden_record import Patient
from patient_contracts.domain.normalization import normalize, to_payload
from patient_contracts.domain.ports import Result
from patient_contracts.domain.primitives import utc_now

logger = logging.getLogger(__name__)


class AnonymizationService:
    """Scrubs identifying data from patient records.

    The masks are valid values for their fields so that an anonymized record
    remains a valid canonical ``Patient``.
    """

    FIRST_NAME_MASK = "Anonymized"
    LAST_NAME_MASK = "Patient"
    PATIENT_NUMBER_PREFIX = "ANON-"

    # Free-text fields that may hold identifiers
    MEDICAL_FREE_TEXT = ("notes", "reaction", "prescribedBy")
    CONSENT_ARTIFACTS = ("signatureData", "documentUrl", "notes")

    @classmethod
    def anonymize_patient(
        cls,
        patient: Patient,
        request: AnonymizePatientDto,
        *,
        now: Optional[datetime] = None,
    ) -> Result[Patient]:
        """Return the anonymized copy of ``patient``.

        Parameters:
            patient: Normalized record to scrub
            request: Validated anonymization request for this record
            now: Timestamp recorded as ``updatedAt``, defaults to the current time

        Returns:
            Result[Patient]: The scrubbed, re-validated record, or a guard
            violation when the request does not target ``patient``
        """
        mismatch = cls._check_target(patient, request)
        if mismatch is not None:
            return Result.failure_result(mismatch, error_type="ValidationErrors")

        retained = set(request.retain_fields)
        payload = to_payload(patient)
        payload["patientNumber"] = cls.mask_patient_number(patient)
        payload["name"] = {"firstName": cls.FIRST_NAME_MASK, "lastName": cls.LAST_NAME_MASK}
        payload["demographics"] = cls.scrub_demographics(payload["demographics"], retained)
        payload["contacts"] = {
            "preferredContactMethod": payload["contacts"].get("preferredContactMethod", "email"),
        }
        payload["emergencyContacts"] = []
        payload.pop("insurance", None)
        if "medical" in payload:
            payload["medical"] = cls.scrub_medical(payload["medical"])
        preferences = dict(payload["communicationPreferences"])
        preferences.pop("preferredContactTime", None)
        payload["communicationPreferences"] = {**preferences, "doNotContact": True}
        payload["consents"] = [cls.scrub_consent(consent) for consent in payload.get("consents", [])]
        for dropped in ("referralSource", "notes", "metadata"):
            payload.pop(dropped, None)
        payload["status"] = PatientStatus.INACTIVE.value
        payload["updatedAt"] = (now or utc_now()).isoformat()
        payload["updatedBy"] = str(request.performed_by)

        result = normalize(Patient, payload)
        if result.is_success():
            logger.info(
                f"Anonymized patient {patient.id} (retained: {sorted(field.value for field in retained)})"
            )
        return result

    @staticmethod
    def _check_target(patient: Patient, request: AnonymizePatientDto) -> Optional[ValidationErrors]:
        if patient.id != request.patient_id:
            path, message = "patientId", "Request does not target this record"
        elif patient.organization_id != request.organization_id:
            path, message = "organizationId", "Record belongs to a different organization"
        else:
            return None
        return ValidationErrors([Violation(path, ViolationKind.GUARD, message, "target_mismatch")])

    @classmethod
    def mask_patient_number(cls, patient: Patient) -> str:
        """Replace the human-facing number with one derived from the opaque id."""
        return f"{cls.PATIENT_NUMBER_PREFIX}{patient.id.hex[:12].upper()}"

    @staticmethod
    def scrub_demographics(demographics: dict[str, Any], retained: set) -> dict[str, Any]:
        """Keep only generalized demographics.

        The date of birth is generalized to January 1st of the birth year and
        gender to ``prefer_not_to_say`` unless the request retains them.
        """
        date_of_birth = demographics["dateOfBirth"]
        if RetainableField.DATE_OF_BIRTH not in retained:
            date_of_birth = f"{date_of_birth[:4]}-01-01"
        gender = demographics["gender"]
        if RetainableField.GENDER not in retained:
            gender = Gender.PREFER_NOT_TO_SAY.value
        return {
            "dateOfBirth": date_of_birth,
            "gender": gender,
            "preferredLanguage": demographics.get("preferredLanguage", "en"),
        }

    @classmethod
    def scrub_medical(cls, medical: dict[str, Any]) -> dict[str, Any]:
        """Keep structured annotations, drop their free text and every alert."""
        scrubbed = {}
        for section in ("allergies", "medications", "conditions"):
            scrubbed[section] = [
                {key: value for key, value in entry.items() if key not in cls.MEDICAL_FREE_TEXT}
                for entry in medical.get(section, [])
            ]
        scrubbed["alerts"] = []
        return scrubbed

    @classmethod
    def scrub_consent(cls, consent: dict[str, Any]) -> dict[str, Any]:
        return {key: value for key, value in consent.items() if key not in cls.CONSENT_ARTIFACTS}


def anonymize_patient(
    patient: Patient,
    request: AnonymizePatientDto,
    *,
    now: Optional[datetime] = None,
) -> Result[Patient]:
    """Module-level shortcut for ``AnonymizationService.anonymize_patient``."""
    return AnonymizationService.anonymize_patient(patient, request, now=now)
