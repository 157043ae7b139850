"""Tests for the anonymization service."""

from datetime import date, datetime, timedelta, timezone

import pytest

from patient_contracts.domain.enums import Gender, PatientStatus
from patient_contracts.domain.errors import ViolationKind
from patient_contracts.domain.primitives import utc_now, years_before
from patient_contracts.domain.services import AnonymizationService, anonymize_patient
from patient_contracts.domain.validation import to_payload, validate_anonymize, validate_patient

from payloads import ORGANIZATION_ID, OTHER_PATIENT_ID, PATIENT_ID, USER_ID

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def request(**extra):
    return validate_anonymize({
        "organizationId": ORGANIZATION_ID,
        "patientId": PATIENT_ID,
        "reason": "Erasure request",
        "requestedBy": USER_ID,
        "performedBy": USER_ID,
        "legalBasis": "GDPR Art. 17",
        "confirmIrreversible": True,
        **extra,
    }).unwrap()


class TestAnonymizationService:
    """Test suite for AnonymizationService."""

    @pytest.fixture
    def patient(self, full_patient):
        return validate_patient(full_patient).unwrap()

    def test_direct_identifiers_removed(self, patient):
        """Test that names, contacts and identifiers are scrubbed."""
        anonymized = anonymize_patient(patient, request(), now=NOW).unwrap()

        assert anonymized.id == patient.id
        assert anonymized.name.first_name == AnonymizationService.FIRST_NAME_MASK
        assert anonymized.name.middle_name is None
        assert anonymized.patient_number.startswith("ANON-")
        assert anonymized.contacts.phones == []
        assert anonymized.contacts.emails == []
        assert anonymized.contacts.addresses == []
        assert anonymized.emergency_contacts == []
        assert anonymized.insurance is None
        assert anonymized.demographics.social_security_number is None
        assert anonymized.notes is None
        assert anonymized.metadata is None
        assert anonymized.referral_source is None

    def test_quasi_identifiers_generalized(self, patient):
        """Test that birth date and gender are generalized by default."""
        anonymized = anonymize_patient(patient, request(), now=NOW).unwrap()
        assert anonymized.demographics.date_of_birth == date(1980, 1, 1)
        assert anonymized.demographics.gender == Gender.PREFER_NOT_TO_SAY
        assert anonymized.demographics.preferred_language == "en-GB"

    def test_retained_fields_kept(self, patient):
        """Test that retained quasi-identifiers survive."""
        anonymized = anonymize_patient(patient, request(retainFields=["dateOfBirth", "gender"]), now=NOW).unwrap()
        assert anonymized.demographics.date_of_birth == date(1980, 5, 17)
        assert anonymized.demographics.gender == Gender.FEMALE

    def test_medical_free_text_removed(self, patient):
        """Test that clinical annotations keep structure but lose free text."""
        anonymized = anonymize_patient(patient, request(), now=NOW).unwrap()
        allergy = anonymized.medical.allergies[0]
        assert allergy.allergen == "Penicillin"
        assert allergy.reaction is None
        assert anonymized.medical.medications[0].prescribed_by is None
        assert anonymized.medical.alerts == []

    def test_communication_and_consents(self, patient):
        """Test that the record can no longer be contacted and consent artifacts are gone."""
        anonymized = anonymize_patient(patient, request(), now=NOW).unwrap()
        assert anonymized.communication_preferences.do_not_contact is True
        assert anonymized.communication_preferences.appointment_reminders is False
        assert anonymized.consents[0].signature_data is None
        assert anonymized.consents[0].granted is True

    def test_audit_fields(self, patient):
        """Test the lifecycle fields of the scrubbed record."""
        anonymized = anonymize_patient(patient, request(), now=NOW).unwrap()
        assert anonymized.status == PatientStatus.INACTIVE
        assert anonymized.updated_at == NOW
        assert str(anonymized.updated_by) == USER_ID
        assert anonymized.version == patient.version

    def test_result_revalidates(self, patient):
        """Test that the scrubbed record is itself a valid canonical record."""
        anonymized = anonymize_patient(patient, request(), now=NOW).unwrap()
        assert validate_patient(to_payload(anonymized)).value == anonymized

    def test_birth_date_near_age_bound(self, full_patient):
        """Test that generalizing a birth date near 150 years ago still yields a valid record."""
        born = years_before(utc_now().date(), 150) + timedelta(days=1)
        full_patient["demographics"]["dateOfBirth"] = born.isoformat()
        patient = validate_patient(full_patient).unwrap()

        anonymized = anonymize_patient(patient, request(), now=NOW).unwrap()
        assert anonymized.demographics.date_of_birth == date(born.year, 1, 1)

    def test_record_aged_past_bound(self, full_patient):
        """Test that a stored record older than 150 years can still be anonymized."""
        full_patient["demographics"]["dateOfBirth"] = years_before(utc_now().date(), 151).isoformat()
        patient = validate_patient(full_patient).unwrap()
        assert anonymize_patient(patient, request(), now=NOW).is_success()

    def test_wrong_target(self, patient):
        """Test that a request for another patient is refused."""
        result = anonymize_patient(patient, request(patientId=OTHER_PATIENT_ID), now=NOW)
        assert result.is_failure()
        assert result.errors.at("patientId")[0].kind == ViolationKind.GUARD
