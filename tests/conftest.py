"""Shared fixtures for the patient-contracts test suite."""

from uuid import UUID

import pytest

from payloads import ORGANIZATION_ID, USER_ID, coverage, create_payload, patient_payload


@pytest.fixture
def organization_id():
    return UUID(ORGANIZATION_ID)


@pytest.fixture
def user_id():
    return UUID(USER_ID)


@pytest.fixture
def valid_create():
    return create_payload()


@pytest.fixture
def valid_patient():
    return patient_payload()


@pytest.fixture
def full_patient():
    """Canonical record exercising every optional branch."""
    return patient_payload(
        clinicId="0b9d7f3a-1e5c-4a2b-8d6f-3c1e9a7b5d00",
        name={"firstName": "Ada", "middleName": "King", "lastName": "Lovelace", "title": "Dr."},
        demographics={
            "dateOfBirth": "1980-05-17",
            "gender": "female",
            "maritalStatus": "married",
            "race": ["white"],
            "preferredLanguage": "en-GB",
            "socialSecurityNumber": "123-45-6789",
        },
        emergencyContacts=[
            {"name": "Charles Babbage", "relationship": "friend", "phoneNumber": "+15550100999", "isPrimary": True},
        ],
        insurance={
            "primary": coverage(effectiveDate="2023-01-01", terminationDate="2025-01-01"),
            "secondary": coverage(provider="Backup Mutual"),
        },
        medical={
            "allergies": [{"allergen": "Penicillin", "severity": "severe", "reaction": "Hives"}],
            "medications": [{"name": "Metformin", "startDate": "2020-01-01", "prescribedBy": "Dr. Who"}],
            "conditions": [{"name": "Type 2 diabetes", "status": "active"}],
            "alerts": [{
                "type": "allergy",
                "message": "Severe penicillin allergy",
                "createdAt": "2024-01-02T09:30:00Z",
                "createdBy": USER_ID,
            }],
        },
        consents=[{
            "type": "hipaa",
            "granted": True,
            "grantedAt": "2024-01-02T09:30:00Z",
            "grantedBy": USER_ID,
            "signatureData": "data:image/png;base64,AAAA",
        }],
        referralSource="Website",
        notes="Prefers morning appointments",
        metadata={"legacyId": "X-99"},
    )
