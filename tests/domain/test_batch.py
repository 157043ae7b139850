"""Tests for bulk import and merge planning."""

from uuid import UUID

import pytest

from patient_contracts.domain.batch import (
    ImportAction,
    ItemStatus,
    plan_merge,
    validate_bulk_import,
    validate_merge_request,
)
from patient_contracts.domain.errors import ViolationKind
from patient_contracts.domain.validation import validate_patient

from payloads import ORGANIZATION_ID, OTHER_PATIENT_ID, PATIENT_ID, USER_ID, create_payload, patient_payload


def person(first, last, number, dob="1980-05-17"):
    payload = create_payload(patientNumber=number)
    payload["name"] = {"firstName": first, "lastName": last}
    payload["demographics"] = {"dateOfBirth": dob, "gender": "female"}
    return payload


def envelope(patients, **flags):
    return {
        "organizationId": ORGANIZATION_ID,
        "source": "csv",
        "patients": patients,
        "importedBy": USER_ID,
        **flags,
    }


class TestBulkImportEnvelope:
    """Test suite for the batch envelope."""

    def test_defaults(self):
        """Test batch flag defaults."""
        request = validate_bulk_import(envelope([person("Ada", "Lovelace", "P-1")])).value.request
        assert request.validate_only is False
        assert request.skip_duplicates is True
        assert request.update_existing is False
        assert request.dry_run is False

    def test_empty_batch(self):
        """Test that a batch needs at least one patient."""
        result = validate_bulk_import(envelope([]))
        assert result.is_failure()
        assert result.errors.at("patients")[0].kind == ViolationKind.CONSTRAINT

    def test_batch_size_limit(self):
        """Test the maximum batch size."""
        result = validate_bulk_import(envelope([{}] * 1001))
        assert result.errors.at("patients")

    def test_unknown_source(self):
        """Test that the source format is an enumeration."""
        result = validate_bulk_import({**envelope([{}]), "source": "floppy"})
        assert result.errors.at("source")[0].kind == ViolationKind.CONSTRAINT


class TestBulkImportIsolation:
    """Test suite for per-record isolation."""

    def test_malformed_record_does_not_abort_batch(self):
        """Test that element 1 fails while elements 0 and 2 validate."""
        malformed = person("Grace", "Hopper", "P-2")
        malformed["demographics"]["dateOfBirth"] = "yesterday"
        del malformed["name"]["lastName"]
        patients = [person("Ada", "Lovelace", "P-1"), malformed, person("Alan", "Turing", "P-3")]

        report = validate_bulk_import(envelope(patients)).value

        assert [o.status for o in report.outcomes] == [ItemStatus.VALID, ItemStatus.FAILED, ItemStatus.VALID]
        assert [o.index for o in report.succeeded] == [0, 2]
        assert [o.index for o in report.failed] == [1]
        assert set(report.failed[0].errors.paths) == {
            "patients[1].name.lastName",
            "patients[1].demographics.dateOfBirth",
        }
        assert not report.all_valid

    def test_non_object_record(self):
        """Test that a scalar element fails on its own."""
        report = validate_bulk_import(envelope([person("Ada", "Lovelace", "P-1"), "oops"])).value
        assert report.outcomes[1].status == ItemStatus.FAILED
        assert report.outcomes[1].errors.violations[0].kind == ViolationKind.STRUCTURAL
        assert report.outcomes[1].errors.paths == ["patients[1]"]

    def test_organization_mismatch(self):
        """Test that every patient must belong to the importing organization."""
        stranger = person("Ada", "Lovelace", "P-1")
        stranger["organizationId"] = OTHER_PATIENT_ID
        report = validate_bulk_import(envelope([stranger])).value
        assert report.outcomes[0].errors.paths == ["patients[0].organizationId"]

    def test_planned_create(self):
        """Test that a new patient is planned for creation."""
        report = validate_bulk_import(envelope([person("Ada", "Lovelace", "P-1")])).value
        assert report.outcomes[0].action == ImportAction.CREATE
        assert report.commits is True


class TestBulkImportDuplicates:
    """Test suite for duplicate, skip and update decisions."""

    def test_duplicate_number_skipped(self):
        """Test that a repeated patient number is skipped by default."""
        patients = [person("Ada", "Lovelace", "P-1"), person("Alan", "Turing", "p-1")]
        report = validate_bulk_import(envelope(patients)).value

        second = report.outcomes[1]
        assert second.status == ItemStatus.SKIPPED
        assert second.action == ImportAction.SKIP
        assert second.duplicate_of == 0

    def test_duplicate_identity_fails_without_skip(self):
        """Test that duplicates fail when skipping is disabled."""
        patients = [person("Ada", "Lovelace", "P-1"), person("ADA", "lovelace", "P-2")]
        report = validate_bulk_import(envelope(patients, skipDuplicates=False)).value

        second = report.outcomes[1]
        assert second.status == ItemStatus.FAILED
        assert second.errors.violations[0].kind == ViolationKind.INVARIANT
        assert second.errors.violations[0].code == "duplicate_record"

    def test_same_name_different_birth_date(self):
        """Test that namesakes are not duplicates."""
        patients = [person("Ada", "Lovelace", "P-1"), person("Ada", "Lovelace", "P-2", dob="1990-01-01")]
        report = validate_bulk_import(envelope(patients)).value
        assert report.all_valid
        assert len(report.skipped) == 0

    def test_existing_record_updated(self):
        """Test the update decision for a known patient number."""
        report = validate_bulk_import(
            envelope([person("Ada", "Lovelace", "P-1")], updateExisting=True, dryRun=True),
            existing_numbers={"P-1"},
        ).value
        assert report.outcomes[0].action == ImportAction.UPDATE
        assert report.commits is False
        assert report.planned_actions() == {"create": 0, "update": 1, "skip": 0}

    def test_existing_record_skipped(self):
        """Test the skip decision for a known patient number."""
        report = validate_bulk_import(envelope([person("Ada", "Lovelace", "P-1")]), existing_numbers={"P-1"}).value
        assert report.outcomes[0].status == ItemStatus.SKIPPED

    def test_existing_record_fails_without_skip_or_update(self):
        """Test the failure decision for a known patient number."""
        report = validate_bulk_import(
            envelope([person("Ada", "Lovelace", "P-1")], skipDuplicates=False),
            existing_numbers={"p-1"},
        ).value
        assert report.outcomes[0].errors.paths == ["patients[0].patientNumber"]

    def test_validate_only_makes_no_decisions(self):
        """Test that validate-only reports validity alone."""
        patients = [person("Ada", "Lovelace", "P-1"), person("Ada", "Lovelace", "P-1")]
        report = validate_bulk_import(envelope(patients, validateOnly=True), existing_numbers={"P-1"}).value

        assert [o.status for o in report.outcomes] == [ItemStatus.VALID, ItemStatus.VALID]
        assert [o.action for o in report.outcomes] == [None, None]
        assert report.outcomes[1].duplicate_of == 0
        assert report.commits is False

    def test_summary(self):
        """Test the summary counters."""
        patients = [person("Ada", "Lovelace", "P-1"), {}, person("Ada", "Lovelace", "P-1")]
        summary = validate_bulk_import(envelope(patients, dryRun=True)).value.summary()
        assert summary["total"] == 3
        assert summary["valid"] == 1
        assert summary["failed"] == 1
        assert summary["skipped"] == 1
        assert summary["dry_run"] is True


class TestMergePlanning:
    """Test suite for merge request planning."""

    @pytest.fixture
    def records(self):
        target = validate_patient(patient_payload()).value
        source = validate_patient(patient_payload(id=OTHER_PATIENT_ID, patientNumber="P-2002", tags=["new"])).value
        return source, target

    def request(self, **options):
        return validate_merge_request({
            "organizationId": ORGANIZATION_ID,
            "sourcePatientId": OTHER_PATIENT_ID,
            "targetPatientId": PATIENT_ID,
            "reason": "Duplicate registration",
            "performedBy": USER_ID,
            "conflictResolution": options,
        }).value

    def test_default_plan_keeps_target_identity(self, records):
        """Test the default plan."""
        source, target = records
        plan = plan_merge(self.request(), source, target).value

        assert plan.demographics_from == "target"
        assert plan.contacts_from == "target"
        assert "tags" in plan.accumulated
        assert plan.differing == ["tags"]

    def test_prefer_source(self, records):
        """Test options favouring the source record."""
        source, target = records
        plan = plan_merge(self.request(preferSourceDemographics=True, preferSourceContacts=True), source, target).value
        assert plan.demographics_from == "source"
        assert plan.contacts_from == "source"

    def test_swapped_records(self, records):
        """Test that records must match the request identifiers."""
        source, target = records
        errors = plan_merge(self.request(), target, source).errors
        assert set(errors.paths) == {"sourcePatientId", "targetPatientId"}

    def test_archived_record_not_mergeable(self, records):
        """Test that archived records cannot be merged."""
        source, _ = records
        archived = validate_patient(patient_payload(
            status="archived", deletedAt="2024-03-05T00:00:00Z", deletedBy=USER_ID,
        )).value
        errors = plan_merge(self.request(), source, archived).errors
        assert errors.at("targetPatientId")[0].kind == ViolationKind.GUARD

    def test_other_organization(self, records):
        """Test that both records must belong to the request's organization."""
        source, target = records
        foreign = target.model_copy(update={"organization_id": UUID(OTHER_PATIENT_ID)})
        errors = plan_merge(self.request(), source, foreign).errors
        assert errors.at("targetPatientId")[0].code == "organization_mismatch"
