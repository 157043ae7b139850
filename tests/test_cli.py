"""Tests for the command line interface."""

import json
import logging

import pytest
from typer.testing import CliRunner

from patient_contracts import __version__
from patient_contracts.cli import app

from payloads import ORGANIZATION_ID, USER_ID, create_payload, patient_payload

runner = CliRunner()


@pytest.fixture(autouse=True)
def restore_logging():
    """The CLI callback reconfigures the root logger."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def write_json(tmp_path, name, document):
    path = tmp_path / name
    path.write_text(json.dumps(document))
    return path


class TestValidateCommand:
    """Test suite for the validate command."""

    def test_valid_patient(self, tmp_path):
        """Test validating a canonical record."""
        path = write_json(tmp_path, "patient.json", patient_payload())
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 0
        assert "is a valid patient document" in result.output

    def test_show_normalized(self, tmp_path):
        """Test printing the normalized payload."""
        path = write_json(tmp_path, "patient.json", patient_payload(tags=["VIP", "vip"]))
        result = runner.invoke(app, ["validate", str(path), "--show-normalized"])
        assert result.exit_code == 0
        assert '"patientNumber": "P-1001"' in result.output

    def test_invalid_document(self, tmp_path):
        """Test that violations exit with code 1."""
        payload = patient_payload()
        del payload["name"]
        path = write_json(tmp_path, "patient.json", payload)
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "StructuralError" in result.output

    def test_other_kind(self, tmp_path):
        """Test validating against a request contract."""
        path = write_json(tmp_path, "change.json", {"version": 2, "notes": "Moved"})
        result = runner.invoke(app, ["validate", str(path), "--kind", "update"])
        assert result.exit_code == 0

    def test_unknown_kind(self, tmp_path):
        """Test that an unknown contract is a usage error."""
        path = write_json(tmp_path, "patient.json", patient_payload())
        result = runner.invoke(app, ["validate", str(path), "-k", "invoice"])
        assert result.exit_code == 2
        assert "Unknown kind" in result.output

    def test_malformed_file(self, tmp_path):
        """Test unreadable JSON."""
        path = tmp_path / "patient.json"
        path.write_text("{oops")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Invalid JSON" in result.output

    def test_non_utf8_file(self, tmp_path):
        """Test that an undecodable file is reported instead of raising."""
        path = tmp_path / "patient.json"
        path.write_bytes(b'{"notes": "\xff\xfe"}')
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "not valid UTF-8" in result.output
        assert not isinstance(result.exception, UnicodeDecodeError)

    def test_bulk_import_document(self, tmp_path):
        """Test that a bulk import envelope prints a report."""
        envelope = {
            "organizationId": ORGANIZATION_ID,
            "source": "fhir",
            "patients": [create_payload(), {"bogus": True}],
            "importedBy": USER_ID,
        }
        path = write_json(tmp_path, "import.json", envelope)
        result = runner.invoke(app, ["validate", str(path), "--kind", "bulk-import"])
        assert result.exit_code == 1
        assert "Import Report" in result.output


class TestImportCommand:
    """Test suite for the import command."""

    def invoke(self, path, *extra):
        return runner.invoke(app, [
            "import", str(path),
            "--organization-id", ORGANIZATION_ID,
            "--imported-by", USER_ID,
            *extra,
        ])

    def test_json_import(self, tmp_path):
        """Test a clean import file."""
        path = write_json(tmp_path, "patients.json", {"patients": [create_payload(), create_payload(patientNumber="P-1002", name={"firstName": "Grace", "lastName": "Hopper"})]})
        result = self.invoke(path, "--dry-run")
        assert result.exit_code == 0
        assert "All patients passed validation" in result.output
        assert "Records read: 2" in result.output

    def test_failing_patient(self, tmp_path):
        """Test that one bad patient fails the run."""
        bad = create_payload()
        bad["demographics"]["gender"] = "robot"
        path = write_json(tmp_path, "patients.json", [create_payload(patientNumber="P-2"), bad])
        result = self.invoke(path)
        assert result.exit_code == 1
        assert "failed validation" in result.output

    def test_duplicates_fail_without_skip(self, tmp_path):
        """Test the --no-skip-duplicates switch."""
        path = write_json(tmp_path, "patients.json", [create_payload(), create_payload()])
        assert self.invoke(path).exit_code == 0
        assert self.invoke(path, "--no-skip-duplicates").exit_code == 1

    def test_csv_import(self, tmp_path):
        """Test importing dotted-header CSV."""
        path = tmp_path / "patients.csv"
        path.write_text(
            "tenantId,organizationId,name.firstName,name.lastName,demographics.dateOfBirth,"
            "demographics.gender,contacts.emails.0.type,contacts.emails.0.address,"
            "communicationPreferences.enabledChannels.0\n"
            f"tenant-east,{ORGANIZATION_ID},Ada,Lovelace,1980-05-17,female,personal,ada@example.com,email\n"
        )
        result = self.invoke(path, "--validate-only")
        assert result.exit_code == 0

    def test_invalid_envelope(self, tmp_path):
        """Test that a bad organization id rejects the request."""
        path = write_json(tmp_path, "patients.json", [create_payload()])
        result = runner.invoke(app, ["import", str(path), "--organization-id", "nope", "--imported-by", USER_ID])
        assert result.exit_code == 1
        assert "Import request rejected" in result.output

    def test_non_utf8_jsonl(self, tmp_path):
        """Test that an undecodable JSON lines file is reported instead of raising."""
        path = tmp_path / "patients.jsonl"
        path.write_bytes(json.dumps(create_payload()).encode() + b'\n{"notes": "\xff"}\n')
        result = self.invoke(path)
        assert result.exit_code == 1
        assert "not valid UTF-8" in result.output

    def test_unsupported_file(self, tmp_path):
        """Test files no reader handles."""
        path = tmp_path / "patients.xml"
        path.write_text("<patients/>")
        result = self.invoke(path)
        assert result.exit_code == 1
        assert "No reader found" in result.output


class TestInfoAndVersion:
    """Test suite for the info command and --version."""

    def test_info(self):
        """Test that the configuration is displayed."""
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0
        assert "Auto-promote primary" in result.output

    def test_version(self):
        """Test the eager version option."""
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output
