"""Tests for the validation entry points."""

import logging

import pytest

from patient_contracts.domain.validation import MODELS, VALIDATORS, normalize, validate_patient

from payloads import patient_payload, phone


class TestEntryPoints:
    """Test suite for the validate_* registry."""

    def test_every_validator_has_a_model(self):
        """Test that the registries cover the same operations."""
        assert set(VALIDATORS) == set(MODELS)

    @pytest.mark.parametrize("kind", sorted(VALIDATORS))
    def test_invalid_input_never_raises(self, kind):
        """Test that every entry point reports failures instead of raising."""
        for raw in ({}, [], "text", None, {"unexpected": 1}):
            result = VALIDATORS[kind](raw)
            assert result.is_failure()
            assert len(result.errors) >= 1

    def test_normalize_matches_validate_patient(self):
        """Test that the generic entry point is the one behind validate_patient."""
        assert normalize(MODELS["patient"], patient_payload()).value == validate_patient(patient_payload()).value

    def test_failures_logged_without_values(self, caplog):
        """Test that rejected values never reach the logs."""
        payload = patient_payload()
        payload["contacts"]["phones"] = [phone("555-SECRET-99")]
        with caplog.at_level(logging.DEBUG, logger="patient_contracts"):
            validate_patient(payload)
        assert "contacts.phones[0].number" in caplog.text
        assert "SECRET" not in caplog.text
