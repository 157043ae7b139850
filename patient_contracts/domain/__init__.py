"""Domain layer for Patient-Contracts.

This module contains the canonical patient record, the request shapes
projected from it, and the validation entry points. All domain models are
pure Python with no external dependencies beyond Pydantic.
"""

from .golden_record import Patient, PatientContacts, PatientInsurance
from .errors import ValidationErrors, Violation, ViolationKind
from .policy import ValidationPolicy

__all__ = [
    "Patient",
    "PatientContacts",
    "PatientInsurance",
    "ValidationErrors",
    "Violation",
    "ViolationKind",
    "ValidationPolicy",
]
