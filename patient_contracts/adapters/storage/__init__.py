"""Storage adapters implementing ``PatientStorePort``."""

from patient_contracts.adapters.storage.memory_store import InMemoryPatientStore

__all__ = ["InMemoryPatientStore"]
