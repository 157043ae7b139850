"""Patient sources: file readers yielding raw, unvalidated payloads."""

from pathlib import Path

from patient_contracts.adapters.sources.csv_source import CSVPatientSource
from patient_contracts.adapters.sources.json_source import JSONPatientSource
from patient_contracts.domain.ports import PatientSourcePort, UnsupportedSourceError

__all__ = ["CSVPatientSource", "JSONPatientSource", "get_source"]


def get_source(source: str, **kwargs) -> PatientSourcePort:
    """Pick the reader for ``source`` by file extension.

    Parameters:
        source: File path
        **kwargs: Passed to the reader constructor (``delimiter``, ``chunk_size`` for CSV)

    Returns:
        PatientSourcePort: Reader instance

    Raises:
        UnsupportedSourceError: If no reader handles the extension

    Example Usage:
        ```python
        for payload in get_source("patients.csv").read("patients.csv"):
            result = validate_create(payload)
        ```
    """
    for source_class in (JSONPatientSource, CSVPatientSource):
        reader = source_class(**kwargs) if source_class is CSVPatientSource else source_class()
        if reader.can_read(source):
            return reader

    raise UnsupportedSourceError(
        f"No reader found for source: {source}. Supported formats: JSON, JSONL, CSV, TSV",
        source=source,
        adapter=None
    )
