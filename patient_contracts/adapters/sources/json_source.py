"""JSON Patient Source.

Reads raw patient payloads from JSON documents and JSON-lines files.

Security Impact:
    - Payloads are yielded untrusted and unvalidated; validation happens
      per record downstream so one malformed record never aborts the file
    - Parse failures report line numbers only, never record content

Architecture:
    - Implements PatientSourcePort (Hexagonal Architecture)
    - Depends only on domain ports
"""

import json
import logging
from pathlib import Path
from typing import Any, Iterator, Optional

from patient_contracts.domain.ports import PatientSourcePort, SourceNotFoundError, UnsupportedSourceError

logger = logging.getLogger(__name__)


class JSONPatientSource(PatientSourcePort):
    """Reads patients from ``.json`` and ``.jsonl`` files.

    Accepted document structures:
        - Array of payloads: ``[{...}, {...}]``
        - Wrapper object: ``{"patients": [...]}`` (``records`` and ``data`` also accepted)
        - Single payload object: ``{...}``
        - JSON lines: one payload per non-blank line (``.jsonl``)
    """

    WRAPPER_KEYS = ("patients", "records", "data")

    def __init__(self):
        self.adapter_name = "json_source"

    def can_read(self, source: str) -> bool:
        """Check if this source reader handles the given path.

        Parameters:
            source: File path

        Returns:
            bool: True for ``.json`` and ``.jsonl`` files
        """
        if not source:
            return False
        return Path(source).suffix.lower() in ('.json', '.jsonl')

    def get_source_info(self, source: str) -> Optional[dict]:
        try:
            source_path = Path(source)
            if source_path.exists():
                return {
                    'format': 'jsonl' if source_path.suffix.lower() == '.jsonl' else 'json',
                    'size': source_path.stat().st_size,
                    'encoding': 'utf-8',
                    'exists': True,
                }
        except (OSError, ValueError):
            pass
        return None

    def load_document(self, source: str) -> Any:
        """Parse ``source`` as a single JSON document.

        Raises:
            SourceNotFoundError: If the file does not exist or cannot be read
            UnsupportedSourceError: If the content is not valid UTF-8 JSON
        """
        source_path = self._existing_path(source)
        try:
            with open(source_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except json.JSONDecodeError as e:
            raise UnsupportedSourceError(
                f"Invalid JSON format in {source} (line {e.lineno}, column {e.colno})",
                source=source,
                adapter=self.adapter_name
            )
        except UnicodeDecodeError as e:
            raise UnsupportedSourceError(
                f"JSON source is not valid UTF-8: {source} (byte offset {e.start})",
                source=source,
                adapter=self.adapter_name
            )
        except OSError as e:
            raise SourceNotFoundError(f"Cannot read JSON source {source}: {str(e)}", source=source)

    def read(self, source: str) -> Iterator[dict[str, Any]]:
        """Yield one raw payload per record.

        Raises:
            SourceNotFoundError: If the file does not exist or cannot be read
            UnsupportedSourceError: If the content is not valid UTF-8 JSON or has an
                unsupported top-level structure
        """
        if Path(source).suffix.lower() == '.jsonl':
            yield from self._read_lines(source)
            return

        records = self._extract_records(self.load_document(source), source)
        logger.debug(f"Read {len(records)} payloads from {source}")
        yield from records

    def _read_lines(self, source: str) -> Iterator[dict[str, Any]]:
        source_path = self._existing_path(source)
        count = 0
        line_number = 0
        with open(source_path, 'r', encoding='utf-8') as f:
            try:
                for line_number, line in enumerate(f, start=1):
                    if not line.strip():
                        continue
                    try:
                        payload = json.loads(line)
                    except json.JSONDecodeError:
                        raise UnsupportedSourceError(
                            f"Invalid JSON on line {line_number} of {source}",
                            source=source,
                            adapter=self.adapter_name
                        )
                    count += 1
                    yield payload
            except UnicodeDecodeError:
                # Decoding is buffered, so the failing line is only approximate
                raise UnsupportedSourceError(
                    f"JSON lines source is not valid UTF-8: {source} (after line {line_number})",
                    source=source,
                    adapter=self.adapter_name
                )
        logger.debug(f"Read {count} payloads from {source}")

    def _extract_records(self, raw_data: Any, source: str) -> list:
        if isinstance(raw_data, list):
            return raw_data
        if isinstance(raw_data, dict):
            for key in self.WRAPPER_KEYS:
                if isinstance(raw_data.get(key), list):
                    return raw_data[key]
            return [raw_data]
        raise UnsupportedSourceError(
            f"Unsupported JSON structure: expected array or object, got {type(raw_data).__name__}",
            source=source,
            adapter=self.adapter_name
        )

    @staticmethod
    def _existing_path(source: str) -> Path:
        source_path = Path(source)
        if not source_path.is_file():
            raise SourceNotFoundError(f"JSON source not found: {source}", source=source)
        return source_path
