"""CSV Patient Source.

Reads flat CSV rows and unflattens them into nested patient payloads.
Column names are dotted paths into the payload; numeric segments address
list elements:

    name.firstName,name.lastName,contacts.phones.0.number,contacts.phones.0.isPrimary
    Ada,Lovelace,+15550100,true

Security Impact:
    - Every cell is read as a string. Only ``true``/``false`` in a column
      that names a boolean field of the record is converted; validation
      never coerces, so anything else is reported, not guessed at
    - Empty cells are omitted, so a blank column means "not provided"

Architecture:
    - Implements PatientSourcePort (Hexagonal Architecture)
    - Uses pandas for parsing, quoting and delimiter handling
"""

import logging
from pathlib import Path
from typing import Any, Iterator, Optional, get_args

import pandas as pd
from pydantic import BaseModel

from patient_contracts.domain.golden_record import Patient
from patient_contracts.domain.ports import PatientSourcePort, SourceNotFoundError, UnsupportedSourceError

logger = logging.getLogger(__name__)


def _leaf_types(annotation: Any) -> Iterator[Any]:
    args = get_args(annotation)
    if not args:
        yield annotation
        return
    for arg in args:
        yield from _leaf_types(arg)


def boolean_columns(model: type[BaseModel]) -> frozenset:
    """Wire names of every boolean field reachable from ``model``."""
    names = set()
    pending, seen = [model], set()
    while pending:
        current = pending.pop()
        if current in seen:
            continue
        seen.add(current)
        for name, field in current.model_fields.items():
            for leaf in _leaf_types(field.annotation):
                if leaf is bool:
                    names.add(field.alias or name)
                elif isinstance(leaf, type) and issubclass(leaf, BaseModel):
                    pending.append(leaf)
    return frozenset(names)


BOOLEAN_COLUMNS = boolean_columns(Patient)


def typed_cells(row: dict[str, str]) -> dict[str, Any]:
    """Convert ``true``/``false`` cells of boolean columns to booleans.

    The column's last path segment decides, so ``contacts.phones.0.isPrimary``
    is a boolean column. Other values are left as strings.
    """
    typed = {}
    for column, value in row.items():
        leaf = str(column).rsplit(".", 1)[-1]
        if leaf in BOOLEAN_COLUMNS and value.lower() in ("true", "false"):
            typed[column] = value.lower() == "true"
        else:
            typed[column] = value
    return typed


def unflatten(row: dict[str, Any]) -> dict[str, Any]:
    """Turn ``{"a.b": 1, "a.c.0": 2}`` into ``{"a": {"b": 1, "c": [2]}}``.

    Empty strings are dropped. A node whose keys are all numeric becomes a
    list ordered by index.

    Raises:
        ValueError: If a path is used both as a value and as a container
    """
    tree: dict[str, Any] = {}
    for column, value in row.items():
        if value is None or value == "":
            continue
        parts = str(column).split(".")
        node = tree
        for part in parts[:-1]:
            child = node.setdefault(part, {})
            if not isinstance(child, dict):
                raise ValueError(f"Column '{column}' conflicts with a scalar column")
            node = child
        if isinstance(node.get(parts[-1]), dict):
            raise ValueError(f"Column '{column}' conflicts with a nested column")
        node[parts[-1]] = value
    return _lists_from_indices(tree)


def _lists_from_indices(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    converted = {key: _lists_from_indices(value) for key, value in node.items()}
    if converted and all(key.isdigit() for key in converted):
        return [converted[key] for key in sorted(converted, key=int)]
    return converted


class CSVPatientSource(PatientSourcePort):
    """Reads patients from ``.csv`` and ``.tsv`` files with dotted headers.

    Parameters:
        delimiter: Field delimiter for ``.csv`` files; ``.tsv`` always uses tabs
        chunk_size: Rows parsed per pandas chunk
    """

    def __init__(self, delimiter: str = ',', chunk_size: int = 1000):
        self.delimiter = delimiter
        self.chunk_size = chunk_size
        self.adapter_name = "csv_source"

    def can_read(self, source: str) -> bool:
        if not source:
            return False
        return Path(source).suffix.lower() in ('.csv', '.tsv')

    def get_source_info(self, source: str) -> Optional[dict]:
        try:
            source_path = Path(source)
            if source_path.exists():
                return {
                    'format': 'csv',
                    'size': source_path.stat().st_size,
                    'delimiter': self._delimiter_for(source_path),
                    'exists': True,
                }
        except (OSError, ValueError):
            pass
        return None

    def read(self, source: str) -> Iterator[dict[str, Any]]:
        """Yield one nested raw payload per CSV row.

        Raises:
            SourceNotFoundError: If the file does not exist
            UnsupportedSourceError: If the file cannot be parsed or its
                headers do not form a consistent tree
        """
        source_path = Path(source)
        if not source_path.is_file():
            raise SourceNotFoundError(f"CSV source not found: {source}", source=source)

        try:
            chunks = pd.read_csv(
                source_path,
                sep=self._delimiter_for(source_path),
                dtype=str,
                keep_default_na=False,
                chunksize=self.chunk_size,
                encoding='utf-8',
            )
            count = 0
            for chunk in chunks:
                for row in chunk.to_dict(orient="records"):
                    count += 1
                    # Short rows come back with NaN in the missing cells
                    yield unflatten(typed_cells({
                        key.strip(): value.strip() if isinstance(value, str) else ""
                        for key, value in row.items()
                    }))
        except pd.errors.EmptyDataError:
            logger.warning(f"CSV source {source} is empty")
            return
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            raise UnsupportedSourceError(
                f"Cannot parse CSV source {source}: {str(e)}",
                source=source,
                adapter=self.adapter_name
            )
        except ValueError as e:
            raise UnsupportedSourceError(
                f"Inconsistent CSV headers in {source}: {str(e)}",
                source=source,
                adapter=self.adapter_name
            )
        logger.debug(f"Read {count} rows from {source}")

    def _delimiter_for(self, source_path: Path) -> str:
        return '\t' if source_path.suffix.lower() == '.tsv' else self.delimiter
