"""Patient record data contracts: canonical schema, request DTOs and validation."""

__version__ = "1.0.0"
