"""Audit trail components."""

from patient_contracts.infrastructure.audit.audit_logger import LoggingAuditLog

__all__ = ["LoggingAuditLog"]
