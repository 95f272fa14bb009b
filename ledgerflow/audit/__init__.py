"""Audit logging package."""

from ledgerflow.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
