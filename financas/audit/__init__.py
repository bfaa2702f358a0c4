"""Audit logging package."""

from financas.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
