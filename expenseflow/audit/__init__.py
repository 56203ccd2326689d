"""Audit logging package."""

from expenseflow.audit.logger import AuditLogger, get_logger

__all__ = ["AuditLogger", "get_logger"]
