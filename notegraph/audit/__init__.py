"""Audit logging for notegraph."""

from notegraph.audit.logger import (
    AuditLogger,
    close_logger,
    get_logger,
    init_audit_logger,
    init_logger,
    log_audit,
    log_error,
)

__all__ = [
    "AuditLogger",
    "log_audit",
    "log_error",
    "get_logger",
    "init_logger",
    "init_audit_logger",
    "close_logger",
]
