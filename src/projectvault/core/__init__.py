# Project Vault - Core Module
#
# Shared functionality across all Project Vault modules:
# - Audit logging

from .audit_log import (
    AuditLogger,
    EventSeverity,
    EventType,
    get_audit_logger,
    log_transfer_event,
)

__all__ = [
    # Audit Logging
    "AuditLogger",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "log_transfer_event",
]
