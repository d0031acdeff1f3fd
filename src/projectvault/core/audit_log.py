# Project Vault - Audit Logging
#
# Append-only audit trail for every export and import of a project.
# Each event is a single structured JSON line with a timestamp, event id,
# the project involved and the local user context.
# Archive passwords and credential fields are never written here.

import logging
import os
import socket
import sys
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from uuid import uuid4

import structlog


class EventType(str, Enum):
    """Types of vault events that can be logged."""

    # Transfer Events
    PROJECT_EXPORTED = "transfer.export"
    PROJECT_EXPORT_FAILED = "transfer.export.failed"
    PROJECT_IMPORTED = "transfer.import"
    PROJECT_IMPORT_FAILED = "transfer.import.failed"
    PROJECT_IMPORT_DEGRADED = "transfer.import.degraded"

    # System Events
    SYSTEM_START = "system.start"


class EventSeverity(str, Enum):
    """
    Severity levels for vault events.

    - INFO: Normal activity (logged only)
    - WARNING: Operation completed with recoverable data loss
    - ERROR: Operation aborted
    """
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditLogger:
    """
    Append-only audit logger for vault transfer events.

    Features:
    - Structured JSON logging (structlog)
    - Automatic timestamp and event ID
    - User and host context capture
    - One log file per day: audit_YYYY-MM-DD.log
    """

    def __init__(self, log_dir: Optional[Path] = None):
        """
        Initialize audit logger.

        Args:
            log_dir: Directory for audit logs (default: ./audit_logs)
        """
        self.log_dir = Path(log_dir) if log_dir else Path("./audit_logs")
        self.log_dir.mkdir(parents=True, exist_ok=True)

        structlog.configure(
            processors=[
                structlog.stdlib.add_log_level,
                structlog.stdlib.add_logger_name,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer()
            ],
            wrapper_class=structlog.stdlib.BoundLogger,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )

        self._file_handler: Optional[logging.FileHandler] = None
        self._setup_file_handler()

        self.logger = structlog.get_logger("projectvault.audit")

    def _setup_file_handler(self):
        """Attach a daily file handler to the audit logger."""
        today = datetime.now().strftime("%Y-%m-%d")
        log_file = self.log_dir / f"audit_{today}.log"

        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(logging.Formatter('%(message)s'))

        audit_logger = logging.getLogger("projectvault.audit")
        audit_logger.addHandler(file_handler)
        audit_logger.setLevel(logging.INFO)
        self._file_handler = file_handler

    def close(self):
        """Detach and close the file handler."""
        if self._file_handler is not None:
            logging.getLogger("projectvault.audit").removeHandler(self._file_handler)
            self._file_handler.close()
            self._file_handler = None

    def log_event(
        self,
        event_type: EventType,
        severity: EventSeverity,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        user_context: Optional[Dict[str, Any]] = None
    ) -> str:
        """
        Log a vault event (append-only).

        Args:
            event_type: Type of event (from EventType enum)
            severity: Severity level (from EventSeverity enum)
            message: Human-readable event description
            details: Additional event details (never passwords)
            user_context: User context (defaults to OS user and hostname)

        Returns:
            str: Event ID (UUID) for reference
        """
        event_id = str(uuid4())
        event_data = {
            "event_id": event_id,
            "event_type": event_type.value,
            "severity": severity.value,
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "details": details or {},
            "user_context": user_context or self._get_default_user_context(),
        }
        self.logger.info("vault_event", **event_data)
        return event_id

    def log_transfer_event(
        self,
        event_type: EventType,
        project_name: str,
        severity: EventSeverity = EventSeverity.INFO,
        details: Optional[Dict[str, Any]] = None
    ) -> str:
        """Log an export/import event for one project."""
        event_details = dict(details or {})
        event_details["project_name"] = project_name
        return self.log_event(
            event_type=event_type,
            severity=severity,
            message=f"Transfer: {event_type.value} - {project_name}",
            details=event_details
        )

    def _get_default_user_context(self) -> Dict[str, Any]:
        """Get default user context (OS user, hostname, etc.)."""
        return {
            "os_user": os.getenv("USERNAME") or os.getenv("USER"),
            "hostname": socket.gethostname(),
            "platform": sys.platform,
        }


# Global logger instance
_audit_logger: Optional[AuditLogger] = None


def get_audit_logger() -> AuditLogger:
    """Get global audit logger (singleton pattern)."""
    global _audit_logger
    if _audit_logger is None:
        from ..config import get_settings
        _audit_logger = AuditLogger(get_settings().audit_log_dir)
    return _audit_logger


def log_transfer_event(
    event_type: EventType,
    project_name: str,
    **kwargs
) -> str:
    """
    Convenience function for logging transfer events.

    Usage:
        log_transfer_event(
            EventType.PROJECT_IMPORTED,
            "billing",
            details={"servers": 4, "websites": 2}
        )
    """
    return get_audit_logger().log_transfer_event(event_type, project_name, **kwargs)
