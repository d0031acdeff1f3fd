# Project Vault - Main Package
#
# Personal vault for project infrastructure: servers, databases, websites,
# notes and credentials, grouped per project and environment, with
# password-protected export and import of whole projects.

__version__ = "0.3.0"
__author__ = "Project Vault Team"
__description__ = "Project infrastructure and credential vault"

from .core import EventSeverity, EventType, get_audit_logger
from .errors import TransferError

__all__ = [
    "__version__",
    "EventType",
    "EventSeverity",
    "get_audit_logger",
    "TransferError",
]
