"""
Project Vault Exception Classes
"""

from typing import Optional


class TransferError(Exception):
    """Base exception for export/import operations"""
    pass


class ArchiveError(TransferError):
    """Raised when an archive cannot be sealed, decrypted or extracted"""
    pass


class ValidationError(TransferError):
    """Raised when input is rejected before any row is written"""
    pass


class DocumentError(ValidationError):
    """Raised when contents.yaml is malformed"""
    pass


class DuplicateProjectError(ValidationError):
    """Raised when the imported project name already exists in storage"""

    def __init__(self, project_name: str):
        super().__init__(f"A project with this name already exists: {project_name}")
        self.project_name = project_name


class ResolutionError(TransferError):
    """Raised when a reference cannot be turned into a stored id"""
    pass


class TargetNotFoundError(ResolutionError):
    """Raised when no stored row matches a reference"""
    pass


class AmbiguousTargetError(ResolutionError):
    """Raised when several stored rows match a descriptive reference"""
    pass


class StorageError(TransferError):
    """Raised when the underlying database fails"""
    pass


class AmbiguousMatchError(StorageError):
    """Raised when a single-row select matches more than one row"""
    pass


class ProjectNotFoundError(TransferError):
    """Raised when an export is requested for an unknown project id"""
    pass


class PartialImportError(TransferError):
    """Raised when an import fails after the project row was created.

    The rows written so far stay in storage; ``project_id`` points at them.
    The original failure is available as ``__cause__``.
    """

    def __init__(self, message: str, project_id: int, project_name: str,
                 error: Optional[Exception] = None):
        super().__init__(message)
        self.project_id = project_id
        self.project_name = project_name
        self.error = error
