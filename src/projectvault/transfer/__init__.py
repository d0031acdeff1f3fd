# Project Vault - Transfer Module
#
# Export a project into a password-protected archive and import it back,
# into the same vault or another one.

from .archive import ARCHIVE_SUFFIX, ArchiveCodec
from .exporter import ProjectExporter
from .importer import ImportReport, PendingWebsite, ProjectImporter
from .models import (
    ProjectDoc,
    ServerDatabasePath,
    ServerPath,
    dump_document,
    load_document,
)
from .resolver import PathResolver

__all__ = [
    "ARCHIVE_SUFFIX",
    "ArchiveCodec",
    "ProjectExporter",
    "ProjectImporter",
    "ImportReport",
    "PendingWebsite",
    "PathResolver",
    "ProjectDoc",
    "ServerPath",
    "ServerDatabasePath",
    "dump_document",
    "load_document",
]
