# Project Vault - Storage Module
#
# SQLite persistence for projects, servers and their items.

from .items import (
    ProjectItem,
    ProjectNoteItem,
    ProjectPoiItem,
    ServerItem,
    ServerLinkItem,
    default_environment,
    list_project_items,
    search_items,
)
from .vault_store import VaultStore, project_environments

__all__ = [
    "VaultStore",
    "project_environments",
    "ProjectItem",
    "ServerItem",
    "ServerLinkItem",
    "ProjectNoteItem",
    "ProjectPoiItem",
    "default_environment",
    "list_project_items",
    "search_items",
]
