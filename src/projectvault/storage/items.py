# Project Vault - Project Items
#
# The items shown for one project environment, as a closed union:
# a server, a link to a server elsewhere, a note, or a point of interest.

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple, Union

from ..enums import ENVIRONMENT_ORDER, Environment, InterestType, ServerAccessType, ServerType
from .vault_store import VaultStore, project_environments


@dataclass(frozen=True)
class ServerItem:
    id: int
    desc: str
    ip: str
    environment: Environment
    server_type: ServerType
    access_type: ServerAccessType
    is_retired: bool
    group_name: Optional[str]
    project_id: int


@dataclass(frozen=True)
class ServerLinkItem:
    id: int
    desc: str
    linked_server_id: int
    environment: Environment
    group_name: Optional[str]
    project_id: int


@dataclass(frozen=True)
class ProjectNoteItem:
    id: int
    title: str
    environments: Tuple[Environment, ...]
    group_name: Optional[str]
    project_id: int


@dataclass(frozen=True)
class ProjectPoiItem:
    id: int
    desc: str
    path: str
    interest_type: InterestType
    group_name: Optional[str]
    project_id: int


ProjectItem = Union[ServerItem, ServerLinkItem, ProjectNoteItem, ProjectPoiItem]


def item_title(item: ProjectItem) -> str:
    if isinstance(item, ProjectNoteItem):
        return item.title
    return item.desc


def default_environment(item: ProjectItem) -> Optional[Environment]:
    """Environment an item is displayed under.

    Notes present in several environments show under the most
    production-like one. Points of interest are project-wide.
    """
    if isinstance(item, (ServerItem, ServerLinkItem)):
        return item.environment
    if isinstance(item, ProjectNoteItem):
        for env in reversed(ENVIRONMENT_ORDER):
            if env in item.environments:
                return env
        return None
    return None


def _server_item(row) -> ServerItem:
    return ServerItem(
        id=row["id"],
        desc=row["desc"],
        ip=row["ip"],
        environment=Environment(row["environment"]),
        server_type=ServerType(row["server_type"]),
        access_type=ServerAccessType(row["access_type"]),
        is_retired=bool(row["is_retired"]),
        group_name=row["group_name"],
        project_id=row["project_id"],
    )


def _link_item(row) -> ServerLinkItem:
    return ServerLinkItem(
        id=row["id"],
        desc=row["desc"],
        linked_server_id=row["linked_server_id"],
        environment=Environment(row["environment"]),
        group_name=row["group_name"],
        project_id=row["project_id"],
    )


def _note_item(row) -> ProjectNoteItem:
    return ProjectNoteItem(
        id=row["id"],
        title=row["title"],
        environments=tuple(project_environments(row)),
        group_name=row["group_name"],
        project_id=row["project_id"],
    )


def _poi_item(row) -> ProjectPoiItem:
    return ProjectPoiItem(
        id=row["id"],
        desc=row["desc"],
        path=row["path"],
        interest_type=InterestType(row["interest_type"]),
        group_name=row["group_name"],
        project_id=row["project_id"],
    )


def _group_sort_key(item: ProjectItem):
    # ungrouped first, then by group name, then by title
    group = item.group_name
    return (group is not None, group or "", item_title(item).lower())


def list_project_items(store: VaultStore, project_id: int, environment: Environment) -> List[ProjectItem]:
    """Items of a project visible in one environment."""
    items: List[ProjectItem] = []
    for row in store.select_all("server", {"project_id": project_id, "environment": environment}):
        items.append(_server_item(row))
    for row in store.select_all("server_link", {"project_id": project_id, "environment": environment}):
        items.append(_link_item(row))
    for row in store.select_all("project_note", {"project_id": project_id, environment.flag_column: 1}):
        items.append(_note_item(row))
    for row in store.select_all("project_point_of_interest", {"project_id": project_id}):
        items.append(_poi_item(row))
    return sorted(items, key=_group_sort_key)


def search_items(store: VaultStore, text: str) -> List[Dict]:
    """Case-insensitive search over project names and item titles.

    A project whose name matches is returned with all its items;
    otherwise only matching items are returned, and projects with no
    match are left out.
    """
    needle = text.strip().lower()
    results = []
    for project in store.list_projects():
        project_matches = needle in project["name"].lower()
        project_id = project["id"]
        all_items: List[ProjectItem] = [
            *(_server_item(r) for r in store.select_all("server", {"project_id": project_id})),
            *(_link_item(r) for r in store.select_all("server_link", {"project_id": project_id})),
            *(_note_item(r) for r in store.select_all("project_note", {"project_id": project_id})),
            *(_poi_item(r) for r in store.select_all("project_point_of_interest", {"project_id": project_id})),
        ]
        if project_matches:
            matched = all_items
        else:
            matched = [i for i in all_items if needle in item_title(i).lower()]
        if project_matches or matched:
            results.append({
                "project": project,
                "items": sorted(matched, key=_group_sort_key),
            })
    return results
