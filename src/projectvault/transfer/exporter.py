"""Project exporter: snapshot one project into a password-protected archive.

The archive holds:
  - contents.yaml: the project as a ProjectDoc (see models.py)
  - icon.png: the project icon, when the project has one

Storage is only read. References to rows inside the exported project are
written as descriptive paths, because their ids change on import;
references to rows in other projects keep their direct id.
"""

import logging
import shutil
import sqlite3
import tempfile
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from ..core.audit_log import EventSeverity, EventType, log_transfer_event
from ..enums import (
    ENVIRONMENT_ORDER,
    Environment,
    InterestType,
    RunOn,
    ServerAccessType,
    ServerType,
)
from ..errors import (
    ArchiveError,
    ProjectNotFoundError,
    StorageError,
    TransferError,
    ValidationError,
)
from ..storage.vault_store import VaultStore, project_environments
from .archive import ArchiveCodec
from .models import (
    CONTENTS_FILENAME,
    ICON_FILENAME,
    ProjectDoc,
    ProjectEnvDoc,
    ProjectGroupDoc,
    ProjectNoteDoc,
    ProjectPoiDoc,
    ServerDatabaseDoc,
    ServerDatabasePath,
    ServerDoc,
    ServerExtraUserDoc,
    ServerGroupDoc,
    ServerInfoDoc,
    ServerLinkDoc,
    ServerNoteDoc,
    ServerPath,
    ServerPoiDoc,
    ServerWebsiteDoc,
    dump_document,
)

logger = logging.getLogger(__name__)


def _sorted_groups(buckets: Dict[Optional[str], object]) -> List[Optional[str]]:
    named = sorted(name for name in buckets if name is not None)
    return [None] + named


def _import_position(env: Environment, group_name: Optional[str]) -> Tuple[int, bool, str]:
    # environment, then the ungrouped bucket, then named groups by name
    return ENVIRONMENT_ORDER.index(env), group_name is not None, group_name or ""


class ProjectExporter:
    """Builds and seals project archives.

    Args:
        store: VaultStore to read from.
        codec: ArchiveCodec used to seal the staging directory.
        min_password_length: Shortest accepted archive password
            (default: PROJECTVAULT_MIN_PASSWORD_LENGTH).
    """

    def __init__(
        self,
        store: VaultStore,
        codec: Optional[ArchiveCodec] = None,
        min_password_length: Optional[int] = None,
    ):
        if min_password_length is None:
            from ..config import get_settings
            min_password_length = get_settings().min_password_length
        self.store = store
        self.codec = codec or ArchiveCodec()
        self.min_password_length = min_password_length

    # ── Public API ───────────────────────────────────────────────────

    def export_project(self, project_id: int, password: str) -> bytes:
        """Export a project and return the sealed archive bytes.

        Raises:
            ValidationError: Password too short, or a server link points at a
                server of the same project that is imported after the link.
            ProjectNotFoundError: Unknown project id.
            ArchiveError: Staging directory or sealing failed.
        """
        if len(password) < self.min_password_length:
            raise ValidationError(
                f"Password must be at least {self.min_password_length} characters."
            )

        doc = self.build_document(project_id)
        icon = self.store.get_project(project_id)["icon"]

        try:
            tmp_dir = Path(tempfile.mkdtemp(prefix="projectvault_export_"))
        except OSError as e:
            raise ArchiveError(f"Cannot create the staging directory: {e}") from e

        try:
            try:
                (tmp_dir / CONTENTS_FILENAME).write_text(dump_document(doc), encoding="utf-8")
                if icon:
                    (tmp_dir / ICON_FILENAME).write_bytes(icon)
            except OSError as e:
                raise ArchiveError(f"Cannot write the archive contents: {e}") from e
            archive = self.codec.seal(tmp_dir, password)
        except TransferError as e:
            self._audit(EventType.PROJECT_EXPORT_FAILED, doc.project_name,
                        EventSeverity.ERROR, {"error": str(e)})
            raise
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        logger.info("Exported project %r (%d bytes)", doc.project_name, len(archive))
        self._audit(EventType.PROJECT_EXPORTED, doc.project_name, EventSeverity.INFO, {
            "project_id": project_id,
            "environments": [env.value for env, _ in doc.environments()],
            "size_bytes": len(archive),
        })
        return archive

    def export_to_file(self, project_id: int, path: Path, password: str) -> Path:
        """Export a project into ``path``."""
        archive = self.export_project(project_id, password)
        path = Path(path)
        try:
            path.write_bytes(archive)
        except OSError as e:
            raise ArchiveError(f"Cannot write the archive to {path}: {e}") from e
        return path

    def build_document(self, project_id: int) -> ProjectDoc:
        """Snapshot one project as a ProjectDoc."""
        project = self.store.get_project(project_id)
        if project is None:
            raise ProjectNotFoundError(f"Project not found: {project_id}")

        doc = ProjectDoc(project_name=project["name"])
        pois = self.store.select_all("project_point_of_interest", {"project_id": project_id})
        notes = self.store.select_all("project_note", {"project_id": project_id})
        exported_notes: Set[int] = set()
        pois_written = False

        for env in project_environments(project):
            buckets: Dict[Optional[str], ProjectGroupDoc] = defaultdict(ProjectGroupDoc)

            for poi in pois:
                buckets[poi["group_name"]].project_pois.append(
                    self._poi_marker(poi) if pois_written else self._poi_doc(poi)
                )
            pois_written = True

            for note in notes:
                if not note[env.flag_column]:
                    continue
                if note["id"] in exported_notes:
                    doc_note = ProjectNoteDoc(
                        title=note["title"],
                        shared_with_other_environments=note["title"],
                    )
                else:
                    doc_note = ProjectNoteDoc(title=note["title"], contents=note["contents"])
                    exported_notes.add(note["id"])
                buckets[note["group_name"]].project_notes.append(doc_note)

            links = self.store.select_all(
                "server_link", {"project_id": project_id, "environment": env}
            )
            for link in links:
                buckets[link["group_name"]].server_links.append(
                    self._link_doc(project_id, env, link)
                )

            servers = self.store.select_all(
                "server", {"project_id": project_id, "environment": env}
            )
            for server in servers:
                buckets[server["group_name"]].servers.append(
                    self._server_doc(project_id, server)
                )

            env_doc = ProjectEnvDoc(items=buckets.get(None) or ProjectGroupDoc())
            for name in _sorted_groups(buckets)[1:]:
                env_doc.items_in_groups[name] = buckets[name]
            doc.set_environment(env, env_doc)

        return doc

    # ── Helpers ──────────────────────────────────────────────────────

    @staticmethod
    def _poi_doc(poi: sqlite3.Row) -> ProjectPoiDoc:
        return ProjectPoiDoc(
            desc=poi["desc"],
            path=poi["path"],
            text=poi["text"],
            interest_type=InterestType(poi["interest_type"]),
        )

    @staticmethod
    def _poi_marker(poi: sqlite3.Row) -> ProjectPoiDoc:
        return ProjectPoiDoc(
            desc=poi["desc"],
            interest_type=InterestType(poi["interest_type"]),
            shared_with_other_environments=poi["desc"],
        )

    def _link_doc(self, project_id: int, env: Environment, link: sqlite3.Row) -> ServerLinkDoc:
        """Link row as a ServerLinkDoc.

        A target in the same project is written as a descriptive path, which
        the importer resolves when it reaches the link. The target must
        therefore be imported first: an earlier environment, or an earlier
        group of the same environment.

        Raises:
            ValidationError: The target would be imported after the link.
        """
        server = self.store.get_server_with_project(link["linked_server_id"])
        if server is None:
            raise StorageError(
                f"Server #{link['linked_server_id']} referenced by a link does not exist."
            )
        target_env = Environment(server["environment"])
        if server["project_id"] != project_id:
            path = ServerPath(
                project_name=server["project_name"],
                environment=target_env,
                server_id=server["id"],
            )
            return ServerLinkDoc(desc=link["desc"], server=path)

        path = ServerPath(
            project_name=server["project_name"],
            environment=target_env,
            server_desc=server["desc"],
        )
        link_position = _import_position(env, link["group_name"])
        if _import_position(target_env, server["group_name"]) >= link_position:
            raise ValidationError(
                f"Server link {link['desc']!r} ({env.short_name}, group "
                f"{link['group_name'] or '-'}) points at {path.describe()} (group "
                f"{server['group_name'] or '-'}), which is imported after the link. "
                "Move the server to an earlier environment or group."
            )
        return ServerLinkDoc(desc=link["desc"], server=path)

    def _database_path(self, project_id: int, database_id: int) -> Optional[ServerDatabasePath]:
        database = self.store.select_one("server_database", {"id": database_id})
        if database is None:
            return None
        server = self.store.get_server_with_project(database["server_id"])
        if server["project_id"] == project_id:
            return ServerDatabasePath(
                project_name=server["project_name"],
                environment=Environment(server["environment"]),
                database_desc=database["desc"],
                server_desc=server["desc"],
            )
        return ServerDatabasePath(
            project_name=server["project_name"],
            environment=Environment(server["environment"]),
            database_id=database_id,
        )

    def _server_doc(self, project_id: int, server: sqlite3.Row) -> ServerDoc:
        buckets: Dict[Optional[str], ServerGroupDoc] = defaultdict(ServerGroupDoc)
        server_id = server["id"]

        for row in self.store.select_all("server_database", {"server_id": server_id}):
            buckets[row["group_name"]].server_databases.append(ServerDatabaseDoc(
                desc=row["desc"],
                name=row["name"],
                text=row["text"],
                username=row["username"],
                password=row["password"],
            ))
        for row in self.store.select_all("server_note", {"server_id": server_id}):
            buckets[row["group_name"]].server_notes.append(
                ServerNoteDoc(title=row["title"], contents=row["contents"])
            )
        for row in self.store.select_all("server_point_of_interest", {"server_id": server_id}):
            buckets[row["group_name"]].server_pois.append(ServerPoiDoc(
                desc=row["desc"],
                path=row["path"],
                text=row["text"],
                interest_type=InterestType(row["interest_type"]),
                run_on=RunOn(row["run_on"]),
            ))
        for row in self.store.select_all("server_extra_user_account", {"server_id": server_id}):
            buckets[row["group_name"]].server_extra_users.append(ServerExtraUserDoc(
                desc=row["desc"],
                username=row["username"],
                password=row["password"],
                auth_key=row["auth_key"],
                auth_key_filename=row["auth_key_filename"],
            ))
        for row in self.store.select_all("server_website", {"server_id": server_id}):
            database = None
            if row["server_database_id"] is not None:
                database = self._database_path(project_id, row["server_database_id"])
            buckets[row["group_name"]].server_websites.append(ServerWebsiteDoc(
                desc=row["desc"],
                url=row["url"],
                text=row["text"],
                username=row["username"],
                password=row["password"],
                server_database=database,
            ))

        server_doc = ServerDoc(
            server=ServerInfoDoc(
                desc=server["desc"],
                is_retired=bool(server["is_retired"]),
                ip=server["ip"],
                text=server["text"],
                username=server["username"],
                password=server["password"],
                auth_key=server["auth_key"],
                auth_key_filename=server["auth_key_filename"],
                server_type=ServerType(server["server_type"]),
                access_type=ServerAccessType(server["access_type"]),
            ),
            items=buckets.get(None) or ServerGroupDoc(),
        )
        for name in _sorted_groups(buckets)[1:]:
            server_doc.items_in_groups[name] = buckets[name]
        return server_doc

    @staticmethod
    def _audit(event_type: EventType, project_name: str, severity: EventSeverity, details: dict):
        """Best-effort audit logging."""
        try:
            log_transfer_event(event_type, project_name, severity=severity, details=details)
        except Exception:
            logger.warning("Audit log failed: %s %s", event_type.value, project_name, exc_info=True)
