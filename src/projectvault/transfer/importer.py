"""Project importer: rebuild a project from a password-protected archive.

Import runs in two passes over the document:

1. Environments in fixed order (dev, stage, uat, prod); inside each, the
   ungrouped bucket then named groups in file order. Points of interest,
   notes, server links and servers with their databases, notes, points of
   interest and extra users are written immediately. Server links must
   resolve right away. Server websites are queued instead.
2. Queued websites are written once every server and database of the
   archive exists, so a website may point at a database that appears
   later in the file. A database reference that still cannot be resolved
   is cleared and the website is written anyway.

Rows are committed one by one. A failure after the project row exists
leaves a partial project behind and is reported as PartialImportError.
"""

import logging
import shutil
import tempfile
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..core.audit_log import EventSeverity, EventType, log_transfer_event
from ..enums import ENVIRONMENT_ORDER, Environment
from ..errors import (
    ArchiveError,
    DocumentError,
    DuplicateProjectError,
    PartialImportError,
    ResolutionError,
    TargetNotFoundError,
    TransferError,
)
from ..storage.vault_store import VaultStore
from .archive import ArchiveCodec
from .models import (
    CONTENTS_FILENAME,
    ProjectDoc,
    ProjectEnvDoc,
    ProjectGroupDoc,
    ProjectNoteDoc,
    ProjectPoiDoc,
    ServerDoc,
    ServerGroupDoc,
    ServerLinkDoc,
    ServerWebsiteDoc,
    load_document,
)
from .resolver import PathResolver

logger = logging.getLogger(__name__)


@dataclass
class PendingWebsite:
    """A website waiting for the second pass."""

    server_id: int
    group_name: Optional[str]
    website: ServerWebsiteDoc


@dataclass
class ImportReport:
    """What an import wrote."""

    project_id: int
    project_name: str
    environments: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    unresolved_website_databases: List[str] = field(default_factory=list)

    def count(self, kind: str, n: int = 1):
        self.counts[kind] = self.counts.get(kind, 0) + n

    def to_dict(self) -> dict:
        return asdict(self)


class ProjectImporter:
    """Imports project archives into a VaultStore.

    Args:
        store: Destination storage.
        codec: ArchiveCodec used to unseal archives.
    """

    def __init__(self, store: VaultStore, codec: Optional[ArchiveCodec] = None):
        self.store = store
        self.codec = codec or ArchiveCodec()
        self.resolver = PathResolver(store)

    # ── Public API ───────────────────────────────────────────────────

    def import_file(self, path: Path, password: str) -> ImportReport:
        """Import the archive stored at ``path``."""
        path = Path(path)
        try:
            blob = path.read_bytes()
        except OSError as e:
            raise ArchiveError(f"Cannot read the archive {path}: {e}") from e
        return self.import_archive(blob, password)

    def import_archive(self, blob: bytes, password: str) -> ImportReport:
        """Unseal, validate and import one archive.

        Raises:
            ArchiveError: Wrong password, corrupt archive, missing contents.
            ValidationError: Malformed document or duplicate project name.
            PartialImportError: Failure after the project row was written.
        """
        try:
            doc = self.read_archive(blob, password)
        except TransferError as e:
            self._audit(EventType.PROJECT_IMPORT_FAILED, "?", EventSeverity.ERROR,
                        {"error": str(e), "stage": "unseal"})
            raise
        return self.import_document(doc)

    def read_archive(self, blob: bytes, password: str) -> ProjectDoc:
        """Unseal an archive and parse its contents.yaml.

        The staging directory is removed whatever happens.
        """
        try:
            tmp_dir = Path(tempfile.mkdtemp(prefix="projectvault_import_"))
        except OSError as e:
            raise ArchiveError(f"Cannot create the staging directory: {e}") from e

        try:
            self.codec.unseal(blob, password, tmp_dir)
            contents_path = tmp_dir / CONTENTS_FILENAME
            if not contents_path.is_file():
                raise ArchiveError(f"The archive has no {CONTENTS_FILENAME}.")
            try:
                contents = contents_path.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise DocumentError(f"{CONTENTS_FILENAME} is not UTF-8 text: {e}") from e
            except OSError as e:
                raise ArchiveError(f"Cannot read {CONTENTS_FILENAME}: {e}") from e
        finally:
            shutil.rmtree(tmp_dir, ignore_errors=True)

        return load_document(contents)

    def import_document(self, doc: ProjectDoc) -> ImportReport:
        """Write a parsed ProjectDoc into storage."""
        if self.store.project_name_exists(doc.project_name):
            error = DuplicateProjectError(doc.project_name)
            self._audit(EventType.PROJECT_IMPORT_FAILED, doc.project_name, EventSeverity.ERROR,
                        {"error": str(error), "stage": "validate"})
            raise error

        environments = doc.environments()
        present = {env for env, _ in environments}
        values = {"name": doc.project_name}
        for env in ENVIRONMENT_ORDER:
            values[env.flag_column] = env in present
        # TODO: restore the project icon from icon.png once the archive layout for it is settled
        values["icon"] = b""
        project_id = self.store.insert_row("project", values)

        report = ImportReport(
            project_id=project_id,
            project_name=doc.project_name,
            environments=[env.value for env, _ in environments],
        )

        try:
            pending: List[PendingWebsite] = []
            for env, env_doc in environments:
                pending.extend(self._import_environment(project_id, env, env_doc, report))
            for website in pending:
                self._import_website(website, report)
        except TransferError as e:
            self._audit(EventType.PROJECT_IMPORT_FAILED, doc.project_name, EventSeverity.ERROR,
                        {"error": str(e), "stage": "import", "project_id": project_id})
            raise PartialImportError(
                f"Import of {doc.project_name!r} stopped midway, the project is incomplete: {e}",
                project_id=project_id,
                project_name=doc.project_name,
                error=e,
            ) from e

        logger.info("Imported project %r as #%d", doc.project_name, project_id)
        self._audit(EventType.PROJECT_IMPORTED, doc.project_name, EventSeverity.INFO, {
            "project_id": project_id,
            "environments": report.environments,
            "counts": report.counts,
        })
        if report.unresolved_website_databases:
            self._audit(EventType.PROJECT_IMPORT_DEGRADED, doc.project_name, EventSeverity.WARNING, {
                "project_id": project_id,
                "websites": report.unresolved_website_databases,
            })
        return report

    # ── Pass 1 ───────────────────────────────────────────────────────

    def _import_environment(
        self,
        project_id: int,
        env: Environment,
        env_doc: ProjectEnvDoc,
        report: ImportReport,
    ) -> List[PendingWebsite]:
        pending: List[PendingWebsite] = []
        for group_name, group in env_doc.iter_groups():
            pending.extend(self._import_group(project_id, env, group_name, group, report))
        return pending

    def _import_group(
        self,
        project_id: int,
        env: Environment,
        group_name: Optional[str],
        group: ProjectGroupDoc,
        report: ImportReport,
    ) -> List[PendingWebsite]:
        for poi in group.project_pois:
            self._import_project_poi(project_id, group_name, poi, report)
        for note in group.project_notes:
            self._import_project_note(project_id, env, group_name, note, report)
        for link in group.server_links:
            self._import_server_link(project_id, env, group_name, link, report)

        pending: List[PendingWebsite] = []
        for server in group.servers:
            pending.extend(self._import_server(project_id, env, group_name, server, report))
        return pending

    def _import_project_poi(self, project_id: int, group_name: Optional[str],
                            poi: ProjectPoiDoc, report: ImportReport):
        # points of interest are project-wide, written once
        if poi.shared_with_other_environments is not None:
            return
        self.store.insert_row("project_point_of_interest", {
            "desc": poi.desc,
            "path": poi.path,
            "text": poi.text,
            "group_name": group_name,
            "interest_type": poi.interest_type,
            "project_id": project_id,
        })
        report.count("project_pois")

    def _import_project_note(self, project_id: int, env: Environment, group_name: Optional[str],
                             note: ProjectNoteDoc, report: ImportReport):
        if note.shared_with_other_environments is None:
            values = {
                "title": note.title,
                "contents": note.contents,
                "group_name": group_name,
                "project_id": project_id,
            }
            for other in ENVIRONMENT_ORDER:
                values[other.flag_column] = other == env
            self.store.insert_row("project_note", values)
            report.count("project_notes")
            return

        shared_title = note.shared_with_other_environments
        rows = self.store.select_all("project_note", {
            "title": shared_title,
            "group_name": group_name,
            "project_id": project_id,
        })
        if not rows:
            raise TargetNotFoundError(
                f"Shared note {shared_title!r} (group {group_name!r}) has no earlier occurrence"
                " with contents in the archive."
            )
        # same-title notes: flag them in the order they were written
        target = next((row for row in rows if not row[env.flag_column]), rows[0])
        self.store.update_where("project_note", {env.flag_column: True}, {"id": target["id"]})
        report.count("shared_notes_merged")

    def _import_server_link(self, project_id: int, env: Environment, group_name: Optional[str],
                            link: ServerLinkDoc, report: ImportReport):
        linked_server_id = self.resolver.resolve_server(link.server)
        if self.store.select_one("server", {"id": linked_server_id}) is None:
            raise TargetNotFoundError(
                f"Server link {link.desc!r} points at {link.server.describe()}, which does not exist."
            )
        self.store.insert_row("server_link", {
            "desc": link.desc,
            "group_name": group_name,
            "linked_server_id": linked_server_id,
            "environment": env,
            "project_id": project_id,
        })
        report.count("server_links")

    def _import_server(self, project_id: int, env: Environment, group_name: Optional[str],
                       server_doc: ServerDoc, report: ImportReport) -> List[PendingWebsite]:
        info = server_doc.server
        server_id = self.store.insert_row("server", {
            "desc": info.desc,
            "is_retired": info.is_retired,
            "ip": info.ip,
            "text": info.text,
            "group_name": group_name,
            "username": info.username,
            "password": info.password,
            "auth_key": info.auth_key,
            "auth_key_filename": info.auth_key_filename,
            "server_type": info.server_type,
            "access_type": info.access_type,
            "environment": env,
            "project_id": project_id,
        })
        report.count("servers")

        pending: List[PendingWebsite] = []
        for item_group, items in server_doc.iter_groups():
            self._import_server_items(server_id, item_group, items, report)
            pending.extend(
                PendingWebsite(server_id=server_id, group_name=item_group, website=website)
                for website in items.server_websites
            )
        return pending

    def _import_server_items(self, server_id: int, group_name: Optional[str],
                             items: ServerGroupDoc, report: ImportReport):
        for db in items.server_databases:
            self.store.insert_row("server_database", {
                "desc": db.desc,
                "name": db.name,
                "group_name": group_name,
                "text": db.text,
                "username": db.username,
                "password": db.password,
                "server_id": server_id,
            })
            report.count("server_databases")
        for note in items.server_notes:
            self.store.insert_row("server_note", {
                "title": note.title,
                "group_name": group_name,
                "contents": note.contents,
                "server_id": server_id,
            })
            report.count("server_notes")
        for poi in items.server_pois:
            self.store.insert_row("server_point_of_interest", {
                "desc": poi.desc,
                "path": poi.path,
                "text": poi.text,
                "group_name": group_name,
                "interest_type": poi.interest_type,
                "run_on": poi.run_on,
                "server_id": server_id,
            })
            report.count("server_pois")
        for user in items.server_extra_users:
            self.store.insert_row("server_extra_user_account", {
                "desc": user.desc,
                "group_name": group_name,
                "username": user.username,
                "password": user.password,
                "auth_key": user.auth_key,
                "auth_key_filename": user.auth_key_filename,
                "server_id": server_id,
            })
            report.count("server_extra_users")
        # server websites are handled in the second pass

    # ── Pass 2 ───────────────────────────────────────────────────────

    def _import_website(self, pending: PendingWebsite, report: ImportReport):
        website = pending.website
        database_id = None
        if website.server_database is not None:
            database_id = self._resolve_website_database(website, report)

        self.store.insert_row("server_website", {
            "desc": website.desc,
            "url": website.url,
            "text": website.text,
            "group_name": pending.group_name,
            "username": website.username,
            "password": website.password,
            "server_database_id": database_id,
            "server_id": pending.server_id,
        })
        report.count("server_websites")

    def _resolve_website_database(self, website: ServerWebsiteDoc, report: ImportReport) -> Optional[int]:
        path = website.server_database
        try:
            database_id = self.resolver.resolve_database(path)
            if self.store.select_one("server_database", {"id": database_id}) is None:
                raise TargetNotFoundError(f"Database #{database_id} does not exist")
        except ResolutionError as e:
            logger.warning(
                "Website %r: cannot resolve its database %s, importing it without one (%s)",
                website.desc, path.describe(), e,
            )
            report.unresolved_website_databases.append(website.desc)
            return None
        return database_id

    @staticmethod
    def _audit(event_type: EventType, project_name: str, severity: EventSeverity, details: dict):
        """Best-effort audit logging."""
        try:
            log_transfer_event(event_type, project_name, severity=severity, details=details)
        except Exception:
            logger.warning("Audit log failed: %s %s", event_type.value, project_name, exc_info=True)
