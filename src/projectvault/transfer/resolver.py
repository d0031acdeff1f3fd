# Project Vault - Reference Resolution
#
# Turns a ServerPath / ServerDatabasePath into the id of a row that is
# already committed. Lookups run against storage as it is at the moment of
# the call: a reference to a row that is imported later fails here.

import logging

from ..errors import AmbiguousTargetError, TargetNotFoundError
from ..storage.vault_store import VaultStore
from .models import ServerDatabasePath, ServerPath

logger = logging.getLogger(__name__)


class PathResolver:
    """Resolve archive references against a VaultStore.

    A direct id always wins; the descriptive part is only consulted when
    the id is absent.
    """

    def __init__(self, store: VaultStore):
        self.store = store

    def resolve_server(self, path: ServerPath) -> int:
        """Return the id of the server ``path`` points at.

        Raises:
            TargetNotFoundError: No server matches.
            AmbiguousTargetError: Several servers share project, environment
                and description.
        """
        if path.server_id is not None:
            return path.server_id
        if path.server_desc is None:
            raise TargetNotFoundError(f"Server reference has neither id nor description: {path}")

        ids = self.store.find_server_ids(path.project_name, path.environment, path.server_desc)
        if not ids:
            raise TargetNotFoundError(f"Cannot find the server {path.describe()}")
        if len(ids) > 1:
            raise AmbiguousTargetError(
                f"{len(ids)} servers match {path.describe()}: {ids}"
            )
        return ids[0]

    def resolve_database(self, path: ServerDatabasePath) -> int:
        """Return the id of the server database ``path`` points at.

        The owning server is resolved first, then the database is looked up
        by description under that server.
        """
        if path.database_id is not None:
            return path.database_id
        if path.database_desc is None:
            raise TargetNotFoundError(f"Database reference has neither id nor description: {path}")

        server_id = self.resolve_server(path.server_path())
        ids = self.store.find_database_ids(server_id, path.database_desc)
        if not ids:
            raise TargetNotFoundError(f"Cannot find the database {path.describe()}")
        if len(ids) > 1:
            raise AmbiguousTargetError(
                f"{len(ids)} databases match {path.describe()}: {ids}"
            )
        logger.debug("Resolved %s to database #%d", path.describe(), ids[0])
        return ids[0]
