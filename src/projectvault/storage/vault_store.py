# Project Vault - Storage
#
# SQLite persistence for projects and everything they own.
#
# One connection per store, used sequentially. Every write is committed
# on its own: there is no whole-import transaction, so a browsing reader
# sees a project fill up row by row while an import runs.

import logging
import re
import sqlite3
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from ..enums import (
    ENVIRONMENT_ORDER,
    Environment,
    InterestType,
    RunOn,
    ServerAccessType,
    ServerType,
)
from ..errors import AmbiguousMatchError, StorageError
from .schema import INDEXES, TABLE_NAMES, TABLES

logger = logging.getLogger(__name__)

# Writers wait this long for a browsing reader's lock before failing.
BUSY_TIMEOUT_MS = 5000

_IDENTIFIER = re.compile(r"^[a-z_]+$")


def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name):
        raise StorageError(f"Invalid column name: {name!r}")
    return name


def _check_table(table: str) -> str:
    if table not in TABLE_NAMES:
        raise StorageError(f"Unknown table: {table!r}")
    return table


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def _where_clause(where: Optional[Dict[str, Any]]) -> Tuple[str, List[Any]]:
    """Build a WHERE clause; None values compare with IS NULL."""
    if not where:
        return "", []
    parts = []
    params = []
    for column, value in where.items():
        _check_identifier(column)
        if value is None:
            parts.append(f"{column} IS NULL")
        else:
            parts.append(f"{column} = ?")
            params.append(_to_db(value))
    return " WHERE " + " AND ".join(parts), params


class VaultStore:
    """SQLite storage for the vault.

    Args:
        db_path: Path to SQLite file. Defaults to the configured
            PROJECTVAULT_DB_PATH (data/projectvault.db).
    """

    def __init__(self, db_path: Optional[Union[str, Path]] = None):
        if db_path is None:
            from ..config import get_settings
            db_path = get_settings().db_path
        self.db_path = Path(db_path)
        if str(db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()
        try:
            self.conn: Optional[sqlite3.Connection] = self._connect()
        except sqlite3.Error as e:
            raise StorageError(f"Cannot open the database {db_path}: {e}") from e
        self._init_database()

    def _connect(self) -> sqlite3.Connection:
        # shared with the API's worker threads, serialised by self._lock
        conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        conn.row_factory = sqlite3.Row
        if str(self.db_path) != ":memory:":
            # a reader sees an import fill up row by row
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        # cascading project deletes, SET NULL on website databases
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    def _init_database(self):
        """Create tables if they don't exist."""
        with self._lock:
            try:
                for ddl in TABLES:
                    self.conn.execute(ddl)
                for ddl in INDEXES:
                    self.conn.execute(ddl)
                self.conn.commit()
            except sqlite3.Error as e:
                raise StorageError(f"Cannot create the vault schema: {e}") from e

    def close(self):
        with self._lock:
            if self.conn is not None:
                self.conn.close()
                self.conn = None

    def __enter__(self) -> "VaultStore":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # ── low level ───────────────────────────────────────────────────

    def _execute(self, sql: str, params: Iterable[Any] = (), commit: bool = False) -> sqlite3.Cursor:
        if self.conn is None:
            raise StorageError("The vault store is closed.")
        with self._lock:
            try:
                cursor = self.conn.execute(sql, list(params))
                if commit:
                    self.conn.commit()
                return cursor
            except sqlite3.Error as e:
                if commit:
                    self.conn.rollback()
                raise StorageError(f"Database error: {e}") from e

    def _query(self, sql: str, params: Iterable[Any] = ()) -> List[sqlite3.Row]:
        with self._lock:
            return self._execute(sql, params).fetchall()

    # ── generic row helpers ─────────────────────────────────────────

    def insert_row(self, table: str, values: Dict[str, Any]) -> int:
        """Insert one row, commit it, and return its new id."""
        _check_table(table)
        columns = [_check_identifier(c) for c in values]
        placeholders = ", ".join("?" for _ in columns)
        sql = f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})"
        cursor = self._execute(sql, [_to_db(v) for v in values.values()], commit=True)
        return cursor.lastrowid

    def select_all(
        self,
        table: str,
        where: Optional[Dict[str, Any]] = None,
        order_by: str = "id",
    ) -> List[sqlite3.Row]:
        """Return every row of ``table`` matching ``where``."""
        _check_table(table)
        clause, params = _where_clause(where)
        _check_identifier(order_by)
        return self._query(f"SELECT * FROM {table}{clause} ORDER BY {order_by}", params)

    def select_one(self, table: str, where: Dict[str, Any]) -> Optional[sqlite3.Row]:
        """Return the single matching row, or None.

        Raises:
            AmbiguousMatchError: More than one row matches.
        """
        _check_table(table)
        clause, params = _where_clause(where)
        rows = self._query(f"SELECT * FROM {table}{clause} ORDER BY id LIMIT 2", params)
        if len(rows) > 1:
            raise AmbiguousMatchError(f"More than one {table} row matches {where}")
        return rows[0] if rows else None

    def update_where(self, table: str, values: Dict[str, Any], where: Dict[str, Any]) -> int:
        """Update matching rows and return how many changed."""
        _check_table(table)
        if not where:
            raise StorageError("Refusing to update without a predicate.")
        assignments = ", ".join(f"{_check_identifier(c)} = ?" for c in values)
        clause, params = _where_clause(where)
        sql = f"UPDATE {table} SET {assignments}{clause}"
        cursor = self._execute(sql, [_to_db(v) for v in values.values()] + params, commit=True)
        return cursor.rowcount

    # ── projects ────────────────────────────────────────────────────

    def project_name_exists(self, name: str) -> bool:
        rows = self._query("SELECT COUNT(id) AS n FROM project WHERE name = ?", (name,))
        return rows[0]["n"] >= 1

    def get_project(self, project_id: int) -> Optional[sqlite3.Row]:
        return self.select_one("project", {"id": project_id})

    def get_project_by_name(self, name: str) -> Optional[sqlite3.Row]:
        return self.select_one("project", {"name": name})

    def list_projects(self) -> List[dict]:
        """All projects, sorted by name, with their environments."""
        rows = self._query("SELECT * FROM project ORDER BY name")
        return [
            {
                "id": row["id"],
                "name": row["name"],
                "environments": [env.value for env in project_environments(row)],
                "has_icon": bool(row["icon"]),
            }
            for row in rows
        ]

    def delete_project(self, project_id: int) -> bool:
        """Delete a project and everything it owns. Returns True if it existed."""
        cursor = self._execute("DELETE FROM project WHERE id = ?", (project_id,), commit=True)
        return cursor.rowcount > 0

    # ── lookups used by reference resolution ───────────────────────

    def find_server_ids(self, project_name: str, environment: Environment, desc: str) -> List[int]:
        """Ids of servers matching (project name, environment, description)."""
        rows = self._query(
            """SELECT server.id FROM server
               INNER JOIN project ON project.id = server.project_id
               WHERE project.name = ? AND server.environment = ? AND server.desc = ?
               ORDER BY server.id""",
            (project_name, _to_db(environment), desc),
        )
        return [row["id"] for row in rows]

    def find_database_ids(self, server_id: int, desc: str) -> List[int]:
        """Ids of databases on ``server_id`` with the given description."""
        rows = self._query(
            "SELECT id FROM server_database WHERE server_id = ? AND desc = ? ORDER BY id",
            (server_id, desc),
        )
        return [row["id"] for row in rows]

    def get_server_with_project(self, server_id: int) -> Optional[sqlite3.Row]:
        """Server row plus its project's name as ``project_name``."""
        rows = self._query(
            """SELECT server.*, project.name AS project_name FROM server
               INNER JOIN project ON project.id = server.project_id
               WHERE server.id = ?""",
            (server_id,),
        )
        return rows[0] if rows else None

    # ── convenience creators ───────────────────────────────────────

    def add_project(
        self,
        name: str,
        environments: Iterable[Environment] = (Environment.DEVELOPMENT,),
        icon: Optional[bytes] = None,
    ) -> int:
        envs = set(environments)
        values: Dict[str, Any] = {"name": name, "icon": icon}
        for env in ENVIRONMENT_ORDER:
            values[env.flag_column] = env in envs
        return self.insert_row("project", values)

    def add_server(
        self,
        project_id: int,
        environment: Environment,
        desc: str,
        group_name: Optional[str] = None,
        server_type: ServerType = ServerType.APPLICATION,
        access_type: ServerAccessType = ServerAccessType.SSH,
        **fields: Any,
    ) -> int:
        values = {
            "desc": desc,
            "group_name": group_name,
            "server_type": server_type,
            "access_type": access_type,
            "environment": environment,
            "project_id": project_id,
        }
        values.update(fields)
        return self.insert_row("server", values)

    def add_server_database(self, server_id: int, desc: str, group_name: Optional[str] = None,
                            **fields: Any) -> int:
        values = {"desc": desc, "group_name": group_name, "server_id": server_id}
        values.update(fields)
        return self.insert_row("server_database", values)

    def add_server_website(self, server_id: int, desc: str, group_name: Optional[str] = None,
                           server_database_id: Optional[int] = None, **fields: Any) -> int:
        values = {
            "desc": desc,
            "group_name": group_name,
            "server_database_id": server_database_id,
            "server_id": server_id,
        }
        values.update(fields)
        return self.insert_row("server_website", values)

    def add_server_link(self, project_id: int, environment: Environment, desc: str,
                        linked_server_id: int, group_name: Optional[str] = None) -> int:
        return self.insert_row("server_link", {
            "desc": desc,
            "group_name": group_name,
            "linked_server_id": linked_server_id,
            "environment": environment,
            "project_id": project_id,
        })

    def add_project_note(self, project_id: int, title: str, contents: str = "",
                         environments: Iterable[Environment] = (Environment.DEVELOPMENT,),
                         group_name: Optional[str] = None) -> int:
        envs = set(environments)
        values: Dict[str, Any] = {
            "title": title,
            "contents": contents,
            "group_name": group_name,
            "project_id": project_id,
        }
        for env in ENVIRONMENT_ORDER:
            values[env.flag_column] = env in envs
        return self.insert_row("project_note", values)

    def add_project_poi(self, project_id: int, desc: str, path: str = "", text: str = "",
                        interest_type: InterestType = InterestType.APPLICATION,
                        group_name: Optional[str] = None) -> int:
        return self.insert_row("project_point_of_interest", {
            "desc": desc,
            "path": path,
            "text": text,
            "interest_type": interest_type,
            "group_name": group_name,
            "project_id": project_id,
        })

    def add_server_poi(self, server_id: int, desc: str, path: str = "", text: str = "",
                       interest_type: InterestType = InterestType.APPLICATION,
                       run_on: RunOn = RunOn.SERVER, group_name: Optional[str] = None) -> int:
        return self.insert_row("server_point_of_interest", {
            "desc": desc,
            "path": path,
            "text": text,
            "interest_type": interest_type,
            "run_on": run_on,
            "group_name": group_name,
            "server_id": server_id,
        })


def project_environments(project_row: sqlite3.Row) -> List[Environment]:
    """Environments flagged on a project (or project_note) row, in order."""
    return [env for env in ENVIRONMENT_ORDER if project_row[env.flag_column]]
