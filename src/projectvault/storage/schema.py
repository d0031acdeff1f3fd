# Project Vault - Relational Schema
#
# One project owns everything below it; deleting a project cascades.
# A website may point at a database on any server (even in another
# project); deleting that database clears the reference.

SCHEMA_VERSION = 1

TABLES = [
    """
    CREATE TABLE IF NOT EXISTS project (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        icon BLOB,
        has_dev INTEGER NOT NULL DEFAULT 0,
        has_stage INTEGER NOT NULL DEFAULT 0,
        has_uat INTEGER NOT NULL DEFAULT 0,
        has_prod INTEGER NOT NULL DEFAULT 0
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_point_of_interest (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        desc TEXT NOT NULL,
        path TEXT NOT NULL DEFAULT '',
        text TEXT NOT NULL DEFAULT '',
        interest_type TEXT NOT NULL,
        group_name TEXT,
        project_id INTEGER NOT NULL REFERENCES project(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_note (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        contents TEXT NOT NULL DEFAULT '',
        has_dev INTEGER NOT NULL DEFAULT 0,
        has_stage INTEGER NOT NULL DEFAULT 0,
        has_uat INTEGER NOT NULL DEFAULT 0,
        has_prod INTEGER NOT NULL DEFAULT 0,
        group_name TEXT,
        project_id INTEGER NOT NULL REFERENCES project(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS server (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        desc TEXT NOT NULL,
        is_retired INTEGER NOT NULL DEFAULT 0,
        ip TEXT NOT NULL DEFAULT '',
        text TEXT NOT NULL DEFAULT '',
        group_name TEXT,
        username TEXT NOT NULL DEFAULT '',
        password TEXT NOT NULL DEFAULT '',
        auth_key BLOB,
        auth_key_filename TEXT,
        server_type TEXT NOT NULL,
        access_type TEXT NOT NULL,
        environment TEXT NOT NULL,
        project_id INTEGER NOT NULL REFERENCES project(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS server_link (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        desc TEXT NOT NULL,
        group_name TEXT,
        linked_server_id INTEGER NOT NULL REFERENCES server(id) ON DELETE CASCADE,
        environment TEXT NOT NULL,
        project_id INTEGER NOT NULL REFERENCES project(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS server_database (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        desc TEXT NOT NULL,
        name TEXT NOT NULL DEFAULT '',
        text TEXT NOT NULL DEFAULT '',
        group_name TEXT,
        username TEXT NOT NULL DEFAULT '',
        password TEXT NOT NULL DEFAULT '',
        server_id INTEGER NOT NULL REFERENCES server(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS server_note (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        title TEXT NOT NULL,
        contents TEXT NOT NULL DEFAULT '',
        group_name TEXT,
        server_id INTEGER NOT NULL REFERENCES server(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS server_point_of_interest (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        desc TEXT NOT NULL,
        path TEXT NOT NULL DEFAULT '',
        text TEXT NOT NULL DEFAULT '',
        interest_type TEXT NOT NULL,
        run_on TEXT NOT NULL,
        group_name TEXT,
        server_id INTEGER NOT NULL REFERENCES server(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS server_extra_user_account (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        desc TEXT NOT NULL,
        username TEXT NOT NULL DEFAULT '',
        password TEXT NOT NULL DEFAULT '',
        auth_key BLOB,
        auth_key_filename TEXT,
        group_name TEXT,
        server_id INTEGER NOT NULL REFERENCES server(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS server_website (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        desc TEXT NOT NULL,
        url TEXT NOT NULL DEFAULT '',
        text TEXT NOT NULL DEFAULT '',
        group_name TEXT,
        username TEXT NOT NULL DEFAULT '',
        password TEXT NOT NULL DEFAULT '',
        server_database_id INTEGER REFERENCES server_database(id) ON DELETE SET NULL,
        server_id INTEGER NOT NULL REFERENCES server(id) ON DELETE CASCADE
    )
    """,
]

INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_server_project ON server(project_id)",
    "CREATE INDEX IF NOT EXISTS idx_server_lookup ON server(environment, desc)",
    "CREATE INDEX IF NOT EXISTS idx_server_database_server ON server_database(server_id)",
    "CREATE INDEX IF NOT EXISTS idx_project_note_project ON project_note(project_id)",
    "CREATE INDEX IF NOT EXISTS idx_server_link_project ON server_link(project_id)",
]

# Every table the generic row helpers may touch.
TABLE_NAMES = frozenset({
    "project",
    "project_point_of_interest",
    "project_note",
    "server",
    "server_link",
    "server_database",
    "server_note",
    "server_point_of_interest",
    "server_extra_user_account",
    "server_website",
})
