"""Tests for PathResolver: direct ids, descriptive paths, ambiguity."""

import pytest

from projectvault.enums import Environment

DEV = Environment.DEVELOPMENT
PROD = Environment.PROD


@pytest.fixture
def resolver(store):
    from projectvault.transfer import PathResolver

    return PathResolver(store)


def _server_path(**kwargs):
    from projectvault.transfer import ServerPath

    kwargs.setdefault("project_name", "billing")
    kwargs.setdefault("environment", DEV)
    return ServerPath(**kwargs)


def _db_path(**kwargs):
    from projectvault.transfer import ServerDatabasePath

    kwargs.setdefault("project_name", "billing")
    kwargs.setdefault("environment", DEV)
    return ServerDatabasePath(**kwargs)


class TestResolveServer:

    def test_descriptive_path(self, store, resolver):
        pid = store.add_project("billing", [DEV])
        sid = store.add_server(pid, DEV, "app-dev")
        assert resolver.resolve_server(_server_path(server_desc="app-dev")) == sid

    def test_direct_id_returned_unchanged(self, resolver):
        # No lookup at all: the id is trusted as-is.
        assert resolver.resolve_server(_server_path(server_id=4242)) == 4242

    def test_direct_id_wins_over_path(self, store, resolver):
        pid = store.add_project("billing", [DEV])
        by_desc = store.add_server(pid, DEV, "app-dev")
        other = store.add_server(pid, DEV, "other")
        path = _server_path(server_id=other, server_desc="app-dev")
        assert resolver.resolve_server(path) == other
        assert resolver.resolve_server(path) != by_desc

    def test_not_found(self, store, resolver):
        from projectvault.errors import TargetNotFoundError

        store.add_project("billing", [DEV])
        with pytest.raises(TargetNotFoundError):
            resolver.resolve_server(_server_path(server_desc="ghost"))

    def test_environment_must_match(self, store, resolver):
        from projectvault.errors import TargetNotFoundError

        pid = store.add_project("billing", [DEV, PROD])
        store.add_server(pid, PROD, "app")
        with pytest.raises(TargetNotFoundError):
            resolver.resolve_server(_server_path(server_desc="app"))

    def test_project_must_match(self, store, resolver):
        pid = store.add_project("billing", [DEV])
        other_pid = store.add_project("shop", [DEV])
        store.add_server(other_pid, DEV, "app")
        mine = store.add_server(pid, DEV, "app")
        assert resolver.resolve_server(_server_path(server_desc="app")) == mine

    def test_match_is_case_sensitive(self, store, resolver):
        from projectvault.errors import TargetNotFoundError

        pid = store.add_project("billing", [DEV])
        store.add_server(pid, DEV, "App-Dev")
        with pytest.raises(TargetNotFoundError):
            resolver.resolve_server(_server_path(server_desc="app-dev"))

    def test_ambiguous_path_fails(self, store, resolver):
        from projectvault.errors import AmbiguousTargetError, ResolutionError

        pid = store.add_project("billing", [DEV])
        store.add_server(pid, DEV, "app")
        store.add_server(pid, DEV, "app", group_name="other-group")
        with pytest.raises(AmbiguousTargetError):
            resolver.resolve_server(_server_path(server_desc="app"))
        # Still a resolution error for callers catching the family.
        with pytest.raises(ResolutionError):
            resolver.resolve_server(_server_path(server_desc="app"))

    def test_neither_id_nor_desc(self, resolver):
        from projectvault.errors import TargetNotFoundError
        from projectvault.transfer import ServerPath

        # Skips validation, which would reject this path.
        path = ServerPath.model_construct(project_name="billing", environment=DEV)
        with pytest.raises(TargetNotFoundError):
            resolver.resolve_server(path)


class TestResolveDatabase:

    def test_descriptive_path(self, store, resolver):
        pid = store.add_project("billing", [DEV])
        sid = store.add_server(pid, DEV, "db-dev")
        dbid = store.add_server_database(sid, "reports")
        path = _db_path(database_desc="reports", server_desc="db-dev")
        assert resolver.resolve_database(path) == dbid

    def test_direct_id_wins(self, store, resolver):
        pid = store.add_project("billing", [DEV])
        sid = store.add_server(pid, DEV, "db-dev")
        store.add_server_database(sid, "reports")
        path = _db_path(database_id=999, database_desc="reports", server_desc="db-dev")
        assert resolver.resolve_database(path) == 999

    def test_server_resolved_by_id(self, store, resolver):
        pid = store.add_project("billing", [DEV])
        sid = store.add_server(pid, DEV, "db-dev")
        dbid = store.add_server_database(sid, "reports")
        path = _db_path(database_desc="reports", server_id=sid)
        assert resolver.resolve_database(path) == dbid

    def test_database_on_other_server_not_found(self, store, resolver):
        from projectvault.errors import TargetNotFoundError

        pid = store.add_project("billing", [DEV])
        store.add_server(pid, DEV, "db-dev")
        elsewhere = store.add_server(pid, DEV, "db-other")
        store.add_server_database(elsewhere, "reports")
        with pytest.raises(TargetNotFoundError):
            resolver.resolve_database(_db_path(database_desc="reports", server_desc="db-dev"))

    def test_missing_server_fails(self, store, resolver):
        from projectvault.errors import TargetNotFoundError

        store.add_project("billing", [DEV])
        with pytest.raises(TargetNotFoundError):
            resolver.resolve_database(_db_path(database_desc="reports", server_desc="nope"))

    def test_ambiguous_database(self, store, resolver):
        from projectvault.errors import AmbiguousTargetError

        pid = store.add_project("billing", [DEV])
        sid = store.add_server(pid, DEV, "db-dev")
        store.add_server_database(sid, "reports")
        store.add_server_database(sid, "reports", group_name="archive")
        with pytest.raises(AmbiguousTargetError):
            resolver.resolve_database(_db_path(database_desc="reports", server_desc="db-dev"))

    def test_resolution_sees_rows_committed_later(self, store, resolver):
        from projectvault.errors import TargetNotFoundError

        pid = store.add_project("billing", [DEV])
        sid = store.add_server(pid, DEV, "db-dev")
        path = _db_path(database_desc="reports", server_desc="db-dev")
        with pytest.raises(TargetNotFoundError):
            resolver.resolve_database(path)
        dbid = store.add_server_database(sid, "reports")
        assert resolver.resolve_database(path) == dbid
