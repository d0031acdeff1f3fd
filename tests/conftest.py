"""
Shared pytest fixtures for the Project Vault test suite.

Autouse fixtures below isolate tests from the live application data:
  - Settings     -> temp database / audit directory, cheap key derivation
  - Audit logger -> temp directory  (prevents test events in ./audit_logs)
  - API store    -> reset singleton (prevents rows in data/projectvault.db)
"""

import pytest


@pytest.fixture(autouse=True)
def _isolate_settings(tmp_path):
    """Point the settings singleton at tmp_path for every test.

    KDF iterations are lowered so archive tests don't spend seconds in
    PBKDF2.
    """
    from projectvault import config

    old_settings = config._settings
    config.set_settings(config.VaultSettings(
        db_path=tmp_path / "data" / "projectvault.db",
        audit_log_dir=tmp_path / "audit_logs",
        kdf_iterations=1000,
        min_password_length=8,
    ))

    yield

    config.set_settings(old_settings)


@pytest.fixture(autouse=True)
def _isolate_audit_logs(tmp_path, monkeypatch):
    """Redirect the global AuditLogger to a temp directory for every test."""
    import projectvault.core.audit_log as audit_mod

    # Reset the singleton so the next call to get_audit_logger() creates
    # a fresh instance pointing at the temp directory.
    old_logger = audit_mod._audit_logger
    audit_mod._audit_logger = None

    orig_init = audit_mod.AuditLogger.__init__

    def patched_init(self, log_dir=None):
        orig_init(self, log_dir=log_dir or tmp_path / "audit_logs")

    monkeypatch.setattr(audit_mod.AuditLogger, "__init__", patched_init)

    yield

    if audit_mod._audit_logger is not None:
        audit_mod._audit_logger.close()
    audit_mod._audit_logger = old_logger


@pytest.fixture(autouse=True)
def _isolate_api_store():
    """Reset the API's VaultStore singleton for every test."""
    import projectvault.api.transfer_routes as routes_mod

    old_store = routes_mod._store
    routes_mod._store = None

    yield

    if routes_mod._store is not None:
        routes_mod._store.close()
    routes_mod._store = old_store


@pytest.fixture
def store(tmp_path):
    """A fresh on-disk VaultStore."""
    from projectvault.storage import VaultStore

    s = VaultStore(tmp_path / "vault.db")
    yield s
    s.close()


@pytest.fixture
def other_store(tmp_path):
    """A second, empty VaultStore (import destination)."""
    from projectvault.storage import VaultStore

    s = VaultStore(tmp_path / "other.db")
    yield s
    s.close()


@pytest.fixture
def codec():
    from projectvault.transfer import ArchiveCodec

    return ArchiveCodec(iterations=1000)


_ICON = b"\x89PNG\r\n\x1a\nfake-icon"


@pytest.fixture
def sample_project(store):
    """Create the "billing" project used across exporter/importer tests.

    Layout:
      dev    app-dev (ungrouped): main-db, note, poi, extra user,
                                  websites "admin" -> db-dev/reports-db, "status"
             db-dev (backend):    reports-db
      stage  app-stage (ungrouped)
             link "to app-dev" (links) -> dev/app-dev
      prod   app-prod (ungrouped): shop-db, website "shop" -> shop-db
      notes  "runbook" (dev + stage), "prod checklist" (prod)
      pois   "wiki" (docs)

    Returns a dict of the created ids.
    """
    from projectvault.enums import (
        Environment, InterestType, RunOn, ServerAccessType, ServerType,
    )

    dev, stage, prod = Environment.DEVELOPMENT, Environment.STAGE, Environment.PROD
    ids = {}
    ids["project"] = pid = store.add_project("billing", [dev, stage, prod], icon=_ICON)

    ids["app_dev"] = app_dev = store.add_server(
        pid, dev, "app-dev", ip="10.0.0.1", username="root", password="s3cret",
        auth_key=b"\x00ssh-key", auth_key_filename="id_ed25519",
    )
    ids["db_dev"] = db_dev = store.add_server(
        pid, dev, "db-dev", group_name="backend",
        server_type=ServerType.DATABASE, ip="10.0.0.2",
    )
    ids["main_db"] = store.add_server_database(app_dev, "main-db", name="billing", username="app")
    ids["reports_db"] = reports_db = store.add_server_database(db_dev, "reports-db", name="reports")
    store.insert_row("server_note", {
        "title": "restart", "contents": "systemctl restart billing", "server_id": app_dev,
    })
    store.add_server_poi(app_dev, "logs", path="/var/log/billing",
                         interest_type=InterestType.LOG_FILE, run_on=RunOn.SERVER)
    store.insert_row("server_extra_user_account", {
        "desc": "deploy", "username": "deploy", "password": "d3ploy",
        "group_name": "ops", "server_id": app_dev,
    })
    ids["admin_site"] = store.add_server_website(
        app_dev, "admin", url="https://admin.dev", server_database_id=reports_db,
    )
    store.add_server_website(app_dev, "status", url="https://status.dev")

    ids["app_stage"] = store.add_server(
        pid, stage, "app-stage", ip="10.1.0.1", access_type=ServerAccessType.RDP,
    )
    ids["link"] = store.add_server_link(pid, stage, "to app-dev", app_dev, group_name="links")

    ids["app_prod"] = app_prod = store.add_server(pid, prod, "app-prod", ip="10.2.0.1")
    ids["shop_db"] = shop_db = store.add_server_database(app_prod, "shop-db", name="shop")
    store.add_server_website(app_prod, "shop", url="https://shop.example", server_database_id=shop_db)

    ids["runbook"] = store.add_project_note(pid, "runbook", "Step 1: panic.", [dev, stage])
    ids["checklist"] = store.add_project_note(pid, "prod checklist", "Backups first.", [prod])
    ids["wiki"] = store.add_project_poi(pid, "wiki", path="https://wiki/billing",
                                        interest_type=InterestType.APPLICATION, group_name="docs")
    return ids
