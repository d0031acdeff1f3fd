"""Tests for the archive document model and its YAML codec."""

import pytest
import yaml

from projectvault.enums import Environment, InterestType, ServerType


class TestLoadDocument:

    def test_minimal_document(self):
        from projectvault.transfer import load_document

        doc = load_document("project_name: billing\n")
        assert doc.project_name == "billing"
        assert doc.environments() == []

    def test_environment_defaults(self):
        from projectvault.transfer import load_document

        doc = load_document(
            "project_name: billing\n"
            "prod_environment:\n"
            "  items:\n"
            "    servers:\n"
            "      - server: {desc: app}\n"
            "  items_in_groups:\n"
            "    ops:\n"
            "      project_pois:\n"
            "        - {desc: logs, interest_type: PoiLogFile}\n"
        )
        [(env, env_doc)] = doc.environments()
        assert env == Environment.PROD
        server = env_doc.items.servers[0].server
        assert server.server_type == ServerType.APPLICATION
        assert server.ip == ""
        assert env_doc.items_in_groups["ops"].project_pois[0].interest_type == InterestType.LOG_FILE

    def test_null_environment_is_absent(self):
        from projectvault.transfer import load_document

        doc = load_document("project_name: billing\nuat_environment: null\n")
        assert doc.uat_environment is None

    @pytest.mark.parametrize("text, message", [
        ("- a\n- b\n", "document: Input should be a valid dictionary"),
        ("other: 1\n", "project_name"),
        ("project_name: '  '\n", "must not be empty"),
        ("project_name: [1]\n", "project_name"),
        ("project_name: x\ndevelopment_environment: {items: {servers: oops}}\n",
         "servers: Input should be a valid list"),
        ("project_name: x\ndevelopment_environment: {items: {server_links: [{desc: l, server: {project_name: x, environment: EnvDevelopment}}]}}\n",
         "server_id or server_desc"),
        ("project_name: x\ndevelopment_environment: {items: {servers: [{server: {desc: a, is_retired: maybe}}]}}\n",
         "is_retired: Input should be a valid boolean"),
        ("project_name: x\nprod_environment: {items_in_groups: {1: {}}}\n", "items_in_groups"),
        ("project_name: [unclosed\n", "not valid YAML"),
    ])
    def test_malformed(self, text, message):
        from projectvault.errors import DocumentError
        from projectvault.transfer import load_document

        with pytest.raises(DocumentError, match=message):
            load_document(text)

    def test_database_path_needs_server_level(self):
        import pydantic

        from projectvault.transfer import ServerDatabasePath

        with pytest.raises(pydantic.ValidationError, match="server_id or server_desc"):
            ServerDatabasePath.model_validate({
                "project_name": "x", "environment": "EnvDevelopment", "database_desc": "db",
            })

    def test_database_path_direct_id_only(self):
        from projectvault.transfer import ServerDatabasePath

        path = ServerDatabasePath.model_validate({
            "project_name": "x", "environment": "EnvProd", "database_id": 12,
        })
        assert path.is_direct
        assert path.describe() == "database #12"

    def test_unknown_keys_rejected(self):
        from projectvault.errors import DocumentError
        from projectvault.transfer import load_document

        with pytest.raises(DocumentError, match=r"prod_environment\.items\.colour: Extra inputs"):
            load_document("project_name: x\nprod_environment: {items: {colour: blue}}\n")

    def test_empty_sections_load_as_empty(self):
        from projectvault.transfer import load_document

        doc = load_document(
            "project_name: billing\n"
            "development_environment:\n"
            "  items:\n"
            "  items_in_groups:\n"
            "    ops:\n"
            "      servers:\n"
        )
        env_doc = doc.development_environment
        assert env_doc.items.is_empty()
        assert env_doc.items_in_groups["ops"].servers == []

    def test_error_is_chained(self):
        import pydantic

        from projectvault.errors import DocumentError
        from projectvault.transfer import load_document

        with pytest.raises(DocumentError) as exc_info:
            load_document("project_name: 5\n")
        assert isinstance(exc_info.value.__cause__, pydantic.ValidationError)


class TestDumpDocument:

    def test_none_fields_dropped_and_enums_plain(self):
        from projectvault.transfer import ProjectDoc, ServerPath, dump_document
        from projectvault.transfer.models import ProjectEnvDoc, ProjectGroupDoc, ServerLinkDoc

        doc = ProjectDoc(project_name="billing", development_environment=ProjectEnvDoc(
            items=ProjectGroupDoc(server_links=[ServerLinkDoc(desc="l", server=ServerPath(
                project_name="billing", environment=Environment.DEVELOPMENT, server_desc="app",
            ))]),
        ))
        data = yaml.safe_load(dump_document(doc))
        assert list(data) == ["project_name", "development_environment"]
        server = data["development_environment"]["items"]["server_links"][0]["server"]
        assert server == {
            "project_name": "billing",
            "environment": "EnvDevelopment",
            "server_desc": "app",
        }

    def test_key_order_preserved(self):
        from projectvault.transfer import ProjectDoc, dump_document
        from projectvault.transfer.models import ProjectEnvDoc, ProjectGroupDoc

        doc = ProjectDoc(project_name="b", development_environment=ProjectEnvDoc(
            items_in_groups={"zeta": ProjectGroupDoc(), "alpha": ProjectGroupDoc()},
        ))
        data = yaml.safe_load(dump_document(doc))
        assert list(data["development_environment"]["items_in_groups"]) == ["zeta", "alpha"]

    def test_binary_auth_key_survives(self):
        from projectvault.transfer import ProjectDoc, dump_document, load_document
        from projectvault.transfer.models import (
            ProjectEnvDoc, ProjectGroupDoc, ServerDoc, ServerInfoDoc,
        )

        doc = ProjectDoc(project_name="b", prod_environment=ProjectEnvDoc(items=ProjectGroupDoc(
            servers=[ServerDoc(server=ServerInfoDoc(desc="s", auth_key=b"\x00\xffkey"))],
        )))
        assert load_document(dump_document(doc)) == doc

    def test_unicode_kept_readable(self):
        from projectvault.transfer import ProjectDoc, dump_document

        assert "Überwachung" in dump_document(ProjectDoc(project_name="Überwachung"))


class TestPaths:

    def test_describe(self):
        from projectvault.transfer import ServerDatabasePath, ServerPath

        path = ServerPath(project_name="billing", environment=Environment.STAGE, server_desc="app")
        assert path.describe() == "billing/stg/app"
        assert not path.is_direct
        db = ServerDatabasePath(project_name="billing", environment=Environment.PROD,
                                database_desc="main", server_desc="pg")
        assert db.describe() == "billing/prod/pg/main"
        assert db.server_path() == ServerPath(
            project_name="billing", environment=Environment.PROD, server_desc="pg",
        )

    def test_iter_groups_ungrouped_first(self):
        from projectvault.transfer.models import ProjectEnvDoc, ProjectGroupDoc

        env_doc = ProjectEnvDoc(items_in_groups={"b": ProjectGroupDoc(), "a": ProjectGroupDoc()})
        assert [name for name, _ in env_doc.iter_groups()] == [None, "b", "a"]
