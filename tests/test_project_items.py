"""Tests for project item listing, default environment and search."""

from projectvault.enums import Environment, InterestType, ServerAccessType, ServerType

DEV = Environment.DEVELOPMENT
STAGE = Environment.STAGE
UAT = Environment.UAT
PROD = Environment.PROD


class TestListProjectItems:

    def test_dev_items(self, store, sample_project):
        from projectvault.storage import (
            ProjectNoteItem, ProjectPoiItem, ServerItem, list_project_items,
        )

        items = list_project_items(store, sample_project["project"], DEV)
        kinds = {(type(i).__name__, getattr(i, "desc", None) or getattr(i, "title", None))
                 for i in items}
        assert kinds == {
            ("ServerItem", "app-dev"),
            ("ServerItem", "db-dev"),
            ("ProjectNoteItem", "runbook"),
            ("ProjectPoiItem", "wiki"),
        }
        server = next(i for i in items if isinstance(i, ServerItem) and i.desc == "db-dev")
        assert server.server_type == ServerType.DATABASE
        note = next(i for i in items if isinstance(i, ProjectNoteItem))
        assert note.environments == (DEV, STAGE)
        poi = next(i for i in items if isinstance(i, ProjectPoiItem))
        assert poi.interest_type == InterestType.APPLICATION

    def test_stage_items_include_link(self, store, sample_project):
        from projectvault.storage import ServerLinkItem, list_project_items

        items = list_project_items(store, sample_project["project"], STAGE)
        links = [i for i in items if isinstance(i, ServerLinkItem)]
        assert len(links) == 1
        assert links[0].linked_server_id == sample_project["app_dev"]
        server = next(i for i in items if getattr(i, "desc", None) == "app-stage")
        assert server.access_type == ServerAccessType.RDP

    def test_note_only_in_flagged_environments(self, store, sample_project):
        from projectvault.storage import ProjectNoteItem, list_project_items

        prod = list_project_items(store, sample_project["project"], PROD)
        assert [i.title for i in prod if isinstance(i, ProjectNoteItem)] == ["prod checklist"]

    def test_empty_environment_still_lists_pois(self, store, sample_project):
        from projectvault.storage import ProjectPoiItem, list_project_items

        items = list_project_items(store, sample_project["project"], UAT)
        assert len(items) == 1
        assert isinstance(items[0], ProjectPoiItem)

    def test_sorted_ungrouped_first(self, store):
        from projectvault.storage import list_project_items
        from projectvault.storage.items import item_title

        pid = store.add_project("billing", [DEV])
        store.add_server(pid, DEV, "zz", group_name="b-group")
        store.add_server(pid, DEV, "beta")
        store.add_server(pid, DEV, "aa", group_name="a-group")
        store.add_server(pid, DEV, "Alpha")
        titles = [item_title(i) for i in list_project_items(store, pid, DEV)]
        assert titles == ["Alpha", "beta", "aa", "zz"]


class TestDefaultEnvironment:

    def test_server_and_link(self, store, sample_project):
        from projectvault.storage import default_environment, list_project_items

        for item in list_project_items(store, sample_project["project"], STAGE):
            if hasattr(item, "environment"):
                assert default_environment(item) == STAGE

    def test_note_prefers_most_production_like(self):
        from projectvault.storage import ProjectNoteItem, default_environment

        note = ProjectNoteItem(id=1, title="n", environments=(DEV, UAT),
                               group_name=None, project_id=1)
        assert default_environment(note) == UAT

    def test_note_without_environment(self):
        from projectvault.storage import ProjectNoteItem, default_environment

        note = ProjectNoteItem(id=1, title="n", environments=(), group_name=None, project_id=1)
        assert default_environment(note) is None

    def test_poi_has_none(self):
        from projectvault.storage import ProjectPoiItem, default_environment

        poi = ProjectPoiItem(id=1, desc="p", path="", interest_type=InterestType.LOG_FILE,
                             group_name=None, project_id=1)
        assert default_environment(poi) is None


class TestSearch:

    def test_item_match_case_insensitive(self, store, sample_project):
        from projectvault.storage import search_items
        from projectvault.storage.items import item_title

        results = search_items(store, "APP-")
        assert len(results) == 1
        assert results[0]["project"]["name"] == "billing"
        titles = sorted(item_title(i) for i in results[0]["items"])
        assert titles == ["app-dev", "app-prod", "app-stage", "to app-dev"]

    def test_project_name_match_returns_all_items(self, store, sample_project):
        from projectvault.storage import search_items

        results = search_items(store, "bill")
        assert len(results[0]["items"]) == 8

    def test_no_match(self, store, sample_project):
        from projectvault.storage import search_items

        assert search_items(store, "kubernetes") == []

    def test_only_matching_projects(self, store, sample_project):
        from projectvault.storage import search_items

        other = store.add_project("shop", [DEV])
        store.add_server(other, DEV, "web-1")
        results = search_items(store, "web")
        assert [r["project"]["name"] for r in results] == ["shop"]
