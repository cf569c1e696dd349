import json
import xml.etree.ElementTree as ET

import pytest

from conftest import FakeCatalog, FakeClient, condition_value

from asset_discovery import AssetDiscovery
from ia_client import IAClientError
from ignore_list import IgnoreListResolver
from project_publisher import ProjectPublisher, ProjectPublisherError
from thin_client import DA_API, ThinClientAPI


class CatalogWithConnectors(FakeCatalog):
    def __init__(self, connectors=None, **kwargs):
        super().__init__(**kwargs)
        self.connectors = connectors or {}

    def __call__(self, query):
        if query["types"] == ["data_connection"]:
            host = condition_value(query, "data_connectors.host.name")
            rid = self.connectors.get(host)
            return [{"_id": rid, "_name": "LocalFileConnector"}] if rid else []
        return super().__call__(query)


def _publisher(client):
    discovery = AssetDiscovery(client, IgnoreListResolver(client))
    return ProjectPublisher(client, ThinClientAPI(client), discovery)


def _workspaces(client, *entries):
    client.responses[f"{DA_API}/workspaces"] = json.dumps(list(entries))


def test_missing_project_is_created_not_updated() -> None:
    client = FakeClient(FakeCatalog(databases={"HOST1": {"DB1": {"SCH1": {"T1": ["A", "B"]}}}}))

    results = _publisher(client).create_or_update_project("Automated Profiling", "Base")

    assert results["action"] == "create"
    assert client.updated == []
    assert len(client.created) == 1
    root = ET.fromstring(client.created[0])
    assert root.get("name") == "Automated Profiling"
    assert root.find("description").text == "Base"
    assert results["tables_added"] == 1
    assert results["schemas"] == {"discovered": 1, "added": 1}
    assert results["errors"] == []


def test_existing_project_is_updated() -> None:
    client = FakeClient(FakeCatalog(databases={"HOST1": {"DB1": {"SCH1": {"T1": ["A"]}}}}),
                        projects=["Automated Profiling"])

    results = _publisher(client).create_or_update_project("Automated Profiling", "Base")

    assert results["action"] == "update"
    assert client.created == []
    assert len(client.updated) == 1


def test_existing_project_without_new_assets_is_left_alone() -> None:
    client = FakeClient(FakeCatalog(), projects=["Automated Profiling"])

    results = _publisher(client).create_or_update_project("Automated Profiling", "Base")

    assert results["action"] == "none"
    assert client.created == [] and client.updated == []


def test_files_are_registered_through_each_hosts_connector() -> None:
    catalog = CatalogWithConnectors(
        connectors={"HOST1": "conn-1", "HOST2": "conn-2"},
        files={"HOST1": {"/data": {"a.csv": ["id"]}}, "HOST2": {"/in": {"b.csv": ["x"], "c.csv": ["y"]}}},
    )
    client = FakeClient(catalog)
    _workspaces(client, {"name": "Automated Profiling", "description": "Base", "rid": "ws-1"})

    results = _publisher(client).create_or_update_project("Automated Profiling", "Base")

    registrations = [r for r in client.requests if r[1].endswith("doRegisterAndAddToWorkspaces")]
    by_connector = {r[2]["connectionRID"]: r[2] for r in registrations}
    assert set(by_connector) == {"conn-1", "conn-2"}
    assert by_connector["conn-1"]["workspaceRIDs"] == ["ws-1"]
    assert sorted(d["name"] for d in by_connector["conn-2"]["dataSets"]) == ["b.csv", "c.csv"]
    assert {d["location"] for d in by_connector["conn-2"]["dataSets"]} == {"/in"}
    assert results["files_registered"] == 3
    assert results["errors"] == []


def test_missing_connector_and_rid_are_reported_as_errors() -> None:
    catalog = CatalogWithConnectors(files={"HOST1": {"/data": {"a.csv": ["id"]}}})
    client = FakeClient(catalog)
    _workspaces(client, {"name": "Automated Profiling", "description": "Base", "rid": "ws-1"})

    results = _publisher(client).create_or_update_project("Automated Profiling", "Base")

    assert [e["step"] for e in results["errors"]] == ["connector"]
    assert results["files_registered"] == 0

    client = FakeClient(catalog)
    _workspaces(client, {"name": "Other", "description": "Base", "rid": "ws-9"})

    results = _publisher(client).create_or_update_project("Automated Profiling", "Base")

    assert [e["step"] for e in results["errors"]] == ["project_rid"]


def test_transport_error_is_wrapped() -> None:
    class BrokenClient(FakeClient):
        def get_project_list(self):
            raise IAClientError("Erro HTTP 401", status_code=401)

    with pytest.raises(ProjectPublisherError) as excinfo:
        _publisher(BrokenClient()).create_or_update_project("Automated Profiling", "Base")

    assert isinstance(excinfo.value.__cause__, IAClientError)
