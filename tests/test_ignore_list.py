from conftest import FakeClient, condition_value

from ignore_list import IGNORABLE_TYPES, IgnoreListResolver, IgnoreSet


def test_ignored_identities_are_partitioned_by_type() -> None:
    labelled = [
        {"_type": "database_schema", "_name": "SCH1",
         "database.host.name": "HOST1", "database.name": "DB1"},
        {"_type": "host", "_name": "HOST2"},
        {"_type": "data_file", "_name": "f.csv", "host.name": "HOST1", "path": "/data"},
    ]
    client = FakeClient(search_handler=lambda q: labelled)

    ignored = IgnoreListResolver(client, "Skip").get_ignored_identities()

    assert set(ignored) == set(IGNORABLE_TYPES)
    assert ignored["database_schema"] == {"HOST1::DB1::SCH1"}
    assert ignored["host"] == {"HOST2"}
    assert ignored["data_file"] == {"HOST1::/data::f.csv"}
    assert ignored["database_table"] == set()
    assert len(client.searches) == 1
    query = client.searches[0]
    assert set(query["types"]) == set(IGNORABLE_TYPES)
    assert condition_value(query, "labels.name") == "Skip"


class LabelCatalog:
    def __init__(self, client):
        self.client = client

    def __call__(self, query):
        if query["types"] == ["label"]:
            return [{"_id": rid, "_name": a["name"]}
                    for rid, a in zip(["rid-1"], self.client.assets_created)]
        if query["types"] == ["database"]:
            return [{"_id": "db-rid", "_name": "IADB"}]
        return []


def test_ensure_label_exists_is_idempotent() -> None:
    client = FakeClient()
    client.search_handler = LabelCatalog(client)
    resolver = IgnoreListResolver(client)

    first = resolver.ensure_label_exists()
    second = resolver.ensure_label_exists()

    assert first == second == "rid-1"
    assert len(client.assets_created) == 1
    assert client.assets_created[0]["_type"] == "label"


def test_add_iadb_to_ignore_list_appends_label() -> None:
    client = FakeClient()
    client.search_handler = LabelCatalog(client)

    labelled = IgnoreListResolver(client).add_iadb_to_ignore_list("IADB")

    assert labelled == ["db-rid"]
    assert client.assets_updated == [("db-rid", {"labels": {"items": ["rid-1"], "mode": "append"}})]


def test_add_iadb_missing_database_is_not_an_error() -> None:
    client = FakeClient(search_handler=lambda q: [])

    assert IgnoreListResolver(client).add_iadb_to_ignore_list("IADB") == []
    assert client.assets_updated == []


def test_ignored_folder_covers_subfolders() -> None:
    ignored = IgnoreSet({"data_file_folder": {"HOST1::/data"}})

    assert ignored.is_folder_ignored("HOST1", "/data")
    assert ignored.is_folder_ignored("HOST1", "/data/archive")
    assert not ignored.is_folder_ignored("HOST1", "/database")
    assert not ignored.is_folder_ignored("HOST2", "/data")
