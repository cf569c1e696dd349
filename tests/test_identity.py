import pytest

from identity import (database_identity, file_identity, folder_identity,
                      identity_for_item, schema_identity, split_identity,
                      table_identity)
from targets import FileTarget, TableTarget, parse_target


@pytest.mark.parametrize("parts", [
    ("HOST1", "DB1", "SCH1", "T1"),
    ("db.example.com", "SALES", "dbo", "ORDER LINES"),
])
def test_table_identity_splits_back_into_components(parts) -> None:
    assert split_identity(table_identity(*parts)) == parts


def test_identity_formats() -> None:
    assert schema_identity("HOST1", "DB1", "SCH1") == "HOST1::DB1::SCH1"
    assert database_identity("HOST1", "DB1") == "HOST1::DB1"
    assert folder_identity("HOST1", "/data") == "HOST1::/data"
    assert file_identity("HOST1", "/data", "f.csv") == "HOST1::/data::f.csv"


def test_identity_for_search_items() -> None:
    schema = {"_type": "database_schema", "_name": "SCH1",
              "database.host.name": "HOST1", "database.name": "DB1"}
    data_file = {"_type": "data_file", "_name": "f.csv", "host.name": "HOST1", "path": ["/data"]}

    assert identity_for_item("database_schema", schema) == "HOST1::DB1::SCH1"
    assert identity_for_item("data_file", data_file) == "HOST1::/data::f.csv"
    assert identity_for_item("host", {"_name": "HOST1"}) == "HOST1"


def test_parse_target_table_and_file() -> None:
    assert parse_target("DB1.SCH1.T1.*") == TableTarget("DB1", "SCH1", "T1", "*")
    assert parse_target("DB1.SCH1") == TableTarget("DB1", "SCH1")
    assert parse_target("HOST1:/data:file1:*") == FileTarget("HOST1", "/data", "file1", "*")
    assert parse_target("HOST1:/data/v1.2:file1.csv") == FileTarget("HOST1", "/data/v1.2", "file1.csv")


def test_parse_target_rejects_malformed_text() -> None:
    with pytest.raises(ValueError):
        parse_target("justaname")
    with pytest.raises(ValueError):
        parse_target("HOST1:/data")


def test_target_names() -> None:
    assert TableTarget("DB1", "SCH1", "T1").column_name == "DB1.SCH1.T1.*"
    assert FileTarget("host1", "/data", "f").table_name == "HOST1:/data:f"
