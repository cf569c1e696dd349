"""
Consultas ao catálogo (IGC) usadas na descoberta de ativos e na lista de
ignorados. Os nomes de propriedades são os do fornecedor e não devem mudar.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

PAGE_SIZE = "10000"


def _condition(prop: str, operator: str, value: Any = None, negated: bool = False) -> Dict[str, Any]:
    condition: Dict[str, Any] = {"property": prop, "operator": operator}
    if value is not None:
        condition["value"] = value
    if negated:
        condition["negated"] = True
    return condition


def build_query(types: Sequence[str], properties: Sequence[str],
                conditions: List[Dict[str, Any]],
                operator: str = "and") -> Dict[str, Any]:
    return {
        "pageSize": PAGE_SIZE,
        "properties": list(properties),
        "types": list(types),
        "where": {
            "operator": operator,
            "conditions": conditions,
        },
    }


def _modified_since(conditions: List[Dict[str, Any]], modified_since: Optional[datetime]) -> None:
    if modified_since is not None:
        conditions.append(_condition("modified_on", ">", int(modified_since.timestamp() * 1000)))


def hosts_with_databases() -> Dict[str, Any]:
    return build_query(["host"], ["name"],
                       [_condition("databases", "isNull", negated=True)])


def databases_and_schemas_for_host(host: str) -> Dict[str, Any]:
    return build_query(["database"],
                       ["name", "database_schemas.name", "host.name"],
                       [_condition("host.name", "=", host)])


def tables_and_columns_for_schema(host: str, database: str, schema: str,
                                  modified_since: Optional[datetime] = None) -> Dict[str, Any]:
    conditions = [
        _condition("database_schema.name", "=", schema),
        _condition("database_schema.database.name", "=", database),
        _condition("database_schema.database.host.name", "=", host),
    ]
    _modified_since(conditions, modified_since)
    return build_query(["database_table"],
                       ["name", "database_columns.name", "database_schema.name",
                        "database_schema.database.name"],
                       conditions)


def hosts_with_files() -> Dict[str, Any]:
    return build_query(["host"], ["name"],
                       [_condition("data_file_folders", "isNull", negated=True)])


def files_for_host(host: str, modified_since: Optional[datetime] = None) -> Dict[str, Any]:
    conditions = [_condition("host.name", "=", host)]
    _modified_since(conditions, modified_since)
    return build_query(["data_file"], ["name", "path", "host.name"], conditions)


def fields_for_file(host: str, path: str, file_name: str) -> Dict[str, Any]:
    return build_query(["data_file_record"],
                       ["name", "data_file_fields.name", "data_file.name", "data_file.path"],
                       [
                           _condition("data_file.name", "=", file_name),
                           _condition("data_file.path", "=", path),
                           _condition("data_file.host.name", "=", host),
                       ])


def objects_with_label(label_name: str, types: Sequence[str],
                       properties: Sequence[str]) -> Dict[str, Any]:
    return build_query(types, properties,
                       [_condition("labels.name", "=", label_name)])


def label_by_name(label_name: str) -> Dict[str, Any]:
    return build_query(["label"], ["name"], [_condition("name", "=", label_name)])


def databases_by_name(database_name: str) -> Dict[str, Any]:
    return build_query(["database"], ["name", "host.name"],
                       [_condition("name", "=", database_name)])


def local_file_connections_for_host(host: str,
                                    connector_name: str = "LocalFileConnector") -> Dict[str, Any]:
    return build_query(["data_connection"],
                       ["name", "data_connectors.name", "data_connectors.host.name"],
                       [
                           _condition("data_connectors.host.name", "=", host),
                           _condition("data_connectors.name", "=", connector_name),
                       ])
