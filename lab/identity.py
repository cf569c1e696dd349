"""Chaves de identidade para objetos do catálogo (host::db::schema::tabela)"""

from typing import Any, Dict, Tuple

IDENTITY_DELIMITER = "::"


def _join(*parts: str) -> str:
    return IDENTITY_DELIMITER.join(str(p) for p in parts)


def host_identity(host: str) -> str:
    return _join(host)


def database_identity(host: str, database: str) -> str:
    return _join(host, database)


def schema_identity(host: str, database: str, schema: str) -> str:
    return _join(host, database, schema)


def table_identity(host: str, database: str, schema: str, table: str) -> str:
    return _join(host, database, schema, table)


def column_identity(host: str, database: str, schema: str, table: str, column: str) -> str:
    return _join(host, database, schema, table, column)


def folder_identity(host: str, path: str) -> str:
    return _join(host, path)


def file_identity(host: str, path: str, file_name: str) -> str:
    return _join(host, path, file_name)


def field_identity(host: str, path: str, file_name: str, field_name: str) -> str:
    return _join(host, path, file_name, field_name)


def split_identity(identity: str) -> Tuple[str, ...]:
    """Separa uma identidade em seus componentes."""
    return tuple(identity.split(IDENTITY_DELIMITER))


def _value(item: Dict[str, Any], prop: str) -> str:
    # a busca devolve o nome do próprio item em '_name'
    if prop == "name":
        return item.get("_name", item.get("name", ""))
    value = item.get(prop, "")
    if isinstance(value, list):
        value = value[0] if value else ""
    return value


# Propriedades (em ordem) que compõem a identidade de cada tipo
IDENTITY_PROPERTIES: Dict[str, Tuple[str, ...]] = {
    "host": ("name",),
    "database": ("host.name", "name"),
    "database_schema": ("database.host.name", "database.name", "name"),
    "database_table": ("database_schema.database.host.name",
                       "database_schema.database.name",
                       "database_schema.name", "name"),
    "database_column": ("database_table.database_schema.database.host.name",
                        "database_table.database_schema.database.name",
                        "database_table.database_schema.name",
                        "database_table.name", "name"),
    "data_file_folder": ("host.name", "path"),
    "data_file": ("host.name", "path", "name"),
}


def identity_for_item(object_type: str, item: Dict[str, Any]) -> str:
    """
    Calcula a identidade de um item devolvido pela busca do catálogo.

    Args:
        object_type: Tipo do objeto (ex: 'database_schema')
        item: Item da busca com as propriedades de IDENTITY_PROPERTIES

    Returns:
        String de identidade

    Raises:
        KeyError: Se o tipo não for suportado
    """
    props = IDENTITY_PROPERTIES[object_type]
    return _join(*(_value(item, p) for p in props))
