"""Fixtures e dublês compartilhados pelos testes."""

from typing import Any, Dict, List, Optional, Tuple

import pytest

from ia_client import IAConnection


def condition_value(query: Dict[str, Any], prop: str) -> Any:
    for condition in query["where"]["conditions"]:
        if condition["property"] == prop:
            return condition.get("value")
    return None


class FakeCatalog:
    """
    Catálogo em memória que responde às consultas de descoberta.

    databases: {host: {db: {schema: {table: [colunas]}}}}
    files: {host: {caminho: {arquivo: [campos]}}}
    labelled: itens devolvidos pela consulta de rótulo
    """

    def __init__(self, databases=None, files=None, labelled=None):
        self.databases = databases or {}
        self.files = files or {}
        self.labelled = labelled or []

    def __call__(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        object_type = query["types"][0]
        props = [c["property"] for c in query["where"]["conditions"]]

        if "labels.name" in props:
            return list(self.labelled)
        if object_type == "host" and "databases" in props:
            return [{"_type": "host", "_name": h} for h in self.databases]
        if object_type == "host" and "data_file_folders" in props:
            return [{"_type": "host", "_name": h} for h in self.files]
        if object_type == "database":
            host = condition_value(query, "host.name")
            return [
                {"_type": "database", "_name": db, "host.name": host,
                 "database_schemas.name": list(schemas)}
                for db, schemas in self.databases.get(host, {}).items()
            ]
        if object_type == "database_table":
            host = condition_value(query, "database_schema.database.host.name")
            db = condition_value(query, "database_schema.database.name")
            schema = condition_value(query, "database_schema.name")
            tables = self.databases.get(host, {}).get(db, {}).get(schema, {})
            return [
                {"_type": "database_table", "_name": t, "database_columns.name": cols,
                 "database_schema.name": schema, "database_schema.database.name": db}
                for t, cols in tables.items()
            ]
        if object_type == "data_file":
            host = condition_value(query, "host.name")
            return [
                {"_type": "data_file", "_name": f, "path": path, "host.name": host}
                for path, files in self.files.get(host, {}).items()
                for f in files
            ]
        if object_type == "data_file_record":
            file_name = condition_value(query, "data_file.name")
            path = condition_value(query, "data_file.path")
            host = condition_value(query, "data_file.host.name")
            fields = self.files.get(host, {}).get(path, {}).get(file_name, [])
            return [{"_type": "data_file_record", "_name": file_name,
                     "data_file_fields.name": fields}]
        return []


class FakeClient:
    """Dublê do IAClient que registra as chamadas feitas."""

    url = "https://services:9445"

    def __init__(self, search_handler=None, projects: Optional[List[str]] = None):
        self.search_handler = search_handler or (lambda query: [])
        self.projects = projects or []
        self.searches: List[Dict[str, Any]] = []
        self.created: List[str] = []
        self.updated: List[str] = []
        self.executed: List[str] = []
        self.published: List[str] = []
        self.assets_created: List[Dict[str, Any]] = []
        self.assets_updated: List[Tuple[str, Dict[str, Any]]] = []
        self.requests: List[Tuple[str, str, Any, Dict[str, Any]]] = []
        self.responses: Dict[str, str] = {}
        self.status_xml: List[str] = []
        self.project_xml = ""
        self.column_results: Dict[str, str] = {}
        self.rule_history_xml = "<ExecutionHistory/>"
        self.rule_output_xml = "<OutputTable/>"
        self.output_requests: List[Dict[str, Any]] = []

    def search(self, query):
        self.searches.append(query)
        return self.search_handler(query)

    def create_asset(self, asset):
        self.assets_created.append(asset)
        return f"rid-{len(self.assets_created)}"

    def update_asset(self, rid, changes):
        self.assets_updated.append((rid, changes))
        return ""

    def get_project_list(self):
        items = "".join(f'<Project name="{p}"/>' for p in self.projects)
        return f'<iaapi:Projects xmlns:iaapi="http://www.ibm.com/investigate/api/iaapi">{items}</iaapi:Projects>'

    def create_project(self, xml):
        self.created.append(xml)
        return "<created/>"

    def update_project(self, xml):
        self.updated.append(xml)
        return "<updated/>"

    def get_project(self, name):
        return self.project_xml

    def execute_tasks(self, xml):
        self.executed.append(xml)
        return self.responses.get("executeTasks", "<Tasks/>")

    def publish_results(self, xml):
        self.published.append(xml)
        return self.responses.get("publishResults", "<ok/>")

    def get_analysis_status(self, execution_id):
        return self.status_xml.pop(0)

    def get_column_analysis_results(self, project_name, column_name):
        return self.column_results.get(column_name, "<Project/>")

    def get_rule_execution_history(self, project_name, rule_name):
        return self.rule_history_xml

    def get_rule_output_table(self, project_name, rule_name, execution_id=None, nb_of_rows=None):
        self.output_requests.append({"execution_id": execution_id, "nb_of_rows": nb_of_rows})
        return self.rule_output_xml

    def request(self, method, path, body=None, content_type="text/xml", params=None):
        from ia_client import IAResponse
        self.requests.append((method, path, body, params or {}))
        return IAResponse(200, self.responses.get(path, ""), {})


@pytest.fixture
def connection() -> IAConnection:
    return IAConnection(user="isadmin", password="secret", host="services", port="9445")


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()
