#!/usr/bin/env python3
"""
Documento de definição de projeto do Information Analyzer
Construção do XML de projeto (fontes de dados e tarefas) e leitura das
respostas XML da API
"""

import threading
import xml.etree.ElementTree as ET
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from targets import FileTarget, TableTarget, Target

IAAPI_NAMESPACE = "http://www.ibm.com/investigate/api/iaapi"
ET.register_namespace("iaapi", IAAPI_NAMESPACE)

CAPTURE_RESULTS_TYPES = ("CAPTURE_NONE", "CAPTURE_ALL", "CAPTURE_N")
SAMPLE_TYPES = ("random", "sequential", "every_nth")


class DuplicateTaskError(Exception):
    """Já existe uma tarefa desse tipo no documento"""
    pass


def _xml_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ProjectDocument:
    """
    Definição de projeto enviada aos endpoints create/update/executeTasks.

    As entradas são acumuladas (com lock, podem vir de várias threads) e o
    XML é gerado numa única passada em serialize(). Cada add_table/add_file
    gera um novo DataSource, mesmo que já exista um com o mesmo nome.

    Attributes:
        name (str): Nome do projeto
        description (str): Descrição do projeto (opcional)
    """

    def __init__(self, name: str):
        self.name = name
        self.description: Optional[str] = None
        self._sources: List[Tuple[str, str, str, str, Tuple[str, ...]]] = []
        self._tasks: List[Any] = []
        self._lock = threading.Lock()

    def set_description(self, description: str) -> None:
        self.description = description

    def add_table(self, datasource: str, schema: str, table: str,
                  columns: Sequence[str]) -> None:
        """
        Adiciona uma tabela ao projeto.

        Args:
            datasource: Nome do banco de dados
            schema: Nome do schema
            table: Nome da tabela
            columns: Nomes das colunas
        """
        with self._lock:
            self._sources.append(("Schema", datasource, schema, table, tuple(columns)))

    def add_file(self, datasource: str, folder: str, file_name: str,
                 fields: Sequence[str]) -> None:
        """
        Adiciona um arquivo ao projeto.

        Args:
            datasource: Nome do host
            folder: Caminho completo da pasta do arquivo
            file_name: Nome do arquivo
            fields: Nomes dos campos do arquivo
        """
        with self._lock:
            self._sources.append(("FileFolder", datasource, folder, file_name, tuple(fields)))

    def add_task(self, task: Any) -> None:
        """
        Registra uma tarefa (no máximo uma de cada tipo).

        Raises:
            DuplicateTaskError: Se já houver tarefa do mesmo tipo
        """
        with self._lock:
            if any(t.tag == task.tag for t in self._tasks):
                raise DuplicateTaskError(f"O documento já possui uma tarefa {task.tag}")
            self._tasks.append(task)

    @property
    def tables(self) -> List[Tuple[str, str, str, Tuple[str, ...]]]:
        with self._lock:
            return [s[1:] for s in self._sources if s[0] == "Schema"]

    @property
    def files(self) -> List[Tuple[str, str, str, Tuple[str, ...]]]:
        with self._lock:
            return [s[1:] for s in self._sources if s[0] == "FileFolder"]

    def is_empty(self) -> bool:
        with self._lock:
            return not self._sources

    def to_element(self) -> ET.Element:
        root = ET.Element(f"{{{IAAPI_NAMESPACE}}}Project", {"name": self.name})
        if self.description is not None:
            ET.SubElement(root, "description").text = self.description

        with self._lock:
            sources = list(self._sources)
            tasks = list(self._tasks)

        if sources:
            e_sources = ET.SubElement(root, "DataSources")
            for container, datasource, location, name, columns in sources:
                e_ds = ET.SubElement(e_sources, "DataSource", {"name": datasource})
                e_loc = ET.SubElement(e_ds, container, {"name": location})
                leaf = "Table" if container == "Schema" else "FileName"
                e_leaf = ET.SubElement(e_loc, leaf, {"name": name})
                for column in columns:
                    ET.SubElement(e_leaf, "Column", {"name": column})

        if tasks:
            e_tasks = ET.SubElement(root, "Tasks")
            for task in tasks:
                e_tasks.append(task.to_element())
        return root

    def serialize(self) -> str:
        """Gera o XML exatamente como esperado pela API."""
        return ET.tostring(self.to_element(), encoding="unicode")


class ColumnAnalysis:
    """
    Tarefa RunColumnAnalysis de um projeto.

    Args:
        document: Documento do projeto que receberá a tarefa
        analyze_column_properties: Analisa propriedades das colunas
        capture_results_type: Tipo de captura da distribuição de frequência
            (CAPTURE_NONE, CAPTURE_ALL, CAPTURE_N)
        min_capture_size: Mínimo de resultados gravados no banco de análise
        max_capture_size: Máximo de resultados gravados no banco de análise
        analyze_data_classes: Analisa classes de dados (sempre explícito)
    """

    tag = "RunColumnAnalysis"

    def __init__(self, document: ProjectDocument, *,
                 analyze_data_classes: bool,
                 analyze_column_properties: bool = True,
                 capture_results_type: str = "CAPTURE_ALL",
                 min_capture_size: int = 5000,
                 max_capture_size: int = 10000):
        if capture_results_type not in CAPTURE_RESULTS_TYPES:
            raise ValueError(f"capture_results_type inválido: {capture_results_type}")
        self.attributes = {
            "analyzeColumnProperties": analyze_column_properties,
            "captureFDResultsType": capture_results_type,
            "minFDCaptureSize": min_capture_size,
            "maxFDCaptureSize": max_capture_size,
            "analyzeDataClasses": analyze_data_classes,
        }
        self._children: List[Tuple[str, Dict[str, Any]]] = []
        document.add_task(self)

    def set_sample_options(self, sample_type: str, size: float,
                           seed: Optional[str] = None, step: Optional[int] = None) -> None:
        """
        Define a amostragem da análise.

        Args:
            sample_type: 'random', 'sequential' ou 'every_nth'
            size: Até 1.0 é percentual; acima disso, número máximo de registros
            seed: Semente (apenas para 'random')
            step: Intervalo (apenas para 'every_nth')
        """
        if sample_type not in SAMPLE_TYPES:
            raise ValueError(f"Tipo de amostragem inválido: {sample_type}")
        attrs: Dict[str, Any] = {"type": sample_type}
        if size <= 1.0:
            attrs["percent"] = size
        else:
            attrs["size"] = int(size)
        if sample_type == "random" and seed is not None:
            attrs["seed"] = seed
        elif sample_type == "every_nth" and step is not None:
            attrs["nthValue"] = step
        self._children.append(("SampleOptions", attrs))

    def set_engine_options(self, retain_osh: bool = False, retain_data_sets: bool = False,
                           px_configuration_file: Optional[str] = None,
                           grid_enabled: bool = False,
                           requested_nodes: Optional[str] = None,
                           minimum_nodes: Optional[int] = None,
                           partitions_per_node: Optional[int] = None) -> None:
        attrs = {
            "retainOsh": retain_osh,
            "retainDataSets": retain_data_sets,
            "PXConfigurationFile": px_configuration_file,
            "gridEnabled": grid_enabled,
            "requestedNodes": requested_nodes,
            "minimumNodes": minimum_nodes,
            "partitionsPerNode": partitions_per_node,
        }
        self._children.append(("EngineOptions", {k: v for k, v in attrs.items() if v is not None}))

    def set_job_options(self, debug_enabled: bool = False, debugged_records: int = 0,
                        array_size: Optional[int] = None, auto_commit: Optional[bool] = None,
                        isolation_level: Optional[int] = None,
                        update_existing_tables: Optional[bool] = None) -> None:
        attrs = {
            "debugEnabled": debug_enabled,
            "nbOfDebuggedRecords": debugged_records,
            "arraySize": array_size,
            "autoCommit": auto_commit,
            "isolationLevel": isolation_level,
            "updateExistingTables": update_existing_tables,
        }
        self._children.append(("JobOptions", {k: v for k, v in attrs.items() if v is not None}))

    def add_column(self, datasource: str, schema: str, table: str, column: str) -> None:
        """Tabela e coluna aceitam '*' (todas)."""
        self.add_target(TableTarget(datasource, schema, table, column))

    def add_file_field(self, host: str, path: str, file_name: str, field_name: str) -> None:
        self.add_target(FileTarget(host, path, file_name, field_name))

    def add_target(self, target: Target) -> None:
        self._children.append(("Column", {"name": target.column_name}))

    def to_element(self) -> ET.Element:
        element = ET.Element(self.tag, {k: _xml_value(v) for k, v in self.attributes.items()})
        for tag, attrs in self._children:
            ET.SubElement(element, tag, {k: _xml_value(v) for k, v in attrs.items()})
        return element


class PublishResults:
    """Tarefa PublishResults: publica resultados das tabelas/arquivos adicionados"""

    tag = "PublishResults"

    def __init__(self, document: ProjectDocument):
        self._names: List[str] = []
        document.add_task(self)

    def add_table(self, datasource: str, schema: str, table: str) -> None:
        self.add_target(TableTarget(datasource, schema, table))

    def add_file(self, host: str, path: str, file_name: str) -> None:
        self.add_target(FileTarget(host, path, file_name))

    def add_target(self, target: Target) -> None:
        self._names.append(target.table_name)

    def to_element(self) -> ET.Element:
        element = ET.Element(self.tag)
        for name in self._names:
            ET.SubElement(element, "Table", {"name": name})
        return element


# --- Leitura das respostas -------------------------------------------------

def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def iter_elements(xml_text: str, local_name: str) -> Iterator[ET.Element]:
    """Percorre os elementos com o nome local informado (ignora namespace)."""
    root = ET.fromstring(xml_text)
    for element in root.iter():
        if _local_name(element.tag) == local_name:
            yield element


def _children(element: ET.Element, local_name: str) -> List[ET.Element]:
    return [c for c in element if _local_name(c.tag) == local_name]


def parse_project_names(xml_text: str) -> List[str]:
    return [e.get("name") for e in iter_elements(xml_text, "Project")]


def parse_execution_ids(xml_text: str) -> List[str]:
    """IDs de execução (scheduleId) devolvidos por executeTasks."""
    return [e.get("scheduleId") for e in iter_elements(xml_text, "ScheduledTask")]


def parse_task_executions(xml_text: str) -> List[Dict[str, Optional[str]]]:
    return [
        {
            "executionId": e.get("executionId"),
            "executionTime": e.get("executionTime"),
            "progress": e.get("progress"),
            "status": e.get("status"),
        }
        for e in iter_elements(xml_text, "TaskExecution")
    ]


def _iter_sources(xml_text: str) -> Iterator[Tuple[Target, List[ET.Element]]]:
    for e_ds in iter_elements(xml_text, "DataSource"):
        datasource = e_ds.get("name")
        for e_schema in _children(e_ds, "Schema"):
            for e_table in _children(e_schema, "Table"):
                yield (TableTarget(datasource, e_schema.get("name"), e_table.get("name")),
                       _children(e_table, "Column"))
        for e_folder in _children(e_ds, "FileFolder"):
            for e_file in _children(e_folder, "FileName"):
                yield (FileTarget(datasource, e_folder.get("name"), e_file.get("name")),
                       _children(e_file, "Column"))


def parse_project_sources(xml_text: str) -> List[Tuple[Target, List[str]]]:
    """
    Lê as fontes de uma definição de projeto.

    Returns:
        Lista de (alvo, colunas) na ordem do documento
    """
    return [(target, [c.get("name") for c in columns])
            for target, columns in _iter_sources(xml_text)]


def parse_iso_datetime(value: str) -> datetime:
    """Data ISO 8601 da API; datas com fuso são convertidas para o horário local."""
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_column_analysis_dates(xml_text: str) -> List[Tuple[Target, str, Optional[datetime]]]:
    """
    Lê a data da última análise de cada coluna (columnAnalysis/results).

    Returns:
        Lista de (alvo, coluna, data); data é None se a coluna nunca foi analisada
    """
    dates: List[Tuple[Target, str, Optional[datetime]]] = []
    for target, columns in _iter_sources(xml_text):
        for e_column in columns:
            run_date = None
            for e_results in _children(e_column, "ColumnAnalysisResults"):
                for e_date in _children(e_results, "RunDate"):
                    if e_date.text and e_date.text.strip():
                        run_date = parse_iso_datetime(e_date.text)
            dates.append((target, e_column.get("name"), run_date))
    return dates
