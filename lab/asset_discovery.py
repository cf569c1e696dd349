#!/usr/bin/env python3
"""
Descoberta de ativos do catálogo
Percorre hosts -> bancos/schemas -> tabelas/colunas e
hosts -> pastas/arquivos -> campos, acumulando tudo no documento do projeto
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Any, Dict, List, Optional

import catalog_queries
from ia_client import IAClient
from identity import (database_identity, file_identity, host_identity,
                      schema_identity, table_identity, column_identity)
from ignore_list import IgnoreListResolver, IgnoreSet
from project_document import ProjectDocument
from targets import FileTarget, TableTarget

logger = logging.getLogger(__name__)

DATABASE_TREE = "database"
FILE_TREE = "file"


class AssetDiscoveryError(Exception):
    """Exceção customizada para erros da descoberta de ativos"""
    pass


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def _first(value: Any, default: str = "") -> str:
    values = _as_list(value)
    return values[0] if values else default


class TraversalState:
    """
    Controle de ramos descobertos x adicionados, por árvore.

    Um ramo entra em 'discovered' quando é agendado e em 'added' quando sua
    resposta é incorporada ao documento; ramos ignorados não entram em
    nenhuma das listas.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.discovered: Dict[str, List[str]] = {DATABASE_TREE: [], FILE_TREE: []}
        self.added: Dict[str, List[str]] = {DATABASE_TREE: [], FILE_TREE: []}

    def mark_discovered(self, tree: str, key: str) -> None:
        with self._lock:
            self.discovered[tree].append(key)

    def mark_added(self, tree: str, key: str) -> None:
        with self._lock:
            if len(self.added[tree]) >= len(self.discovered[tree]):
                raise AssetDiscoveryError(f"Ramo '{key}' adicionado sem ter sido descoberto")
            self.added[tree].append(key)

    def counts(self, tree: str) -> Dict[str, int]:
        with self._lock:
            return {"discovered": len(self.discovered[tree]), "added": len(self.added[tree])}

    def is_complete(self, tree: Optional[str] = None) -> bool:
        trees = [tree] if tree else [DATABASE_TREE, FILE_TREE]
        with self._lock:
            return all(len(self.discovered[t]) == len(self.added[t]) for t in trees)


class DiscoveryResult:
    """Tabelas e arquivos incorporados ao documento durante a descoberta"""

    def __init__(self, state: TraversalState):
        self.state = state
        self.tables: List[TableTarget] = []
        self.files: List[FileTarget] = []
        self.last_host: Optional[str] = None
        self._lock = threading.Lock()

    def add_table(self, target: TableTarget) -> None:
        with self._lock:
            self.tables.append(target)

    def add_file(self, target: FileTarget) -> None:
        with self._lock:
            self.files.append(target)
            self.last_host = target.host

    def files_by_host(self) -> Dict[str, List[FileTarget]]:
        grouped: Dict[str, List[FileTarget]] = {}
        for target in self.files:
            grouped.setdefault(target.host, []).append(target)
        return grouped


class AssetDiscovery:
    """
    Descoberta concorrente de ativos, com número limitado de requisições
    simultâneas.

    Attributes:
        client (IAClient): Cliente da API REST
        ignore_resolver (IgnoreListResolver): Resolve a lista de ignorados
        max_workers (int): Máximo de ramos consultados ao mesmo tempo
    """

    def __init__(self, client: IAClient, ignore_resolver: IgnoreListResolver,
                 max_workers: int = 4):
        self.client = client
        self.ignore_resolver = ignore_resolver
        self.max_workers = max(1, max_workers)

    def discover(self, document: ProjectDocument,
                 modified_since: Optional[datetime] = None) -> DiscoveryResult:
        """
        Executa as duas árvores de descoberta e só retorna quando ambas
        terminaram.

        Args:
            document: Documento do projeto que recebe tabelas e arquivos
            modified_since: Considera apenas ativos modificados após esta data

        Returns:
            DiscoveryResult com o estado final da travessia

        Raises:
            IAClientError: Em caso de erro de transporte em qualquer ramo
            AssetDiscoveryError: Se a travessia terminar incompleta
        """
        ignored = self.ignore_resolver.get_ignored_identities()
        state = TraversalState()
        result = DiscoveryResult(state)

        logger.info("🔍 Iniciando descoberta de ativos...")
        with ThreadPoolExecutor(max_workers=self.max_workers) as branches, \
                ThreadPoolExecutor(max_workers=2) as trees:
            db_tree = trees.submit(self._walk_databases, branches, document,
                                   ignored, result, modified_since)
            file_tree = trees.submit(self._walk_files, branches, document,
                                     ignored, result, modified_since)
            db_tree.result()
            file_tree.result()

        if not state.is_complete():
            raise AssetDiscoveryError(
                f"Travessia incompleta: bancos={state.counts(DATABASE_TREE)}, "
                f"arquivos={state.counts(FILE_TREE)}"
            )
        logger.info(
            f"✅ Descoberta concluída: {len(result.tables)} tabelas "
            f"({state.counts(DATABASE_TREE)['added']} schemas), "
            f"{len(result.files)} arquivos"
        )
        return result

    # --- Árvore de bancos de dados -----------------------------------------

    def _walk_databases(self, branches: ThreadPoolExecutor, document: ProjectDocument,
                        ignored: IgnoreSet, result: DiscoveryResult,
                        modified_since: Optional[datetime]) -> None:
        hosts = [h.get("_name") for h in self.client.search(catalog_queries.hosts_with_databases())]

        per_host: List[Future] = []
        for host in hosts:
            if ignored.is_ignored("host", host_identity(host)):
                logger.warning(f"Ignorando host '{host}' (lista de ignorados)")
                continue
            per_host.append(branches.submit(
                self.client.search, catalog_queries.databases_and_schemas_for_host(host)
            ))

        schema_branches: List[Future] = []
        for future in as_completed(per_host):
            for item in future.result():
                database = item.get("_name")
                host = _first(item.get("host.name"))
                if ignored.is_ignored("database", database_identity(host, database)):
                    logger.warning(f"Ignorando banco '{host}::{database}' (lista de ignorados)")
                    continue
                for schema in _as_list(item.get("database_schemas.name")):
                    key = schema_identity(host, database, schema)
                    if ignored.is_ignored("database_schema", key):
                        logger.warning(f"Ignorando schema '{key}' (lista de ignorados)")
                        continue
                    result.state.mark_discovered(DATABASE_TREE, key)
                    schema_branches.append(branches.submit(
                        self._add_schema_tables, document, ignored, result,
                        host, database, schema, modified_since
                    ))

        for future in schema_branches:
            future.result()
        logger.info(f"Árvore de bancos concluída: {result.state.counts(DATABASE_TREE)}")

    def _add_schema_tables(self, document: ProjectDocument, ignored: IgnoreSet,
                           result: DiscoveryResult, host: str, database: str, schema: str,
                           modified_since: Optional[datetime]) -> None:
        items = self.client.search(
            catalog_queries.tables_and_columns_for_schema(host, database, schema, modified_since)
        )
        for item in items:
            table = item.get("_name")
            if ignored.is_ignored("database_table", table_identity(host, database, schema, table)):
                logger.warning(f"Ignorando tabela '{host}::{database}::{schema}::{table}'")
                continue
            columns = [
                c for c in _as_list(item.get("database_columns.name"))
                if not ignored.is_ignored("database_column",
                                          column_identity(host, database, schema, table, c))
            ]
            document.add_table(database, schema, table, columns)
            result.add_table(TableTarget(database, schema, table))
        result.state.mark_added(DATABASE_TREE, schema_identity(host, database, schema))

    # --- Árvore de arquivos -------------------------------------------------

    def _walk_files(self, branches: ThreadPoolExecutor, document: ProjectDocument,
                    ignored: IgnoreSet, result: DiscoveryResult,
                    modified_since: Optional[datetime]) -> None:
        hosts = [h.get("_name") for h in self.client.search(catalog_queries.hosts_with_files())]

        per_host: List[Future] = []
        for host in hosts:
            if ignored.is_ignored("host", host_identity(host)):
                logger.warning(f"Ignorando host '{host}' (lista de ignorados)")
                continue
            per_host.append(branches.submit(
                self.client.search, catalog_queries.files_for_host(host, modified_since)
            ))

        file_branches: List[Future] = []
        for future in as_completed(per_host):
            for item in future.result():
                file_name = item.get("_name")
                path = _first(item.get("path"))
                host = _first(item.get("host.name"))
                if ignored.is_folder_ignored(host, path):
                    logger.warning(f"Ignorando pasta '{host}::{path}' (lista de ignorados)")
                    continue
                key = file_identity(host, path, file_name)
                if ignored.is_ignored("data_file", key):
                    logger.warning(f"Ignorando arquivo '{key}' (lista de ignorados)")
                    continue
                result.state.mark_discovered(FILE_TREE, key)
                file_branches.append(branches.submit(
                    self._add_file_fields, document, result, host, path, file_name
                ))

        for future in file_branches:
            future.result()
        logger.info(f"Árvore de arquivos concluída: {result.state.counts(FILE_TREE)}")

    def _add_file_fields(self, document: ProjectDocument, result: DiscoveryResult,
                         host: str, path: str, file_name: str) -> None:
        records = self.client.search(catalog_queries.fields_for_file(host, path, file_name))
        fields: List[str] = []
        for record in records:
            fields.extend(_as_list(record.get("data_file_fields.name")))
        document.add_file(host, path, file_name, fields)
        result.add_file(FileTarget(host, path, file_name))
        result.state.mark_added(FILE_TREE, file_identity(host, path, file_name))
