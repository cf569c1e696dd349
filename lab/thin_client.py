#!/usr/bin/env python3
"""
Endpoints internos (não documentados) do thin client do Information Analyzer
O fornecedor pode alterá-los sem aviso: todo acesso a eles fica nesta classe
"""

import json
import logging
from typing import Any, Dict, List, Optional, Sequence

import catalog_queries
from ia_client import IAClient
from targets import FileTarget

logger = logging.getLogger(__name__)

DA_API = "/ibm/iis/dq/da/rest/v1"


class ThinClientAPI:
    """
    Acesso aos endpoints internos usados pelo thin client (registro de
    arquivos, filtros via Solr, execução/publicação por RID, reindexação).

    Attributes:
        client (IAClient): Cliente da API REST
    """

    def __init__(self, client: IAClient):
        self.client = client

    def _post_json(self, path: str, payload: Dict[str, Any]) -> Any:
        response = self.client.request("POST", path, payload, content_type="application/json")
        return json.loads(response.text) if response.text.strip() else {}

    def get_workspace_rid(self, name: str, description: Optional[str] = None) -> Optional[str]:
        """
        Resolve o RID interno de um projeto (workspace).

        Args:
            name: Nome do projeto
            description: Descrição do projeto (desempata projetos homônimos)

        Returns:
            RID do projeto, ou None se não encontrado
        """
        response = self.client.request("GET", f"{DA_API}/workspaces")
        payload = json.loads(response.text or "[]")
        workspaces = payload.get("workspaces", []) if isinstance(payload, dict) else payload
        for workspace in workspaces:
            if description is not None and workspace.get("description") != description:
                continue
            if workspace.get("name") == name:
                return workspace.get("rid") or workspace.get("id")
        logger.warning(f"Projeto '{name}' não encontrado entre os workspaces")
        return None

    def get_local_file_connector_rid(self, host: str) -> Optional[str]:
        """RID da conexão do conector de arquivos locais do host, se houver."""
        items = self.client.search(catalog_queries.local_file_connections_for_host(host))
        if not items:
            logger.warning(f"Conector de arquivos locais não encontrado para o host '{host}'")
            return None
        return items[0].get("_id")

    def register_files(self, connector_rid: str, project_rid: str,
                       files: Sequence[FileTarget]) -> Any:
        """
        Registra arquivos e os adiciona ao projeto (doRegisterAndAddToWorkspaces).

        Args:
            connector_rid: RID da conexão de arquivos locais
            project_rid: RID interno do projeto
            files: Arquivos descobertos
        """
        payload = {
            "connectionRID": connector_rid,
            "workspaceRIDs": [project_rid],
            "dataSets": [{"location": f.path, "name": f.file} for f in files],
        }
        result = self._post_json(f"{DA_API}/dataSets/doRegisterAndAddToWorkspaces", payload)
        logger.info(f"{len(files)} arquivos registrados no projeto (RID: {project_rid})")
        return result

    def filter_data_sets(self, project_rid: str, filters: Optional[List[Dict[str, Any]]] = None,
                         limit: int = 10000) -> List[Dict[str, Any]]:
        """Lista os conjuntos de dados do projeto via filtro (doFilter)."""
        payload = {"filters": filters or [], "limit": limit}
        result = self._post_json(f"{DA_API}/workspaces/{project_rid}/dataSets/doFilter", payload)
        data_sets = result.get("dataSets", []) if isinstance(result, dict) else result
        logger.info(f"{len(data_sets)} conjuntos de dados no projeto (RID: {project_rid})")
        return data_sets

    def run_column_analysis(self, project_rid: str, data_set_rids: Sequence[str]) -> Any:
        """Submete análise de colunas por RID interno (doRun)."""
        payload = {"dataSetRIDs": list(data_set_rids), "analysisType": "columnAnalysis"}
        return self._post_json(f"{DA_API}/workspaces/{project_rid}/dataSets/doRun", payload)

    def publish(self, project_rid: str, data_set_rids: Sequence[str]) -> Any:
        """Publica resultados por RID interno (doPublish)."""
        payload = {"dataSetRIDs": list(data_set_rids)}
        return self._post_json(f"{DA_API}/workspaces/{project_rid}/dataSets/doPublish", payload)

    def reindex(self, batch_size: int = 25, solr_batch_size: int = 100,
                upgrade: bool = False, force: bool = True) -> str:
        """
        Reindexa o Solr para que resultados apareçam no thin client.

        Args:
            batch_size: Lote de leitura do banco (máx. 1000)
            solr_batch_size: Lote de indexação do Solr (máx. 1000)
            upgrade: Atualiza o esquema do índice de versão anterior
            force: Força reindexação mesmo com outra em andamento

        Returns:
            Status da reindexação (ex: REINDEX_SUCCESSFUL)
        """
        params = {
            "batchSize": batch_size,
            "solrBatchSize": solr_batch_size,
            "upgrade": "true" if upgrade else "false",
            "force": "true" if force else "false",
        }
        response = self.client.request("GET", f"{DA_API}/reindex", params=params)
        status = response.text.strip()
        logger.info(f"Reindexação: {status}")
        return status
