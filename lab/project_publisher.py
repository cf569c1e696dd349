#!/usr/bin/env python3
"""
Publicador de projetos de profiling automatizado
Cria ou atualiza o projeto do IA com tudo o que foi descoberto no catálogo
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from asset_discovery import AssetDiscovery, AssetDiscoveryError, DATABASE_TREE, FILE_TREE
from ia_client import IAClient, IAClientError
from project_document import ProjectDocument, parse_project_names
from thin_client import ThinClientAPI

logger = logging.getLogger(__name__)


class ProjectPublisherError(Exception):
    """Exceção customizada para erros do Project Publisher"""
    pass


class ProjectPublisher:
    """
    Orquestra descoberta, criação/atualização do projeto e registro de
    arquivos.

    A API pública de definição de projetos não anexa arquivos da mesma forma
    que tabelas; por isso os arquivos são registrados em uma segunda etapa,
    pelo endpoint interno, depois que o projeto existe.

    Attributes:
        client (IAClient): Cliente da API REST
        thin_client (ThinClientAPI): Endpoints internos
        discovery (AssetDiscovery): Descoberta de ativos
    """

    def __init__(self, client: IAClient, thin_client: ThinClientAPI,
                 discovery: AssetDiscovery):
        self.client = client
        self.thin_client = thin_client
        self.discovery = discovery
        logger.info("ProjectPublisher inicializado")

    def project_exists(self, name: str) -> bool:
        return name in parse_project_names(self.client.get_project_list())

    def _register_files(self, name: str, description: str, discovered: Any,
                        errors: List[Dict[str, str]]) -> int:
        project_rid = self.thin_client.get_workspace_rid(name, description)
        if project_rid is None:
            errors.append({"step": "project_rid", "error": f"RID do projeto '{name}' não encontrado"})
            return 0

        registered = 0
        for host, files in discovered.files_by_host().items():
            connector_rid = self.thin_client.get_local_file_connector_rid(host)
            if connector_rid is None:
                errors.append({"step": "connector", "error": f"Conector não encontrado para '{host}'"})
                continue
            self.thin_client.register_files(connector_rid, project_rid, files)
            registered += len(files)
        return registered

    def create_or_update_project(self, name: str, description: str,
                                 modified_since: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Cria (ou atualiza) o projeto com todos os ativos descobertos.

        Este é o método principal que:
        1. Verifica se o projeto já existe
        2. Descobre bancos, schemas, tabelas e arquivos no catálogo
        3. Envia a definição do projeto (create ou update)
        4. Registra os arquivos descobertos no projeto

        Args:
            name: Nome do projeto
            description: Descrição do projeto
            modified_since: Considera apenas ativos modificados após esta data

        Returns:
            Dict com estatísticas e erros lógicos encontrados

        Raises:
            ProjectPublisherError: Em caso de erro de transporte ou travessia
        """
        try:
            logger.info("=" * 60)
            logger.info(f"🚀 Atualizando projeto '{name}'")
            logger.info("=" * 60)

            exists = self.project_exists(name)
            action = "update" if exists else "create"
            logger.info(f"Projeto {'já existe' if exists else 'não existe'}: usando '{action}'")

            document = ProjectDocument(name)
            document.set_description(description)
            discovered = self.discovery.discover(document, modified_since)

            errors: List[Dict[str, str]] = []
            response = None
            if document.is_empty() and exists:
                logger.info("Nenhum ativo novo ou modificado: projeto mantido como está")
                action = "none"
            else:
                project_xml = document.serialize()
                if exists:
                    response = self.client.update_project(project_xml)
                else:
                    response = self.client.create_project(project_xml)
                logger.info(f"✅ Projeto '{name}' enviado ({action})")

            files_registered = 0
            if discovered.files:
                files_registered = self._register_files(name, description, discovered, errors)

            results = {
                "project_name": name,
                "action": action,
                "tables_added": len(discovered.tables),
                "files_added": len(discovered.files),
                "files_registered": files_registered,
                "schemas": discovered.state.counts(DATABASE_TREE),
                "files": discovered.state.counts(FILE_TREE),
                "response": response,
                "errors": errors,
            }

            logger.info("\n" + "=" * 60)
            logger.info("✅ ATUALIZAÇÃO CONCLUÍDA")
            logger.info(f"Tabelas: {results['tables_added']}")
            logger.info(f"Arquivos: {results['files_added']} ({files_registered} registrados)")
            if errors:
                logger.warning(f"Erros encontrados: {len(errors)}")
            logger.info("=" * 60)
            return results

        except (IAClientError, AssetDiscoveryError) as e:
            error_msg = f"Erro ao atualizar o projeto '{name}': {e}"
            logger.error(error_msg)
            raise ProjectPublisherError(error_msg) from e
