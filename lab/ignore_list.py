#!/usr/bin/env python3
"""
Lista de ignorados
Objetos do catálogo marcados com um rótulo reservado não entram na descoberta
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

import catalog_queries
from ia_client import IAClient
from identity import IDENTITY_PROPERTIES, identity_for_item

logger = logging.getLogger(__name__)

DEFAULT_IGNORE_LABEL = "Automated Profiling Ignore List"
DEFAULT_IGNORE_LABEL_DESCRIPTION = "Objects to exclude from automated profiling"

IGNORABLE_TYPES = (
    "host",
    "database",
    "database_schema",
    "database_table",
    "database_column",
    "data_file_folder",
    "data_file",
)


class IgnoreSet(dict):
    """Mapeamento tipo de objeto -> conjunto de identidades ignoradas"""

    def __init__(self, entries: Optional[Dict[str, Iterable[str]]] = None):
        super().__init__({t: set() for t in IGNORABLE_TYPES})
        for object_type, identities in (entries or {}).items():
            self.setdefault(object_type, set()).update(identities)

    def is_ignored(self, object_type: str, identity: str) -> bool:
        return identity in self.get(object_type, ())

    def is_folder_ignored(self, host: str, path: str) -> bool:
        """Uma pasta ignorada exclui também suas subpastas."""
        prefix = f"{host}::"
        for ignored in self.get("data_file_folder", ()):
            if not ignored.startswith(prefix):
                continue
            folder = ignored[len(prefix):]
            if path == folder or path.startswith(folder.rstrip("/") + "/"):
                return True
        return False

    def total(self) -> int:
        return sum(len(v) for v in self.values())


class IgnoreListResolver:
    """
    Resolve a lista de ignorados a partir do rótulo reservado.

    Attributes:
        client (IAClient): Cliente da API REST
        label_name (str): Nome do rótulo reservado
    """

    def __init__(self, client: IAClient, label_name: str = DEFAULT_IGNORE_LABEL):
        self.client = client
        self.label_name = label_name

    def get_ignored_identities(self) -> IgnoreSet:
        """
        Busca, numa única consulta, todos os objetos com o rótulo reservado.

        Returns:
            IgnoreSet com as identidades ignoradas de cada tipo
        """
        properties: List[str] = []
        for object_type in IGNORABLE_TYPES:
            for prop in IDENTITY_PROPERTIES[object_type]:
                if prop != "name" and prop not in properties:
                    properties.append(prop)

        query = catalog_queries.objects_with_label(
            self.label_name, IGNORABLE_TYPES, ["name"] + properties
        )
        ignored = IgnoreSet()
        for item in self.client.search(query):
            object_type = item.get("_type")
            if object_type not in IDENTITY_PROPERTIES:
                logger.debug(f"Tipo ignorado não suportado: {object_type}")
                continue
            ignored[object_type].add(identity_for_item(object_type, item))

        logger.info(f"Lista de ignorados: {ignored.total()} objetos com o rótulo '{self.label_name}'")
        return ignored

    def ensure_label_exists(self) -> str:
        """
        Busca o rótulo reservado pelo nome e o cria apenas se não existir.

        Returns:
            RID do rótulo
        """
        found = self.client.search(catalog_queries.label_by_name(self.label_name))
        if found:
            rid = found[0].get("_id")
            logger.info(f"Rótulo '{self.label_name}' já existe (RID: {rid})")
            return rid

        rid = self.client.create_asset({
            "_type": "label",
            "name": self.label_name,
            "description": DEFAULT_IGNORE_LABEL_DESCRIPTION,
        })
        logger.info(f"✅ Rótulo '{self.label_name}' criado (RID: {rid})")
        return rid

    def add_iadb_to_ignore_list(self, iadb_name: str = "IADB") -> List[str]:
        """
        Marca o banco de análise do próprio IA com o rótulo reservado.

        Args:
            iadb_name: Nome do banco de análise no catálogo

        Returns:
            RIDs dos bancos marcados (vazio se não encontrado)
        """
        label_rid = self.ensure_label_exists()
        databases = self.client.search(catalog_queries.databases_by_name(iadb_name))
        if not databases:
            logger.warning(f"Banco de análise '{iadb_name}' não encontrado no catálogo")
            return []

        labelled = []
        for database in databases:
            rid = database.get("_id")
            self.client.update_asset(rid, {"labels": {"items": [label_rid], "mode": "append"}})
            labelled.append(rid)
        logger.info(f"{len(labelled)} banco(s) '{iadb_name}' adicionados à lista de ignorados")
        return labelled
