#!/usr/bin/env python3
"""
Resultados de regras de dados do Information Analyzer
Estatísticas das execuções e registros com falha da última execução
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from ia_client import IAClient, IAClientError
from project_document import iter_elements, parse_iso_datetime

logger = logging.getLogger(__name__)

EXECUTION_COLUMNS = ["execution_id", "start", "end", "status",
                     "num_passed", "num_failed", "num_total"]


class RuleResultsError(Exception):
    """Exceção customizada para erros na leitura de resultados de regras"""
    pass


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _to_int(value: Optional[str]) -> Optional[int]:
    return int(value) if value not in (None, "") else None


def _to_datetime(value: Optional[str]):
    return parse_iso_datetime(value) if value else None


def parse_rule_executions(xml_text: str) -> List[Dict[str, Any]]:
    """Execuções (RuleExecutionResult) do histórico de uma regra."""
    return [
        {
            "execution_id": e.get("id"),
            "start": _to_datetime(e.get("startTime")),
            "end": _to_datetime(e.get("endTime")),
            "status": e.get("status"),
            "num_passed": _to_int(e.get("nbPassed")),
            "num_failed": _to_int(e.get("nbFailed")),
            "num_total": _to_int(e.get("nbOfRecords")),
        }
        for e in iter_elements(xml_text, "RuleExecutionResult")
    ]


def parse_output_table(xml_text: str) -> Tuple[List[str], List[List[str]]]:
    """
    Lê a tabela de saída de uma execução.

    Returns:
        (nomes das colunas, linhas)
    """
    columns: List[str] = []
    for e_columns in iter_elements(xml_text, "Columns"):
        columns.extend(c.get("name") for c in e_columns if _local_name(c.tag) == "Column")
    rows = [
        [v.text or "" for v in e_row if _local_name(v.tag) == "Value"]
        for e_row in iter_elements(xml_text, "Row")
    ]
    return columns, rows


class RuleResults:
    """
    Consulta os resultados de uma regra de dados (ou conjunto de regras).

    Attributes:
        client (IAClient): Cliente da API REST
        project_name (str): Nome do projeto
        rule_name (str): Nome da regra
    """

    def __init__(self, client: IAClient, project_name: str, rule_name: str):
        self.client = client
        self.project_name = project_name
        self.rule_name = rule_name

    @property
    def rule_id(self) -> str:
        return f"{self.project_name}::{self.rule_name}"

    def get_execution_results(self, latest_only: bool = True) -> pd.DataFrame:
        """
        Estatísticas das execuções da regra, da mais recente para a mais antiga.

        Args:
            latest_only: Retorna apenas a última execução

        Raises:
            RuleResultsError: Em caso de erro na requisição
        """
        try:
            xml_text = self.client.get_rule_execution_history(self.project_name, self.rule_name)
        except IAClientError as e:
            error_msg = f"Erro ao obter o histórico da regra '{self.rule_id}': {e}"
            logger.error(error_msg)
            raise RuleResultsError(error_msg) from e

        df = pd.DataFrame(parse_rule_executions(xml_text), columns=EXECUTION_COLUMNS)
        df = df.sort_values("start", ascending=False, na_position="last").reset_index(drop=True)
        if latest_only:
            df = df.head(1)
        logger.info(f"Regra '{self.rule_id}': {len(df)} execuções")
        return df

    def get_failed_records_from_last_run(self, nb_of_rows: Optional[int] = None) -> pd.DataFrame:
        """
        Registros com falha da última execução da regra.

        Args:
            nb_of_rows: Máximo de linhas (padrão: todas)

        Returns:
            DataFrame com as colunas da tabela de saída (vazio se a regra
            nunca foi executada)

        Raises:
            RuleResultsError: Em caso de erro na requisição
        """
        latest = self.get_execution_results(latest_only=True)
        if latest.empty:
            logger.warning(f"Regra '{self.rule_id}' sem execuções registradas")
            return pd.DataFrame()

        execution_id = latest.iloc[0]["execution_id"]
        try:
            xml_text = self.client.get_rule_output_table(
                self.project_name, self.rule_name, execution_id=execution_id, nb_of_rows=nb_of_rows
            )
        except IAClientError as e:
            error_msg = f"Erro ao obter a tabela de saída da regra '{self.rule_id}': {e}"
            logger.error(error_msg)
            raise RuleResultsError(error_msg) from e

        columns, rows = parse_output_table(xml_text)
        df = pd.DataFrame(rows, columns=columns)
        logger.info(f"Regra '{self.rule_id}': {len(df)} registros com falha na execução {execution_id}")
        return df

    def export_csv(self, df: pd.DataFrame, output_path: str) -> str:
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(output_file, index=False)
        logger.info(f"📊 Registros exportados: {output_file}")
        return str(output_file)
