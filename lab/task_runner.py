#!/usr/bin/env python3
"""
Execução e acompanhamento de tarefas do Information Analyzer
Análise de colunas, publicação de resultados e consulta de status
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Sequence

from ia_client import IAClient
from project_document import (ColumnAnalysis, ProjectDocument, PublishResults,
                              parse_column_analysis_dates, parse_execution_ids,
                              parse_project_sources, parse_task_executions)
from targets import FileTarget, TableTarget, Target, parse_target

logger = logging.getLogger(__name__)

__all__ = [
    "ExecutionRecord",
    "FileTarget",
    "TableTarget",
    "TaskRunner",
    "TERMINAL_STATUSES",
    "parse_target",
]

TERMINAL_STATUSES = ("successful", "failed", "cancelled")


@dataclass
class ExecutionRecord:
    """
    Situação de uma execução agendada.

    O status é mantido exatamente como devolvido pela API
    (running, successful, failed, cancelled).
    """
    execution_id: Optional[str] = None
    execution_time: Optional[str] = None
    progress: Optional[int] = None
    status: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


def _to_int(value: Optional[str]) -> Optional[int]:
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None


class TaskRunner:
    """
    Submete análises de colunas e publicações e acompanha sua execução.

    Attributes:
        client (IAClient): Cliente da API REST
    """

    def __init__(self, client: IAClient):
        self.client = client

    def submit_column_analysis(self, project_name: str, targets: Sequence[Target], *,
                               analyze_data_classes: bool,
                               analyze_column_properties: bool = True,
                               capture_results_type: str = "CAPTURE_ALL",
                               min_capture_size: int = 5000,
                               max_capture_size: int = 10000) -> List[str]:
        """
        Executa a análise de colunas sobre os alvos informados.

        Args:
            project_name: Nome do projeto do IA
            targets: Tabelas e/ou arquivos a analisar
            analyze_data_classes: Obrigatório; analisa classes de dados

        Returns:
            IDs de execução agendados
        """
        if not targets:
            raise ValueError("Nenhum alvo informado para a análise de colunas")

        document = ProjectDocument(project_name)
        analysis = ColumnAnalysis(
            document,
            analyze_column_properties=analyze_column_properties,
            capture_results_type=capture_results_type,
            min_capture_size=min_capture_size,
            max_capture_size=max_capture_size,
            analyze_data_classes=analyze_data_classes,
        )
        for target in targets:
            analysis.add_target(target)

        response = self.client.execute_tasks(document.serialize())
        execution_ids = parse_execution_ids(response)
        logger.info(f"Análise de colunas agendada para {len(targets)} alvos: {execution_ids}")
        return execution_ids

    def publish_results(self, project_name: str, targets: Sequence[Target]) -> str:
        """Publica os resultados de análise dos alvos; devolve a resposta da API."""
        if not targets:
            raise ValueError("Nenhum alvo informado para publicação")

        document = ProjectDocument(project_name)
        publish = PublishResults(document)
        for target in targets:
            publish.add_target(target)
        response = self.client.publish_results(document.serialize())
        logger.info(f"Resultados publicados para {len(targets)} alvos")
        return response

    def get_status(self, execution_id: str) -> ExecutionRecord:
        """
        Consulta o status de uma execução.

        Mais de uma execução na resposta não é erro de transporte: o registro
        traz o último elemento e a mensagem em 'error'.
        """
        executions = parse_task_executions(self.client.get_analysis_status(execution_id))
        record = ExecutionRecord()
        if len(executions) > 1:
            record.error = "Mais de um resultado encontrado"
            logger.warning(f"{record.error} para a execução {execution_id}")
        elif not executions:
            record.error = f"Execução {execution_id} não encontrada"
            logger.warning(record.error)
        if executions:
            last = executions[-1]
            record.execution_id = last["executionId"]
            record.execution_time = last["executionTime"]
            record.progress = _to_int(last["progress"])
            record.status = last["status"]
        return record

    def wait_for_completion(self, execution_id: str, interval: float = 10.0,
                            on_progress: Optional[Callable[[ExecutionRecord], None]] = None,
                            max_polls: Optional[int] = None,
                            sleep: Callable[[float], None] = time.sleep) -> ExecutionRecord:
        """
        Consulta o status em intervalo fixo até um estado final.

        Args:
            execution_id: ID da execução
            interval: Segundos entre consultas
            on_progress: Chamado a cada consulta com o registro atual
            max_polls: Limite de consultas (None = sem limite)

        Returns:
            Último ExecutionRecord obtido
        """
        polls = 0
        while True:
            record = self.get_status(execution_id)
            polls += 1
            if on_progress is not None:
                on_progress(record)
            # mais de um resultado não encerra a consulta; execução inexistente sim
            if record.is_terminal or (record.error and record.status is None):
                break
            if max_polls is not None and polls >= max_polls:
                logger.warning(f"Execução {execution_id} ainda em andamento após {polls} consultas")
                break
            sleep(interval)

        if record.status == "successful":
            logger.info(f"Execução {execution_id} concluída após {record.execution_time} ms")
        elif record.is_terminal:
            logger.warning(f"Problema ao concluir a execução {execution_id}: {record.status}")
        return record

    def get_project_targets(self, project_name: str) -> List[Target]:
        """Tabelas e arquivos definidos no projeto."""
        return [target for target, _ in parse_project_sources(self.client.get_project(project_name))]

    def get_stale_sources(self, project_name: str, stale_before: datetime) -> List[Target]:
        """
        Fontes do projeto com resultados de análise anteriores a stale_before.

        Uma fonte é considerada desatualizada se qualquer coluna dela nunca
        foi analisada ou foi analisada antes da data limite.

        Args:
            project_name: Nome do projeto do IA
            stale_before: Data limite (datas com fuso são convertidas para o horário local)

        Returns:
            Tabelas e arquivos a reanalisar, na ordem do projeto
        """
        if stale_before.tzinfo is not None:
            stale_before = stale_before.astimezone().replace(tzinfo=None)

        stale: List[Target] = []
        targets = self.get_project_targets(project_name)
        for target in targets:
            results = parse_column_analysis_dates(
                self.client.get_column_analysis_results(project_name, target.column_name)
            )
            dates = [run_date for _, _, run_date in results]
            if not dates or any(d is None or d < stale_before for d in dates):
                stale.append(target)
        logger.info(f"{len(stale)} de {len(targets)} fontes com análise anterior a {stale_before.isoformat()}")
        return stale
