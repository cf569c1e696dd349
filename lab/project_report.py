#!/usr/bin/env python3
"""
Relatório de conteúdo de um projeto do Information Analyzer
Lista as tabelas, arquivos e colunas do projeto e exporta em JSON/CSV
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd

from ia_client import IAClient, IAClientError
from project_document import parse_project_sources
from targets import TableTarget

logger = logging.getLogger(__name__)

REPORT_COLUMNS = ["source_type", "datasource", "location", "name", "column"]


class ProjectReportError(Exception):
    """Exceção customizada para erros do Project Report"""
    pass


class ProjectReport:
    """
    Gerador de relatórios de um projeto do IA.

    Attributes:
        client (IAClient): Cliente da API REST
        project_name (str): Nome do projeto
        columns_df (pd.DataFrame): Colunas do projeto (após collect())
    """

    def __init__(self, client: IAClient, project_name: str):
        self.client = client
        self.project_name = project_name
        self.columns_df: Optional[pd.DataFrame] = None

    def collect(self) -> pd.DataFrame:
        """
        Lê a definição do projeto e monta uma linha por coluna.

        Returns:
            DataFrame com source_type, datasource, location, name, column

        Raises:
            ProjectReportError: Em caso de erro na requisição
        """
        try:
            sources = parse_project_sources(self.client.get_project(self.project_name))
        except IAClientError as e:
            error_msg = f"Erro ao obter o projeto '{self.project_name}': {e}"
            logger.error(error_msg)
            raise ProjectReportError(error_msg) from e

        rows = []
        for target, columns in sources:
            if isinstance(target, TableTarget):
                base = {"source_type": "table", "datasource": target.datasource,
                        "location": target.schema, "name": target.table}
            else:
                base = {"source_type": "file", "datasource": target.host,
                        "location": target.path, "name": target.file}
            for column in columns or [""]:
                rows.append({**base, "column": column})

        self.columns_df = pd.DataFrame(rows, columns=REPORT_COLUMNS)
        logger.info(f"Projeto '{self.project_name}': {len(sources)} fontes, "
                    f"{int((self.columns_df['column'] != '').sum())} colunas")
        return self.columns_df

    def summary(self) -> Dict[str, Any]:
        if self.columns_df is None:
            self.collect()
        df = self.columns_df
        sources = df.drop_duplicates(["source_type", "datasource", "location", "name"])
        per_source = df[df["column"] != ""].groupby(["datasource", "location", "name"]).size()
        return {
            "project_name": self.project_name,
            "total_tables": int((sources["source_type"] == "table").sum()),
            "total_files": int((sources["source_type"] == "file").sum()),
            "total_columns": int((df["column"] != "").sum()),
            "total_datasources": int(sources["datasource"].nunique()),
            "average_columns_per_source": round(float(per_source.mean()), 2) if len(per_source) else 0,
        }

    def export_csv(self, output_path: str = "project_report.csv") -> str:
        if self.columns_df is None:
            self.collect()
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        self.columns_df.to_csv(output_file, index=False)
        logger.info(f"📊 Relatório CSV exportado: {output_file}")
        return str(output_file)

    def export_json(self, output_path: str = "project_report.json") -> str:
        if self.columns_df is None:
            self.collect()
        output_file = Path(output_path)
        output_file.parent.mkdir(parents=True, exist_ok=True)
        report = {
            "metadata": {
                "generated_at": datetime.now().isoformat(),
                "generated_by": "ProjectReport",
                "server": self.client.url,
            },
            "summary": self.summary(),
            "columns": self.columns_df.to_dict(orient="records"),
        }
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(report, f, indent=2, ensure_ascii=False)
        logger.info(f"📄 Relatório JSON exportado: {output_file}")
        return str(output_file)

    def generate_report(self, output_prefix: str = "project_report") -> Dict[str, str]:
        """Gera o relatório nos dois formatos."""
        self.collect()
        return {
            "json": self.export_json(f"{output_prefix}.json"),
            "csv": self.export_csv(f"{output_prefix}.csv"),
        }
