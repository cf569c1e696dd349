"""
Alvos de análise: tabelas (db.schema.tabela.coluna) e arquivos
(host:caminho:arquivo:campo)
"""

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class TableTarget:
    """Tabela (ou '*' para todas) de um schema de banco de dados"""
    datasource: str
    schema: str
    table: str = "*"
    column: str = "*"

    @property
    def table_name(self) -> str:
        return f"{self.datasource}.{self.schema}.{self.table}"

    @property
    def column_name(self) -> str:
        return f"{self.table_name}.{self.column}"


@dataclass(frozen=True)
class FileTarget:
    """Arquivo (ou '*' para todos) de uma pasta de um host"""
    host: str
    path: str
    file: str = "*"
    column: str = "*"

    @property
    def table_name(self) -> str:
        return f"{self.host.upper()}:{self.path}:{self.file}"

    @property
    def column_name(self) -> str:
        return f"{self.table_name}:{self.column}"


Target = Union[TableTarget, FileTarget]


def parse_target(text: str) -> Target:
    """
    Interpreta um alvo informado na linha de comando.

    Um ':' antes de qualquer '.' (ou apenas ':') indica arquivo no formato
    host:caminho:arquivo[:campo]; caso contrário, tabela no formato
    db.schema[.tabela[.coluna]]. Nomes que contenham os dois caracteres são
    ambíguos: nesse caso construa TableTarget/FileTarget diretamente.

    Raises:
        ValueError: Se o texto não corresponder a nenhum dos formatos
    """
    text = text.strip()
    colon = text.find(":")
    dot = text.find(".")
    if colon >= 0 and (dot < 0 or colon < dot):
        parts = text.split(":")
        if len(parts) < 3:
            raise ValueError(f"Alvo de arquivo inválido (host:caminho:arquivo[:campo]): {text!r}")
        if len(parts) == 3:
            return FileTarget(parts[0], parts[1], parts[2])
        return FileTarget(parts[0], ":".join(parts[1:-2]), parts[-2], parts[-1])

    parts = text.split(".")
    if len(parts) < 2 or len(parts) > 4 or not all(parts):
        raise ValueError(f"Alvo de tabela inválido (db.schema[.tabela[.coluna]]): {text!r}")
    return TableTarget(*parts)
