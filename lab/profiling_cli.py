#!/usr/bin/env python3
"""
Utilitários de linha de comando para profiling automatizado
Atualiza o projeto base, executa análises de colunas e publica resultados
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

import typer
from rich.progress import BarColumn, Progress, TextColumn

from asset_discovery import AssetDiscovery
from ia_client import IAClient, IAClientError
from ia_config import (DEFAULT_POLL_INTERVAL, DEFAULT_PROJECT_DESCRIPTION,
                       DEFAULT_PROJECT_NAME, connection_from_config)
from ignore_list import DEFAULT_IGNORE_LABEL, IgnoreListResolver
from project_document import parse_project_names
from project_publisher import ProjectPublisher, ProjectPublisherError
from project_report import ProjectReport, ProjectReportError
from rule_results import RuleResults, RuleResultsError
from targets import Target, parse_target
from task_runner import TaskRunner
from thin_client import ThinClientAPI

logger = logging.getLogger(__name__)

app = typer.Typer(
    name="ia-profiling",
    help="Automação de profiling via API REST do Information Analyzer",
    no_args_is_help=True,
)


class GlobalState:
    domain: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    verify_ssl: Optional[bool] = None
    max_connections: Optional[int] = None
    retries: Optional[int] = None


state = GlobalState()


@app.callback()
def main(
    domain: Optional[str] = typer.Option(
        None, "--domain", "-d", envvar="DS_DOMAIN",
        help="Host e porta da API REST (host:porta)"
    ),
    user: Optional[str] = typer.Option(
        None, "--deployment-user", "-u", envvar="DS_USER",
        help="Usuário da API REST"
    ),
    password: Optional[str] = typer.Option(
        None, "--deployment-user-password", "-p", envvar="DS_PASSWORD",
        help="Senha da API REST"
    ),
    verify_ssl: Optional[bool] = typer.Option(
        None, "--verify-ssl/--no-verify-ssl",
        help="Verifica o certificado TLS do servidor"
    ),
    max_connections: Optional[int] = typer.Option(
        None, "--max-connections",
        help="Máximo de requisições simultâneas"
    ),
    retries: Optional[int] = typer.Option(
        None, "--retries",
        help="Tentativas por requisição (1 = sem retentativa)"
    ),
) -> None:
    """Automação de profiling via API REST do Information Analyzer."""
    state.domain = domain
    state.user = user
    state.password = password
    state.verify_ssl = verify_ssl
    state.max_connections = max_connections
    state.retries = retries


def _build_client() -> IAClient:
    connection = connection_from_config(
        domain=state.domain,
        user=state.user,
        password=state.password,
        verify_ssl=state.verify_ssl,
        max_connections=state.max_connections,
        retries=state.retries,
    )
    connection.validate()
    return IAClient(connection)


def _fail(error: Exception) -> None:
    typer.echo(f"❌ Erro: {error}", err=True)
    raise typer.Exit(code=1)


@app.command("update-project")
def update_project(
    name: str = typer.Option(DEFAULT_PROJECT_NAME, "--name", "-n", help="Nome do projeto"),
    desc: str = typer.Option(DEFAULT_PROJECT_DESCRIPTION, "--desc", "-x", help="Descrição do projeto"),
    time: Optional[float] = typer.Option(
        None, "--time", "-t",
        help="Considera apenas ativos modificados nas últimas T horas"
    ),
    ignore_label: str = typer.Option(DEFAULT_IGNORE_LABEL, "--ignore-label", help="Rótulo da lista de ignorados"),
    add_iadb: bool = typer.Option(True, "--add-iadb/--no-add-iadb",
                                  help="Inclui o banco de análise na lista de ignorados"),
    iadb_name: str = typer.Option("IADB", "--iadb-name", help="Nome do banco de análise"),
    workers: int = typer.Option(4, "--workers", help="Ramos consultados em paralelo"),
) -> None:
    """Cria ou atualiza o projeto base com os ativos do catálogo."""
    try:
        client = _build_client()
        resolver = IgnoreListResolver(client, ignore_label)
        if add_iadb:
            resolver.add_iadb_to_ignore_list(iadb_name)
        modified_since = datetime.now() - timedelta(hours=time) if time is not None else None
        publisher = ProjectPublisher(client, ThinClientAPI(client),
                                     AssetDiscovery(client, resolver, max_workers=workers))
        results = publisher.create_or_update_project(name, desc, modified_since)
    except (IAClientError, ProjectPublisherError) as e:
        _fail(e)
        return

    typer.echo(f"  status: {results['action']}")
    typer.echo(f"  tabelas: {results['tables_added']}  arquivos: {results['files_added']}")
    if results["errors"]:
        for err in results["errors"]:
            typer.echo(f"  ⚠️  {err['step']}: {err['error']}", err=True)
        raise typer.Exit(code=1)


def _analyze_and_publish(client: IAClient, runner: TaskRunner, name: str, targets: List[Target],
                         interval: float, data_classes: bool, publish: bool, reindex: bool) -> None:
    typer.echo(f"Iniciando análise de colunas para {len(targets)} alvos...")
    execution_ids = runner.submit_column_analysis(name, targets, analyze_data_classes=data_classes)

    failed = []
    with Progress(TextColumn("  analisando"), BarColumn(), TextColumn("{task.percentage:>3.0f}%  ({task.description})")) as progress:
        for execution_id in execution_ids:
            task = progress.add_task(execution_id, total=100)
            record = runner.wait_for_completion(
                execution_id, interval=interval,
                on_progress=lambda r, task=task: progress.update(task, completed=r.progress or 0),
            )
            if record.status != "successful":
                failed.append((execution_id, record))

    if failed:
        for execution_id, record in failed:
            typer.echo(f"  problema ao concluir {execution_id}: {record.status} {record.error or ''}", err=True)
        raise typer.Exit(code=1)

    if publish:
        typer.echo("Publicando resultados...")
        runner.publish_results(name, targets)
    if reindex:
        typer.echo("Reindexando o Solr para o thin client...")
        typer.echo(f"  status: {ThinClientAPI(client).reindex()}")


@app.command("run-analysis")
def run_analysis(
    targets: Optional[List[str]] = typer.Argument(
        None, help="Alvos db.schema.tabela.coluna ou host:caminho:arquivo:campo (padrão: todo o projeto)"
    ),
    name: str = typer.Option(DEFAULT_PROJECT_NAME, "--name", "-n", help="Nome do projeto"),
    interval: float = typer.Option(DEFAULT_POLL_INTERVAL, "--interval", help="Segundos entre consultas de status"),
    data_classes: bool = typer.Option(True, "--data-classes/--no-data-classes",
                                      help="Analisa classes de dados"),
    publish: bool = typer.Option(True, "--publish/--no-publish", help="Publica os resultados ao final"),
    reindex: bool = typer.Option(True, "--reindex/--no-reindex", help="Reindexa o thin client ao final"),
) -> None:
    """Executa a análise de colunas e aguarda sua conclusão."""
    try:
        parsed = [parse_target(t) for t in targets or []]
        client = _build_client()
        runner = TaskRunner(client)
        if not parsed:
            parsed = runner.get_project_targets(name)
        _analyze_and_publish(client, runner, name, parsed, interval, data_classes, publish, reindex)
    except (IAClientError, ValueError) as e:
        _fail(e)


@app.command("refresh-analysis")
def refresh_analysis(
    name: str = typer.Option(DEFAULT_PROJECT_NAME, "--name", "-n", help="Nome do projeto"),
    time: Optional[float] = typer.Option(
        None, "--time", "-t",
        help="Reanalisa fontes sem resultados nas últimas T horas (padrão: todas)"
    ),
    interval: float = typer.Option(DEFAULT_POLL_INTERVAL, "--interval", help="Segundos entre consultas de status"),
    data_classes: bool = typer.Option(True, "--data-classes/--no-data-classes",
                                      help="Analisa classes de dados"),
    publish: bool = typer.Option(True, "--publish/--no-publish", help="Publica os resultados ao final"),
    reindex: bool = typer.Option(True, "--reindex/--no-reindex", help="Reindexa o thin client ao final"),
) -> None:
    """Reexecuta a análise de colunas das fontes com resultados desatualizados."""
    stale_before = datetime.now() - timedelta(hours=time) if time is not None else datetime.now()
    try:
        client = _build_client()
        runner = TaskRunner(client)
        typer.echo("Determinando análises desatualizadas...")
        stale = runner.get_stale_sources(name, stale_before)
        if not stale:
            typer.echo("  nenhuma fonte desatualizada")
            return
        _analyze_and_publish(client, runner, name, stale, interval, data_classes, publish, reindex)
    except (IAClientError, ValueError) as e:
        _fail(e)


@app.command("rule-results")
def rule_results(
    project: str = typer.Option(..., "--project", "-i", help="Nome do projeto"),
    name: str = typer.Option(..., "--name", "-n", help="Nome da regra de dados ou conjunto de regras"),
    rows: Optional[int] = typer.Option(None, "--rows", help="Máximo de registros com falha"),
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Exporta os registros para este CSV"),
) -> None:
    """Mostra a última execução de uma regra e seus registros com falha."""
    try:
        results = RuleResults(_build_client(), project, name)
        latest = results.get_execution_results(latest_only=True)
        failed = results.get_failed_records_from_last_run(nb_of_rows=rows)
    except (IAClientError, RuleResultsError) as e:
        _fail(e)
        return

    if latest.empty:
        typer.echo(f"Nenhuma execução encontrada para '{project}::{name}'")
        return
    stat = latest.iloc[0]
    typer.echo(f"  execução: {stat['execution_id']}  status: {stat['status']}")
    typer.echo(f"  início: {stat['start']}  fim: {stat['end']}")
    typer.echo(f"  falhas: {stat['num_failed']} de {stat['num_total']}")
    if failed.empty:
        typer.echo("  nenhum registro com falha")
        return
    typer.echo(failed.to_string(index=False))
    if output:
        typer.echo(f"  - csv: {results.export_csv(failed, output)}")


@app.command("status")
def status(execution_id: str = typer.Argument(..., help="ID da execução")) -> None:
    """Mostra o status de uma execução."""
    try:
        record = TaskRunner(_build_client()).get_status(execution_id)
    except IAClientError as e:
        _fail(e)
        return
    typer.echo(f"  execução: {record.execution_id}")
    typer.echo(f"  status: {record.status}")
    typer.echo(f"  progresso: {record.progress}")
    typer.echo(f"  tempo: {record.execution_time}")
    if record.error:
        typer.echo(f"  ⚠️  {record.error}", err=True)
        raise typer.Exit(code=1)


@app.command("publish")
def publish_results(
    targets: List[str] = typer.Argument(..., help="Alvos db.schema.tabela ou host:caminho:arquivo"),
    name: str = typer.Option(DEFAULT_PROJECT_NAME, "--name", "-n", help="Nome do projeto"),
) -> None:
    """Publica os resultados de análise dos alvos informados."""
    try:
        parsed = [parse_target(t) for t in targets]
        response = TaskRunner(_build_client()).publish_results(name, parsed)
    except (IAClientError, ValueError) as e:
        _fail(e)
        return
    typer.echo(f"  status: {response}")


@app.command("reindex")
def reindex_thin_client(
    batch_size: int = typer.Option(25, "--batch-size", max=1000),
    solr_batch_size: int = typer.Option(100, "--solr-batch-size", max=1000),
    upgrade: bool = typer.Option(False, "--upgrade/--no-upgrade"),
    force: bool = typer.Option(True, "--force/--no-force"),
) -> None:
    """Reindexa o Solr para que os resultados apareçam no thin client."""
    try:
        result = ThinClientAPI(_build_client()).reindex(batch_size, solr_batch_size, upgrade, force)
    except IAClientError as e:
        _fail(e)
        return
    typer.echo(f"  status: {result}")


@app.command("list-projects")
def list_projects() -> None:
    """Lista os projetos do Information Analyzer."""
    try:
        names = parse_project_names(_build_client().get_project_list())
    except IAClientError as e:
        _fail(e)
        return
    if not names:
        typer.echo("Nenhum projeto encontrado")
        return
    for project_name in names:
        typer.echo(project_name)


@app.command("report")
def report(
    name: str = typer.Option(DEFAULT_PROJECT_NAME, "--name", "-n", help="Nome do projeto"),
    output: str = typer.Option("project_report", "--output", "-o", help="Prefixo dos arquivos gerados"),
) -> None:
    """Gera relatório (JSON e CSV) das fontes e colunas do projeto."""
    try:
        project_report = ProjectReport(_build_client(), name)
        files = project_report.generate_report(output)
        summary = project_report.summary()
    except (IAClientError, ProjectReportError) as e:
        _fail(e)
        return

    typer.echo(f"📋 Tabelas: {summary['total_tables']}")
    typer.echo(f"📁 Arquivos: {summary['total_files']}")
    typer.echo(f"📝 Colunas: {summary['total_columns']}")
    for file_type, file_path in files.items():
        typer.echo(f"  - {file_type}: {file_path}")


if __name__ == "__main__":
    app()
