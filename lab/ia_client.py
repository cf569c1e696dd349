#!/usr/bin/env python3
"""
Cliente Python para a API REST do Information Analyzer (IA)
Transporte autenticado para os endpoints XML do IA e JSON do catálogo (IGC)
"""

import json
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Dict, List, NamedTuple, Optional
from urllib.parse import urlparse

import requests
import urllib3
from requests.auth import HTTPBasicAuth

from resilience import RetryPolicy

# Configurar logging
logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

IA_API = "/ibm/iis/ia/api"
IGC_API = "/ibm/iis/igc-rest/v1"


class IAClientError(Exception):
    """Exceção customizada para erros de transporte do IA Client"""

    def __init__(self, message: str, status_code: Optional[int] = None,
                 headers: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.headers = headers or {}


class IAConfigurationError(IAClientError):
    """Conexão incompleta: levantada antes de qualquer chamada de rede"""
    pass


@dataclass
class IAConnection:
    """
    Dados de conexão com o servidor de serviços do Information Server.

    Attributes:
        user: Usuário para autenticação
        password: Senha do usuário
        host: Hostname da camada de serviços
        port: Porta HTTPS (ex: 9445)
        verify_ssl: Verifica certificados TLS (desligado: aceita autoassinados)
        max_connections: Máximo de requisições simultâneas
        keep_alive: Reaproveita conexões entre chamadas
        timeout: Timeout em segundos de cada requisição (None = sem limite)
        retry: Política de retentativa (padrão: nenhuma)
    """
    user: str
    password: str
    host: str
    port: str
    verify_ssl: bool = False
    max_connections: int = 1
    keep_alive: bool = False
    timeout: Optional[float] = None
    retry: RetryPolicy = field(default_factory=RetryPolicy.none)

    def validate(self) -> None:
        """
        Garante que a conexão está completa.

        Raises:
            IAConfigurationError: Se faltar usuário, senha, host ou porta
        """
        if not self.user or not self.password:
            raise IAConfigurationError(
                "Autenticação incompleta -- falta usuário ou senha (ou ambos)."
            )
        if not self.host or not self.port:
            raise IAConfigurationError(
                f"Configuração incompleta: host = {self.host!r}, port = {self.port!r}."
            )
        if self.max_connections < 1:
            raise IAConfigurationError("max_connections deve ser >= 1")

    @property
    def base_url(self) -> str:
        return f"https://{self.host}:{self.port}"

    @classmethod
    def from_domain(cls, domain: str, user: str, password: str, **kwargs: Any) -> "IAConnection":
        """
        Cria conexão a partir de 'host:porta'.

        Raises:
            IAConfigurationError: Se o domínio não tiver o formato host:porta
        """
        host, sep, port = (domain or "").rpartition(":")
        if not sep or not host or not port:
            raise IAConfigurationError(f"Domínio inválido (esperado host:porta): {domain!r}")
        return cls(user=user, password=password, host=host, port=port, **kwargs)


class IAResponse(NamedTuple):
    """Resposta bruta de uma requisição"""
    status_code: int
    text: str
    headers: Dict[str, str]


class IAClient:
    """
    Cliente para interação com o Information Analyzer via API REST.

    Toda resposta fora da faixa 2xx é fatal: o status e os headers são
    registrados em log e um IAClientError é levantado.

    Attributes:
        connection (IAConnection): Dados de conexão
        session (requests.Session): Sessão HTTP autenticada
    """

    def __init__(self, connection: IAConnection):
        """
        Inicializa o cliente IA.

        Args:
            connection: Dados de conexão (validados a cada requisição)
        """
        self.connection = connection
        self.session = requests.Session()
        self.session.auth = HTTPBasicAuth(connection.user, connection.password)
        self.session.verify = connection.verify_ssl
        if not connection.verify_ssl:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
        self._slots = threading.BoundedSemaphore(max(1, connection.max_connections))
        logger.info(f"IAClient inicializado para {connection.host}:{connection.port}")

    @property
    def url(self) -> str:
        return self.connection.base_url

    def close(self) -> None:
        """Fecha a sessão HTTP."""
        self.session.close()

    def _handle_response(self, response: requests.Response) -> IAResponse:
        """
        Valida o status HTTP da resposta.

        Raises:
            IAClientError: Em caso de status fora da faixa 2xx
        """
        headers = dict(response.headers)
        if not 200 <= response.status_code < 300:
            error_msg = f"Requisição sem sucesso {response.status_code}"
            logger.error(error_msg)
            logger.error(f"headers: {headers}")
            raise IAClientError(error_msg, status_code=response.status_code, headers=headers)
        return IAResponse(response.status_code, response.text, headers)

    def _send(self, method: str, path: str, data: Optional[bytes],
              headers: Dict[str, str], params: Optional[Dict[str, Any]]) -> IAResponse:
        with self._slots:
            try:
                response = self.session.request(
                    method,
                    f"{self.url}{path}",
                    data=data,
                    headers=headers,
                    params=params,
                    timeout=self.connection.timeout,
                )
            except requests.exceptions.Timeout as e:
                error_msg = f"Timeout na requisição {method} {path}"
                logger.error(error_msg)
                raise IAClientError(error_msg) from e
            except requests.exceptions.RequestException as e:
                error_msg = f"Erro de conexão com {self.url}: {e}"
                logger.error(error_msg)
                raise IAClientError(error_msg) from e
        return self._handle_response(response)

    def request(self, method: str, path: str, body: Any = None,
                content_type: str = "text/xml",
                params: Optional[Dict[str, Any]] = None) -> IAResponse:
        """
        Executa uma requisição contra a API REST.

        Args:
            method: Um de GET, PUT, POST, DELETE
            path: Caminho do endpoint (ex: /ibm/iis/ia/api/projects)
            body: Corpo opcional (dict/list serializados quando o tipo é JSON)
            content_type: Tipo do corpo ('text/xml' ou 'application/json')
            params: Parâmetros de query string

        Returns:
            IAResponse com status, texto e headers

        Raises:
            IAConfigurationError: Se a conexão estiver incompleta
            IAClientError: Em caso de status não-2xx ou falha de conexão
        """
        self.connection.validate()

        headers: Dict[str, str] = {}
        data = None
        if body is not None:
            if content_type == "application/json" and not isinstance(body, (str, bytes)):
                body = json.dumps(body)
            data = body.encode("utf-8") if isinstance(body, str) else body
            headers["Content-Type"] = content_type
            headers["Content-Length"] = str(len(data))
        if not self.connection.keep_alive:
            headers["Connection"] = "close"

        return self.connection.retry.call(
            lambda: self._send(method, path, data, headers, params),
            operation_name=f"{method} {path}",
            retry_on=(IAClientError,),
        )

    # --- Catálogo (IGC) ---------------------------------------------------

    def search(self, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        """
        Executa uma consulta no catálogo e devolve todos os itens.

        Args:
            query: Objeto de consulta {pageSize, properties, types, where}

        Returns:
            Lista de itens de todas as páginas
        """
        response = self.request("POST", f"{IGC_API}/search", query,
                                content_type="application/json")
        result = json.loads(response.text or "{}")
        items = list(result.get("items", []))
        next_url = (result.get("paging") or {}).get("next")
        while next_url:
            parsed = urlparse(next_url)
            path = parsed.path + (f"?{parsed.query}" if parsed.query else "")
            page = json.loads(self.request("GET", path).text or "{}")
            items.extend(page.get("items", []))
            next_url = (page.get("paging") or {}).get("next")
        logger.info(f"Busca por {query.get('types')}: {len(items)} itens encontrados")
        return items

    def create_asset(self, asset: Dict[str, Any]) -> str:
        """
        Cria um ativo no catálogo.

        Returns:
            RID do ativo criado
        """
        response = self.request("POST", f"{IGC_API}/assets", asset,
                                content_type="application/json")
        location = response.headers.get("Location") or response.headers.get("location")
        rid = location.rstrip("/").rsplit("/", 1)[-1] if location else response.text.strip()
        logger.info(f"Ativo criado: {asset.get('name')} (RID: {rid})")
        return rid

    def update_asset(self, rid: str, changes: Dict[str, Any]) -> str:
        """Atualiza um ativo existente do catálogo."""
        response = self.request("PUT", f"{IGC_API}/assets/{rid}", changes,
                                content_type="application/json")
        logger.info(f"Ativo atualizado: RID {rid}")
        return response.text

    # --- Information Analyzer ---------------------------------------------

    def get_project_list(self) -> str:
        """Lista os projetos do IA (XML)."""
        return self.request("GET", f"{IA_API}/projects").text

    def create_project(self, project_xml: str) -> str:
        """Cria um projeto a partir da definição XML."""
        return self.request("POST", f"{IA_API}/create", project_xml).text

    def update_project(self, project_xml: str) -> str:
        """Atualiza um projeto existente a partir da definição XML."""
        return self.request("POST", f"{IA_API}/update", project_xml).text

    def get_project(self, project_name: str) -> str:
        """Obtém a definição XML completa de um projeto."""
        return self.request("GET", f"{IA_API}/project",
                            params={"projectName": project_name}).text

    def execute_tasks(self, project_xml: str) -> str:
        """Submete as tarefas do documento para execução."""
        return self.request("POST", f"{IA_API}/executeTasks", project_xml).text

    def publish_results(self, project_xml: str) -> str:
        """Publica resultados de análise."""
        return self.request("POST", f"{IA_API}/publishResults", project_xml).text

    def get_analysis_status(self, execution_id: str) -> str:
        """Obtém o status (XML) de uma execução agendada."""
        return self.request("GET", f"{IA_API}/analysisStatus",
                            params={"scheduleID": execution_id}).text

    def get_column_analysis_results(self, project_name: str, column_name: str) -> str:
        """
        Obtém os resultados da análise de colunas (XML).

        Args:
            project_name: Nome do projeto
            column_name: Coluna(s) no formato db.schema.tabela.coluna ou
                HOST:caminho:arquivo:campo ('*' aceito)
        """
        return self.request("GET", f"{IA_API}/columnAnalysis/results",
                            params={"projectName": project_name,
                                    "columnName": column_name}).text

    def get_rule_execution_history(self, project_name: str, rule_name: str) -> str:
        """Histórico de execuções (XML) de uma regra de dados ou conjunto de regras."""
        return self.request("GET", f"{IA_API}/executableRule/executionHistory",
                            params={"projectName": project_name,
                                    "ruleName": rule_name}).text

    def get_rule_output_table(self, project_name: str, rule_name: str,
                              execution_id: Optional[str] = None,
                              nb_of_rows: Optional[int] = None) -> str:
        """
        Tabela de saída (XML) de uma execução de regra.

        Args:
            project_name: Nome do projeto
            rule_name: Nome da regra de dados ou conjunto de regras
            execution_id: Execução desejada (padrão: a mais recente)
            nb_of_rows: Máximo de linhas (padrão: todas)
        """
        params: Dict[str, Any] = {"projectName": project_name, "ruleName": rule_name}
        if execution_id is not None:
            params["executionID"] = execution_id
        if nb_of_rows is not None:
            params["nbOfRows"] = nb_of_rows
        return self.request("GET", f"{IA_API}/executableRule/outputTable", params=params).text
