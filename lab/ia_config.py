"""
Configuração de acesso ao Information Analyzer
Valores lidos das variáveis de ambiente DS_* (sobrescritos pela linha de comando)
"""

import os
from typing import Any, Dict, Optional

from ia_client import IAConnection
from resilience import RetryPolicy

DEFAULT_PROJECT_NAME = "Automated Profiling"
DEFAULT_PROJECT_DESCRIPTION = "A base project for the automation of profiling"
DEFAULT_POLL_INTERVAL = 10.0


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_config() -> Dict[str, Any]:
    timeout = os.environ.get("DS_TIMEOUT")
    return {
        "domain": os.environ.get("DS_DOMAIN", ""),
        "user": os.environ.get("DS_USER", ""),
        "password": os.environ.get("DS_PASSWORD", ""),
        "verify_ssl": _env_bool("DS_VERIFY_SSL", False),
        "max_connections": int(os.environ.get("DS_MAX_CONNECTIONS", "1")),
        "keep_alive": _env_bool("DS_KEEP_ALIVE", False),
        "timeout": float(timeout) if timeout else None,
        "retries": int(os.environ.get("DS_RETRIES", "1")),
    }


def connection_from_config(config: Optional[Dict[str, Any]] = None, **overrides: Any) -> IAConnection:
    """
    Monta a IAConnection a partir da configuração.

    Args:
        config: Configuração base (padrão: variáveis de ambiente atuais)
        **overrides: Valores que substituem os da configuração (None é ignorado)

    Raises:
        IAConfigurationError: Se o domínio não for host:porta
    """
    values = dict(config if config is not None else load_config())
    values.update({k: v for k, v in overrides.items() if v is not None})
    retries = int(values.get("retries", 1))
    retry = RetryPolicy.none() if retries <= 1 else RetryPolicy(max_attempts=retries)
    return IAConnection.from_domain(
        values["domain"],
        values["user"],
        values["password"],
        verify_ssl=values["verify_ssl"],
        max_connections=values["max_connections"],
        keep_alive=values["keep_alive"],
        timeout=values["timeout"],
        retry=retry,
    )
