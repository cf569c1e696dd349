#!/usr/bin/env python3
"""
Política de retentativa para chamadas REST do Information Analyzer
Por padrão nenhuma retentativa é feita: qualquer falha é fatal.
"""

import logging
from typing import Any, Callable, Optional, Tuple, Type

import tenacity
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)


class RetryPolicy:
    """
    Estratégia de retentativa plugável usada pelo IAClient.

    Attributes:
        max_attempts (int): Número máximo de tentativas (1 = sem retentativa)
        backoff_seconds (float): Espera base entre tentativas
        exponential (bool): Usa backoff exponencial
        jitter (bool): Adiciona variação aleatória ao backoff
    """

    def __init__(self, max_attempts: int = 3,
                 backoff_seconds: float = 1.0,
                 exponential: bool = True,
                 jitter: bool = True):
        if max_attempts < 1:
            raise ValueError("max_attempts deve ser >= 1")
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.exponential = exponential
        self.jitter = jitter

    @classmethod
    def none(cls) -> "RetryPolicy":
        """Sem retentativa - falha imediatamente."""
        return cls(max_attempts=1)

    @classmethod
    def default(cls) -> "RetryPolicy":
        """3 tentativas com backoff exponencial."""
        return cls()

    @classmethod
    def aggressive(cls) -> "RetryPolicy":
        """5 tentativas com backoff mais longo."""
        return cls(max_attempts=5, backoff_seconds=5.0)

    @property
    def enabled(self) -> bool:
        return self.max_attempts > 1

    def _wait_strategy(self) -> wait_base:
        if self.exponential:
            wait = tenacity.wait_exponential(multiplier=self.backoff_seconds,
                                             min=self.backoff_seconds)
        else:
            wait = tenacity.wait_fixed(self.backoff_seconds)
        if self.jitter:
            wait = wait + tenacity.wait_random(0, self.backoff_seconds * 0.5)
        return wait

    def call(self, operation: Callable[[], Any],
             operation_name: str = "requisição",
             retry_on: Optional[Tuple[Type[BaseException], ...]] = None) -> Any:
        """
        Executa a operação aplicando a política.

        Args:
            operation: Função sem argumentos a executar
            operation_name: Nome usado nos logs
            retry_on: Exceções que disparam nova tentativa (padrão: todas)

        Returns:
            Resultado da operação
        """
        if not self.enabled:
            return operation()

        def before_sleep(retry_state: tenacity.RetryCallState) -> None:
            exception = retry_state.outcome.exception() if retry_state.outcome else None
            logger.warning(
                "Tentativa %d/%d de %s falhou: %s. Nova tentativa em %.1fs...",
                retry_state.attempt_number,
                self.max_attempts,
                operation_name,
                exception,
                retry_state.next_action.sleep if retry_state.next_action else 0,
            )

        retrying = tenacity.Retrying(
            stop=tenacity.stop_after_attempt(self.max_attempts),
            wait=self._wait_strategy(),
            retry=tenacity.retry_if_exception_type(retry_on or (Exception,)),
            before_sleep=before_sleep,
            reraise=True,
        )
        return retrying(operation)

    def __repr__(self) -> str:
        return (f"RetryPolicy(max_attempts={self.max_attempts}, "
                f"backoff_seconds={self.backoff_seconds})")
