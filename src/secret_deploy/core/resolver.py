# src/secret_deploy/core/resolver.py
"""
Contrato do Secret Resolver (capacidade externa injetada no engine).

O engine não conhece o protocolo nem a autenticação do vault: ele recebe
um objeto que satisfaz `SecretResolver` e chama `resolve(reference)`.

Falhas esperadas (ver `core.exceptions`):
    - SecretNotFoundError   → terminal, sem retry
    - AuthDeniedError       → terminal, sem retry
    - VaultUnavailableError → transitória, retry em intervalo fixo

Regras:
    - Bytes resolvidos nunca são registrados em log nem persistidos aqui
    - Retry é limitado por `max_retries` (tentativas adicionais)
    - A espera entre tentativas é interrompível pelo evento de abort da run
"""

from __future__ import annotations

import threading
from typing import Callable, Optional, Protocol, runtime_checkable

from .exceptions import VaultUnavailableError


@runtime_checkable
class SecretResolver(Protocol):
    """Capacidade mínima de resolução: referência do vault → bytes."""

    def resolve(self, reference: str) -> bytes:
        """Retorna o conteúdo do secret ou levanta uma ResolutionError tipada."""
        ...


RetryCallback = Callable[[int, VaultUnavailableError], None]


def resolve_with_retry(
    resolver: SecretResolver,
    reference: str,
    *,
    max_retries: int,
    interval: float,
    abort: Optional[threading.Event] = None,
    on_retry: Optional[RetryCallback] = None,
) -> bytes:
    """
    Resolve `reference` aplicando a política de retry em intervalo fixo.

    Args:
        resolver: Implementação de `SecretResolver`.
        reference: Localizador do secret no vault.
        max_retries: Número máximo de tentativas adicionais após a primeira.
        interval: Intervalo fixo (segundos) entre tentativas.
        abort: Evento que, quando sinalizado, interrompe a espera entre tentativas.
        on_retry: Callback chamado antes de cada nova tentativa (tentativa, erro).

    Returns:
        bytes: Conteúdo resolvido.

    Raises:
        SecretNotFoundError / AuthDeniedError: Imediatamente, sem retry.
        VaultUnavailableError: Quando as tentativas se esgotam ou a run é abortada.
    """
    abort = abort or threading.Event()
    attempt = 0

    while True:
        try:
            value = resolver.resolve(reference)
        except VaultUnavailableError as e:
            if attempt >= max_retries:
                raise VaultUnavailableError(
                    f"Vault indisponível após {attempt + 1} tentativa(s): {e.message}",
                    details={**e.details, "reference": reference, "attempts": attempt + 1},
                    hint=e.hint or "Verifique conectividade com o vault ou aumente engine.max_retries",
                ) from e

            attempt += 1
            if on_retry is not None:
                on_retry(attempt, e)

            if abort.wait(interval):
                raise VaultUnavailableError(
                    f"Retry interrompido pelo encerramento da run: {e.message}",
                    details={**e.details, "reference": reference, "attempts": attempt, "interrupted": True},
                ) from e
            continue

        if isinstance(value, str):
            value = value.encode("utf-8")
        if not isinstance(value, (bytes, bytearray)):
            raise TypeError(
                f"SecretResolver.resolve deve retornar bytes, recebido: {type(value).__name__}"
            )
        return bytes(value)
