"""
Secret Deploy — Canonical Error Structures (v1)

Este módulo define o padrão canônico de erros reportados pelo engine.
Erros fazem parte do contrato operacional do relatório de uma run e
devem ser:

- explícitos
- serializáveis
- acionáveis
- livres de conteúdo de secrets

Nenhum payload de erro carrega bytes resolvidos do vault nem stack traces.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional


# ---------------------------------------------------------------------------
# Payload canônico
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ErrorPayload:
    """
    Payload canônico de erro anexado a um `DeploymentOutcome`.

    Campos:
    - type: código estável do erro (não é texto livre)
    - message: mensagem curta, humana e objetiva
    - details: dados estruturados relevantes para diagnóstico
    - hint: ação sugerida ao operador (onde corrigir)
    - retryable: indica se a falha é transitória (útil para re-execução)
    """

    type: str
    message: str
    details: Dict[str, Any]
    hint: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Retorna representação serializável do erro."""
        return asdict(self)


# ---------------------------------------------------------------------------
# Catálogo canônico de tipos de erro (v1)
# ---------------------------------------------------------------------------

# Configuração
CONFIG_ERROR = "CONFIG_ERROR"

# Resolução no vault
SECRET_NOT_FOUND = "SECRET_NOT_FOUND"
SECRET_AUTH_DENIED = "SECRET_AUTH_DENIED"
VAULT_UNAVAILABLE = "VAULT_UNAVAILABLE"

# Filesystem
FILESYSTEM_ERROR = "FILESYSTEM_ERROR"
SYMLINK_CONFLICT = "SYMLINK_CONFLICT"
OWNERSHIP_LOOKUP_ERROR = "OWNERSHIP_LOOKUP_ERROR"

# Serviços dependentes
NOTIFY_ERROR = "NOTIFY_ERROR"

# Engine / Execução
DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"
RUN_ABORTED = "RUN_ABORTED"
ENGINE_EXECUTION_ERROR = "ENGINE_EXECUTION_ERROR"


# ---------------------------------------------------------------------------
# Helpers de fábrica
# ---------------------------------------------------------------------------

def deadline_exceeded(
    *,
    secret: str,
    deadline_seconds: Optional[float],
    hint: str = "Aumente engine.deadline_seconds ou reduza o número de secrets por run.",
) -> ErrorPayload:
    return ErrorPayload(
        type=DEADLINE_EXCEEDED,
        message="Prazo da run excedido antes do processamento do secret",
        details={"secret": secret, "deadline_seconds": deadline_seconds},
        hint=hint,
        retryable=True,
    )


def run_aborted(
    *,
    secret: str,
    cause: Optional[str] = None,
    hint: str = "Corrija a falha do secret indicado em `cause` ou habilite engine.continue_on_error.",
) -> ErrorPayload:
    return ErrorPayload(
        type=RUN_ABORTED,
        message="Secret não processado: run interrompida por falha anterior",
        details={"secret": secret, "cause": cause},
        hint=hint,
        retryable=False,
    )


def engine_execution_error(
    *,
    secret: Optional[str] = None,
    exc_type: Optional[str] = None,
    exc_message: Optional[str] = None,
    hint: str = "Verifique o log técnico da run. Nenhum fallback é aplicado automaticamente.",
) -> ErrorPayload:
    return ErrorPayload(
        type=ENGINE_EXECUTION_ERROR,
        message="Falha inesperada durante o deploy do secret",
        details={
            "secret": secret,
            "exc_type": exc_type,
            "exc_message": exc_message,
        },
        hint=hint,
        retryable=False,
    )


def notify_failed(
    *,
    service: str,
    action: str,
    exc_message: str,
    hint: str = "Verifique o estado do serviço (systemctl status <unit>). O conteúdo do secret já está correto em disco.",
) -> ErrorPayload:
    return ErrorPayload(
        type=NOTIFY_ERROR,
        message=f"Falha ao notificar serviço '{service}'",
        details={"service": service, "action": action, "exc_message": exc_message},
        hint=hint,
        retryable=True,
    )
