"""
Secret Deploy — Canonical Exceptions (v1)

Este módulo define as exceções tipadas de runtime do engine.

Objetivo:
- Permitir que Resolver, Materializer e Notifier levantem falhas semânticas
- Facilitar o mapeamento determinístico para `ErrorPayload`
- Separar falhas transitórias (retry) de falhas terminais

Regras:
- Exceções carregam apenas dados estruturados (serializáveis).
- Nenhuma exceção carrega o conteúdo de um secret.
- Erros de configuração NÃO vivem aqui (ver `core.config.errors`).
"""

from __future__ import annotations

import errno
from typing import Any, Dict, Optional

from .errors import (
    ENGINE_EXECUTION_ERROR,
    FILESYSTEM_ERROR,
    NOTIFY_ERROR,
    OWNERSHIP_LOOKUP_ERROR,
    SECRET_AUTH_DENIED,
    SECRET_NOT_FOUND,
    SYMLINK_CONFLICT,
    VAULT_UNAVAILABLE,
    ErrorPayload,
)


class DeployException(Exception):
    """Base class para exceções de runtime do Secret Deploy.

    Importante:
    - Sempre carregar dados estruturados em `details`
    - Mensagem deve ser curta e humana
    - `code` é o código estável usado no `ErrorPayload`
    """

    code: str = ENGINE_EXECUTION_ERROR
    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})
        self.hint = hint

    def to_payload(self) -> ErrorPayload:
        return ErrorPayload(
            type=self.code,
            message=self.message,
            details=dict(self.details),
            hint=self.hint,
            retryable=self.retryable,
        )


# ---------------------------------------------------------------------------
# Resolução (vault)
# ---------------------------------------------------------------------------

class ResolutionError(DeployException):
    """Falha ao resolver uma referência no vault."""


class SecretNotFoundError(ResolutionError):
    """A referência não existe no vault (terminal, sem retry)."""

    code = SECRET_NOT_FOUND


class AuthDeniedError(ResolutionError):
    """Credencial sem acesso ao vault/item (terminal, sem retry)."""

    code = SECRET_AUTH_DENIED


class VaultUnavailableError(ResolutionError):
    """Vault indisponível ou falha transitória de rede (retry permitido)."""

    code = VAULT_UNAVAILABLE
    retryable = True


# ---------------------------------------------------------------------------
# Filesystem
# ---------------------------------------------------------------------------

TRANSIENT_ERRNOS = frozenset({errno.EAGAIN, errno.EBUSY, errno.EINTR, errno.ETXTBSY})


class FilesystemError(DeployException):
    """Falha de escrita, permissão, ownership ou symlink no destino."""

    code = FILESYSTEM_ERROR

    def __init__(self, message: str, *, path: Optional[str] = None, os_errno: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path
        self.os_errno = os_errno
        if path is not None:
            self.details.setdefault("path", path)
        if os_errno is not None:
            self.details.setdefault("errno", os_errno)

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.os_errno in TRANSIENT_ERRNOS

    @classmethod
    def from_os_error(cls, action: str, path: str, exc: OSError) -> "FilesystemError":
        hint = None
        if exc.errno in (errno.EACCES, errno.EPERM):
            hint = "Verifique permissões do diretório de destino e execute com privilégios adequados"
        elif exc.errno == errno.ENOSPC:
            hint = "Libere espaço no filesystem de destino"
        return cls(
            f"{action} falhou em {path}: {exc.strerror or exc}",
            path=path,
            os_errno=exc.errno,
            hint=hint,
        )


class SymlinkConflictError(FilesystemError):
    """Um caminho de symlink existe e não aponta para o destino canônico."""

    code = SYMLINK_CONFLICT


class OwnershipLookupError(FilesystemError):
    """Usuário ou grupo configurado não existe no host."""

    code = OWNERSHIP_LOOKUP_ERROR


# ---------------------------------------------------------------------------
# Serviços dependentes
# ---------------------------------------------------------------------------

class NotifyError(DeployException):
    """Restart/signal de um serviço dependente falhou (nunca dispara rollback)."""

    code = NOTIFY_ERROR
    retryable = True
