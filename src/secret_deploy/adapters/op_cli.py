# src/secret_deploy/adapters/op_cli.py
"""
Resolver de secrets baseado no 1Password CLI (`op read`).

Implementa o protocolo `SecretResolver`: recebe uma referência
`op://vault/item/field` e devolve os bytes do campo.

Autenticação:
    - token de service account lido de um arquivo (padrão `/etc/opnix-token`)
    - repassado ao CLI via `OP_SERVICE_ACCOUNT_TOKEN`, nunca via argv
    - arquivo ausente ou vazio → AuthDeniedError antes de invocar o CLI; a
      decisão de pular a run inteira cabe ao wrapper de serviço do host

Classificação de falhas (stderr do CLI):
    - item/vault/campo inexistente      → SecretNotFoundError
    - token inválido/sem permissão      → AuthDeniedError
    - rede/timeout/rate limit/outros    → VaultUnavailableError (retry)
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from pathlib import Path
from typing import Dict, Optional, Union

from secret_deploy.core.exceptions import (
    AuthDeniedError,
    SecretNotFoundError,
    VaultUnavailableError,
)


logger = logging.getLogger(__name__)

DEFAULT_TOKEN_PATH = "/etc/opnix-token"
TOKEN_ENV = "OP_SERVICE_ACCOUNT_TOKEN"

_NOT_FOUND = re.compile(r"isn't an item|not found|no item|isn't a vault|no such|does not exist", re.IGNORECASE)
_AUTH = re.compile(r"unauthorized|forbidden|invalid token|authentication|not signed in|access denied|401|403", re.IGNORECASE)


def read_token(path: Union[str, Path]) -> str:
    """Lê o token de service account. Arquivo ausente ou vazio → AuthDeniedError."""
    p = Path(path)
    try:
        token = p.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        raise AuthDeniedError(
            f"Arquivo de token não encontrado: {p}",
            details={"token_file": str(p)},
            hint="Grave o token de service account no arquivo com modo 0600",
        ) from None
    except OSError as e:
        raise AuthDeniedError(
            f"Não foi possível ler o arquivo de token {p}: {e.strerror or e}",
            details={"token_file": str(p)},
            hint="Verifique permissões do arquivo de token",
        ) from e

    if not token:
        raise AuthDeniedError(
            f"Arquivo de token vazio: {p}",
            details={"token_file": str(p)},
        )
    return token


class OnePasswordCliResolver:
    def __init__(
        self,
        *,
        token_file: Union[str, Path] = DEFAULT_TOKEN_PATH,
        op_binary: str = "op",
        timeout_seconds: float = 30.0,
        env: Optional[Dict[str, str]] = None,
    ):
        self.token_file = token_file
        self.op_binary = op_binary
        self.timeout_seconds = timeout_seconds
        self._base_env = dict(os.environ if env is None else env)
        self._token: Optional[str] = None

    def _env(self) -> Dict[str, str]:
        if self._token is None:
            self._token = read_token(self.token_file)
        env = dict(self._base_env)
        env[TOKEN_ENV] = self._token
        return env

    def resolve(self, reference: str) -> bytes:
        details = {"reference": reference}
        try:
            result = subprocess.run(
                [self.op_binary, "read", "--no-newline", reference],
                capture_output=True,
                env=self._env(),
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as e:
            raise VaultUnavailableError(
                f"Binário '{self.op_binary}' não encontrado",
                details=details,
                hint="Instale o 1Password CLI ou injete outro SecretResolver",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise VaultUnavailableError(
                f"Timeout ao ler {reference} ({self.timeout_seconds}s)",
                details=details,
            ) from e

        if result.returncode == 0:
            return result.stdout

        stderr = result.stderr.decode("utf-8", errors="replace").strip()
        details["returncode"] = result.returncode
        logger.debug("op read falhou para %s: %s", reference, stderr)

        if _NOT_FOUND.search(stderr):
            raise SecretNotFoundError(
                f"Referência não encontrada no vault: {reference}",
                details=details,
                hint="Confira vault, item e campo da referência (op://vault/item/field)",
            )
        if _AUTH.search(stderr):
            raise AuthDeniedError(
                f"Acesso negado ao ler {reference}",
                details=details,
                hint="Verifique o token de service account e o acesso ao vault",
            )
        raise VaultUnavailableError(
            f"Falha ao ler {reference}: {stderr or 'erro desconhecido'}",
            details=details,
        )
