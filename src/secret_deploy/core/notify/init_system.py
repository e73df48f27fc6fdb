# src/secret_deploy/core/notify/init_system.py
"""
Integração com o init system do host.

O engine depende apenas do protocolo `InitSystem`; a implementação
`SystemdInitSystem` delega para `systemctl` via `subprocess`.

Regras:
- Qualquer falha (binário ausente, exit code != 0, timeout) vira `NotifyError`
- stderr do comando é anexado aos detalhes do erro, truncado
"""

from __future__ import annotations

import logging
import subprocess
from typing import List, Protocol, Sequence, runtime_checkable

from secret_deploy.core.exceptions import NotifyError


logger = logging.getLogger(__name__)

_STDERR_LIMIT = 500


@runtime_checkable
class InitSystem(Protocol):
    """Capacidade mínima exigida do init system."""

    def restart(self, service: str) -> None:
        ...

    def signal(self, service: str, signal: str) -> None:
        ...


class SystemdInitSystem:
    """`InitSystem` baseado em `systemctl`."""

    def __init__(self, *, systemctl: str = "systemctl", timeout_seconds: float = 60.0):
        self.systemctl = systemctl
        self.timeout_seconds = timeout_seconds

    def restart(self, service: str) -> None:
        self._run([self.systemctl, "restart", service], service=service, action="restart")

    def signal(self, service: str, signal: str) -> None:
        self._run(
            [self.systemctl, "kill", f"--signal={signal}", service],
            service=service,
            action=f"signal:{signal}",
        )

    def _run(self, cmd: Sequence[str], *, service: str, action: str) -> None:
        logger.debug("executando %s", " ".join(cmd))
        details = {"service": service, "action": action, "command": list(cmd)}
        try:
            result = subprocess.run(
                list(cmd),
                capture_output=True,
                text=True,
                timeout=self.timeout_seconds,
                check=False,
            )
        except FileNotFoundError as e:
            raise NotifyError(
                f"Binário '{cmd[0]}' não encontrado",
                details=details,
                hint="Instale systemd ou injete outra implementação de InitSystem",
            ) from e
        except subprocess.TimeoutExpired as e:
            raise NotifyError(
                f"Timeout ao executar {action} em '{service}' ({self.timeout_seconds}s)",
                details=details,
            ) from e

        if result.returncode != 0:
            details["returncode"] = result.returncode
            details["stderr"] = _truncate(result.stderr)
            raise NotifyError(
                f"{action} em '{service}' falhou (exit {result.returncode})",
                details=details,
                hint=f"Verifique `systemctl status {service}`",
            )


def _truncate(text: str) -> str:
    text = (text or "").strip()
    if len(text) > _STDERR_LIMIT:
        return text[:_STDERR_LIMIT] + "..."
    return text


__all__: List[str] = ["InitSystem", "SystemdInitSystem"]
