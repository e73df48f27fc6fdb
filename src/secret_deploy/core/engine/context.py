# src/secret_deploy/core/engine/context.py
"""
DeployContext — contexto de execução de uma run de deploy.

O contexto é o único meio permitido de:
- registro de eventos estruturados da run
- coleta de warnings não fatais por secret
- transições de estado da máquina de estados do orquestrador

Eventos são espelhados no `logging` padrão (logger `secret_deploy.run`)
para que o operador possa plugar handlers próprios.

Princípios:
- Isolamento por execução (um contexto por run)
- Seguro para uso concorrente pelos workers (lock interno)
- Nenhum evento carrega conteúdo de secrets
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .types import RunState


logger = logging.getLogger("secret_deploy.run")

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class DeployContext:
    """
    Contexto compartilhado de uma run.

    Campos canônicos:
    - run_id: identificador único da execução
    - created_at: timestamp UTC de criação do contexto
    - state: estado corrente do orquestrador
    - warnings: warnings por nome de secret
    - events: log estruturado de eventos
    """

    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: str = field(default_factory=_utc_now)
    state: RunState = RunState.LOADING

    warnings: Dict[str, List[str]] = field(default_factory=dict)
    events: List[Dict[str, Any]] = field(default_factory=list)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    # -----------------------------
    # Estado
    # -----------------------------
    def transition(self, state: RunState) -> None:
        previous = self.state
        self.state = state
        self.log(level="info", message=f"state {previous.value} -> {state.value}", event="state")

    # -----------------------------
    # Logging & warnings
    # -----------------------------
    def log(self, *, level: str, message: str, secret: Optional[str] = None, **extra: Any) -> None:
        event = {
            "run_id": self.run_id,
            "secret": secret,
            "level": level,
            "message": message,
            "timestamp": _utc_now(),
        }
        event.update(extra)
        with self._lock:
            self.events.append(event)

        if secret is None:
            logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s", self.run_id[:8], message)
        else:
            logger.log(_LEVELS.get(level, logging.INFO), "[%s] %s: %s", self.run_id[:8], secret, message)

    def add_warning(self, *, secret: str, message: str) -> None:
        with self._lock:
            self.warnings.setdefault(secret, []).append(message)
        self.log(level="warning", message=message, secret=secret)

    def warnings_for(self, secret: str) -> List[str]:
        with self._lock:
            return list(self.warnings.get(secret, []))
