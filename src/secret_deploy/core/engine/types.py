# src/secret_deploy/core/engine/types.py
"""
Tipos canônicos do engine de deploy.

Componentes principais:
    - SecretStatus      → estado final de um secret na run
    - RunStatus         → estado agregado da run
    - RunState          → estados da máquina de estados do orquestrador
    - DeploymentOutcome → resultado imutável por secret
    - RunReport         → relatório final da run

Princípios fundamentais:
    - Tipos são estáveis e serializáveis (`to_dict`)
    - Nenhum tipo carrega o conteúdo resolvido de um secret
    - Nenhuma lógica de execução vive neste módulo
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from secret_deploy.core.detect.change_detector import ChangeKind
from secret_deploy.core.errors import ErrorPayload
from secret_deploy.core.notify.notifier import ServiceNotification


class SecretStatus(str, Enum):
    """
    Estado final de um secret na run.

    - UNCHANGED: digest idêntico; conteúdo não reescrito (metadados reafirmados)
    - WRITTEN: conteúdo escrito atomicamente (NEW ou CHANGED)
    - FAILED: falha de resolução ou escrita
    - SKIPPED: não processado (abort, deadline ou rollback)
    """

    UNCHANGED = "unchanged"
    WRITTEN = "written"
    FAILED = "failed"
    SKIPPED = "skipped"


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"
    FAILURE = "failure"

    @property
    def exit_code(self) -> int:
        return _EXIT_CODES[self]


_EXIT_CODES = {
    RunStatus.SUCCESS: 0,
    RunStatus.FAILURE: 1,
    RunStatus.PARTIAL_FAILURE: 2,
}


class RunState(str, Enum):
    """Estados da máquina de estados do orquestrador (FAILED é terminal)."""

    LOADING = "loading"
    RESOLVING = "resolving"
    WRITING = "writing"
    COMMITTING = "committing"
    NOTIFYING = "notifying"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class DeploymentOutcome:
    """Resultado imutável do deploy de um secret."""

    secret_name: str
    status: SecretStatus
    destination: str
    change: Optional[ChangeKind] = None
    error: Optional[ErrorPayload] = None
    warnings: Tuple[str, ...] = ()
    created_symlinks: Tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return self.status in (SecretStatus.WRITTEN, SecretStatus.UNCHANGED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "secret": self.secret_name,
            "status": self.status.value,
            "destination": self.destination,
            "change": self.change.value if self.change else None,
            "error": self.error.to_dict() if self.error else None,
            "warnings": list(self.warnings),
            "created_symlinks": list(self.created_symlinks),
        }


@dataclass(frozen=True)
class RunReport:
    """Relatório final de uma run."""

    run_id: str
    status: RunStatus
    state: RunState
    outcomes: Tuple[DeploymentOutcome, ...]
    notifications: Tuple[ServiceNotification, ...] = ()
    manifest_fingerprint: Optional[str] = None
    policy_hash: Optional[str] = None
    committed: bool = False
    rolled_back: bool = False
    started_at: str = ""
    finished_at: str = ""
    events: List[Dict[str, Any]] = field(default_factory=list, compare=False, repr=False)

    @property
    def exit_code(self) -> int:
        return self.status.exit_code

    @property
    def notified_services(self) -> List[str]:
        return [n.service for n in self.notifications if n.ok and n.action != "none"]

    def outcome(self, secret_name: str) -> DeploymentOutcome:
        for o in self.outcomes:
            if o.secret_name == secret_name:
                return o
        raise KeyError(secret_name)

    def by_status(self, status: SecretStatus) -> List[str]:
        return [o.secret_name for o in self.outcomes if o.status is status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run_id": self.run_id,
            "status": self.status.value,
            "exit_code": self.exit_code,
            "state": self.state.value,
            "committed": self.committed,
            "rolled_back": self.rolled_back,
            "manifest_fingerprint": self.manifest_fingerprint,
            "policy_hash": self.policy_hash,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "outcomes": [o.to_dict() for o in self.outcomes],
            "notifications": [n.to_dict() for n in self.notifications],
        }
