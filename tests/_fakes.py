# tests/_fakes.py
"""
Fakes de vault e init system usados pelos testes.

Mantidos fora do conftest para que módulos de teste possam importá-los
diretamente (`from tests._fakes import FakeResolver`).
"""

import threading
from typing import Any, Dict, List, Optional, Tuple

from secret_deploy.core.exceptions import NotifyError, SecretNotFoundError


class FakeResolver:
    """
    Resolver em memória.

    `values` mapeia referência → bytes | Exception | callable. Um callable
    recebe o número da chamada (1-based) para aquela referência e devolve
    bytes ou levanta exceção. Referências desconhecidas → SecretNotFoundError.
    """

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values: Dict[str, Any] = dict(values or {})
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def set(self, reference: str, value: Any) -> None:
        self.values[reference] = value

    def count(self, reference: str) -> int:
        with self._lock:
            return self.calls.count(reference)

    def resolve(self, reference: str) -> bytes:
        with self._lock:
            self.calls.append(reference)
            n = self.calls.count(reference)
        value = self.values.get(reference)
        if value is None:
            raise SecretNotFoundError(f"referência desconhecida: {reference}", details={"reference": reference})
        if isinstance(value, Exception):
            raise value
        if callable(value):
            return value(n)
        return value


class RecordingInitSystem:
    """Registra chamadas `restart`/`signal`; serviços em `failing` levantam NotifyError."""

    def __init__(self, failing: Tuple[str, ...] = ()):
        self.calls: List[Tuple[str, ...]] = []
        self.failing = set(failing)

    def _maybe_fail(self, service: str, action: str) -> None:
        if service in self.failing:
            raise NotifyError(f"{action} falhou", details={"service": service})

    def restart(self, service: str) -> None:
        self.calls.append(("restart", service))
        self._maybe_fail(service, "restart")

    def signal(self, service: str, signal: str) -> None:
        self.calls.append(("signal", service, signal))
        self._maybe_fail(service, "signal")

    @property
    def services(self) -> List[str]:
        return [c[1] for c in self.calls]
