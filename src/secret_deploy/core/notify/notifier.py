# src/secret_deploy/core/notify/notifier.py
"""
Service Notifier do Secret Deploy.

Executado uma única vez por run, após a barreira de escrita. Recebe os
serviços declarados pelos secrets efetivamente escritos (NEW / CHANGED),
consolida, ordena e aplica a ação de cada serviço:

    - `signal` configurado  → `InitSystem.signal(service, signal)`
    - `restart: true`       → `InitSystem.restart(service)` (padrão)
    - `restart: false` sem signal → nenhuma ação (registrado como "none")

Falhas nunca interrompem a notificação dos demais serviços e nunca
disparam rollback: viram `ErrorPayload` do tipo NOTIFY_ERROR no resultado,
que o orquestrador anexa como warning aos secrets afetados.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from secret_deploy.core.errors import ErrorPayload, notify_failed
from secret_deploy.core.exceptions import NotifyError
from secret_deploy.core.manifest.schema import ServiceAction

from .init_system import InitSystem
from .planner import PlannedService, consolidate, plan_notifications


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceNotification:
    """Resultado da notificação de um serviço."""

    service: str
    action: str
    secrets: Tuple[str, ...] = ()
    error: Optional[ErrorPayload] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service,
            "action": self.action,
            "secrets": list(self.secrets),
            "ok": self.ok,
            "error": self.error.to_dict() if self.error else None,
        }


@dataclass
class NotificationPlan:
    services: List[PlannedService] = field(default_factory=list)
    cyclic: List[str] = field(default_factory=list)


class ServiceNotifier:
    def __init__(self, init_system: InitSystem):
        self.init_system = init_system

    def plan(self, requests: Iterable[Tuple[str, ServiceAction]]) -> NotificationPlan:
        ordered, cyclic = plan_notifications(consolidate(requests))
        if cyclic:
            logger.warning("ciclo em 'after' entre serviços %s; usando ordem de aparição", cyclic)
        return NotificationPlan(services=ordered, cyclic=cyclic)

    def notify(self, requests: Iterable[Tuple[str, ServiceAction]]) -> List[ServiceNotification]:
        plan = self.plan(requests)
        return [self._apply(service) for service in plan.services]

    def _apply(self, service: PlannedService) -> ServiceNotification:
        action = service.action
        secrets = tuple(service.secrets)

        if action == "none":
            logger.info("serviço %s sem ação (restart: false)", service.name)
            return ServiceNotification(service.name, action, secrets)

        try:
            if service.signal:
                self.init_system.signal(service.name, service.signal)
            else:
                self.init_system.restart(service.name)
        except NotifyError as e:
            logger.warning("falha ao notificar %s: %s", service.name, e.message)
            payload = e.to_payload()
            return ServiceNotification(service.name, action, secrets, payload)
        except Exception as e:
            logger.warning("falha ao notificar %s: %s", service.name, e)
            payload = notify_failed(service=service.name, action=action, exc_message=str(e))
            return ServiceNotification(service.name, action, secrets, payload)

        logger.info("serviço %s notificado (%s)", service.name, action)
        return ServiceNotification(service.name, action, secrets)
