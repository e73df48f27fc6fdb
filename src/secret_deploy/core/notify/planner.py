# src/secret_deploy/core/notify/planner.py
"""
Planejador de notificações de serviços.

Recebe as ações de serviço declaradas pelos secrets escritos na run e
produz uma sequência linear, deduplicada e determinística de serviços a
notificar.

Decisões arquiteturais:
    - Ordenação topológica determinística (Kahn)
    - Empates resolvidos pela ordem de primeira aparição
    - `after` é uma dica de ordenação entre os serviços notificados nesta
      run; dependências fora do conjunto são ignoradas
    - Serviços presos em ciclo são anexados ao final, em ordem de primeira
      aparição (a notificação nunca é descartada por causa de ordenação)

Invariantes:
    - Cada serviço aparece exatamente uma vez
    - A mesma entrada sempre produz a mesma ordem
    - Nenhum serviço aparece antes de uma dependência `after` presente no
      conjunto, exceto dentro de um ciclo

Limites explícitos:
    - Não executa restart/signal
    - Não valida auto-referência (rejeitada pelo Manifest Loader)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from secret_deploy.core.manifest.schema import DetailedService, ServiceAction


@dataclass
class PlannedService:
    """Ação consolidada de um serviço, com os secrets que a originaram."""

    name: str
    restart: bool = True
    signal: Optional[str] = None
    after: List[str] = field(default_factory=list)
    secrets: List[str] = field(default_factory=list)

    @property
    def action(self) -> str:
        if self.signal:
            return f"signal:{self.signal}"
        if self.restart:
            return "restart"
        return "none"


def consolidate(requests: Iterable[Tuple[str, ServiceAction]]) -> List[PlannedService]:
    """
    Deduplica ações por nome de serviço, preservando a primeira aparição.

    `requests` é uma sequência de pares `(secret_name, action)`. Uma ação
    detalhada prevalece sobre uma simples; listas `after` são unidas.
    """
    by_name: Dict[str, PlannedService] = {}
    detailed: Dict[str, bool] = {}

    for secret_name, action in requests:
        planned = by_name.get(action.name)
        is_detailed = isinstance(action, DetailedService)
        if planned is None:
            planned = PlannedService(name=action.name, restart=action.restart, signal=action.signal)
            by_name[action.name] = planned
            detailed[action.name] = is_detailed
        elif is_detailed and not detailed[action.name]:
            planned.restart = action.restart
            planned.signal = action.signal
            detailed[action.name] = True

        for dep in action.after:
            if dep not in planned.after:
                planned.after.append(dep)
        if secret_name not in planned.secrets:
            planned.secrets.append(secret_name)

    return list(by_name.values())


def plan_notifications(services: List[PlannedService]) -> Tuple[List[PlannedService], List[str]]:
    """
    Ordena serviços consolidados respeitando `after`.

    Returns:
        (ordem final, nomes de serviços que estavam em ciclo)
    """
    position = {s.name: i for i, s in enumerate(services)}
    by_name = {s.name: s for s in services}

    incoming: Dict[str, int] = {s.name: 0 for s in services}
    outgoing: Dict[str, List[str]] = {s.name: [] for s in services}
    for s in services:
        for dep in s.after:
            if dep in by_name and dep != s.name:
                incoming[s.name] += 1
                outgoing[dep].append(s.name)

    ready: List[str] = [s.name for s in services if incoming[s.name] == 0]
    order: List[str] = []

    while ready:
        name = ready.pop(0)
        order.append(name)
        for child in outgoing[name]:
            incoming[child] -= 1
            if incoming[child] == 0:
                ready.append(child)
                ready.sort(key=position.__getitem__)

    placed = set(order)
    cyclic = [s.name for s in services if s.name not in placed]
    order.extend(cyclic)

    return [by_name[n] for n in order], cyclic
