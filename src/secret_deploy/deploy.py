# src/secret_deploy/deploy.py
"""
Ponto de entrada programático do Secret Deploy.

`run_deployment` monta Manifest Loader, Hash Store, Materializer, Service
Notifier e Orchestrator a partir de uma `DeployPolicy` e executa uma run.

Exemplo:

    from secret_deploy import load_policy, run_deployment
    from secret_deploy.adapters import OnePasswordCliResolver

    policy = load_policy("config/defaults.yaml", "config/local.yaml")
    report = run_deployment(
        ["/etc/secret-deploy/app.yaml"],
        resolver=OnePasswordCliResolver(),
        policy=policy,
    )
    raise SystemExit(report.exit_code)
"""

from __future__ import annotations

from typing import Iterable, Optional

from secret_deploy.core.config.loader import load_config
from secret_deploy.core.config.policy import DeployPolicy
from secret_deploy.core.engine.context import DeployContext
from secret_deploy.core.engine.orchestrator import DeploymentOrchestrator
from secret_deploy.core.engine.types import RunReport
from secret_deploy.core.manifest.loader import ManifestSource
from secret_deploy.core.notify.init_system import InitSystem, SystemdInitSystem
from secret_deploy.core.notify.notifier import ServiceNotifier
from secret_deploy.core.resolver import SecretResolver
from secret_deploy.core.store.hash_store import HashStore


def load_policy(defaults_path: str, local_path: Optional[str] = None) -> DeployPolicy:
    """Resolve defaults + local e constrói a `DeployPolicy` da seção `engine`."""
    return DeployPolicy.from_config(load_config(defaults_path=defaults_path, local_path=local_path))


def run_deployment(
    sources: Iterable[ManifestSource],
    *,
    resolver: SecretResolver,
    init_system: Optional[InitSystem] = None,
    policy: Optional[DeployPolicy] = None,
    ctx: Optional[DeployContext] = None,
) -> RunReport:
    """
    Executa uma run completa de deploy.

    Args:
        sources: Caminhos de manifest (JSON/YAML) ou bytes JSON, em ordem de merge.
        resolver: Implementação de `SecretResolver`.
        init_system: Implementação de `InitSystem` (padrão: systemd).
        policy: Política de execução (padrão: `DeployPolicy()`).
        ctx: Contexto da run (padrão: novo `DeployContext`).

    Returns:
        RunReport: Relatório da run; `exit_code` segue 0/2/1.

    Raises:
        ConfigError: Manifest ou configuração inválidos, antes de qualquer escrita.
    """
    policy = policy or DeployPolicy()
    orchestrator = DeploymentOrchestrator(
        resolver=resolver,
        hash_store=HashStore(path=policy.hash_store_path),
        notifier=ServiceNotifier(init_system or SystemdInitSystem()),
        policy=policy,
        ctx=ctx,
    )
    return orchestrator.run_sources(list(sources))
