# src/secret_deploy/__init__.py
"""
Secret Deploy — engine declarativo de deploy de secrets.

Lê manifests que declaram secrets (referência no vault, destino,
ownership, permissões, symlinks e serviços dependentes), resolve cada
secret, escreve atomicamente apenas o que mudou desde a última run e
notifica os serviços afetados.

Arquitetura em alto nível:
    - core.config      → carregamento, merge, hashing e política do engine
    - core.manifest    → schema, templates de caminho e loader de manifests
    - core.resolver    → protocolo `SecretResolver` e retry
    - core.store       → Hash Store persistido entre runs
    - core.detect      → classificação NEW / CHANGED / UNCHANGED
    - core.materialize → escrita atômica, ownership, symlinks, rollback
    - core.notify      → ordenação e restart/signal de serviços
    - core.engine      → orquestração, contexto e relatório da run
    - adapters         → integrações com vaults externos

Limites explícitos:
    - Não implementa criptografia nem o cliente do vault
    - Não expõe CLI; o ponto de entrada é `run_deployment`
"""

from .core.config.policy import DeployPolicy
from .core.engine.types import RunReport, RunStatus, SecretStatus
from .deploy import load_policy, run_deployment

__all__ = ["DeployPolicy", "RunReport", "RunStatus", "SecretStatus", "load_policy", "run_deployment"]
