"""Orquestração de uma run de deploy de secrets."""

from .context import DeployContext
from .orchestrator import DeploymentOrchestrator
from .types import DeploymentOutcome, RunReport, RunState, RunStatus, SecretStatus

__all__ = [
    "DeployContext",
    "DeploymentOrchestrator",
    "DeploymentOutcome",
    "RunReport",
    "RunState",
    "RunStatus",
    "SecretStatus",
]
