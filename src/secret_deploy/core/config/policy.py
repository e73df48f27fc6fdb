# src/secret_deploy/core/config/policy.py
"""
Política de execução do engine de deploy.

A política reúne os knobs que controlam retry, rollback, tolerância a
falhas, paralelismo e prazo de uma run. Ela é lida da seção `engine` da
configuração efetiva (defaults + local, ver `load_config`).

Exemplo (YAML):

    engine:
      continue_on_error: false
      rollback_on_failure: true
      max_retries: 3
      retry_interval_seconds: 2
      max_workers: 4
      deadline_seconds: 120
      output_dir: /var/lib/secret-deploy/secrets
      hash_store_path: /var/lib/secret-deploy/hashes.json

Decisões arquiteturais:
    - Defaults conservadores: modo estrito, sem rollback, retry em intervalo fixo
    - Valores inválidos são erros de configuração, nunca corrigidos em silêncio
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

from .errors import InvalidPolicyError
from .hashing import compute_config_hash


DEFAULT_OUTPUT_DIR = "/var/lib/secret-deploy/secrets"
DEFAULT_HASH_STORE_PATH = "/var/lib/secret-deploy/hashes.json"


@dataclass(frozen=True)
class DeployPolicy:
    """Knobs de execução de uma run (imutáveis durante a run)."""

    continue_on_error: bool = False
    rollback_on_failure: bool = False
    max_retries: int = 3
    retry_interval_seconds: float = 1.0
    retry_filesystem_errors: bool = False
    max_workers: int = 4
    deadline_seconds: Optional[float] = None
    output_dir: str = DEFAULT_OUTPUT_DIR
    hash_store_path: str = DEFAULT_HASH_STORE_PATH

    def __post_init__(self) -> None:
        for name in ("continue_on_error", "rollback_on_failure", "retry_filesystem_errors"):
            if not isinstance(getattr(self, name), bool):
                raise InvalidPolicyError(f"engine.{name} deve ser bool", field=f"engine.{name}")

        if not _is_int(self.max_retries) or self.max_retries < 0:
            raise InvalidPolicyError(
                f"engine.max_retries deve ser inteiro >= 0, recebido: {self.max_retries!r}",
                field="engine.max_retries",
            )
        if not _is_int(self.max_workers) or self.max_workers < 1:
            raise InvalidPolicyError(
                f"engine.max_workers deve ser inteiro >= 1, recebido: {self.max_workers!r}",
                field="engine.max_workers",
            )
        if not _is_number(self.retry_interval_seconds) or self.retry_interval_seconds < 0:
            raise InvalidPolicyError(
                "engine.retry_interval_seconds deve ser número >= 0",
                field="engine.retry_interval_seconds",
            )
        if self.deadline_seconds is not None and (
            not _is_number(self.deadline_seconds) or self.deadline_seconds <= 0
        ):
            raise InvalidPolicyError(
                "engine.deadline_seconds deve ser número > 0 ou null",
                field="engine.deadline_seconds",
            )
        for name in ("output_dir", "hash_store_path"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise InvalidPolicyError(f"engine.{name} deve ser string não vazia", field=f"engine.{name}")

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "DeployPolicy":
        """Constrói a política a partir da configuração efetiva (seção `engine`)."""
        engine_cfg = (config or {}).get("engine", {}) or {}
        if not isinstance(engine_cfg, dict):
            raise InvalidPolicyError("Seção 'engine' deve ser um dicionário", field="engine")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(engine_cfg) - known)
        if unknown:
            raise InvalidPolicyError(
                f"Chaves desconhecidas em engine: {', '.join(unknown)}",
                field="engine",
                hint=f"Chaves aceitas: {', '.join(sorted(known))}",
            )

        return cls(**engine_cfg)

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @property
    def config_hash(self) -> str:
        return compute_config_hash({"engine": self.to_dict()})


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)
