# tests/conftest.py
"""
Fixtures compartilhados para testes do Secret Deploy.

Este módulo define fixtures reutilizáveis que fornecem:
- um resolver em memória com comportamento configurável por referência
- um init system que apenas registra as chamadas recebidas
- escritores de manifest (JSON/YAML) em `tmp_path`
- uma política de execução isolada em `tmp_path`

Decisões arquiteturais:
    - Fakes são mantidos simples e explícitos (duck typing, sem herança)
    - Todo I/O de filesystem acontece sob `tmp_path`
    - Imports do core são realizados de forma lazy para deixar falhas de
      import visíveis no teste que as exercita

Limites explícitos:
    - Nenhuma fixture acessa vault real ou systemd
    - Não substitui testes de integração em host real
"""

import json
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import pytest
import yaml

from tests._fakes import FakeResolver, RecordingInitSystem


@pytest.fixture
def fake_resolver() -> FakeResolver:
    return FakeResolver()


@pytest.fixture
def init_system() -> RecordingInitSystem:
    return RecordingInitSystem()


# =====================================================
# Manifests
# =====================================================

@pytest.fixture
def write_manifest(tmp_path: Path) -> Callable[..., Path]:
    """
    Fábrica que grava um manifest em `tmp_path/manifests/<name>`.

    O formato é decidido pela extensão (.json / .yaml / .yml).
    """
    counter = {"n": 0}

    def _write(data: Union[Dict[str, Any], str], name: Optional[str] = None) -> Path:
        counter["n"] += 1
        name = name or f"manifest-{counter['n']}.json"
        path = tmp_path / "manifests" / name
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            path.write_text(data, encoding="utf-8")
        elif path.suffix == ".json":
            path.write_text(json.dumps(data), encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(data), encoding="utf-8")
        return path

    return _write


# =====================================================
# Política isolada
# =====================================================

@pytest.fixture
def output_dir(tmp_path: Path) -> Path:
    return tmp_path / "secrets"


@pytest.fixture
def make_policy(tmp_path: Path, output_dir: Path) -> Callable[..., Any]:
    """Fábrica de `DeployPolicy` com destinos e Hash Store sob `tmp_path`."""

    def _make(**overrides: Any):
        from secret_deploy.core.config.policy import DeployPolicy

        params: Dict[str, Any] = {
            "output_dir": str(output_dir),
            "hash_store_path": str(tmp_path / "state" / "hashes.json"),
            "retry_interval_seconds": 0.0,
        }
        params.update(overrides)
        return DeployPolicy(**params)

    return _make
