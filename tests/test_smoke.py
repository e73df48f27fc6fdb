# tests/test_smoke.py
"""
Testes de sanidade estrutural (smoke tests) do Secret Deploy.

Garantem apenas que:
- o pacote é importável a partir do layout `src/`
- a API pública declarada em `secret_deploy.__all__` existe
- os defaults versionados em `config/defaults.yaml` produzem uma política válida

Limites explícitos:
    - Não testar lógica de deploy
    - Não acessar vault nem systemd
"""

from pathlib import Path

import secret_deploy
from secret_deploy import DeployPolicy, load_policy


REPO_ROOT = Path(__file__).resolve().parents[1]


def test_public_api_is_importable():
    for name in secret_deploy.__all__:
        assert hasattr(secret_deploy, name), name


def test_versioned_defaults_build_default_policy():
    policy = load_policy(str(REPO_ROOT / "config" / "defaults.yaml"))
    assert policy == DeployPolicy()
