# tests/core/config/test_policy.py
"""
Testes da política de execução do engine (`DeployPolicy`).

Os testes asseguram que:
- os defaults são conservadores (modo estrito, sem rollback)
- a política é lida da seção `engine` da configuração efetiva
- chaves desconhecidas e valores inválidos são `InvalidPolicyError`
- o hash da política é estável
"""

from pathlib import Path

import pytest

from secret_deploy.core.config.errors import ConfigError, InvalidPolicyError
from secret_deploy.core.config.policy import DEFAULT_OUTPUT_DIR, DeployPolicy
from secret_deploy.deploy import load_policy


def test_defaults_are_strict():
    p = DeployPolicy()
    assert p.continue_on_error is False
    assert p.rollback_on_failure is False
    assert p.max_retries == 3
    assert p.max_workers == 4
    assert p.deadline_seconds is None
    assert p.output_dir == DEFAULT_OUTPUT_DIR


def test_from_config_reads_engine_section():
    p = DeployPolicy.from_config({"engine": {"continue_on_error": True, "max_workers": 2}})
    assert p.continue_on_error is True
    assert p.max_workers == 2


def test_from_config_without_engine_section_uses_defaults():
    assert DeployPolicy.from_config({}) == DeployPolicy()


def test_unknown_key_is_rejected():
    with pytest.raises(InvalidPolicyError) as exc:
        DeployPolicy.from_config({"engine": {"fail_fast": True}})
    assert exc.value.field == "engine"
    assert isinstance(exc.value, ConfigError)


@pytest.mark.parametrize(
    "overrides",
    [
        {"max_retries": -1},
        {"max_workers": 0},
        {"retry_interval_seconds": -0.5},
        {"deadline_seconds": 0},
        {"continue_on_error": "yes"},
        {"output_dir": ""},
    ],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(InvalidPolicyError):
        DeployPolicy(**overrides)


def test_config_hash_is_stable():
    assert DeployPolicy().config_hash == DeployPolicy().config_hash
    assert DeployPolicy().config_hash != DeployPolicy(max_retries=5).config_hash


def test_load_policy_from_defaults_and_local(tmp_path: Path):
    """`load_policy` resolve defaults + local antes de construir a política."""
    defaults = tmp_path / "defaults.yaml"
    local = tmp_path / "local.yaml"
    defaults.write_text("engine:\n  max_retries: 3\n  deadline_seconds: null\n", encoding="utf-8")
    local.write_text("engine:\n  deadline_seconds: 30\n  rollback_on_failure: true\n", encoding="utf-8")

    policy = load_policy(str(defaults), str(local))
    assert policy.deadline_seconds == 30
    assert policy.rollback_on_failure is True
    assert policy.max_retries == 3


def test_shipped_defaults_file_is_valid():
    shipped = Path(__file__).resolve().parents[3] / "config" / "defaults.yaml"
    assert load_policy(str(shipped)) == DeployPolicy()
