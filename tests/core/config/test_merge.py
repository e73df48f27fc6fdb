# tests/core/config/test_merge.py
"""
Testes da política de deep-merge de configuração.

Os testes asseguram que:
- valores escalares são sobrescritos corretamente
- dicionários são mesclados de forma recursiva
- listas são sobrescritas integralmente
- conflitos de tipo são rejeitados explicitamente
- objetos de entrada não são mutados durante o merge
"""

import pytest

try:
    from secret_deploy.core.config.merge import deep_merge
    from secret_deploy.core.config.errors import ConfigError, ConfigTypeConflictError
except Exception as e:  # noqa: BLE001
    deep_merge = None
    ConfigError = None
    ConfigTypeConflictError = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing config merge modules. Implement:\n"
            "- src/secret_deploy/core/config/merge.py (deep_merge)\n"
            "- src/secret_deploy/core/config/errors.py (ConfigTypeConflictError)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_merge_simple_override():
    """Override escalar substitui o valor base sem mutar as entradas."""
    _require_imports()
    base = {"max_retries": 3, "max_workers": 4}
    override = {"max_workers": 8}
    out = deep_merge(base, override)
    assert out == {"max_retries": 3, "max_workers": 8}
    assert base == {"max_retries": 3, "max_workers": 4}
    assert override == {"max_workers": 8}


def test_merge_nested_dict():
    _require_imports()
    base = {"engine": {"continue_on_error": False, "max_retries": 3}}
    override = {"engine": {"continue_on_error": True}}
    out = deep_merge(base, override)
    assert out == {"engine": {"continue_on_error": True, "max_retries": 3}}


def test_merge_list_is_replaced():
    """
    Listas nunca são concatenadas.

    Um override de lista substitui a lista base por inteiro, evitando
    heurísticas implícitas de união.
    """
    _require_imports()
    out = deep_merge({"sources": ["a.yaml", "b.yaml"]}, {"sources": ["c.yaml"]})
    assert out == {"sources": ["c.yaml"]}


def test_merge_none_is_compatible_with_any_type():
    _require_imports()
    out = deep_merge({"engine": {"deadline_seconds": None}}, {"engine": {"deadline_seconds": 120}})
    assert out["engine"]["deadline_seconds"] == 120


def test_merge_int_and_float_are_interchangeable():
    _require_imports()
    out = deep_merge({"retry_interval_seconds": 1}, {"retry_interval_seconds": 0.5})
    assert out == {"retry_interval_seconds": 0.5}


def test_merge_type_conflict_raises():
    """Conflito estrutural (dict vs escalar, bool vs int) é erro fatal tipado."""
    _require_imports()
    with pytest.raises(ConfigTypeConflictError) as exc:
        deep_merge({"engine": {"max_retries": 3}}, {"engine": "strict"})
    assert isinstance(exc.value, ConfigError)

    with pytest.raises(ConfigTypeConflictError):
        deep_merge({"continue_on_error": False}, {"continue_on_error": 1})
