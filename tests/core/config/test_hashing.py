# tests/core/config/test_hashing.py
"""
Testes de hashing determinístico de configuração e de conteúdo.

Invariantes:
    - A ordem das chaves não altera o hash de configuração
    - Qualquer alteração de valor altera o hash
    - O hash de conteúdo é o SHA-256 hexadecimal dos bytes
"""

import hashlib

import pytest

try:
    from secret_deploy.core.config.hashing import compute_config_hash, compute_content_hash
except Exception as e:  # noqa: BLE001
    compute_config_hash = None
    compute_content_hash = None
    _IMPORT_ERR = e
else:
    _IMPORT_ERR = None


def _require_imports():
    if _IMPORT_ERR is not None:
        pytest.fail(
            "Missing hashing module. Implement:\n"
            "- src/secret_deploy/core/config/hashing.py (compute_config_hash, compute_content_hash)\n"
            f"Import error: {_IMPORT_ERR}"
        )


def test_config_hash_is_order_independent():
    _require_imports()
    a = {"engine": {"max_retries": 3, "max_workers": 4}, "x": [1, 2]}
    b = {"x": [1, 2], "engine": {"max_workers": 4, "max_retries": 3}}
    assert compute_config_hash(a) == compute_config_hash(b)


def test_config_hash_changes_with_value():
    _require_imports()
    assert compute_config_hash({"a": 1}) != compute_config_hash({"a": 2})


def test_config_hash_rejects_non_dict():
    _require_imports()
    with pytest.raises(TypeError):
        compute_config_hash(["not", "a", "dict"])


def test_content_hash_is_sha256_hex():
    _require_imports()
    assert compute_content_hash(b"s3cr3t") == hashlib.sha256(b"s3cr3t").hexdigest()
    with pytest.raises(TypeError):
        compute_content_hash("texto")
