# tests/core/test_resolver.py
"""
Testes da política de retry do resolver (`resolve_with_retry`).

Contrato:
    - VaultUnavailableError é repetido até `max_retries` tentativas extras
    - SecretNotFoundError / AuthDeniedError nunca são repetidos
    - um evento de abort interrompe a espera entre tentativas
"""

import threading

import pytest

from secret_deploy.core.exceptions import AuthDeniedError, SecretNotFoundError, VaultUnavailableError
from secret_deploy.core.resolver import SecretResolver, resolve_with_retry

from tests._fakes import FakeResolver


REF = "op://Homelab/Database/password"


def test_fake_resolver_satisfies_protocol():
    assert isinstance(FakeResolver(), SecretResolver)


def test_transient_errors_are_retried_until_success():
    def flaky(n):
        if n < 3:
            raise VaultUnavailableError("timeout")
        return b"ok"

    resolver = FakeResolver({REF: flaky})
    retries = []
    value = resolve_with_retry(
        resolver, REF, max_retries=3, interval=0, on_retry=lambda attempt, e: retries.append(attempt)
    )
    assert value == b"ok"
    assert retries == [1, 2]
    assert resolver.count(REF) == 3


def test_retry_exhaustion_raises_with_attempts():
    resolver = FakeResolver({REF: VaultUnavailableError("down")})
    with pytest.raises(VaultUnavailableError) as exc:
        resolve_with_retry(resolver, REF, max_retries=2, interval=0)
    assert exc.value.details["attempts"] == 3
    assert resolver.count(REF) == 3


@pytest.mark.parametrize("error", [SecretNotFoundError("nope"), AuthDeniedError("denied")])
def test_terminal_errors_are_not_retried(error):
    resolver = FakeResolver({REF: error})
    with pytest.raises(type(error)):
        resolve_with_retry(resolver, REF, max_retries=5, interval=0)
    assert resolver.count(REF) == 1


def test_abort_interrupts_retry_wait():
    abort = threading.Event()
    abort.set()
    resolver = FakeResolver({REF: VaultUnavailableError("down")})
    with pytest.raises(VaultUnavailableError) as exc:
        resolve_with_retry(resolver, REF, max_retries=10, interval=60, abort=abort)
    assert exc.value.details["interrupted"] is True
    assert resolver.count(REF) == 1


def test_str_result_is_encoded():
    assert resolve_with_retry(FakeResolver({REF: lambda n: "texto"}), REF, max_retries=0, interval=0) == b"texto"
