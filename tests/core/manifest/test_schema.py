# tests/core/manifest/test_schema.py
"""
Testes do schema de secrets (`parse_secret`, `parse_services`).

Os testes asseguram que:
- `mode` é validado contra o padrão octal e tem default "0600"
- `reference` segue o formato scheme://vault/item/field
- serviços são normalizados em SimpleService / DetailedService
- auto-referência em `after` e serviços repetidos são rejeitados
"""

import pytest

from secret_deploy.core.config.errors import (
    ConfigError,
    InvalidModeError,
    SchemaValidationError,
    ServiceDefinitionError,
)
from secret_deploy.core.manifest.schema import (
    DEFAULT_MODE,
    DetailedService,
    SimpleService,
    parse_secret,
    parse_services,
)


def _raw(**kw):
    base = {"name": "db-password", "reference": "op://Homelab/Database/password"}
    base.update(kw)
    return base


def test_minimal_secret_uses_defaults():
    spec = parse_secret(_raw(), index=0, origin="t")
    assert spec.mode == DEFAULT_MODE == "0600"
    assert spec.mode_bits == 0o600
    assert spec.owner is None and spec.group is None
    assert spec.path is None
    assert spec.services == ()


@pytest.mark.parametrize("mode", ["0644", "600", "0400", "0755"])
def test_valid_modes_are_accepted(mode):
    assert parse_secret(_raw(mode=mode), index=0, origin="t").mode == mode


@pytest.mark.parametrize("mode", ["abc", "0999", "12", "06444", 644, "", "0644\n"])
def test_invalid_modes_are_rejected(mode):
    with pytest.raises(InvalidModeError) as exc:
        parse_secret(_raw(mode=mode), index=3, origin="t")
    assert exc.value.field == "secrets[3].mode"
    assert isinstance(exc.value, ConfigError)


@pytest.mark.parametrize(
    "reference",
    ["Homelab/Database/password", "op://Homelab/Database", "op:///Database/password", "", "op://Homelab/Database/password\n"],
)
def test_invalid_reference_is_rejected(reference):
    with pytest.raises(SchemaValidationError):
        parse_secret(_raw(reference=reference), index=0, origin="t")


def test_unknown_key_is_rejected():
    with pytest.raises(SchemaValidationError) as exc:
        parse_secret(_raw(permissions="0600"), index=0, origin="t")
    assert "permissions" in str(exc.value)


@pytest.mark.parametrize("name", ["", "/etc/shadow", "../escape", "a/../../b"])
def test_invalid_names_are_rejected(name):
    with pytest.raises(SchemaValidationError):
        parse_secret(_raw(name=name), index=0, origin="t")


def test_services_list_normalization():
    """
    Strings viram SimpleService; mapas com overrides viram DetailedService.

    Um mapa contendo apenas `name` é equivalente à forma simples.
    """
    services = parse_services(
        [
            "nginx",
            {"name": "postgres"},
            {"name": "app", "signal": "SIGHUP", "after": ["postgres"]},
            {"name": "worker", "restart": False},
        ]
    )
    assert services[0] == SimpleService("nginx")
    assert services[1] == SimpleService("postgres")
    assert services[2] == DetailedService("app", restart=True, signal="SIGHUP", after=("postgres",))
    assert services[3] == DetailedService("worker", restart=False)


def test_services_map_form():
    services = parse_services({"nginx": None, "app": {"after": ["nginx"]}})
    assert services == (SimpleService("nginx"), DetailedService("app", after=("nginx",)))


def test_service_listing_itself_in_after_is_rejected():
    with pytest.raises(ServiceDefinitionError):
        parse_services([{"name": "app", "after": ["app"]}])


def test_duplicate_service_in_same_secret_is_rejected():
    with pytest.raises(ServiceDefinitionError):
        parse_services(["nginx", {"name": "nginx", "restart": False}])


def test_invalid_restart_type_is_rejected():
    with pytest.raises(ServiceDefinitionError):
        parse_services([{"name": "app", "restart": "yes"}])
