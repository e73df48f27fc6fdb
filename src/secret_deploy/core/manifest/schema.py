# src/secret_deploy/core/manifest/schema.py
"""
Tipos canônicos do manifest de secrets.

Este módulo define as estruturas imutáveis que descrevem *o que* deve ser
materializado em disco e *quem* depende de cada secret, além das funções
de parsing/normalização de um item bruto (dict vindo de JSON/YAML).

Componentes principais:
    - SimpleService / DetailedService → variante `ServiceAction` normalizada
    - SecretSpec                      → descritor de um secret
    - SecretManifest                  → sequência ordenada de SecretSpec já resolvida
    - parse_secret / parse_services   → validação estrutural de itens brutos

Formato de `services` aceito no documento:

    "services": ["nginx", "php-fpm"]

    "services": {
        "nginx": {"restart": false, "signal": "SIGHUP"},
        "app":   {"after": ["postgresql"]}
    }

    "services": ["nginx", {"name": "app", "after": ["postgresql"]}]

Invariantes:
    - Objetos são imutáveis (frozen) durante toda a run
    - `mode` sempre tem 3 ou 4 dígitos octais, sem caracteres extras
    - `reference` sempre satisfaz a gramática `scheme://vault/item/field`
    - Serviços nunca listam a si mesmos em `after`

Limites explícitos:
    - Não expande templates de caminho (ver `templates`)
    - Não detecta colisões entre secrets (ver `loader`)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from secret_deploy.core.config.errors import (
    InvalidModeError,
    SchemaValidationError,
    ServiceDefinitionError,
)


MODE_PATTERN = re.compile(r"^[0-7]{3,4}\Z")
REFERENCE_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://[^/]+/[^/]+/.+\Z")

DEFAULT_MODE = "0600"

SECRET_KEYS = frozenset(
    {"name", "reference", "path", "owner", "group", "mode", "symlinks", "variables", "services"}
)
SERVICE_KEYS = frozenset({"name", "restart", "signal", "after"})


# ---------------------------------------------------------------------------
# ServiceAction
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SimpleService:
    """Serviço referenciado apenas pelo nome: ação padrão `restart`."""

    name: str

    @property
    def restart(self) -> bool:
        return True

    @property
    def signal(self) -> Optional[str]:
        return None

    @property
    def after(self) -> Tuple[str, ...]:
        return ()


@dataclass(frozen=True)
class DetailedService:
    """Serviço com overrides explícitos de ação e ordenação."""

    name: str
    restart: bool = True
    signal: Optional[str] = None
    after: Tuple[str, ...] = ()


ServiceAction = Union[SimpleService, DetailedService]


def service_action_to_dict(action: ServiceAction) -> Dict[str, Any]:
    if isinstance(action, SimpleService):
        return {"name": action.name}
    return {
        "name": action.name,
        "restart": action.restart,
        "signal": action.signal,
        "after": list(action.after),
    }


# ---------------------------------------------------------------------------
# SecretSpec / SecretManifest
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SecretSpec:
    """
    Descritor imutável de um secret a ser materializado.

    Campos:
        - name: chave única do secret
        - reference: localizador no vault (`scheme://vault/item/field`)
        - path: destino canônico absoluto (após a resolução do loader);
          antes da resolução, o valor bruto declarado (ou None)
        - owner / group: dono do arquivo (None = usuário efetivo do processo)
        - mode: permissões em octal (string)
        - symlinks: caminhos adicionais que apontam para `path`
        - variables: variáveis de substituição do template de caminho
        - services: serviços dependentes (ServiceAction normalizada)
        - origin: documento de onde o secret foi lido (diagnóstico)
    """

    name: str
    reference: str
    path: Optional[str] = None
    owner: Optional[str] = None
    group: Optional[str] = None
    mode: str = DEFAULT_MODE
    symlinks: Tuple[str, ...] = ()
    variables: Dict[str, str] = field(default_factory=dict)
    services: Tuple[ServiceAction, ...] = ()
    origin: str = field(default="<memory>", compare=False)

    @property
    def mode_bits(self) -> int:
        return int(self.mode, 8)

    @property
    def service_names(self) -> List[str]:
        return [s.name for s in self.services]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "reference": self.reference,
            "path": self.path,
            "owner": self.owner,
            "group": self.group,
            "mode": self.mode,
            "symlinks": list(self.symlinks),
            "variables": dict(self.variables),
            "services": [service_action_to_dict(s) for s in self.services],
        }


@dataclass(frozen=True)
class SecretManifest:
    """
    Manifest validado e com caminhos resolvidos.

    Produzido uma única vez pelo loader e somente leitura durante a run.
    """

    secrets: Tuple[SecretSpec, ...]
    path_template: Optional[str] = None
    defaults: Dict[str, str] = field(default_factory=dict)
    sources: Tuple[str, ...] = ()

    def __iter__(self):
        return iter(self.secrets)

    def __len__(self) -> int:
        return len(self.secrets)

    def names(self) -> List[str]:
        return [s.name for s in self.secrets]

    def get(self, name: str) -> SecretSpec:
        for spec in self.secrets:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "secrets": [s.to_dict() for s in self.secrets],
            "pathTemplate": self.path_template,
            "defaults": dict(self.defaults),
        }


# ---------------------------------------------------------------------------
# Parsing de itens brutos
# ---------------------------------------------------------------------------

def _require_str(value: Any, field_path: str, *, allow_empty: bool = False) -> str:
    if not isinstance(value, str):
        raise SchemaValidationError(
            f"{field_path} deve ser string, recebido: {type(value).__name__}",
            field=field_path,
        )
    if not allow_empty and not value.strip():
        raise SchemaValidationError(f"{field_path} não pode ser vazio", field=field_path)
    return value


def _optional_str(raw: Dict[str, Any], key: str, field_path: str) -> Optional[str]:
    value = raw.get(key)
    if value is None:
        return None
    return _require_str(value, f"{field_path}.{key}")


def _str_list(value: Any, field_path: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if not isinstance(value, list):
        raise SchemaValidationError(f"{field_path} deve ser lista de strings", field=field_path)
    out: List[str] = []
    for i, item in enumerate(value):
        item = _require_str(item, f"{field_path}[{i}]")
        if item not in out:
            out.append(item)
    return tuple(out)


def _str_map(value: Any, field_path: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise SchemaValidationError(f"{field_path} deve ser mapa string → string", field=field_path)
    out: Dict[str, str] = {}
    for k, v in value.items():
        if not isinstance(k, str) or not k:
            raise SchemaValidationError(f"{field_path} contém chave inválida: {k!r}", field=field_path)
        if not isinstance(v, (str, int, float)) or isinstance(v, bool):
            raise SchemaValidationError(
                f"{field_path}.{k} deve ser string, recebido: {type(v).__name__}",
                field=f"{field_path}.{k}",
            )
        out[k] = str(v)
    return out


def validate_mode(mode: Any, field_path: str = "mode") -> str:
    """Valida `mode` como 3 ou 4 dígitos octais, sem espaços nem quebra de linha (ex.: "0644", "600")."""
    if not isinstance(mode, str) or not MODE_PATTERN.match(mode):
        raise InvalidModeError(
            f"{field_path}: '{mode}' não é uma permissão octal válida (ex.: 0644, 0600)",
            field=field_path,
        )
    return mode


def validate_reference(reference: Any, field_path: str = "reference") -> str:
    reference = _require_str(reference, field_path)
    if not REFERENCE_PATTERN.match(reference):
        raise SchemaValidationError(
            f"{field_path}: '{reference}' não segue o formato scheme://vault/item/field",
            field=field_path,
            hint="Exemplo: op://Homelab/Database/password",
        )
    return reference


def _parse_detailed(name: str, raw: Dict[str, Any], field_path: str) -> ServiceAction:
    unknown = sorted(set(raw) - SERVICE_KEYS)
    if unknown:
        raise ServiceDefinitionError(
            f"{field_path} contém chaves desconhecidas: {', '.join(unknown)}",
            field=field_path,
        )

    restart = raw.get("restart", True)
    if not isinstance(restart, bool):
        raise ServiceDefinitionError(f"{field_path}.restart deve ser bool", field=f"{field_path}.restart")

    signal = raw.get("signal")
    if signal is not None:
        signal = _require_str(signal, f"{field_path}.signal")

    after = _str_list(raw.get("after"), f"{field_path}.after")
    if name in after:
        raise ServiceDefinitionError(
            f"Serviço '{name}' lista a si mesmo em 'after'",
            field=f"{field_path}.after",
        )

    if restart is True and signal is None and not after and set(raw) <= {"name"}:
        return SimpleService(name=name)

    return DetailedService(name=name, restart=restart, signal=signal, after=after)


def parse_services(value: Any, field_path: str = "services") -> Tuple[ServiceAction, ...]:
    """
    Normaliza o campo `services` (lista ou mapa) em uma tupla de ServiceAction.

    Serviços repetidos dentro do mesmo secret são rejeitados.
    """
    if value is None:
        return ()

    items: List[ServiceAction] = []

    if isinstance(value, dict):
        for name, cfg in value.items():
            name = _require_str(name, f"{field_path} (nome)")
            sub = f"{field_path}.{name}"
            if cfg is None or cfg is True:
                items.append(SimpleService(name=name))
            elif isinstance(cfg, dict):
                items.append(_parse_detailed(name, cfg, sub))
            else:
                raise ServiceDefinitionError(f"{sub} deve ser um mapa de overrides", field=sub)

    elif isinstance(value, list):
        for i, entry in enumerate(value):
            sub = f"{field_path}[{i}]"
            if isinstance(entry, str):
                items.append(SimpleService(name=_require_str(entry, sub)))
            elif isinstance(entry, dict):
                name = _require_str(entry.get("name"), f"{sub}.name")
                items.append(_parse_detailed(name, entry, sub))
            else:
                raise ServiceDefinitionError(f"{sub} deve ser string ou mapa", field=sub)

    else:
        raise ServiceDefinitionError(f"{field_path} deve ser lista ou mapa", field=field_path)

    seen = set()
    for action in items:
        if action.name in seen:
            raise ServiceDefinitionError(
                f"Serviço '{action.name}' declarado mais de uma vez em {field_path}",
                field=field_path,
            )
        seen.add(action.name)

    return tuple(items)


def parse_secret(raw: Any, *, index: int, origin: str) -> SecretSpec:
    """
    Valida um item bruto de `secrets[]` e produz um SecretSpec não resolvido.

    O campo `path` mantém o valor declarado (pode conter placeholders);
    a resolução do destino canônico é responsabilidade do loader.
    """
    field_path = f"secrets[{index}]"
    if not isinstance(raw, dict):
        raise SchemaValidationError(
            f"{field_path} deve ser um mapa, recebido: {type(raw).__name__} ({origin})",
            field=field_path,
        )

    unknown = sorted(set(raw) - SECRET_KEYS)
    if unknown:
        raise SchemaValidationError(
            f"{field_path} contém chaves desconhecidas: {', '.join(unknown)} ({origin})",
            field=field_path,
            hint=f"Chaves aceitas: {', '.join(sorted(SECRET_KEYS))}",
        )

    name = _require_str(raw.get("name"), f"{field_path}.name")
    if name.startswith("/") or ".." in name.split("/") or "\x00" in name:
        raise SchemaValidationError(
            f"{field_path}.name inválido: '{name}' (não pode ser absoluto nem conter '..')",
            field=f"{field_path}.name",
        )

    reference = validate_reference(raw.get("reference"), f"{field_path}.reference")

    mode = raw.get("mode", DEFAULT_MODE)
    validate_mode(mode, f"{field_path}.mode")

    return SecretSpec(
        name=name,
        reference=reference,
        path=_optional_str(raw, "path", field_path),
        owner=_optional_str(raw, "owner", field_path),
        group=_optional_str(raw, "group", field_path),
        mode=mode,
        symlinks=_str_list(raw.get("symlinks"), f"{field_path}.symlinks"),
        variables=_str_map(raw.get("variables"), f"{field_path}.variables"),
        services=parse_services(raw.get("services"), f"{field_path}.services"),
        origin=origin,
    )
