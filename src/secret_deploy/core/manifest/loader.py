# src/secret_deploy/core/manifest/loader.py
"""
Manifest Loader canônico do Secret Deploy.

Este módulo transforma uma ou mais fontes de manifest (arquivos JSON/YAML
ou bytes JSON) em um único `SecretManifest` validado e com todos os
caminhos de destino resolvidos.

Pipeline de carregamento:
    1. leitura de cada fonte (ordem da lista de fontes)
    2. validação estrutural de cada item de `secrets`
    3. resolução do destino de cada secret com o `pathTemplate` e os
       `defaults` **do próprio documento**
    4. merge na ordem das fontes (specs idênticas deduplicadas em silêncio,
       specs divergentes com o mesmo nome rejeitadas)
    5. validações globais: unicidade de destinos e symlinks, coerência das
       declarações de serviços

Resolução do destino de um secret:
    - `path` explícito (placeholders permitidos) → usado
    - senão `pathTemplate` do documento → expandido
    - senão `output_dir/name`
    - `~` é expandido para o diretório home; caminhos relativos são
      ancorados em `output_dir`

Princípios fundamentais:
    - Transformação pura: nenhuma leitura de vault, escrita ou notificação
    - Toda violação é um `ConfigError` levantado antes de qualquer efeito
    - A mesma entrada sempre produz o mesmo manifest

Limites explícitos:
    - Não verifica existência de usuários/grupos no host
    - Não acessa os caminhos de destino
"""

from __future__ import annotations

import os
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from secret_deploy.core.config.errors import (
    DuplicateSecretError,
    PathCollisionError,
    SchemaValidationError,
    ServiceDefinitionError,
)
from secret_deploy.core.config.hashing import compute_config_hash
from secret_deploy.core.config.loader import load_document, parse_document_bytes
from secret_deploy.core.config.policy import DEFAULT_OUTPUT_DIR

from .schema import (
    DetailedService,
    SecretManifest,
    SecretSpec,
    parse_secret,
)
from .templates import build_context, expand_template


ManifestSource = Union[str, os.PathLike, bytes]


def _read_source(source: ManifestSource, index: int) -> Tuple[Dict[str, Any], str]:
    if isinstance(source, (bytes, bytearray)):
        origin = f"<bytes #{index}>"
        return parse_document_bytes(bytes(source), origin=origin), origin
    path = Path(source)
    return load_document(path), str(path)


def _anchor(path: str, output_dir: str) -> str:
    expanded = os.path.expanduser(path)
    if not os.path.isabs(expanded):
        expanded = os.path.join(output_dir, expanded)
    return os.path.normpath(expanded)


def resolve_destination(
    spec: SecretSpec,
    *,
    path_template: Optional[str],
    defaults: Dict[str, str],
    output_dir: str,
) -> SecretSpec:
    """
    Resolve o destino canônico (e os symlinks) de um SecretSpec.

    Returns:
        SecretSpec: nova instância com `path` e `symlinks` absolutos e normalizados.

    Raises:
        MissingTemplateVariableError: Se o template ou o `path` usar variável indefinida.
    """
    context = build_context(name=spec.name, variables=spec.variables, defaults=defaults)

    if spec.path is not None:
        raw = expand_template(spec.path, context, secret=spec.name, field=f"{spec.name}.path")
    elif path_template:
        raw = expand_template(path_template, context, secret=spec.name, field="pathTemplate")
    else:
        raw = spec.name

    destination = _anchor(raw, output_dir)

    symlinks = tuple(
        _anchor(expand_template(link, context, secret=spec.name, field=f"{spec.name}.symlinks"), output_dir)
        for link in spec.symlinks
    )

    return replace(spec, path=destination, symlinks=symlinks)


def _parse_document(
    doc: Dict[str, Any],
    origin: str,
    output_dir: str,
) -> Tuple[List[SecretSpec], Optional[str], Dict[str, str]]:
    secrets_raw = doc.get("secrets")
    if not isinstance(secrets_raw, list) or not secrets_raw:
        raise SchemaValidationError(
            f"Manifest deve definir ao menos um secret em 'secrets' ({origin})",
            field="secrets",
            hint='Exemplo: {"secrets": [{"name": "db-password", "reference": "op://Vault/Database/password"}]}',
        )

    path_template = doc.get("pathTemplate")
    if path_template is not None and (not isinstance(path_template, str) or not path_template.strip()):
        raise SchemaValidationError(f"pathTemplate deve ser string não vazia ({origin})", field="pathTemplate")

    defaults_raw = doc.get("defaults") or {}
    if not isinstance(defaults_raw, dict):
        raise SchemaValidationError(f"defaults deve ser um mapa ({origin})", field="defaults")
    defaults = {str(k): str(v) for k, v in defaults_raw.items()}

    specs = [
        resolve_destination(
            parse_secret(raw, index=i, origin=origin),
            path_template=path_template,
            defaults=defaults,
            output_dir=output_dir,
        )
        for i, raw in enumerate(secrets_raw)
    ]
    return specs, path_template, defaults


def _merge(documents: Iterable[List[SecretSpec]]) -> List[SecretSpec]:
    merged: Dict[str, SecretSpec] = {}
    for specs in documents:
        for spec in specs:
            existing = merged.get(spec.name)
            if existing is None:
                merged[spec.name] = spec
                continue
            if existing == spec:
                continue
            raise DuplicateSecretError(
                f"Secret '{spec.name}' definido com especificações divergentes "
                f"em {existing.origin} e {spec.origin}",
                field=spec.name,
                hint="Remova uma das definições ou torne-as idênticas",
            )
    return list(merged.values())


def _check_paths(secrets: Sequence[SecretSpec]) -> None:
    owners: Dict[str, str] = {}

    def _claim(path: str, label: str) -> None:
        previous = owners.get(path)
        if previous is not None:
            raise PathCollisionError(
                f"Caminho '{path}' reivindicado por {previous} e {label}",
                field=label,
            )
        owners[path] = label

    for spec in secrets:
        _claim(spec.path, f"secret '{spec.name}'")
    for spec in secrets:
        for link in spec.symlinks:
            _claim(link, f"symlink de '{spec.name}'")


def _check_services(secrets: Sequence[SecretSpec]) -> None:
    detailed: Dict[str, Tuple[DetailedService, str]] = {}
    for spec in secrets:
        for action in spec.services:
            if not isinstance(action, DetailedService):
                continue
            seen = detailed.get(action.name)
            if seen is None:
                detailed[action.name] = (action, spec.name)
                continue
            other, other_secret = seen
            if (other.restart, other.signal) != (action.restart, action.signal):
                raise ServiceDefinitionError(
                    f"Serviço '{action.name}' declarado com ações conflitantes "
                    f"nos secrets '{other_secret}' e '{spec.name}'",
                    field=f"{spec.name}.services",
                )


def load_manifests(
    sources: Sequence[ManifestSource],
    *,
    output_dir: str = DEFAULT_OUTPUT_DIR,
) -> SecretManifest:
    """
    Carrega, valida, resolve e mescla manifests de secrets.

    Args:
        sources: Caminhos de arquivos (.json/.yaml/.yml) ou bytes JSON, em ordem de merge.
        output_dir: Diretório base para destinos implícitos e caminhos relativos.

    Returns:
        SecretManifest: manifest imutável, validado e com caminhos absolutos.

    Raises:
        ConfigError: Em qualquer violação de formato, schema, template,
            duplicidade ou colisão de caminhos.
    """
    if not sources:
        raise SchemaValidationError("Nenhuma fonte de manifest informada", field="sources")

    output_dir = os.path.normpath(os.path.expanduser(output_dir))

    documents: List[List[SecretSpec]] = []
    origins: List[str] = []
    path_template: Optional[str] = None
    defaults: Dict[str, str] = {}

    for index, source in enumerate(sources):
        doc, origin = _read_source(source, index)
        specs, doc_template, doc_defaults = _parse_document(doc, origin, output_dir)
        documents.append(specs)
        origins.append(origin)
        if path_template is None:
            path_template = doc_template
        defaults.update(doc_defaults)

    secrets = _merge(documents)
    _check_paths(secrets)
    _check_services(secrets)

    return SecretManifest(
        secrets=tuple(secrets),
        path_template=path_template,
        defaults=defaults,
        sources=tuple(origins),
    )


def secret_paths(manifest: SecretManifest) -> Dict[str, str]:
    """Mapa nome → destino canônico, para consumidores que referenciam os arquivos."""
    return {spec.name: spec.path for spec in manifest.secrets}


def manifest_fingerprint(manifest: SecretManifest) -> str:
    """Identidade estável do manifest mesclado (SHA-256 do JSON canônico)."""
    return compute_config_hash(manifest.to_dict())
