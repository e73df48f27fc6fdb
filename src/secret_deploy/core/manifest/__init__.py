# src/secret_deploy/core/manifest/__init__.py
"""
Manifest de secrets do Secret Deploy.

Este pacote define o modelo declarativo de *quais* secrets existem, *onde*
cada um deve ser materializado e *quais serviços* dependem de cada um.

Componentes:
    - schema    → SecretSpec, SecretManifest, ServiceAction e parsing de itens
    - templates → expansão de `pathTemplate` / `path` com placeholders `{var}`
    - loader    → leitura, merge e validação global de múltiplos manifests

Invariantes:
    - O manifest é construído uma única vez e é somente leitura na run
    - Cada destino e cada symlink é único dentro da run
"""

from .loader import ManifestSource, load_manifests, manifest_fingerprint, secret_paths
from .schema import (
    DetailedService,
    SecretManifest,
    SecretSpec,
    ServiceAction,
    SimpleService,
)
from .templates import expand_template, template_variables

__all__ = [
    "DetailedService",
    "ManifestSource",
    "SecretManifest",
    "SecretSpec",
    "ServiceAction",
    "SimpleService",
    "expand_template",
    "load_manifests",
    "manifest_fingerprint",
    "secret_paths",
    "template_variables",
]
