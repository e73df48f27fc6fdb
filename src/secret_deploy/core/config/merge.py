# src/secret_deploy/core/config/merge.py
"""
Utilitário canônico de deep-merge de configuração.

Este módulo implementa a política oficial de deep-merge utilizada pelo
Secret Deploy para resolver a política efetiva do engine a partir de um
arquivo base (defaults) e de overrides locais explícitos.

Política de merge (v1):
    - dict → merge recursivo por chave
    - list → sobrescrita total (sem merge elemento a elemento)
    - escalar → sobrescrita direta
    - None no override → sobrescrita direta (desliga um valor opcional)
    - conflito de tipos → erro estrutural explícito

Invariantes:
    - A mesma entrada sempre produz a mesma saída
    - Nenhum input é mutado durante o processo
    - Conflitos estruturais interrompem o merge

Limites explícitos:
    - Não carrega arquivos
    - Não mescla manifests de secrets (ver `core.manifest.loader`)
    - Não realiza coerção de tipos
"""

from copy import deepcopy
from typing import Any, Dict

from .errors import ConfigTypeConflictError


def _compatible(base_value: Any, override_value: Any) -> bool:
    if base_value is None or override_value is None:
        return True
    # int/float são intercambiáveis em valores numéricos de política (ex.: 0 vs 0.5)
    numeric = (int, float)
    if (
        isinstance(base_value, numeric)
        and isinstance(override_value, numeric)
        and not isinstance(base_value, bool)
        and not isinstance(override_value, bool)
    ):
        return True
    return type(base_value) is type(override_value)


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Realiza um deep-merge determinístico entre dois dicionários de configuração.

    Args:
        base (Dict[str, Any]): Configuração base (ex.: defaults).
        override (Dict[str, Any]): Overrides explícitos da configuração.

    Returns:
        Dict[str, Any]: Nova configuração resultante do deep-merge.

    Raises:
        ConfigTypeConflictError: Se ocorrer conflito de tipo entre base e override.
    """

    if not isinstance(base, dict) or not isinstance(override, dict):
        raise ConfigTypeConflictError(
            f"Deep-merge requer dicts no nível raiz, recebido: "
            f"{type(base).__name__} vs {type(override).__name__}"
        )

    result: Dict[str, Any] = deepcopy(base)

    for key, override_value in override.items():
        if key not in result:
            result[key] = deepcopy(override_value)
            continue

        base_value = result[key]

        # dict -> merge recursivo
        if isinstance(base_value, dict) and isinstance(override_value, dict):
            result[key] = deep_merge(base_value, override_value)
            continue

        # list -> sobrescrita total
        if isinstance(override_value, list) and isinstance(base_value, list):
            result[key] = deepcopy(override_value)
            continue

        if not _compatible(base_value, override_value):
            raise ConfigTypeConflictError(
                f"Conflito de tipo na chave '{key}': "
                f"{type(base_value).__name__} vs {type(override_value).__name__}",
                field=str(key),
            )

        # escalar -> sobrescrita
        result[key] = deepcopy(override_value)

    return result
