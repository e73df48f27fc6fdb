# src/secret_deploy/core/config/hashing.py
"""
Hashing canônico do Secret Deploy.

Este módulo concentra as duas funções de identidade usadas pelo engine:

    - `compute_config_hash`: identidade estrutural de uma configuração
      (política efetiva ou manifest mesclado), usada no relatório da run
    - `compute_content_hash`: digest criptográfico do conteúdo resolvido de
      um secret, usado pelo Hash Store e pelo Change Detector

Princípios fundamentais:
    - Hashing determinístico e reprodutível
    - Configuração é serializada em JSON canônico antes do hashing
    - Algoritmo criptográfico estável (SHA-256)

Invariantes:
    - O valor gerado é sempre uma string hexadecimal de 64 caracteres
    - Configurações estruturalmente equivalentes produzem o mesmo hash
    - Conteúdos idênticos produzem o mesmo digest

Limites explícitos:
    - Não persiste hashes (ver `core.store.hash_store`)
    - Não registra o conteúdo do secret em nenhum lugar
"""


import hashlib
import json
from typing import Any, Dict


def compute_config_hash(config: Dict[str, Any]) -> str:
    """
    Gera um hash determinístico de uma configuração.

    Política de hashing (v1):
        - Serialização JSON canônica
        - Ordenação estável de chaves
        - Separadores compactos (sem espaços supérfluos)
        - Codificação UTF-8
        - Algoritmo SHA-256

    Args:
        config (Dict[str, Any]): Configuração efetiva ou manifest em forma de dict.

    Returns:
        str: Hash SHA-256 hexadecimal da configuração.

    Raises:
        TypeError: Se o objeto fornecido não for um dicionário.
    """

    if not isinstance(config, dict):
        raise TypeError(
            f"Config para hashing deve ser dict, recebido: {type(config).__name__}"
        )

    canonical_json = json.dumps(
        config,
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )

    return hashlib.sha256(canonical_json.encode("utf-8")).hexdigest()


def compute_content_hash(content: bytes) -> str:
    """Computa o SHA-256 hexadecimal do conteúdo resolvido de um secret."""
    if not isinstance(content, (bytes, bytearray, memoryview)):
        raise TypeError(
            f"Conteúdo para hashing deve ser bytes, recebido: {type(content).__name__}"
        )
    return hashlib.sha256(bytes(content)).hexdigest()
