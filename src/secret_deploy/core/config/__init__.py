# src/secret_deploy/core/config/__init__.py

"""
Camada de configuração do Secret Deploy.

Este pacote contém as estruturas e utilitários responsáveis por carregar,
mesclar, validar estruturalmente e identificar os documentos declarativos
consumidos pelo engine: manifests de secrets e política de execução.

Responsabilidades do pacote:
    - Leitura de documentos YAML/JSON (arquivos ou bytes)
    - Resolução da política efetiva via deep-merge determinístico
    - Geração de hash canônico para rastreabilidade e detecção de mudança
    - Hierarquia tipada de erros de configuração (`ConfigError`)

Invariantes:
    - A configuração final é um dicionário puro (dict)
    - Conflitos estruturais são tratados como erro
    - Nenhum efeito colateral ocorre nesta camada

Limites explícitos:
    - Não resolve secrets no vault
    - Não escreve arquivos de destino
"""

from .errors import ConfigError
from .hashing import compute_config_hash, compute_content_hash
from .loader import load_config, load_document, parse_document_bytes
from .merge import deep_merge
from .policy import DeployPolicy

__all__ = [
    "ConfigError",
    "DeployPolicy",
    "compute_config_hash",
    "compute_content_hash",
    "deep_merge",
    "load_config",
    "load_document",
    "parse_document_bytes",
]
