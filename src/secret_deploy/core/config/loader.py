# src/secret_deploy/core/config/loader.py
"""
Loader canônico de documentos de configuração do Secret Deploy.

Este módulo é responsável por ler documentos declarativos (manifests de
secrets e arquivos de política do engine) a partir do disco ou de bytes
em memória, validando requisitos estruturais mínimos.

A política efetiva do engine é resolvida a partir de:
    - um arquivo de defaults (obrigatório)
    - um arquivo local de overrides (opcional)

Responsabilidades do módulo:
    - Carregar documentos em YAML ou JSON
    - Decodificar bytes (JSON) fornecidos diretamente pelo chamador
    - Validar o tipo raiz (dict)
    - Resolver a configuração final via deep-merge determinístico

Princípios fundamentais:
    - Configuração é declarativa e explícita
    - Erros estruturais são tratados como falhas fatais (`ConfigError`)
    - A mesma entrada sempre produz a mesma configuração final

Limites explícitos:
    - Não valida o schema de secrets (ver `core.manifest.schema`)
    - Não interage com vault, filesystem de destino ou serviços
"""

from pathlib import Path
from typing import Any, Dict, Optional, Union
import json

import yaml  # PyYAML

from .merge import deep_merge
from .errors import (
    InvalidManifestRootTypeError,
    ManifestNotFoundError,
    ManifestParseError,
    UnsupportedManifestFormatError,
)


def _ensure_root(data: Any, origin: str) -> Dict[str, Any]:
    if data is None:
        data = {}

    if not isinstance(data, dict):
        raise InvalidManifestRootTypeError(
            f"Raiz do documento deve ser dict, recebido: {type(data).__name__} ({origin})"
        )

    return data


def load_document(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Carrega um documento de configuração e valida sua estrutura básica.

    Formatos suportados (v1):
        - YAML (.yaml, .yml)
        - JSON (.json)

    Decisões arquiteturais:
        - O arquivo deve existir no momento do carregamento
        - O conteúdo raiz deve ser um dicionário (`dict`)
        - Arquivos vazios são interpretados como dicionários vazios
        - Formatos não suportados geram erro explícito

    Args:
        path (Union[str, Path]): Caminho para o documento.

    Returns:
        Dict[str, Any]: Conteúdo do documento carregado como dicionário.

    Raises:
        ManifestNotFoundError: Se o arquivo não existir.
        UnsupportedManifestFormatError: Se o formato do arquivo não for suportado.
        ManifestParseError: Se o conteúdo não puder ser decodificado.
        InvalidManifestRootTypeError: Se o conteúdo raiz não for um dicionário.
    """
    path = Path(path)
    if not path.is_file():
        raise ManifestNotFoundError(
            f"Arquivo não encontrado: {path}",
            hint="Verifique o caminho informado e se o arquivo existe (ls -la <path>)",
        )

    suffix = path.suffix.lower()

    try:
        if suffix in {".yaml", ".yml"}:
            with path.open("r", encoding="utf-8") as f:
                data = yaml.safe_load(f)

        elif suffix == ".json":
            with path.open("r", encoding="utf-8") as f:
                data = json.load(f)

        else:
            raise UnsupportedManifestFormatError(
                f"Formato não suportado: {path.suffix or '<sem extensão>'} ({path})",
                hint="Use .json, .yaml ou .yml",
            )
    except (yaml.YAMLError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Conteúdo inválido em {path}: {e}") from e

    return _ensure_root(data, str(path))


def parse_document_bytes(data: bytes, *, origin: str = "<bytes>") -> Dict[str, Any]:
    """Decodifica um documento JSON fornecido diretamente como bytes."""
    try:
        decoded = json.loads(data.decode("utf-8")) if data.strip() else None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ManifestParseError(f"Conteúdo JSON inválido em {origin}: {e}") from e

    return _ensure_root(decoded, origin)


def load_config(
    *,
    defaults_path: str,
    local_path: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Carrega e resolve a configuração efetiva do engine.

    Política de resolução:
        - O arquivo de defaults é obrigatório
        - O arquivo local é opcional (ausência não é erro)
        - Quando presente, o local sempre tem prioridade sobre defaults
        - A resolução utiliza `deep_merge` com política determinística

    Args:
        defaults_path (str): Caminho para o arquivo de configuração base.
        local_path (Optional[str]): Caminho opcional para overrides locais.

    Returns:
        Dict[str, Any]: Configuração final resolvida.

    Raises:
        ManifestNotFoundError: Se o arquivo de defaults não existir.
        UnsupportedManifestFormatError: Se o formato do arquivo não for suportado.
        InvalidManifestRootTypeError: Se o conteúdo não for um dicionário.
        ConfigTypeConflictError: Se ocorrer conflito estrutural durante o merge.
    """

    effective = load_document(Path(defaults_path))

    if local_path is not None:
        local_file = Path(local_path)
        if local_file.exists():
            effective = deep_merge(effective, load_document(local_file))

    return effective
