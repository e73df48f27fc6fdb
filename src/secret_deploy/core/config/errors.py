# src/secret_deploy/core/config/errors.py
"""
Exceções canônicas da camada de configuração do Secret Deploy.

Este módulo define a hierarquia oficial de exceções utilizadas durante
o carregamento, validação estrutural e resolução de manifests de secrets
e da política de execução do engine.

As exceções aqui definidas representam **violações de configuração
explícitas**, detectadas sempre antes de qualquer efeito colateral
(resolução no vault, escrita em disco ou notificação de serviços).

Princípios fundamentais:
    - Exceções são tipadas e semânticas
    - Erros de configuração são sempre fatais e pré-escrita
    - Mensagens de erro nomeiam o campo, o secret ou a variável envolvida

Invariantes:
    - Todas as exceções de configuração herdam de `ConfigError`
    - Nenhuma exceção deste módulo representa falha de vault, filesystem
      ou serviço

Limites explícitos:
    - Não executa deploy
    - Não realiza fallback ou recovery
    - Não depende de Engine, Materializer ou Notifier
"""

from __future__ import annotations

from typing import Optional


class ConfigError(Exception):
    """
    Exceção base para erros de configuração do Secret Deploy.

    Todas as exceções levantadas durante carregamento, validação e
    resolução de manifests ou da política do engine herdam desta classe,
    permitindo captura genérica (`except ConfigError`) pelo chamador.

    Atributos:
        - field: caminho do campo inválido (ex.: `secrets[2].mode`), quando conhecido
        - hint: sugestão acionável para o operador
    """

    def __init__(self, message: str, *, field: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.hint = hint


class ManifestNotFoundError(ConfigError):
    """Arquivo de manifest (ou de política) não encontrado no caminho indicado."""


class UnsupportedManifestFormatError(ConfigError):
    """
    Formato de arquivo não suportado pelo loader.

    Formatos suportados:
        - JSON (.json)
        - YAML (.yaml, .yml)
    """


class ManifestParseError(ConfigError):
    """Conteúdo do arquivo não pôde ser decodificado (JSON/YAML inválido)."""


class InvalidManifestRootTypeError(ConfigError):
    """O conteúdo raiz do manifest (ou da política) não é um dicionário."""


class SchemaValidationError(ConfigError):
    """
    Violação estrutural do schema de um manifest.

    Exemplos:
        - lista `secrets` ausente ou vazia
        - `name` vazio
        - `reference` fora da gramática `scheme://vault/item/field`
        - tipo incorreto em `symlinks`, `variables` ou `services`
    """


class InvalidModeError(SchemaValidationError):
    """O campo `mode` não corresponde ao padrão octal `^[0-7]{3,4}$`."""


class DuplicateSecretError(ConfigError):
    """
    Um mesmo `name` aparece mais de uma vez com especificações divergentes.

    Especificações idênticas entre manifests são deduplicadas
    silenciosamente e não levantam este erro.
    """


class PathCollisionError(ConfigError):
    """
    Dois secrets (ou um secret e um symlink) resolvem para o mesmo caminho.

    Invariante protegida: cada caminho de destino é único dentro de uma run
    e cada symlink aponta para exatamente um destino canônico.
    """


class MissingTemplateVariableError(ConfigError):
    """
    Uma variável usada no `pathTemplate` ou em `path` não pôde ser resolvida.

    A variável precisa existir em `variables` do secret ou em `defaults`
    do manifest. O nome da variável ausente é exposto em `variable`.
    """

    def __init__(self, message: str, *, variable: str, secret: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.variable = variable
        self.secret = secret


class ServiceDefinitionError(SchemaValidationError):
    """
    Definição inválida de serviço dependente.

    Exemplos:
        - serviço que lista a si mesmo em `after`
        - mesmo serviço declarado com ações conflitantes em secrets distintos
    """


class InvalidPolicyError(ConfigError):
    """Valor inválido na política de execução do engine (seção `engine`)."""


class ConfigTypeConflictError(ConfigError):
    """
    Conflito de tipos durante o deep-merge da política de execução.

    Exemplo de conflito:
        - base:     {"engine": {"max_retries": 3}}
        - override: {"engine": "strict"}
    """
