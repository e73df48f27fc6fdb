# src/secret_deploy/core/manifest/templates.py
"""
Expansão de templates de caminho.

Um template de caminho é uma string com placeholders `{variavel}`, por
exemplo `/etc/secrets/{service}/{name}`. As variáveis são resolvidas, em
ordem crescente de precedência, a partir de:

    1. `defaults` do manifest
    2. a variável embutida `name` (nome do secret)
    3. `variables` do próprio secret

Qualquer placeholder sem valor resulta em `MissingTemplateVariableError`
nomeando a variável ausente. Chaves duplas (`{{` e `}}`) produzem chaves
literais.
"""

from __future__ import annotations

import re
from typing import Dict, List, Mapping, Optional

from secret_deploy.core.config.errors import MissingTemplateVariableError, SchemaValidationError


_PLACEHOLDER = re.compile(r"\{\{|\}\}|\{([^{}]*)\}")
_VARIABLE_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_\-]*$")


def template_variables(template: str) -> List[str]:
    """Lista as variáveis usadas em um template, na ordem de aparição."""
    out: List[str] = []
    for m in _PLACEHOLDER.finditer(template):
        var = m.group(1)
        if var is not None and var not in out:
            out.append(var)
    return out


def build_context(
    *,
    name: str,
    variables: Mapping[str, str],
    defaults: Mapping[str, str],
) -> Dict[str, str]:
    context: Dict[str, str] = dict(defaults)
    context["name"] = name
    context.update(variables)
    return context


def expand_template(
    template: str,
    context: Mapping[str, str],
    *,
    secret: Optional[str] = None,
    field: Optional[str] = None,
) -> str:
    """
    Substitui os placeholders de `template` usando `context`.

    Raises:
        MissingTemplateVariableError: Se uma variável não existir em `context`.
        SchemaValidationError: Se um placeholder for sintaticamente inválido
            (ex.: `{}` ou `{a b}`) ou houver chave sem par.
    """

    def _sub(m: "re.Match[str]") -> str:
        token = m.group(0)
        if token == "{{":
            return "{"
        if token == "}}":
            return "}"

        var = m.group(1)
        if not _VARIABLE_NAME.match(var):
            raise SchemaValidationError(
                f"Placeholder inválido '{token}' em '{template}'",
                field=field,
            )
        if var not in context:
            owner = f" do secret '{secret}'" if secret else ""
            raise MissingTemplateVariableError(
                f"Variável de template '{var}' não definida para o caminho{owner}: '{template}'",
                variable=var,
                secret=secret,
                field=field,
                hint=f"Declare '{var}' em variables do secret ou em defaults do manifest",
            )
        return context[var]

    expanded = _PLACEHOLDER.sub(_sub, template)

    # Chaves remanescentes indicam placeholders desbalanceados (ex.: "/etc/{a")
    stripped = _PLACEHOLDER.sub("", template)
    if "{" in stripped or "}" in stripped:
        raise SchemaValidationError(f"Template com chaves desbalanceadas: '{template}'", field=field)

    return expanded
