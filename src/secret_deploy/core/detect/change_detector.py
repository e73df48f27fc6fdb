# src/secret_deploy/core/detect/change_detector.py
"""
Change Detector do Secret Deploy.

Classifica cada secret resolvido comparando o digest do conteúdo recém
obtido com o `HashRecord` persistido na última run bem-sucedida.

Classificação:
    - NEW       → secret ausente do Hash Store (tratado como mudança)
    - CHANGED   → digest diferente do registrado, ou destino ausente em disco
    - UNCHANGED → digest idêntico e destino presente; conteúdo não é
                  reescrito, mas ownership/permissões/symlinks são
                  reafirmados pelo Materializer

Invariantes:
    - A classificação depende apenas do digest, do registro e da existência
      do destino (nunca do conteúdo em disco)
    - O conteúdo do secret nunca é retido no resultado
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from secret_deploy.core.config.hashing import compute_content_hash
from secret_deploy.core.store.hash_store import HashRecord


class ChangeKind(str, Enum):
    """Classificação de mudança de um secret nesta run."""

    NEW = "new"
    CHANGED = "changed"
    UNCHANGED = "unchanged"

    @property
    def requires_write(self) -> bool:
        return self is not ChangeKind.UNCHANGED


@dataclass(frozen=True)
class Classification:
    """Resultado da detecção para um secret (sem o conteúdo)."""

    secret_name: str
    kind: ChangeKind
    content_hash: str
    previous_hash: Optional[str] = None
    reason: str = ""


class ChangeDetector:
    """Compara digests contra o snapshot do Hash Store carregado no início da run."""

    def __init__(self, records: Mapping[str, HashRecord]):
        self._records = dict(records)

    def classify(self, *, secret_name: str, content: bytes, destination: str) -> Classification:
        digest = compute_content_hash(content)
        record = self._records.get(secret_name)

        if record is None:
            return Classification(secret_name, ChangeKind.NEW, digest, None, "sem registro no Hash Store")

        if record.content_hash != digest:
            return Classification(
                secret_name, ChangeKind.CHANGED, digest, record.content_hash, "digest divergente"
            )

        if not os.path.lexists(destination) or os.path.islink(destination):
            return Classification(
                secret_name, ChangeKind.CHANGED, digest, record.content_hash, "destino ausente em disco"
            )

        return Classification(secret_name, ChangeKind.UNCHANGED, digest, record.content_hash, "digest idêntico")
