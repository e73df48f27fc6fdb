"""Hash Store canônico (v1).

O Hash Store é o único estado persistido entre runs: um mapa
`nome do secret → HashRecord` usado pelo Change Detector para evitar
reescritas e notificações redundantes.

Formato em disco (JSON):

    {
      "db-password": {"hash": "<sha256 hex>", "appliedAt": "2026-01-16T00:00:00+00:00"}
    }

Decisões (v1):
- Um único arquivo, carregado uma vez por run (`load`)
- Gravação única por run (`commit`), após a barreira de escrita
- Substituição atômica: arquivo temporário no mesmo diretório, fsync, rename
- Arquivo ausente equivale a store vazio; arquivo corrompido é erro explícito

Limites explícitos:
- Não armazena conteúdo de secrets, apenas digests
- Não decide quando commitar (responsabilidade do orquestrador)
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Mapping, Union

from secret_deploy.core.exceptions import FilesystemError


class HashStoreCorruptedError(FilesystemError):
    """O arquivo do Hash Store existe mas não pode ser interpretado."""


def _ensure_tzaware_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class HashRecord:
    """Digest e instante da última aplicação bem-sucedida de um secret."""

    secret_name: str
    content_hash: str
    last_applied_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hash": self.content_hash,
            "appliedAt": _ensure_tzaware_utc(self.last_applied_at).isoformat(),
        }

    @classmethod
    def from_dict(cls, secret_name: str, data: Mapping[str, Any]) -> "HashRecord":
        return cls(
            secret_name=secret_name,
            content_hash=str(data["hash"]),
            last_applied_at=_ensure_tzaware_utc(datetime.fromisoformat(str(data["appliedAt"]))),
        )


class HashStore:
    """Store canônica (v1) para load/commit do mapa de digests."""

    def __init__(self, *, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> Dict[str, HashRecord]:
        """Carrega o mapa persistido. Arquivo ausente → mapa vazio."""
        if not self.path.exists():
            return {}

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8") or "{}")
        except OSError as e:
            raise FilesystemError.from_os_error("Leitura do Hash Store", str(self.path), e) from e
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HashStoreCorruptedError(
                f"Hash Store inválido em {self.path}: {e}",
                path=str(self.path),
                hint="Remova o arquivo para forçar a reaplicação de todos os secrets",
            ) from e

        if not isinstance(raw, dict):
            raise HashStoreCorruptedError(
                f"Hash Store deve ser um objeto JSON ({self.path})",
                path=str(self.path),
            )

        records: Dict[str, HashRecord] = {}
        for name, entry in raw.items():
            try:
                records[name] = HashRecord.from_dict(name, entry)
            except (KeyError, TypeError, ValueError) as e:
                raise HashStoreCorruptedError(
                    f"Registro inválido para '{name}' no Hash Store ({self.path}): {e}",
                    path=str(self.path),
                ) from e
        return records

    def commit(self, records: Mapping[str, HashRecord]) -> None:
        """Substitui atomicamente o arquivo persistido pelo mapa fornecido."""
        data = {name: records[name].to_dict() for name in sorted(records)}
        payload = json.dumps(data, ensure_ascii=False, indent=2, sort_keys=True) + "\n"

        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", suffix=".tmp", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.chmod(tmp_name, 0o600)
            os.replace(tmp_name, self.path)
            tmp_name = None
            _fsync_dir(directory)
        except OSError as e:
            raise FilesystemError.from_os_error("Commit do Hash Store", str(self.path), e) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)


def _fsync_dir(directory: Path) -> None:
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError:
        return
    try:
        os.fsync(fd)
    except OSError:
        pass
    finally:
        os.close(fd)


__all__ = ["HashRecord", "HashStore", "HashStoreCorruptedError"]
