# src/secret_deploy/core/materialize/materializer.py
"""
File Materializer do Secret Deploy.

Este módulo é o único ponto do engine que escreve no filesystem de
destino. Ele materializa o conteúdo resolvido de um secret garantindo que
o arquivo de destino nunca exista, nem transitoriamente, com conteúdo
incompleto ou permissões incorretas.

Protocolo de escrita (NEW / CHANGED):
    1. cria diretórios pais ausentes com modo 0755
    2. cria arquivo temporário no mesmo diretório do destino
    3. escreve o conteúdo, flush + fsync
    4. aplica mode/owner/group no arquivo temporário
    5. `rename` atômico sobre o destino, fsync do diretório

Reaplicação (UNCHANGED):
    - mode/owner/group são reafirmados no arquivo existente; o conteúdo
      não é tocado

Symlinks:
    - já apontando para o destino canônico → intocado
    - apontando para outro lugar, ou arquivo regular no caminho → erro
      `SymlinkConflictError` (nunca sobrescreve um não-symlink)
    - ausente → criado apontando para o destino canônico

Rollback:
    - `snapshot` preserva, antes da escrita, uma cópia em disco do destino
      anterior (no mesmo diretório, com os metadados originais)
    - `restore` devolve o destino ao estado anterior e remove symlinks
      criados na run; `discard` remove a cópia preservada

Limites explícitos:
    - Não decide se um secret deve ser escrito (ver Change Detector)
    - Não mantém o conteúdo de secrets em memória além da chamada de escrita
"""

from __future__ import annotations

import grp
import os
import pwd
import shutil
import stat
import tempfile
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple, TypeVar

from secret_deploy.core.exceptions import (
    FilesystemError,
    OwnershipLookupError,
    SymlinkConflictError,
)
from secret_deploy.core.manifest.schema import SecretSpec


DIRECTORY_MODE = 0o755

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Ownership
# ---------------------------------------------------------------------------

def resolve_uid(owner: Optional[str]) -> int:
    """Converte nome (ou uid numérico) em uid. None → -1 (não alterar)."""
    if owner is None:
        return -1
    if owner.isdigit():
        return int(owner)
    try:
        return pwd.getpwnam(owner).pw_uid
    except KeyError:
        raise OwnershipLookupError(
            f"Usuário '{owner}' não existe no host",
            details={"owner": owner},
            hint="Crie o usuário ou ajuste o campo owner do secret",
        ) from None


def resolve_gid(group: Optional[str]) -> int:
    """Converte nome (ou gid numérico) em gid. None → -1 (não alterar)."""
    if group is None:
        return -1
    if group.isdigit():
        return int(group)
    try:
        return grp.getgrnam(group).gr_gid
    except KeyError:
        raise OwnershipLookupError(
            f"Grupo '{group}' não existe no host",
            details={"group": group},
            hint="Crie o grupo ou ajuste o campo group do secret",
        ) from None


# ---------------------------------------------------------------------------
# Snapshot (rollback)
# ---------------------------------------------------------------------------

@dataclass
class Snapshot:
    """Estado anterior de um destino, preservado para rollback."""

    secret_name: str
    destination: str
    kind: str  # "file" | "symlink" | "absent" | "untouched"
    backup_path: Optional[str] = None
    link_target: Optional[str] = None
    created_symlinks: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------

class FileMaterializer:
    """Escritas atômicas, reaplicação de metadados e gestão de symlinks."""

    def __init__(self, *, retry_transient: bool = False, max_retries: int = 0, retry_interval: float = 0.0):
        self.retry_transient = retry_transient
        self.max_retries = max_retries
        self.retry_interval = retry_interval

    # -----------------------------
    # Retry de erros transitórios
    # -----------------------------
    def _attempt(self, fn: Callable[[], T]) -> T:
        attempt = 0
        while True:
            try:
                return fn()
            except FilesystemError as e:
                if not (self.retry_transient and e.retryable and attempt < self.max_retries):
                    raise
                attempt += 1
                time.sleep(self.retry_interval)

    # -----------------------------
    # Diretórios
    # -----------------------------
    def _ensure_parent(self, path: str) -> None:
        parent = os.path.dirname(path)
        missing: List[str] = []
        current = parent
        while current and not os.path.isdir(current):
            missing.append(current)
            nxt = os.path.dirname(current)
            if nxt == current:
                break
            current = nxt

        for directory in reversed(missing):
            try:
                os.mkdir(directory, DIRECTORY_MODE)
                os.chmod(directory, DIRECTORY_MODE)
            except FileExistsError:
                if not os.path.isdir(directory):
                    raise FilesystemError(
                        f"Caminho pai '{directory}' existe e não é diretório",
                        path=directory,
                    ) from None
            except OSError as e:
                raise FilesystemError.from_os_error("Criação de diretório", directory, e) from e

    # -----------------------------
    # Escrita atômica
    # -----------------------------
    def write(self, spec: SecretSpec, content: bytes) -> None:
        """Escreve `content` no destino de `spec` de forma atômica."""
        uid, gid = resolve_uid(spec.owner), resolve_gid(spec.group)
        self._attempt(lambda: self._write_once(spec.path, content, spec.mode_bits, uid, gid))

    def _write_once(self, destination: str, content: bytes, mode: int, uid: int, gid: int) -> None:
        self._ensure_parent(destination)
        directory = os.path.dirname(destination)

        tmp_path = None
        try:
            fd, tmp_path = tempfile.mkstemp(
                prefix=f".{os.path.basename(destination)}.", suffix=".tmp", dir=directory
            )
            with os.fdopen(fd, "wb") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
                if uid != -1 or gid != -1:
                    os.fchown(f.fileno(), uid, gid)
                os.fchmod(f.fileno(), mode)
            os.replace(tmp_path, destination)
            tmp_path = None
            _fsync_dir(directory)
        except OSError as e:
            raise FilesystemError.from_os_error("Escrita atômica", destination, e) from e
        finally:
            if tmp_path is not None and os.path.lexists(tmp_path):
                os.unlink(tmp_path)

    # -----------------------------
    # Reaplicação de metadados
    # -----------------------------
    def reassert(self, spec: SecretSpec) -> bool:
        """Reafirma mode/owner/group do destino existente. Retorna True se algo mudou."""
        uid, gid = resolve_uid(spec.owner), resolve_gid(spec.group)
        return self._attempt(lambda: self._reassert_once(spec.path, spec.mode_bits, uid, gid))

    def _reassert_once(self, destination: str, mode: int, uid: int, gid: int) -> bool:
        try:
            st = os.lstat(destination)
            if not stat.S_ISREG(st.st_mode):
                raise FilesystemError(
                    f"Destino '{destination}' não é um arquivo regular",
                    path=destination,
                )
            changed = False
            if (uid != -1 and st.st_uid != uid) or (gid != -1 and st.st_gid != gid):
                os.chown(destination, uid, gid)
                changed = True
            if stat.S_IMODE(st.st_mode) != mode:
                os.chmod(destination, mode)
                changed = True
            return changed
        except OSError as e:
            raise FilesystemError.from_os_error("Reaplicação de metadados", destination, e) from e

    # -----------------------------
    # Symlinks
    # -----------------------------
    @staticmethod
    def _points_to(link: str, destination: str) -> bool:
        target = os.readlink(link)
        if not os.path.isabs(target):
            target = os.path.join(os.path.dirname(link), target)
        if os.path.normpath(target) == os.path.normpath(destination):
            return True
        return os.path.exists(destination) and os.path.realpath(link) == os.path.realpath(destination)

    def ensure_symlinks(self, spec: SecretSpec, *, created: Optional[List[str]] = None) -> List[str]:
        """
        Garante os symlinks de `spec`. Retorna os caminhos criados nesta chamada.

        Quando `created` é informado, cada symlink criado é anexado a essa lista
        assim que existe em disco, inclusive se um symlink seguinte falhar.
        """
        if created is None:
            created = []
        for link in spec.symlinks:
            try:
                if os.path.islink(link):
                    if self._points_to(link, spec.path):
                        continue
                    raise SymlinkConflictError(
                        f"Symlink '{link}' aponta para '{os.readlink(link)}', não para '{spec.path}'",
                        path=link,
                        details={"expected_target": spec.path},
                        hint="Remova o symlink conflitante ou ajuste o manifest",
                    )
                if os.path.lexists(link):
                    raise SymlinkConflictError(
                        f"Caminho de symlink '{link}' já existe e não é um symlink",
                        path=link,
                        details={"expected_target": spec.path},
                        hint="O engine nunca sobrescreve arquivos regulares; mova o arquivo existente",
                    )
                self._ensure_parent(link)
                os.symlink(spec.path, link)
                created.append(link)
            except FilesystemError:
                raise
            except OSError as e:
                raise FilesystemError.from_os_error("Criação de symlink", link, e) from e
        return created

    # -----------------------------
    # Snapshot / restore
    # -----------------------------
    def snapshot(self, spec: SecretSpec, *, preserve_content: bool = True) -> Snapshot:
        """Preserva o estado atual do destino antes de qualquer escrita."""
        destination = spec.path
        if not preserve_content:
            return Snapshot(secret_name=spec.name, destination=destination, kind="untouched")

        try:
            if os.path.islink(destination):
                return Snapshot(
                    secret_name=spec.name,
                    destination=destination,
                    kind="symlink",
                    link_target=os.readlink(destination),
                )
            if not os.path.lexists(destination):
                return Snapshot(secret_name=spec.name, destination=destination, kind="absent")

            st = os.lstat(destination)
            fd, backup = tempfile.mkstemp(
                prefix=f".{os.path.basename(destination)}.", suffix=".bak", dir=os.path.dirname(destination)
            )
            os.close(fd)
            shutil.copy2(destination, backup)
            os.chown(backup, st.st_uid, st.st_gid)
            return Snapshot(secret_name=spec.name, destination=destination, kind="file", backup_path=backup)
        except OSError as e:
            raise FilesystemError.from_os_error("Preservação do destino anterior", destination, e) from e

    def restore(self, snapshot: Snapshot) -> None:
        """Devolve destino e symlinks ao estado capturado em `snapshot`."""
        destination = snapshot.destination
        try:
            for link in snapshot.created_symlinks:
                if os.path.islink(link):
                    os.unlink(link)

            if snapshot.kind == "file" and snapshot.backup_path is not None:
                os.replace(snapshot.backup_path, destination)
                snapshot.backup_path = None
                _fsync_dir(os.path.dirname(destination))
            elif snapshot.kind == "symlink" and snapshot.link_target is not None:
                tmp_link = f"{destination}.restore-{os.getpid()}"
                os.symlink(snapshot.link_target, tmp_link)
                os.replace(tmp_link, destination)
            elif snapshot.kind == "absent" and os.path.lexists(destination):
                os.unlink(destination)
        except OSError as e:
            raise FilesystemError.from_os_error("Rollback do destino", destination, e) from e

    def discard(self, snapshot: Snapshot) -> None:
        """Remove a cópia preservada (run concluída sem rollback)."""
        if snapshot.backup_path is not None and os.path.lexists(snapshot.backup_path):
            try:
                os.unlink(snapshot.backup_path)
            except OSError as e:
                raise FilesystemError.from_os_error("Remoção da cópia preservada", snapshot.backup_path, e) from e
        snapshot.backup_path = None


def _fsync_dir(directory: str) -> None:
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


def read_metadata(path: str) -> Tuple[int, int, int]:
    """(mode, uid, gid) de um arquivo existente, sem seguir symlinks."""
    st = os.lstat(path)
    return stat.S_IMODE(st.st_mode), st.st_uid, st.st_gid
