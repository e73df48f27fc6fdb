# tests/core/detect/test_change_detector.py
"""
Testes do Change Detector.

Classificação esperada:
    - sem registro → NEW
    - digest diferente → CHANGED
    - digest igual e destino presente → UNCHANGED
    - digest igual e destino ausente → CHANGED
"""

from datetime import datetime, timezone

from secret_deploy.core.config.hashing import compute_content_hash
from secret_deploy.core.detect.change_detector import ChangeDetector, ChangeKind
from secret_deploy.core.store.hash_store import HashRecord


def _records(**digests):
    now = datetime.now(timezone.utc)
    return {name: HashRecord(name, digest, now) for name, digest in digests.items()}


def test_new_when_no_record(tmp_path):
    c = ChangeDetector({}).classify(secret_name="a", content=b"x", destination=str(tmp_path / "a"))
    assert c.kind is ChangeKind.NEW
    assert c.kind.requires_write
    assert c.previous_hash is None


def test_changed_when_digest_differs(tmp_path):
    dest = tmp_path / "a"
    dest.write_bytes(b"old")
    detector = ChangeDetector(_records(a=compute_content_hash(b"old")))
    c = detector.classify(secret_name="a", content=b"new", destination=str(dest))
    assert c.kind is ChangeKind.CHANGED
    assert c.content_hash == compute_content_hash(b"new")


def test_unchanged_when_digest_matches_and_file_exists(tmp_path):
    dest = tmp_path / "a"
    dest.write_bytes(b"same")
    detector = ChangeDetector(_records(a=compute_content_hash(b"same")))
    c = detector.classify(secret_name="a", content=b"same", destination=str(dest))
    assert c.kind is ChangeKind.UNCHANGED
    assert not c.kind.requires_write


def test_changed_when_destination_was_deleted(tmp_path):
    """O registro existe mas o arquivo sumiu do disco: precisa ser reescrito."""
    detector = ChangeDetector(_records(a=compute_content_hash(b"same")))
    c = detector.classify(secret_name="a", content=b"same", destination=str(tmp_path / "gone"))
    assert c.kind is ChangeKind.CHANGED
