"""Filesystem artifact store with per-artifact lock files and atomic writes."""

from __future__ import annotations

import hashlib
import json
import os
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Union

from .artifact_types import (
    ArtifactMeta,
    ArtifactStore,
    SaveMeta,
    StoreConflict,
    StoreIoError,
    StoreNotFound,
    StoreSerializeError,
)
from .patch import compute_revision

_TEXT_FILE = "text.txt"
_META_FILE = "meta.json"
_SAVE_META_FILE = "last_save_meta.json"
_LOCK_FILE = ".artifact.lock"


def artifact_key(artifact_id: str) -> str:
    """Stable directory name for an artifact: readable prefix plus hash suffix."""
    prefix = "".join(
        ch if (ch.isascii() and ch.isalnum()) or ch in "_-" else "_"
        for ch in artifact_id
    )
    if not prefix:
        prefix = "artifact"
    digest = hashlib.sha256(artifact_id.encode("utf-8")).hexdigest()
    return f"{prefix}_{digest[:12]}"


def _now_unix_millis() -> int:
    return max(0, int(time.time() * 1000))


def _parse_lock_created_unix_ms(raw: str) -> Union[int, None]:
    _, sep, ts = raw.strip().partition(":")
    if not sep or not ts.isdigit():
        return None
    return int(ts)


def _to_json_bytes(payload: dict) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def _read_text_or_empty(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8")
    except FileNotFoundError:
        return ""
    except (OSError, UnicodeDecodeError) as err:
        raise StoreIoError(f"read current artifact text failed: {err}") from err


def _write_atomic_bytes(path: Path, data: bytes) -> None:
    temp_path = path.with_name(f"{path.name or 'tmp'}.tmp-{os.getpid()}")
    try:
        temp_path.write_bytes(data)
    except OSError as err:
        raise StoreIoError(f"write temp file failed at {temp_path}: {err}") from err
    try:
        os.replace(temp_path, path)
    except OSError as err:
        try:
            temp_path.unlink()
        except OSError:
            pass
        raise StoreIoError(f"atomic rename failed {temp_path} -> {path}: {err}") from err


class FsArtifactStore(ArtifactStore):
    """Artifact store keeping each artifact in its own directory under ``root``."""

    LOCK_WAIT_TIMEOUT = 2.0
    LOCK_RETRY_DELAY = 0.005
    LOCK_STALE_AFTER = 30.0

    def __init__(self, root: Union[str, os.PathLike]) -> None:
        self.root = Path(root)

    def _artifact_dir(self, artifact_id: str) -> Path:
        return self.root / artifact_key(artifact_id)

    def _text_path(self, artifact_id: str) -> Path:
        return self._artifact_dir(artifact_id) / _TEXT_FILE

    def _meta_path(self, artifact_id: str) -> Path:
        return self._artifact_dir(artifact_id) / _META_FILE

    def _save_meta_path(self, artifact_id: str) -> Path:
        return self._artifact_dir(artifact_id) / _SAVE_META_FILE

    def _lock_path(self, artifact_id: str) -> Path:
        return self._artifact_dir(artifact_id) / _LOCK_FILE

    def _lock_is_stale(self, path: Path) -> bool:
        stale_window_ms = int(self.LOCK_STALE_AFTER * 1000)
        try:
            created = _parse_lock_created_unix_ms(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            created = None
        if created is not None and _now_unix_millis() - created >= stale_window_ms:
            return True
        try:
            modified_at = path.stat().st_mtime
        except OSError:
            return False
        elapsed = time.time() - modified_at
        if elapsed < 0:
            return False
        return elapsed >= self.LOCK_STALE_AFTER

    def _acquire_lock(self, artifact_id: str) -> tuple:
        lock_path = self._lock_path(artifact_id)
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise StoreIoError(f"create lock dir failed: {err}") from err

        started = time.monotonic()
        while True:
            try:
                fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self._lock_is_stale(lock_path):
                    try:
                        lock_path.unlink()
                        continue
                    except FileNotFoundError:
                        continue
                    except OSError:
                        pass
                if time.monotonic() - started >= self.LOCK_WAIT_TIMEOUT:
                    raise StoreIoError(f"artifact lock timed out: {lock_path}") from None
                time.sleep(self.LOCK_RETRY_DELAY)
                continue
            except OSError as err:
                raise StoreIoError(f"artifact lock failed at {lock_path}: {err}") from err

            payload = f"{os.getpid()}:{_now_unix_millis()}\n".encode("utf-8")
            try:
                os.write(fd, payload)
            except OSError as err:
                os.close(fd)
                raise StoreIoError(f"write lock metadata failed: {err}") from err
            try:
                os.fsync(fd)
            except OSError as err:
                os.close(fd)
                raise StoreIoError(f"sync lock metadata failed: {err}") from err
            return lock_path, fd

    @contextmanager
    def _artifact_lock(self, artifact_id: str) -> Iterator[None]:
        lock_path, fd = self._acquire_lock(artifact_id)
        try:
            yield
        finally:
            try:
                os.fsync(fd)
            except OSError:
                pass
            os.close(fd)
            try:
                lock_path.unlink()
            except OSError:
                pass

    def _prepare_dir(self, artifact_id: str) -> None:
        try:
            self._artifact_dir(artifact_id).mkdir(parents=True, exist_ok=True)
        except OSError as err:
            raise StoreIoError(f"create artifact dir failed: {err}") from err

    def load_text(self, artifact_id: str) -> str:
        path = self._text_path(artifact_id)
        if not path.exists():
            raise StoreNotFound(artifact_id)
        try:
            return path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as err:
            raise StoreIoError(f"read text failed: {err}") from err

    def save_text(self, artifact_id: str, new_text: str, meta: SaveMeta) -> None:
        with self._artifact_lock(artifact_id):
            self._prepare_dir(artifact_id)
            text_path = self._text_path(artifact_id)
            actual_revision = compute_revision(_read_text_or_empty(text_path))
            expected = meta.previous_revision
            if expected is not None and expected != actual_revision:
                raise StoreConflict(expected=expected, actual=actual_revision)

            try:
                payload = _to_json_bytes(meta.to_dict())
            except (TypeError, ValueError) as err:
                raise StoreSerializeError(f"serialize save meta failed: {err}") from err
            # Save metadata first, then the text, so a failure never follows a committed text.
            _write_atomic_bytes(self._save_meta_path(artifact_id), payload)
            _write_atomic_bytes(text_path, new_text.encode("utf-8"))

    def get_meta(self, artifact_id: str) -> ArtifactMeta:
        path = self._meta_path(artifact_id)
        if not path.exists():
            raise StoreNotFound(artifact_id)
        try:
            raw = path.read_bytes()
        except OSError as err:
            raise StoreIoError(f"read file failed: {err}") from err
        try:
            return ArtifactMeta.from_dict(json.loads(raw))
        except ValueError as err:
            raise StoreSerializeError(f"parse artifact meta failed: {err}") from err

    def set_meta(self, artifact_id: str, meta: ArtifactMeta) -> None:
        with self._artifact_lock(artifact_id):
            self._prepare_dir(artifact_id)
            actual_revision = compute_revision(
                _read_text_or_empty(self._text_path(artifact_id))
            )
            if meta.revision != actual_revision:
                raise StoreConflict(expected=meta.revision, actual=actual_revision)
            try:
                payload = _to_json_bytes(meta.to_dict())
            except (TypeError, ValueError) as err:
                raise StoreSerializeError(f"serialize artifact meta failed: {err}") from err
            _write_atomic_bytes(self._meta_path(artifact_id), payload)