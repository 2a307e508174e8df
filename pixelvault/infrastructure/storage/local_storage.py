import os
import re
import secrets
import tempfile
import time
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from ...config import settings
from ...application.ports.blob_store import BlobStore, StoredBlob
from ...exceptions import BlobStoreError, BlobWriteFailure, NotFound

logger = logging.getLogger(__name__)

TEMP_PREFIX = ".upload-"
MAX_NAME_ATTEMPTS = 5
_EXT_RE = re.compile(r"^\.[a-z0-9]{1,10}$")
_OWNER_RE = re.compile(r"[^A-Za-z0-9_-]")


class LocalBlobStore(BlobStore):
    """Stores blobs as files under ``<root>/<subdir>``.

    Data is written to a temp file in the target directory and then hard
    linked into its final name, so a stored name is either absent or
    complete, and an existing file is never overwritten.
    """

    def __init__(self, root: Optional[str] = None, subdir: Optional[str] = None) -> None:
        self.root = Path(root or settings.UPLOAD_DIR).resolve()
        self.subdir = settings.IMAGE_SUBDIR if subdir is None else subdir

    def _unique_name(self, suggested_name: str, owner_id: str) -> str:
        ext = os.path.splitext(suggested_name or "")[1].lower()
        if not _EXT_RE.match(ext):
            ext = ""
        owner = _OWNER_RE.sub("", owner_id or "") or "anon"
        unique_suffix = f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}"
        return f"{owner}-{unique_suffix}{ext}"

    def _path_for(self, locator: str) -> Path:
        path = (self.root / locator).resolve()
        if self.root not in path.parents:
            raise BlobStoreError(f"Invalid locator: {locator}")
        return path

    def put(self, data: bytes, suggested_name: str, owner_id: str) -> StoredBlob:
        dest_dir = self.root / self.subdir if self.subdir else self.root
        tmp_path = None
        try:
            dest_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=dest_dir, prefix=TEMP_PREFIX, suffix=".part")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            for _ in range(MAX_NAME_ATTEMPTS):
                stored_name = self._unique_name(suggested_name, owner_id)
                try:
                    os.link(tmp_path, dest_dir / stored_name)
                except FileExistsError:
                    continue
                break
            else:
                raise BlobWriteFailure("Could not allocate a unique file name")
        except OSError as exc:
            logger.error(f"Error writing blob for {suggested_name}: {exc}")
            raise BlobWriteFailure(f"Failed to write {suggested_name}") from exc
        finally:
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
                except OSError as exc:
                    logger.warning(f"Could not remove temp file {tmp_path}: {exc}")

        locator = f"{self.subdir}/{stored_name}" if self.subdir else stored_name
        return StoredBlob(locator=locator, stored_name=stored_name, size=len(data))

    def delete(self, locator: str) -> bool:
        path = self._path_for(locator)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise BlobStoreError(f"Failed to delete {locator}: {exc}") from exc

    def exists(self, locator: str) -> bool:
        try:
            return self._path_for(locator).is_file()
        except BlobStoreError:
            return False

    def read(self, locator: str) -> bytes:
        try:
            return self._path_for(locator).read_bytes()
        except FileNotFoundError:
            raise NotFound(f"Blob not found: {locator}")
        except OSError as exc:
            raise BlobStoreError(f"Failed to read {locator}: {exc}") from exc

    def resolve(self, locator: str) -> Path:
        return self._path_for(locator)

    def list_locators(self) -> List[str]:
        base = self.root / self.subdir if self.subdir else self.root
        if not base.is_dir():
            return []
        locators = []
        for path in base.rglob("*"):
            if path.is_file() and not path.name.startswith(TEMP_PREFIX):
                locators.append(path.relative_to(self.root).as_posix())
        return sorted(locators)

    def modified_at(self, locator: str) -> Optional[datetime]:
        try:
            mtime = self._path_for(locator).stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise BlobStoreError(f"Failed to stat {locator}: {exc}") from exc
        return datetime.fromtimestamp(mtime, tz=timezone.utc).replace(tzinfo=None)
