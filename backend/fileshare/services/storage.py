import hashlib
import logging
import mimetypes
import os
import shutil
import tempfile
from dataclasses import dataclass
from typing import BinaryIO, Iterator, List, Optional

from fileshare.core.errors import NotFoundError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024  # 1MB chunk size


@dataclass(frozen=True)
class StoredBlob:
    key: str
    size_bytes: int
    content_hash: str


def guess_mime_type(file_name: str, declared: Optional[str] = None) -> str:
    if declared and declared != "application/octet-stream":
        return declared
    mime_type, _ = mimetypes.guess_type(file_name)
    return mime_type or "application/octet-stream"


class LocalBlobStore:
    """
    Content-addressed blob storage spread over several local directories.

    Keys are absolute paths of the form ``<root>/<hash[:2]>/<hash>``, so
    identical uploads share one blob. Keys outside the configured roots are
    rejected.
    """

    def __init__(self, paths: List[str]):
        if not paths:
            raise ValueError("No storage paths configured.")
        self.paths = [os.path.abspath(p) for p in paths]

    def _best_storage_path(self) -> str:
        """
        Selects the storage path with the most available space.
        """
        best_path = None
        max_free_space = -1

        for path in self.paths:
            try:
                os.makedirs(path, exist_ok=True)
                usage = shutil.disk_usage(path)
                if usage.free > max_free_space:
                    max_free_space = usage.free
                    best_path = path
            except OSError as e:
                logger.warning("Could not check disk usage for path %s: %s", path, e)
                continue

        if best_path is None:
            raise OSError("No usable storage paths found.")
        return best_path

    def _resolve(self, key: str) -> str:
        real = os.path.abspath(key)
        for root in self.paths:
            if os.path.commonpath([root, real]) == root:
                return real
        raise NotFoundError("Stored content not found")

    def store(self, stream: BinaryIO) -> StoredBlob:
        root = self._best_storage_path()
        hasher = hashlib.sha256()
        size = 0
        fd, temp_path = tempfile.mkstemp(dir=root, suffix=".part")
        try:
            with os.fdopen(fd, "wb") as out:
                while chunk := stream.read(CHUNK_SIZE):
                    hasher.update(chunk)
                    size += len(chunk)
                    out.write(chunk)
            content_hash = hasher.hexdigest()
            final_dir = os.path.join(root, content_hash[:2])
            os.makedirs(final_dir, exist_ok=True)
            final_path = os.path.join(final_dir, content_hash)
            if os.path.exists(final_path):
                os.remove(temp_path)
            else:
                os.replace(temp_path, final_path)
        except BaseException:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        logger.info("Stored blob %s (%d bytes)", content_hash, size)
        return StoredBlob(key=final_path, size_bytes=size, content_hash=content_hash)

    def exists(self, key: str) -> bool:
        try:
            return os.path.isfile(self._resolve(key))
        except NotFoundError:
            return False

    def size(self, key: str) -> int:
        path = self.path_for(key)
        return os.path.getsize(path)

    def path_for(self, key: str) -> str:
        path = self._resolve(key)
        if not os.path.isfile(path):
            raise NotFoundError("Stored content not found")
        return path

    def stream_bytes(self, key: str, chunk_size: int = CHUNK_SIZE) -> Iterator[bytes]:
        path = self.path_for(key)

        def iterfile():
            with open(path, mode="rb") as file_like:
                while chunk := file_like.read(chunk_size):
                    yield chunk

        return iterfile()

    def delete(self, key: str) -> None:
        try:
            path = self._resolve(key)
        except NotFoundError:
            return
        if os.path.exists(path):
            os.remove(path)
            logger.info("Deleted blob %s", os.path.basename(path))
