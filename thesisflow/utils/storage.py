"""File store for uploaded theses, rendered reviews and plagiarism reports."""

import logging
import uuid
from pathlib import Path
from typing import Optional, Protocol

from fastapi import UploadFile

from thesisflow.errors import NotFoundError, TransientInfraError

logger = logging.getLogger(__name__)


class FileStore(Protocol):
    def store(self, data: bytes, *, category: str, suffix: str = "") -> str: ...

    def fetch(self, file_ref: str) -> bytes: ...

    def exists(self, file_ref: str) -> bool: ...


def ensure_directory(path: Path) -> None:
    """Create the directory if it does not exist."""

    path.mkdir(parents=True, exist_ok=True)


class LocalFileStore:
    """Stores blobs under ``root/<category>/<uuid><suffix>``.

    A ``file_ref`` is the path relative to ``root``; refs that would escape
    the root are treated as missing.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _resolve(self, file_ref: str) -> Optional[Path]:
        root = self.root.resolve()
        path = (root / file_ref).resolve()
        if root != path and root not in path.parents:
            return None
        return path

    def store(self, data: bytes, *, category: str, suffix: str = "") -> str:
        file_ref = f"{category}/{uuid.uuid4().hex}{suffix}"
        destination = self.root / file_ref
        try:
            ensure_directory(destination.parent)
            with destination.open("wb") as f:
                f.write(data)
        except OSError as exc:
            logger.error("File store write failed for %s: %s", file_ref, exc)
            raise TransientInfraError("File store is unavailable", service="file_store") from exc
        logger.info("Stored %d bytes as %s", len(data), file_ref)
        return file_ref

    def fetch(self, file_ref: str) -> bytes:
        path = self._resolve(file_ref)
        if path is None or not path.is_file():
            raise NotFoundError("File", file_ref)
        try:
            return path.read_bytes()
        except OSError as exc:
            logger.error("File store read failed for %s: %s", file_ref, exc)
            raise TransientInfraError("File store is unavailable", service="file_store") from exc

    def exists(self, file_ref: str) -> bool:
        path = self._resolve(file_ref)
        return path is not None and path.is_file()


async def read_upload(upload: UploadFile) -> bytes:
    """Read the whole upload and rewind it."""

    data = await upload.read()
    await upload.seek(0)
    return data


def upload_suffix(upload: UploadFile, default: str = ".pdf") -> str:
    name = upload.filename or ""
    suffix = Path(name).suffix.lower()
    return suffix if suffix and len(suffix) <= 10 else default
