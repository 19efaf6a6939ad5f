"""
core.domain.storage — Thin adapter over Django's ``default_storage``.

Services never touch storage backends directly: they hand an uploaded
file to ``FileStorageService.save`` and persist only the returned
``StoredFile`` metadata (handle, original name, MIME type, size).
"""

from __future__ import annotations

import logging
import mimetypes
import uuid
from dataclasses import dataclass
from pathlib import PurePath

from django.conf import settings
from django.core.files.storage import default_storage
from django.core.files.uploadedfile import UploadedFile

from core.domain.exceptions import FileTooLarge, ServiceUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredFile:
    path: str
    filename: str
    mime_type: str
    size_bytes: int


def guess_mime_type(upload: UploadedFile) -> str:
    declared = getattr(upload, "content_type", None)
    if declared:
        return declared
    guessed, _ = mimetypes.guess_type(upload.name or "")
    return guessed or "application/octet-stream"


def is_signature_file(upload: UploadedFile) -> bool:
    """An acceptable signature is any image, or a PDF by MIME type or extension."""
    mime = guess_mime_type(upload)
    return (
        mime.startswith("image/")
        or mime == "application/pdf"
        or (upload.name or "").lower().endswith(".pdf")
    )


class FileStorageService:

    @staticmethod
    def save(upload: UploadedFile, *, folder: str) -> StoredFile:
        """
        Store ``upload`` under ``folder`` with a collision-free name.

        Raises
        ------
        FileTooLarge
            If the file exceeds ``settings.MAX_UPLOAD_BYTES``.
        ServiceUnavailable
            If the storage backend fails.
        """
        size = upload.size or 0
        if size > settings.MAX_UPLOAD_BYTES:
            raise FileTooLarge(
                f"File '{upload.name}' is {size} bytes; "
                f"the limit is {settings.MAX_UPLOAD_MB} MB."
            )

        original = PurePath(upload.name or "upload").name
        target = f"{folder.strip('/')}/{uuid.uuid4().hex}_{original}"
        try:
            path = default_storage.save(target, upload)
        except OSError as exc:
            logger.exception("Storage write failed for %s", target)
            raise ServiceUnavailable("File storage is unavailable.") from exc

        return StoredFile(
            path=path,
            filename=original,
            mime_type=guess_mime_type(upload),
            size_bytes=size,
        )

    @staticmethod
    def open(path: str):
        return default_storage.open(path, "rb")

    @staticmethod
    def delete(path: str) -> None:
        try:
            default_storage.delete(path)
        except OSError:
            logger.exception("Could not remove orphaned file %s", path)


class PendingFiles:
    """
    Files saved inside a unit of work that has not committed yet.

    Use as a context manager around the part of a service that stores
    files and then writes the rows pointing to them.  If the block
    raises, every file it saved is deleted before the exception
    propagates and the surrounding transaction rolls back::

        with PendingFiles() as files:
            stored = files.save(upload, folder="cases/1/documents")
            CaseDocument.objects.create(file_path=stored.path, ...)
    """

    def __init__(self) -> None:
        self.paths: list[str] = []

    def save(self, upload: UploadedFile, *, folder: str) -> StoredFile:
        stored = FileStorageService.save(upload, folder=folder)
        self.paths.append(stored.path)
        return stored

    def __enter__(self) -> PendingFiles:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None:
            for path in reversed(self.paths):
                FileStorageService.delete(path)
            if self.paths:
                logger.info("Removed %d file(s) after a failed write.", len(self.paths))
        return False
