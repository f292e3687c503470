"""
Evidence storage for flag slips (proof images / PDFs).

The flag workflow hands over bytes + declared content type and keeps the
returned reference verbatim as ``slip_url``. It never reads the file back.

Checks run in ``validate`` before anything is written:
    - content type in the allow-list (PDF, JPEG, PNG, WEBP)
    - size at or below the ceiling (10 MB by default)

LocalEvidenceStore writes under UPLOAD_FOLDER and returns ``/uploads/<name>``,
served back by the ``GET /uploads/<name>`` route.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from flask import current_app
from werkzeug.utils import secure_filename

from reporttracker.core.exceptions import CollaboratorError, ValidationError

logger = logging.getLogger(__name__)

DEFAULT_ALLOWED_TYPES = ("application/pdf", "image/jpeg", "image/png", "image/webp")
DEFAULT_MAX_BYTES = 10 * 1024 * 1024

_EXTENSIONS = {
    "application/pdf": ".pdf",
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}


@dataclass(frozen=True)
class EvidenceUpload:
    """A slip received with a request, not yet stored."""

    data: bytes
    content_type: str
    filename: str = ""

    @classmethod
    def from_file_storage(cls, file_storage) -> EvidenceUpload | None:
        """Build from a werkzeug FileStorage; None when the field was left empty."""
        if file_storage is None or not file_storage.filename:
            return None
        return cls(
            data=file_storage.read(),
            content_type=(file_storage.mimetype or "").lower(),
            filename=file_storage.filename,
        )


class EvidenceStore:
    """Base evidence store: validation shared by every backend."""

    def __init__(self, allowed_types=DEFAULT_ALLOWED_TYPES, max_bytes: int = DEFAULT_MAX_BYTES):
        self.allowed_types = tuple(allowed_types)
        self.max_bytes = max_bytes

    def validate(self, upload: EvidenceUpload) -> None:
        if upload.content_type not in self.allowed_types:
            raise ValidationError(
                "Only images (jpg/png/webp) or PDF are allowed as slip",
                details={"slip": f"unsupported content type '{upload.content_type or 'unknown'}'"},
            )
        if len(upload.data) > self.max_bytes:
            raise ValidationError(
                "Slip file is too large",
                details={"slip": f"must be at most {self.max_bytes} bytes"},
            )
        if not upload.data:
            raise ValidationError("Slip file is empty", details={"slip": "empty file"})

    def store(self, upload: EvidenceUpload) -> str:
        """Persist the upload and return its retrievable reference."""
        raise NotImplementedError

    def delete(self, url: str) -> None:
        raise NotImplementedError


class LocalEvidenceStore(EvidenceStore):
    """Filesystem-backed store for single-server deployments."""

    def __init__(self, base_dir: str, url_prefix: str = "/uploads", **kwargs):
        super().__init__(**kwargs)
        self.base_dir = Path(base_dir)
        self.url_prefix = url_prefix.rstrip("/")

    def _unique_name(self, upload: EvidenceUpload) -> str:
        stem = secure_filename(Path(upload.filename).stem) if upload.filename else ""
        ext = _EXTENSIONS.get(upload.content_type, "")
        name = uuid.uuid4().hex
        return f"{name}-{stem}{ext}" if stem else f"{name}{ext}"

    def path_for(self, name: str) -> Path:
        return self.base_dir / secure_filename(name)

    def store(self, upload: EvidenceUpload) -> str:
        self.validate(upload)
        name = self._unique_name(upload)
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            self.path_for(name).write_bytes(upload.data)
        except OSError as exc:
            logger.error("Evidence write failed in %s: %s", self.base_dir, exc)
            raise CollaboratorError("evidence_store", "Could not store slip file") from exc
        logger.info("Stored slip %s (%s, %d bytes)", name, upload.content_type, len(upload.data))
        return f"{self.url_prefix}/{name}"

    def delete(self, url: str) -> None:
        """Best-effort removal of a stored slip (used when the owning write fails)."""
        if not url or not url.startswith(self.url_prefix + "/"):
            return
        path = self.path_for(url[len(self.url_prefix) + 1:])
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete slip %s: %s", path, exc)


def init_evidence_store(app) -> EvidenceStore:
    """Install the configured store on the app unless one was provided."""
    store = app.extensions.get("evidence_store")
    if store is None:
        store = LocalEvidenceStore(
            app.config["UPLOAD_FOLDER"],
            allowed_types=app.config.get("SLIP_ALLOWED_TYPES", DEFAULT_ALLOWED_TYPES),
            max_bytes=app.config.get("SLIP_MAX_BYTES", DEFAULT_MAX_BYTES),
        )
        app.extensions["evidence_store"] = store
    return store


def get_evidence_store() -> EvidenceStore:
    return current_app.extensions["evidence_store"]
