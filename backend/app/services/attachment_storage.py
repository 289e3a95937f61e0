"""
Stockage disque des pièces jointes de notifications.

Fichiers acceptés : PDF, Excel et images, 10 Mo maximum chacun, 5 par notification.
Le nom sur disque est unique (horodatage + suffixe aléatoire + nom nettoyé).
"""

import os
import re
import time
import logging
import secrets
from pathlib import Path
from typing import List, NamedTuple

from fastapi import UploadFile

from app.config import settings
from app.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

ALLOWED_MIMETYPES = {
    "application/pdf",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "image/jpeg",
    "image/png",
    "image/gif",
    "image/webp",
}

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


class StoredFile(NamedTuple):
    filename: str
    original_name: str
    mimetype: str
    size: int


def upload_dir() -> Path:
    return Path(settings.UPLOAD_DIR)


def ensure_upload_dir() -> None:
    upload_dir().mkdir(parents=True, exist_ok=True)


def sanitize_filename(name: str) -> str:
    return _UNSAFE_CHARS.sub("_", os.path.basename(name or "")) or "fichier"


def unique_filename(original_name: str) -> str:
    return f"{int(time.time() * 1000)}-{secrets.randbelow(10**9)}-{sanitize_filename(original_name)}"


def save_uploads(files: List[UploadFile]) -> List[StoredFile]:
    """
    Valide puis écrit les fichiers sur disque.
    Tout est validé avant la première écriture : un fichier refusé n'en laisse aucun.
    """
    files = [f for f in files if f is not None and f.filename]
    if len(files) > settings.MAX_ATTACHMENTS:
        raise ValidationError(
            f"Vous ne pouvez joindre que {settings.MAX_ATTACHMENTS} fichiers au maximum.",
            error="too_many_files",
        )

    max_bytes = settings.MAX_ATTACHMENT_SIZE_MB * 1024 * 1024
    payloads = []
    for upload in files:
        if upload.content_type not in ALLOWED_MIMETYPES:
            raise ValidationError(
                "Type de fichier invalide. Seuls les fichiers PDF, Excel et images sont acceptés.",
                error="invalid_file_type",
            )
        content = upload.file.read()
        if len(content) > max_bytes:
            raise ValidationError(
                f"Le fichier '{upload.filename}' dépasse {settings.MAX_ATTACHMENT_SIZE_MB} Mo.",
                error="file_too_large",
            )
        payloads.append((upload, content))

    ensure_upload_dir()
    stored = []
    for upload, content in payloads:
        filename = unique_filename(upload.filename)
        (upload_dir() / filename).write_bytes(content)
        stored.append(StoredFile(
            filename=filename,
            original_name=upload.filename,
            mimetype=upload.content_type,
            size=len(content),
        ))
    return stored


def remove_files(filenames: List[str]) -> None:
    for filename in filenames:
        path = upload_dir() / filename
        try:
            path.unlink()
        except FileNotFoundError:
            logger.warning("Pièce jointe déjà absente du disque : %s", filename)


def attachment_path(filename: str) -> Path:
    """Chemin d'un fichier stocké ; 404 s'il n'existe plus sur le disque."""
    path = upload_dir() / sanitize_filename(filename)
    if not path.is_file():
        raise NotFoundError("Fichier introuvable sur le serveur.", error="file_missing")
    return path
