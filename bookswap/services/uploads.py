from __future__ import annotations

import os
import uuid

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from bookswap.errors import ValidationError

ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp"}


def _extension(filename: str) -> str:
    name = secure_filename(filename or "")
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def save_image(file: FileStorage) -> str:
    """Store an uploaded cover under UPLOAD_FOLDER and return its stored name."""
    ext = _extension(file.filename)
    if ext not in ALLOWED_EXTENSIONS:
        raise ValidationError(
            "invalid_file_type",
            "Only image files are allowed",
            allowed=sorted(ALLOWED_EXTENSIONS),
        )

    stored = f"book-{uuid.uuid4().hex}.{ext}"
    folder = current_app.config["UPLOAD_FOLDER"]
    os.makedirs(folder, exist_ok=True)
    file.save(os.path.join(folder, stored))
    return stored


def delete_image(stored: str | None) -> None:
    if not stored:
        return
    path = os.path.join(current_app.config["UPLOAD_FOLDER"], secure_filename(stored))
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError:
        current_app.logger.exception("Error deleting file: %s", stored)
