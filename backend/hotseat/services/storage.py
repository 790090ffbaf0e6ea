"""Save-file validation and on-disk storage."""
import os
import uuid
import zipfile
from typing import Iterable

from werkzeug.utils import secure_filename

from hotseat.errors import BadRequest, PayloadTooLarge, UnsupportedFileType, StorageError


def parse_extensions(raw) -> tuple:
    if isinstance(raw, str):
        raw = raw.split(',')
    return tuple(ext.strip().lower() for ext in raw if ext and ext.strip())


def stream_size(stream) -> int:
    pos = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(pos)
    return size


def validate_upload(upload, max_bytes: int, allowed_extensions: Iterable[str]) -> str:
    """Check an uploaded save and return its sanitized filename.

    The upload is a Werkzeug ``FileStorage``. Raises a client error when the
    name, extension, size or content is not acceptable.
    """
    if upload is None:
        raise BadRequest('file upload failed')

    filename = secure_filename(upload.filename or '')
    if not filename:
        raise BadRequest('invalid filename')

    if not filename.lower().endswith(tuple(allowed_extensions)):
        raise UnsupportedFileType()

    stream = upload.stream
    if stream_size(stream) > max_bytes:
        raise PayloadTooLarge()

    # Saves are zip archives whatever their extension
    stream.seek(0)
    is_zip = zipfile.is_zipfile(stream)
    stream.seek(0)
    if not is_zip:
        raise UnsupportedFileType()
    return filename


def is_path_safe(path: str, base_dir: str) -> bool:
    base = os.path.abspath(base_dir)
    target = os.path.abspath(path)
    return os.path.commonpath([base, target]) == base


def store_unique(saves_dir: str, game_id: str, filename: str, upload) -> str:
    """Write the upload under ``saves_dir/game_id`` with a collision-free name."""
    game_dir = os.path.join(saves_dir, game_id)
    path = os.path.join(game_dir, f"{uuid.uuid4()}_{filename}")
    if not is_path_safe(path, game_dir):
        raise BadRequest('invalid file path')
    try:
        os.makedirs(game_dir, exist_ok=True)
        upload.save(path)
    except OSError as exc:
        remove_file(path)
        raise StorageError() from exc
    return path


def remove_file(path: str) -> bool:
    """Delete a stored file. Returns False if it could not be removed."""
    try:
        os.remove(path)
    except FileNotFoundError:
        return True
    except OSError:
        return False
    return True
