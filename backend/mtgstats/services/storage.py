"""Deck image files on disk.

Files live in ``UPLOAD_DIR/decks`` as ``<deck_id>.<ext>`` (image) and
``<deck_id>_avatar.<ext>`` (avatar). Decks store the public URL,
``/uploads/decks/<file>``, which the app serves from ``UPLOAD_DIR``.
"""
import base64
import binascii
import os
import shutil

from flask import current_app

from mtgstats.errors import InvalidInput, StorageFailure

DECKS_SUBDIR = 'decks'
URL_PREFIX = '/uploads/'


def upload_root():
    return os.path.abspath(current_app.config.get('UPLOAD_DIR') or './uploads')


def detect_image_extension(head: bytes):
    if head.startswith(b'\xff\xd8\xff'):
        return '.jpg'
    if head.startswith(b'\x89PNG\r\n\x1a\n'):
        return '.png'
    if len(head) >= 12 and head[:4] == b'RIFF' and head[8:12] == b'WEBP':
        return '.webp'
    return None


def path_from_url(url):
    """Map ``/uploads/decks/1.png`` to its path on disk, or None if it isn't ours."""
    if not url or not url.startswith(URL_PREFIX):
        return None
    rel = url[len(URL_PREFIX):].split('?', 1)[0]
    if not rel or '..' in rel.split('/'):
        return None
    return os.path.join(upload_root(), *rel.split('/'))


def check_image(file_storage):
    """Read an upload and validate size and type; returns ``(data, ext)``."""
    data = file_storage.read()
    max_size = int(current_app.config.get('MAX_IMAGE_SIZE', 5 * 1024 * 1024))
    if len(data) > max_size:
        raise InvalidInput(f'File must not exceed {max_size // (1024 * 1024)} MB')
    ext = detect_image_extension(data[:16])
    if ext is None:
        raise InvalidInput('Allowed formats: JPEG, PNG, WebP')
    return data, ext


def write_deck_image(data: bytes, ext: str, deck_id: int, suffix: str = '') -> str:
    directory = os.path.join(upload_root(), DECKS_SUBDIR)
    file_name = f'{deck_id}{suffix}{ext}'
    try:
        os.makedirs(directory, exist_ok=True)
        # A replaced upload may have had another extension
        for stale in os.listdir(directory):
            if os.path.splitext(stale)[0] == f'{deck_id}{suffix}' and stale != file_name:
                os.remove(os.path.join(directory, stale))
        with open(os.path.join(directory, file_name), 'wb') as fh:
            fh.write(data)
    except OSError as exc:
        current_app.logger.error(f"[storage] saving {file_name} failed: {exc}")
        raise StorageFailure('Failed to save file')
    return f'{URL_PREFIX}{DECKS_SUBDIR}/{file_name}'


def remove_file(url) -> None:
    path = path_from_url(url)
    if path and os.path.isfile(path):
        try:
            os.remove(path)
        except OSError as exc:
            current_app.logger.warning(f"[storage] could not remove {path}: {exc}")


def read_base64(url) -> str:
    path = path_from_url(url)
    if not path:
        return ''
    try:
        with open(path, 'rb') as fh:
            return base64.b64encode(fh.read()).decode('ascii')
    except OSError as exc:
        current_app.logger.error(f"[storage] reading {path} failed: {exc}")
        raise StorageFailure('Failed to read deck image file')


def decode_base64(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        raise InvalidInput('Image data is not valid base64')


def reset_decks_dir(files) -> None:
    """Recreate ``UPLOAD_DIR/decks`` holding exactly ``files`` ({url: bytes})."""
    directory = os.path.join(upload_root(), DECKS_SUBDIR)
    try:
        shutil.rmtree(directory, ignore_errors=True)
        os.makedirs(directory, exist_ok=True)
        for url, content in files.items():
            path = path_from_url(url)
            if not path:
                continue
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(path, 'wb') as fh:
                fh.write(content)
    except OSError as exc:
        current_app.logger.error(f"[storage] restoring deck images failed: {exc}")
        raise StorageFailure('Database restored, but deck images could not be written')
