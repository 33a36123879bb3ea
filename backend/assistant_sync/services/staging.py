"""Temporary files for staging upload content.

The remote upload API takes a path, so string content is written to disk
right before the call and removed on every exit path. Each staging uses its
own private directory, so the caller's filename is preserved (the remote
service names the file after it) without two concurrent uploads of the same
name clobbering each other.
"""

import os
import shutil
import tempfile
import uuid
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from assistant_sync.constants import UPLOAD_TEMP_PREFIX

logger = structlog.get_logger(__name__)


def _safe_filename(filename: str | None) -> str:
    name = os.path.basename(filename or "")
    if name in ("", ".", ".."):
        return f"data-{uuid.uuid4()}.txt"
    return name


@contextmanager
def staged_upload(content: str, filename: str | None = None) -> Iterator[str]:
    """
    Write content to a temporary file and yield its path.

    Cleanup failures are logged and never raised, so they cannot change the
    outcome of the upload.

    Args:
        content: Text to write (UTF-8).
        filename: Name for the file. Directory components are stripped.

    Yields:
        Absolute path of the staged file.
    """
    directory = tempfile.mkdtemp(prefix=UPLOAD_TEMP_PREFIX)
    path = os.path.join(directory, _safe_filename(filename))
    try:
        with open(path, "w", encoding="utf-8") as f:
            f.write(content)
        yield path
    finally:
        try:
            shutil.rmtree(directory)
        except OSError as e:
            logger.warning("staged_upload_cleanup_failed", path=path, error=str(e))
