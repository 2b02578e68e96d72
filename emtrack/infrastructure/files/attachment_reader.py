from __future__ import annotations

import base64
import logging
import mimetypes
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any
from uuid import uuid4

from emtrack.domain.errors import StorageFailure, ValidationError

logger = logging.getLogger(__name__)


def to_data_url(content: bytes, mime_type: str) -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


def read_attachment(
    path: str | Path,
    on_loaded: Callable[[dict[str, Any]], Any],
    max_bytes: int,
) -> Any:
    """Read a whole file into a data-URL attachment and hand it to ``on_loaded``.

    The callback fires exactly once, after the read completes. There is no
    cancellation; a large file just takes longer.
    """
    file_path = Path(path)
    try:
        size = file_path.stat().st_size
    except OSError as exc:
        raise StorageFailure(f"Cannot read file: {file_path}") from exc
    if size > max_bytes:
        raise ValidationError(
            f"File {file_path.name!r} exceeds the {max_bytes // (1024 * 1024)} MB limit",
            field="files",
        )
    try:
        content = file_path.read_bytes()
    except OSError as exc:
        raise StorageFailure(f"Cannot read file: {file_path}") from exc

    mime_type = mimetypes.guess_type(file_path.name)[0] or "application/octet-stream"
    attachment = {
        "id": uuid4().hex,
        "name": file_path.name,
        "size": len(content),
        "type": mime_type,
        "data": to_data_url(content, mime_type),
        "uploadedAt": datetime.now(UTC).isoformat(),
    }
    logger.info("Attachment loaded: %s (%s bytes)", file_path.name, len(content))
    return on_loaded(attachment)
