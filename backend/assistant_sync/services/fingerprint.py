"""
Content fingerprinting for data file drift detection.

The fingerprint answers one question: has the declared input of a data file
changed since it was last uploaded? It is stored in the resource signals in
place of the content itself.

Metadata is serialized with sorted keys so that two dicts holding the same
pairs in a different insertion order fingerprint identically. Two different
inputs colliding would read as "no change"; with SHA-256 that risk is
accepted as negligible.
"""

import hashlib
import json
from collections.abc import Mapping


def content_fingerprint(
    content: str,
    filename: str | None = None,
    metadata: Mapping[str, str] | None = None,
) -> str:
    """
    Compute the fingerprint of a data file's declared inputs.

    Args:
        content: File body.
        filename: Optional upload filename. None and "" are equivalent.
        metadata: Optional metadata. None and {} are equivalent.

    Returns:
        Hex digest string.
    """
    canonical = json.dumps(
        {
            "content": content,
            "filename": filename or "",
            "metadata": dict(metadata or {}),
        },
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()
