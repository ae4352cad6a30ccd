"""Store-safe filenames and object key composition.

Object key layout in the bucket:

    {resource_key}-{filename}            permanent attachment
    {uuid4}-{filename}.tmp               staged upload/copy awaiting finalize
"""

from __future__ import annotations

import re
import uuid
from urllib.parse import unquote

from attachvault.domain.errors import ManifestError

IDENTITY_METADATA_KEY = "attachmentkey"
TEMPORARY_SUFFIX = ".tmp"
# Keys handed out for direct browser uploads must start with this
PRESIGNED_KEY_PREFIX = "tmp"

# Characters that are safe in object keys without any encoding
_UNSAFE_CHARACTERS = re.compile(r"[^a-zA-Z0-9\-!_.*'()]")
_MALFORMED_ESCAPE = re.compile(r"%(?![0-9A-Fa-f]{2})")


def _decode_component(value: str) -> str:
    """Percent-decode ``value``, raising ValueError on a malformed sequence."""
    if _MALFORMED_ESCAPE.search(value):
        raise ValueError(f"malformed percent escape in {value!r}")
    # UnicodeDecodeError (a ValueError) when the escapes are not valid UTF-8
    return unquote(value, errors="strict")


def safe_filename(filename: str) -> str:
    """Canonicalize a user-supplied filename into a store-safe key fragment.

    The name is percent-decoded first (``%21`` -> ``!``). When decoding fails the
    first literal ``%`` is replaced by ``_`` and decoding is retried, so this never
    raises. Every character outside ``[A-Za-z0-9-!_.*'()]`` then becomes ``_``.
    The result is a fixed point: ``safe_filename(safe_filename(x)) == safe_filename(x)``.
    """
    candidate = filename
    while True:
        try:
            decoded = _decode_component(candidate)
            break
        except ValueError:
            # each retry removes one '%', so this terminates
            candidate = candidate.replace("%", "_", 1)
    return _UNSAFE_CHARACTERS.sub("_", decoded)


def temporary_key(filename: str) -> str:
    return f"{uuid.uuid4()}-{filename}{TEMPORARY_SUFFIX}"


def presigned_upload_key() -> str:
    return f"{PRESIGNED_KEY_PREFIX}{uuid.uuid4().hex}"


def is_temporary_key(key: str) -> bool:
    return key.endswith(TEMPORARY_SUFFIX)


def permanent_key(resource_key: str, name: str) -> str:
    return f"{resource_key}-{name}"


def resource_key_from_href(href: str) -> str:
    """``/widgets/w1`` -> ``w1``."""
    return href.split("/")[-1]


def _split_attachment_href(href: str) -> tuple[list[str], int]:
    parts = href.split("/")
    try:
        index = parts.index("attachments")
    except ValueError:
        index = -1
    if index < 1 or index + 1 >= len(parts) or not parts[index + 1]:
        raise ManifestError(
            "invalid.file.href",
            f"{href} does not reference an existing attachment (expected .../<key>/attachments/<file>)",
        )
    return parts, index


def copy_source_key(href: str) -> str:
    """Store key of the attachment an href like ``/widgets/w1/attachments/a.png`` points to."""
    parts, index = _split_attachment_href(href)
    return permanent_key(parts[index - 1], parts[index + 1])


def copy_filename(href: str) -> str:
    parts, index = _split_attachment_href(href)
    return parts[index + 1]
