"""Manifest parsing and validation.

The manifest is the JSON ``body`` field sent next to the file parts: an array of
entries (or a single entry) such as::

    {
        "file": "profile.png",
        "attachment": {"key": "18f6f8ea-...", "description": "my file"},
        "resource": {"href": "/widgets/w1"}
    }

An entry may reference an existing attachment with ``fileHref`` instead of
``file``; ``ignoreNotFound`` then tolerates a missing source.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

from loguru import logger
from pydantic import ValidationError

from attachvault.domain.entities.attachment import PendingAttachment, ReceivedFile
from attachvault.domain.errors import ManifestError
from attachvault.domain.models import AttachmentDescriptor
from attachvault.domain.naming import resource_key_from_href, safe_filename


def parse_manifest(raw: Any) -> list[Any]:
    """Turn the raw manifest (JSON text, dict or list) into a list of entries."""
    if raw is None:
        raise ManifestError("missing.body", "Body is required.")

    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise ManifestError("invalid.body", "Body must be UTF-8 encoded JSON.") from e

    if isinstance(raw, str):
        if not raw.strip():
            raise ManifestError("missing.body", "Body is required.")
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ManifestError("invalid.body", f"Body is not valid JSON: {e.msg}") from e

    if isinstance(raw, dict):
        return [raw]
    if isinstance(raw, list):
        return list(raw)
    raise ManifestError("invalid.body", "Body must be a JSON object or an array of objects.")


def validate_shape(entries: Sequence[Any]) -> list[AttachmentDescriptor]:
    """Check every entry has an attachment, a key and a resource.

    Also derives ``resource.key`` (the last segment of ``resource.href``).
    """
    if any(not isinstance(e, dict) or not e.get("attachment") for e in entries):
        raise ManifestError("missing.json.body.attachment", 'each json item needs an "attachment"')

    if any(not isinstance(e["attachment"], dict) or not e["attachment"].get("key") for e in entries):
        raise ManifestError("missing.json.attachment.key", "each attachment json needs a key")

    descriptors = []
    for entry in entries:
        resource = entry.get("resource")
        if not isinstance(resource, dict) or not resource.get("href"):
            raise ManifestError("missing.json.body.resource", "each attachment json needs a resource")

        try:
            descriptor = AttachmentDescriptor.model_validate(entry)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise ManifestError("invalid.body", f"{location}: {first['msg']}") from e

        descriptor.resource.key = resource_key_from_href(descriptor.resource.href)
        descriptors.append(descriptor)

    return descriptors


def normalize_names(descriptors: Sequence[AttachmentDescriptor]) -> None:
    """Apply the safe-name transform to ``file`` and ``attachment.name`` in place."""
    for descriptor in descriptors:
        if descriptor.file:
            descriptor.file = safe_filename(descriptor.file)
        if descriptor.attachment.name:
            descriptor.attachment.name = safe_filename(descriptor.attachment.name)


def match_files_to_descriptors(
    descriptors: Sequence[AttachmentDescriptor],
    files: Sequence[ReceivedFile],
) -> list[PendingAttachment]:
    """Pair each descriptor with its received file.

    Copy descriptors are returned without a file; the copy resolver attaches one.

    Raises:
        ManifestError: ``body.incomplete`` for a received file no entry names,
            ``missing.file`` for an entry whose file was not received.
    """
    named = {d.file for d in descriptors if d.file}
    for received in files:
        if received.filename not in named:
            raise ManifestError(
                "body.incomplete",
                f"{received.filename} needs an accompanying json object in the BODY array.",
            )

    by_name: dict[str, ReceivedFile] = {}
    for received in files:
        if received.filename in by_name:
            logger.warning(f"Duplicate file part {received.filename}, only the first one is attached")
            continue
        by_name[received.filename] = received

    pending = []
    for descriptor in descriptors:
        if descriptor.is_copy:
            pending.append(PendingAttachment(descriptor))
            continue

        received = by_name.get(descriptor.file) if descriptor.file else None
        if received is None:
            raise ManifestError("missing.file", f"file {descriptor.file} was expected but not found")
        pending.append(PendingAttachment(descriptor, received))

    return pending
