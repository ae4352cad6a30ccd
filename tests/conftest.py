"""Shared fixtures: an in-memory BlobStore and recording collaborators."""

from __future__ import annotations

import asyncio
import hashlib
import io
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence

import pytest

from attachvault.application.batch import BatchOptions
from attachvault.application.security import SecurityGate
from attachvault.application.use_cases.stage_attachments import StageAttachmentsUseCase
from attachvault.domain.entities.attachment import ObjectMeta, PendingAttachment, ReceivedFile
from attachvault.domain.errors import AuthorizationDenied


@dataclass
class StoredObject:
    data: bytes
    content_type: Optional[str] = None
    metadata: dict[str, str] = field(default_factory=dict)


class FakeBlobStore:
    """Dict-backed BlobStore recording every call; faults are injected per operation."""

    def __init__(self) -> None:
        self.objects: dict[str, StoredObject] = {}
        self.calls: list[tuple[str, str]] = []
        self._faults: list[tuple[str, Callable[[str], bool], Exception]] = []
        self._lock = threading.Lock()

    def fail(self, op: str, match: Callable[[str], bool] = lambda key: True, error: Exception | None = None) -> None:
        self._faults.append((op, match, error or RuntimeError(f"{op} exploded")))

    def _record(self, op: str, key: str) -> None:
        with self._lock:
            self.calls.append((op, key))
        for fault_op, match, error in self._faults:
            if fault_op == op and match(key):
                raise error

    def put_object(self, key: str, data: bytes, metadata: Mapping[str, str] | None = None) -> None:
        self.objects[key] = StoredObject(data, metadata=dict(metadata or {}))

    def calls_for(self, op: str) -> list[str]:
        return [key for called, key in self.calls if called == op]

    @property
    def temporary_keys(self) -> list[str]:
        return [key for key in self.objects if key.endswith(".tmp")]

    # BlobStore

    def head(self, key: str) -> Optional[ObjectMeta]:
        self._record("head", key)
        obj = self.objects.get(key)
        if obj is None:
            return None
        return ObjectMeta(
            key=key,
            etag=hashlib.md5(obj.data).hexdigest(),
            size_bytes=len(obj.data),
            content_type=obj.content_type,
            metadata=dict(obj.metadata),
        )

    def get(self, key: str) -> Iterator[bytes]:
        self._record("get", key)
        data = self.objects[key].data
        return iter([data[i : i + 4] for i in range(0, len(data), 4)])

    def put(self, key: str, body: Any, content_type: Optional[str] = None) -> None:
        self._record("put", key)
        with self._lock:
            self.objects[key] = StoredObject(body.read(), content_type)

    def copy(self, source_key: str, dest_key: str, metadata: Mapping[str, str], content_type: Optional[str] = None) -> None:
        self._record("copy", dest_key)
        with self._lock:
            source = self.objects.get(source_key)
            if source is None:
                raise KeyError(source_key)
            self.objects[dest_key] = StoredObject(source.data, content_type or source.content_type, dict(metadata))

    def delete_many(self, keys: list[str]) -> None:
        for key in keys:
            self._record("delete", key)
        with self._lock:
            for key in keys:
                self.objects.pop(key, None)

    # UploadSigner

    def presigned_post(self, key: str) -> dict[str, Any]:
        self._record("presign", key)
        return {"url": "https://fake/attachments", "fields": {"key": key}}


class RecordingPromoter:
    """Promoter recording the attachment keys of every call."""

    def __init__(self, fail_keys: Sequence[str] = (), delay: float = 0.0) -> None:
        self.calls: list[list[str]] = []
        self.fail_keys = set(fail_keys)
        self.delay = delay
        self.active = 0
        self.max_active = 0

    async def promote(self, attachments: Sequence[PendingAttachment]) -> None:
        keys = [a.attachment_key for a in attachments]
        self.calls.append(keys)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            failing = self.fail_keys.intersection(keys)
            if failing:
                raise RuntimeError(f"cannot promote {', '.join(sorted(failing))}")
        finally:
            self.active -= 1


class FakeAuthorizer:
    def __init__(self, deny: bool = False) -> None:
        self.deny = deny
        self.calls: list[tuple[list[str], str]] = []

    async def check_permission(self, resources: Sequence[str], ability: str) -> None:
        self.calls.append((list(resources), ability))
        if self.deny:
            raise AuthorizationDenied(message=f"{ability} not allowed")


def upload(filename: str, data: bytes = b"some bytes", mime_type: str | None = None) -> ReceivedFile:
    return ReceivedFile.from_upload(filename, io.BytesIO(data), mime_type)


def entry(file: str | None, key: Any, href: str = "/widgets/w1", **extra: Any) -> dict[str, Any]:
    item: dict[str, Any] = {"attachment": {"key": key}, "resource": {"href": href}}
    if file is not None:
        item["file"] = file
    item.update(extra)
    return item


@pytest.fixture
def store() -> FakeBlobStore:
    return FakeBlobStore()


@pytest.fixture
def promoter() -> RecordingPromoter:
    return RecordingPromoter()


@pytest.fixture
def make_use_case(store: FakeBlobStore, promoter: RecordingPromoter):
    def _make(
        authorizer: FakeAuthorizer | None = None,
        promoter_: RecordingPromoter | None = None,
        **options: Any,
    ) -> StageAttachmentsUseCase:
        return StageAttachmentsUseCase(
            store,
            promoter_ or promoter,
            security=SecurityGate(authorizer),
            options=BatchOptions(**options),
        )

    return _make
