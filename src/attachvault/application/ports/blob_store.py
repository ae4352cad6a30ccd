from __future__ import annotations
from typing import Any, BinaryIO, Iterator, Mapping, Optional, Protocol
from attachvault.domain.entities.attachment import ObjectMeta

class BlobStore(Protocol):
    """Key-addressed blob store. Every call may raise StoreTransportError.

    ``head`` answers ``None`` for an absent key, ``get`` raises NotFoundError,
    ``delete_many`` treats absent keys as already deleted.
    """

    def head(self, key: str) -> Optional[ObjectMeta]: ...
    def get(self, key: str) -> Iterator[bytes]: ...
    def put(self, key: str, body: BinaryIO, content_type: Optional[str] = None) -> None: ...
    def copy(
        self,
        source_key: str,
        dest_key: str,
        metadata: Mapping[str, str],
        content_type: Optional[str] = None,
    ) -> None: ...
    def delete_many(self, keys: list[str]) -> None: ...

class UploadSigner(Protocol):
    # Presigned POST form (``url`` + ``fields``) letting a client upload ``key`` directly
    def presigned_post(self, key: str) -> dict[str, Any]: ...
