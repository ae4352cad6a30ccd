"""Domain models, entities and errors."""

from attachvault.domain.entities.attachment import (
    ObjectMeta,
    PendingAttachment,
    ReceivedFile,
)
from attachvault.domain.errors import (
    AttachmentError,
    AuthorizationDenied,
    BatchFailedError,
    ConflictError,
    ManifestError,
    NotFoundError,
    PromotionError,
    StoreTransportError,
)
from attachvault.domain.models import (
    AttachmentDescriptor,
    AttachmentInfo,
    AttachmentResult,
    PermanentKeySource,
    PromotionPolicy,
    ResourceReference,
)

__all__ = [
    "AttachmentDescriptor",
    "AttachmentInfo",
    "ResourceReference",
    "AttachmentResult",
    "PromotionPolicy",
    "PermanentKeySource",
    "ObjectMeta",
    "ReceivedFile",
    "PendingAttachment",
    "AttachmentError",
    "ManifestError",
    "ConflictError",
    "NotFoundError",
    "PromotionError",
    "AuthorizationDenied",
    "StoreTransportError",
    "BatchFailedError",
]
