"""Infrastructure layer - S3 gateway, HTTP surface, and configuration."""

from attachvault.infrastructure.attachments.factory import (
    AttachmentServices,
    batch_options_from_settings,
    build_attachment_services,
)
from attachvault.infrastructure.attachments.s3_store import (
    S3BlobStore,
    S3StoreConfig,
    get_blob_store,
    s3_store_from_settings,
)
from attachvault.infrastructure.settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # S3
    "S3BlobStore",
    "S3StoreConfig",
    "get_blob_store",
    "s3_store_from_settings",
    # Wiring
    "AttachmentServices",
    "batch_options_from_settings",
    "build_attachment_services",
]
