"""Wire the attachment use cases for one resource type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from attachvault.application.batch import BatchOptions
from attachvault.application.locks import KeyLocks
from attachvault.application.ports.authorization import Authorizer
from attachvault.application.ports.blob_store import BlobStore
from attachvault.application.ports.hooks import (
    AfterDeleteHook,
    AttachmentLookup,
    CopyResourceResolver,
    FilenameResolver,
    Promoter,
)
from attachvault.application.security import SecurityGate
from attachvault.application.use_cases.delete_attachment import DeleteAttachmentUseCase
from attachvault.application.use_cases.download_attachment import DownloadAttachmentUseCase
from attachvault.application.use_cases.get_attachment import GetAttachmentUseCase
from attachvault.application.use_cases.presign_upload import PresignUploadUseCase
from attachvault.application.use_cases.stage_attachments import StageAttachmentsUseCase
from attachvault.infrastructure.settings import Settings, get_settings


@dataclass
class AttachmentServices:
    resource_type: str
    store: BlobStore
    stage: StageAttachmentsUseCase
    download: DownloadAttachmentUseCase
    delete: Optional[DeleteAttachmentUseCase] = None
    get: Optional[GetAttachmentUseCase] = None
    presign: Optional[PresignUploadUseCase] = None


def batch_options_from_settings(settings: Settings) -> BatchOptions:
    return BatchOptions(
        promotion_policy=settings.promotion_policy,
        check_file_existence=settings.check_file_existence,
        permanent_key_source=settings.permanent_key_source,
        authorize_before_promotion=settings.authorize_before_promotion,
        serialize_same_key_batches=settings.serialize_same_key_batches,
    )


def build_attachment_services(
    resource_type: str,
    promoter: Promoter,
    store: Optional[BlobStore] = None,
    settings: Optional[Settings] = None,
    authorizer: Optional[Authorizer] = None,
    filenames: Optional[FilenameResolver] = None,
    lookup: Optional[AttachmentLookup] = None,
    copy_resources: Optional[CopyResourceResolver] = None,
    after_delete: Optional[AfterDeleteHook] = None,
) -> AttachmentServices:
    """Build the use cases for ``resource_type`` (e.g. ``/persons``).

    Delete is only available with a FilenameResolver (or when permanent keys are
    attachment keys), the JSON get only with an AttachmentLookup, presigned uploads only
    with a store that can sign them.
    """
    settings = settings or get_settings()
    if store is None:
        from attachvault.infrastructure.attachments.s3_store import get_blob_store

        store = get_blob_store()

    resource_type = resource_type.rstrip("/")
    options = batch_options_from_settings(settings)
    security = SecurityGate(
        authorizer,
        ability_prepend=settings.security_ability_prepend,
        ability_append=settings.security_ability_append,
    )

    delete = None
    if filenames is not None or options.permanent_key_source == "attachment_key":
        delete = DeleteAttachmentUseCase(
            store,
            resource_type,
            filenames=filenames,
            security=security,
            after_delete=after_delete,
            permanent_key_source=options.permanent_key_source,
        )

    return AttachmentServices(
        resource_type=resource_type,
        store=store,
        stage=StageAttachmentsUseCase(
            store,
            promoter,
            security=security,
            options=options,
            copy_resources=copy_resources,
            locks=KeyLocks(),
        ),
        download=DownloadAttachmentUseCase(
            store, resource_type, security=security, permanent_key_source=options.permanent_key_source
        ),
        delete=delete,
        get=GetAttachmentUseCase(lookup, resource_type, security=security) if lookup is not None else None,
        presign=(
            PresignUploadUseCase(store, resource_type, security=security) if hasattr(store, "presigned_post") else None
        ),
    )
