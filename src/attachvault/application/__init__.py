"""Application layer - attachment batch pipeline and use cases."""

from attachvault.application.batch import BatchContext, BatchOptions
from attachvault.application.locks import KeyLocks
from attachvault.application.security import SecurityGate
from attachvault.application.use_cases.delete_attachment import DeleteAttachmentUseCase
from attachvault.application.use_cases.download_attachment import (
    DownloadAttachmentUseCase,
    DownloadedAttachment,
)
from attachvault.application.use_cases.get_attachment import GetAttachmentUseCase
from attachvault.application.use_cases.presign_upload import PresignUploadUseCase
from attachvault.application.use_cases.stage_attachments import StageAttachmentsUseCase

__all__ = [
    "BatchContext",
    "BatchOptions",
    "KeyLocks",
    "SecurityGate",
    "StageAttachmentsUseCase",
    "DownloadAttachmentUseCase",
    "DownloadedAttachment",
    "DeleteAttachmentUseCase",
    "GetAttachmentUseCase",
    "PresignUploadUseCase",
]
