"""Per-batch state shared by the staging, promotion and finalize phases."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Optional

from attachvault.domain.entities.attachment import PendingAttachment, ReceivedFile
from attachvault.domain.errors import AttachmentError, BatchFailedError
from attachvault.domain.models import PermanentKeySource, PromotionPolicy
from attachvault.domain.naming import copy_filename, permanent_key


@dataclass(frozen=True)
class BatchOptions:
    """Behaviour switches for one StageAttachmentsUseCase."""

    promotion_policy: PromotionPolicy = "sequential"
    check_file_existence: bool = True
    permanent_key_source: PermanentKeySource = "filename"
    authorize_before_promotion: bool = False
    serialize_same_key_batches: bool = True


@dataclass
class BatchContext:
    """Everything one batch owns until it is committed or rolled back.

    ``files`` lists every file with a temporary key minted for this batch,
    including received files no descriptor claims. Failures accumulate in
    ``failures``; an authorization denial is kept apart because it takes
    precedence when the batch is reported as failed.
    """

    options: BatchOptions
    items: list[PendingAttachment]
    files: list[ReceivedFile] = field(default_factory=list)
    failures: list[AttachmentError] = field(default_factory=list)
    authorization_error: Optional[AttachmentError] = None
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])

    @property
    def failed(self) -> bool:
        return bool(self.failures) or self.authorization_error is not None

    @property
    def temporary_keys(self) -> list[str]:
        return list(dict.fromkeys(f.temporary_key for f in self.files))

    @property
    def resource_hrefs(self) -> list[str]:
        return list(dict.fromkeys(item.resource_href for item in self.items))

    def record_failure(self, error: AttachmentError) -> None:
        self.failures.append(error)

    def error(self) -> AttachmentError:
        if self.authorization_error is not None:
            return self.authorization_error
        return BatchFailedError(self.failures)

    def permanent_key_for(self, item: PendingAttachment) -> str:
        resource_key = item.descriptor.resource.key
        if self.options.permanent_key_source == "attachment_key":
            return permanent_key(resource_key, item.attachment_key)
        if item.file is not None:
            name = item.file.filename
        elif item.descriptor.is_copy:
            name = copy_filename(item.descriptor.file_href)
        else:
            name = item.descriptor.file or ""
        return permanent_key(resource_key, name)

    def planned_keys(self) -> list[str]:
        return [self.permanent_key_for(item) for item in self.items]
