"""Attachment error taxonomy.

Every error carries a machine readable ``code`` and the HTTP-style ``status`` the
outer layer should answer with.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional


class AttachmentError(Exception):
    """Base exception for attachment errors."""

    status: int = 500
    code: str = "attachment.error"

    def __init__(self, code: Optional[str] = None, message: str = "", status: Optional[int] = None) -> None:
        self.code = code or self.code
        self.message = message or self.code
        if status is not None:
            self.status = status
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "type": "ERROR", "message": self.message}

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, status={self.status})"


class ManifestError(AttachmentError):
    """Malformed or incomplete manifest; always terminal for the batch."""

    status = 409
    code = "invalid.body"


class ConflictError(AttachmentError):
    """A target key is already owned by a different attachment identity."""

    status = 409
    code = "file.already.exists"


class NotFoundError(AttachmentError):
    status = 404
    code = "not.found"


class AuthorizationDenied(AttachmentError):
    status = 403
    code = "forbidden"


class StoreTransportError(AttachmentError):
    """Network or store fault on a gateway call (anything other than "absent")."""

    status = 500
    code = "store.unavailable"


class PromotionError(AttachmentError):
    """The caller's promotion side effect failed for one attachment (or group)."""

    code = "promotion.failed"

    def __init__(self, attachment_keys: Iterable[str], cause: BaseException) -> None:
        self.attachment_keys = list(attachment_keys)
        self.cause = cause
        if isinstance(cause, AttachmentError):
            super().__init__(cause.code, cause.message, cause.status)
        else:
            super().__init__(message=f"promotion of {', '.join(self.attachment_keys)} failed: {cause}")

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["attachments"] = self.attachment_keys
        return body


class BatchFailedError(AttachmentError):
    """Aggregate of every staging/promotion failure recorded for one batch."""

    code = "batch.failed"

    def __init__(self, errors: list[AttachmentError]) -> None:
        self.errors = list(errors)
        status = max((error.status for error in self.errors), default=500)
        super().__init__(message=f"{len(self.errors)} attachment operation(s) failed", status=status)

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["errors"] = [error.to_dict() for error in self.errors]
        return body
