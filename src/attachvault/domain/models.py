"""Domain models for attachment manifests and batch results."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class AttachmentInfo(BaseModel):
    """The ``attachment`` block of a manifest entry.

    Unknown fields are kept so promotion hooks can read whatever the client sent.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    key: str
    name: str | None = None
    description: str | None = None

    @field_validator("key", mode="before")
    @classmethod
    def coerce_key(cls, v: Any) -> Any:
        # keys are opaque, numeric ones are accepted as their string form
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v


class ResourceReference(BaseModel):
    """The ``resource`` block: the resource the attachment belongs to.

    Attributes:
        href: Path of the owning resource, e.g. ``/widgets/w1``.
        key: Last path segment of ``href``; derived during manifest validation.
    """

    model_config = ConfigDict(extra="allow")

    href: str
    key: str = ""


class AttachmentDescriptor(BaseModel):
    """One manifest entry.

    Exactly one of ``file`` (name of an uploaded file part) or ``file_href``
    (reference to an existing attachment to copy) identifies the content.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    file: str | None = None
    file_href: str | None = Field(default=None, alias="fileHref")
    ignore_not_found: bool = Field(default=False, alias="ignoreNotFound")
    attachment: AttachmentInfo
    resource: ResourceReference

    @property
    def is_copy(self) -> bool:
        return bool(self.file_href)


class AttachmentResult(BaseModel):
    """Per-descriptor outcome reported for a committed batch."""

    status: int = 200
    href: str
    error: dict[str, Any] | None = None


PromotionPolicy = Literal["grouped", "sequential", "parallel"]
PermanentKeySource = Literal["filename", "attachment_key"]
