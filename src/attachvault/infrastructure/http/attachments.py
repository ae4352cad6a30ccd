"""Attachment endpoints for one resource type."""

from __future__ import annotations

import re
from urllib.parse import quote

from fastapi import APIRouter, Request, Response
from fastapi.responses import JSONResponse, StreamingResponse
from loguru import logger
from starlette.datastructures import UploadFile

from attachvault.domain.entities.attachment import ReceivedFile
from attachvault.domain.errors import AttachmentError, BatchFailedError
from attachvault.domain.models import AttachmentResult
from attachvault.infrastructure.attachments.factory import AttachmentServices

MANIFEST_FIELD = "body"

# A trailing ".ext" means a stored file, anything else is an attachment key
_FILENAME_PATTERN = re.compile(r"\.[A-Za-z0-9]+$")


def _results_body(results: list[AttachmentResult]) -> list[dict]:
    return [result.model_dump(exclude_none=True) for result in results]


async def attachment_error_handler(request: Request, exc: AttachmentError) -> JSONResponse:
    """Render AttachmentError as ``{"status": ..., "errors": [...]}``."""
    if isinstance(exc, BatchFailedError):
        errors = [error.to_dict() for error in exc.errors]
    else:
        errors = [exc.to_dict()]

    if exc.status >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r} {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc!r} {exc.message}")
    return JSONResponse(status_code=exc.status, content={"status": exc.status, "errors": errors})


def create_attachments_router(services: AttachmentServices) -> APIRouter:
    """Routes under ``{resource_type}``:

    - ``POST /attachments``: multipart upload, file parts plus a ``body`` manifest
    - ``POST /attachments/copy``: JSON manifest of ``fileHref`` copies
    - ``GET /{key}/attachments/{name}``: file download, or the JSON record
      when ``name`` has no extension and an AttachmentLookup is configured
    - ``GET /attachments/presigned``: presigned POST for a direct upload
    - ``DELETE /{key}/attachments/{attachment_key}``
    """
    prefix = services.resource_type if services.resource_type.startswith("/") else f"/{services.resource_type}"
    router = APIRouter(prefix=prefix, tags=["attachments"])

    @router.post("/attachments")
    async def upload_attachments(request: Request) -> JSONResponse:
        form = await request.form()
        manifest = None
        files: list[ReceivedFile] = []
        for name, value in form.multi_items():
            if isinstance(value, UploadFile):
                files.append(ReceivedFile.from_upload(value.filename or name, value.file, value.content_type))
            elif name == MANIFEST_FIELD:
                manifest = value

        try:
            results = await services.stage.upload(files, manifest)
        finally:
            await form.close()
        return JSONResponse(content=_results_body(results))

    @router.post("/attachments/copy")
    async def copy_attachments(request: Request) -> JSONResponse:
        results = await services.stage.copy(await request.body())
        return JSONResponse(content=_results_body(results))

    @router.get("/{resource_key}/attachments/{name}")
    async def get_attachment(resource_key: str, name: str) -> Response:
        if services.get is None or _FILENAME_PATTERN.search(name):
            download = await services.download.run(resource_key, name)
            headers = {"Content-Disposition": f"inline; filename*=UTF-8''{quote(download.filename)}"}
            if download.size_bytes is not None:
                headers["Content-Length"] = str(download.size_bytes)
            return StreamingResponse(download.chunks, media_type=download.content_type, headers=headers)

        return JSONResponse(content=await services.get.run(resource_key, name))

    if services.presign is not None:
        presign = services.presign

        @router.get("/attachments/presigned")
        async def presigned_upload() -> JSONResponse:
            return JSONResponse(content=await presign.run())

    if services.delete is not None:
        delete = services.delete

        @router.delete("/{resource_key}/attachments/{attachment_key}", status_code=204)
        async def delete_attachment(resource_key: str, attachment_key: str) -> Response:
            status = await delete.run(resource_key, attachment_key)
            return Response(status_code=status)

    return router
