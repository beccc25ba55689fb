# recipe_importer/app/routers/imports.py
"""
Import job routes. Submissions return immediately with a PENDING job;
clients poll GET /v1/imports/{job_id} until the status is terminal.
"""
from __future__ import annotations

import base64
import binascii
import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status

from recipe_importer.app.deps import CurrentUser, get_current_user, get_import_service
from recipe_importer.app.domain.errors import JobNotFoundError, JobRepositoryError
from recipe_importer.app.schemas.imports import (
    ImportJobListResponse,
    ImportJobResponse,
    ImportPhotoRequest,
    ImportStatusResponse,
    ImportSubmittedResponse,
    ImportUrlRequest,
    to_job,
    to_status,
    to_submitted,
)
from recipe_importer.app.services.import_service import ImportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/imports", tags=["Imports"])


def _parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label}")


def _decode_image(payload: str) -> bytes:
    if payload.startswith("data:") and "," in payload:
        payload = payload.split(",", 1)[1]
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid base64 image data")
    if not data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Empty image data")
    return data


def _storage_unavailable(error: JobRepositoryError) -> HTTPException:
    logger.error("Import storage error: %s", error)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Import service temporarily unavailable",
    )


@router.post("", response_model=ImportSubmittedResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_import(
    payload: ImportUrlRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportService = Depends(get_import_service),
):
    user_id = _parse_uuid(current_user.id, "user id")
    try:
        job = await service.submit_url(user_id, payload.content_reference, payload.source_hint)
    except JobRepositoryError as error:
        raise _storage_unavailable(error)
    return to_submitted(job)


@router.post("/photo", response_model=ImportSubmittedResponse, status_code=status.HTTP_202_ACCEPTED)
async def submit_photo_import(
    payload: ImportPhotoRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportService = Depends(get_import_service),
):
    if not payload.mime_type.lower().startswith("image/"):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported MIME type")

    user_id = _parse_uuid(current_user.id, "user id")
    image_bytes = _decode_image(payload.image_base64)
    try:
        job = await service.submit_image(user_id, image_bytes, payload.mime_type.lower())
    except JobRepositoryError as error:
        raise _storage_unavailable(error)
    return to_submitted(job)


@router.get("", response_model=ImportJobListResponse)
async def list_imports(
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportService = Depends(get_import_service),
):
    user_id = _parse_uuid(current_user.id, "user id")
    try:
        jobs = await service.list_jobs(user_id, limit, offset)
    except JobRepositoryError as error:
        raise _storage_unavailable(error)
    return ImportJobListResponse(jobs=[to_job(job) for job in jobs], limit=limit, offset=offset)


@router.get("/active", response_model=Optional[ImportJobResponse])
async def get_active_import(
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportService = Depends(get_import_service),
):
    user_id = _parse_uuid(current_user.id, "user id")
    try:
        job = await service.get_active_job(user_id)
    except JobRepositoryError as error:
        raise _storage_unavailable(error)
    return to_job(job) if job else None


@router.get("/{job_id}", response_model=ImportStatusResponse)
async def get_import_status(
    job_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: ImportService = Depends(get_import_service),
):
    job_uuid = _parse_uuid(job_id, "job id")
    user_id = _parse_uuid(current_user.id, "user id")
    try:
        job = await service.get_status(job_uuid, user_id)
    except JobNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Import not found")
    except JobRepositoryError as error:
        raise _storage_unavailable(error)
    return to_status(job)
