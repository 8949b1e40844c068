"""
Control endpoints for the watch-and-convert service.

Includes:
- Enable/disable auto-conversion
- Watch folder selection
- Forced conversion
- Progress and configuration inspection
"""

from typing import List

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel
from loguru import logger

from app.models.schemas import (
    ConversionSettings,
    ConversionTemplate,
    OperationStatus,
    ServiceStatus,
)

router = APIRouter()


class FolderRequest(BaseModel):
    """Watch folder selection request."""
    path: str


def _service(request: Request):
    return request.app.state.service


@router.get("/status", response_model=ServiceStatus)
async def get_status(request: Request):
    """Current watch state and progress of in-flight batches."""
    return _service(request).status()


@router.post("/enable", response_model=OperationStatus)
async def enable(request: Request):
    """Turn auto-conversion on."""
    watching = _service(request).enable()
    return OperationStatus(
        status="watching" if watching else "enabled",
        message="Auto-convert enabled" if watching else "Auto-convert enabled, folder not watched",
    )


@router.post("/disable", response_model=OperationStatus)
async def disable(request: Request):
    """Turn auto-conversion off; running conversions finish."""
    _service(request).disable()
    return OperationStatus(status="disabled", message="Auto-convert disabled")


@router.post("/folder", response_model=OperationStatus)
async def select_folder(body: FolderRequest, request: Request):
    """
    Select the watch folder.

    Returns:
        Selection status; 403 when access to the folder is denied
    """
    logger.info(f"Watch folder selection requested: {body.path}")

    if not _service(request).select_folder(body.path):
        raise HTTPException(status_code=403, detail=f"No access to folder: {body.path}")

    return OperationStatus(status="ok", message=f"Watching folder {body.path}")


@router.post("/force-convert", response_model=OperationStatus)
async def force_convert(request: Request):
    """
    Convert every file in the watch folder, ignoring earlier processing.

    Returns:
        Batch id of the forced batch; 409 when no folder is selected
    """
    service = _service(request)
    if service.watcher is None:
        raise HTTPException(status_code=409, detail="No watch folder selected")

    batch_id = service.force_convert()
    if batch_id is None:
        return OperationStatus(status="empty", message="No files to convert")

    return OperationStatus(status="queued", message="Forced conversion queued", batch_id=batch_id)


@router.get("/templates", response_model=List[ConversionTemplate])
async def list_templates(request: Request):
    """Active conversion templates in match order."""
    registry = _service(request).registry
    return registry.templates or registry.load()


@router.get("/settings", response_model=ConversionSettings)
async def get_conversion_settings(request: Request):
    """Conversion settings applied to new jobs."""
    return _service(request).store.get_conversion_settings()
