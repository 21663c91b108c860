import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile

from ..common.exceptions import QueueClosedError, StorageError
from ..core.commands import CommandResult, CommandStatus, CommandType
from ..core.control import SystemController
from .models import (
    BaseResponse,
    ImageRequest,
    ImageResponse,
    ModeRequest,
    ScheduleRequest,
    StateModel,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["control"])


def get_controller(request: Request) -> SystemController:
    """Dependency injection for system controller"""
    controller = getattr(request.app.state, "system_controller", None)
    if not getattr(request.app.state, "startup_complete", False) or controller is None:
        raise HTTPException(
            status_code=503,
            detail="System is still starting up. Please try again in a moment.",
        )
    return controller


def _acknowledge(result: CommandResult, done: str) -> BaseResponse:
    """Translate a command result into a response"""
    if result.status == CommandStatus.REJECTED:
        raise HTTPException(status_code=422, detail=result.error)
    if result.status == CommandStatus.GATED:
        return BaseResponse(status="ignored", message="Device is sleeping")
    if result.status == CommandStatus.FAILED:
        return BaseResponse(status="failed", message=result.error or "Command failed")
    return BaseResponse(status="success", message=done)


async def _dispatch(
    controller: SystemController,
    command_type: CommandType,
    data: Optional[Dict[str, Any]] = None,
) -> CommandResult:
    try:
        return await controller.dispatch(command_type, data)
    except QueueClosedError as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to dispatch {command_type.value}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# Endpoints
@router.get("/state", response_model=StateModel)
async def get_state(controller: SystemController = Depends(get_controller)):
    """Get current device state"""
    return controller.get_state()


@router.post("/mode", response_model=BaseResponse)
async def set_mode(
    request: ModeRequest, controller: SystemController = Depends(get_controller)
):
    """Switch the device mode"""
    result = await _dispatch(controller, CommandType.MODE, {"mode": request.mode.value})
    return _acknowledge(result, f"Mode '{request.mode.value}' set")


@router.post("/sleep", response_model=BaseResponse)
async def sleep(controller: SystemController = Depends(get_controller)):
    """Put the device to sleep"""
    result = await _dispatch(controller, CommandType.SLEEP)
    return _acknowledge(result, "Device sleeping")


@router.post("/wake", response_model=BaseResponse)
async def wake(controller: SystemController = Depends(get_controller)):
    """Wake the device"""
    result = await _dispatch(controller, CommandType.WAKE)
    return _acknowledge(result, "Device awake")


@router.post("/schedule", response_model=BaseResponse)
async def update_schedule(
    request: ScheduleRequest, controller: SystemController = Depends(get_controller)
):
    """Update the sleep/wake schedule"""
    updates = request.model_dump(exclude_none=True)
    result = await _dispatch(controller, CommandType.SCHEDULE, updates)
    return _acknowledge(result, "Schedule updated")


async def _show_image(controller: SystemController, image) -> ImageResponse:
    try:
        url = controller.image_store.save(image)
    except StorageError as e:
        logger.error(f"Image upload error: {e}")
        raise HTTPException(status_code=500, detail="Failed to save image")

    result = await _dispatch(controller, CommandType.IMAGE, {"url": url})
    ack = _acknowledge(result, "Image displayed")
    return ImageResponse(status=ack.status, message=ack.message, url=url)


@router.post("/image", response_model=ImageResponse)
async def submit_image(
    request: ImageRequest, controller: SystemController = Depends(get_controller)
):
    """Store a base64 image and show it"""
    if not request.image:
        raise HTTPException(status_code=400, detail="No image provided")
    return await _show_image(controller, request.image)


@router.post("/image/upload", response_model=ImageResponse)
async def upload_image(
    file: UploadFile = File(...),
    controller: SystemController = Depends(get_controller),
):
    """Store an uploaded image file and show it"""
    data = await file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No image provided")
    if len(data) > controller.config.storage.max_upload_bytes:
        raise HTTPException(status_code=413, detail="Image too large")
    return await _show_image(controller, data)
