import json
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from ..common.exceptions import ValidationError
from ..core.commands import CommandStatus, CommandType
from ..core.control import SystemController

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


def error_message(message: str) -> Dict[str, Any]:
    return {"type": "error", "data": {"message": message}}


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """Command channel and state feed for controllers and displays"""
    controller: Optional[SystemController] = getattr(
        websocket.app.state, "system_controller", None
    )
    if controller is None or not websocket.app.state.startup_complete:
        await websocket.close(code=1013)
        return

    await websocket.accept()
    subscriber_id = None
    try:
        subscriber_id = await controller.fanout.connect(websocket)

        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning(f"Received invalid JSON from subscriber {subscriber_id}")
                await controller.fanout.send_to(subscriber_id, error_message("Invalid JSON"))
                continue

            if not isinstance(message, dict):
                await controller.fanout.send_to(
                    subscriber_id, error_message("Message must be an object")
                )
                continue

            logger.debug(f"Received message from subscriber {subscriber_id}: {message}")
            try:
                command_type = CommandType.parse_external(message.get("type"))
            except ValidationError as e:
                await controller.fanout.send_to(subscriber_id, error_message(str(e)))
                continue

            result = await controller.dispatch(
                command_type, message.get("data"), subscriber_id
            )
            if result.status in (CommandStatus.REJECTED, CommandStatus.FAILED):
                await controller.fanout.send_to(
                    subscriber_id, error_message(result.error or "Command failed")
                )

    except WebSocketDisconnect:
        logger.info(f"Subscriber {subscriber_id} disconnected normally")
    except Exception as e:
        logger.error(f"WebSocket error for subscriber {subscriber_id}: {e}")
    finally:
        if subscriber_id is not None:
            await controller.fanout.disconnect(subscriber_id)
