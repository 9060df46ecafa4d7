"""WebSocket event feed."""

import asyncio

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from docgate.observability.events import Event
from docgate.runtime import Runtime

logger = structlog.get_logger()

router = APIRouter(tags=["events"])


async def _drain(websocket: WebSocket) -> None:
    """Consume client frames until the client disconnects."""
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        return


@router.websocket("/ws")
async def event_feed(websocket: WebSocket):
    """
    Stream bus events to the client.

    The current task status is sent first; a heartbeat follows every
    `heartbeat_seconds` without other traffic.
    """
    runtime: Runtime = websocket.app.state.runtime
    await websocket.accept()
    receiver = asyncio.create_task(_drain(websocket))

    with runtime.bus.subscribe() as subscription:
        logger.info("ws_connected", subscribers=runtime.bus.subscriber_count)
        try:
            status = runtime.crawl_service.status.model_dump(mode="json")
            await websocket.send_text(Event("task.status", status).to_json())

            while not receiver.done():
                getter = asyncio.ensure_future(
                    subscription.get(timeout=runtime.settings.heartbeat_seconds)
                )
                done, _ = await asyncio.wait({getter, receiver}, return_when=asyncio.FIRST_COMPLETED)
                if getter not in done:
                    getter.cancel()
                    break

                event = getter.result()
                if event is None:
                    event = Event("heartbeat", {"uptime_seconds": round(runtime.uptime_seconds, 1)})
                await websocket.send_text(event.to_json())
        except WebSocketDisconnect:
            pass
        finally:
            receiver.cancel()
            logger.info("ws_disconnected", dropped=subscription.dropped)
