from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from nightshift.core.config import settings
from nightshift.core.errors import RegistryUnavailableError
from nightshift.core.logging_config import get_logger
from nightshift.services.log_publisher import LOG_CHANNEL
from nightshift.services.pipeline import get_notifier
from nightshift.services.status_notifier import StatusNotifier
from datetime import datetime
import json

router = APIRouter()
logger = get_logger(__name__)

@router.websocket("/status")
async def websocket_status(websocket: WebSocket, notifier: StatusNotifier = Depends(get_notifier)):
    """push channel for {pendingCount, processingActive}; first update is sent right away"""
    await websocket.accept()
    notifier.register(websocket)

    try:
        try:
            await websocket.send_json({"type": "status_update", **notifier.snapshot()})
        except RegistryUnavailableError as e:
            logger.warning(f"initial status unavailable: {e}")

        while True:
            # keep connection alive and receive any client messages
            data = await websocket.receive_text()
            # client can send "ping" to keep alive
            if data == "ping":
                await websocket.send_text("pong")
            elif data == "status":
                await websocket.send_json({"type": "status_update", **notifier.snapshot()})
    except WebSocketDisconnect:
        pass
    finally:
        notifier.unregister(websocket)


@router.websocket("/logs")
async def websocket_logs(websocket: WebSocket):
    """Stream real-time logs from the pipeline via Redis pub/sub"""
    await websocket.accept()

    if not settings.REDIS_URL:
        await websocket.send_json({
            "type": "unavailable",
            "timestamp": datetime.utcnow().isoformat(),
            "source": "system",
            "level": "WARNING",
            "message": "log streaming disabled (REDIS_URL not set)",
            "metadata": {}
        })
        await websocket.close()
        return

    import redis.asyncio as aioredis

    redis = aioredis.from_url(settings.REDIS_URL)
    pubsub = redis.pubsub()
    try:
        await pubsub.subscribe(LOG_CHANNEL)

        # Send initial connection message
        await websocket.send_json({
            "type": "connected",
            "timestamp": datetime.utcnow().isoformat(),
            "source": "system",
            "level": "INFO",
            "message": "log stream connected",
            "metadata": {}
        })

        # Stream logs
        async for message in pubsub.listen():
            if message['type'] == 'message':
                try:
                    await websocket.send_json(json.loads(message['data']))
                except ValueError as e:
                    logger.warning(f"error parsing log message: {e}")

    except WebSocketDisconnect:
        logger.info("client disconnected from log stream")
    except Exception as e:
        logger.error(f"log stream error: {e}", exc_info=True)
    finally:
        try:
            await pubsub.unsubscribe(LOG_CHANNEL)
            await redis.aclose()
        except Exception as e:
            logger.debug(f"log stream cleanup failed: {e}")
