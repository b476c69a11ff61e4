from nightshift.core.config import settings
from nightshift.core.logging_config import get_logger
import json
from datetime import datetime
from typing import Literal, Optional

logger = get_logger(__name__)

LOG_CHANNEL = 'system_logs'

# Lazy initialize Redis to avoid startup issues
_redis_client = None

def get_redis_client():
    global _redis_client
    if _redis_client is None:
        import redis
        # publish runs on the event loop; a stalled server must not block it for long
        _redis_client = redis.from_url(settings.REDIS_URL, socket_connect_timeout=1, socket_timeout=1)
    return _redis_client

LogLevel = Literal['INFO', 'WARNING', 'ERROR', 'SUCCESS', 'DEBUG']
LogSource = Literal['watcher', 'ingest', 'scheduler', 'backend', 'system']

def publish_log(
    source: LogSource,
    level: LogLevel,
    message: str,
    metadata: Optional[dict] = None
):
    """Publish a log message to Redis for real-time streaming; a no-op without REDIS_URL"""
    if not settings.REDIS_URL:
        return

    log_entry = {
        "timestamp": datetime.utcnow().isoformat(),
        "source": source,
        "level": level,
        "message": message,
        "metadata": metadata or {}
    }

    try:
        redis_client = get_redis_client()
        redis_client.publish(LOG_CHANNEL, json.dumps(log_entry))
    except Exception as e:
        # Don't crash if Redis publish fails
        logger.debug(f"failed to publish log: {e}")
