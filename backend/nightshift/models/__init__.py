from .files import (
    FileRecord,
    SubtitleStatus,
    SUBTITLE_TERMINAL,
    Track,
    VideoStatus,
    VIDEO_TERMINAL,
)
from .process_logs import ProcessLog
from .settings import SystemSetting

__all__ = [
    "FileRecord",
    "ProcessLog",
    "SubtitleStatus",
    "SUBTITLE_TERMINAL",
    "SystemSetting",
    "Track",
    "VideoStatus",
    "VIDEO_TERMINAL",
]
