import os


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings:
    PROJECT_NAME: str = "NightShift"
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./data/database.sqlite")
    REDIS_URL: str = os.getenv("REDIS_URL", "")  # empty disables live log publishing

    # storage paths
    INPUT_DIR: str = os.getenv("INPUT_DIR", "/data/input")
    OUTPUT_DIR: str = os.getenv("OUTPUT_DIR", "/data/output")
    LOG_DIR: str = os.getenv("LOG_DIR", "")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # drop folder watcher (network shares need polling)
    WATCHER_USE_POLLING: bool = _env_bool("WATCHER_USE_POLLING", True)
    WATCHER_POLL_INTERVAL: float = float(os.getenv("WATCHER_POLL_INTERVAL", "1.0"))
    WATCHER_STABILITY_SECONDS: float = float(os.getenv("WATCHER_STABILITY_SECONDS", "2.0"))
    WATCHER_CHECK_INTERVAL: float = float(os.getenv("WATCHER_CHECK_INTERVAL", "0.5"))
    INGEST_QUEUE_SIZE: int = int(os.getenv("INGEST_QUEUE_SIZE", "1000"))

    # daily processing window, HH:MM local time
    SCHEDULE_START: str = os.getenv("SCHEDULE_START", "00:00")
    SCHEDULE_STOP: str = os.getenv("SCHEDULE_STOP", "08:50")
    SCHEDULER_BATCH_SIZE: int = int(os.getenv("SCHEDULER_BATCH_SIZE", "50"))
    SCHEDULER_POLL_SECONDS: float = float(os.getenv("SCHEDULER_POLL_SECONDS", "300"))
    STATUS_PUSH_SECONDS: float = float(os.getenv("STATUS_PUSH_SECONDS", "5"))

    # encoder profile
    FFMPEG_BIN: str = os.getenv("FFMPEG_BIN", "ffmpeg")
    FFPROBE_BIN: str = os.getenv("FFPROBE_BIN", "ffprobe")
    VIDEO_CODEC: str = os.getenv("VIDEO_CODEC", "hevc_nvenc")
    VIDEO_PRESET: str = os.getenv("VIDEO_PRESET", "p7")
    VIDEO_TUNE: str = os.getenv("VIDEO_TUNE", "hq")
    VIDEO_RC: str = os.getenv("VIDEO_RC", "constqp")
    VIDEO_QP: int = int(os.getenv("VIDEO_QP", "24"))
    VIDEO_MEASURE_QUALITY: bool = _env_bool("VIDEO_MEASURE_QUALITY", False)

    PORT: int = int(os.getenv("PORT", "3000"))
    WEB_ONLY: bool = _env_bool("WEB_ONLY", False)

settings = Settings()
