from datetime import datetime
from enum import Enum
from sqlmodel import SQLModel, Field
from typing import Optional


class Track(str, Enum):
    VIDEO = "video"
    SUBTITLE = "subtitle"


class VideoStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class SubtitleStatus(str, Enum):
    PENDING = "pending"
    EXTRACTED = "extracted"
    FAILED = "failed"


VIDEO_TERMINAL = {VideoStatus.COMPLETED, VideoStatus.FAILED, VideoStatus.SKIPPED}
SUBTITLE_TERMINAL = {SubtitleStatus.EXTRACTED, SubtitleStatus.FAILED}


class FileRecord(SQLModel, table=True):
    __tablename__ = "files_registry"
    id: Optional[int] = Field(default=None, primary_key=True)
    original_name: str
    cleaned_name: Optional[str] = Field(default=None, index=True)
    # where the file sits, relative to INPUT_DIR; null for imported history
    source_path: Optional[str] = Field(default=None, nullable=True)
    # null for list-imported history, LEGACY_CSV_* placeholders for csv-imported history
    file_hash: Optional[str] = Field(default=None, unique=True, index=True)
    video_status: str = Field(default=VideoStatus.PENDING.value, index=True)  # pending, processing, completed, failed, skipped
    subtitle_status: str = Field(default=SubtitleStatus.PENDING.value, index=True)  # pending, extracted, failed
    is_legacy: bool = Field(default=False)

    # descriptive metadata, filled by backfill only
    file_size: Optional[int] = Field(default=None, nullable=True)
    duration_sec: Optional[float] = Field(default=None, nullable=True)
    resolution: Optional[str] = Field(default=None, nullable=True)
    video_encoder: Optional[str] = Field(default=None, nullable=True)
    has_subtitle: bool = Field(default=False)
    subtitle_formats: Optional[str] = Field(default=None, nullable=True)

    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    def video_pending(self) -> bool:
        return not self.is_legacy and self.video_status in (VideoStatus.PENDING, VideoStatus.PROCESSING)

    def subtitle_pending(self) -> bool:
        return self.subtitle_status == SubtitleStatus.PENDING

    def is_terminal(self) -> bool:
        """true when neither track has work left"""
        return not (self.video_pending() or self.subtitle_pending())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "original_name": self.original_name,
            "cleaned_name": self.cleaned_name,
            "source_path": self.source_path,
            "file_hash": self.file_hash,
            "video_status": self.video_status,
            "subtitle_status": self.subtitle_status,
            "is_legacy": self.is_legacy,
            "file_size": self.file_size,
            "duration_sec": self.duration_sec,
            "resolution": self.resolution,
            "video_encoder": self.video_encoder,
            "has_subtitle": self.has_subtitle,
            "subtitle_formats": self.subtitle_formats,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
