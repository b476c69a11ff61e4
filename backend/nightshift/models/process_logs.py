from datetime import datetime
from sqlmodel import SQLModel, Field
from typing import Optional


class ProcessLog(SQLModel, table=True):
    """one row per operation attempt, never updated after insert"""
    __tablename__ = "process_logs"
    id: Optional[int] = Field(default=None, primary_key=True)
    file_id: int = Field(foreign_key="files_registry.id", index=True)
    operation: str = Field(index=True)  # "subtitle", "video"
    output_path: Optional[str] = Field(default=None, nullable=True)
    ssim_score: Optional[float] = Field(default=None, nullable=True)
    psnr_score: Optional[float] = Field(default=None, nullable=True)
    error_log: Optional[str] = Field(default=None, nullable=True)
    duration_sec: Optional[float] = Field(default=None, nullable=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "file_id": self.file_id,
            "operation": self.operation,
            "output_path": self.output_path,
            "ssim_score": self.ssim_score,
            "psnr_score": self.psnr_score,
            "error_log": self.error_log,
            "duration_sec": self.duration_sec,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
