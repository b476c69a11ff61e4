from datetime import datetime
from sqlmodel import SQLModel, Field
from typing import Optional


class SystemSetting(SQLModel, table=True):
    __tablename__ = "system_settings"
    key: str = Field(primary_key=True)
    value: Optional[str] = Field(default=None, nullable=True)
    updated_at: datetime = Field(default_factory=datetime.utcnow)
