"""
Pydantic models for AutoConvert.

Shared data models across the application.
"""

from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator


# =====================================================
# Conversion Models
# =====================================================

Mp4Preset = Literal[
    "ultrafast", "superfast", "veryfast", "faster", "fast",
    "medium", "slow", "slower", "veryslow",
]


class ConversionTemplate(BaseModel):
    """Rule mapping an input extension to an output extension and command."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    input_extension: str = Field(alias="inputExtension")
    output_extension: str = Field(alias="outputExtension")
    command: str
    delete_original: bool = Field(default=False, alias="deleteOriginal")

    @field_validator("input_extension", "output_extension")
    @classmethod
    def _strip_extension(cls, value: str) -> str:
        value = value.strip().lstrip(".")
        if not value:
            raise ValueError("extension must not be empty")
        return value

    @property
    def is_normalize(self) -> bool:
        """Input and output share the same format (re-encode in place)."""
        return self.input_extension.lower() == self.output_extension.lower()


class ConversionSettings(BaseModel):
    """User tunables substituted into command templates."""
    model_config = ConfigDict(frozen=True)

    sound_enabled: bool = True
    mp4_quality: int = Field(default=23, ge=0, le=51)
    mp4_preset: Mp4Preset = "fast"
    webp_quality: int = Field(default=85, ge=0, le=100)


# =====================================================
# Access Models
# =====================================================

class AccessCapability(BaseModel):
    """Persistable grant of read access to one directory."""
    model_config = ConfigDict(frozen=True)

    path: str
    device: int
    inode: int
    issued_at: datetime


# =====================================================
# Progress Models
# =====================================================

class BatchProgress(BaseModel):
    """Progress of one batch of submitted files."""
    batch_id: str
    total_files: int
    completed_files: int = 0
    current_file_name: str = ""
    is_converting: bool = True
    forced: bool = False
    conversions: int = 0
    started_at: datetime
    finished_at: Optional[datetime] = None


# =====================================================
# Response Models
# =====================================================

class ServiceStatus(BaseModel):
    """Snapshot of the service state."""
    enabled: bool
    watching: bool
    folder: Optional[str] = None
    processed_files: int = 0
    batches: List[BatchProgress] = []
    last_completed: Optional[BatchProgress] = None


class OperationStatus(BaseModel):
    """Generic operation status."""
    status: str
    message: str
    batch_id: Optional[str] = None
