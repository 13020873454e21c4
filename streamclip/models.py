#!/usr/bin/env python3
"""
Request and result models shared by the controller and the HTTP API.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


def default_clip_name(now: Optional[datetime] = None) -> str:
    """Timestamped default name used when the caller gives none."""
    now = now or datetime.now()
    return f"clip - {now.strftime('%Y-%m-%d_%H-%M-%S')}"


class ClipRequest(BaseModel):
    """A window of the retained buffer to export."""

    start_offset_seconds: float = Field(ge=0)
    duration_seconds: float = Field(gt=0)
    output_name: str = Field(default_factory=default_clip_name)

    @field_validator('output_name')
    @classmethod
    def _clean_name(cls, value: str) -> str:
        # Keep only the final path component so a name cannot pick a directory.
        value = value.replace('\\', '/').split('/')[-1].strip()
        if not value:
            raise ValueError("output_name must not be empty")
        return value


class ExportRecord(BaseModel):
    """A finished export."""

    path: str
    created_at: datetime = Field(default_factory=datetime.now)
    start_offset_seconds: float
    duration_seconds: float


class StartCaptureReq(BaseModel):
    source_url: str

    @field_validator('source_url')
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("source_url must not be empty")
        return value


class ExtractClipReq(BaseModel):
    start_time: float = Field(ge=0)
    duration: float = Field(gt=0)
    output_name: Optional[str] = None
    destination: Optional[str] = None


class RevealReq(BaseModel):
    path: str
