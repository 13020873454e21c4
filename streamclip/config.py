#!/usr/bin/env python3
"""
Runtime configuration for the capture service.

Settings come from defaults, an optional JSON file and ``STREAMCLIP_*``
environment variables, in that order of precedence (env wins).
"""

import json
import math
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

ENV_PREFIX = "STREAMCLIP_"
LOOPBACK_HOST = "127.0.0.1"
WILDCARD_HOSTS = ("0.0.0.0", "::", "")

# Two hours of DVR history at two second segments.
DEFAULT_MAX_RETAINED_SECONDS = 7200
DEFAULT_SEGMENT_SECONDS = 2


class Settings(BaseModel):
    """All tunables for capture, delivery and extraction."""

    ffmpeg_path: str = "ffmpeg"

    # Delivery server
    host: str = "127.0.0.1"
    port: int = Field(default=12345, ge=1, le=65535)
    stream_prefix: str = "/stream"
    manifest_name: str = "stream.m3u8"

    # Rolling buffer
    buffer_root: str = Field(default_factory=tempfile.gettempdir)
    segment_seconds: int = Field(default=DEFAULT_SEGMENT_SECONDS, gt=0)
    max_retained_seconds: int = Field(default=DEFAULT_MAX_RETAINED_SECONDS, gt=0)

    # Capture supervisor
    startup_timeout: float = Field(default=15.0, gt=0)
    poll_interval: float = Field(default=0.5, gt=0)
    stop_grace_seconds: float = Field(default=10.0, gt=0)
    capture_audio_codec: str = "aac"

    # Clip extraction
    export_dir: str = Field(default_factory=lambda: str(Path.home() / "Downloads"))
    video_codec: str = "libx264"
    video_preset: str = "veryfast"
    video_crf: int = Field(default=23, ge=0, le=51)
    encoder_threads: int = Field(default=2, gt=0)
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    keyframe_interval: int = Field(default=30, gt=0)
    max_concurrent_extractions: int = Field(default=2, gt=0)

    # Recent source URLs
    recent_urls_path: str = Field(
        default_factory=lambda: str(Path.home() / ".streamclip" / "recent_urls.json")
    )
    max_recent_urls: int = Field(default=10, gt=0)

    @field_validator('stream_prefix')
    @classmethod
    def _normalize_prefix(cls, value: str) -> str:
        value = '/' + value.strip('/')
        if value == '/':
            raise ValueError("stream_prefix must not be the root path")
        return value

    @field_validator('manifest_name')
    @classmethod
    def _check_manifest_name(cls, value: str) -> str:
        if not value.endswith('.m3u8') or '/' in value:
            raise ValueError("manifest_name must be a bare .m3u8 file name")
        return value

    @model_validator(mode='after')
    def _check_window(self) -> 'Settings':
        if self.max_retained_seconds < self.segment_seconds:
            raise ValueError("max_retained_seconds must cover at least one segment")
        return self

    @property
    def hls_list_size(self) -> int:
        """Number of segments kept in the playlist for the retained window."""
        return math.ceil(self.max_retained_seconds / self.segment_seconds)

    @property
    def delivery_url(self) -> str:
        # A wildcard bind address is not something a client can connect to.
        host = LOOPBACK_HOST if self.host in WILDCARD_HOSTS else self.host
        return f"http://{host}:{self.port}{self.stream_prefix}/{self.manifest_name}"


def _env_overrides(environ: Dict[str, str]) -> Dict[str, Any]:
    overrides = {}
    for name in Settings.model_fields:
        key = ENV_PREFIX + name.upper()
        if key in environ:
            overrides[name] = environ[key]
    return overrides


def load_settings(config_path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> Settings:
    """
    Build settings from an optional JSON file plus environment overrides.

    Args:
        config_path: Path to a JSON object with settings fields
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated Settings
    """
    values: Dict[str, Any] = {}
    if config_path:
        with open(config_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a JSON object")
        values.update(data)

    values.update(_env_overrides(os.environ if environ is None else environ))
    return Settings(**values)
