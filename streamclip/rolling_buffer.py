#!/usr/bin/env python3
"""
On-disk lifecycle of the HLS rolling buffer.

Only one buffer exists at a time; its directory path is the handle every
other component uses to address it.
"""

import re
import shutil
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from streamclip.logging_utils import setup_logger

logger = setup_logger(__name__)

BUFFER_DIR_PREFIX = "streamclip-hls-"

EXTINF_RE = re.compile(r"^#EXTINF:\s*([\d.]+)", re.IGNORECASE)
MEDIA_SEQUENCE_RE = re.compile(r"^#EXT-X-MEDIA-SEQUENCE:\s*(\d+)", re.IGNORECASE)
ENDLIST_RE = re.compile(r"^#EXT-X-ENDLIST", re.IGNORECASE)


@dataclass
class Segment:
    uri: str
    duration: float
    sequence: int


@dataclass
class ManifestInfo:
    """What a media playlist currently retains."""

    media_sequence: int = 0
    segments: List[Segment] = field(default_factory=list)
    ended: bool = False

    @property
    def retained_seconds(self) -> float:
        return sum(segment.duration for segment in self.segments)


def parse_manifest(m3u8_text: Optional[str]) -> ManifestInfo:
    """
    Parse an HLS media playlist.

    Args:
        m3u8_text: Playlist contents

    Returns:
        ManifestInfo with the retained segments in playlist order
    """
    info = ManifestInfo()
    if not m3u8_text:
        return info

    pending_duration = None
    for raw in m3u8_text.splitlines():
        line = raw.strip()
        if not line:
            continue

        match = MEDIA_SEQUENCE_RE.match(line)
        if match:
            info.media_sequence = int(match.group(1))
            continue

        match = EXTINF_RE.match(line)
        if match:
            pending_duration = float(match.group(1))
            continue

        if ENDLIST_RE.match(line):
            info.ended = True
            continue

        if line.startswith('#'):
            continue

        if pending_duration is not None:
            info.segments.append(Segment(
                uri=line,
                duration=pending_duration,
                sequence=info.media_sequence + len(info.segments),
            ))
            pending_duration = None

    return info


def read_manifest(path: Union[str, Path]) -> ManifestInfo:
    """Read and parse a playlist from disk; a missing file reads as empty."""
    try:
        with open(path, 'r', encoding='utf-8', errors='replace') as f:
            return parse_manifest(f.read())
    except FileNotFoundError:
        return ManifestInfo()


class RollingBufferManager:
    """Creates and discards buffer directories under ``root``."""

    def __init__(self, root: Union[str, Path], manifest_name: str = "stream.m3u8"):
        self.root = Path(root)
        self.manifest_name = manifest_name
        self.current: Optional[Path] = None

    def prepare_fresh_directory(self) -> Path:
        """Drop the previous buffer directory and create a new empty one."""
        if self.current is not None:
            self.discard(self.current)
            self.current = None

        self.root.mkdir(parents=True, exist_ok=True)
        name = f"{BUFFER_DIR_PREFIX}{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"
        path = self.root / name
        path.mkdir()
        self.current = path
        logger.info(f"🪣 Prepared buffer directory: {path}")
        return path

    def manifest_path(self, directory: Optional[Path] = None) -> Path:
        directory = directory or self.current
        if directory is None:
            raise ValueError("No buffer directory prepared")
        return directory / self.manifest_name

    def discard(self, path: Union[str, Path, None]):
        """Best-effort recursive delete. Errors are logged, never raised."""
        if not path:
            return
        path = Path(path)
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
            logger.info(f"Removed buffer directory: {path}")
        except OSError as e:
            logger.warning(f"Could not remove buffer directory {path}: {e}")

        if self.current is not None and Path(self.current) == path:
            self.current = None

    def inspect(self, directory: Optional[Path] = None) -> ManifestInfo:
        """Parse the manifest of ``directory`` (default: current buffer)."""
        directory = directory or self.current
        if directory is None:
            return ManifestInfo()
        return read_manifest(self.manifest_path(directory))

