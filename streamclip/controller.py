#!/usr/bin/env python3
"""
Command surface used by the presentation layer.

Wires the capture supervisor, the rolling buffer, the extractor and the
recent-URL store together. Everything here is async-safe and owned by one
controller instance; there is no process-global session.
"""

import os
from pathlib import Path
from typing import Callable, List, Optional

from streamclip.capture_supervisor import CaptureSupervisor
from streamclip.clip_extractor import ClipExtractor
from streamclip.config import Settings
from streamclip.delivery_server import BufferRoot
from streamclip.errors import InvalidClipWindow, NoActiveBuffer, UserCancelledSave
from streamclip.file_reveal import reveal_output_file
from streamclip.logging_utils import setup_logger
from streamclip.models import ClipRequest, ExportRecord
from streamclip.recent_urls import RecentUrlStore
from streamclip.rolling_buffer import RollingBufferManager

logger = setup_logger(__name__)

DestinationPicker = Callable[[str], Optional[str]]


def unique_path(path: str) -> str:
    """``path`` itself, or ``name (n).ext`` for the first n that is free."""
    if not os.path.exists(path):
        return path
    base, ext = os.path.splitext(path)
    n = 1
    while os.path.exists(f"{base} ({n}){ext}"):
        n += 1
    return f"{base} ({n}){ext}"


def default_destination_picker(suggested_path: str) -> Optional[str]:
    """Accept the suggested path without asking, avoiding overwrites."""
    return unique_path(suggested_path)


class StreamClipController:
    """startCapture / stopCapture / extractClip / revealOutputFile."""

    def __init__(self, settings: Settings, buffer_root: Optional[BufferRoot] = None,
                 buffers: Optional[RollingBufferManager] = None,
                 supervisor: Optional[CaptureSupervisor] = None,
                 extractor: Optional[ClipExtractor] = None,
                 recent_store: Optional[RecentUrlStore] = None,
                 destination_picker: Optional[DestinationPicker] = None):
        self.settings = settings
        self.buffer_root = buffer_root or BufferRoot()
        self.buffers = buffers or RollingBufferManager(settings.buffer_root, settings.manifest_name)
        self.supervisor = supervisor or CaptureSupervisor(settings, self.buffers, self.buffer_root)
        self.extractor = extractor or ClipExtractor(settings)
        self.recent_store = recent_store or RecentUrlStore(settings.recent_urls_path, settings.max_recent_urls)
        self.destination_picker = destination_picker or default_destination_picker
        self.exports: List[ExportRecord] = []

    async def start_capture(self, source_url: str) -> str:
        """Start a new capture session and return its delivery URL."""
        delivery_url = await self.supervisor.start(source_url)
        self.recent_store.add(source_url)
        return delivery_url

    async def stop_capture(self) -> bool:
        return await self.supervisor.stop()

    async def extract_clip(self, start_time: float, duration: float, output_name: Optional[str] = None,
                           destination: Optional[str] = None) -> Optional[str]:
        """
        Export ``[start_time, start_time + duration)`` of the retained buffer.

        Args:
            start_time: Seconds from the oldest retained segment
            duration: Clip length in seconds
            output_name: File name without extension (timestamped if omitted)
            destination: Output path; when omitted the destination picker is asked

        Returns:
            Output path, or None if the save was cancelled
        """
        session = self.supervisor.session
        if session is None or session.delivery_url is None:
            raise NoActiveBuffer("No capture buffer to export from")

        values = {'start_offset_seconds': start_time, 'duration_seconds': duration}
        if output_name:
            values['output_name'] = output_name
        request = ClipRequest(**values)

        info = self.buffers.inspect(session.buffer_directory)
        if info.segments and request.start_offset_seconds >= info.retained_seconds:
            raise InvalidClipWindow(
                f"Start {request.start_offset_seconds:.2f}s is past the retained buffer "
                f"({info.retained_seconds:.2f}s)"
            )

        try:
            destination = self._pick_destination(request, destination)
        except UserCancelledSave:
            logger.info("Export cancelled by user")
            return None

        path = await self.extractor.extract(request, session.delivery_url, destination)
        self.exports.insert(0, ExportRecord(
            path=path,
            start_offset_seconds=request.start_offset_seconds,
            duration_seconds=request.duration_seconds,
        ))
        return path

    def _pick_destination(self, request: ClipRequest, destination: Optional[str]) -> str:
        if destination:
            return destination
        suggested = str(Path(self.settings.export_dir) / f"{request.output_name}.mp4")
        chosen = self.destination_picker(suggested)
        if not chosen:
            raise UserCancelledSave("Save dialog dismissed")
        return chosen

    def reveal_output_file(self, path: str):
        reveal_output_file(path)

    def recent_urls(self) -> List[str]:
        return self.recent_store.load()

    def status(self) -> dict:
        session = self.supervisor.session
        info = self.buffers.inspect(session.buffer_directory) if session else None
        return {
            'session': session.to_dict() if session else {'status': 'idle', 'delivery_url': None},
            'capture_running': self.supervisor.is_running,
            'retained_seconds': info.retained_seconds if info else 0.0,
            'retained_segments': len(info.segments) if info else 0,
            'max_retained_seconds': self.settings.max_retained_seconds,
        }

    async def shutdown(self):
        await self.supervisor.shutdown()
