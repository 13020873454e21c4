#!/usr/bin/env python3
"""
Typed ffmpeg invocations and the subprocess helpers that run them.

ffmpeg is launched in two shapes: the long-lived capture that writes the HLS
rolling buffer, and short-lived extractions that cut a clip out of it. Both
go through ``spawn_process`` / ``run_process`` so exit codes and stderr are
handled in one place.
"""

import asyncio
import re
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from streamclip.config import Settings
from streamclip.logging_utils import setup_logger

logger = setup_logger(__name__)

STDERR_TAIL_LINES = 200
STDERR_CHUNK_BYTES = 4096
LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def _seconds(value: float) -> str:
    # ffmpeg accepts plain decimal seconds; avoid "5.0" noise for whole values.
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.3f}"


@dataclass(frozen=True)
class CaptureCommand:
    """RTMP source -> HLS rolling buffer, video copied, audio to AAC."""

    source_url: str
    manifest_path: str
    segment_seconds: int
    list_size: int
    ffmpeg_path: str = "ffmpeg"
    audio_codec: str = "aac"
    delete_old_segments: bool = True

    @classmethod
    def from_settings(cls, settings: Settings, source_url: str, manifest_path: str) -> 'CaptureCommand':
        return cls(
            source_url=source_url,
            manifest_path=manifest_path,
            segment_seconds=settings.segment_seconds,
            list_size=settings.hls_list_size,
            ffmpeg_path=settings.ffmpeg_path,
            audio_codec=settings.capture_audio_codec,
        )

    def to_args(self) -> List[str]:
        flags = "append_list+delete_segments" if self.delete_old_segments else "append_list"
        return [
            self.ffmpeg_path,
            '-hide_banner',
            '-nostats',
            '-i', self.source_url,
            '-c:v', 'copy',
            '-c:a', self.audio_codec,
            '-f', 'hls',
            '-hls_time', str(self.segment_seconds),
            '-hls_list_size', str(self.list_size),
            '-hls_flags', flags,
            self.manifest_path,
        ]


@dataclass(frozen=True)
class ExtractionCommand:
    """Cut ``[start, start + duration)`` from the buffer and re-encode it."""

    input_url: str
    start_offset: float
    duration: float
    output_path: str
    ffmpeg_path: str = "ffmpeg"
    video_codec: str = "libx264"
    preset: str = "veryfast"
    crf: int = 23
    threads: int = 2
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    keyframe_interval: int = 30

    @classmethod
    def from_settings(cls, settings: Settings, input_url: str, start_offset: float,
                      duration: float, output_path: str) -> 'ExtractionCommand':
        return cls(
            input_url=input_url,
            start_offset=start_offset,
            duration=duration,
            output_path=output_path,
            ffmpeg_path=settings.ffmpeg_path,
            video_codec=settings.video_codec,
            preset=settings.video_preset,
            crf=settings.video_crf,
            threads=settings.encoder_threads,
            audio_codec=settings.audio_codec,
            audio_bitrate=settings.audio_bitrate,
            keyframe_interval=settings.keyframe_interval,
        )

    def to_args(self) -> List[str]:
        return [
            self.ffmpeg_path,
            '-hide_banner',
            # Read the playlist from its oldest retained segment, not the live edge,
            # so the start offset is relative to the start of the buffer.
            '-live_start_index', '0',
            '-ss', _seconds(self.start_offset),
            '-t', _seconds(self.duration),
            '-i', self.input_url,
            '-threads', str(self.threads),
            '-c:v', self.video_codec,
            '-preset', self.preset,
            '-crf', str(self.crf),
            '-c:a', self.audio_codec,
            '-b:a', self.audio_bitrate,
            '-af', 'aresample=async=1',
            '-avoid_negative_ts', 'make_zero',
            '-g', str(self.keyframe_interval),
            '-keyint_min', str(self.keyframe_interval),
            '-y',
            self.output_path,
        ]


@dataclass
class ProcessResult:
    returncode: int
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class StderrTail:
    """Keeps the last lines written by a subprocess to stderr."""

    def __init__(self, max_lines: int = STDERR_TAIL_LINES):
        self.lines: Deque[str] = deque(maxlen=max_lines)

    def feed(self, line: str):
        self.lines.append(line)

    def text(self) -> str:
        return "\n".join(self.lines)


async def spawn_process(args: List[str]) -> asyncio.subprocess.Process:
    """Start ``args`` with stdin closed, stdout discarded and stderr piped."""
    logger.debug(f"Spawning: {' '.join(args)}")
    return await asyncio.create_subprocess_exec(
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )


async def drain_stderr(process: asyncio.subprocess.Process, tail: StderrTail, label: str = "ffmpeg"):
    """Read ``process`` stderr until EOF into ``tail``."""
    if process.stderr is None:
        return
    # ffmpeg ends progress lines with \r only, so read chunks instead of lines.
    pending = ""
    while True:
        chunk = await process.stderr.read(STDERR_CHUNK_BYTES)
        if not chunk:
            break
        pending += chunk.decode("utf-8", "replace")
        *lines, pending = LINE_BREAK_RE.split(pending)
        for line in lines:
            _feed_line(tail, line, label)
    _feed_line(tail, pending, label)


def _feed_line(tail: StderrTail, line: str, label: str):
    line = line.rstrip()
    if line:
        tail.feed(line)
        logger.debug(f"{label}: {line}")


async def run_process(args: List[str], label: str = "ffmpeg") -> ProcessResult:
    """Run ``args`` to completion and return its exit code and stderr tail."""
    process = await spawn_process(args)
    tail = StderrTail()
    try:
        await drain_stderr(process, tail, label)
        returncode = await process.wait()
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
            await process.wait()
        raise
    return ProcessResult(returncode=returncode, stderr=tail.text())


def stderr_excerpt(text: Optional[str], max_chars: int = 2000) -> str:
    if not text:
        return ""
    return text[-max_chars:]
