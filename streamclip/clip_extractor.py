#!/usr/bin/env python3
"""
Clip export from the rolling buffer.

Reads the buffer through its delivery URL from the oldest retained segment,
trims ``[start, start + duration)`` on the input side and re-encodes to a
standalone, seekable MP4. Runs next to the live capture without touching it.
"""

import asyncio
import os
from typing import Awaitable, Callable, List, Optional

from streamclip.config import Settings
from streamclip.errors import EncodeError
from streamclip.ffmpeg_commands import ExtractionCommand, ProcessResult, run_process, stderr_excerpt
from streamclip.logging_utils import setup_logger
from streamclip.models import ClipRequest

logger = setup_logger(__name__)

Runner = Callable[[List[str]], Awaitable[ProcessResult]]


class ClipExtractor:
    """Runs extraction ffmpeg jobs, a bounded number at a time."""

    def __init__(self, settings: Settings, runner: Optional[Runner] = None):
        self.settings = settings
        self.runner = runner or (lambda args: run_process(args, label="extract"))
        self._slots = asyncio.Semaphore(settings.max_concurrent_extractions)

    def build_command(self, request: ClipRequest, delivery_url: str, destination: str) -> ExtractionCommand:
        return ExtractionCommand.from_settings(
            self.settings,
            input_url=delivery_url,
            start_offset=request.start_offset_seconds,
            duration=request.duration_seconds,
            output_path=destination,
        )

    async def extract(self, request: ClipRequest, delivery_url: str, destination: str) -> str:
        """
        Export one clip.

        Args:
            request: Window relative to the oldest retained segment
            delivery_url: Manifest URL of the buffer to read from
            destination: Final output path

        Returns:
            ``destination`` once ffmpeg has finished successfully

        Raises:
            EncodeError: ffmpeg failed or could not be launched
        """
        command = self.build_command(request, delivery_url, destination)
        directory = os.path.dirname(os.path.abspath(destination))
        os.makedirs(directory, exist_ok=True)

        async with self._slots:
            logger.info(
                f"🎬 Exporting clip: start={request.start_offset_seconds:.2f}s "
                f"duration={request.duration_seconds:.2f}s -> {destination}"
            )
            try:
                result = await self.runner(command.to_args())
            except OSError as e:
                self._remove_partial(destination)
                raise EncodeError(f"Could not launch ffmpeg: {e}") from e
            except asyncio.CancelledError:
                self._remove_partial(destination)
                raise

        if not result.ok:
            logger.error(f"❌ Export failed (code {result.returncode}): {stderr_excerpt(result.stderr)}")
            self._remove_partial(destination)
            raise EncodeError(
                f"ffmpeg exited with code {result.returncode} while exporting the clip",
                returncode=result.returncode,
                diagnostics=stderr_excerpt(result.stderr),
            )

        if not os.path.exists(destination):
            raise EncodeError("ffmpeg reported success but wrote no output", returncode=result.returncode,
                              diagnostics=stderr_excerpt(result.stderr))

        logger.info(f"✅ Clip exported: {destination} ({os.path.getsize(destination)} bytes)")
        return destination

    def _remove_partial(self, destination: str):
        try:
            if os.path.exists(destination):
                os.remove(destination)
        except OSError as e:
            logger.warning(f"Could not remove partial export {destination}: {e}")
