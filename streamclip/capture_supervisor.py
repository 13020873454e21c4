#!/usr/bin/env python3
"""
Supervisor for the capture ffmpeg process.

Owns at most one capture subprocess and the CaptureSession describing it.
A start forcibly kills whatever is running, swaps in a fresh buffer
directory and waits (bounded) for ffmpeg to write the first manifest.
A stop asks ffmpeg to finish gracefully and keeps the buffer on disk.
"""

import asyncio
import signal
import sys
from pathlib import Path
from typing import Callable, List, Optional, Set

from streamclip.config import Settings
from streamclip.delivery_server import BufferRoot
from streamclip.errors import ProcessExitedEarly, StartupTimeout
from streamclip.ffmpeg_commands import (
    CaptureCommand,
    StderrTail,
    drain_stderr,
    spawn_process,
    stderr_excerpt,
)
from streamclip.logging_utils import setup_logger
from streamclip.rolling_buffer import RollingBufferManager
from streamclip.session import CaptureSession, SessionStatus

logger = setup_logger(__name__)

CommandFactory = Callable[[str, str], List[str]]


class CaptureSupervisor:
    """Runs the RTMP -> HLS capture for one session at a time."""

    def __init__(self, settings: Settings, buffers: RollingBufferManager, buffer_root: BufferRoot,
                 command_factory: Optional[CommandFactory] = None):
        """
        Args:
            settings: Service settings (timeouts, delivery URL, ffmpeg flags)
            buffers: Creates and discards buffer directories
            buffer_root: Pointer the delivery server serves from
            command_factory: Builds the capture argv from (source_url, manifest_path)
        """
        self.settings = settings
        self.buffers = buffers
        self.buffer_root = buffer_root
        self.command_factory = command_factory or self._default_command
        self.session: Optional[CaptureSession] = None

        self._process: Optional[asyncio.subprocess.Process] = None
        self._exit_task: Optional[asyncio.Future] = None
        self._background: Set[asyncio.Task] = set()
        self._stop_pending = False
        self._lock = asyncio.Lock()

    def _default_command(self, source_url: str, manifest_path: str) -> List[str]:
        return CaptureCommand.from_settings(self.settings, source_url, manifest_path).to_args()

    @property
    def is_running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def start(self, source_url: str) -> str:
        """
        Start capturing ``source_url`` into a fresh rolling buffer.

        Returns:
            Delivery URL of the manifest once ffmpeg has written it

        Raises:
            StartupTimeout: the manifest did not appear in time
            ProcessExitedEarly: ffmpeg exited (or could not launch) first
        """
        async with self._lock:
            self._stop_pending = False
            await self._kill_current()
            self._retire_session(self.session)

            # Nothing is served while directories are swapped.
            self.buffer_root.clear()
            directory = await asyncio.to_thread(self.buffers.prepare_fresh_directory)

            session = CaptureSession(source_url)
            session.transition(SessionStatus.STARTING)
            session.buffer_directory = directory
            session.manifest_path = self.buffers.manifest_path(directory)
            self.session = session
            self.buffer_root.point_at(directory)

            args = self.command_factory(source_url, str(session.manifest_path))
            logger.info(f"🚀 Starting capture: {source_url}")
            try:
                process = await spawn_process(args)
            except OSError as e:
                session.fail(f"launch failed: {e}")
                raise ProcessExitedEarly(f"Could not launch capture process: {e}") from e

            tail = StderrTail()
            session.process = process
            self._process = process
            self._exit_task = asyncio.ensure_future(process.wait())
            self._exit_task.add_done_callback(
                lambda task, s=session: self._on_exit(s, task)
            )
            self._track(asyncio.ensure_future(drain_stderr(process, tail, "capture")))
            exit_task = self._exit_task

            if self._stop_pending:
                # stop() arrived while the buffer was being swapped.
                self._stop_pending = False
                session.stop_requested = True
                self._process = None
                self._interrupt(process, exit_task)

        return await self._wait_until_ready(session, process, exit_task, tail)

    async def _wait_until_ready(self, session: CaptureSession, process: asyncio.subprocess.Process,
                                exit_task: asyncio.Future, tail: StderrTail) -> str:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.settings.startup_timeout
        manifest = Path(session.manifest_path)

        while True:
            if exit_task.done():
                returncode = exit_task.result()
                self._fail(session, f"capture exited with code {returncode}")
                logger.error(f"❌ Capture exited before the manifest appeared (code {returncode})")
                raise ProcessExitedEarly(
                    f"Capture process exited with code {returncode} before the stream started",
                    returncode=returncode,
                    diagnostics=stderr_excerpt(tail.text()),
                )

            if manifest.exists():
                if session.status != SessionStatus.STARTING:
                    raise ProcessExitedEarly("Capture was superseded before it went live")
                if session.stop_requested:
                    self._fail(session, "stopped before going live")
                    raise ProcessExitedEarly("Capture was stopped before it went live")
                session.delivery_url = self.settings.delivery_url
                session.transition(SessionStatus.LIVE)
                logger.info(f"✅ Capture live: {session.delivery_url}")
                return session.delivery_url

            remaining = deadline - loop.time()
            if remaining <= 0:
                break
            await asyncio.wait({exit_task}, timeout=min(self.settings.poll_interval, remaining))

        logger.error(f"❌ No manifest after {self.settings.startup_timeout}s, killing capture")
        self._fail(session, "startup timeout")
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await exit_task
        raise StartupTimeout(
            f"Timed out after {self.settings.startup_timeout}s waiting for the stream to start",
            diagnostics=stderr_excerpt(tail.text()),
        )

    async def stop(self) -> bool:
        """Ask the capture to finish. Does not wait for it and keeps the buffer."""
        if self._lock.locked():
            # A start is swapping buffers; it interrupts its process once spawned.
            self._stop_pending = True

        session = self.session
        process = self._process
        self._process = None

        if session is not None:
            if session.status == SessionStatus.LIVE:
                session.transition(SessionStatus.STOPPED)
            elif session.status == SessionStatus.STARTING:
                session.stop_requested = True

        if process is None or process.returncode is not None:
            return True

        self._interrupt(process, self._exit_task)
        return True

    def _interrupt(self, process: asyncio.subprocess.Process, exit_task: asyncio.Future):
        logger.info("⏹️ Stopping capture")
        try:
            if sys.platform == 'win32':
                process.terminate()
            else:
                # SIGINT lets ffmpeg finish the segment it is writing.
                process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            return
        self._track(asyncio.ensure_future(self._reap(process, exit_task)))

    async def shutdown(self):
        """Stop the capture and wait for every process to be reaped."""
        await self.stop()
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def _reap(self, process: asyncio.subprocess.Process, exit_task: asyncio.Future):
        try:
            await asyncio.wait_for(asyncio.shield(exit_task), timeout=self.settings.stop_grace_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Capture did not exit within {self.settings.stop_grace_seconds}s, killing it")
            try:
                process.kill()
            except ProcessLookupError:
                pass
            await exit_task

    async def _kill_current(self):
        # A stopped capture may still be inside its grace period.
        process = self._process or (self.session.process if self.session else None)
        exit_task = self._exit_task
        self._process = None
        if process is None or process.returncode is not None or exit_task is None:
            return
        logger.info("Killing previous capture")
        try:
            process.kill()
        except ProcessLookupError:
            pass
        await exit_task

    def _retire_session(self, session: Optional[CaptureSession]):
        if session is None:
            return
        if session.status == SessionStatus.LIVE:
            session.transition(SessionStatus.STOPPED)
        elif session.status == SessionStatus.STARTING:
            session.fail("superseded by a new capture")

    def _fail(self, session: CaptureSession, reason: str):
        if session.status == SessionStatus.STARTING:
            session.fail(reason)

    def _on_exit(self, session: CaptureSession, task: asyncio.Future):
        if task.cancelled():
            return
        logger.info(f"Capture process exited with code {task.result()} ({session.source_url})")
        if session.process is not None and self._process is session.process:
            self._process = None

    def _track(self, task: asyncio.Task):
        self._background.add(task)
        task.add_done_callback(self._background.discard)
