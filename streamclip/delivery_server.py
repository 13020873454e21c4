#!/usr/bin/env python3
"""
FastAPI app serving the rolling buffer to the playback surface.

The app lives for the whole process. Starting a new capture re-points
``BufferRoot`` at a new directory; the server itself is never rebuilt.
When a controller is given, the command API is mounted on the same app.
"""

import threading
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from fastapi import APIRouter, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from streamclip.config import Settings
from streamclip.errors import (
    EncodeError,
    InvalidClipWindow,
    NoActiveBuffer,
    ProcessExitedEarly,
    StartupTimeout,
    StreamClipError,
)
from streamclip.logging_utils import setup_logger
from streamclip.models import ExtractClipReq, RevealReq, StartCaptureReq

if TYPE_CHECKING:
    from streamclip.controller import StreamClipController

logger = setup_logger(__name__)

MEDIA_TYPES = {
    '.m3u8': 'application/vnd.apple.mpegurl',
    '.ts': 'video/mp2t',
    '.m4s': 'video/iso.segment',
    '.mp4': 'video/mp4',
}

ERROR_STATUS = {
    StartupTimeout: 504,
    ProcessExitedEarly: 502,
    EncodeError: 500,
    NoActiveBuffer: 409,
    InvalidClipWindow: 400,
}


class BufferRoot:
    """The directory currently served under the stream prefix."""

    def __init__(self):
        self._lock = threading.Lock()
        self._directory: Optional[Path] = None

    @property
    def directory(self) -> Optional[Path]:
        with self._lock:
            return self._directory

    def point_at(self, directory: Path):
        with self._lock:
            self._directory = Path(directory)
        logger.info(f"Serving buffer from {directory}")

    def clear(self):
        with self._lock:
            self._directory = None

    def resolve(self, relative_path: str) -> Optional[Path]:
        """Map a request path onto a file inside the buffer, or None."""
        directory = self.directory
        if directory is None:
            raise NoActiveBuffer("No capture buffer registered")

        root = directory.resolve()
        candidate = (root / relative_path).resolve()
        try:
            candidate.relative_to(root)
        except ValueError:
            return None
        if not candidate.is_file():
            return None
        return candidate


def _error_response(error: StreamClipError) -> JSONResponse:
    status = 500
    for error_type, code in ERROR_STATUS.items():
        if isinstance(error, error_type):
            status = code
            break
    return JSONResponse(status_code=status, content=error.to_dict())


def _stream_router(buffer_root: BufferRoot) -> APIRouter:
    router = APIRouter()

    @router.get("/{file_path:path}")
    def serve_buffer_file(file_path: str):
        try:
            path = buffer_root.resolve(file_path)
        except NoActiveBuffer:
            raise HTTPException(status_code=404, detail="Stream not started")

        if path is None:
            raise HTTPException(status_code=404, detail="Not found")

        headers = {}
        if path.suffix == '.m3u8':
            # The live playlist changes every segment.
            headers['Cache-Control'] = 'no-cache'
        return FileResponse(
            path,
            media_type=MEDIA_TYPES.get(path.suffix, 'application/octet-stream'),
            headers=headers,
        )

    return router


def _command_router(controller: 'StreamClipController') -> APIRouter:
    router = APIRouter()

    @router.post("/capture/start")
    async def start_capture(req: StartCaptureReq):
        try:
            delivery_url = await controller.start_capture(req.source_url)
        except StreamClipError as e:
            return _error_response(e)
        return {"delivery_url": delivery_url}

    @router.post("/capture/stop")
    async def stop_capture():
        return {"stopped": await controller.stop_capture()}

    @router.get("/capture/status")
    def capture_status():
        return controller.status()

    @router.post("/clips")
    async def extract_clip(req: ExtractClipReq):
        try:
            path = await controller.extract_clip(
                req.start_time,
                req.duration,
                output_name=req.output_name,
                destination=req.destination,
            )
        except StreamClipError as e:
            return _error_response(e)
        return {"path": path}

    @router.get("/clips")
    def list_clips():
        return [record.model_dump(mode='json') for record in controller.exports]

    @router.post("/reveal")
    def reveal(req: RevealReq):
        controller.reveal_output_file(req.path)
        return {"ok": True}

    @router.get("/recent-urls")
    def recent_urls():
        return controller.recent_urls()

    return router


def create_app(settings: Settings, buffer_root: BufferRoot,
               controller: Optional['StreamClipController'] = None) -> FastAPI:
    """
    Build the delivery app.

    Args:
        settings: Service settings (stream prefix)
        buffer_root: Shared pointer to the buffer being served
        controller: When given, the command API is mounted under /api

    Returns:
        FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if controller is not None:
            await controller.shutdown()

    app = FastAPI(title="streamclip", lifespan=lifespan)

    # The player may run in another origin (file://, a webview, a dev server).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(_stream_router(buffer_root), prefix=settings.stream_prefix)
    if controller is not None:
        app.include_router(_command_router(controller), prefix="/api")
    return app
