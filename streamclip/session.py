#!/usr/bin/env python3
"""
Capture session state.

One CaptureSession exists per start request. The controller owns the current
session and replaces it on the next start; nothing here is module-global.
"""

import time
from enum import Enum
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from streamclip.errors import InvalidTransition


class SessionStatus(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    LIVE = "live"
    STOPPED = "stopped"
    FAILED = "failed"


# Failure is only reachable while starting. A session that is superseded
# while starting fails; one superseded while live is stopped.
ALLOWED_TRANSITIONS: Dict[SessionStatus, FrozenSet[SessionStatus]] = {
    SessionStatus.IDLE: frozenset({SessionStatus.STARTING}),
    SessionStatus.STARTING: frozenset({SessionStatus.LIVE, SessionStatus.FAILED}),
    SessionStatus.LIVE: frozenset({SessionStatus.STOPPED}),
    SessionStatus.STOPPED: frozenset(),
    SessionStatus.FAILED: frozenset(),
}


class CaptureSession:
    """State of a single capture from start request to stop or failure."""

    def __init__(self, source_url: str):
        self.source_url = source_url
        self.status = SessionStatus.IDLE
        self.buffer_directory: Optional[Path] = None
        self.manifest_path: Optional[Path] = None
        self.delivery_url: Optional[str] = None
        self.process = None
        self.error: Optional[str] = None
        self.stop_requested = False
        self.live_at: Optional[float] = None

    def transition(self, new_status: SessionStatus):
        """Move to ``new_status`` or raise InvalidTransition."""
        if new_status not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(
                f"Cannot move capture session from {self.status.value} to {new_status.value}"
            )
        self.status = new_status
        if new_status == SessionStatus.LIVE:
            self.live_at = time.time()

    def fail(self, reason: str):
        self.transition(SessionStatus.FAILED)
        self.error = reason

    @property
    def is_active(self) -> bool:
        return self.status in (SessionStatus.STARTING, SessionStatus.LIVE)

    def to_dict(self) -> dict:
        return {
            'status': self.status.value,
            'source_url': self.source_url,
            'buffer_directory': str(self.buffer_directory) if self.buffer_directory else None,
            'delivery_url': self.delivery_url,
            'error': self.error,
            'live_at': self.live_at,
        }
