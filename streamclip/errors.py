#!/usr/bin/env python3
"""
Error taxonomy for capture sessions and clip exports.

Every error carries a stable ``kind`` string so callers (the HTTP API, the
CLI) can report it without matching on class names.
"""

from typing import Optional


class StreamClipError(Exception):
    """Base class for all streamclip failures."""

    kind = "error"

    def __init__(self, message: str, diagnostics: Optional[str] = None):
        super().__init__(message)
        self.diagnostics = diagnostics

    def to_dict(self) -> dict:
        return {
            'kind': self.kind,
            'message': str(self),
            'diagnostics': self.diagnostics,
        }


class StartupTimeout(StreamClipError):
    """The capture manifest never appeared within the startup bound."""

    kind = "startup_timeout"


class ProcessExitedEarly(StreamClipError):
    """ffmpeg exited before it produced the capture manifest."""

    kind = "process_exited_early"

    def __init__(self, message: str, returncode: Optional[int] = None, diagnostics: Optional[str] = None):
        super().__init__(message, diagnostics)
        self.returncode = returncode


class EncodeError(StreamClipError):
    """The extraction ffmpeg run failed."""

    kind = "encode_error"

    def __init__(self, message: str, returncode: Optional[int] = None, diagnostics: Optional[str] = None):
        super().__init__(message, diagnostics)
        self.returncode = returncode


class NoActiveBuffer(StreamClipError):
    """No rolling buffer is registered yet."""

    kind = "no_active_buffer"


class UserCancelledSave(StreamClipError):
    """The destination picker was dismissed. Callers treat this as a no-op."""

    kind = "user_cancelled_save"


class InvalidTransition(StreamClipError):
    """A capture session was asked to move to a state it cannot reach."""

    kind = "invalid_transition"


class InvalidClipWindow(StreamClipError):
    """The requested clip window lies outside the retained buffer."""

    kind = "invalid_clip_window"
