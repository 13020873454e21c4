#!/usr/bin/env python3
"""
In/out point marking on the buffer timeline.
"""

from typing import Optional

from streamclip.models import ClipRequest


class ClipMarks:
    """In/out points in seconds from the start of the retained buffer."""

    def __init__(self):
        self.in_point: Optional[float] = None
        self.out_point: Optional[float] = None

    def mark_in(self, position: float):
        """Set the in point; an out point at or before it is dropped."""
        if position < 0:
            raise ValueError("in point must not be negative")
        self.in_point = position
        if self.out_point is not None and self.out_point <= position:
            self.out_point = None

    def mark_out(self, position: float) -> bool:
        """Set the out point. Rejected (returns False) when not after the in point."""
        if position < 0:
            raise ValueError("out point must not be negative")
        if self.in_point is not None and position <= self.in_point:
            return False
        self.out_point = position
        return True

    @property
    def can_export(self) -> bool:
        return (
            self.in_point is not None
            and self.out_point is not None
            and self.out_point > self.in_point
        )

    @property
    def duration(self) -> Optional[float]:
        if not self.can_export:
            return None
        return self.out_point - self.in_point

    def to_request(self, output_name: Optional[str] = None) -> ClipRequest:
        if not self.can_export:
            raise ValueError("Both an in point and a later out point are required")
        values = {
            'start_offset_seconds': self.in_point,
            'duration_seconds': self.duration,
        }
        if output_name:
            values['output_name'] = output_name
        return ClipRequest(**values)

    def reset(self):
        self.in_point = None
        self.out_point = None
