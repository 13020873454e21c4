"""
streamclip: live RTMP capture into a local HLS DVR buffer with clip export.
"""

__version__ = "0.1.0"
