#!/usr/bin/env python3
"""
Unit tests for the capture and extraction ffmpeg invocations.
"""

import sys
import unittest

from streamclip.config import Settings
from streamclip.ffmpeg_commands import CaptureCommand, ExtractionCommand, StderrTail, run_process


def option(args, name):
    """Value following ``name`` in an argv list."""
    return args[args.index(name) + 1]


class TestCaptureCommand(unittest.TestCase):
    """Test cases for CaptureCommand."""

    def setUp(self):
        settings = Settings(ffmpeg_path="/opt/ffmpeg")
        self.args = CaptureCommand.from_settings(
            settings, "rtmp://localhost/live/test", "/tmp/buf/stream.m3u8"
        ).to_args()

    def test_source_and_output(self):
        self.assertEqual(self.args[0], "/opt/ffmpeg")
        self.assertEqual(option(self.args, "-i"), "rtmp://localhost/live/test")
        self.assertEqual(self.args[-1], "/tmp/buf/stream.m3u8")

    def test_video_copied_audio_transcoded(self):
        self.assertEqual(option(self.args, "-c:v"), "copy")
        self.assertEqual(option(self.args, "-c:a"), "aac")

    def test_bounded_sliding_window(self):
        self.assertEqual(option(self.args, "-f"), "hls")
        self.assertEqual(option(self.args, "-hls_time"), "2")
        self.assertEqual(option(self.args, "-hls_list_size"), "3600")
        self.assertIn("delete_segments", option(self.args, "-hls_flags"))

    def test_window_tracks_settings(self):
        settings = Settings(max_retained_seconds=60, segment_seconds=6)
        args = CaptureCommand.from_settings(settings, "rtmp://x", "/tmp/m.m3u8").to_args()
        self.assertEqual(option(args, "-hls_list_size"), "10")
        self.assertEqual(option(args, "-hls_time"), "6")


class TestExtractionCommand(unittest.TestCase):
    """Test cases for ExtractionCommand."""

    def setUp(self):
        self.args = ExtractionCommand.from_settings(
            Settings(),
            input_url="http://127.0.0.1:12345/stream/stream.m3u8",
            start_offset=5,
            duration=10.5,
            output_path="/tmp/out.mp4",
        ).to_args()

    def test_reads_from_start_of_retained_window(self):
        self.assertEqual(option(self.args, "-live_start_index"), "0")
        self.assertLess(self.args.index("-live_start_index"), self.args.index("-i"))

    def test_trim_is_on_input_side(self):
        input_index = self.args.index("-i")
        self.assertLess(self.args.index("-ss"), input_index)
        self.assertLess(self.args.index("-t"), input_index)
        self.assertEqual(option(self.args, "-ss"), "5")
        self.assertEqual(option(self.args, "-t"), "10.500")

    def test_encoding_options(self):
        self.assertEqual(option(self.args, "-c:v"), "libx264")
        self.assertEqual(option(self.args, "-preset"), "veryfast")
        self.assertEqual(option(self.args, "-crf"), "23")
        self.assertEqual(option(self.args, "-threads"), "2")
        self.assertEqual(option(self.args, "-c:a"), "aac")
        self.assertEqual(option(self.args, "-af"), "aresample=async=1")
        self.assertEqual(option(self.args, "-avoid_negative_ts"), "make_zero")
        self.assertEqual(option(self.args, "-g"), "30")
        self.assertEqual(option(self.args, "-keyint_min"), "30")
        self.assertEqual(self.args[-1], "/tmp/out.mp4")


class TestStderrTail(unittest.TestCase):
    """Test cases for StderrTail."""

    def test_keeps_last_lines(self):
        tail = StderrTail(max_lines=2)
        for line in ("a", "b", "c"):
            tail.feed(line)
        self.assertEqual(tail.text(), "b\nc")


class TestRunProcess(unittest.IsolatedAsyncioTestCase):
    """Test cases for run_process."""

    async def test_captures_exit_code_and_stderr(self):
        result = await run_process([
            sys.executable, "-c",
            "import sys; sys.stderr.write('boom\\n'); sys.exit(4)",
        ])
        self.assertEqual(result.returncode, 4)
        self.assertFalse(result.ok)
        self.assertIn("boom", result.stderr)

    async def test_success(self):
        result = await run_process([sys.executable, "-c", "pass"])
        self.assertTrue(result.ok)


if __name__ == "__main__":
    unittest.main(verbosity=2)
