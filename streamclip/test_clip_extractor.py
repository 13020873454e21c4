#!/usr/bin/env python3
"""
Unit tests for clip extraction with a fake ffmpeg runner.
"""

import asyncio
import os
import tempfile
import unittest

from streamclip.clip_extractor import ClipExtractor
from streamclip.config import Settings
from streamclip.errors import EncodeError
from streamclip.ffmpeg_commands import ProcessResult
from streamclip.models import ClipRequest

DELIVERY_URL = "http://127.0.0.1:12345/stream/stream.m3u8"


class FakeRunner:
    """Records argv lists and writes the output file like ffmpeg would."""

    def __init__(self, returncode=0, stderr="", write_output=True, delay=0.0):
        self.returncode = returncode
        self.stderr = stderr
        self.write_output = write_output
        self.delay = delay
        self.calls = []
        self.running = 0
        self.max_running = 0

    async def __call__(self, args):
        self.calls.append(args)
        self.running += 1
        self.max_running = max(self.max_running, self.running)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.write_output:
                with open(args[-1], "wb") as f:
                    f.write(b"\x00" * 64)
        finally:
            self.running -= 1
        return ProcessResult(returncode=self.returncode, stderr=self.stderr)


class TestClipExtractor(unittest.IsolatedAsyncioTestCase):
    """Test cases for ClipExtractor."""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.destination = os.path.join(self.tmp.name, "clips", "goal.mp4")
        self.request = ClipRequest(start_offset_seconds=5, duration_seconds=10, output_name="goal")

    def tearDown(self):
        self.tmp.cleanup()

    async def test_success_returns_destination(self):
        runner = FakeRunner()
        extractor = ClipExtractor(Settings(), runner=runner)

        path = await extractor.extract(self.request, DELIVERY_URL, self.destination)

        self.assertEqual(path, self.destination)
        self.assertTrue(os.path.exists(path))
        args = runner.calls[0]
        self.assertEqual(args[args.index("-i") + 1], DELIVERY_URL)
        self.assertEqual(args[args.index("-ss") + 1], "5")
        self.assertEqual(args[args.index("-t") + 1], "10")

    async def test_failure_removes_partial_output(self):
        runner = FakeRunner(returncode=1, stderr="Invalid data found when processing input")
        extractor = ClipExtractor(Settings(), runner=runner)

        with self.assertRaises(EncodeError) as ctx:
            await extractor.extract(self.request, DELIVERY_URL, self.destination)

        self.assertEqual(ctx.exception.returncode, 1)
        self.assertIn("Invalid data", ctx.exception.diagnostics)
        self.assertFalse(os.path.exists(self.destination))

    async def test_success_without_output_is_an_error(self):
        extractor = ClipExtractor(Settings(), runner=FakeRunner(write_output=False))
        with self.assertRaises(EncodeError):
            await extractor.extract(self.request, DELIVERY_URL, self.destination)

    async def test_launch_failure_is_encode_error(self):
        async def missing_binary(args):
            raise FileNotFoundError("ffmpeg")

        extractor = ClipExtractor(Settings(), runner=missing_binary)
        with self.assertRaises(EncodeError):
            await extractor.extract(self.request, DELIVERY_URL, self.destination)

    async def test_concurrent_exports_are_bounded(self):
        runner = FakeRunner(delay=0.05)
        extractor = ClipExtractor(Settings(max_concurrent_extractions=2), runner=runner)

        await asyncio.gather(*[
            extractor.extract(self.request, DELIVERY_URL, os.path.join(self.tmp.name, f"clip{i}.mp4"))
            for i in range(5)
        ])

        self.assertEqual(len(runner.calls), 5)
        self.assertLessEqual(runner.max_running, 2)


if __name__ == "__main__":
    unittest.main(verbosity=2)
