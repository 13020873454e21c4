#!/usr/bin/env python3
"""
Unit tests for settings loading and the retained window arithmetic.
"""

import json
import os
import tempfile
import unittest

from pydantic import ValidationError

from streamclip.config import Settings, load_settings


class TestSettings(unittest.TestCase):
    """Test cases for Settings."""

    def test_default_window_is_two_hours_of_two_second_segments(self):
        settings = Settings()
        self.assertEqual(settings.max_retained_seconds, 7200)
        self.assertEqual(settings.segment_seconds, 2)
        self.assertEqual(settings.hls_list_size, 3600)

    def test_list_size_follows_retained_seconds(self):
        settings = Settings(max_retained_seconds=600, segment_seconds=4)
        self.assertEqual(settings.hls_list_size, 150)

    def test_list_size_rounds_up_partial_segments(self):
        settings = Settings(max_retained_seconds=7, segment_seconds=2)
        self.assertEqual(settings.hls_list_size, 4)

    def test_window_shorter_than_one_segment_rejected(self):
        with self.assertRaises(ValidationError):
            Settings(max_retained_seconds=1, segment_seconds=2)

    def test_delivery_url(self):
        settings = Settings()
        self.assertEqual(settings.delivery_url, "http://127.0.0.1:12345/stream/stream.m3u8")

    def test_delivery_url_uses_loopback_for_wildcard_bind(self):
        self.assertEqual(Settings(host="0.0.0.0").delivery_url, "http://127.0.0.1:12345/stream/stream.m3u8")
        self.assertEqual(Settings(host="::", port=8080).delivery_url, "http://127.0.0.1:8080/stream/stream.m3u8")
        self.assertEqual(Settings(host="capture.local").delivery_url, "http://capture.local:12345/stream/stream.m3u8")

    def test_stream_prefix_normalized(self):
        self.assertEqual(Settings(stream_prefix="hls/").stream_prefix, "/hls")
        with self.assertRaises(ValidationError):
            Settings(stream_prefix="/")

    def test_manifest_name_must_be_m3u8(self):
        with self.assertRaises(ValidationError):
            Settings(manifest_name="stream.mpd")


class TestLoadSettings(unittest.TestCase):
    """Test cases for load_settings."""

    def test_env_overrides_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "settings.json")
            with open(path, "w") as f:
                json.dump({"port": 8080, "startup_timeout": 5}, f)

            settings = load_settings(path, environ={"STREAMCLIP_PORT": "9090"})

        self.assertEqual(settings.port, 9090)
        self.assertEqual(settings.startup_timeout, 5.0)

    def test_no_file_uses_defaults(self):
        settings = load_settings(environ={})
        self.assertEqual(settings.port, 12345)

    def test_non_object_file_rejected(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "settings.json")
            with open(path, "w") as f:
                json.dump([1, 2], f)
            with self.assertRaises(ValueError):
                load_settings(path, environ={})


if __name__ == "__main__":
    unittest.main(verbosity=2)
