#!/usr/bin/env python3
"""
Unit tests for the command line client.
"""

import unittest
from unittest import mock

import streamclip_cli


def fake_response(status_code, body):
    response = mock.Mock()
    response.status_code = status_code
    response.json.return_value = body
    return response


class TestCli(unittest.TestCase):
    """Test cases for streamclip_cli."""

    def parse(self, *argv):
        return streamclip_cli.build_parser().parse_args(["--api", "http://127.0.0.1:9/api", *argv])

    def test_clip_posts_marked_window(self):
        args = self.parse("clip", "--in", "5", "--out", "15", "--name", "goal")
        with mock.patch("streamclip_cli.requests.request",
                        return_value=fake_response(200, {"path": "/tmp/goal.mp4"})) as request:
            args.func(args)

        method, url = request.call_args.args
        self.assertEqual((method, url), ("POST", "http://127.0.0.1:9/api/clips"))
        payload = request.call_args.kwargs["json"]
        self.assertEqual(payload["start_time"], 5)
        self.assertEqual(payload["duration"], 10)
        self.assertEqual(payload["output_name"], "goal")

    def test_clip_rejects_out_before_in(self):
        args = self.parse("clip", "--in", "20", "--out", "10")
        with mock.patch("streamclip_cli.requests.request") as request:
            with self.assertRaises(SystemExit):
                args.func(args)
        request.assert_not_called()

    def test_error_response_exits(self):
        args = self.parse("start", "rtmp://localhost/live/test")
        body = {"kind": "startup_timeout", "message": "Timed out", "diagnostics": None}
        with mock.patch("streamclip_cli.requests.request", return_value=fake_response(504, body)):
            with self.assertRaises(SystemExit):
                args.func(args)

    def test_command_required(self):
        with self.assertRaises(SystemExit):
            streamclip_cli.build_parser().parse_args([])


if __name__ == "__main__":
    unittest.main(verbosity=2)
