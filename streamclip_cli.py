#!/usr/bin/env python3
"""
CLI for the streamclip capture service.
Usage: python streamclip_cli.py serve | start <rtmp-url> | stop | status | clip --in 5 --out 15
"""

import argparse
import json
import sys

import requests

# Ensure stdout/stderr can emit UTF-8 (emoji) without crashing on Windows code pages
try:
    if hasattr(sys.stdout, "reconfigure"):
        sys.stdout.reconfigure(encoding="utf-8", errors="replace")
    if hasattr(sys.stderr, "reconfigure"):
        sys.stderr.reconfigure(encoding="utf-8", errors="replace")
except (AttributeError, ValueError):
    pass

from streamclip.clip_marks import ClipMarks
from streamclip.config import load_settings

# Startup waits for the manifest (15s by default) and exports can take a while.
REQUEST_TIMEOUT = 600


def serve(args):
    """Run the delivery server and command API until interrupted."""
    import uvicorn

    from streamclip.controller import StreamClipController
    from streamclip.delivery_server import create_app

    settings = load_settings(args.config)
    controller = StreamClipController(settings)
    app = create_app(settings, controller.buffer_root, controller)

    print(f"🚀 streamclip serving on http://{settings.host}:{settings.port}")
    print(f"   Buffer: {settings.hls_list_size} x {settings.segment_seconds}s segments "
          f"({settings.max_retained_seconds}s retained)")
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


def api_base(args) -> str:
    if args.api:
        return args.api.rstrip('/')
    settings = load_settings(args.config)
    return f"http://{settings.host}:{settings.port}/api"


def call(args, method: str, path: str, payload=None):
    url = f"{api_base(args)}{path}"
    try:
        response = requests.request(method, url, json=payload, timeout=REQUEST_TIMEOUT)
    except requests.RequestException as e:
        print(f"❌ Could not reach streamclip at {url}: {e}")
        sys.exit(1)

    try:
        body = response.json()
    except ValueError:
        body = {'message': response.text}

    if response.status_code >= 400:
        print(f"❌ {body.get('kind', 'error')}: {body.get('message') or body.get('detail')}")
        if body.get('diagnostics'):
            print(body['diagnostics'])
        sys.exit(1)
    return body


def start(args):
    print(f"🔗 Starting capture: {args.url}")
    body = call(args, 'POST', '/capture/start', {'source_url': args.url})
    print(f"✅ Live: {body['delivery_url']}")


def stop(args):
    call(args, 'POST', '/capture/stop')
    print("⏹️ Capture stopped (buffer kept for export)")


def status(args):
    print(json.dumps(call(args, 'GET', '/capture/status'), indent=2))


def clip(args):
    marks = ClipMarks()
    marks.mark_in(args.in_point)
    if not marks.mark_out(args.out_point):
        print(f"❌ Out point {args.out_point}s must be after in point {args.in_point}s")
        sys.exit(1)

    request = marks.to_request(args.name)
    payload = {
        'start_time': request.start_offset_seconds,
        'duration': request.duration_seconds,
        'output_name': request.output_name,
        'destination': args.dest,
    }
    print(f"🎬 Exporting {request.duration_seconds:.1f}s from {request.start_offset_seconds:.1f}s...")
    body = call(args, 'POST', '/clips', payload)
    if body.get('path'):
        print(f"✅ Clip exported: {body['path']}")
    else:
        print("Export cancelled")


def recent(args):
    for url in call(args, 'GET', '/recent-urls'):
        print(url)


def reveal(args):
    call(args, 'POST', '/reveal', {'path': args.path})


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Capture a live RTMP stream into a local DVR buffer and export clips",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python streamclip_cli.py serve
  python streamclip_cli.py start rtmp://localhost/live/stream
  python streamclip_cli.py clip --in 65 --out 95 --name goal
  python streamclip_cli.py stop
        """
    )
    parser.add_argument("--config", help="JSON settings file")
    parser.add_argument("--api", help="Command API base URL (default: from settings)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the delivery server and command API").set_defaults(func=serve)

    p = sub.add_parser("start", help="Start capturing an RTMP source")
    p.add_argument("url", help="RTMP source URL")
    p.set_defaults(func=start)

    sub.add_parser("stop", help="Stop the current capture").set_defaults(func=stop)
    sub.add_parser("status", help="Show capture status").set_defaults(func=status)

    p = sub.add_parser("clip", help="Export a clip between two buffer positions")
    p.add_argument("--in", dest="in_point", type=float, required=True,
                   help="In point, seconds from the start of the buffer")
    p.add_argument("--out", dest="out_point", type=float, required=True,
                   help="Out point, seconds from the start of the buffer")
    p.add_argument("--name", help="Output file name without extension")
    p.add_argument("--dest", help="Full output path (overrides --name)")
    p.set_defaults(func=clip)

    sub.add_parser("recent", help="List recently used source URLs").set_defaults(func=recent)

    p = sub.add_parser("reveal", help="Show an exported file in the file manager")
    p.add_argument("path")
    p.set_defaults(func=reveal)

    return parser


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()
    try:
        args.func(args)
    except KeyboardInterrupt:
        print("\n⏹️ Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
