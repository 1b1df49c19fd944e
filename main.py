"""
main.py — Server launcher and entry point.

Run this file to start the timetable scheduling API:

    python main.py

The interactive API docs are served at http://127.0.0.1:8000/docs

This file does NOT contain application logic. See app.py for the FastAPI
application, service wiring, and startup sequence.

Direct uvicorn usage:
    uvicorn app:app --reload
"""

from __future__ import annotations

import argparse

import uvicorn


HOST = "127.0.0.1"
PORT = 8000


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Start the timetable scheduling API")
    parser.add_argument("--host", default=HOST)
    parser.add_argument("--port", type=int, default=PORT)
    parser.add_argument("--reload", action="store_true", help="hot-reload on file changes")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Start the scheduling server."""
    args = parse_args(argv)
    print("=" * 60)
    print("  Timetabler: Automatic Class Scheduling")
    print("=" * 60)
    print(f"  Server   : http://{args.host}:{args.port}")
    print(f"  API docs : http://{args.host}:{args.port}/docs")
    print("=" * 60)
    print("  Press CTRL+C to stop\n")

    # Blocks until CTRL+C
    uvicorn.run(
        "app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
