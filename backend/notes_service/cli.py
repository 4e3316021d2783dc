from __future__ import annotations

import argparse

import uvicorn

from .config import load_settings


def main() -> None:
    parser = argparse.ArgumentParser(prog="notes-service", description="Personal notes API.")
    sub = parser.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Run the API server")
    run.add_argument("--host", default=None, help="Bind host (override NOTES_HOST)")
    run.add_argument("--port", type=int, default=None, help="Bind port (override NOTES_PORT)")

    args = parser.parse_args()
    settings = load_settings()

    host = args.host or settings.host
    port = args.port or settings.port

    uvicorn.run(
        "notes_service.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
