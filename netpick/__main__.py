"""Run the NetPick API with ``python -m netpick``."""

from __future__ import annotations

import argparse

import uvicorn

from app.config import settings


def main(argv: list[str] | None = None) -> None:
    """Start uvicorn, letting ``--host``/``--port`` override the settings."""

    parser = argparse.ArgumentParser(prog="netpick", description=settings.app_name)
    parser.add_argument("--host", default=settings.server_host)
    parser.add_argument("--port", type=int, default=settings.server_port)
    args = parser.parse_args(argv)

    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=settings.environment == "development",
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
