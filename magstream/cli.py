from __future__ import annotations

import argparse

import uvicorn

from magstream.core import Settings
from magstream.core.logging import setup_logging
from magstream.main import create_app


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Stream video files out of magnet links over HTTP.")
    ap.add_argument("--port", type=int, default=None, help="Port to run the server on (default: PORT or 3000).")
    ap.add_argument("--dir", default=None, help="Directory to store downloaded files (default: STORAGE_DIR or ./downloads).")
    ap.add_argument("--host", default=None, help="Interface to bind (default: HOST or 0.0.0.0).")
    ap.add_argument(
        "--source",
        choices=("torrent", "local"),
        default=None,
        help="Content source: download with BitTorrent, or only serve bundles already on disk.",
    )
    ap.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR.")
    args = ap.parse_args(argv)

    overrides = {
        "PORT": args.port,
        "STORAGE_DIR": args.dir,
        "HOST": args.host,
        "CONTENT_SOURCE": args.source,
        "LOG_LEVEL": args.log_level,
    }
    settings = Settings(**{k: v for k, v in overrides.items() if v is not None})

    logger = setup_logging(settings.LOG_LEVEL)
    app = create_app(settings)

    logger.info("Server started at http://localhost:%d", settings.PORT)
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
